"""Authentication flows shared by the sign-up, sign-in and session routes."""

from typing import Any

from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError
from structlog import get_logger

from app.config import settings
from app.core.exceptions import (
    AlreadyExistsException,
    BadRequestException,
    MissingFieldsException,
    NotFoundException,
    StoreUnavailableException,
)
from app.core.firebase import FirebaseClient
from app.core.phone import normalize_phone_number
from app.schemas.auth import PasswordSignUpRequest
from app.schemas.identity import AuthProvider, IdentityClaim, ReconcileResult, SessionCredential
from app.services.identity_reconciler import IdentityReconciler
from app.services.session_service import SessionIssuer
from app.services.token_verifier import TokenVerifier
from app.services.user_service import UserService

logger = get_logger(__name__)


class AuthService:
    """
    Sequences verification, reconciliation and session issuance.

    Each route picks one method; all of them funnel record creation through
    IdentityReconciler.reconcile.
    """

    def __init__(
        self,
        firebase: FirebaseClient,
        verifier: TokenVerifier,
        reconciler: IdentityReconciler,
        sessions: SessionIssuer,
        users: UserService,
    ):
        """Initialize with the collaborating services."""
        self.firebase = firebase
        self.verifier = verifier
        self.reconciler = reconciler
        self.sessions = sessions
        self.users = users

    async def _reconcile(self, claim: IdentityClaim, provider: AuthProvider) -> ReconcileResult:
        result = await self.reconciler.reconcile(claim, provider)
        if result.updated:
            self.users.invalidate(result.uid)
        return result

    async def sign_up_with_password(self, data: PasswordSignUpRequest) -> ReconcileResult:
        """
        Create an email/password account and its user record.

        Uniqueness is enforced by the identity provider when the account is
        created, not by a prior existence read. When the email is taken but
        the account has no user record yet, as after a sign-up whose store
        write failed, the record is completed instead of rejecting the retry.

        Raises:
            BadRequestException: If the phone number or password is rejected
            AlreadyExistsException: If the email or phone number is taken
            StoreUnavailableException: If the provider or store fails
        """
        try:
            phone_number = normalize_phone_number(
                data.phone_number, settings.default_country_calling_code
            )
        except ValueError as e:
            raise BadRequestException(str(e)) from e

        resumed = False
        try:
            account = await self.firebase.create_user(
                email=data.email,
                password=data.password,
                display_name=f"{data.first_name} {data.last_name}",
                phone_number=phone_number,
                email_verified=False,
            )
        except auth.EmailAlreadyExistsError:
            account = await self._account_for_email(data.email)
            resumed = True
        except auth.PhoneNumberAlreadyExistsError as e:
            raise AlreadyExistsException() from e
        except ValueError as e:
            raise BadRequestException(str(e)) from e
        except FirebaseError as e:
            logger.error("account_creation_failed", error=str(e))
            raise StoreUnavailableException("Could not create account") from e

        if resumed and await self.users.user_exists(account.uid):
            raise AlreadyExistsException()

        claim = IdentityClaim(
            subject_id=account.uid,
            email=data.email,
            given_name=data.first_name,
            family_name=data.last_name,
            email_verified=bool(account.email_verified),
            phone_number=phone_number,
        )
        result = await self._reconcile(claim, "password")
        if not result.created:
            raise AlreadyExistsException()
        return result

    async def _account_for_email(self, email: str) -> Any:
        try:
            account = await self.firebase.get_user_by_email(email)
        except FirebaseError as e:
            logger.error("account_lookup_failed", error=str(e))
            raise StoreUnavailableException("Could not create account") from e
        logger.info("sign_up_resumed_for_existing_account", uid=account.uid)
        return account

    async def probe_email(self, email: str) -> str:
        """
        Return the uid of the account registered under email.

        Raises:
            NotFoundException: If no account uses the email
            StoreUnavailableException: If the provider fails
        """
        try:
            account = await self.firebase.get_user_by_email(email)
        except auth.UserNotFoundError as e:
            raise NotFoundException("User not found") from e
        except FirebaseError as e:
            logger.error("email_probe_failed", error=str(e))
            raise StoreUnavailableException("Error checking user existence") from e
        return account.uid

    async def reconcile_google(self, id_token: str) -> ReconcileResult:
        """Verify a Google-issued token and get or create its record."""
        claim = await self.verifier.verify(id_token)
        return await self._reconcile(claim, "google")

    async def sign_up_with_google(self, id_token: str) -> ReconcileResult:
        """
        Register a Google identity that must not be known yet.

        Raises:
            MissingFieldsException: If the token carries no email
            AlreadyExistsException: If a record already existed
        """
        claim = await self.verifier.verify(id_token)
        if not claim.email:
            raise MissingFieldsException("No email provided by Google")

        result = await self._reconcile(claim, "google")
        if not result.created:
            raise AlreadyExistsException()
        return result

    async def sign_in_with_google(self, id_token: str) -> str:
        """
        Confirm a Google identity already has a record. Never creates one.

        Raises:
            NotFoundException: If there is no record for the subject
        """
        claim = await self.verifier.verify(id_token)
        if not claim.subject_id or not await self.users.user_exists(claim.subject_id):
            raise NotFoundException("User not found in database")
        return claim.subject_id

    async def establish_session(
        self, id_token: str, provider: AuthProvider | None = None
    ) -> tuple[ReconcileResult, SessionCredential]:
        """
        Verify, reconcile, then mint a session credential.

        If issuance fails after reconciliation the record stays; the next
        sign-in retries issuance against it.

        Args:
            id_token: Firebase ID token
            provider: Provider to record; defaults to the token's sign-in method
        """
        claim = await self.verifier.verify(id_token)
        result = await self._reconcile(claim, provider or claim.provider)
        credential = await self.sessions.issue_session(id_token)
        logger.info("session_established", uid=result.uid, created=result.created)
        return result, credential
