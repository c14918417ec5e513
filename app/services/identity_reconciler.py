"""Reconciliation of verified identities with local user records."""

from datetime import UTC, datetime

from structlog import get_logger

from app.core.exceptions import MalformedClaimException
from app.schemas.identity import AuthProvider, IdentityClaim, ReconcileResult
from app.schemas.users import UserRecord
from app.services.user_store import UserStore

logger = get_logger(__name__)


def split_display_name(display_name: str | None) -> tuple[str, str]:
    """Split on the first whitespace run into (first name, rest)."""
    parts = (display_name or "").strip().split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


def build_user_record(claim: IdentityClaim, provider: AuthProvider, now: datetime) -> UserRecord:
    """Map a claim onto the canonical user record shape."""
    if claim.given_name is not None or claim.family_name is not None:
        first_name, last_name = claim.given_name or "", claim.family_name or ""
    else:
        first_name, last_name = split_display_name(claim.display_name)

    return UserRecord(
        uid=claim.subject_id,
        email=claim.email,
        first_name=first_name,
        last_name=last_name,
        phone_number=claim.phone_number or "",
        photo_url=claim.avatar_url or "",
        email_verified=claim.email_verified,
        provider=provider,
        wishlist=[],
        created_at=now,
        updated_at=now,
    )


class IdentityReconciler:
    """Ensures exactly one user record exists per identity provider subject."""

    def __init__(self, store: UserStore):
        """Initialize with the user store."""
        self.store = store

    async def reconcile(self, claim: IdentityClaim, provider: AuthProvider) -> ReconcileResult:
        """
        Get or create the user record for a verified claim.

        Creation goes through the store's create-if-absent primitive, so
        concurrent calls for a new subject produce a single record and all
        of them succeed.

        Raises:
            MalformedClaimException: If the claim has no subject id
            StoreUnavailableException: If the store fails
        """
        if not claim.subject_id:
            raise MalformedClaimException()

        uid = claim.subject_id
        existing = await self.store.get(uid)

        if existing is None:
            record = build_user_record(claim, provider, datetime.now(UTC))
            existing, created = await self.store.create_if_absent(record)
            if created:
                logger.info("identity_reconciled", uid=uid, provider=provider, created=True)
                return ReconcileResult(uid=uid, created=True)

        updated = await self.sync_email_verified(existing, claim.email_verified)
        logger.info("identity_reconciled", uid=uid, provider=provider, created=False)
        return ReconcileResult(uid=uid, created=False, updated=updated)

    async def sync_email_verified(self, record: UserRecord, email_verified: bool) -> bool:
        """
        Correct emailVerified from the identity provider's state.

        Writes only when the stored value differs.

        Returns:
            True if the record was updated
        """
        if record.email_verified == email_verified:
            return False

        await self.store.update_fields(
            record.uid,
            {"emailVerified": email_verified, "updatedAt": datetime.now(UTC)},
        )
        logger.info("email_verified_corrected", uid=record.uid, email_verified=email_verified)
        return True
