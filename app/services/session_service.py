"""Session cookie issuance and validation."""

import asyncio
from datetime import timedelta

from fastapi import Response
from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError
from structlog import get_logger

from app.config import settings
from app.core.exceptions import InvalidTokenException
from app.core.firebase import FirebaseClient
from app.schemas.identity import IdentityClaim, SessionCredential

logger = get_logger(__name__)


class SessionIssuer:
    """Mints and checks Firebase session cookies."""

    def __init__(self, firebase: FirebaseClient):
        """Initialize with the Firebase client."""
        self.firebase = firebase

    @staticmethod
    def default_ttl() -> timedelta:
        """Configured session lifetime."""
        return timedelta(days=settings.session_ttl_days)

    async def issue_session(self, id_token: str, ttl: timedelta | None = None) -> SessionCredential:
        """
        Exchange a verified ID token for a session credential.

        The platform re-verifies the token, so a credential is never minted
        for a token that fails verification.

        Args:
            id_token: Firebase ID token
            ttl: Session lifetime, defaults to SESSION_TTL_DAYS

        Raises:
            InvalidTokenException: If the token is rejected
        """
        expires_in = ttl or self.default_ttl()
        try:
            value = await asyncio.wait_for(
                self.firebase.create_session_cookie(id_token, expires_in),
                timeout=settings.external_call_timeout_seconds,
            )
        except (FirebaseError, ValueError, TimeoutError) as e:
            logger.warning("session_issue_failed", error=str(e))
            raise InvalidTokenException("Could not create session") from e

        return SessionCredential(value=value, expires_in=expires_in)

    async def verify_session(self, session_cookie: str | None) -> IdentityClaim:
        """
        Validate a session cookie.

        Raises:
            InvalidTokenException: If the cookie is absent, invalid or expired
        """
        if not session_cookie:
            raise InvalidTokenException("No active session")

        try:
            decoded = await asyncio.wait_for(
                self.firebase.verify_session_cookie(session_cookie),
                timeout=settings.external_call_timeout_seconds,
            )
        except auth.ExpiredSessionCookieError as e:
            raise InvalidTokenException("Session has expired") from e
        except (FirebaseError, ValueError, TimeoutError) as e:
            logger.warning("session_verification_failed", error=str(e))
            raise InvalidTokenException("Invalid session") from e

        return IdentityClaim.from_decoded_token(decoded)


def set_session_cookie(response: Response, credential: SessionCredential) -> None:
    """Attach the session cookie to a response."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value=credential.value,
        max_age=credential.max_age,
        httponly=True,
        secure=settings.is_production,
        path="/",
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    """Expire the session cookie on the client."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value="",
        max_age=0,
        httponly=True,
        secure=settings.is_production,
        path="/",
        samesite="lax",
    )
