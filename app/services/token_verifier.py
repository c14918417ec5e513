"""Identity token verification."""

import asyncio

from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError
from structlog import get_logger

from app.config import settings
from app.core.exceptions import InvalidTokenException
from app.core.firebase import FirebaseClient
from app.schemas.identity import IdentityClaim

logger = get_logger(__name__)


class TokenVerifier:
    """Turns Firebase ID tokens into verified identity claims."""

    def __init__(self, firebase: FirebaseClient):
        """Initialize with the Firebase client."""
        self.firebase = firebase

    async def verify(self, id_token: str) -> IdentityClaim:
        """
        Verify an ID token and extract the identity claim.

        Invalid tokens are never transiently invalid, so nothing here is
        retried.

        Args:
            id_token: Firebase ID token from the client

        Returns:
            Verified identity claim

        Raises:
            InvalidTokenException: If the token is malformed, expired, revoked
                or cannot be verified in time
        """
        if not id_token:
            raise InvalidTokenException("Missing ID token")

        try:
            decoded = await asyncio.wait_for(
                self.firebase.verify_id_token(id_token),
                timeout=settings.external_call_timeout_seconds,
            )
        except auth.ExpiredIdTokenError as e:
            logger.warning("token_verification_failed", reason="expired")
            raise InvalidTokenException("ID token has expired") from e
        except (auth.InvalidIdTokenError, ValueError) as e:
            logger.warning("token_verification_failed", reason="invalid", error=str(e))
            raise InvalidTokenException("Invalid ID token") from e
        except (FirebaseError, TimeoutError) as e:
            logger.error("token_verification_failed", reason="unverifiable", error=str(e))
            raise InvalidTokenException("ID token could not be verified") from e

        claim = IdentityClaim.from_decoded_token(decoded)
        logger.info("token_verified", uid=claim.subject_id, provider=claim.sign_in_provider)
        return claim
