"""Identity claim and reconciliation schemas."""

from datetime import timedelta
from typing import Any, Literal

from pydantic import BaseModel

AuthProvider = Literal["password", "google"]


class IdentityClaim(BaseModel):
    """Verified attributes of an authenticated principal. Never persisted."""

    subject_id: str | None = None
    email: str | None = None
    display_name: str | None = None
    # Explicit name parts take precedence over splitting display_name
    given_name: str | None = None
    family_name: str | None = None
    email_verified: bool = False
    phone_number: str | None = None
    avatar_url: str | None = None
    sign_in_provider: str | None = None

    @classmethod
    def from_decoded_token(cls, decoded: dict[str, Any]) -> "IdentityClaim":
        """Build a claim from a decoded Firebase ID token or session cookie."""
        firebase_info = decoded.get("firebase") or {}
        return cls(
            subject_id=decoded.get("uid") or decoded.get("sub"),
            email=decoded.get("email"),
            display_name=decoded.get("name"),
            email_verified=bool(decoded.get("email_verified", False)),
            phone_number=decoded.get("phone_number"),
            avatar_url=decoded.get("picture"),
            sign_in_provider=firebase_info.get("sign_in_provider"),
        )

    @property
    def provider(self) -> AuthProvider:
        """Local provider label for the sign-in method that produced the token."""
        return "google" if self.sign_in_provider == "google.com" else "password"


class ReconcileResult(BaseModel):
    """Outcome of reconciling a claim against the user store."""

    uid: str
    created: bool
    # True when an existing record had a field corrected
    updated: bool = False


class SessionCredential(BaseModel):
    """Opaque, time-bounded session cookie value."""

    value: str
    expires_in: timedelta

    @property
    def max_age(self) -> int:
        """Cookie max-age in seconds."""
        return int(self.expires_in.total_seconds())
