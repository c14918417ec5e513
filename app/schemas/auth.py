"""Authentication request and response schemas."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints
from pydantic.alias_generators import to_camel

RequiredStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CamelModel(BaseModel):
    """Base schema accepting and emitting camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PasswordSignUpRequest(CamelModel):
    """Email/password sign-up request."""

    email: EmailStr
    password: RequiredStr
    first_name: RequiredStr
    last_name: RequiredStr
    phone_number: RequiredStr = Field(..., description="Local or international phone number")


class EmailProbeRequest(CamelModel):
    """Existence probe run before the client signs in with a password."""

    email: EmailStr


class IdTokenRequest(CamelModel):
    """Firebase ID token issued to the client after sign-in."""

    id_token: RequiredStr = Field(..., description="Firebase ID token")


class AuthResponse(CamelModel):
    """Terminal response of an authentication flow."""

    success: bool = True
    uid: str | None = None
    created: bool | None = None
    message: str


class EmailProbeResponse(CamelModel):
    """Result of an email existence probe."""

    exists: bool
    uid: str | None = None


class SessionResponse(CamelModel):
    """Result of a session establishment or lookup."""

    success: bool = True
    uid: str | None = None
    created: bool | None = None
    expires_in: int | None = Field(default=None, description="Session lifetime in seconds")


class LogoutResponse(CamelModel):
    """Logout acknowledgement."""

    success: bool = True
    message: str = "Logged out successfully"
