"""Authentication endpoints."""

from fastapi import APIRouter, Request, Response, status

from app.config import settings
from app.core.exceptions import RateLimitException
from app.dependencies import AuthServiceDep, RateLimiterDep
from app.schemas.auth import (
    AuthResponse,
    EmailProbeRequest,
    EmailProbeResponse,
    IdTokenRequest,
    PasswordSignUpRequest,
)

router = APIRouter()


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Email/password sign-up",
)
async def sign_up(request: PasswordSignUpRequest, auth_service: AuthServiceDep) -> AuthResponse:
    """
    Create an email/password account and its user record.

    The phone number may be submitted in local format; it is stored in
    E.164.
    """
    result = await auth_service.sign_up_with_password(request)
    return AuthResponse(uid=result.uid, created=True, message="User created successfully")


@router.post(
    "/signin",
    response_model=EmailProbeResponse,
    status_code=status.HTTP_200_OK,
    summary="Check that an email is registered",
)
async def sign_in(
    request: EmailProbeRequest,
    http_request: Request,
    auth_service: AuthServiceDep,
    rate_limiter: RateLimiterDep,
) -> EmailProbeResponse:
    """
    Existence probe run before the client checks the password itself.

    Responds 404 when no account uses the email.
    """
    if rate_limiter is not None:
        client = http_request.client.host if http_request.client else "unknown"
        if not rate_limiter.check_rate_limit(
            f"rate:signin:{client}", settings.rate_limit_per_minute
        ):
            raise RateLimitException()

    uid = await auth_service.probe_email(request.email)
    return EmailProbeResponse(exists=True, uid=uid)


@router.post(
    "/google",
    response_model=AuthResponse,
    responses={201: {"model": AuthResponse}},
    summary="Get or create the record for a Google identity",
)
async def google_reconcile(
    request: IdTokenRequest, response: Response, auth_service: AuthServiceDep
) -> AuthResponse:
    """Idempotent: 201 when the record was created, 200 when it existed."""
    result = await auth_service.reconcile_google(request.id_token)
    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return AuthResponse(
        uid=result.uid,
        created=result.created,
        message="User created" if result.created else "User already exists",
    )


@router.post(
    "/google/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Google sign-up",
)
async def google_sign_up(request: IdTokenRequest, auth_service: AuthServiceDep) -> AuthResponse:
    """Register a new Google identity; 409 if it is already registered."""
    result = await auth_service.sign_up_with_google(request.id_token)
    return AuthResponse(uid=result.uid, created=True, message="User created successfully")


@router.post(
    "/google/signin",
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
    summary="Google sign-in",
)
async def google_sign_in(request: IdTokenRequest, auth_service: AuthServiceDep) -> AuthResponse:
    """Confirm a Google identity is registered; 404 if it is not."""
    uid = await auth_service.sign_in_with_google(request.id_token)
    return AuthResponse(uid=uid, created=False, message="User verified and exists")
