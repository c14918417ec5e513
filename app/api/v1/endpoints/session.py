"""Session cookie endpoints."""

from fastapi import APIRouter, Response, status

from app.dependencies import AuthServiceDep, CurrentUid
from app.schemas.auth import IdTokenRequest, LogoutResponse, SessionResponse
from app.schemas.identity import AuthProvider
from app.services.auth_service import AuthService
from app.services.session_service import clear_session_cookie, set_session_cookie

router = APIRouter()


async def _open_session(
    request: IdTokenRequest,
    response: Response,
    auth_service: AuthService,
    provider: AuthProvider | None,
) -> SessionResponse:
    result, credential = await auth_service.establish_session(request.id_token, provider)
    set_session_cookie(response, credential)
    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return SessionResponse(uid=result.uid, created=result.created, expires_in=credential.max_age)


@router.post(
    "/session",
    response_model=SessionResponse,
    responses={201: {"model": SessionResponse}},
    summary="Establish a session from any sign-in method",
)
async def create_session(
    request: IdTokenRequest, response: Response, auth_service: AuthServiceDep
) -> SessionResponse:
    """Reconcile using the provider reported by the token, then set the session cookie."""
    return await _open_session(request, response, auth_service, None)


@router.post(
    "/session/google",
    response_model=SessionResponse,
    responses={201: {"model": SessionResponse}},
    summary="Establish a session after Google sign-in",
)
async def create_google_session(
    request: IdTokenRequest, response: Response, auth_service: AuthServiceDep
) -> SessionResponse:
    """Reconcile as a Google identity, then set the session cookie."""
    return await _open_session(request, response, auth_service, "google")


@router.get(
    "/session",
    response_model=SessionResponse,
    status_code=status.HTTP_200_OK,
    summary="Current session",
)
async def get_session(uid: CurrentUid) -> SessionResponse:
    """Validate the session cookie; 401 when there is no valid session."""
    return SessionResponse(uid=uid)


@router.post(
    "/logout",
    response_model=LogoutResponse,
    status_code=status.HTTP_200_OK,
    summary="Clear the session cookie",
)
async def logout(response: Response) -> LogoutResponse:
    """Always clears the cookie, whether or not a session existed."""
    clear_session_cookie(response)
    return LogoutResponse()
