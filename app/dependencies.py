"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request

from app.config import settings
from app.core.exceptions import InvalidTokenException, StoreUnavailableException
from app.core.firebase import FirebaseClient
from app.core.redis_client import CacheManager, RateLimiter
from app.services.auth_service import AuthService
from app.services.identity_reconciler import IdentityReconciler
from app.services.session_service import SessionIssuer
from app.services.token_verifier import TokenVerifier
from app.services.user_service import UserService
from app.services.user_store import UserStore


def get_optional_firebase_client(request: Request) -> FirebaseClient | None:
    """Firebase client created at startup, if initialization succeeded."""
    return getattr(request.app.state, "firebase", None)


def get_firebase_client(
    firebase: Annotated[FirebaseClient | None, Depends(get_optional_firebase_client)],
) -> FirebaseClient:
    """Firebase client, required."""
    if firebase is None:
        raise StoreUnavailableException("Identity platform not initialized")
    return firebase


def get_user_store(request: Request) -> UserStore:
    """User store created at startup."""
    store = getattr(request.app.state, "user_store", None)
    if store is None:
        raise StoreUnavailableException("User store not initialized")
    return store


def get_cache_manager(request: Request) -> CacheManager | None:
    """Profile cache, when Redis is configured."""
    redis_client = getattr(request.app.state, "redis", None)
    return CacheManager(redis_client) if redis_client is not None else None


def get_rate_limiter(request: Request) -> RateLimiter | None:
    """Rate limiter, when Redis is configured."""
    redis_client = getattr(request.app.state, "redis", None)
    return RateLimiter(redis_client) if redis_client is not None else None


FirebaseDep = Annotated[FirebaseClient, Depends(get_firebase_client)]
UserStoreDep = Annotated[UserStore, Depends(get_user_store)]
CacheManagerDep = Annotated[CacheManager | None, Depends(get_cache_manager)]
RateLimiterDep = Annotated[RateLimiter | None, Depends(get_rate_limiter)]


def get_token_verifier(firebase: FirebaseDep) -> TokenVerifier:
    return TokenVerifier(firebase)


def get_identity_reconciler(store: UserStoreDep) -> IdentityReconciler:
    return IdentityReconciler(store)


def get_session_issuer(firebase: FirebaseDep) -> SessionIssuer:
    return SessionIssuer(firebase)


def get_user_service(
    store: UserStoreDep,
    cache_manager: CacheManagerDep,
    firebase: Annotated[FirebaseClient | None, Depends(get_optional_firebase_client)],
) -> UserService:
    # Wishlist and profile reads work without the identity platform
    return UserService(store, cache_manager, firebase)


ReconcilerDep = Annotated[IdentityReconciler, Depends(get_identity_reconciler)]
SessionIssuerDep = Annotated[SessionIssuer, Depends(get_session_issuer)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]


def get_auth_service(
    firebase: FirebaseDep,
    verifier: Annotated[TokenVerifier, Depends(get_token_verifier)],
    reconciler: ReconcilerDep,
    sessions: SessionIssuerDep,
    users: UserServiceDep,
) -> AuthService:
    return AuthService(firebase, verifier, reconciler, sessions, users)


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


async def get_current_uid(request: Request, sessions: SessionIssuerDep) -> str:
    """
    Resolve the caller from the session cookie.

    Raises:
        InvalidTokenException: If there is no valid session
    """
    claim = await sessions.verify_session(request.cookies.get(settings.session_cookie_name))
    if not claim.subject_id:
        raise InvalidTokenException("Invalid session")
    return claim.subject_id


CurrentUid = Annotated[str, Depends(get_current_uid)]
