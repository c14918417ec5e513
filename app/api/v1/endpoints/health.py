"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from pydantic import BaseModel

from app.config import settings
from app.core.redis_client import check_redis_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(BaseModel):
    """Detailed health check response model."""

    status: str
    version: str
    environment: str
    identity_platform: str
    user_store: str
    redis: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
)
async def detailed_health_check(request: Request) -> DetailedHealthResponse:
    """
    Detailed health check with dependency status.

    Redis is optional; it reports "disabled" when not configured and does
    not degrade overall status.
    """
    state = request.app.state
    firebase_ok = getattr(state, "firebase", None) is not None

    store = getattr(state, "user_store", None)
    store_ok = store is not None and await store.ping()

    redis_client = getattr(state, "redis", None)
    if redis_client is None:
        redis_status = "disabled"
    else:
        redis_status = "healthy" if check_redis_connection(redis_client) else "unhealthy"

    healthy = firebase_ok and store_ok and redis_status != "unhealthy"
    return DetailedHealthResponse(
        status="healthy" if healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        identity_platform="healthy" if firebase_ok else "unhealthy",
        user_store="healthy" if store_ok else "unhealthy",
        redis=redis_status,
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """Simple ping endpoint."""
    return {"message": "pong"}
