"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.router import api_router
from app.config import settings
from app.core.exceptions import AppException
from app.core.firebase import FirebaseClient
from app.core.redis_client import check_redis_connection, create_redis_client
from app.middleware.error_handler import (
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.middleware.logging import LoggingMiddleware, configure_logging
from app.services.user_store import build_user_store

# Configure logging
configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Constructs the platform clients once and tears them down on shutdown.
    Request handlers reach them through app.state via dependencies.
    """
    logger.info("application_startup", environment=settings.environment)

    app.state.firebase = None
    app.state.user_store = None
    app.state.redis = None

    try:
        app.state.firebase = FirebaseClient.initialize(
            settings.firebase_credentials_path,
            settings.firebase_config_json,
            settings.firebase_project_id,
        )
        logger.info("firebase_initialized")
    except Exception as e:
        logger.warning(
            "firebase_initialization_failed",
            error=str(e),
            note="Token verification will not work. Set FIREBASE_CREDENTIALS_PATH env var.",
        )

    try:
        app.state.user_store = build_user_store(settings, app.state.firebase)
        logger.info("user_store_initialized", backend=settings.user_store_backend)
    except Exception as e:
        logger.error("user_store_initialization_failed", error=str(e))

    if settings.redis_host:
        app.state.redis = create_redis_client(settings)
        if check_redis_connection(app.state.redis):
            logger.info("redis_connected")
        else:
            logger.error("redis_connection_failed", host=settings.redis_host)

    yield

    logger.info("application_shutdown")

    if app.state.user_store is not None:
        await app.state.user_store.close()
        logger.info("user_store_closed")

    if app.state.redis is not None:
        app.state.redis.close()
        logger.info("redis_connection_closed")

    if app.state.firebase is not None:
        app.state.firebase.close()
        logger.info("firebase_app_deleted")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Identity, session and wishlist API for the marketplace",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Session cookies need credentialed CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LoggingMiddleware)

# Add exception handlers
app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(Exception, general_exception_handler)  # type: ignore[arg-type]

# Include API router
app.include_router(api_router, prefix=settings.api_v1_prefix)

# Setup Prometheus instrumentation
Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/docs", "/redoc", "/openapi.json"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
