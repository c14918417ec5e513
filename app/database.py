"""Database engine construction for the SQL user store."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from app.config import Settings


def async_database_url(database_url: str) -> str:
    """Convert a sync PostgreSQL URL to its asyncpg form."""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


def create_database_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine used by the SQL user store.

    Args:
        settings: Application settings with DATABASE_URL set

    Returns:
        Async engine with connection pooling
    """
    if not settings.database_url:
        raise RuntimeError("DATABASE_URL is required when USER_STORE_BACKEND=sql")

    url = async_database_url(settings.database_url)
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.debug)

    return create_async_engine(
        url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        pool_recycle=3600,
        pool_timeout=settings.external_call_timeout_seconds,
        connect_args={
            "server_settings": {
                "application_name": settings.app_name,
            },
        },
    )


async def check_database_connection(engine: AsyncEngine) -> bool:
    """Check if database connection is healthy."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
