"""Application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="Marketplace Identity API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Firebase
    firebase_credentials_path: str | None = Field(
        default=None,
        alias="FIREBASE_CREDENTIALS_PATH",
        description="Path to Firebase service account JSON file",
    )
    firebase_config_json: str | None = Field(
        default=None,
        alias="FIREBASE_CONFIG_JSON",
        description="Raw JSON string of the Firebase service account",
    )
    firebase_project_id: str | None = Field(default=None, alias="FIREBASE_PROJECT_ID")

    # User store
    user_store_backend: Literal["firestore", "sql"] = Field(
        default="firestore", alias="USER_STORE_BACKEND"
    )
    users_collection: str = Field(default="users", alias="USERS_COLLECTION")
    database_url: str | None = Field(default=None, alias="DATABASE_URL")

    # Redis (optional: profile cache and rate limiting)
    redis_host: str | None = Field(default=None, alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_username: str = Field(default="default", alias="REDIS_USERNAME")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")
    redis_decode_responses: bool = Field(default=True, alias="REDIS_DECODE_RESPONSES")

    # Session cookie
    session_cookie_name: str = Field(default="session", alias="SESSION_COOKIE_NAME")
    # Firebase refuses session cookies longer than two weeks
    session_ttl_days: int = Field(default=5, ge=1, le=14, alias="SESSION_TTL_DAYS")

    # Phone numbers submitted in local format get this calling code
    default_country_calling_code: str = Field(
        default="233", alias="DEFAULT_COUNTRY_CALLING_CODE"
    )

    # External calls
    external_call_timeout_seconds: float = Field(
        default=10.0, alias="EXTERNAL_CALL_TIMEOUT_SECONDS"
    )
    store_max_retries: int = Field(default=2, ge=0, le=2, alias="STORE_MAX_RETRIES")
    store_retry_base_delay: float = Field(default=0.2, alias="STORE_RETRY_BASE_DELAY")

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    # Rate Limiting
    rate_limit_per_minute: int = Field(default=60, alias="RATE_LIMIT_PER_MINUTE")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
