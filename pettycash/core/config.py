from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """
    # Platform (PostgREST + GoTrue) settings.
    SUPABASE_URL: str
    SUPABASE_ANON_KEY: str
    SUPABASE_SERVICE_ROLE_KEY: str = ""

    # JWT settings. When SUPABASE_JWT_SECRET is empty, tokens are checked
    # against the platform's /auth/v1/user endpoint instead.
    SUPABASE_JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"

    # Session cookie settings.
    SECRET_KEY: str
    SESSION_COOKIE: str = "pettycash_session"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 24 * 7

    # Outbound HTTP.
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    # App settings.
    APP_NAME: str = "Petty Cash Service"
    DEBUG: bool = False
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Logging.
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    """
    return Settings()
