"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development: SQLite via
aiosqlite, SMS in simulation mode until Twilio credentials are supplied.

Usage:
    from drillalert.core.config import settings
    print(settings.DATABASE_URL)
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "School Drill Alert"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    RELOAD: bool = True

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]
    CORS_ALLOW_ALL: bool = True  # False in production

    # ── Database ──
    DATABASE_URL: str = "sqlite+aiosqlite:///./drillalert.db"
    DATABASE_POOL_SIZE: int = 10  # ignored for SQLite
    DATABASE_MAX_OVERFLOW: int = 5
    DATABASE_ECHO: bool = False

    # ── SMS (Twilio) ──
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_FROM: Optional[str] = None
    TWILIO_API_BASE_URL: str = "https://api.twilio.com/2010-04-01"
    SMS_TIMEOUT_SECONDS: float = 15.0
    SMS_MAX_CONCURRENCY: int = 10  # parallel gateway calls per alert
    SMS_MAX_RETRIES: int = 2
    SMS_RETRY_BACKOFF_SECONDS: float = 0.5

    # ── Directory ──
    BULK_IMPORT_CONCURRENCY: int = 4
    BCRYPT_ROUNDS: int = 8
    DEFAULT_CLASS: str = "ClassA"

    # ── Realtime ──
    WS_MAX_QUEUE_SIZE: int = 100  # per-session outbound backlog

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def twilio_configured(self) -> bool:
        return bool(
            self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_FROM
        )


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
