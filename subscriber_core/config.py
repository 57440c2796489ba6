"""
Application configuration using Pydantic Settings.

Values come from environment variables prefixed with ``SUBSCRIBERS_`` (or a
``.env`` file next to the working directory), e.g.::

    SUBSCRIBERS_STORE_BACKEND=remote
    SUBSCRIBERS_REMOTE_URL=https://example.supabase.co
    SUBSCRIBERS_REMOTE_API_KEY=...

List values (``SERVICE_PROVIDERS``, ``CORS_ORIGINS``) are given as JSON arrays.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SUBSCRIBERS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # API / UI
    APP_TITLE: str = "Cable Subscriber Management"
    APP_VERSION: str = "0.1.0"
    CURRENCY_SYMBOL: str = "₹"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Record store
    STORE_BACKEND: Literal["local", "remote"] = "local"
    LOCAL_STORE_PATH: str = "subscribers.json"
    LOCAL_STORE_KEY: str = "subscribers"
    REMOTE_URL: str = ""
    REMOTE_API_KEY: str = ""
    REMOTE_TABLE: str = "subscribers"
    REMOTE_TIMEOUT_SECONDS: Optional[float] = 30.0
    EDITOR_NAME: str = "admin"

    # Validation
    SERVICE_PROVIDERS: List[str] = ["Asianet", "KCCL", "BSNL", "KFoN"]
    REQUIRE_ADDRESS: bool = True
    REQUIRE_CONNECTION_DATE: bool = True

    # Bulk import
    IMPORT_DEFAULT_PROVIDER: str = ""
    MAX_IMPORT_FILE_SIZE_MB: int = 10
    ALLOWED_IMPORT_EXTENSIONS: List[str] = [".xlsx", ".xlsm", ".csv"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()
