"""Configuration management for the Shortly link service.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram - get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 - Import**::
    from shortly.config import get_settings

**Step 2 - Get settings**::
    settings = get_settings()
    length = settings.SHORT_ID_LENGTH

Key Behaviours
===============
- Settings are cached after first access.
- Environment variables (or a ``.env`` file) override defaults.
- ``RESERVED_HOST_PREFIXES`` and ``CORS_ORIGINS`` accept JSON lists.

Classes:
    Settings:  Pydantic model for all configuration values.
"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "shortly"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Public base URL used to compose short links. Empty means "derive from request".
    BASE_URL: str = ""

    # PostgreSQL
    DATABASE_URL: str = "postgresql+asyncpg://shortly:shortly@db:5432/shortly"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Short identifier allocation
    SHORT_ID_LENGTH: int = 6
    SHORT_ID_MAX_ATTEMPTS: int = 50

    # Custom domains
    API_DOMAIN_PREFIX: str = "api"
    RESERVED_HOST_PREFIXES: list[str] = ["www", "app"]

    # Auth (token verification only; issuance lives in the account service)
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_DAYS: int = 30
    AUTH_COOKIE_NAME: str = "token"

    # QR codes
    QR_CODE_SCALE: int = 10
    QR_CODE_BORDER: int = 2

    CORS_ORIGINS: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
