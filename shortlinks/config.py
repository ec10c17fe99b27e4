"""Configuration management for the short-link engine.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram — get_settings()
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
**Step 1 — Import**::
    from shortlinks.config import get_settings

**Step 2 — Get settings**::
    settings = get_settings()
    db_url = settings.DATABASE_URL

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables override defaults automatically.
- BASE_URL may be given with or without a trailing slash.

Classes:
    Settings:  Pydantic model for all configuration values.
"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from shortlinks.enums import CacheBackend, TrackingFailurePolicy


class Settings(BaseSettings):
    APP_NAME: str = "shortlinks"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Rendered as BASE_URL + "/" + code
    BASE_URL: str = "http://localhost:8080"

    # PostgreSQL
    DATABASE_URL: str = "postgresql+asyncpg://shortlinks:shortlinks@db:5432/shortlinks"

    # Cache
    CACHE_BACKEND: CacheBackend = CacheBackend.REDIS
    REDIS_URL: str = "redis://redis:6379/0"
    RESOLVE_CACHE_TTL_SECONDS: int = 600
    RESOLVE_CACHE_SLIDING_SECONDS: int = 120
    DETAILS_CACHE_TTL_SECONDS: int = 30
    PROFILE_CACHE_KEY_PREFIX: str = "profile:me"

    # Alias allocation
    SHORT_CODE_LENGTH: int = 7
    ALIAS_GENERATION_ATTEMPTS: int = 10

    # QR codes are rendered by a third-party endpoint
    QR_SERVICE_URL: str = "https://api.qrserver.com/v1/create-qr-code/"
    QR_IMAGE_SIZE: str = "220x220"
    QR_FORMAT: str = "png"

    # Click tracking
    TRACKING_FAILURE_POLICY: TrackingFailurePolicy = TrackingFailurePolicy.FAIL

    # Per-operation deadline
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Kafka link-event sink
    KAFKA_ENABLED: bool = False
    KAFKA_BOOTSTRAP_SERVERS: str = "kafka:9092"
    KAFKA_LINK_EVENTS_TOPIC: str = "link_events"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
