"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_store_settings() -> "StoreSettings":
    """Build counter store settings from environment."""

    return StoreSettings()


def _build_limiter_settings() -> "LimiterSettings":
    """Build limiter settings from environment."""

    return LimiterSettings()


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()


class StoreSettings(BaseSettings):
    """Shared counter store configuration.

    The store is the only network dependency of the limiters. Its client
    timeouts bound how long a single admission decision can block.
    """

    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Counter store backend: 'redis' (shared) or 'memory' (single process)",
    )
    url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL",
    )
    socket_timeout_seconds: float = Field(
        0.5,
        description="Per-command socket timeout; slower replies count as store unavailable",
        gt=0,
    )
    connect_timeout_seconds: float = Field(
        0.5,
        description="Connection establishment timeout",
        gt=0,
    )
    key_prefix: str = Field(
        "ratelimitx",
        description="Namespace prepended to every counter key",
        min_length=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class LimiterSettings(BaseSettings):
    """Admission decision configuration (fallback policy and HTTP guard)."""

    max_cas_retries: int = Field(
        5,
        description="Extra compare-and-swap attempts before a rate decision degrades",
        ge=0,
    )
    fallback_enabled: bool = Field(
        False,
        description="Fail open through a process-local token bucket when the store is down",
    )
    fallback_rate_per_second: float = Field(
        1.0,
        description="Refill rate of the local fallback bucket (events per second)",
        gt=0,
    )
    fallback_burst: int = Field(
        1,
        description="Capacity of the local fallback bucket",
        ge=1,
    )
    fallback_scope: Literal["identifier", "global"] = Field(
        "identifier",
        description="One fallback bucket per identifier, or one shared by all identifiers",
    )
    fallback_max_entries: int = Field(
        10000,
        description="Maximum number of local fallback buckets kept in memory",
        ge=1,
    )

    enabled: bool = Field(
        True,
        description="Enable the fixed-window guard on the HTTP API",
    )
    requests: int = Field(
        60,
        description="Maximum number of API requests per window (per API key or IP)",
        ge=1,
    )
    window_seconds: int = Field(
        60,
        description="HTTP guard window size in seconds",
        ge=1,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    admin_api_keys: str | None = Field(
        None,
        description="Comma-separated keys accepted in X-Admin-Key for reset endpoints",
    )

    model_config = SettingsConfigDict(
        env_prefix="LIMITER_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and echo request correlation ids",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    store: StoreSettings = Field(default_factory=_build_store_settings)
    limiter: LimiterSettings = Field(default_factory=_build_limiter_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
