"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

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


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class ScraperSettings(BaseSettings):
    """Price source (scraper microservice) configuration."""

    provider: str = Field(
        "http",
        description="Price source provider name (currently: http)",
    )
    base_url: str = Field(
        "http://127.0.0.1:3456",
        description="Base URL of the scraper microservice",
    )
    token: str | None = Field(
        None,
        description="Shared secret sent as X-EasyRest-Token to the scraper",
    )
    default_hotel_url: str | None = Field(
        None,
        description="Booking.com hotel URL used when the query carries none",
    )
    timeout_seconds: float = Field(
        40.0,
        description="Upper bound for a single price fetch, in seconds",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="SCRAPER_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    host: str = Field(
        "127.0.0.1",
        description="Interface the HTTP listener binds to",
    )
    port: int = Field(
        3456,
        description="Port the HTTP listener binds to",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client rate limiting on price requests",
    )
    rate_limit_requests: int = Field(
        10,
        description="Maximum number of requests allowed per window (per client)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Rate limit window size in seconds",
        ge=1,
    )
    rate_limit_grace_seconds: int = Field(
        60,
        description="How long an expired limiter entry is kept before the sweep drops it",
        ge=0,
    )
    rate_limit_sweep_interval_seconds: float = Field(
        60.0,
        description="Interval between rate limit store sweeps",
        gt=0,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    trust_proxy_headers: bool = Field(
        False,
        description="Derive the client IP from CF-Connecting-IP / X-Real-IP / X-Forwarded-For",
    )

    cache_ttl_seconds: int = Field(
        900,
        description="Time-to-live of cached successful prices",
        ge=1,
    )
    cache_max_entries: int | None = Field(
        1024,
        description="Maximum number of cached prices (None for unlimited)",
    )

    discount_percent: float = Field(
        15.0,
        description="Direct-booking discount applied to quoted Booking.com prices",
        ge=0,
        le=50,
    )

    shutdown_timeout_seconds: float = Field(
        10.0,
        description="Hard deadline for graceful shutdown before forcing exit",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if a setting is malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    scraper: ScraperSettings = Field(default_factory=ScraperSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
