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


def _build_app_settings() -> "AppSettings":
    return AppSettings()


def _build_rate_limit_settings() -> "RateLimitSettings":
    return RateLimitSettings()


def _build_log_settings() -> "LogSettings":
    return LogSettings()


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    title: str = Field(
        "RecCollection API",
        description="Title shown in the OpenAPI document",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Rate limiter installations and sweeper configuration.

    ``default`` is the base policy, ``read`` relaxes it for listing endpoints
    by ``read_multiplier`` and ``auth`` guards the authentication entry point.
    """

    enabled: bool = Field(
        True,
        description="Enable per-route rate limiting dependencies",
    )
    global_enabled: bool = Field(
        False,
        description="Apply the default policy to every non-health route via middleware",
    )
    window_ms: int = Field(
        60_000,
        description="Default policy window length in milliseconds",
        ge=1,
    )
    max_requests: int = Field(
        10,
        description="Default policy maximum admitted requests per window",
        ge=1,
    )
    message: str = Field(
        "Too many requests, please try again later",
        description="Body returned when the default policy rejects a request",
        min_length=1,
    )
    status_code: int = Field(
        429,
        description="HTTP status used for rejections",
        ge=400,
        le=599,
    )
    read_multiplier: int = Field(
        3,
        description="Multiplier applied to max_requests for the read policy",
        ge=1,
    )
    auth_window_ms: int = Field(
        15 * 60 * 1000,
        description="Auth policy window length in milliseconds",
        ge=1,
    )
    auth_max_requests: int = Field(
        100,
        description="Auth policy maximum admitted requests per window",
        ge=1,
    )
    auth_message: str = Field(
        "Too many authentication attempts, please try again later",
        description="Body returned when the auth policy rejects a request",
        min_length=1,
    )
    sweep_interval_seconds: float = Field(
        60.0,
        description="Interval between expired-record sweeps",
        gt=0,
    )
    include_retry_after: bool = Field(
        True,
        description="Populate Retry-After on rejected responses",
    )
    trust_proxy_headers: bool = Field(
        True,
        description="Derive the client address from X-Forwarded-For / X-Real-IP",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
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
    Raises validation errors on startup if settings are out of range.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
