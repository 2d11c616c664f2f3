"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, model_validator
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

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment."""

    return AppSettings()


def _build_messaging_settings() -> "MessagingSettings":
    return MessagingSettings()


def _build_antiban_settings() -> "AntiBanSettings":
    return AntiBanSettings()


def _build_log_settings() -> "LogSettings":
    return LogSettings()


class AppSettings(BaseSettings):
    """HTTP server, security and upload configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    version: str = Field(
        "1.0.0",
        description="API version reported by health and root endpoints",
    )
    host: str = Field("0.0.0.0", description="Bind address for uvicorn")
    port: int = Field(3001, description="Bind port for uvicorn")
    api_base_url: str = Field(
        "http://localhost:3001/api",
        description="Public base URL of the API (used in docs links)",
    )
    cors_origins: str = Field(
        "http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )
    max_upload_size_mb: int = Field(
        10,
        description="Maximum media upload size in megabytes",
    )
    max_request_size_mb: int = Field(
        50,
        description="Maximum request body size (Content-Length) in megabytes",
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
        description="Enable request rate limiting per API key (or client IP)",
    )
    rate_limit_requests: int = Field(
        100,
        description="Maximum number of requests allowed per window",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        900,
        description="Request rate limit window size in seconds",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class MessagingSettings(BaseSettings):
    """Messaging client (WhatsApp Web bridge) and session registry configuration."""

    provider: str = Field(
        "bridge",
        description="Messaging client provider name",
    )
    bridge_url: str = Field(
        "http://localhost:3100",
        description="Base URL of the WhatsApp Web automation bridge",
    )
    bridge_token: str | None = Field(
        None,
        description="Bearer token sent to the bridge, if it requires one",
    )
    timeout_seconds: float = Field(
        30.0,
        description="Timeout for bridge requests in seconds",
    )
    poll_interval_seconds: float = Field(
        2.0,
        description="How often the bridge state is polled for lifecycle events",
        gt=0,
    )
    session_path: str = Field(
        "./sessions",
        description="Directory holding per-session authentication data",
    )
    max_sessions: int = Field(
        10,
        description="Maximum number of concurrently registered sessions",
        ge=1,
    )
    print_qr_in_terminal: bool = Field(
        True,
        description="Render incoming QR codes as ASCII art on stdout",
    )

    model_config = SettingsConfigDict(
        env_prefix="WA_",
        case_sensitive=False,
    )


class AntiBanSettings(BaseSettings):
    """Outbound message pacing used to avoid upstream abuse detection."""

    enabled: bool = Field(
        False,
        description="Enable send-rate pacing",
    )
    message_delay_ms: int = Field(
        30000,
        description="Minimum delay between two messages of the same session",
        ge=0,
    )
    max_messages_per_hour: int = Field(
        50,
        description="Global hourly message cap (sessions get half of it each)",
        ge=1,
    )
    random_delay_min_ms: int = Field(1000, ge=0)
    random_delay_max_ms: int = Field(5000, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="ANTIBAN_",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def check_random_delay_bounds(self) -> "AntiBanSettings":
        if self.random_delay_min_ms > self.random_delay_max_ms:
            raise ValueError(
                "ANTIBAN_RANDOM_DELAY_MIN_MS must not exceed ANTIBAN_RANDOM_DELAY_MAX_MS"
            )
        return self


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    output: str = Field("stdout", description="'stdout' or 'file'")
    file_path: str | None = Field("logs/app.log", description="Log file when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate log file at this size (0 disables)")
    backup_count: int = Field(5, description="Number of rotated files kept")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    messaging: MessagingSettings = Field(default_factory=_build_messaging_settings)
    antiban: AntiBanSettings = Field(default_factory=_build_antiban_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


# Global settings instance - composed from domain-specific settings
settings = Settings()
