"""Limiter configuration using Pydantic Settings.

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


# Determine which environment to load (default: production)
APP_ENV = os.getenv("APP_ENV", "production")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.production")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (deployments may inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


# Failed-login allowance per environment; development is looser for manual testing
LOGIN_FAILED_MAX_ATTEMPTS_BY_ENV = {
    "development": 10,
}
DEFAULT_LOGIN_FAILED_MAX_ATTEMPTS = 3


def _default_login_failed_max_attempts() -> int:
    return LOGIN_FAILED_MAX_ATTEMPTS_BY_ENV.get(APP_ENV, DEFAULT_LOGIN_FAILED_MAX_ATTEMPTS)


def _build_limiter_settings() -> "LimiterSettings":
    """Build limiter settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat fields as constructor
    arguments, which is not how BaseSettings is intended to be used.
    """

    return LimiterSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    """Build log settings from environment.

    See _build_limiter_settings() for rationale about the type ignore.
    """

    return LogSettings()  # type: ignore[call-arg]


class LimiterSettings(BaseSettings):
    """Rate limiter storage and policy configuration."""

    storage_backend: str = Field(
        "file",
        description="Ledger storage backend: 'memory' (per process) or 'file' (durable JSON)",
    )
    storage_dir: str = Field(
        ".abuse_limiter",
        description="Directory holding the JSON ledger file when storage_backend is 'file'",
    )
    storage_key: str = Field(
        "rate_limit_data",
        description="Fixed identifier the serialized ledger is stored under",
    )
    login_failed_max_attempts: int = Field(
        default_factory=_default_login_failed_max_attempts,
        description="Failed logins allowed per window before progressive blocking starts",
        ge=1,
    )
    clear_on_startup: bool = Field(
        True,
        description="Clear the ledger when the limiter is first built in development",
    )
    include_headers: bool = Field(
        True,
        description="Include Retry-After and X-RateLimit-* headers when throttling HTTP calls",
    )

    model_config = SettingsConfigDict(
        env_prefix="LIMITER_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field(
        "INFO",
        description="Root log level name (DEBUG, INFO, WARNING, ...)",
    )
    format: str = Field(
        "json",
        description="Log format: 'json' or 'plain'",
    )
    output: str = Field(
        "stdout",
        description="Log destination: 'stdout' or 'file'",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output is 'file'",
    )
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development (looser login limits, ledger cleared on start)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    limiter: LimiterSettings = Field(default_factory=_build_limiter_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() == "development"


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
