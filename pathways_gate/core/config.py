"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

All values are read once at process start; there is no hot-reload.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field
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


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field(
        "json",
        description="Log format: 'json' (structured) or 'plain'",
    )
    output: str = Field("stdout", description="Log destination: 'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        0,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(3, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_prefix: str = Field(
        "/api",
        description="Prefix under which all JSON endpoints are mounted",
    )
    api_keys: str | None = Field(
        None,
        description=(
            "Comma-separated API key assignments: 'key=user_id:role:tier'. "
            "Role and tier are optional."
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class PolicyOverride(BaseModel):
    """Partial override of a built-in rate limit policy."""

    window_seconds: int | None = Field(None, ge=1)
    max_requests: int | None = Field(None, ge=1)
    message: str | None = None


class RateLimitSettings(BaseSettings):
    """Admission control configuration."""

    enabled: bool = Field(True, description="Enable request admission control")
    store: str = Field(
        "memory",
        description="Counter store backend: 'memory' (per-process) or 'redis' (shared)",
        pattern="^(memory|redis)$",
    )
    multiplier: float = Field(
        1.0,
        description="Factor applied to every policy's max_requests (e.g. 1000 in tests)",
        gt=0,
    )
    overrides: dict[str, PolicyOverride] = Field(
        default_factory=dict,
        description="Per-policy overrides keyed by policy name (JSON in the environment)",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers",
    )
    trust_proxy: bool = Field(
        True,
        description="Derive the client address from X-Forwarded-For / X-Real-IP",
    )
    exempt_paths: list[str] = Field(
        default_factory=lambda: ["/health", "/ready", "/metrics"],
        description="Paths never subject to admission control",
    )
    exempt_ips: list[str] = Field(
        default_factory=lambda: ["127.0.0.1", "::1"],
        description="Client addresses never subject to admission control",
    )
    sweep_interval_seconds: int = Field(
        300,
        description="Minimum seconds between sweeps of idle in-process windows",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Shared store connection settings."""

    url: str = Field("redis://localhost:6379/0", description="Redis connection URL")
    connect_timeout_ms: int = Field(
        500,
        description="Socket connect timeout; keeps a dead Redis from stalling requests",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class CacheRule(BaseModel):
    """Caching rule for one resource class (first path segment)."""

    ttl_seconds: int = Field(..., ge=1)
    public_only: bool = False


def _default_cache_rules() -> dict[str, CacheRule]:
    return {
        "jobs": CacheRule(ttl_seconds=120),
        "courses": CacheRule(ttl_seconds=600),
        "stories": CacheRule(ttl_seconds=300),
        "featured": CacheRule(ttl_seconds=600, public_only=True),
    }


class CacheSettings(BaseSettings):
    """Response memoizer configuration."""

    enabled: bool = Field(True, description="Enable GET response caching")
    max_entries: int = Field(
        1000,
        description="Entry ceiling before the oldest-created entries are evicted",
        ge=1,
    )
    evict_fraction: float = Field(
        0.2,
        description="Share of entries removed (oldest created first) when over the ceiling",
        gt=0,
        le=1,
    )
    rules: dict[str, CacheRule] = Field(
        default_factory=_default_cache_rules,
        description="Cacheable resource classes and their TTLs (JSON in the environment)",
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


def _build_log_settings() -> LogSettings:
    """Build log settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return LogSettings()  # type: ignore[call-arg]


def _build_app_settings() -> AppSettings:
    return AppSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> RateLimitSettings:
    return RateLimitSettings()  # type: ignore[call-arg]


def _build_redis_settings() -> RedisSettings:
    return RedisSettings()  # type: ignore[call-arg]


def _build_cache_settings() -> CacheSettings:
    return CacheSettings()  # type: ignore[call-arg]


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=_build_log_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    cache: CacheSettings = Field(default_factory=_build_cache_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
