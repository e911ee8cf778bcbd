"""Centralized configuration for Intermax.

Uses Pydantic BaseSettings with environment variable loading and validation.
All IMX_* environment variables are validated at import time.
"""

from __future__ import annotations

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger("intermax.config")

_DEV_SESSION_SECRET = "intermax-dev-session-secret-do-not-use-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = {"env_prefix": "IMX_", "case_sensitive": False, "extra": "ignore"}

    # Storage
    db_path: str = Field(default="intermax.db", description="SQLite database path")

    # Sessions
    session_secret: str = Field(
        default=_DEV_SESSION_SECRET, description="HMAC secret used to sign session tokens"
    )
    session_ttl_seconds: int = Field(
        default=7 * 24 * 3600, ge=60, description="Lifetime of an issued session token"
    )
    session_refresh_seconds: int = Field(
        default=300,
        ge=0,
        description="Re-read role and permissions when the token marker is older (0 = every request)",
    )
    session_cookie: str = Field(default="imx_session", description="Session cookie name")
    cookie_secure: bool = Field(default=False, description="Mark the session cookie Secure")

    # Accounts
    default_user_role: str = Field(
        default="SYSTEM_ENGINEER", description="Role given to self-registered users (empty = none)"
    )

    # Seeding
    seed_defaults: bool = Field(default=True, description="Sync system roles on startup")
    seed_admin_email: str | None = Field(default=None, description="Bootstrap admin email")
    seed_admin_password: str | None = Field(default=None, description="Bootstrap admin password")
    seed_admin_name: str = Field(default="Command Admin", description="Bootstrap admin name")

    # Logging
    log_format: str = Field(default="text", description="Log format: text or json")
    log_level: str = Field(default="INFO", description="Python log level")

    # Server
    host: str = Field(default="0.0.0.0", description="Server bind host")  # noqa: S104
    port: int = Field(default=8000, ge=1, le=65535, description="Server bind port")

    # CORS
    cors_origins: str = Field(default="*", description="Comma-separated CORS origins")

    # Rate limiting
    rate_limit: str = Field(
        default="100/minute",
        description="Default rate limit (e.g., 100/minute). Set to 'none' to disable.",
    )

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "json"):
            msg = f"IMX_LOG_FORMAT must be 'text' or 'json', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if not isinstance(getattr(logging, v, None), int):
            msg = f"IMX_LOG_LEVEL must be a valid Python log level, got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("session_secret")
    @classmethod
    def validate_session_secret(cls, v: str) -> str:
        if len(v) < 32:
            msg = f"IMX_SESSION_SECRET must be at least 32 characters, got {len(v)}"
            raise ValueError(msg)
        return v

    @property
    def uses_dev_secret(self) -> bool:
        return self.session_secret == _DEV_SESSION_SECRET

    @property
    def cors_origin_list(self) -> list[str]:
        """Return parsed list of CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


# Singleton, validated at import time.
settings = Settings()
