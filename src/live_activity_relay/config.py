"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Live Activity Relay, loading and validating environment variables at
startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from live_activity_relay.errors import ConfigError

DEFAULT_GATEWAY_URL = "https://api.jpush.cn/v3/push"

SUPPORTED_DATABASE_SCHEMES = (
    "mysql+aiomysql://",
    "postgresql+asyncpg://",
    "sqlite+aiosqlite://",
)


class GatewaySettings(BaseSettings):
    """Push gateway transport settings."""

    model_config = SettingsConfigDict(
        env_prefix="PUSH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str = Field(
        default=DEFAULT_GATEWAY_URL,
        alias="PUSH_GATEWAY_URL",
        description="Push gateway endpoint accepting live activity requests",
    )
    app_key: SecretStr | None = Field(
        default=None,
        alias="PUSH_APP_KEY",
        description="Gateway application key (basic auth user)",
    )
    master_secret: SecretStr | None = Field(
        default=None,
        alias="PUSH_MASTER_SECRET",
        description="Gateway master secret (basic auth password)",
    )
    timeout: float = Field(
        default=10.0,
        alias="PUSH_TIMEOUT",
        description="HTTP request timeout in seconds",
        gt=0,
    )
    apns_production: bool = Field(
        default=True,
        alias="PUSH_APNS_PRODUCTION",
        description="Deliver through the APNs production environment",
    )
    time_to_live: int = Field(
        default=86400,
        alias="PUSH_TIME_TO_LIVE",
        description="Seconds the gateway keeps an undelivered push",
        ge=0,
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate gateway URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Gateway URL must be an HTTP(S) endpoint")
        return v

    @property
    def enabled(self) -> bool:
        """Check if non-empty gateway credentials are configured."""
        return bool(
            self.app_key
            and self.master_secret
            and self.app_key.get_secret_value()
            and self.master_secret.get_secret_value()
        )

    def require_credentials(self) -> tuple[str, str]:
        """Return (app_key, master_secret) or raise ConfigError."""
        if self.app_key is None or self.master_secret is None:
            raise ConfigError(
                "Missing push gateway credentials. Set PUSH_APP_KEY and "
                "PUSH_MASTER_SECRET in your environment or .env file."
            )
        key = self.app_key.get_secret_value()
        secret = self.master_secret.get_secret_value()
        if not key or not secret:
            raise ConfigError("Push gateway credentials must not be empty")
        return key, secret


class DatabaseSettings(BaseSettings):
    """Content store connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str | None = Field(
        default=None,
        alias="DATABASE_URL",
        description="SQLAlchemy async connection string for the content store",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate database URL format."""
        if v is None:
            return v
        if not v.startswith(SUPPORTED_DATABASE_SCHEMES):
            raise ValueError(
                "DATABASE_URL must use one of: " + ", ".join(SUPPORTED_DATABASE_SCHEMES)
            )
        return v

    @property
    def enabled(self) -> bool:
        """Check if a content store is configured."""
        return self.url is not None


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from live_activity_relay.config import get_settings

        settings = get_settings()
        print(settings.gateway.url)
        print(settings.max_concurrent)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    http_host: str = Field(
        default="127.0.0.1",
        alias="HTTP_HOST",
        description="Interface the HTTP server binds to",
    )
    http_port: int = Field(
        default=11115,
        alias="HTTP_PORT",
        description="HTTP port for the relay endpoints",
        ge=1,
        le=65535,
    )
    max_concurrent: int = Field(
        default=10,
        alias="MAX_CONCURRENT",
        description="Maximum gateway requests in flight per batch",
        gt=0,
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Log gateway envelopes instead of sending them",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "gateway": {
                "url": self.gateway.url,
                "app_key": "(set)" if self.gateway.app_key else "(not set)",
                "master_secret": "(set)" if self.gateway.master_secret else "(not set)",
                "apns_production": str(self.gateway.apns_production),
            },
            "database_url": (
                self._redact_url(self.database.url) if self.database.url else "(not set)"
            ),
            "log_level": self.log_level,
            "http": f"{self.http_host}:{self.http_port}",
            "max_concurrent": str(self.max_concurrent),
            "dry_run": str(self.dry_run),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
