"""Configuration management service with Pydantic Settings.

This module provides centralized process settings for the Alert Router,
loading and validating environment variables at startup. Routing rules
(contacts, subscriptions, handler groups, dedup windows) are not settings;
they live in the alerting configuration document whose location is given
by ``ALERTING_CONFIG_PATH``.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AlertingSettings(BaseSettings):
    """Location of the alerting configuration document."""

    model_config = SettingsConfigDict(env_prefix="")

    config_path: Path | None = Field(
        default=None,
        alias="ALERTING_CONFIG_PATH",
        description="Path to the alerting configuration JSON document",
    )


class RedisSettings(BaseSettings):
    """Redis connection settings for the deduplication store."""

    model_config = SettingsConfigDict(env_prefix="")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string; unset keeps dedup state in memory",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v

    @property
    def enabled(self) -> bool:
        """Check if a shared Redis store is configured."""
        return self.url is not None


class SmtpSettings(BaseSettings):
    """Email (SMTP) channel settings."""

    model_config = SettingsConfigDict(env_prefix="SMTP_")

    host: str = Field(
        default="email-smtp.us-east-1.amazonaws.com",
        alias="SMTP_HOST",
        description="SMTP relay host",
    )
    port: int = Field(default=587, alias="SMTP_PORT", ge=1, le=65535)
    username: str | None = Field(default=None, alias="SMTP_USERNAME")
    password: SecretStr | None = Field(default=None, alias="SMTP_PASSWORD")
    sender: str | None = Field(
        default=None,
        alias="EMAIL_SENDER",
        description="From address for alert emails",
    )
    max_retry: int = Field(
        default=2,
        alias="SMTP_MAX_RETRY",
        description="Send attempts per email before giving up",
        ge=1,
    )
    timeout: float = Field(default=100.0, alias="SMTP_TIMEOUT", gt=0)

    @property
    def enabled(self) -> bool:
        """Check if email credentials are configured."""
        return bool(self.username and self.password and self.sender)


class TwilioSettings(BaseSettings):
    """SMS (Twilio) channel settings."""

    model_config = SettingsConfigDict(env_prefix="TWILIO_")

    account_sid: str | None = Field(default=None, alias="TWILIO_ACCOUNT_SID")
    auth_token: SecretStr | None = Field(default=None, alias="TWILIO_AUTH_TOKEN")
    sender: str | None = Field(
        default=None,
        alias="TWILIO_SENDER",
        description="Twilio phone number messages are sent from",
    )
    truncate_to_one_part: bool = Field(
        default=True,
        alias="TRUNCATE_SMS_TO_ONE_PART",
        description="Cut messages to a single 160 character SMS",
    )
    timeout: float = Field(default=10.0, alias="TWILIO_TIMEOUT", gt=0)

    @property
    def enabled(self) -> bool:
        """Check if Twilio credentials are configured."""
        return bool(self.account_sid and self.auth_token and self.sender)


class SlackSettings(BaseSettings):
    """Slack webhook channel settings."""

    model_config = SettingsConfigDict(env_prefix="SLACK_")

    timeout: float = Field(default=10.0, alias="SLACK_TIMEOUT", gt=0)


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from alert_router.config import get_settings

        settings = get_settings()
        print(settings.alerting.config_path)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested configuration groups
    alerting: AlertingSettings = Field(default_factory=AlertingSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    smtp: SmtpSettings = Field(default_factory=SmtpSettings)
    twilio: TwilioSettings = Field(default_factory=TwilioSettings)
    slack: SlackSettings = Field(default_factory=SlackSettings)

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Route alerts without contacting channel backends",
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
            "alerting_config_path": str(self.alerting.config_path or "(not set)"),
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(memory)",
            "smtp": {
                "host": f"{self.smtp.host}:{self.smtp.port}",
                "username": self.smtp.username or "(not set)",
                "password": "(set)" if self.smtp.password else "(not set)",
                "sender": self.smtp.sender or "(not set)",
            },
            "twilio": {
                "account_sid": self.twilio.account_sid or "(not set)",
                "auth_token": "(set)" if self.twilio.auth_token else "(not set)",
                "sender": self.twilio.sender or "(not set)",
            },
            "email_enabled": str(self.smtp.enabled),
            "sms_enabled": str(self.twilio.enabled),
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            # URL has credentials - redact the password
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

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

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
