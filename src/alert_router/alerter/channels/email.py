"""SMTP email channel implementation."""

from __future__ import annotations

import asyncio
import logging
from email.message import EmailMessage
from typing import TYPE_CHECKING

import aiosmtplib

from alert_router.alerter.channels.base import ChannelProvider, require_text
from alert_router.alerter.errors import ConfigurationError, TransportError
from alert_router.alerter.formatter import build_email_subject

if TYPE_CHECKING:
    from alert_router.alerter.rules import AlertingConfig
    from alert_router.config import Settings

logger = logging.getLogger(__name__)


class EmailChannel(ChannelProvider):
    """Email channel sending through an authenticated SMTP relay (e.g. AWS SES).

    Keeps one SMTP session open across sends. The session is not safe for
    concurrent use, so sends are serialised with a lock. A dropped session
    is reopened and the message resent, up to ``SMTP_MAX_RETRY`` attempts.
    """

    code = "email"

    def __init__(self) -> None:
        super().__init__()
        self.host = ""
        self.port = 0
        self.sender: str | None = None
        self.max_retry = 1
        self.timeout = 100.0
        self._username = ""
        self._password = ""
        self._client: aiosmtplib.SMTP | None = None
        self._logged_in = False
        self._lock = asyncio.Lock()

    async def _setup(self, config: AlertingConfig, settings: Settings) -> None:
        smtp = settings.smtp
        if not smtp.username:
            raise ConfigurationError("SMTP username not specified")
        if smtp.password is None or not smtp.password.get_secret_value():
            raise ConfigurationError("SMTP password not specified")
        if not smtp.sender:
            raise ConfigurationError("EMAIL_SENDER not specified")

        self.host = smtp.host
        self.port = smtp.port
        self.sender = smtp.sender
        self.max_retry = smtp.max_retry
        self.timeout = smtp.timeout
        self._username = smtp.username
        self._password = smtp.password.get_secret_value()

        async with self._lock:
            try:
                await self._refresh_client()
            except (aiosmtplib.SMTPException, OSError) as e:
                raise ConfigurationError(f"Could not open SMTP session to {self.host}: {e}") from e

    async def _refresh_client(self) -> aiosmtplib.SMTP:
        """Connect and authenticate the session if needed."""
        if self._client is None:
            self._client = aiosmtplib.SMTP(
                hostname=self.host,
                port=self.port,
                start_tls=True,
                timeout=self.timeout,
            )

        if not self._client.is_connected:
            self._logged_in = False
            await self._client.connect()

        if not self._logged_in:
            await self._client.login(self._username, self._password)
            self._logged_in = True

        return self._client

    def _drop_session(self) -> None:
        """Close the session so the next attempt reconnects from scratch."""
        if self._client is not None and self._client.is_connected:
            self._client.close()
        self._logged_in = False

    def _build_message(
        self, endpoint: str, alert_level: str, alert_code: str, text: str
    ) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = build_email_subject(alert_level, alert_code)
        message["From"] = self.sender
        message["Sender"] = self.sender
        message["To"] = endpoint
        message.set_content(text)
        return message

    async def send(self, endpoint: str, alert_level: str, alert_code: str, text: str) -> None:
        """Email an alert to one address.

        Raises:
            TransportError: If every attempt fails.
        """
        require_text(endpoint=endpoint, alert_level=alert_level, alert_code=alert_code, text=text)
        if not self.sender:
            raise TransportError("Email sender not set. Ensure configured and call init first.")

        message = self._build_message(endpoint, alert_level, alert_code, text)

        async with self._lock:
            last_error: Exception | None = None
            for attempt in range(self.max_retry):
                try:
                    client = await self._refresh_client()
                    await client.send_message(message)
                    logger.info(f"Email alert {alert_code} delivered to {endpoint}")
                    return
                except (aiosmtplib.SMTPException, OSError) as e:
                    last_error = e
                    logger.warning(f"SMTP error sending to {endpoint} (attempt {attempt + 1}): {e}")
                    self._drop_session()

        raise TransportError(f"Email delivery to {endpoint} failed: {last_error}")

    async def close(self) -> None:
        async with self._lock:
            if self._client is not None and self._client.is_connected:
                try:
                    await self._client.quit()
                except aiosmtplib.SMTPException as e:
                    logger.debug(f"SMTP quit failed: {e}")
                    self._client.close()
            self._client = None
            self._logged_in = False
        await super().close()
