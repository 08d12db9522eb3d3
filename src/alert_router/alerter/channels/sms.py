"""Twilio SMS channel implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

from alert_router.alerter.channels.base import ChannelProvider, require_text
from alert_router.alerter.errors import ConfigurationError, TransportError
from alert_router.alerter.formatter import build_sms_body

if TYPE_CHECKING:
    from alert_router.alerter.rules import AlertingConfig
    from alert_router.config import Settings

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"

# Responses worth another attempt
RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class SmsChannel(ChannelProvider):
    """SMS channel sending through the Twilio REST API.

    Retries rate-limited, server-side and timed out requests with
    exponential backoff before giving up.
    """

    code = "sms"

    def __init__(self, *, max_retries: int = 3, retry_delay: float = 1.0) -> None:
        """Initialize SMS channel.

        Args:
            max_retries: Maximum attempts per message.
            retry_delay: Base delay between retries (exponential backoff).
        """
        super().__init__()
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.sender: str | None = None
        self.truncate = True
        self._api_url = ""
        self._client: httpx.AsyncClient | None = None

    async def _setup(self, config: AlertingConfig, settings: Settings) -> None:
        twilio = settings.twilio
        if not twilio.account_sid:
            raise ConfigurationError("TWILIO_ACCOUNT_SID not specified")
        if twilio.auth_token is None or not twilio.auth_token.get_secret_value():
            raise ConfigurationError("TWILIO_AUTH_TOKEN not specified")
        if not twilio.sender:
            raise ConfigurationError("TWILIO_SENDER not specified")

        self.sender = twilio.sender
        self.truncate = twilio.truncate_to_one_part
        self._api_url = TWILIO_MESSAGES_URL.format(sid=twilio.account_sid)
        self._client = httpx.AsyncClient(
            auth=(twilio.account_sid, twilio.auth_token.get_secret_value()),
            timeout=twilio.timeout,
        )

    async def send(self, endpoint: str, alert_level: str, alert_code: str, text: str) -> None:
        """Send an SMS to a phone number.

        Raises:
            TransportError: If Twilio rejects the message or every attempt fails.
        """
        require_text(endpoint=endpoint, alert_level=alert_level, alert_code=alert_code, text=text)
        if self._client is None:
            raise TransportError("Twilio client not initialized. Call init first.")

        form = {
            "To": endpoint,
            "From": self.sender,
            "Body": build_sms_body(alert_level, alert_code, text, truncate=self.truncate),
        }

        last_error = "no attempts made"
        for attempt in range(self.max_retries):
            try:
                response = await self._client.post(self._api_url, data=form)

                if response.status_code in (200, 201):
                    logger.info(f"SMS alert {alert_code} delivered")
                    return

                last_error = f"{response.status_code} {response.text}"
                if response.status_code not in RETRYABLE_STATUS:
                    raise TransportError(f"Twilio rejected SMS: {last_error}")
                logger.warning(f"Twilio API error {last_error} (attempt {attempt + 1})")

            except httpx.TimeoutException:
                last_error = "timeout"
                logger.warning(f"Twilio API timeout (attempt {attempt + 1})")
            except httpx.HTTPError as e:
                last_error = str(e)
                logger.error(f"Twilio API error: {e}")

            # Exponential backoff
            if attempt < self.max_retries - 1:
                delay = self.retry_delay * (2**attempt)
                await asyncio.sleep(delay)

        raise TransportError(f"SMS delivery failed after {self.max_retries} attempts: {last_error}")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        await super().close()
