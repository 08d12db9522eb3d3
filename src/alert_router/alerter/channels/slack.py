"""Slack incoming-webhook channel implementation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from alert_router.alerter.channels.base import ChannelProvider, require_text
from alert_router.alerter.errors import TransportError
from alert_router.alerter.formatter import build_slack_payload, get_slack_color

if TYPE_CHECKING:
    from alert_router.alerter.rules import AlertingConfig
    from alert_router.config import Settings

logger = logging.getLogger(__name__)


class SlackChannel(ChannelProvider):
    """Slack channel posting colored attachments to incoming webhooks.

    The endpoint of a Slack contact is its webhook URL.
    """

    code = "slack"

    def __init__(self) -> None:
        super().__init__()
        self._client: httpx.AsyncClient | None = None
        self._config: AlertingConfig | None = None

    async def _setup(self, config: AlertingConfig, settings: Settings) -> None:
        self._config = config
        self._client = httpx.AsyncClient(timeout=settings.slack.timeout)

    async def send(self, endpoint: str, alert_level: str, alert_code: str, text: str) -> None:
        """Post an alert to a Slack webhook.

        Raises:
            TransportError: On HTTP errors or a non-200 response.
        """
        require_text(endpoint=endpoint, text=text)
        if self._client is None:
            raise TransportError("Slack client not initialized. Call init first.")

        color = get_slack_color(self._config, alert_level, alert_code)
        payload = build_slack_payload(alert_level, alert_code, text, color)

        try:
            response = await self._client.post(endpoint, data={"payload": payload})
        except httpx.HTTPError as e:
            raise TransportError(f"Slack webhook error: {e}") from e

        if response.status_code != 200:
            raise TransportError(
                f"Slack webhook failed: {response.status_code} {response.text}"
            )
        logger.info(f"Slack alert {alert_code} delivered")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        await super().close()
