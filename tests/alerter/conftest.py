"""Shared fixtures for alerter tests."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest

from alert_router.alerter.channels.base import ChannelProvider
from alert_router.alerter.errors import TransportError
from alert_router.alerter.rules import (
    AlertingConfig,
    Contact,
    EndpointConfig,
    HandlerGroup,
    HandlerRule,
    Subscription,
)

if TYPE_CHECKING:
    from alert_router.config import Settings


class RecordingChannel(ChannelProvider):
    """Channel provider that records sends instead of delivering them."""

    def __init__(
        self,
        code: str,
        *,
        fail_init: bool = False,
        fail_endpoints: tuple[str, ...] = (),
        send_error: type[Exception] = TransportError,
    ) -> None:
        super().__init__()
        self.code = code
        self.fail_init = fail_init
        self.fail_endpoints = fail_endpoints
        self.send_error = send_error
        self.init_calls = 0
        self.sent: list[tuple[str, str, str, str]] = []

    async def _setup(self, config: AlertingConfig, settings: Settings) -> None:
        self.init_calls += 1
        # Yield so concurrent callers get a chance to race
        await asyncio.sleep(0)
        if self.fail_init:
            raise TransportError(f"{self.code} backend unavailable")

    async def send(self, endpoint: str, alert_level: str, alert_code: str, text: str) -> None:
        if endpoint in self.fail_endpoints:
            raise self.send_error(f"cannot reach {endpoint}")
        self.sent.append((endpoint, alert_level, alert_code, text))


@pytest.fixture
def settings() -> MagicMock:
    """Settings stand-in; recording channels never read it."""
    return MagicMock()


@pytest.fixture
def routing_config() -> AlertingConfig:
    """Contacts Tom, Harry and a Slack board with three subscriptions."""
    return AlertingConfig(
        contacts=[
            Contact(
                name="Tom",
                endpoints=[
                    EndpointConfig(channel_type="email", value="tom@gmail.com"),
                    EndpointConfig(channel_type="sms", value="0411111111"),
                ],
            ),
            Contact(
                name="Harry",
                endpoints=[
                    EndpointConfig(channel_type="email", value="harry@gmail.com"),
                    EndpointConfig(channel_type="sms", value="0422222222"),
                ],
            ),
            Contact(
                name="SlackBoard",
                endpoints=[EndpointConfig(channel_type="slack", value="http://slackboard.com")],
            ),
        ],
        handler_groups=[
            HandlerGroup(
                code="EverybodyEmail",
                handler_rules=[HandlerRule(handler_code="email", contact_names=["Tom", "Harry"])],
            ),
            HandlerGroup(
                code="EverybodySms",
                handler_rules=[HandlerRule(handler_code="sms", contact_names=["Tom", "Harry"])],
            ),
        ],
        subscriptions=[
            Subscription(
                alert_code="Play completed",
                handler_group_codes=["EverybodyEmail"],
                handler_rules=[
                    HandlerRule(handler_code="slack", contact_names=["slackBoard"], coloring="Red")
                ],
            ),
            Subscription(
                alert_level="Critical",
                handler_group_codes=["EverybodyEmail", "EverybodySms"],
                handler_rules=[HandlerRule(handler_code="slack", contact_names=["slackBoard"])],
            ),
        ],
    )


@pytest.fixture
def channels() -> dict[str, RecordingChannel]:
    """One recording channel per built-in handler code."""
    return {code: RecordingChannel(code) for code in ("slack", "email", "sms")}


@pytest.fixture
def make_channel() -> type[RecordingChannel]:
    """Factory for recording channels with custom failure behaviour."""
    return RecordingChannel
