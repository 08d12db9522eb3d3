"""Channel provider implementations for the supported notification channels."""

from alert_router.alerter.channels.base import ChannelProvider
from alert_router.alerter.channels.email import EmailChannel
from alert_router.alerter.channels.slack import SlackChannel
from alert_router.alerter.channels.sms import SmsChannel

__all__ = [
    "ChannelProvider",
    "EmailChannel",
    "SlackChannel",
    "SmsChannel",
    "default_providers",
]


def default_providers() -> list[ChannelProvider]:
    """Create one provider per built-in handler code."""
    return [EmailChannel(), SmsChannel(), SlackChannel()]
