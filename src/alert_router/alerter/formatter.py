"""Channel-specific message formatting.

Each channel gets the same alert text, framed for its medium: an email
subject line, a one-part SMS body, a colored Slack attachment.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alert_router.alerter.rules import AlertingConfig

SLACK_HANDLER_CODE = "slack"

# Slack attachment colors by alert level
LEVEL_COLORS = {
    "critical": "danger",
    "warning": "warning",
    "info": "good",
}
DEFAULT_COLOR = "#000000"

# Single-part SMS length
SMS_PART_LENGTH = 160


def get_level_color(alert_level: str | None) -> str:
    """Get the Slack attachment color for an alert level."""
    if not alert_level:
        return DEFAULT_COLOR
    return LEVEL_COLORS.get(alert_level.lower(), DEFAULT_COLOR)


def get_slack_color(
    config: AlertingConfig | None, alert_level: str | None, alert_code: str | None
) -> str:
    """Get the Slack color for an alert.

    The ``coloring`` of the first Slack handler rule routed for the alert
    wins; otherwise the color follows the alert level.
    """
    if config is not None:
        handler = next(
            (
                h
                for h in config.get_matching_handlers(alert_code, alert_level)
                if h.handler_code.lower() == SLACK_HANDLER_CODE
            ),
            None,
        )
        if handler is not None and handler.coloring:
            return handler.coloring
    return get_level_color(alert_level)


def build_slack_payload(alert_level: str, alert_code: str, text: str, color: str) -> str:
    """Build the JSON payload for a Slack incoming webhook."""
    attachment = {
        "text": f"*{alert_level}* > *{alert_code}*: {text}",
        "color": color,
    }
    return json.dumps({"attachments": [attachment]})


def build_sms_body(alert_level: str, alert_code: str, text: str, *, truncate: bool = True) -> str:
    """Build an SMS body, cut to one part when ``truncate`` is set."""
    body = f"{alert_level}>{alert_code}: {text}"
    if truncate and len(body) > SMS_PART_LENGTH:
        body = body[:SMS_PART_LENGTH]
    return body


def build_email_subject(alert_level: str, alert_code: str) -> str:
    """Build the subject line for an alert email."""
    return f"Alert Level: {alert_level}. Alert Code: {alert_code}"
