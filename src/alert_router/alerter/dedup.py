"""Duplicate alert suppression.

This module decides whether an alert is a repeat of one already sent within
its deduplication window. The window comes from the configuration's
specificity cascade; the memory of what was sent lives in a
:class:`~alert_router.alerter.statefulness.Statefulness` store.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alert_router.alerter.models import AlertEvent
    from alert_router.alerter.rules import DeduplicateConfig
    from alert_router.alerter.statefulness import Statefulness

logger = logging.getLogger(__name__)


class Deduplicator:
    """Suppresses repeats of the same alert code within a time window.

    The suppression key is the alert code alone, so two levels sharing a
    code share one window.
    """

    def __init__(self, store: Statefulness) -> None:
        """Initialize the deduplicator.

        Args:
            store: Store remembering which alert codes were recently sent.
        """
        self.store = store

    @staticmethod
    def resolve_window(
        rules: DeduplicateConfig, alert_code: str | None, alert_level: str | None
    ) -> int:
        """Get the dedup window in seconds for a code and level."""
        return rules.resolve_window(alert_code, alert_level)

    async def should_suppress(self, alert_code: str, window_seconds: int) -> bool:
        """Decide whether an alert code is a duplicate, recording it if not.

        Args:
            alert_code: Code of the alert.
            window_seconds: Dedup window; zero or less disables suppression.

        Returns:
            True if the alert should be suppressed.
        """
        if window_seconds <= 0:
            return False

        claimed = await self.store.claim(alert_code, window_seconds)
        if not claimed:
            logger.debug(f"Duplicate alert for {alert_code} within {window_seconds}s")
            return True
        return False

    async def check(self, event: AlertEvent, rules: DeduplicateConfig) -> bool:
        """Decide whether an incoming alert should be suppressed.

        Store failures are logged and treated as "not a duplicate" so an
        outage of the store never blocks delivery.

        Args:
            event: Incoming alert.
            rules: Deduplication ruleset from the alerting configuration.

        Returns:
            True if the alert should be suppressed.
        """
        if not event.alert_code:
            logger.warning("Alert has no code, skipping duplicate check")
            return False

        window = self.resolve_window(rules, event.alert_code, event.alert_level)
        try:
            return await self.should_suppress(event.alert_code, window)
        except Exception as e:
            logger.error(f"Error checking for duplicate alert {event.alert_code}: {e}")
            return False
