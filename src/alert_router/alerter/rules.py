"""Alerting configuration model and its specificity lookups.

The configuration document is parsed into a tree of frozen models and is
treated as read-only for the rest of the process lifetime, so it can be
shared freely between concurrent dispatch cycles.

Two lookups live here:

* subscription resolution - a four-tier cascade (exact, code-only,
  level-only, wildcard) used to pick the handlers for an alert;
* deduplication window resolution - the same cascade without the wildcard
  tier, falling back to the global window.

All string comparisons are case-insensitive, and an empty string counts as
"unset" just like a missing value.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Protocol, TypeVar

from pydantic import Field

from alert_router.alerter.models import CaseInsensitiveModel

logger = logging.getLogger(__name__)

# Global dedup window used when the document does not set one
DEFAULT_DEDUPLICATE_SECONDS = 30


class EndpointConfig(CaseInsensitiveModel):
    """A single channel-typed address of a contact (e.g. an email address)."""

    channel_type: str = Field(alias="type")
    value: str | None = None


class Contact(CaseInsensitiveModel):
    """A named recipient with one or more channel endpoints."""

    name: str
    endpoints: tuple[EndpointConfig, ...] = ()


class HandlerRule(CaseInsensitiveModel):
    """A channel plus the contacts to notify on it.

    Attributes:
        handler_code: Channel identifier, e.g. ``email`` or ``slack``.
        contact_names: Names of the contacts to notify.
        coloring: Optional channel hint, only used by chat channels.
    """

    handler_code: str = Field(alias="handler")
    contact_names: tuple[str, ...] = Field(default=(), alias="contacts")
    coloring: str | None = None


class HandlerGroup(CaseInsensitiveModel):
    """A named, reusable bundle of handler rules."""

    code: str
    handler_rules: tuple[HandlerRule, ...] = Field(default=(), alias="handlers")


class Subscription(CaseInsensitiveModel):
    """Routing rule keyed by an optional (alert code, alert level) pair."""

    alert_code: str | None = None
    alert_level: str | None = None
    handler_rules: tuple[HandlerRule, ...] = Field(default=(), alias="handlers")
    handler_group_codes: tuple[str, ...] = Field(default=(), alias="handlerGroups")


class DeduplicateSpecific(CaseInsensitiveModel):
    """Override of the global dedup window for a code and/or level."""

    alert_code: str | None = None
    alert_level: str | None = None
    window_seconds: int = Field(alias="deduplicatePerSecond")


class DeduplicateConfig(CaseInsensitiveModel):
    """Deduplication ruleset.

    ``enabled`` is kept for compatibility with existing documents but is not
    consulted: a window of zero or less is what disables deduplication.
    """

    enabled: bool = True
    window_seconds: int = Field(
        default=DEFAULT_DEDUPLICATE_SECONDS,
        alias="deduplicatePerSecond",
    )
    specifics: tuple[DeduplicateSpecific, ...] = ()

    def get_specific(
        self, alert_code: str | None, alert_level: str | None
    ) -> DeduplicateSpecific | None:
        """Find the most specific override, without a wildcard tier."""
        return match_most_specific(
            self.specifics, alert_code, alert_level, include_wildcard=False
        )

    def resolve_window(self, alert_code: str | None, alert_level: str | None) -> int:
        """Get the dedup window in seconds for an alert."""
        specific = self.get_specific(alert_code, alert_level)
        if specific is not None:
            return specific.window_seconds
        return self.window_seconds


class AlertingConfig(CaseInsensitiveModel):
    """Aggregate root of the alerting configuration document."""

    contacts: tuple[Contact, ...] = ()
    subscriptions: tuple[Subscription, ...] = ()
    handler_groups: tuple[HandlerGroup, ...] = Field(default=(), alias="handlerGroups")
    deduplicate: DeduplicateConfig = Field(default_factory=DeduplicateConfig)

    def find_subscription(
        self, alert_code: str | None, alert_level: str | None
    ) -> Subscription | None:
        """Find the most specific subscription for an alert.

        Returns:
            The first subscription of the most specific matching tier,
            or None when nothing matches.
        """
        return match_most_specific(
            self.subscriptions, alert_code, alert_level, include_wildcard=True
        )

    def find_handler_group(self, code: str) -> HandlerGroup | None:
        """Find a handler group by code (case-insensitive)."""
        return next((g for g in self.handler_groups if _same(g.code, code)), None)

    def find_contact(self, name: str) -> Contact | None:
        """Find a contact by name (case-insensitive)."""
        return next((c for c in self.contacts if _same(c.name, name)), None)

    def expand_handlers(self, subscription: Subscription) -> list[HandlerRule]:
        """Merge a subscription's own handler rules with its groups' rules.

        Group codes that do not resolve are skipped. Order is preserved and
        duplicates are kept.
        """
        handlers = list(subscription.handler_rules)
        for group_code in subscription.handler_group_codes:
            group = self.find_handler_group(group_code)
            if group is None:
                logger.debug(f"Handler group {group_code!r} not found, skipping")
                continue
            handlers.extend(group.handler_rules)
        return handlers

    def get_matching_handlers(
        self, alert_code: str | None, alert_level: str | None
    ) -> list[HandlerRule]:
        """Get the expanded handler rules for an alert (empty if unsubscribed)."""
        subscription = self.find_subscription(alert_code, alert_level)
        if subscription is None:
            return []
        return self.expand_handlers(subscription)


class _Keyed(Protocol):
    @property
    def alert_code(self) -> str | None: ...

    @property
    def alert_level(self) -> str | None: ...


K = TypeVar("K", bound=_Keyed)


def _same(a: str | None, b: str | None) -> bool:
    return a is not None and b is not None and a.casefold() == b.casefold()


def match_most_specific(
    rules: Iterable[K],
    alert_code: str | None,
    alert_level: str | None,
    *,
    include_wildcard: bool,
) -> K | None:
    """Apply the specificity cascade to rules keyed by code and level.

    Tiers, most specific first: code and level, code only, level only and,
    when ``include_wildcard`` is set, neither. Within a tier the first rule
    in declaration order wins.
    """
    rules = list(rules)
    tiers: list[Callable[[K], bool]] = [
        lambda r: bool(r.alert_code)
        and bool(r.alert_level)
        and _same(r.alert_code, alert_code)
        and _same(r.alert_level, alert_level),
        lambda r: bool(r.alert_code)
        and not r.alert_level
        and _same(r.alert_code, alert_code),
        lambda r: bool(r.alert_level)
        and not r.alert_code
        and _same(r.alert_level, alert_level),
    ]
    if include_wildcard:
        tiers.append(lambda r: not r.alert_code and not r.alert_level)

    for qualifies in tiers:
        match = next((r for r in rules if qualifies(r)), None)
        if match is not None:
            return match
    return None
