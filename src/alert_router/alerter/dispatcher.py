"""Alert dispatcher for multi-channel delivery."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from alert_router.alerter.endpoints import resolve_endpoints
from alert_router.alerter.errors import UnknownHandlerError
from alert_router.alerter.models import DispatchResult

if TYPE_CHECKING:
    from alert_router.alerter.channels.base import ChannelProvider
    from alert_router.alerter.models import AlertEvent
    from alert_router.alerter.rules import AlertingConfig, HandlerRule
    from alert_router.config import Settings

logger = logging.getLogger(__name__)


class ProviderState(Enum):
    """Initialization state of a channel provider."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    FAILED = "failed"


@dataclass
class ProviderEntry:
    """A registered provider and its initialization state.

    Once FAILED, a provider stays failed for the life of the process.
    """

    provider: ChannelProvider
    state: ProviderState = ProviderState.UNINITIALIZED
    error: str | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class ProviderRegistry:
    """Maps handler codes to channel providers.

    Handler codes are matched case-insensitively. Each provider is
    initialised at most once, guarded so concurrent dispatch cycles cannot
    initialise it twice.
    """

    def __init__(self, providers: Iterable[ChannelProvider] = ()) -> None:
        self._entries: dict[str, ProviderEntry] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: ChannelProvider, code: str | None = None) -> None:
        """Register a provider under its own code or an explicit one."""
        key = (code or provider.code).lower()
        if key in self._entries:
            logger.warning(f"Replacing provider registered for handler {key!r}")
        self._entries[key] = ProviderEntry(provider=provider)

    def get(self, handler_code: str) -> ProviderEntry | None:
        """Get the entry for a handler code, or None if unregistered."""
        return self._entries.get(handler_code.lower())

    def __contains__(self, handler_code: object) -> bool:
        return isinstance(handler_code, str) and handler_code.lower() in self._entries

    @property
    def codes(self) -> list[str]:
        """Registered handler codes."""
        return list(self._entries)

    async def ensure_initialized(
        self, entry: ProviderEntry, config: AlertingConfig, settings: Settings
    ) -> bool:
        """Initialise a provider on first use.

        Returns:
            True if the provider is ready to send.
        """
        if entry.state is ProviderState.READY:
            return True
        if entry.state is ProviderState.FAILED:
            return False

        async with entry.lock:
            # Another dispatch may have finished initialising while we waited
            if entry.state is ProviderState.UNINITIALIZED:
                name = type(entry.provider).__name__
                try:
                    await entry.provider.init(config, settings)
                    entry.state = ProviderState.READY
                    logger.info(f"Initialized provider {name}")
                except Exception as e:
                    entry.state = ProviderState.FAILED
                    entry.error = str(e)
                    logger.error(f"Failed to initialize provider {name}: {e}")

        return entry.state is ProviderState.READY

    def get_status(self) -> dict[str, dict[str, object]]:
        """Get initialization status for all providers."""
        return {
            code: {
                "provider": type(entry.provider).__name__,
                "state": entry.state.value,
                "error": entry.error,
            }
            for code, entry in self._entries.items()
        }

    async def close(self) -> None:
        """Close every provider, logging but not raising failures."""
        for code, entry in self._entries.items():
            try:
                await entry.provider.close()
            except Exception as e:
                logger.error(f"Error closing provider for {code}: {e}")


class AlertDispatcher:
    """Routes an alert to the handlers its subscription resolves to.

    Handlers are processed in expansion order and endpoints are sent to one
    at a time, since some providers hold a single network session. A failed
    send never stops the remaining sends; an unknown handler code does stop
    the dispatch, after earlier handlers have already sent.
    """

    def __init__(
        self,
        config: AlertingConfig,
        registry: ProviderRegistry,
        settings: Settings,
        *,
        dry_run: bool = False,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            config: Validated alerting configuration.
            registry: Channel providers by handler code.
            settings: Process settings passed to providers on init.
            dry_run: Log what would be sent instead of sending.
        """
        self.config = config
        self.registry = registry
        self.settings = settings
        self.dry_run = dry_run

    async def dispatch(self, event: AlertEvent) -> DispatchResult:
        """Dispatch an alert to every matching handler.

        Args:
            event: Alert to route.

        Returns:
            A successful DispatchResult once all handlers were attempted,
            whether or not individual sends failed.

        Raises:
            UnknownHandlerError: If a handler has no registered provider.
        """
        subscription = self.config.find_subscription(event.alert_code, event.alert_level)
        if subscription is None:
            summary = (
                f"No matching subscription for alert code {event.alert_code} "
                f"or level {event.alert_level}"
            )
            logger.info(summary)
            return DispatchResult(success=True, summary=summary)

        handlers = self.config.expand_handlers(subscription)
        sent = 0
        failed = 0
        for handler in handlers:
            ok, errors = await self._dispatch_handler(event, handler)
            sent += ok
            failed += errors

        logger.info(
            f"Dispatch complete for {event.alert_code}: "
            f"{sent}/{sent + failed} sends succeeded across {len(handlers)} handlers"
        )
        return DispatchResult(
            success=True,
            summary=f"Send alert invoked with alert code: {event.alert_code}",
        )

    async def _dispatch_handler(self, event: AlertEvent, handler: HandlerRule) -> tuple[int, int]:
        """Send an alert through one handler rule.

        Returns:
            Tuple of (successful sends, failed sends).
        """
        code = handler.handler_code
        text = event.text_for(code)
        if not text:
            logger.warning(f"No text specified for handler {code}")
            return (0, 0)

        entry = self.registry.get(code)
        if entry is None:
            raise UnknownHandlerError(code)

        if not self.dry_run and not await self.registry.ensure_initialized(
            entry, self.config, self.settings
        ):
            logger.error(f"Skipping handler {code}: provider failed to initialize ({entry.error})")
            return (0, 0)

        endpoints = resolve_endpoints(handler, self.config.contacts)
        if not endpoints:
            logger.warning(f"No matching configured endpoints for {code}")
            return (0, 0)

        sent = 0
        failed = 0
        provider = entry.provider
        for endpoint in endpoints:
            if self.dry_run:
                logger.info(f"[dry-run] Would send {event.alert_code} via {code} to {endpoint}")
                sent += 1
                continue

            logger.info(f"Sending alert {event.alert_code} with provider {type(provider).__name__}")
            try:
                await provider.send(
                    endpoint,
                    event.alert_level or "",
                    event.alert_code or "",
                    text,
                )
                sent += 1
            except Exception as e:
                logger.error(f"Error sending {event.alert_code} via {code} to {endpoint}: {e}")
                failed += 1

        return (sent, failed)
