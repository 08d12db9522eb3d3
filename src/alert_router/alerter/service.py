"""Alert handling service.

Ties the pieces together for one process: lazily loads the alerting
configuration, applies duplicate suppression, and drives the dispatcher.
Only configuration failures and unknown handler codes turn into a failed
result; everything else is logged and absorbed.

Usage:
    ```python
    service = AlertService(
        loader=file_loader("alerting.json"),
        providers=default_providers(),
        store=MemoryStatefulness(),
        settings=get_settings(),
    )
    result = await service.handle_raw({"alertCode": "PlayDied", ...})
    ```
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from alert_router.alerter.dedup import Deduplicator
from alert_router.alerter.dispatcher import AlertDispatcher, ProviderRegistry
from alert_router.alerter.errors import ConfigurationError, UnknownHandlerError
from alert_router.alerter.models import AlertEvent, DispatchResult

if TYPE_CHECKING:
    from alert_router.alerter.channels.base import ChannelProvider
    from alert_router.alerter.loader import ConfigLoader
    from alert_router.alerter.rules import AlertingConfig
    from alert_router.alerter.statefulness import Statefulness
    from alert_router.config import Settings

logger = logging.getLogger(__name__)

CONFIG_ERROR_SUMMARY = "Error - configuration could not be loaded, see logs for details"
DISPATCH_ERROR_SUMMARY = "Error - see logs for details"


class AlertService:
    """Handles alerts for the lifetime of a process.

    The configuration is loaded on the first alert and then reused. A failed
    load is reported for that alert and retried on the next one.
    """

    def __init__(
        self,
        loader: ConfigLoader,
        providers: Iterable[ChannelProvider],
        store: Statefulness,
        settings: Settings,
        *,
        dry_run: bool = False,
    ) -> None:
        """Initialize the service.

        Args:
            loader: Async callable returning the validated configuration.
            providers: Channel providers, one per handler code.
            store: Deduplication state store.
            settings: Process settings.
            dry_run: Route alerts without contacting channel backends.
        """
        self._loader = loader
        self.registry = ProviderRegistry(providers)
        self.deduplicator = Deduplicator(store)
        self.settings = settings
        self.dry_run = dry_run
        self._config: AlertingConfig | None = None
        self._dispatcher: AlertDispatcher | None = None
        self._config_lock = asyncio.Lock()

    @property
    def config(self) -> AlertingConfig | None:
        """The loaded configuration, or None before a successful load."""
        return self._config

    async def ensure_config(self) -> AlertDispatcher:
        """Load the configuration if needed and return the dispatcher.

        Raises:
            ConfigurationError: If the configuration cannot be loaded.
        """
        if self._dispatcher is not None:
            return self._dispatcher

        async with self._config_lock:
            if self._dispatcher is None:
                config = await self._loader()
                self._config = config
                self._dispatcher = AlertDispatcher(
                    config, self.registry, self.settings, dry_run=self.dry_run
                )
        return self._dispatcher

    async def handle(self, event: AlertEvent) -> DispatchResult:
        """Handle one alert end to end.

        Args:
            event: The incoming alert.

        Returns:
            DispatchResult with overall status and a summary.
        """
        try:
            dispatcher = await self.ensure_config()
        except ConfigurationError as e:
            logger.error(f"Exception processing configuration: {e}")
            return DispatchResult(success=False, summary=CONFIG_ERROR_SUMMARY)
        except Exception:
            logger.exception("Unexpected error loading alerting configuration")
            return DispatchResult(success=False, summary=CONFIG_ERROR_SUMMARY)

        if await self.deduplicator.check(event, dispatcher.config.deduplicate):
            logger.info(f"Skipped duplicate alert with code {event.alert_code}")
            return DispatchResult(
                success=True,
                summary=f"Skipped duplicate alert with code: {event.alert_code}",
            )

        try:
            return await dispatcher.dispatch(event)
        except UnknownHandlerError as e:
            logger.error(f"Exception sending alert {event.alert_code}: {e}")
            return DispatchResult(success=False, summary=str(e))
        except Exception:
            logger.exception(f"Exception sending alert {event.alert_code}")
            return DispatchResult(success=False, summary=DISPATCH_ERROR_SUMMARY)

    async def handle_raw(self, document: Mapping[str, Any]) -> DispatchResult:
        """Parse an alert input document and handle it."""
        if not isinstance(document, Mapping):
            logger.error(f"Invalid alert input: expected an object, got {type(document).__name__}")
            return DispatchResult(success=False, summary="Invalid alert input: expected an object")

        try:
            event = AlertEvent.model_validate(dict(document))
        except ValidationError as e:
            logger.error(f"Invalid alert input: {e}")
            return DispatchResult(success=False, summary=f"Invalid alert input: {e}")

        logger.info(f"Send alert invoked. Code: {event.alert_code}, level: {event.alert_level}")
        return await self.handle(event)

    async def close(self) -> None:
        """Close channel providers and the dedup store."""
        await self.registry.close()
        try:
            await self.deduplicator.store.close()
        except Exception as e:
            logger.error(f"Error closing dedup store: {e}")
