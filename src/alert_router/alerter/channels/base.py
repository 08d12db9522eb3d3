"""Base class for notification channel providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from alert_router.alerter.rules import AlertingConfig
    from alert_router.config import Settings


class ChannelProvider(ABC):
    """Base class every notification channel provider implements.

    A provider is created once per process and initialised lazily, before
    its first send, by the dispatcher. Subclasses must serialise their own
    connection state if it is not safe for concurrent use; the dispatcher
    does not lock around :meth:`send`.

    Attributes:
        code: Handler code the provider serves, e.g. ``email``.
    """

    code: str = "base"

    def __init__(self) -> None:
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        """Whether :meth:`init` has completed successfully."""
        return self._initialized

    async def init(self, config: AlertingConfig, settings: Settings) -> None:
        """Prepare the provider for sending.

        Args:
            config: Validated alerting configuration.
            settings: Process settings holding channel credentials.

        Raises:
            ConfigurationError: If required credentials are missing.
        """
        await self._setup(config, settings)
        self._initialized = True

    @abstractmethod
    async def _setup(self, config: AlertingConfig, settings: Settings) -> None:
        """Validate settings and open any clients (provider specific)."""

    @abstractmethod
    async def send(self, endpoint: str, alert_level: str, alert_code: str, text: str) -> None:
        """Deliver one message to one endpoint.

        Raises:
            TransportError: If the backend could not be reached or rejected
                the message after any internal retries.
        """

    async def close(self) -> None:
        """Release any resources held by the provider (override if needed)."""
        self._initialized = False


def require_text(**values: str | None) -> None:
    """Raise ValueError for the first empty argument."""
    for name, value in values.items():
        if not value:
            raise ValueError(f"{name} must not be empty")
