"""Exceptions raised by the alert routing engine."""

from __future__ import annotations


class AlertRouterError(Exception):
    """Base exception for alert routing errors."""

    pass


class ConfigurationError(AlertRouterError):
    """Raised when the alerting configuration or provider settings are invalid."""

    pass


class UnknownHandlerError(AlertRouterError):
    """Raised when a subscription references a handler with no registered provider."""

    def __init__(self, handler_code: str) -> None:
        self.handler_code = handler_code
        super().__init__(f"Unknown handler: {handler_code}")


class TransportError(AlertRouterError):
    """Raised by a channel provider when delivery to its backend fails."""

    pass
