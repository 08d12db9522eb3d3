"""Alerting layer - Subscription routing, deduplication and delivery."""

from alert_router.alerter.channels import (
    ChannelProvider,
    EmailChannel,
    SlackChannel,
    SmsChannel,
    default_providers,
)
from alert_router.alerter.dedup import Deduplicator
from alert_router.alerter.dispatcher import (
    AlertDispatcher,
    ProviderEntry,
    ProviderRegistry,
    ProviderState,
)
from alert_router.alerter.endpoints import resolve_endpoints
from alert_router.alerter.errors import (
    AlertRouterError,
    ConfigurationError,
    TransportError,
    UnknownHandlerError,
)
from alert_router.alerter.loader import file_loader, load_config_file, parse_config
from alert_router.alerter.models import AlertEvent, DispatchResult, TextOverride
from alert_router.alerter.rules import (
    AlertingConfig,
    Contact,
    DeduplicateConfig,
    DeduplicateSpecific,
    EndpointConfig,
    HandlerGroup,
    HandlerRule,
    Subscription,
)
from alert_router.alerter.service import AlertService
from alert_router.alerter.statefulness import (
    MemoryStatefulness,
    RedisStatefulness,
    Statefulness,
)

__all__ = [
    "AlertDispatcher",
    "AlertEvent",
    "AlertRouterError",
    "AlertService",
    "AlertingConfig",
    "ChannelProvider",
    "ConfigurationError",
    "Contact",
    "DeduplicateConfig",
    "DeduplicateSpecific",
    "Deduplicator",
    "DispatchResult",
    "EmailChannel",
    "EndpointConfig",
    "HandlerGroup",
    "HandlerRule",
    "MemoryStatefulness",
    "ProviderEntry",
    "ProviderRegistry",
    "ProviderState",
    "RedisStatefulness",
    "SlackChannel",
    "SmsChannel",
    "Statefulness",
    "Subscription",
    "TextOverride",
    "TransportError",
    "UnknownHandlerError",
    "default_providers",
    "file_loader",
    "load_config_file",
    "parse_config",
    "resolve_endpoints",
]
