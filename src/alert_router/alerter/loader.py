"""Loading of the alerting configuration document.

The document is JSON with top-level keys ``contacts``, ``subscriptions``,
``handlerGroups`` and ``deduplicate``; keys are matched case-insensitively.
Every failure (unreadable file, malformed JSON, a null section, a null
list element) is reported as a :class:`ConfigurationError`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from alert_router.alerter.errors import ConfigurationError
from alert_router.alerter.rules import AlertingConfig

logger = logging.getLogger(__name__)

ConfigLoader = Callable[[], Awaitable[AlertingConfig]]


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(loc) for loc in item["loc"]) or "(root)"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def parse_config(document: Mapping[str, Any]) -> AlertingConfig:
    """Validate an already-parsed configuration document.

    Raises:
        ConfigurationError: If a section is null or malformed.
    """
    if not isinstance(document, Mapping):
        raise ConfigurationError("Alerting configuration must be a JSON object")
    try:
        config = AlertingConfig.model_validate(dict(document))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid alerting configuration: {_describe(e)}") from e

    logger.info(
        f"Loaded alerting configuration: {len(config.contacts)} contacts, "
        f"{len(config.subscriptions)} subscriptions, "
        f"{len(config.handler_groups)} handler groups"
    )
    return config


def parse_config_json(text: str) -> AlertingConfig:
    """Parse and validate a JSON configuration document."""
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Alerting configuration is not valid JSON: {e}") from e
    return parse_config(document)


def load_config_file(path: str | Path) -> AlertingConfig:
    """Read and validate a configuration document from disk."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Could not read alerting configuration {path}: {e}") from e
    return parse_config_json(text)


def file_loader(path: str | Path) -> ConfigLoader:
    """Create an async loader reading the configuration from a file.

    The file is read in a worker thread so the event loop is not blocked.
    """

    async def load() -> AlertingConfig:
        return await asyncio.to_thread(load_config_file, path)

    return load
