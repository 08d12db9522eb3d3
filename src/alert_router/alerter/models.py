"""Data models for the alerter module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _normalize_key(key: str) -> str:
    return key.replace("_", "").replace("-", "").lower()


class CaseInsensitiveModel(BaseModel):
    """Base model accepting input keys in any case.

    ``alertCode``, ``AlertCode``, ``alert_code`` and ``ALERTCODE`` all bind to
    the same field. Unknown keys are ignored.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _match_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        lookup: dict[str, str] = {}
        for name, info in cls.model_fields.items():
            lookup[_normalize_key(name)] = name
            if info.alias:
                lookup[_normalize_key(info.alias)] = name

        matched: dict[str, Any] = {}
        for key, value in data.items():
            if not isinstance(key, str):
                continue
            name = lookup.get(_normalize_key(key))
            if name is not None and name not in matched:
                matched[name] = value
        return matched


class TextOverride(CaseInsensitiveModel):
    """Handler-specific message text supplied with an alert.

    Attributes:
        handler_code: Handler (channel) the text applies to.
        text: Message text to use instead of the alert's default text.
    """

    handler_code: str = Field(alias="handler")
    text: str | None = None


class AlertEvent(CaseInsensitiveModel):
    """An incoming alert, immutable for the duration of one dispatch cycle.

    Parsed from the alert input document::

        {"alertLevel": "Critical", "alertCode": "PlayDied",
         "defaultText": "...", "textFor": [{"handler": "sms", "text": "..."}]}

    Attributes:
        alert_level: Severity level, e.g. ``Critical``.
        alert_code: Code identifying the alert; also the deduplication key.
        default_text: Message text used when no override applies.
        text_overrides: Ordered per-handler text overrides.
    """

    alert_level: str | None = None
    alert_code: str | None = None
    default_text: str | None = None
    text_overrides: tuple[TextOverride, ...] = Field(default=(), alias="textFor")

    @field_validator("text_overrides", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return () if v is None else v

    def text_for(self, handler_code: str) -> str | None:
        """Select the message text for a handler.

        The first override whose handler matches case-insensitively wins;
        a missing or empty override falls back to ``default_text``.
        """
        wanted = handler_code.casefold()
        override = next(
            (o for o in self.text_overrides if o.handler_code.casefold() == wanted),
            None,
        )
        if override is not None and override.text:
            return override.text
        return self.default_text


@dataclass
class DispatchResult:
    """Outcome of handling one alert at the invocation boundary.

    Per-handler detail is only available in the logs.
    """

    success: bool
    summary: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def status_code(self) -> int:
        """HTTP-style status for callers that expose the result over HTTP."""
        return 200 if self.success else 500
