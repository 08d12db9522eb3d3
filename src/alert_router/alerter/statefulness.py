"""Deduplication state stores.

A store remembers that an alert code was sent, for a limited time. The
dedup decision uses :meth:`Statefulness.claim`, which checks and records in
one atomic step; ``was_sent`` / ``mark_sent`` remain available for callers
that need to inspect or seed state separately.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class Statefulness(Protocol):
    """Protocol for deduplication state stores."""

    async def was_sent(self, alert_code: str) -> bool:
        """Return True if an unexpired "sent" marker exists for the code."""
        ...

    async def mark_sent(self, alert_code: str, window_seconds: int) -> None:
        """Record a "sent" marker expiring after ``window_seconds``."""
        ...

    async def claim(self, alert_code: str, window_seconds: int) -> bool:
        """Record a marker only if none exists.

        Returns:
            True if the marker was created by this call, False if one
            already existed.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the store."""
        ...


class RedisStatefulness:
    """Redis-backed store using TTL keys.

    Markers are stored under ``alert:sent:<alert_code>``; the alert level is
    not part of the key.
    """

    KEY_PREFIX_SENT = "alert:sent:"
    SENT_VALUE = "sent"

    def __init__(self, redis: Redis) -> None:
        """Initialize the store.

        Args:
            redis: Redis client (async).
        """
        self.redis = redis

    @classmethod
    def from_url(cls, url: str) -> RedisStatefulness:
        """Create a store connected to a Redis URL."""
        return cls(Redis.from_url(url, decode_responses=True))

    def _key(self, alert_code: str) -> str:
        return f"{self.KEY_PREFIX_SENT}{alert_code}"

    async def was_sent(self, alert_code: str) -> bool:
        exists = await self.redis.exists(self._key(alert_code))
        return bool(exists)

    async def mark_sent(self, alert_code: str, window_seconds: int) -> None:
        await self.redis.set(self._key(alert_code), self.SENT_VALUE, ex=window_seconds)

    async def claim(self, alert_code: str, window_seconds: int) -> bool:
        # SET NX returns None when the key already exists
        was_set = await self.redis.set(
            self._key(alert_code), self.SENT_VALUE, nx=True, ex=window_seconds
        )
        return bool(was_set)

    async def close(self) -> None:
        await self.redis.aclose()


class MemoryStatefulness:
    """In-process store for single-process runs and tests.

    Not shared between processes, so it only suppresses duplicates seen by
    the same process.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._expiry: dict[str, float] = {}

    def _live(self, alert_code: str) -> bool:
        expires_at = self._expiry.get(alert_code)
        if expires_at is None:
            return False
        if expires_at <= self._clock():
            del self._expiry[alert_code]
            return False
        return True

    def _sweep(self) -> None:
        now = self._clock()
        expired = [code for code, expires_at in self._expiry.items() if expires_at <= now]
        for code in expired:
            del self._expiry[code]

    async def was_sent(self, alert_code: str) -> bool:
        return self._live(alert_code)

    async def mark_sent(self, alert_code: str, window_seconds: int) -> None:
        self._sweep()
        self._expiry[alert_code] = self._clock() + window_seconds

    async def claim(self, alert_code: str, window_seconds: int) -> bool:
        # No await between check and set, so this is atomic on the event loop
        self._sweep()
        if self._live(alert_code):
            return False
        self._expiry[alert_code] = self._clock() + window_seconds
        return True

    async def close(self) -> None:
        self._expiry.clear()
