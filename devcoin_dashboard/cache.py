"""Key/value cache with per-entry expiration."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

ORGANIZATION_MEMBERS_KEY = "organization_members"
LEADERBOARD_KEY_PREFIX = "leaderboard_"

MEMBERS_TTL = 5 * 60 * 60
LEADERBOARD_TTL = 2 * 60 * 60


def leaderboard_key(timeframe: str) -> str:
    """Cache key for a leaderboard, e.g. ``leaderboard_month``."""
    return f"{LEADERBOARD_KEY_PREFIX}{timeframe}"


class Cache(Protocol):
    """Interface the aggregators consume."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: float) -> None: ...

    def has(self, key: str) -> bool: ...

    def invalidate(self, key: str) -> None: ...

    def clear(self) -> None: ...


@dataclass
class CacheEntry:
    """A cached value with its creation time and lifetime (seconds)."""

    data: Any
    timestamp: float
    expires_in: float

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.expires_in


class CacheService:
    """In-memory cache. Expiry is checked lazily when an entry is read."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """Initialize the cache.

        Args:
            clock: Returns the current time in seconds (monotonic)
        """
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def _live_entry(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            logger.debug(f"Cache for {key} has expired")
            del self._entries[key]
            return None

        return entry

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""
        entry = self._live_entry(key)
        if entry is None:
            return None
        logger.debug(f"Cache hit for {key}")
        return entry.data

    def set(self, key: str, value: Any, ttl: float) -> None:
        """Store a value that expires ``ttl`` seconds from now."""
        logger.debug(f"Setting cache for {key} with expiration {ttl}s")
        self._entries[key] = CacheEntry(data=value, timestamp=self._clock(), expires_in=ttl)

    def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def time_remaining(self, key: str) -> float:
        """Seconds until the entry expires, or 0 if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return 0.0
        return max(0.0, entry.expires_in - (self._clock() - entry.timestamp))

    def clear(self) -> None:
        self._entries.clear()
