"""
In-memory TTL cache for resolution results.

Entries expire after a TTL (24 hours by default). Expired entries are evicted
lazily when read, and eagerly by sweep_periodically() so memory stays bounded
even for keys that are never read again.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

# Default cache expiry (24 hours)
DEFAULT_CACHE_TTL = 86400

# How often the background sweep runs (1 hour)
DEFAULT_SWEEP_INTERVAL = 3600


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    created_at: float
    expires_at: float


class ResultCache:
    """
    Key-value store with per-entry expiry.

    Usage:
        cache = ResultCache(ttl=3600)
        cache.set("example.com", result)
        cache.get("example.com")  # -> result, or None once expired
    """

    def __init__(
        self,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() > entry.expires_at:
            del self._entries[key]
            return None

        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value, replacing any existing entry for the key."""
        now = self._clock()
        self._entries[key] = CacheEntry(
            value=value,
            created_at=now,
            expires_at=now + (ttl if ttl is not None else self._ttl),
        )

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def clean_expired(self) -> int:
        """Evict every expired entry. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> dict:
        return {
            "size": len(self._entries),
            "ttl": self._ttl,
            "keys": list(self._entries),
        }

    def __len__(self) -> int:
        return len(self._entries)


async def sweep_periodically(cache: ResultCache, interval: float = DEFAULT_SWEEP_INTERVAL) -> None:
    """Evict expired entries every `interval` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        removed = cache.clean_expired()
        if removed:
            logger.debug("Cache sweep evicted %d expired entries", removed)
