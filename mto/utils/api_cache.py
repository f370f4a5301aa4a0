"""
In-memory TTL cache for feed responses and predictions.

Two instances are used by the slate service:
- feed cache, keyed by (source, sport, window), short TTL (~2 minutes)
- prediction cache, keyed by (game_id, as_of_date), TTL ~10 minutes

Entries are immutable once written: a write creates a new CacheEntry and
replaces any previous one with a single dict assignment, never mutating a
cached value in place. The clock is injected so TTL behaviour is testable.

Usage:
    cache = TTLCache(ttl_seconds=120, name="feeds")

    games = await cache.get_or_fetch(
        key=("espn", "NBA", window.key()),
        fetch_fn=lambda: adapter.fetch(...),
        source="espn",
    )

    cache.evict(("espn", "NBA", window.key()))
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Hashable, Optional, TypeVar

from mto.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and its metadata."""
    key: Hashable
    data: Any
    created_at: float  # clock reading at write time
    ttl_seconds: float
    source: str  # feed or component that produced the value


class TTLCache:
    """
    Process-local TTL cache.

    Not persisted; safe for concurrent asyncio tasks because every read and
    write is a single dict operation with no await in between.
    """

    def __init__(
        self,
        ttl_seconds: float,
        name: str = "cache",
        clock: Optional[Clock] = None,
    ):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must not be negative")
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock: Clock = clock or time.monotonic
        self._entries: dict[Hashable, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def _is_valid(self, entry: CacheEntry) -> bool:
        age_seconds = self._clock() - entry.created_at
        return age_seconds < entry.ttl_seconds

    def get(self, key: Hashable) -> Optional[Any]:
        """Get cached data if still fresh.

        Args:
            key: Cache key

        Returns:
            Cached data, or None if missing or expired
        """
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if not self._is_valid(entry):
            # Only drop the entry we looked at; a concurrent writer may have replaced it
            if self._entries.get(key) is entry:
                del self._entries[key]
            self._misses += 1
            return None
        self._hits += 1
        logger.debug(f"Cache HIT ({self.name}): {key}")
        return entry.data

    def set(
        self,
        key: Hashable,
        data: Any,
        ttl_seconds: Optional[float] = None,
        source: str = "unknown",
    ) -> None:
        """Store data under key, replacing any previous entry.

        Args:
            key: Cache key
            data: Value to cache (treated as immutable)
            ttl_seconds: Override of the cache-wide TTL
            source: Producer of the value, for stats and source invalidation
        """
        self._entries[key] = CacheEntry(
            key=key,
            data=data,
            created_at=self._clock(),
            ttl_seconds=self.ttl_seconds if ttl_seconds is None else ttl_seconds,
            source=source,
        )
        logger.debug(f"Cache SET ({self.name}): {key}")

    async def get_or_fetch(
        self,
        key: Hashable,
        fetch_fn: Callable[[], Awaitable[T]],
        source: str = "unknown",
        force_refresh: bool = False,
        should_cache: Optional[Callable[[T], bool]] = None,
    ) -> T:
        """Get from cache or fetch and cache.

        Args:
            key: Cache key
            fetch_fn: Async function producing the value on a miss
            source: Producer name recorded on the entry
            force_refresh: Bypass the cached value
            should_cache: Predicate deciding whether a fetched value is stored;
                failures should not be cached

        Returns:
            Cached or freshly fetched data
        """
        if not force_refresh:
            cached = self.get(key)
            if cached is not None:
                return cached

        logger.debug(f"Cache MISS ({self.name}): {key} - fetching")
        data = await fetch_fn()

        if should_cache is None or should_cache(data):
            self.set(key, data, source=source)

        return data

    def evict(self, key: Hashable) -> bool:
        """Remove a cache entry.

        Returns:
            True if an entry was removed
        """
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug(f"Cache EVICT ({self.name}): {key}")
        return removed

    def evict_source(self, source: str) -> int:
        """Remove every entry written by a source.

        Returns:
            Number of entries removed
        """
        keys_to_remove = [k for k, v in self._entries.items() if v.source == source]
        for key in keys_to_remove:
            self._entries.pop(key, None)
        if keys_to_remove:
            logger.info(f"Evicted {len(keys_to_remove)} {self.name} entries for source: {source}")
        return len(keys_to_remove)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics (entry count by source, hits, misses)."""
        by_source: dict[str, int] = {}
        for entry in self._entries.values():
            by_source[entry.source] = by_source.get(entry.source, 0) + 1

        return {
            "name": self.name,
            "ttl_seconds": self.ttl_seconds,
            "entries": len(self._entries),
            "by_source": by_source,
            "hits": self._hits,
            "misses": self._misses,
        }

    def clear_all(self) -> int:
        """Clear all cache entries.

        Returns:
            Number of entries cleared
        """
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Cleared {count} {self.name} cache entries")
        return count

    def __len__(self) -> int:
        return len(self._entries)
