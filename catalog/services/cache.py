"""
ResponseCache - time-boxed last-good-value store.

Used as a fallback when the upstream cannot be reached. An entry is valid
while ``now - timestamp < ttl``; a stale entry is logically absent even
though it stays in memory until overwritten.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    data: T
    timestamp: float
    ttl: float

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_valid(self, now: float) -> bool:
        """Check if entry is still inside its TTL window."""
        return self.age(now) < self.ttl


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    stale: int = 0
    writes: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stale": self.stale,
            "writes": self.writes,
            "hit_rate": f"{self.hit_rate:.2%}",
        }


class ResponseCache(Generic[T]):
    """
    Single-slot cache with a fixed TTL.

    Usage:
        cache: ResponseCache[list[Product]] = ResponseCache(ttl=300)
        cache.set(products)
        products = cache.get()  # None once 300s have passed
    """

    def __init__(
        self,
        ttl: float = 300.0,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.name = name
        self._clock = clock
        self._entry: CacheEntry[T] | None = None
        self._stats = CacheStats()

    def get(self) -> T | None:
        """Return the cached value, or None if missing or stale."""
        entry = self._entry
        if entry is None:
            self._stats.misses += 1
            logger.debug(f"[ResponseCache:{self.name}] MISS")
            return None

        if not entry.is_valid(self._clock()):
            self._stats.misses += 1
            self._stats.stale += 1
            logger.debug(f"[ResponseCache:{self.name}] STALE")
            return None

        self._stats.hits += 1
        logger.debug(f"[ResponseCache:{self.name}] HIT")
        return entry.data

    def set(self, data: T) -> None:
        self._entry = CacheEntry(data=data, timestamp=self._clock(), ttl=self.ttl)
        self._stats.writes += 1
        logger.debug(f"[ResponseCache:{self.name}] SET (TTL: {self.ttl}s)")

    def invalidate(self) -> None:
        self._entry = None
        logger.debug(f"[ResponseCache:{self.name}] INVALIDATE")

    def peek(self) -> CacheEntry[T] | None:
        """Return the raw entry, stale or not, without touching stats."""
        return self._entry

    def age(self) -> float | None:
        """Seconds since the last write, or None if empty."""
        if self._entry is None:
            return None
        return self._entry.age(self._clock())

    def get_stats(self) -> CacheStats:
        """Get cache statistics."""
        return self._stats
