"""Dataclasses shared by the cache engine and the registry.

CacheEntry holds one cached value plus its usage metadata; CacheStats is
the immutable snapshot returned by get_stats(); WarmEntry describes one
key/value pair handed to warm().
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Generic, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    # Timestamps are time.monotonic() readings
    data: T
    inserted_at: float
    ttl: float
    hit_count: int = 0
    last_accessed_at: float = 0.0

    def __post_init__(self) -> None:
        if self.last_accessed_at < self.inserted_at:
            self.last_accessed_at = self.inserted_at

    def is_expired(self, now: float) -> bool:
        # Still live at exactly inserted_at + ttl
        return now - self.inserted_at > self.ttl

    def touch(self, now: float) -> None:
        self.hit_count += 1
        self.last_accessed_at = now


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time counters for one cache.

    hit_rate is total_hits / (total_hits + total_misses), or 0.0 before
    the first request.
    """

    total_hits: int
    total_misses: int
    hit_rate: float
    total_entries: int
    size: int

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class WarmEntry(Generic[T]):
    key: str
    data: T
