"""Bounded in-memory query cache with TTL expiry and LRU eviction.

Memoizes expensive derived computations (prediction scores, forecasts)
behind opaque string keys. Entries expire lazily on access and are also
reclaimed by an optional asyncio sweep task; when the store is full the
least-recently-used entry makes room for a new key.

All operations run to completion on the event loop thread. Only
get_or_set suspends (while awaiting the caller's factory), so other
operations may interleave with an in-flight computation.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
import re
import time
from collections import OrderedDict
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

from .config import CacheConfig
from .errors import ValidationError
from .models import CacheEntry, CacheStats, WarmEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING: Any = object()

Factory = Callable[[], Union[T, Awaitable[T]]]
WarmItem = Union[WarmEntry, Tuple[str, Any], Mapping[str, Any]]


class QueryCache(Generic[T]):
    """Keyed store of timestamped values with usage metadata.

    Key behavior:
      - get/has apply lazy expiry; has never touches stats or metadata.
      - set evicts exactly one LRU entry when full and the key is new.
      - get_or_set computes on miss and stores the result; failures
        propagate and leave the key unset.
      - destroy stops the sweep and turns the instance into an
        always-miss empty store.
    """

    def __init__(self, config: Optional[CacheConfig] = None, *, name: str = "default") -> None:
        self._config = config or CacheConfig()
        self._name = name
        # Ordered least- to most-recently used
        self._store: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._destroyed = False
        self._cleanup_task: Optional[asyncio.Task] = None
        self._inflight: Dict[str, asyncio.Task] = {}

        self._ensure_cleanup()

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for `key`, or `default` on miss/expiry."""
        if self._destroyed:
            return default

        entry = self._store.get(key)
        if entry is None:
            self._record_miss()
            return default

        now = time.monotonic()
        if entry.is_expired(now):
            del self._store[key]
            self._record_miss()
            return default

        entry.touch(now)
        self._store.move_to_end(key, last=True)
        self._record_hit()
        return entry.data

    def has(self, key: str) -> bool:
        if self._destroyed:
            return False

        entry = self._store.get(key)
        if entry is None:
            return False

        if entry.is_expired(time.monotonic()):
            del self._store[key]
            return False
        return True

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def keys(self) -> List[str]:
        # Physical keys: expired-but-unswept entries are included
        return list(self._store)

    def size(self) -> int:
        return len(self._store)

    def __len__(self) -> int:
        return len(self._store)

    def get_stats(self) -> CacheStats:
        total = self._hits + self._misses
        hit_rate = self._hits / total if total > 0 else 0.0
        return CacheStats(
            total_hits=self._hits,
            total_misses=self._misses,
            hit_rate=hit_rate,
            total_entries=len(self._store),
            size=len(self._store),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """Store `value` under `key`, expiring `ttl` seconds from now.

        Without `ttl` the configured default_ttl applies. Overwriting resets
        the entry's timestamps and hit count.
        """
        if self._destroyed:
            logger.debug("Ignoring set(%r) on destroyed cache %r", key, self._name)
            return

        effective_ttl = self._effective_ttl(ttl)
        self._ensure_cleanup()

        if key not in self._store and len(self._store) >= self._config.max_size:
            self._evict_lru()

        now = time.monotonic()
        self._store[key] = CacheEntry(
            data=value,
            inserted_at=now,
            ttl=effective_ttl,
            last_accessed_at=now,
        )
        self._store.move_to_end(key, last=True)

    def delete(self, key: str) -> bool:
        return self._store.pop(key, _MISSING) is not _MISSING

    def clear(self) -> None:
        """Remove all entries and reset the hit/miss counters."""
        self._store.clear()
        self._hits = 0
        self._misses = 0

    def invalidate(self, pattern: Union[str, "re.Pattern[str]"]) -> int:
        """Delete keys containing `pattern` (str) or matching it (compiled regex).

        Returns the number of keys deleted.
        """
        if isinstance(pattern, str):
            matched = [key for key in self._store if pattern in key]
        elif isinstance(pattern, re.Pattern):
            matched = [key for key in self._store if pattern.search(key)]
        else:
            raise ValidationError(
                f"invalidate() expects str or compiled regex, got {type(pattern).__name__}"
            )

        for key in matched:
            del self._store[key]

        if matched:
            logger.debug("Invalidated %d entries in cache %r", len(matched), self._name)
        return len(matched)

    def invalidate_prefix(self, prefix: str) -> int:
        # Substring match, same as invalidate(str): not anchored at the start
        return self.invalidate(prefix)

    def warm(self, entries: Iterable[WarmItem]) -> None:
        """Populate absent keys; live entries keep their value and metadata."""
        for item in entries:
            key, data = _unpack_warm_item(item)
            if not self.has(key):
                self.set(key, data)

    async def get_or_set(
        self,
        key: str,
        factory: Factory[T],
        ttl: Optional[float] = None,
    ) -> T:
        """Return the cached value for `key`, computing it with `factory` on miss.

        `factory` may be a plain callable or return an awaitable. Its result
        is stored with `ttl` once it settles; if it raises, the exception
        propagates and nothing is stored.

        Concurrent misses on the same key each call `factory` unless the
        cache was configured with single_flight=True, in which case they
        share one in-flight computation.
        """
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached

        # Reject a bad ttl before running the factory
        if ttl is not None:
            self._effective_ttl(ttl)

        if not self._config.single_flight or self._destroyed:
            return await self._compute(key, factory, ttl)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._compute(key, factory, ttl))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._release_inflight(k, t))
        else:
            logger.debug("Joining in-flight computation for %r in cache %r", key, self._name)

        # Shield so one cancelled caller does not cancel the shared computation
        return await asyncio.shield(task)

    # ------------------------------------------------------------------
    # Lifecycle / background sweep
    # ------------------------------------------------------------------

    def cleanup(self) -> int:
        """Delete every expired entry; returns the number removed."""
        now = time.monotonic()
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            del self._store[key]

        if expired:
            logger.debug("Swept %d expired entries from cache %r", len(expired), self._name)
        return len(expired)

    def start_cleanup(self) -> bool:
        """Start the sweep task if possible; returns whether one is running.

        Needs a running event loop. Without one the sweep starts on the
        first set() or get_or_set() made from inside a loop.
        """
        self._ensure_cleanup()
        return self._cleanup_task is not None

    def stop_cleanup(self) -> None:
        task = self._cleanup_task
        if task is None:
            return

        self._cleanup_task = None
        if not task.done() and not task.get_loop().is_closed():
            task.cancel()
        logger.info("Stopped sweep for cache %r", self._name)

    def destroy(self) -> None:
        """Stop the sweep and clear the store; the instance stays inert afterwards."""
        self.stop_cleanup()
        self.clear()
        self._inflight.clear()
        self._destroyed = True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_cleanup(self) -> None:
        if self._destroyed or self._config.cleanup_interval <= 0:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        task = self._cleanup_task
        if task is not None and not task.done() and task.get_loop() is loop:
            return

        self._cleanup_task = loop.create_task(
            self._cleanup_loop(), name=f"query-cache-sweep:{self._name}"
        )
        logger.info(
            "Started sweep for cache %r every %.1fs",
            self._name,
            self._config.cleanup_interval,
        )

    async def _cleanup_loop(self) -> None:
        interval = self._config.cleanup_interval
        while True:
            await asyncio.sleep(interval)
            try:
                self.cleanup()
            except Exception:
                logger.exception("Sweep failed for cache %r", self._name)

    async def _compute(self, key: str, factory: Factory[T], ttl: Optional[float]) -> T:
        result = factory()
        if inspect.isawaitable(result):
            result = await result
        self.set(key, result, ttl)
        return result

    def _release_inflight(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    def _evict_lru(self) -> None:
        if not self._store:
            return

        lru_key, _ = self._store.popitem(last=False)
        logger.debug("Evicted %r from cache %r", lru_key, self._name)

    def _effective_ttl(self, ttl: Optional[float]) -> float:
        if ttl is None:
            return self._config.default_ttl
        ttl = float(ttl)
        if not math.isfinite(ttl) or ttl <= 0:
            raise ValidationError(f"ttl must be a positive finite number, got {ttl}")
        return ttl

    def _record_hit(self) -> None:
        if self._config.enable_stats:
            self._hits += 1

    def _record_miss(self) -> None:
        if self._config.enable_stats:
            self._misses += 1

    def __repr__(self) -> str:
        return (
            f"QueryCache(name={self._name!r}, size={len(self._store)}, "
            f"max_size={self._config.max_size}, default_ttl={self._config.default_ttl})"
        )


def _unpack_warm_item(item: WarmItem) -> Tuple[str, Any]:
    if isinstance(item, WarmEntry):
        return item.key, item.data
    if isinstance(item, Mapping):
        try:
            return item["key"], item["data"]
        except KeyError as e:
            raise ValidationError(f"warm() mapping is missing {e.args[0]!r}") from e
    if isinstance(item, tuple) and len(item) == 2:
        return item[0], item[1]
    raise ValidationError(f"Unsupported warm() entry: {item!r}")
