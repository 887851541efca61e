"""Decorator that memoizes producer functions through QueryCache.get_or_set."""

from __future__ import annotations

import functools
from typing import Any, Awaitable, Callable, Optional

from .cache import QueryCache
from .keys import make_key, namespace_pattern

KeyBuilder = Callable[..., str]


def cached(
    cache: QueryCache,
    *,
    namespace: Optional[str] = None,
    ttl: Optional[float] = None,
    key_builder: Optional[KeyBuilder] = None,
) -> Callable[[Callable[..., Any]], Callable[..., Awaitable[Any]]]:
    """Cache a sync or async producer in `cache`.

    The wrapper is always a coroutine function. Keys default to
    make_key(namespace, *args, **kwargs), with the function's qualified
    name as namespace. key_builder receives the call's args/kwargs and
    replaces that default.

    Example:
        @cached(registry.get_instance("short_term"), namespace="attendance-risk")
        async def attendance_risk(student_id: int, *, term: str) -> float:
            ...
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Awaitable[Any]]:
        ns = namespace or func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            if key_builder is not None:
                key = key_builder(*args, **kwargs)
            else:
                key = make_key(ns, *args, **kwargs)
            return await cache.get_or_set(key, lambda: func(*args, **kwargs), ttl)

        def invalidate_all() -> int:
            # Anchored: "risk" must not take "attendance-risk" keys with it
            return cache.invalidate(namespace_pattern(ns))

        wrapper.cache = cache  # type: ignore[attr-defined]
        wrapper.invalidate_all = invalidate_all  # type: ignore[attr-defined]
        return wrapper

    return decorator
