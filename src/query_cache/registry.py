"""Directory of named QueryCache instances.

A CacheRegistry is an explicit context object: services receive one and
look caches up by name, so unrelated call sites sharing a logical name
reuse one instance. get_default_registry() exists for call sites that
cannot be injected.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .cache import QueryCache
from .config import DEFAULT_POLICY, LONG_TERM_POLICY, SHORT_TERM_POLICY, CacheConfig
from .models import CacheStats

logger = logging.getLogger(__name__)

PRESETS: Dict[str, CacheConfig] = {
    "default": DEFAULT_POLICY,
    "short_term": SHORT_TERM_POLICY,
    "long_term": LONG_TERM_POLICY,
}


class CacheRegistry:
    def __init__(self) -> None:
        self._instances: Dict[str, QueryCache] = {}

    @classmethod
    def with_presets(cls) -> "CacheRegistry":
        """Registry pre-populated with the default, short_term and long_term caches."""
        registry = cls()
        for name, config in PRESETS.items():
            registry.get_instance(name, config)
        return registry

    def get_instance(self, name: str, config: Optional[CacheConfig] = None) -> QueryCache:
        """Return the cache registered as `name`, creating it on first use.

        `config` only applies when the cache is created; later calls with a
        different config get the existing instance unchanged.
        """
        cache = self._instances.get(name)
        if cache is not None:
            if config is not None and config != cache.config:
                logger.debug("Ignoring new config for existing cache %r", name)
            return cache

        cache = QueryCache(config, name=name)
        self._instances[name] = cache
        logger.debug("Registered cache %r", name)
        return cache

    def clear_all(self) -> None:
        """Destroy every registered cache and forget them."""
        for cache in self._instances.values():
            cache.destroy()
        self._instances.clear()

    def get_stats(self, name: str) -> Optional[CacheStats]:
        cache = self._instances.get(name)
        return cache.get_stats() if cache is not None else None

    def get_all_stats(self) -> Dict[str, CacheStats]:
        return {name: cache.get_stats() for name, cache in self._instances.items()}

    def names(self) -> List[str]:
        return list(self._instances)

    def __contains__(self, name: object) -> bool:
        return name in self._instances

    def __len__(self) -> int:
        return len(self._instances)


_default_registry: Optional[CacheRegistry] = None


def get_default_registry() -> CacheRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = CacheRegistry.with_presets()
    return _default_registry


def reset_default_registry() -> None:
    global _default_registry
    if _default_registry is not None:
        _default_registry.clear_all()
    _default_registry = None
