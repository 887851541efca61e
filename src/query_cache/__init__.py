from .cache import QueryCache
from .config import (
    DEFAULT_POLICY,
    LONG_TERM_POLICY,
    SHORT_TERM_POLICY,
    CacheConfig,
    config_from_env,
)
from .decorators import cached
from .errors import QueryCacheError, ValidationError
from .keys import make_key, namespace_pattern
from .models import CacheEntry, CacheStats, WarmEntry
from .registry import CacheRegistry, get_default_registry, reset_default_registry

__all__ = [
    "CacheConfig",
    "CacheEntry",
    "CacheRegistry",
    "CacheStats",
    "DEFAULT_POLICY",
    "LONG_TERM_POLICY",
    "QueryCache",
    "QueryCacheError",
    "SHORT_TERM_POLICY",
    "ValidationError",
    "WarmEntry",
    "cached",
    "config_from_env",
    "get_default_registry",
    "make_key",
    "namespace_pattern",
    "reset_default_registry",
]
