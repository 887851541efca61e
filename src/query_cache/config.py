"""Cache configuration and environment helpers.

Provides small helpers to read typed environment variables, the immutable
CacheConfig used by every QueryCache, and the preset policies callers pick
from (default, short-term, long-term).
"""

from __future__ import annotations

import dataclasses
import math
import os
from dataclasses import dataclass
from typing import Any, Optional

from .errors import ValidationError


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return _parse_bool(raw)


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _coerce_bool(value: Any) -> bool:
    # "false" from a config file must not become True
    if isinstance(value, str):
        return _parse_bool(value)
    return bool(value)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class CacheConfig:
    """Settings fixed for the lifetime of a cache.

    Durations are seconds:
    - default_ttl: expiry window for entries written without an explicit ttl
    - max_size: hard cap on simultaneous entries
    - enable_stats: maintain hit/miss counters
    - cleanup_interval: background sweep period (0 disables the sweep)
    - single_flight: coalesce concurrent get_or_set computations per key
    """

    default_ttl: float = 300.0
    max_size: int = 1000
    enable_stats: bool = True
    cleanup_interval: float = 60.0
    single_flight: bool = False

    def __post_init__(self) -> None:
        # Coerce in place; frozen dataclasses need object.__setattr__
        object.__setattr__(self, "default_ttl", float(self.default_ttl))
        object.__setattr__(self, "max_size", int(self.max_size))
        object.__setattr__(self, "enable_stats", _coerce_bool(self.enable_stats))
        object.__setattr__(self, "cleanup_interval", float(self.cleanup_interval))
        object.__setattr__(self, "single_flight", _coerce_bool(self.single_flight))

        if not math.isfinite(self.default_ttl) or self.default_ttl <= 0:
            raise ValidationError(
                f"default_ttl must be a positive finite number, got {self.default_ttl}"
            )
        if self.max_size < 1:
            raise ValidationError(f"max_size must be at least 1, got {self.max_size}")
        if not math.isfinite(self.cleanup_interval) or self.cleanup_interval < 0:
            raise ValidationError(
                f"cleanup_interval must be a finite number >= 0, got {self.cleanup_interval}"
            )

    def replace(self, **changes) -> "CacheConfig":
        return dataclasses.replace(self, **changes)


# Preset policies for typical call sites
DEFAULT_POLICY = CacheConfig(default_ttl=300.0, max_size=500, cleanup_interval=60.0)
SHORT_TERM_POLICY = CacheConfig(default_ttl=60.0, max_size=200, cleanup_interval=30.0)
LONG_TERM_POLICY = CacheConfig(default_ttl=900.0, max_size=1000, cleanup_interval=120.0)


def config_from_env(
    prefix: str = "QUERY_CACHE_",
    base: Optional[CacheConfig] = None,
) -> CacheConfig:
    """Build a CacheConfig from `{prefix}*` environment variables over `base`.

    Malformed numeric values fall back to the base value.
    """
    base = base or CacheConfig()
    return CacheConfig(
        default_ttl=_env_float(f"{prefix}DEFAULT_TTL", base.default_ttl),
        max_size=_env_int(f"{prefix}MAX_SIZE", base.max_size),
        enable_stats=_env_bool(f"{prefix}ENABLE_STATS", base.enable_stats),
        cleanup_interval=_env_float(f"{prefix}CLEANUP_INTERVAL", base.cleanup_interval),
        single_flight=_env_bool(f"{prefix}SINGLE_FLIGHT", base.single_flight),
    )
