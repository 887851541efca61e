"""Stable composite cache keys.

Producers key their results by entity id plus parameters. make_key puts
the namespace first so namespace_pattern(namespace) drops one producer's
entries without touching the others.
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import quote

from .errors import ValidationError


def _encode(value: Any) -> str:
    # ":", "?", "&" and "=" are separators; escaping them keeps keys unambiguous
    return quote(str(value), safe="")


def make_key(namespace: str, *parts: Any, **params: Any) -> str:
    """Build `namespace:part1:part2?a=1&b=2` with params sorted by name.

    Parts, param names and values are percent-encoded, so ("1:2",) and
    (1, 2) give different keys. Params whose value is None are left out so
    optional filters do not change the key.
    """
    ns = (namespace or "").strip()
    if not ns:
        raise ValidationError("Cache key namespace must be non-empty")

    key = ":".join([_encode(ns), *(_encode(p) for p in parts)])

    query = "&".join(
        f"{_encode(name)}={_encode(params[name])}"
        for name in sorted(params)
        if params[name] is not None
    )
    return f"{key}?{query}" if query else key


def namespace_pattern(namespace: str) -> "re.Pattern[str]":
    """Regex matching exactly the keys make_key builds for `namespace`."""
    ns = (namespace or "").strip()
    if not ns:
        raise ValidationError("Cache key namespace must be non-empty")
    return re.compile(rf"^{re.escape(_encode(ns))}(?:[:?]|$)")
