from __future__ import annotations


class QueryCacheError(Exception):
    """Base error for the query cache."""


class ValidationError(QueryCacheError):
    """Raised when a cache configuration or argument is invalid."""
