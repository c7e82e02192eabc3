"""
Simple in-memory TTL cache for dashboard read-models.

Values are copied on the way in and out, so callers can mutate what they
get back without touching other readers.
"""
import copy
import time
from typing import Any

_cache: dict[str, tuple[float, Any]] = {}
_MISS = object()

# Which cache key prefixes depend on which collection.
# A lead mutation doesn't need to drop commission reports etc.
_COLLECTION_PREFIXES: dict[str, list[str]] = {
    "orders": ["report_summary", "report_commissions", "report_cancellations"],
    "leads": ["report_summary"],
    "commission_settings": ["report_commissions"],
}


def get_cached(key: str):
    """Return cached value if still valid, else _MISS sentinel."""
    now = time.time()
    if key in _cache:
        expires, value = _cache[key]
        if now < expires:
            return copy.deepcopy(value)
    return _MISS


def set_cached(key: str, value: Any, seconds: int = 60):
    """Store a value in cache with TTL."""
    _cache[key] = (time.time() + seconds, copy.deepcopy(value))


def clear_cache():
    """Clear all cached values."""
    _cache.clear()


def clear_for_collection(collection: str):
    """Clear only cache entries derived from a given collection."""
    prefixes = _COLLECTION_PREFIXES.get(collection)
    if prefixes is None:
        return
    keys_to_remove = [
        k for k in _cache
        if any(k.startswith(p) for p in prefixes)
    ]
    for k in keys_to_remove:
        del _cache[k]
