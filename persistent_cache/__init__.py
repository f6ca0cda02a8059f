"""Persistent memoization: function results cached in SQLite across restarts."""

from persistent_cache.core.config import Settings
from persistent_cache.core.logging import configure_logging
from persistent_cache.services.memoize import (
    cached,
    invalidate_cache,
    memoize,
    memoize0,
    memoize1,
    memoize2,
    memoize3,
    memoize4,
    memoize5,
    memoize6,
    memoize7,
    memoize8,
    memoize9,
    memoize_n,
)

__all__ = [
    "Settings",
    "configure_logging",
    "cached",
    "invalidate_cache",
    "memoize",
    "memoize0",
    "memoize1",
    "memoize2",
    "memoize3",
    "memoize4",
    "memoize5",
    "memoize6",
    "memoize7",
    "memoize8",
    "memoize9",
    "memoize_n",
]
