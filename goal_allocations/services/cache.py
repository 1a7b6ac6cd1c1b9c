"""
Query Cache

Registry and allocation reads are cached by key and refetched only
after the key is invalidated. Writers invalidate the keys whose data
they changed: a saved allocation set changes goal progress, so a save
invalidates both "goals" and "goals_allocations".
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

T = TypeVar("T")

ACCOUNTS_KEY = "accounts"
GOALS_KEY = "goals"
ALLOCATIONS_KEY = "goals_allocations"

logger = structlog.get_logger(__name__)


class QueryCache:
    """Keyed cache of async query results with explicit invalidation."""

    def __init__(self):
        self._entries: dict[str, Any] = {}
        self._fetch_counts: dict[str, int] = {}

    async def fetch(self, key: str, fetcher: Callable[[], Awaitable[T]]) -> T:
        """
        Return the cached value for `key`, calling `fetcher` on a miss.

        Errors from `fetcher` propagate and nothing is cached.
        """
        if key in self._entries:
            return self._entries[key]

        value = await fetcher()
        self._entries[key] = value
        self._fetch_counts[key] = self._fetch_counts.get(key, 0) + 1
        logger.debug("query_cache_filled", key=key)
        return value

    def invalidate(self, *keys: str) -> list[str]:
        """Mark keys stale. Returns the keys that were actually cached."""
        dropped = [key for key in keys if key in self._entries]
        for key in dropped:
            del self._entries[key]
        logger.debug("query_cache_invalidated", keys=list(keys), dropped=dropped)
        return dropped

    def is_cached(self, key: str) -> bool:
        return key in self._entries

    def fetch_count(self, key: str) -> int:
        """How many times `key` has been fetched from its source."""
        return self._fetch_counts.get(key, 0)

    def clear(self) -> None:
        self._entries.clear()
