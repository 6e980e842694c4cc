"""
Build-once caching for per-type reflection tables.

Entries are computed at most once per key and published whole; readers
never observe a partially built entry. Uses a cachetools Cache without an
eviction bound, since entries live for the lifetime of their owner.
"""
import logging
import math
import threading
from collections.abc import Callable, Hashable
from typing import Any

import cachetools

logger = logging.getLogger(__name__)

__all__ = ['TypeCache']


class TypeCache:
    """Thread-safe build-once cache keyed by type identity.
    """

    def __init__(self, name: str, maxsize: float = math.inf) -> None:
        self.name = name
        self._cache: cachetools.Cache = cachetools.Cache(maxsize=maxsize)
        self._lock = threading.RLock()

    def get_or_build(self, key: Hashable, builder: Callable[[Any], Any]) -> Any:
        """Return the cached entry for key, building it on first access.

        Args:
            key: Cache key, typically a class
            builder: Called with key to produce the entry

        Returns
            The published entry
        """
        entry = self._cache.get(key)
        if entry is not None:
            return entry

        with self._lock:
            entry = self._cache.get(key)
            if entry is not None:
                logger.debug(f'Cache hit for {self.name}({key!r}) after wait')
                return entry
            logger.debug(f'Cache miss for {self.name}({key!r})')
            entry = builder(key)
            self._cache[key] = entry
            return entry

    def get(self, key: Hashable) -> Any:
        """Return the cached entry for key, or None."""
        return self._cache.get(key)

    def setdefault(self, key: Hashable, entry: Any) -> Any:
        """Publish entry unless key already has one; return the published entry.

        Lets callers build slow entries outside the lock. Concurrent builders
        of the same key race, and the first entry published wins.
        """
        with self._lock:
            published = self._cache.get(key)
            if published is not None:
                logger.debug(f'Cache hit for {self.name}({key!r}) after build')
                return published
            self._cache[key] = entry
            return entry

    def __contains__(self, key: Hashable) -> bool:
        return key in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        """Drop all entries.
        """
        with self._lock:
            self._cache.clear()
