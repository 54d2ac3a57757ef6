"""
Path lookup cache.

Memoizes resolved dot-path lookups against the committed store. Entries
expire after a TTL and are tagged with the store version they were read
from, so an entry from before a commit can never be served after it even
if it was inserted by a reader racing the commit. The pipeline also
clears the whole cache on every commit.
"""

import time
import threading
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .store import ConfigStore
from .tree import detach, lookup

logger = logging.getLogger(__name__)

_ABSENT = object()


@dataclass
class CacheEntry:
    """Cache entry with metadata."""
    value: Any
    inserted_at: float
    version: int
    ttl: Optional[float] = None

    @property
    def is_expired(self) -> bool:
        """Check if entry has expired."""
        if self.ttl is None:
            return False
        return time.monotonic() > (self.inserted_at + self.ttl)

    @property
    def age(self) -> float:
        """Get entry age in seconds."""
        return time.monotonic() - self.inserted_at


class PathCache:
    """Thread-safe memo of path lookups over a ConfigStore."""

    def __init__(self, store: ConfigStore, ttl: Optional[float] = 60.0, enabled: bool = True):
        self.store = store
        self.ttl = ttl
        self.enabled = enabled
        self._cache: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._stats = {
            'hits': 0,
            'misses': 0,
            'expired': 0,
            'invalidations': 0
        }

    def get(self, path: str, fallback: Any = None) -> Any:
        """
        Resolve a path, serving from the cache when the entry is fresh.

        Args:
            path: Dot-separated configuration path
            fallback: Value returned when the path is absent

        Returns:
            The value at path, or fallback
        """
        if not self.enabled:
            return self.store.get(path, fallback)

        state = self.store.state
        with self._lock:
            entry = self._cache.get(path)
            if entry is not None:
                if entry.version == state.version and not entry.is_expired:
                    self._stats['hits'] += 1
                    return fallback if entry.value is _ABSENT else detach(entry.value)
                if entry.is_expired:
                    self._stats['expired'] += 1
                del self._cache[path]
            self._stats['misses'] += 1

        value = lookup(state.tree, path, _ABSENT)
        with self._lock:
            self._cache[path] = CacheEntry(
                value=value,
                inserted_at=time.monotonic(),
                version=state.version,
                ttl=self.ttl
            )
        return fallback if value is _ABSENT else detach(value)

    def clear(self):
        """Drop every entry."""
        with self._lock:
            self._cache.clear()
            self._stats['invalidations'] += 1
        logger.debug("Configuration cache cleared")

    def size(self) -> int:
        """Get cache size."""
        with self._lock:
            return len(self._cache)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total_requests = self._stats['hits'] + self._stats['misses']
            hit_rate = (self._stats['hits'] / total_requests * 100) if total_requests > 0 else 0

            return {
                **self._stats,
                'total': total_requests,
                'size': len(self._cache),
                'hit_rate': hit_rate,
                'ttl': self.ttl,
                'enabled': self.enabled
            }
