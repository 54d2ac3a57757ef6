"""
Unit tests for the path lookup cache.
"""

import time
from unittest.mock import patch

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent / "src"))

from live_config.config.cache import CacheEntry, PathCache
from live_config.config.store import ConfigStore


class TestCacheEntry:
    """Test CacheEntry."""

    def test_expiry(self):
        entry = CacheEntry(value=1, inserted_at=time.monotonic() - 10, version=1, ttl=5)
        assert entry.is_expired
        assert entry.age >= 10

    def test_no_ttl_never_expires(self):
        entry = CacheEntry(value=1, inserted_at=0.0, version=1, ttl=None)
        assert not entry.is_expired


class TestPathCache:
    """Test PathCache."""

    def setup_method(self):
        self.store = ConfigStore()
        self.store.commit({"cloudflare": {"ttl": 60}, "list": [1]})
        self.cache = PathCache(self.store, ttl=60.0)

    def test_hit_after_miss(self):
        assert self.cache.get("cloudflare.ttl") == 60
        assert self.cache.get("cloudflare.ttl") == 60

        stats = self.cache.get_stats()
        assert stats["misses"] == 1
        assert stats["hits"] == 1
        assert stats["hit_rate"] == 50.0
        assert stats["size"] == 1

    def test_absent_path_uses_callers_fallback(self):
        assert self.cache.get("missing.path", "a") == "a"
        assert self.cache.get("missing.path", "b") == "b"
        assert self.cache.get("missing.path") is None
        assert self.cache.get_stats()["hits"] == 2

    def test_version_tag_prevents_stale_reads(self):
        assert self.cache.get("cloudflare.ttl") == 60
        self.store.commit({"cloudflare": {"ttl": 120}})
        assert self.cache.get("cloudflare.ttl") == 120

    def test_clear(self):
        self.cache.get("cloudflare.ttl")
        self.cache.clear()

        assert self.cache.size() == 0
        assert self.cache.get_stats()["invalidations"] == 1

    def test_ttl_expiry(self):
        cache = PathCache(self.store, ttl=0.5)
        with patch("live_config.config.cache.time.monotonic", return_value=100.0):
            cache.get("cloudflare.ttl")
        with patch("live_config.config.cache.time.monotonic", return_value=101.0):
            assert cache.get("cloudflare.ttl") == 60

        stats = cache.get_stats()
        assert stats["expired"] == 1
        assert stats["misses"] == 2

    def test_disabled_cache_reads_through(self):
        cache = PathCache(self.store, enabled=False)
        assert cache.get("cloudflare.ttl") == 60
        assert cache.size() == 0

    def test_cached_containers_are_copies(self):
        first = self.cache.get("list")
        first.append(2)
        assert self.cache.get("list") == [1]
