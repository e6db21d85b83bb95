"""Tests for ResponseCache TTL behavior."""

from catalog.services.cache import CacheEntry, ResponseCache


class TestCacheEntry:
    def test_valid_strictly_inside_ttl(self):
        entry = CacheEntry(data="x", timestamp=100.0, ttl=10.0)
        assert entry.is_valid(109.9)
        assert not entry.is_valid(110.0)


class TestResponseCache:
    def test_empty_cache_returns_none(self, clock):
        cache = ResponseCache(ttl=300, clock=clock)
        assert cache.get() is None
        assert cache.age() is None

    def test_returns_value_within_ttl(self, clock):
        cache = ResponseCache(ttl=300, clock=clock)
        cache.set(["a", "b"])
        clock.advance(299.9)
        assert cache.get() == ["a", "b"]

    def test_absent_at_ttl_boundary(self, clock):
        cache = ResponseCache(ttl=300, clock=clock)
        cache.set(["a"])
        clock.advance(300)
        assert cache.get() is None

    def test_stale_entry_is_still_peekable(self, clock):
        cache = ResponseCache(ttl=300, clock=clock)
        cache.set(["a"])
        clock.advance(301)
        assert cache.get() is None
        assert cache.peek().data == ["a"]
        assert cache.age() == 301

    def test_set_overwrites_and_refreshes_timestamp(self, clock):
        cache = ResponseCache(ttl=300, clock=clock)
        cache.set(["old"])
        clock.advance(200)
        cache.set(["new"])
        clock.advance(200)
        assert cache.get() == ["new"]

    def test_invalidate(self, clock):
        cache = ResponseCache(ttl=300, clock=clock)
        cache.set(["a"])
        cache.invalidate()
        assert cache.get() is None
        assert cache.peek() is None

    def test_default_ttl_is_five_minutes(self):
        assert ResponseCache().ttl == 300.0

    def test_stats(self, clock):
        cache = ResponseCache(ttl=10, clock=clock)
        cache.get()
        cache.set("v")
        cache.get()
        clock.advance(10)
        cache.get()

        stats = cache.get_stats()
        assert stats.hits == 1
        assert stats.misses == 2
        assert stats.stale == 1
        assert stats.writes == 1
        assert stats.to_dict()["hit_rate"] == "33.33%"
