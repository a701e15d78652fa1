"""
Tests for the in-process TTL cache
"""

import pytest

from deliberation.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestTTLCache:
    def setup_method(self):
        self.clock = FakeClock()
        self.cache = TTLCache(ttl_seconds=60, clock=self.clock)

    def test_hit_before_expiry(self):
        self.cache.set("k", "v")
        self.clock.now += 59
        assert self.cache.get("k") == "v"
        assert "k" in self.cache

    def test_expires_on_read(self):
        self.cache.set("k", "v")
        self.clock.now += 60
        assert self.cache.get("k") is None
        assert len(self.cache) == 0

    def test_default_for_missing(self):
        assert self.cache.get("nope", default=42) == 42

    def test_set_refreshes_timestamp(self):
        self.cache.set("k", 1)
        self.clock.now += 50
        self.cache.set("k", 2)
        self.clock.now += 50
        assert self.cache.get("k") == 2

    def test_delete_where(self):
        self.cache.set(("p1", "gender", 3), "a")
        self.cache.set(("p1", "age_group", 3), "b")
        self.cache.set(("p2", "gender", 3), "c")
        removed = self.cache.delete_where(lambda key: key[0] == "p1")
        assert removed == 2
        assert self.cache.get(("p2", "gender", 3)) == "c"

    def test_evicts_oldest_when_full(self):
        cache = TTLCache(ttl_seconds=60, clock=self.clock, max_entries=2)
        cache.set("a", 1)
        self.clock.now += 1
        cache.set("b", 2)
        self.clock.now += 1
        cache.set("c", 3)
        assert "a" not in cache
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_delete_and_clear(self):
        self.cache.set("a", 1)
        self.cache.set("b", 2)
        self.cache.delete("a")
        self.cache.delete("missing")
        assert len(self.cache) == 1
        self.cache.clear()
        assert len(self.cache) == 0

    def test_ttl_must_be_positive(self):
        with pytest.raises(ValueError):
            TTLCache(ttl_seconds=0)
