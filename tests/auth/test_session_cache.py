"""
Tests for the in-memory OAuth session cache
"""

from datetime import timedelta

import pytest

from auth.session_cache import SessionCache

pytestmark = [pytest.mark.unit]


class TestSessionCache:

    def test_put_and_get(self, session_cache):
        session_cache.put("session:abc", {"agent": "a1"})
        assert session_cache.get("session:abc") == {"agent": "a1"}
        assert "session:abc" in session_cache

    def test_get_missing_returns_none(self, session_cache):
        assert session_cache.get("session:nope") is None

    def test_entries_expire_after_ttl(self, session_cache, clock):
        session_cache.put("temp:x", "secret")

        clock.advance(minutes=14, seconds=59)
        assert session_cache.get("temp:x") == "secret"

        clock.advance(seconds=2)
        assert session_cache.get("temp:x") is None
        assert len(session_cache) == 0

    def test_per_entry_ttl(self, session_cache, clock):
        session_cache.put("short", 1, ttl=timedelta(seconds=30))
        session_cache.put("long", 2)

        clock.advance(minutes=1)
        assert session_cache.get("short") is None
        assert session_cache.get("long") == 2

    def test_delete(self, session_cache):
        session_cache.put("k", "v")
        session_cache.delete("k")
        session_cache.delete("never-there")
        assert session_cache.get("k") is None

    def test_least_recently_used_entry_is_evicted(self, clock):
        cache = SessionCache(max_entries=2, clock=clock)
        cache.put("a", 1)
        cache.put("b", 2)
        # Touch "a" so "b" becomes the least recently used
        assert cache.get("a") == 1

        cache.put("c", 3)

        assert len(cache) == 2
        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3

    def test_overwrite_refreshes_expiry(self, session_cache, clock):
        session_cache.put("k", "old")
        clock.advance(minutes=10)
        session_cache.put("k", "new")
        clock.advance(minutes=10)
        assert session_cache.get("k") == "new"

    def test_purge_expired(self, session_cache, clock):
        session_cache.put("a", 1, ttl=timedelta(minutes=1))
        session_cache.put("b", 2)
        clock.advance(minutes=5)

        assert session_cache.purge_expired() == 1
        assert len(session_cache) == 1

    def test_clear(self, session_cache):
        session_cache.put("a", 1)
        session_cache.clear()
        assert len(session_cache) == 0

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            SessionCache(max_entries=0)
