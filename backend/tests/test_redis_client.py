"""
Tests for RedisManager's in-memory fallback store.

The fallback is what runs when Redis is disabled or unreachable, so it must
honour TTLs, glob scans and fixed-window counting the same way Redis does.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from services.redis_client import RedisManager


def run(coro):
    return asyncio.run(coro)


class TestFallbackKeyValue:
    """get/set/delete with TTL on the in-memory store."""

    def test_disabled_manager_starts_in_fallback(self, redis):
        assert redis.fallback_mode is True
        assert redis.available is False

    def test_set_get_roundtrip(self, redis):
        run(redis.set("k", "v", ttl=10))
        assert run(redis.get("k")) == "v"

    def test_entry_expires_after_ttl(self, redis, clock):
        run(redis.set("k", "v", ttl=10))
        clock.advance(10.5)
        assert run(redis.get("k")) is None
        assert run(redis.exists("k")) is False

    def test_delete_counts_removed(self, redis):
        run(redis.set("a", "1"))
        run(redis.set("b", "2"))
        assert run(redis.delete("a", "b", "missing")) == 2

    def test_get_ttl(self, redis, clock):
        run(redis.set("k", "v", ttl=100))
        clock.advance(40)
        assert run(redis.get_ttl("k")) == 60
        assert run(redis.get_ttl("nope")) == -2

    def test_lru_eviction(self, clock):
        small = RedisManager(enabled=False, clock=clock, _fallback_max_entries=2)
        run(small.set("a", "1"))
        run(small.set("b", "2"))
        run(small.get("a"))  # a becomes most recent
        run(small.set("c", "3"))
        assert run(small.get("b")) is None
        assert run(small.get("a")) == "1"


class TestFallbackScan:
    """Glob scans and pattern deletes."""

    def test_scan_and_delete_pattern(self, redis):
        run(redis.set("supportchat:faq:search:a:global", "[]"))
        run(redis.set("supportchat:faq:search:b:USA", "[]"))
        run(redis.set("supportchat:messages:x", "[]"))

        assert len(run(redis.scan_keys("supportchat:faq:*"))) == 2
        assert run(redis.delete_pattern("supportchat:faq:*")) == 2
        assert run(redis.scan_keys("supportchat:*")) == ["supportchat:messages:x"]

    def test_scan_skips_expired(self, redis, clock):
        run(redis.set("supportchat:faq:old", "[]", ttl=1))
        clock.advance(2)
        assert run(redis.scan_keys("supportchat:faq:*")) == []


class TestIncrWindow:
    """Fixed-window counting."""

    def test_first_hit_opens_window(self, redis):
        assert run(redis.incr_window("rl", 60_000)) == (1, 60_000)

    def test_hits_accumulate_within_window(self, redis, clock):
        run(redis.incr_window("rl", 60_000))
        clock.advance(15)
        count, remaining = run(redis.incr_window("rl", 60_000))
        assert count == 2
        assert remaining == 45_000

    def test_new_window_after_expiry(self, redis, clock):
        for _ in range(3):
            run(redis.incr_window("rl", 60_000))
        clock.advance(61)
        assert run(redis.incr_window("rl", 60_000)) == (1, 60_000)

    def test_window_key_expires(self, redis, clock):
        """Idle window keys disappear on their own."""
        run(redis.incr_window("rl", 1_000))
        clock.advance(2)
        assert run(redis.scan_keys("rl")) == []

    def test_redis_errors_propagate(self):
        """On the Redis path a storage fault is raised, not masked."""
        manager = RedisManager(enabled=True)
        manager._client = AsyncMock()
        manager._client.eval.side_effect = ConnectionError("down")
        with pytest.raises(ConnectionError):
            run(manager.incr_window("rl", 60_000))

    def test_redis_path_uses_script_result(self):
        manager = RedisManager(enabled=True)
        manager._client = AsyncMock()
        manager._client.eval.return_value = [3, 12_500]
        assert run(manager.incr_window("rl", 60_000)) == (3, 12_500)
        assert manager._client.eval.await_args.args[1:] == (1, "rl", 60_000)


class TestHealth:
    def test_fallback_health(self, redis):
        run(redis.set("k", "v"))
        health = run(redis.health_check())
        assert health["status"] == "fallback"
        assert health["cache_size"] == 1

    def test_connect_when_disabled(self, redis):
        assert run(redis.connect()) is False
        assert redis.fallback_mode is True
