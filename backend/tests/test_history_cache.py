"""
Tests for the conversation history cache.
"""

import asyncio

from services.chat_store import Conversation, Message
from services.history_cache import ChatTurn, HistoryCache, turns_from_messages


def run(coro):
    return asyncio.run(coro)


CONV_ID = "3f2b8c1e-9a4d-4c2b-8e1f-0a1b2c3d4e5f"


def _msg(sender, text):
    return Message(id=text, conversation_id=CONV_ID, sender=sender, text=text)


class TestTurnsFromMessages:
    def test_reverses_and_maps_roles(self):
        newest_first = [_msg("ai", "a2"), _msg("user", "u2"), _msg("ai", "a1"), _msg("user", "u1")]
        turns = turns_from_messages(newest_first)
        assert [t.content for t in turns] == ["u1", "a1", "u2", "a2"]
        assert [t.role for t in turns] == ["user", "assistant", "user", "assistant"]


class TestHistoryCache:
    """History window storage and invalidation."""

    def test_miss(self, redis):
        assert run(HistoryCache(redis).get(CONV_ID)) is None

    def test_put_get(self, redis):
        cache = HistoryCache(redis)
        turns = [ChatTurn("user", "hi"), ChatTurn("assistant", "hello")]
        run(cache.put(CONV_ID, turns))
        assert run(cache.get(CONV_ID)) == turns

    def test_limit_keeps_most_recent(self, redis):
        cache = HistoryCache(redis)
        run(cache.put(CONV_ID, [ChatTurn("user", str(i)) for i in range(5)]))
        assert [t.content for t in run(cache.get(CONV_ID, limit=2))] == ["3", "4"]

    def test_expires_after_ttl(self, redis, clock):
        cache = HistoryCache(redis, ttl_seconds=900)
        run(cache.put(CONV_ID, [ChatTurn("user", "hi")]))
        clock.advance(901)
        assert run(cache.get(CONV_ID)) is None

    def test_invalidate_drops_history_and_conversation(self, redis):
        cache = HistoryCache(redis)
        run(cache.put(CONV_ID, [ChatTurn("user", "hi")]))
        run(cache.put_conversation(Conversation(id=CONV_ID, created_at="2024-01-01T00:00:00")))

        assert run(cache.invalidate(CONV_ID)) is True
        assert run(cache.get(CONV_ID)) is None
        assert run(cache.get_conversation(CONV_ID)) is None

    def test_conversation_record_roundtrip(self, redis):
        cache = HistoryCache(redis)
        conversation = Conversation(id=CONV_ID, created_at="2024-01-01T00:00:00", metadata={"channel": "web"})
        run(cache.put_conversation(conversation))
        assert run(cache.get_conversation(CONV_ID)) == conversation

    def test_stats(self, redis):
        cache = HistoryCache(redis)
        run(cache.put(CONV_ID, []))
        run(cache.put_conversation(Conversation(id=CONV_ID)))
        run(cache.put_conversation(Conversation(id="other")))
        assert run(cache.stats()) == {"messageKeys": 1, "conversationKeys": 2}
