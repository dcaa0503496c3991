"""
History Cache - Redis-backed conversation history window.

Holds the recent chat turns of each conversation so prompt building does
not hit the database on every message. The policy is write-then-invalidate:
after a user/AI message pair is persisted the entry is deleted, and the
next read repopulates it from the store.

Key patterns:
    supportchat:messages:{conversation_id}      (TTL 15 minutes)
    supportchat:conversation:{conversation_id}  (TTL 1 hour)

Usage:
    cache = HistoryCache(redis)
    turns = await cache.get(conversation_id)
    if turns is None:
        turns = turns_from_messages(await store.list_recent_messages(conversation_id, 10))
        await cache.put(conversation_id, turns)
"""

import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from logging_config import log_cache
from .chat_store import Conversation, Message

logger = logging.getLogger(__name__)

MESSAGES_PREFIX = "supportchat:messages:"
CONVERSATION_PREFIX = "supportchat:conversation:"

# Stored sender -> prompt role
_SENDER_ROLES = {"user": "user", "ai": "assistant"}


@dataclass
class ChatTurn:
    """One prompt-history entry. role is 'user' or 'assistant'."""

    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


def turns_from_messages(messages_newest_first: List[Message]) -> List[ChatTurn]:
    """Convert a newest-first message window into chronological chat turns."""
    return [
        ChatTurn(role=_SENDER_ROLES.get(msg.sender, "user"), content=msg.text)
        for msg in reversed(messages_newest_first)
    ]


class HistoryCache:
    """
    Redis-backed history persistence.

    Handles serialization of chat turns and conversation records to JSON
    strings with TTL expiry.
    """

    def __init__(self, redis, ttl_seconds: int = 900, conversation_ttl_seconds: int = 3600):
        """
        Args:
            redis: RedisManager instance
            ttl_seconds: History TTL in seconds (default 15 minutes)
            conversation_ttl_seconds: Conversation record TTL (default 1 hour)
        """
        self.redis = redis
        self.ttl_seconds = ttl_seconds
        self.conversation_ttl_seconds = conversation_ttl_seconds

    def _make_key(self, conversation_id: str) -> str:
        return f"{MESSAGES_PREFIX}{conversation_id}"

    def _make_conversation_key(self, conversation_id: str) -> str:
        return f"{CONVERSATION_PREFIX}{conversation_id}"

    async def get(self, conversation_id: str, limit: Optional[int] = None) -> Optional[List[ChatTurn]]:
        """
        Load cached history.

        Args:
            conversation_id: Conversation to look up
            limit: Keep only the most recent `limit` turns

        Returns:
            Chronological list of ChatTurn on hit, None on miss
        """
        key = self._make_key(conversation_id)
        raw = await self.redis.get(key)
        if raw is None:
            log_cache(logger, "history", hit=False, key=key)
            return None

        try:
            turns = [ChatTurn(role=item["role"], content=item["content"]) for item in json.loads(raw)]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Discarding corrupt history cache entry {key}: {e}")
            await self.redis.delete(key)
            return None

        log_cache(logger, "history", hit=True, key=key)
        if limit is not None:
            turns = turns[-limit:] if limit > 0 else []
        return turns

    async def put(self, conversation_id: str, turns: List[ChatTurn], ttl: Optional[int] = None) -> bool:
        key = self._make_key(conversation_id)
        try:
            payload = json.dumps([t.to_dict() for t in turns])
            return await self.redis.set(key, payload, ttl=ttl or self.ttl_seconds)
        except Exception as e:
            logger.error(f"Failed to cache history for {conversation_id}: {e}")
            return False

    async def invalidate(self, conversation_id: str) -> bool:
        """
        Drop cached history and the cached conversation record.

        Returns:
            True if the delete went through
        """
        try:
            await self.redis.delete(
                self._make_key(conversation_id),
                self._make_conversation_key(conversation_id),
            )
            logger.debug(f"History cache invalidated: {conversation_id}")
            return True
        except Exception as e:
            logger.error(f"Failed to invalidate history for {conversation_id}: {e}")
            return False

    # === Conversation records ===

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        key = self._make_conversation_key(conversation_id)
        raw = await self.redis.get(key)
        if raw is None:
            log_cache(logger, "conversation", hit=False, key=key)
            return None
        try:
            conversation = Conversation.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Discarding corrupt conversation cache entry {key}: {e}")
            await self.redis.delete(key)
            return None
        log_cache(logger, "conversation", hit=True, key=key)
        return conversation

    async def put_conversation(self, conversation: Conversation) -> bool:
        key = self._make_conversation_key(conversation.id)
        try:
            return await self.redis.set(
                key, json.dumps(conversation.to_dict()), ttl=self.conversation_ttl_seconds
            )
        except Exception as e:
            logger.error(f"Failed to cache conversation {conversation.id}: {e}")
            return False

    async def stats(self) -> Dict[str, int]:
        """Count cached history windows and conversation records."""
        messages = await self.redis.scan_keys(f"{MESSAGES_PREFIX}*")
        conversations = await self.redis.scan_keys(f"{CONVERSATION_PREFIX}*")
        return {"messageKeys": len(messages), "conversationKeys": len(conversations)}
