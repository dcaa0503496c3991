"""
Shared pytest fixtures for the SupportChat tests.

Infrastructure is replaced with in-process fakes:
    - RedisManager(enabled=False) runs on its in-memory fallback store
      with a controllable clock
    - FakeChatStore keeps conversations, messages and FAQs in lists and
      records every call
    - The LLM client is an AsyncMock with canned completion/moderation
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from middleware.rate_limit import RateLimiter
from routers.chat_orchestration import ChatOrchestrator
from services.chat_store import Conversation, FAQEntry, Message
from services.history_cache import HistoryCache
from services.knowledge_cache import KnowledgeCache
from services.moderation import ContentModerator
from services.redis_client import RedisManager
from services.response_generator import ResponseGenerator

CANNED_REPLY = (
    "We ship to the USA, India, Japan, and China. Standard shipping takes 5-7 business days."
)

SAMPLE_FAQS = [
    FAQEntry(
        category="Shipping",
        question="What are your shipping options?",
        answer="We offer standard (5-7 days) and express (2-3 days) shipping.",
    ),
    FAQEntry(
        category="Shipping",
        question="Do you ship to Japan?",
        answer="Yes, Japan orders arrive in 7-10 business days.",
        region="Japan",
    ),
    FAQEntry(
        category="Returns",
        question="How do I return a product?",
        answer="Start a return from your order page within 30 days.",
    ),
    FAQEntry(
        category="Payment",
        question="What payment methods do you accept?",
        answer="Visa, Mastercard, PayPal and UPI.",
        region="India",
    ),
]


class FakeClock:
    """Manually advanced clock for TTL and rate-window tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeChatStore:
    """In-memory ChatStore that records every call."""

    def __init__(self, faqs: Optional[List[FAQEntry]] = None):
        self.conversations: Dict[str, Conversation] = {}
        self.messages: List[Message] = []
        self.faqs = list(faqs or [])
        self.calls: List[tuple] = []
        self._tick = 0

    def _timestamp(self) -> str:
        self._tick += 1
        return datetime.fromtimestamp(1_700_000_000 + self._tick, tz=timezone.utc).isoformat()

    def add_conversation(self, metadata: Optional[Dict[str, Any]] = None) -> Conversation:
        conversation = Conversation(id=str(uuid.uuid4()), created_at=self._timestamp(), metadata=metadata or {})
        self.conversations[conversation.id] = conversation
        return conversation

    async def create_conversation(self, metadata=None) -> Conversation:
        self.calls.append(("create_conversation", metadata))
        return self.add_conversation(metadata)

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        self.calls.append(("get_conversation", conversation_id))
        return self.conversations.get(conversation_id)

    async def create_message(self, conversation_id, sender, text, metadata=None) -> Message:
        self.calls.append(("create_message", conversation_id, sender))
        message = Message(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            sender=sender,
            text=text,
            created_at=self._timestamp(),
            metadata=metadata or {},
        )
        self.messages.append(message)
        return message

    async def list_recent_messages(self, conversation_id, limit=10) -> List[Message]:
        self.calls.append(("list_recent_messages", conversation_id, limit))
        mine = [m for m in self.messages if m.conversation_id == conversation_id]
        return list(reversed(mine))[:limit]

    async def list_messages(self, conversation_id, limit=50, offset=0) -> List[Message]:
        self.calls.append(("list_messages", conversation_id, limit, offset))
        mine = [m for m in self.messages if m.conversation_id == conversation_id]
        return mine[offset:offset + limit]

    async def search_faqs(self, keyword, region=None) -> List[FAQEntry]:
        self.calls.append(("search_faqs", keyword, region))
        needle = keyword.lower()
        hits = [
            f for f in self.faqs
            if (needle in f.question.lower() or needle in f.answer.lower())
            and (region is None or f.region in (region, None))
        ]
        return sorted(hits, key=lambda f: (f.category, f.region is None, f.region or ""))

    def calls_named(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]


def make_llm_client(reply: str = CANNED_REPLY, flagged: bool = False) -> AsyncMock:
    client = AsyncMock()
    client.complete.return_value = reply
    client.moderate.return_value = (flagged, {"harassment": flagged, "violence": False})
    return client


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def redis(clock):
    """RedisManager running on its in-memory fallback store."""
    return RedisManager(enabled=False, clock=clock)


@pytest.fixture
def store():
    return FakeChatStore(faqs=SAMPLE_FAQS)


@pytest.fixture
def conversation(store):
    return store.add_conversation()


@pytest.fixture
def llm_client():
    return make_llm_client()


@pytest.fixture
def build_orchestrator(redis, store, llm_client):
    """Factory so tests can override individual collaborators."""

    def _build(**overrides) -> ChatOrchestrator:
        parts = {
            "store": store,
            "knowledge_cache": KnowledgeCache(redis, ttl_seconds=3600),
            "history_cache": HistoryCache(redis, ttl_seconds=900),
            "rate_limiter": RateLimiter(redis, limit=10, window_seconds=60),
            "moderator": ContentModerator(llm_client, timeout=1.0),
            "generator": ResponseGenerator(llm_client, timeout=1.0),
        }
        parts.update(overrides)
        return ChatOrchestrator(**parts)

    return _build


@pytest.fixture
def orchestrator(build_orchestrator):
    return build_orchestrator()
