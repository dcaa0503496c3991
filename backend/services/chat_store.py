"""
Chat Store - Conversation, message and FAQ persistence.

Defines the records the chat core reads and writes, the ChatStore
protocol the orchestrator depends on, and PostgresChatStore, the
asyncpg-backed implementation used in production.

Messages are immutable: the store only creates and bulk-reads them.
FAQ entries are authored out of band and are read-only here.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from .database import DatabaseManager

logger = logging.getLogger(__name__)


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _load_json(value: Any) -> Dict[str, Any]:
    if not value:
        return {}
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)


@dataclass
class Conversation:
    id: str
    created_at: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Conversation":
        return cls(
            id=str(row["id"]),
            created_at=_iso(row.get("created_at")),
            metadata=_load_json(row.get("metadata")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "created_at": self.created_at, "metadata": self.metadata}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        return cls(id=data["id"], created_at=data.get("created_at"), metadata=data.get("metadata") or {})


@dataclass
class Message:
    """A single chat message. sender is 'user' or 'ai'."""

    id: str
    conversation_id: str
    sender: str
    text: str
    created_at: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Message":
        return cls(
            id=str(row["id"]),
            conversation_id=str(row["conversation_id"]),
            sender=row["sender"],
            text=row["text"],
            created_at=_iso(row.get("created_at")),
            metadata=_load_json(row.get("metadata")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "sender": self.sender,
            "text": self.text,
            "created_at": self.created_at,
            "metadata": self.metadata,
        }


@dataclass
class FAQEntry:
    """Knowledge base entry. region None means the answer applies globally."""

    category: str
    question: str
    answer: str
    region: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "FAQEntry":
        return cls(
            category=row["category"],
            question=row["question"],
            answer=row["answer"],
            region=row.get("region"),
            id=str(row["id"]) if row.get("id") is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "question": self.question,
            "answer": self.answer,
            "region": self.region,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FAQEntry":
        return cls(
            category=data["category"],
            question=data["question"],
            answer=data["answer"],
            region=data.get("region"),
            id=data.get("id"),
        )


class ChatStore(Protocol):
    """Persistence operations the chat core depends on."""

    async def create_conversation(self, metadata: Optional[Dict[str, Any]] = None) -> Conversation: ...

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]: ...

    async def create_message(
        self,
        conversation_id: str,
        sender: str,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message: ...

    async def list_recent_messages(self, conversation_id: str, limit: int = 10) -> List[Message]:
        """Most recent messages, newest first."""
        ...

    async def list_messages(self, conversation_id: str, limit: int = 50, offset: int = 0) -> List[Message]:
        """Messages in chronological order."""
        ...

    async def search_faqs(self, keyword: str, region: Optional[str] = None) -> List[FAQEntry]: ...


def _escape_like(term: str) -> str:
    """Escape LIKE wildcards so the keyword matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresChatStore:
    """ChatStore backed by the conversations/messages/faq_knowledge tables."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def create_conversation(self, metadata: Optional[Dict[str, Any]] = None) -> Conversation:
        row = await self.db.fetchrow(
            "INSERT INTO conversations (metadata) VALUES ($1::jsonb) RETURNING *",
            json.dumps(metadata or {}),
        )
        return Conversation.from_row(row)

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        row = await self.db.fetchrow("SELECT * FROM conversations WHERE id = $1::uuid", conversation_id)
        return Conversation.from_row(row) if row else None

    async def create_message(
        self,
        conversation_id: str,
        sender: str,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message:
        row = await self.db.fetchrow(
            """
            INSERT INTO messages (conversation_id, sender, text, metadata)
            VALUES ($1::uuid, $2, $3, $4::jsonb)
            RETURNING *
            """,
            conversation_id,
            sender,
            text,
            json.dumps(metadata or {}),
        )
        return Message.from_row(row)

    async def list_recent_messages(self, conversation_id: str, limit: int = 10) -> List[Message]:
        rows = await self.db.fetch(
            """
            SELECT * FROM messages
            WHERE conversation_id = $1::uuid
            ORDER BY created_at DESC
            LIMIT $2
            """,
            conversation_id,
            limit,
        )
        return [Message.from_row(r) for r in rows]

    async def list_messages(self, conversation_id: str, limit: int = 50, offset: int = 0) -> List[Message]:
        rows = await self.db.fetch(
            """
            SELECT * FROM messages
            WHERE conversation_id = $1::uuid
            ORDER BY created_at ASC
            LIMIT $2 OFFSET $3
            """,
            conversation_id,
            limit,
            offset,
        )
        return [Message.from_row(r) for r in rows]

    async def search_faqs(self, keyword: str, region: Optional[str] = None) -> List[FAQEntry]:
        query = """
            SELECT * FROM faq_knowledge
            WHERE (question ILIKE $1 OR answer ILIKE $1)
        """
        params: List[Any] = [f"%{_escape_like(keyword)}%"]

        if region:
            query += " AND (region = $2 OR region IS NULL)"
            params.append(region)

        query += " ORDER BY category, region NULLS LAST"

        rows = await self.db.fetch(query, *params)
        return [FAQEntry.from_row(r) for r in rows]
