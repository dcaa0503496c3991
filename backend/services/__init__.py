"""
SupportChat Services - Shared infrastructure services.

- redis_client: Redis connection manager with health checks and fallback
- database: PostgreSQL pool manager
- chat_store: Conversation, message and FAQ persistence
- llm_client: OpenAI completion + moderation wrapper
- moderation: Fail-open content moderation
- knowledge_cache: FAQ search result cache
- history_cache: Conversation history cache
- response_generator: Support-assistant prompt and completion
"""

from .redis_client import RedisManager
from .database import DatabaseManager

__all__ = ["RedisManager", "DatabaseManager"]
