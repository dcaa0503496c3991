"""
SupportChat Orchestrator - one chat turn from raw input to persisted reply

Drives a message through:
1. Validate and sanitize input
2. Rate-limit check (per conversation)
3. Moderation (fail-open)
4. Persist the user message
5. Build context: FAQ search and history, each cache-or-fetch
6. Generate and screen the reply
7. Persist the AI message, then invalidate the history cache

Validation, rate-limit and moderation failures abort before anything is
written. Once the user message is stored, any failure while building
context or generating is absorbed into a fixed apology so the caller
always gets a reply.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from errors import (
    ErrorCode,
    InternalError,
    NotFoundError,
    RateLimitError,
    SupportChatError,
    ValidationError,
    log_error,
)
from logging_config import log_message_in, log_message_out
from services.chat_store import Conversation, Message
from services.history_cache import ChatTurn, turns_from_messages
from services.knowledge_cache import extract_sources, format_faq_context
from .validators import InputValidator, ResponseValidator

logger = logging.getLogger(__name__)

FALLBACK_RESPONSE = (
    "I apologize, but I'm experiencing technical difficulties. "
    "Please try again in a moment or contact our support team."
)

HARMFUL_RESPONSE_OVERRIDE = (
    "I apologize, but I'm unable to provide a response to that query. "
    "Please contact our human support team for assistance."
)

GUIDELINE_VIOLATION_MESSAGE = (
    "Your message contains content that violates our guidelines. Please rephrase and try again."
)

RATE_LIMIT_MESSAGE = "Too many messages. Please wait before sending more."

SUGGESTED_QUESTIONS = [
    "What are your shipping options?",
    "How do I return a product?",
    "What payment methods do you accept?",
    "Do you have gaming mice in stock?",
    "What is your warranty policy?",
]

MAX_MESSAGE_PAGE = 100

# Every key this service writes lives under this namespace
KEY_NAMESPACE = "supportchat:"


@dataclass
class ChatResult:
    """Outcome of a processed chat turn."""

    user_message_id: str
    ai_message_id: str
    response: str
    sources: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userMessageId": self.user_message_id,
            "aiMessageId": self.ai_message_id,
            "response": self.response,
            "sources": self.sources,
        }


class ChatOrchestrator:
    """Coordinates validation, limits, moderation, caches, generation and persistence.

    All collaborators are injected; the orchestrator holds no locks and no
    per-conversation state of its own.
    """

    def __init__(
        self,
        store,
        knowledge_cache,
        history_cache,
        rate_limiter,
        moderator,
        generator,
        input_validator: Optional[InputValidator] = None,
        history_limit: int = 10,
    ):
        """
        Args:
            store: ChatStore implementation
            knowledge_cache: KnowledgeCache for FAQ search results
            history_cache: HistoryCache for recent turns and conversation records
            rate_limiter: RateLimiter keyed by conversation id
            moderator: ContentModerator
            generator: ResponseGenerator
            input_validator: InputValidator (defaults to the standard region set)
            history_limit: Number of recent messages used as prompt history
        """
        self.store = store
        self.knowledge_cache = knowledge_cache
        self.history_cache = history_cache
        self.rate_limiter = rate_limiter
        self.moderator = moderator
        self.generator = generator
        self.input_validator = input_validator or InputValidator()
        self.history_limit = history_limit

    # =========================================================================
    # Chat turn
    # =========================================================================

    async def process_chat(
        self,
        conversation_id: str,
        message: str,
        region: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ChatResult:
        """Process one user message and return the persisted reply.

        Raises:
            ValidationError: bad input or moderation flag (nothing persisted)
            RateLimitError: conversation over its message budget (nothing persisted)
            InternalError: the store failed to persist a message
        """
        conversation_id = self.input_validator.validate_conversation_id(conversation_id)
        trimmed = self.input_validator.validate_chat_message(message)
        region = self.input_validator.validate_region(region)

        text = self.input_validator.sanitize_input(trimmed)
        if not text:
            raise ValidationError(
                "Message cannot be empty", field="message", code=ErrorCode.VALIDATION_MISSING_PARAM
            )
        # Stripping control characters can reassemble a blocked pattern
        self.input_validator.check_unsafe_content(text)

        log_message_in(logger, text, conversation=conversation_id, region=region or "global")

        limit = await self.rate_limiter.check_limit(conversation_id)
        if not limit.allowed:
            raise RateLimitError(RATE_LIMIT_MESSAGE, reset_in=limit.reset_in, conversation=conversation_id)

        verdict = await self.moderator.moderate(text)
        if verdict.flagged:
            raise ValidationError(
                GUIDELINE_VIOLATION_MESSAGE,
                field="message",
                code=ErrorCode.VALIDATION_GUIDELINE_VIOLATION,
                categories=verdict.flagged_categories,
            )

        user_msg = await self._persist(
            conversation_id, "user", text, {"region": region, "userId": user_id}
        )

        response, sources, fallback = await self._generate_reply(conversation_id, text, region)

        ai_msg = await self._persist(conversation_id, "ai", response, {"sources": sources, "fallback": fallback})

        await self.history_cache.invalidate(conversation_id)

        log_message_out(logger, sources=sources, fallback=fallback)
        return ChatResult(
            user_message_id=user_msg.id,
            ai_message_id=ai_msg.id,
            response=response,
            sources=sources,
        )

    async def _persist(self, conversation_id: str, sender: str, text: str, metadata: Dict[str, Any]) -> Message:
        try:
            return await self.store.create_message(conversation_id, sender, text, metadata)
        except SupportChatError:
            raise
        except Exception as e:
            log_error(logger, e, context=f"persisting {sender} message for {conversation_id}")
            raise InternalError(
                "Failed to save message",
                details=str(e),
                code=ErrorCode.INTERNAL_STORE_ERROR,
                conversation=conversation_id,
            ) from e

    async def _generate_reply(self, conversation_id: str, text: str, region: Optional[str]):
        """Build context, generate and screen the reply.

        Returns:
            (response, sources, fallback)
        """
        try:
            faq_context = await self._find_relevant_faqs(text, region)
            history = await self._conversation_history(conversation_id, text)
            raw = await self.generator.generate(text, faq_context, history)
        except Exception as e:
            log_error(logger, e, context=f"generating reply for {conversation_id}", include_traceback=False)
            return FALLBACK_RESPONSE, [], True

        if not ResponseValidator.validate_ai_response(raw):
            logger.warning(f"Discarding empty or refusal-only reply for {conversation_id}")
            return FALLBACK_RESPONSE, [], True

        if ResponseValidator.contains_harmful_content(raw):
            logger.warning(f"Harmful content in generated reply for {conversation_id}, replaced")
            return HARMFUL_RESPONSE_OVERRIDE, [], False

        return raw.strip(), extract_sources(faq_context), False

    async def _find_relevant_faqs(self, query: str, region: Optional[str]) -> str:
        entries = await self.knowledge_cache.get(query, region)
        if entries is None:
            entries = await self.store.search_faqs(query, region)
            await self.knowledge_cache.put(query, region, entries)
        return format_faq_context(entries)

    async def _conversation_history(self, conversation_id: str, current_text: str) -> List[ChatTurn]:
        turns = await self.history_cache.get(conversation_id, limit=self.history_limit)
        if turns is None:
            recent = await self.store.list_recent_messages(conversation_id, self.history_limit)
            turns = turns_from_messages(recent)
            await self.history_cache.put(conversation_id, turns)

        # The just-persisted user message is sent separately as the final turn
        if turns and turns[-1].role == "user" and turns[-1].content == current_text:
            turns = turns[:-1]
        return turns

    # =========================================================================
    # Moderation endpoint
    # =========================================================================

    async def moderate_message(self, text) -> Dict[str, Any]:
        if text is None or not isinstance(text, str) or not text.strip():
            raise ValidationError(
                "Text is required for moderation", field="text", code=ErrorCode.VALIDATION_MISSING_PARAM
            )
        verdict = await self.moderator.moderate(text)
        return {"safe": not verdict.flagged, "flagged": verdict.flagged, "categories": verdict.categories}

    # =========================================================================
    # Conversations
    # =========================================================================

    async def create_conversation(self, metadata: Optional[Dict[str, Any]] = None) -> Conversation:
        try:
            conversation = await self.store.create_conversation(metadata or {})
        except Exception as e:
            log_error(logger, e, context="creating conversation")
            raise InternalError(
                "Failed to create conversation", details=str(e), code=ErrorCode.INTERNAL_STORE_ERROR
            ) from e
        await self.history_cache.put_conversation(conversation)
        logger.info(f"Conversation created: {conversation.id}")
        return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation:
        """Load a conversation record, cache first.

        Raises:
            ValidationError: malformed id
            NotFoundError: no such conversation
        """
        conversation_id = self.input_validator.validate_conversation_id(conversation_id)

        conversation = await self.history_cache.get_conversation(conversation_id)
        if conversation is not None:
            return conversation

        conversation = await self.store.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError(
                "Conversation not found", resource_type="conversation", resource_id=conversation_id
            )
        await self.history_cache.put_conversation(conversation)
        return conversation

    async def get_conversation_messages(
        self, conversation_id: str, limit: int = 50, offset: int = 0
    ) -> List[Message]:
        conversation_id = self.input_validator.validate_conversation_id(conversation_id)
        if limit < 1 or limit > MAX_MESSAGE_PAGE:
            raise ValidationError(
                f"Limit must be between 1 and {MAX_MESSAGE_PAGE}",
                field="limit",
                code=ErrorCode.VALIDATION_OUT_OF_RANGE,
            )
        if offset < 0:
            raise ValidationError(
                "Offset cannot be negative", field="offset", code=ErrorCode.VALIDATION_OUT_OF_RANGE
            )
        return await self.store.list_messages(conversation_id, limit=limit, offset=offset)

    def get_suggested_questions(self, count: int = 3) -> List[str]:
        return SUGGESTED_QUESTIONS[:count]

    # =========================================================================
    # Cache maintenance
    # =========================================================================

    async def cache_stats(self) -> Dict[str, int]:
        total = await self.knowledge_cache.redis.scan_keys(f"{KEY_NAMESPACE}*")
        history = await self.history_cache.stats()
        return {
            "totalKeys": len(total),
            "faqKeys": await self.knowledge_cache.count(),
            "conversationKeys": history["conversationKeys"],
            "messageKeys": history["messageKeys"],
        }

    async def clear_faq_cache(self) -> int:
        return await self.knowledge_cache.invalidate_all()
