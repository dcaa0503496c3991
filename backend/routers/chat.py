"""
SupportChat Chat Router
REST endpoints over the chat orchestrator

All business rules live in ChatOrchestrator; handlers here only parse
requests and wrap results in the success envelope. Errors propagate to
the handlers registered by errors.register_exception_handlers.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from errors import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat")


class ChatMessageRequest(BaseModel):
    # Loosely typed so the orchestrator produces the field-level validation error
    conversationId: Optional[Any] = None
    message: Optional[Any] = None
    region: Optional[Any] = None
    userId: Optional[str] = None


class ModerationRequest(BaseModel):
    text: Optional[Any] = None


class ConversationCreateRequest(BaseModel):
    metadata: Dict[str, Any] = Field(default_factory=dict)


def _orchestrator(request: Request):
    return request.app.state.orchestrator


@router.post("/message")
async def send_message(body: ChatMessageRequest, request: Request):
    """Process a user message and return the assistant reply."""
    result = await _orchestrator(request).process_chat(
        body.conversationId,
        body.message,
        region=body.region,
        user_id=body.userId,
    )
    return success_response(result.to_dict())


@router.post("/moderate")
async def moderate(body: ModerationRequest, request: Request):
    verdict = await _orchestrator(request).moderate_message(body.text)
    return success_response(verdict)


@router.post("/conversations")
async def create_conversation(request: Request, body: Optional[ConversationCreateRequest] = None):
    metadata = body.metadata if body else {}
    conversation = await _orchestrator(request).create_conversation(metadata)
    return success_response(conversation.to_dict())


@router.get("/conversations/{conversation_id}")
async def get_conversation(conversation_id: str, request: Request):
    conversation = await _orchestrator(request).get_conversation(conversation_id)
    return success_response(conversation.to_dict())


@router.get("/conversations/{conversation_id}/messages")
async def get_conversation_messages(conversation_id: str, request: Request, limit: int = 50, offset: int = 0):
    messages = await _orchestrator(request).get_conversation_messages(conversation_id, limit=limit, offset=offset)
    return success_response([m.to_dict() for m in messages], count=len(messages))


@router.get("/suggestions")
async def get_suggestions(request: Request):
    return success_response(_orchestrator(request).get_suggested_questions())


@router.get("/health")
async def health(request: Request):
    """Health check - pings Redis and PostgreSQL, reconnecting either if it dropped."""
    checks = {}

    redis = getattr(request.app.state, "redis", None)
    try:
        if redis and redis.enabled and redis.fallback_mode:
            await redis.try_reconnect()
        redis_health = await redis.health_check() if redis else {"status": "disabled"}
        checks["redis"] = "ok" if redis_health.get("status") in ("connected", "fallback") else "down"
    except Exception as e:
        logger.warning(f"Redis health check failed: {e}")
        checks["redis"] = "down"

    db = getattr(request.app.state, "db", None)
    try:
        if db and db.enabled and not db.available:
            await db.try_reconnect()
        db_health = await db.health_check() if db else {"status": "disabled"}
        status = db_health.get("status")
        checks["postgres"] = "ok" if status == "connected" else ("disabled" if status == "disabled" else "down")
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        checks["postgres"] = "down"

    all_ok = all(v in ("ok", "disabled") for v in checks.values())
    return {"status": "healthy" if all_ok else "degraded", "checks": checks}


@router.get("/cache/stats")
async def cache_stats(request: Request):
    return success_response(await _orchestrator(request).cache_stats())


@router.delete("/cache/faq")
async def clear_faq_cache(request: Request):
    removed = await _orchestrator(request).clear_faq_cache()
    return success_response({"removed": removed}, message="FAQ cache cleared")
