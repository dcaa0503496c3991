"""
SupportChat - customer-support chat backend
FastAPI app wiring the chat orchestrator to Redis, PostgreSQL and OpenAI
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from config import runtime_config
from errors import ErrorCode, register_exception_handlers
from logging_config import setup_logging
from middleware.rate_limit import RateLimitMiddleware, RateLimiter, RateLimitType
from routers import chat
from routers.chat_orchestration import ChatOrchestrator, InputValidator
from services.chat_store import PostgresChatStore
from services.database import DatabaseManager
from services.history_cache import HistoryCache
from services.knowledge_cache import KnowledgeCache
from services.llm_client import LLMClient
from services.moderation import ContentModerator
from services.redis_client import RedisManager
from services.response_generator import ResponseGenerator

setup_logging()
logger = logging.getLogger(__name__)


def build_orchestrator(redis, store, llm_client, config=runtime_config) -> ChatOrchestrator:
    """Assemble the chat core from its clients."""
    regions = config.get_supported_regions()
    return ChatOrchestrator(
        store=store,
        knowledge_cache=KnowledgeCache(redis, ttl_seconds=config.faq_search_ttl),
        history_cache=HistoryCache(
            redis,
            ttl_seconds=config.history_ttl,
            conversation_ttl_seconds=config.conversation_ttl,
        ),
        rate_limiter=RateLimiter(
            redis,
            limit=config.rate_limit_chat,
            window_seconds=config.rate_limit_window,
            limit_type=RateLimitType.CHAT_MESSAGE,
            fail_closed=config.rate_limit_fail_closed,
        ),
        moderator=ContentModerator(llm_client, timeout=config.moderation_timeout),
        generator=ResponseGenerator(
            llm_client,
            store_name=config.store_name,
            regions=regions,
            temperature=config.temperature,
            max_tokens=config.max_output_tokens,
            timeout=config.llm_timeout,
        ),
        input_validator=InputValidator(regions, max_message_length=config.max_message_length),
        history_limit=config.history_limit,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown events"""
    # Startup
    redis = RedisManager(url=runtime_config.redis_url, enabled=runtime_config.redis_enabled)
    await redis.connect()

    db = DatabaseManager(
        url=runtime_config.database_url,
        enabled=runtime_config.database_enabled,
        pool_size=runtime_config.database_pool_size,
    )
    if not await db.connect():
        logger.warning("PostgreSQL unavailable at startup, chat requests will fail until it recovers")

    if not runtime_config.openai_api_key:
        logger.warning("OPENAI_API_KEY not set, replies will fall back to the apology message")
    llm_client = LLMClient(
        api_key=runtime_config.openai_api_key,
        base_url=runtime_config.openai_base_url or None,
        timeout=runtime_config.llm_timeout,
        chat_model=runtime_config.chat_model,
        moderation_model=runtime_config.moderation_model,
    )

    app.state.redis = redis
    app.state.db = db
    app.state.llm_client = llm_client
    app.state.orchestrator = build_orchestrator(redis, PostgresChatStore(db), llm_client)
    app.state.conversation_limiter = RateLimiter(
        redis,
        limit=runtime_config.rate_limit_conversation_create,
        window_seconds=runtime_config.rate_limit_conversation_window,
        limit_type=RateLimitType.CONVERSATION_CREATE,
        fail_closed=runtime_config.rate_limit_fail_closed,
    )

    logger.info(f"{runtime_config.store_name} support chat ready ({runtime_config.app_env})")

    yield

    # Shutdown
    try:
        await llm_client.close()
    except Exception as e:
        logger.debug(f"LLM client close error: {e}")

    await db.disconnect()
    logger.info("PostgreSQL pool closed")

    await redis.disconnect()
    logger.info("Redis connection closed")


app = FastAPI(
    title="SupportChat",
    description="Customer-support chat with FAQ context and conversation history",
    version="1.0.0",
    lifespan=lifespan,
)

# Chat payloads are small; anything bigger than this is not a chat message
MAX_BODY_SIZE_API = 64 * 1024


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests with bodies exceeding the API size limit."""

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > MAX_BODY_SIZE_API:
            return JSONResponse(
                status_code=413,
                content={
                    "success": False,
                    "error": {
                        "code": ErrorCode.VALIDATION_OUT_OF_RANGE.value,
                        "message": f"Request body too large (limit {MAX_BODY_SIZE_API} bytes)",
                    },
                },
            )
        return await call_next(request)


register_exception_handlers(app)

app.add_middleware(RequestSizeLimitMiddleware)

# Conversation-creation throttling (per client IP)
app.add_middleware(RateLimitMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=runtime_config.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat.router, tags=["chat"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
