"""
Rate Limiting - Redis-backed fixed-window request throttling.

Provides rate limiting for:
- Chat messages (per conversation, checked by the chat orchestrator)
- Conversation creation (per client IP, via middleware)

Each window is one Redis key holding a counter. The first hit in a window
creates the key with a TTL equal to the window, so idle keys expire on
their own. Storage faults follow an explicit policy: pass the request
through (default) or deny it when rate_limit_fail_closed is set.

Usage:
    limiter = RateLimiter(redis, limit=10, window_seconds=60)
    result = await limiter.check_limit(conversation_id)
    if not result.allowed:
        raise RateLimitError("Too many messages", reset_in=result.reset_in)
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from errors import ErrorCode

logger = logging.getLogger(__name__)


class RateLimitType(Enum):
    """Rate limit types with their Redis key patterns."""
    CHAT_MESSAGE = "supportchat:rl:msg"          # Per conversation
    CONVERSATION_CREATE = "supportchat:rl:conv"  # Per IP


@dataclass
class RateLimitResult:
    """Outcome of a single rate-limit check."""

    allowed: bool
    count: int
    limit: int
    reset_in: Optional[int] = None  # Seconds until the window resets (set when denied)


class RateLimiter:
    """Fixed-window limiter: at most `limit` requests per `window_seconds` per key."""

    def __init__(
        self,
        redis,
        limit: int = 10,
        window_seconds: int = 60,
        limit_type: RateLimitType = RateLimitType.CHAT_MESSAGE,
        fail_closed: bool = False,
    ):
        self.redis = redis
        self.limit = limit
        self.window_seconds = window_seconds
        self.limit_type = limit_type
        self.fail_closed = fail_closed

    def _make_key(self, identifier: str) -> str:
        return f"{self.limit_type.value}:{identifier}"

    async def check_limit(self, identifier: str) -> RateLimitResult:
        """
        Count a request for identifier and decide whether it may proceed.

        Args:
            identifier: Unique identifier (conversation_id, client IP, ...)

        Returns:
            RateLimitResult; reset_in is populated when the request is denied
        """
        key = self._make_key(identifier)

        try:
            count, remaining_ms = await self.redis.incr_window(key, self.window_seconds * 1000)
        except Exception as e:
            if self.fail_closed:
                logger.error(f"Rate limit check failed (fail-closed) for {identifier}: {e}")
                return RateLimitResult(
                    allowed=False, count=0, limit=self.limit, reset_in=self.window_seconds
                )
            logger.error(f"Rate limit check failed for {identifier}: {e}, limiter bypassed")
            return RateLimitResult(allowed=True, count=0, limit=self.limit)

        if count <= self.limit:
            return RateLimitResult(allowed=True, count=count, limit=self.limit)

        reset_in = max(1, math.ceil(remaining_ms / 1000))
        logger.warning(
            f"Rate limit exceeded: {self.limit_type.name} for {identifier} "
            f"({count}/{self.limit} in {self.window_seconds}s, resets in {reset_in}s)"
        )
        return RateLimitResult(allowed=False, count=count, limit=self.limit, reset_in=reset_in)

    async def reset(self, identifier: str) -> None:
        """Drop the current window for identifier."""
        await self.redis.delete(self._make_key(identifier))


def _get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    # Check X-Forwarded-For header (set by nginx/load balancer)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Take first IP in chain (original client)
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-IP rate limiting for REST endpoints that create resources.

    Chat message throttling is per conversation and lives in the
    orchestrator; this middleware only covers conversation creation.
    """

    # (method, path) -> app.state attribute holding the limiter
    RATE_LIMITED_ROUTES = {
        ("POST", "/api/chat/conversations"): "conversation_limiter",
    }

    async def dispatch(self, request: Request, call_next) -> Response:
        """Process request with rate limiting."""
        attr = self.RATE_LIMITED_ROUTES.get((request.method, request.url.path.rstrip("/")))
        limiter: Optional[RateLimiter] = getattr(request.app.state, attr, None) if attr else None
        if limiter is None:
            return await call_next(request)

        client_ip = _get_client_ip(request)
        result = await limiter.check_limit(client_ip)

        if not result.allowed:
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": {
                        "code": ErrorCode.RATE_LIMIT_EXCEEDED.value,
                        "message": "Too many conversations created. Please try again later.",
                        "resetIn": result.reset_in,
                    },
                },
                headers={
                    "X-RateLimit-Limit": str(result.limit),
                    "X-RateLimit-Remaining": "0",
                    "Retry-After": str(result.reset_in),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, result.limit - result.count))
        return response
