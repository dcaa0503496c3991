"""
SupportChat Middleware - Request processing middleware.

- rate_limit: Fixed-window rate limiting for chat messages and REST endpoints
"""

from .rate_limit import RateLimitMiddleware, RateLimiter, RateLimitResult, RateLimitType

__all__ = ["RateLimitMiddleware", "RateLimiter", "RateLimitResult", "RateLimitType"]
