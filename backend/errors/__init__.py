"""
SupportChat Error Handling Module

Provides standardized error codes, exceptions, and response builders
for consistent error handling across the application.

Usage:
    from errors import (
        # Error codes
        ErrorCode,

        # Exceptions
        SupportChatError,
        ValidationError,
        RateLimitError,
        NotFoundError,
        AIServiceError,
        InternalError,

        # Response builders
        error_response,
        success_response,

        # Handlers
        register_exception_handlers,
        log_error,
    )

Example:
    from errors import ValidationError, RateLimitError

    if not message.strip():
        raise ValidationError("Message cannot be empty", field="message")

    result = await limiter.check_limit(conversation_id)
    if not result.allowed:
        raise RateLimitError("Too many messages", reset_in=result.reset_in)
"""

from .codes import ErrorCode
from .exceptions import (
    SupportChatError,
    ValidationError,
    RateLimitError,
    NotFoundError,
    AIServiceError,
    InternalError,
)
from .response import (
    TECHNICAL_DIFFICULTIES_MESSAGE,
    error_response,
    success_response,
)
from .handlers import (
    register_exception_handlers,
    log_error,
)

__all__ = [
    # Error codes
    "ErrorCode",
    # Exceptions
    "SupportChatError",
    "ValidationError",
    "RateLimitError",
    "NotFoundError",
    "AIServiceError",
    "InternalError",
    # Response builders
    "TECHNICAL_DIFFICULTIES_MESSAGE",
    "error_response",
    "success_response",
    # Handlers
    "register_exception_handlers",
    "log_error",
]
