"""
Custom exception hierarchy for SupportChat.

All exceptions inherit from SupportChatError and include:
- code: ErrorCode for categorization
- message: Human-readable error message
- details: Optional additional context
- recoverable: Whether the user can retry/fix the issue
- context: Additional key-value pairs for debugging
"""

from typing import Any, Optional
from .codes import ErrorCode


class SupportChatError(Exception):
    """Base exception for all SupportChat errors.

    Attributes:
        code: The ErrorCode categorizing this error
        message: Human-readable error message
        details: Optional additional context for the user
        recoverable: Whether the error can be resolved by user action
        context: Additional debugging information
    """

    code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED
    recoverable: bool = False
    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        recoverable: Optional[bool] = None,
        **context: Any,
    ):
        self.message = message
        self.details = details
        self.context = context if context else None

        # Allow overriding class defaults
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable

        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message

    def to_dict(self) -> dict:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class ValidationError(SupportChatError):
    """Bad input shape or content. Never retried; carries the offending field."""

    code = ErrorCode.VALIDATION_INVALID_FORMAT
    recoverable = True
    status_code = 400

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        field: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        **context: Any,
    ):
        self.field = field
        ctx = {**context}
        if field:
            ctx["field"] = field
        super().__init__(message, details, code=code, **ctx)


class RateLimitError(SupportChatError):
    """Too many requests for a key within the current window."""

    code = ErrorCode.RATE_LIMIT_EXCEEDED
    recoverable = True
    status_code = 429

    def __init__(self, message: str, reset_in: int, details: Optional[str] = None, **context: Any):
        self.reset_in = reset_in
        super().__init__(message, details, reset_in=reset_in, **context)


class NotFoundError(SupportChatError):
    """Error when a required resource is not found."""

    code = ErrorCode.NOT_FOUND_CONVERSATION
    recoverable = True
    status_code = 404

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if resource_type:
            ctx["resource_type"] = resource_type
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message, details, **ctx)


class AIServiceError(SupportChatError):
    """Completion or moderation infrastructure failure."""

    code = ErrorCode.AI_UNAVAILABLE
    recoverable = False
    status_code = 503

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        model: Optional[str] = None,
        error_type: Optional[str] = None,
        **context: Any,
    ):
        # Set appropriate code based on error type
        if error_type == "timeout":
            code = ErrorCode.AI_TIMEOUT
        elif error_type == "quota":
            code = ErrorCode.AI_QUOTA_EXCEEDED
        elif error_type == "auth":
            code = ErrorCode.AI_INVALID_API_KEY
        elif error_type == "invalid":
            code = ErrorCode.AI_RESPONSE_INVALID
        else:
            code = ErrorCode.AI_UNAVAILABLE

        ctx = {**context}
        if model:
            ctx["model"] = model
        super().__init__(message, details, code=code, **ctx)


class InternalError(SupportChatError):
    """Unexpected fault. The user-facing message is always generic."""

    code = ErrorCode.INTERNAL_UNEXPECTED
    recoverable = False
    status_code = 500
