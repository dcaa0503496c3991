"""
Standard response builders for SupportChat.

Provides consistent response envelopes for the HTTP layer.
"""

from typing import Any
from .codes import ErrorCode
from .exceptions import SupportChatError, InternalError, AIServiceError

# Shown to users for any fault that is not a validation or rate-limit error
TECHNICAL_DIFFICULTIES_MESSAGE = (
    "We're experiencing technical difficulties. Please try again in a moment."
)


def error_response(error: SupportChatError | Exception, include_context: bool = True) -> dict:
    """Build a standard error response dictionary.

    Args:
        error: The exception to convert to a response
        include_context: Whether to include the context dict (disable for privacy)

    Returns:
        Standard error response dict with success=False

    Example:
        >>> from errors import ValidationError, error_response
        >>> err = ValidationError("Message cannot be empty", field="message")
        >>> error_response(err)
        {
            "success": False,
            "error": {
                "code": "VALIDATION_INVALID_FORMAT",
                "message": "Message cannot be empty",
                "details": None,
                "field": "message",
                "recoverable": True,
                "context": {"field": "message"}
            }
        }
    """
    if isinstance(error, SupportChatError) and not isinstance(error, (InternalError, AIServiceError)):
        body = {
            "code": error.code.value,
            "message": error.message,
            "details": error.details,
            "recoverable": error.recoverable,
            "context": error.context if include_context else None,
        }
        field = getattr(error, "field", None)
        if field:
            body["field"] = field
        reset_in = getattr(error, "reset_in", None)
        if reset_in is not None:
            body["resetIn"] = reset_in
        return {"success": False, "error": body}

    # Server-side and upstream failures never leak their text
    code = error.code if isinstance(error, SupportChatError) else ErrorCode.INTERNAL_UNEXPECTED
    return {
        "success": False,
        "error": {
            "code": code.value,
            "message": TECHNICAL_DIFFICULTIES_MESSAGE,
            "details": None,
            "recoverable": False,
            "context": None,
        },
    }


def success_response(data: Any = None, **kwargs: Any) -> dict:
    """Build a standard success response dictionary.

    Example:
        >>> success_response({"messages": []}, count=0)
        {"success": True, "data": {"messages": []}, "count": 0}
    """
    response: dict = {"success": True}

    if data is not None:
        response["data"] = data
    if kwargs:
        response.update(kwargs)

    return response
