"""
Error codes for SupportChat.

Provides a standardized taxonomy of error codes organized by category.
Use these codes consistently across all error responses.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for SupportChat.

    Categories:
    - VALIDATION_*: Input validation errors
    - RATE_LIMIT_*: Request throttling
    - NOT_FOUND_*: Resource not found errors
    - AI_*: Completion and moderation service errors
    - INTERNAL_*: Internal/unexpected errors
    """

    # Validation errors (input checking)
    VALIDATION_MISSING_PARAM = "VALIDATION_MISSING_PARAM"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"
    VALIDATION_OUT_OF_RANGE = "VALIDATION_OUT_OF_RANGE"
    VALIDATION_UNSAFE_CONTENT = "VALIDATION_UNSAFE_CONTENT"
    VALIDATION_GUIDELINE_VIOLATION = "VALIDATION_GUIDELINE_VIOLATION"

    # Rate limiting
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Not found errors (missing resources)
    NOT_FOUND_CONVERSATION = "NOT_FOUND_CONVERSATION"

    # AI service errors (model interactions)
    AI_UNAVAILABLE = "AI_UNAVAILABLE"
    AI_TIMEOUT = "AI_TIMEOUT"
    AI_QUOTA_EXCEEDED = "AI_QUOTA_EXCEEDED"
    AI_INVALID_API_KEY = "AI_INVALID_API_KEY"
    AI_RESPONSE_INVALID = "AI_RESPONSE_INVALID"

    # Internal errors (unexpected failures)
    INTERNAL_UNEXPECTED = "INTERNAL_UNEXPECTED"
    INTERNAL_STORE_ERROR = "INTERNAL_STORE_ERROR"
