"""
SupportChat Validators - inbound message and outbound response checks

InputValidator rejects malformed requests before anything is persisted or
cached. ResponseValidator screens model output before it reaches the user.
"""

import re
from typing import Iterable, Optional

from errors import ErrorCode, ValidationError

MAX_MESSAGE_LENGTH = 2000

UUID_V4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

# Markup and script injection attempts
SUSPICIOUS_INPUT_PATTERNS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"eval\(", re.IGNORECASE),
]

HARMFUL_RESPONSE_PATTERNS = [
    re.compile(r"\b(kill|murder|harm|attack)\s+(yourself|others)", re.IGNORECASE),
    re.compile(r"\b(illegal|unlawful)\s+(activity|activities|action)", re.IGNORECASE),
    re.compile(r"\bpersonal\s+information\b", re.IGNORECASE),
]

_WHITESPACE_RUN = re.compile(r"\s+")
# C0 and C1 control characters (whitespace controls are collapsed first)
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")

REFUSAL_MARKER = "i cannot"
REFUSAL_MAX_LENGTH = 50


class InputValidator:
    """Checks conversation ids, message text and region filters."""

    def __init__(self, supported_regions: Iterable[str] = ("USA", "India", "Japan", "China"),
                 max_message_length: int = MAX_MESSAGE_LENGTH):
        self.supported_regions = list(supported_regions)
        self.max_message_length = max_message_length

    def validate_conversation_id(self, conversation_id) -> str:
        if not conversation_id or not isinstance(conversation_id, str):
            raise ValidationError(
                "Conversation ID is required",
                field="conversationId",
                code=ErrorCode.VALIDATION_MISSING_PARAM,
            )
        if not UUID_V4_PATTERN.match(conversation_id):
            raise ValidationError("Invalid conversation ID format", field="conversationId")
        return conversation_id

    def validate_chat_message(self, message) -> str:
        """
        Validate raw message text.

        Returns:
            The trimmed message (not yet sanitized)

        Raises:
            ValidationError: with field="message"
        """
        if message is None or not isinstance(message, str):
            raise ValidationError(
                "Message is required and must be a string",
                field="message",
                code=ErrorCode.VALIDATION_MISSING_PARAM,
            )

        trimmed = message.strip()
        if not trimmed:
            raise ValidationError(
                "Message cannot be empty",
                field="message",
                code=ErrorCode.VALIDATION_MISSING_PARAM,
            )
        if len(trimmed) > self.max_message_length:
            raise ValidationError(
                f"Message is too long (max {self.max_message_length} characters)",
                field="message",
                code=ErrorCode.VALIDATION_OUT_OF_RANGE,
            )
        self.check_unsafe_content(trimmed)
        return trimmed

    @staticmethod
    def check_unsafe_content(text: str) -> None:
        """Reject markup/script injection. Run again after sanitization."""
        if any(pattern.search(text) for pattern in SUSPICIOUS_INPUT_PATTERNS):
            raise ValidationError(
                "Message contains potentially harmful content",
                field="message",
                code=ErrorCode.VALIDATION_UNSAFE_CONTENT,
            )

    def validate_region(self, region) -> Optional[str]:
        if region is None:
            return None
        if not isinstance(region, str) or region not in self.supported_regions:
            raise ValidationError(
                f"Invalid region. Must be one of: {', '.join(self.supported_regions)}",
                field="region",
            )
        return region

    @staticmethod
    def sanitize_input(text: str) -> str:
        """Collapse whitespace runs, strip control characters, trim."""
        collapsed = _WHITESPACE_RUN.sub(" ", text)
        return _CONTROL_CHARS.sub("", collapsed).strip()


class ResponseValidator:
    """Screens generated text before it is persisted and returned."""

    @staticmethod
    def validate_ai_response(response: Optional[str]) -> bool:
        """False for empty output or a short bare refusal."""
        if not response or not isinstance(response, str):
            return False
        trimmed = response.strip()
        if not trimmed:
            return False
        if len(trimmed) < REFUSAL_MAX_LENGTH and REFUSAL_MARKER in trimmed.lower():
            return False
        return True

    @staticmethod
    def contains_harmful_content(response: str) -> bool:
        return any(pattern.search(response) for pattern in HARMFUL_RESPONSE_PATTERNS)
