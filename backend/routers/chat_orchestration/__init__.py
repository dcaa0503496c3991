"""
SupportChat Chat Orchestration - the chat turn pipeline

Components:
- InputValidator: conversation id, message and region checks plus sanitization
- ResponseValidator: screens generated replies (empty, refusal, harmful)
- ChatOrchestrator: validate -> rate limit -> moderate -> persist -> context
  -> generate -> persist -> invalidate

Fallback logic:
    Validation, rate-limit and moderation rejections abort before any write.
    Once the user message is stored, context or generation failures return
    a fixed apology instead of an error, so the caller always gets a reply.
"""

from .validators import InputValidator, ResponseValidator
from .orchestrator import (
    FALLBACK_RESPONSE,
    HARMFUL_RESPONSE_OVERRIDE,
    SUGGESTED_QUESTIONS,
    ChatOrchestrator,
    ChatResult,
)

__all__ = [
    "InputValidator",
    "ResponseValidator",
    "ChatOrchestrator",
    "ChatResult",
    "FALLBACK_RESPONSE",
    "HARMFUL_RESPONSE_OVERRIDE",
    "SUGGESTED_QUESTIONS",
]
