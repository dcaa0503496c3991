"""
LLM Client - wraps the OpenAI SDK for chat completions and moderation.

Both capabilities go through one AsyncOpenAI instance. SDK exceptions are
translated into AIServiceError with a code describing the failure kind
(timeout, quota, auth, unavailable), so callers never depend on SDK types.

The client is constructed at startup and injected into ContentModerator
and ResponseGenerator.
"""

import logging
import time
from typing import Dict, List, Optional, Tuple

import httpx
import openai
from openai import AsyncOpenAI

from errors import AIServiceError
from logging_config import log_llm

logger = logging.getLogger(__name__)


def _translate_openai_error(error: Exception, model: str) -> AIServiceError:
    """Map an OpenAI SDK exception to AIServiceError."""
    if isinstance(error, openai.APITimeoutError):
        return AIServiceError("AI service timed out", details=str(error), model=model, error_type="timeout")
    if isinstance(error, openai.AuthenticationError):
        return AIServiceError("Invalid OpenAI API key", model=model, error_type="auth")
    if isinstance(error, openai.RateLimitError):
        if getattr(error, "code", None) == "insufficient_quota":
            return AIServiceError(
                "OpenAI API quota exceeded", details="Check the account billing", model=model, error_type="quota"
            )
        return AIServiceError("AI service is rate limiting requests", details=str(error), model=model)
    if isinstance(error, openai.APIConnectionError):
        return AIServiceError("AI service unreachable", details=str(error), model=model)
    return AIServiceError(f"AI service error: {error}", model=model)


class LLMClient:
    """Async wrapper over an OpenAI-compatible API."""

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        chat_model: str = "gpt-3.5-turbo",
        moderation_model: str = "omni-moderation-latest",
    ):
        """
        Args:
            api_key: OpenAI API key
            base_url: Optional OpenAI-compatible endpoint (None = SDK default)
            timeout: Request timeout in seconds
            chat_model: Default completion model
            moderation_model: Default moderation model
        """
        self.chat_model = chat_model
        self.moderation_model = moderation_model
        self._openai = AsyncOpenAI(
            api_key=api_key or "not-configured",
            base_url=base_url or None,
            timeout=httpx.Timeout(timeout, connect=5.0),
            max_retries=1,
        )

    async def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 500,
        model: Optional[str] = None,
    ) -> str:
        """Run a non-streaming chat completion and return the text.

        Args:
            messages: OpenAI-format messages (system, history, user)
            temperature: Sampling temperature
            max_tokens: Output token cap
            model: Override for the default chat model

        Returns:
            Completion text ("" if the model returned no content)

        Raises:
            AIServiceError: on any SDK or transport failure
        """
        model = model or self.chat_model
        log_llm(logger, "start", model=model)
        start = time.perf_counter()

        try:
            completion = await self._openai.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                stream=False,
            )
        except openai.OpenAIError as e:
            raise _translate_openai_error(e, model) from e

        log_llm(logger, "end", model=model, duration=time.perf_counter() - start)

        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""

    async def moderate(self, text: str, model: Optional[str] = None) -> Tuple[bool, Dict[str, bool]]:
        """Classify text with the moderation endpoint.

        Returns:
            (flagged, categories) where categories maps category name to bool

        Raises:
            AIServiceError: on any SDK or transport failure
        """
        model = model or self.moderation_model
        try:
            moderation = await self._openai.moderations.create(input=text, model=model)
        except openai.OpenAIError as e:
            raise _translate_openai_error(e, model) from e

        result = moderation.results[0]
        categories = {
            name: bool(value)
            for name, value in result.categories.model_dump(by_alias=True).items()
        }
        return bool(result.flagged), categories

    async def close(self) -> None:
        await self._openai.close()
