"""
Tests for the OpenAI wrapper: result shaping and SDK error translation.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from errors import AIServiceError, ErrorCode
from services.llm_client import LLMClient, _translate_openai_error


def run(coro):
    return asyncio.run(coro)


_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _status_error(cls, status, body=None):
    return cls("upstream said no", response=httpx.Response(status, request=_REQUEST), body=body)


def _client_with_fake_sdk():
    client = LLMClient(api_key="sk-test")
    client._openai = MagicMock()
    client._openai.chat.completions.create = AsyncMock()
    client._openai.moderations.create = AsyncMock()
    return client


class TestTranslateOpenAIError:
    """SDK exceptions map onto AIServiceError codes."""

    def test_timeout(self):
        err = _translate_openai_error(openai.APITimeoutError(request=_REQUEST), "m")
        assert err.code == ErrorCode.AI_TIMEOUT

    def test_auth(self):
        err = _translate_openai_error(_status_error(openai.AuthenticationError, 401), "m")
        assert err.code == ErrorCode.AI_INVALID_API_KEY

    def test_quota(self):
        exc = _status_error(openai.RateLimitError, 429, body={"code": "insufficient_quota"})
        assert _translate_openai_error(exc, "m").code == ErrorCode.AI_QUOTA_EXCEEDED

    def test_plain_rate_limit_is_unavailable(self):
        exc = _status_error(openai.RateLimitError, 429, body={"code": "rate_limit_exceeded"})
        assert _translate_openai_error(exc, "m").code == ErrorCode.AI_UNAVAILABLE

    def test_connection(self):
        err = _translate_openai_error(openai.APIConnectionError(request=_REQUEST), "m")
        assert err.code == ErrorCode.AI_UNAVAILABLE
        assert err.context["model"] == "m"


class TestComplete:
    def test_returns_text(self):
        client = _client_with_fake_sdk()
        client._openai.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="Hello there"))]
        )
        messages = [{"role": "user", "content": "hi"}]

        assert run(client.complete(messages, temperature=0.3, max_tokens=50)) == "Hello there"
        kwargs = client._openai.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-3.5-turbo"
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 50

    def test_no_choices_is_empty(self):
        client = _client_with_fake_sdk()
        client._openai.chat.completions.create.return_value = SimpleNamespace(choices=[])
        assert run(client.complete([])) == ""

    def test_sdk_error_is_translated(self):
        client = _client_with_fake_sdk()
        client._openai.chat.completions.create.side_effect = openai.APITimeoutError(request=_REQUEST)
        with pytest.raises(AIServiceError) as exc:
            run(client.complete([]))
        assert exc.value.code == ErrorCode.AI_TIMEOUT


class TestModerate:
    def test_flag_and_categories(self):
        client = _client_with_fake_sdk()
        categories = MagicMock()
        categories.model_dump.return_value = {"harassment": True, "self-harm": False}
        client._openai.moderations.create.return_value = SimpleNamespace(
            results=[SimpleNamespace(flagged=True, categories=categories)]
        )

        flagged, cats = run(client.moderate("you are awful"))
        assert flagged is True
        assert cats == {"harassment": True, "self-harm": False}
        categories.model_dump.assert_called_once_with(by_alias=True)
