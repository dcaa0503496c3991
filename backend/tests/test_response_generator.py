"""
Tests for prompt assembly and completion in ResponseGenerator.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from errors import AIServiceError, ErrorCode
from services.history_cache import ChatTurn
from services.response_generator import OFF_TOPIC_REFUSAL, ResponseGenerator, build_system_prompt


def run(coro):
    return asyncio.run(coro)


class TestSystemPrompt:
    def test_injects_context_verbatim(self):
        context = "1. Category: Shipping [Global]\nQ: How fast?\nA: 5-7 days."
        prompt = build_system_prompt(context)
        assert prompt.endswith(context)

    def test_domain_and_refusal(self):
        prompt = build_system_prompt("ctx", store_name="GamerHub")
        assert "GamerHub" in prompt
        assert OFF_TOPIC_REFUSAL.format(store_name="GamerHub") in prompt
        assert "USA, India, Japan, and China" in prompt

    def test_custom_regions(self):
        prompt = build_system_prompt("ctx", regions=["USA", "Canada"])
        assert "USA, and Canada" in prompt


class TestBuildMessages:
    """Message ordering: system, history window, user."""

    def test_order(self):
        gen = ResponseGenerator(AsyncMock())
        history = [ChatTurn("user", "hi"), ChatTurn("assistant", "hello")]
        messages = gen.build_messages("Where is my order?", "ctx", history)
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[-1]["content"] == "Where is my order?"

    def test_history_capped_at_ten(self):
        gen = ResponseGenerator(AsyncMock())
        history = [ChatTurn("user", str(i)) for i in range(15)]
        messages = gen.build_messages("now", "ctx", history)
        assert len(messages) == 12
        assert messages[1]["content"] == "5"

    def test_no_history(self):
        messages = ResponseGenerator(AsyncMock()).build_messages("now", "ctx")
        assert len(messages) == 2


class TestGenerate:
    def test_passes_sampling_settings(self):
        client = AsyncMock()
        client.complete.return_value = "Sure thing."
        gen = ResponseGenerator(client, temperature=0.2, max_tokens=123)

        assert run(gen.generate("hi", "ctx", [])) == "Sure thing."
        kwargs = client.complete.await_args.kwargs
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 123

    def test_timeout_raises_ai_timeout(self):
        async def slow(*args, **kwargs):
            await asyncio.sleep(5)
            return "late"

        client = AsyncMock()
        client.complete.side_effect = slow
        gen = ResponseGenerator(client, timeout=0.05)

        with pytest.raises(AIServiceError) as exc:
            run(gen.generate("hi", "ctx", []))
        assert exc.value.code == ErrorCode.AI_TIMEOUT

    def test_upstream_error_propagates(self):
        client = AsyncMock()
        client.complete.side_effect = AIServiceError("quota", error_type="quota")
        with pytest.raises(AIServiceError):
            run(ResponseGenerator(client).generate("hi", "ctx", []))
