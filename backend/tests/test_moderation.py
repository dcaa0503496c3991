"""
Tests for fail-open content moderation.
"""

import asyncio
import logging
from unittest.mock import AsyncMock

from errors import AIServiceError
from services.moderation import ContentModerator, ModerationResult


def run(coro):
    return asyncio.run(coro)


class TestContentModerator:
    """Verdicts and the fail-open fallback."""

    def test_safe_message(self, llm_client):
        result = run(ContentModerator(llm_client).moderate("Where is my order?"))
        assert result.flagged is False
        llm_client.moderate.assert_awaited_once_with("Where is my order?")

    def test_flagged_message(self):
        client = AsyncMock()
        client.moderate.return_value = (True, {"harassment": True, "violence": False})
        result = run(ContentModerator(client).moderate("..."))
        assert result.flagged is True
        assert result.flagged_categories == ["harassment"]

    def test_upstream_error_fails_open(self, caplog):
        client = AsyncMock()
        client.moderate.side_effect = AIServiceError("AI service unreachable")
        with caplog.at_level(logging.ERROR, logger="services.moderation"):
            result = run(ContentModerator(client).moderate("hello"))
        assert result == ModerationResult(flagged=False, categories={})
        assert "fail-open" in caplog.text

    def test_timeout_fails_open(self, caplog):
        async def slow(_text):
            await asyncio.sleep(5)
            return True, {}

        client = AsyncMock()
        client.moderate.side_effect = slow
        with caplog.at_level(logging.ERROR, logger="services.moderation"):
            result = run(ContentModerator(client, timeout=0.05).moderate("hello"))
        assert result.flagged is False
        assert "timed out" in caplog.text
