"""
Content Moderation - flagged/safe verdicts for user messages.

Moderation fails open: if the moderation capability errors or times out,
the message is treated as safe and the fallback is logged at error level.
A moderation outage therefore never blocks chat traffic.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict

from errors import log_error

logger = logging.getLogger(__name__)


@dataclass
class ModerationResult:
    flagged: bool
    categories: Dict[str, bool] = field(default_factory=dict)

    @property
    def flagged_categories(self):
        return [name for name, hit in self.categories.items() if hit]


class ContentModerator:
    """Wraps LLMClient.moderate with a timeout and fail-open fallback."""

    def __init__(self, llm_client, timeout: float = 10.0):
        self.llm_client = llm_client
        self.timeout = timeout

    async def moderate(self, text: str) -> ModerationResult:
        try:
            flagged, categories = await asyncio.wait_for(
                self.llm_client.moderate(text), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"Moderation timed out after {self.timeout}s, treating message as safe")
            return ModerationResult(flagged=False)
        except Exception as e:
            log_error(logger, e, context="moderation fallback (fail-open)", include_traceback=False)
            return ModerationResult(flagged=False)

        result = ModerationResult(flagged=flagged, categories=categories)
        if result.flagged:
            logger.warning(f"Message flagged by moderation: {result.flagged_categories}")
        return result
