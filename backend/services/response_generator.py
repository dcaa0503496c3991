"""
Response Generator - support-assistant prompt assembly and completion.

Builds the system prompt around the FAQ context block, appends the most
recent history turns and the current user message, then calls the
completion capability with bounded temperature and output length.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from errors import AIServiceError
from .history_cache import ChatTurn

logger = logging.getLogger(__name__)

MAX_HISTORY_TURNS = 10

DEFAULT_REGIONS = ("USA", "India", "Japan", "China")

SYSTEM_PROMPT_TEMPLATE = """You are a helpful and friendly customer support AI for {store_name}, an online gaming accessories store.

Your ONLY role is to help with {store_name} store-related questions:
- Products (gaming mice, keyboards, headsets, controllers, etc.)
- Shipping (to {region_list} only)
- Returns and refunds
- Payment methods
- Order tracking
- Product recommendations
- Store policies

STAY ON TOPIC:
If a customer asks about ANYTHING not related to {store_name} (programming, general knowledge, other topics), reply exactly:
"{refusal}"

CRITICAL RULES:
1. ONLY answer questions related to {store_name} and its orders
2. DO NOT answer general knowledge questions, tech questions, or off-topic queries
3. Be specific and direct with store-related answers
4. For shipping: We ONLY ship to {region_list}
5. If asked about unsupported countries: "Currently, we only ship to {region_list}. Unfortunately, we don't ship to [country] at this time."
6. Use the FAQ context when available, make reasonable e-commerce inferences otherwise
7. Only suggest human support for complex account-specific issues

FAQ Context:
{faq_context}"""

OFF_TOPIC_REFUSAL = (
    "I'm here to help with questions about {store_name} - our gaming products, shipping, "
    "returns, and orders. How can I assist you with your shopping today?"
)


def build_system_prompt(faq_context: str, store_name: str = "GamerHub", regions=DEFAULT_REGIONS) -> str:
    regions = list(regions)
    if len(regions) > 1:
        region_list = ", ".join(regions[:-1]) + f", and {regions[-1]}"
    else:
        region_list = regions[0] if regions else "our supported regions"

    return SYSTEM_PROMPT_TEMPLATE.format(
        store_name=store_name,
        region_list=region_list,
        refusal=OFF_TOPIC_REFUSAL.format(store_name=store_name),
        faq_context=faq_context,
    )


class ResponseGenerator:
    """Turns a user message plus FAQ context and history into an assistant reply."""

    def __init__(
        self,
        llm_client,
        store_name: str = "GamerHub",
        regions=DEFAULT_REGIONS,
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout: float = 30.0,
    ):
        self.llm_client = llm_client
        self.store_name = store_name
        self.regions = tuple(regions)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    def build_messages(
        self,
        user_message: str,
        faq_context: str,
        history: Optional[List[ChatTurn]] = None,
    ) -> List[Dict[str, str]]:
        messages = [
            {"role": "system", "content": build_system_prompt(faq_context, self.store_name, self.regions)}
        ]
        if history:
            messages.extend(turn.to_dict() for turn in history[-MAX_HISTORY_TURNS:])
        messages.append({"role": "user", "content": user_message})
        return messages

    async def generate(
        self,
        user_message: str,
        faq_context: str,
        history: Optional[List[ChatTurn]] = None,
    ) -> str:
        """
        Generate a support reply.

        Raises:
            AIServiceError: on completion failure or timeout
        """
        messages = self.build_messages(user_message, faq_context, history)
        try:
            return await asyncio.wait_for(
                self.llm_client.complete(
                    messages, temperature=self.temperature, max_tokens=self.max_tokens
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise AIServiceError(
                f"Completion timed out after {self.timeout}s", error_type="timeout"
            ) from e
