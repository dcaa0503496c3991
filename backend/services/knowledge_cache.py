"""
Knowledge Cache - Redis-backed FAQ search results.

Caches the list of FAQ entries a search returned, keyed by the normalized
query text plus the region filter. Empty result lists are cached too, so a
fruitless query is not searched again until the entry expires.

Key pattern: supportchat:faq:search:{normalized query}:{region or "global"}
TTL: 1 hour (configurable)

Also renders search results into the FAQ context block injected into the
assistant prompt, and recovers source categories from that block.
"""

import json
import logging
import re
from typing import List, Optional

from logging_config import log_cache
from .chat_store import FAQEntry

logger = logging.getLogger(__name__)

FAQ_PREFIX = "supportchat:faq:"
FAQ_SEARCH_PREFIX = f"{FAQ_PREFIX}search:"

NO_FAQ_CONTEXT = "No relevant FAQ information found."

_WHITESPACE = re.compile(r"\s+")
_CATEGORY_MARKER = re.compile(r"Category: ([^\[\n]+)")


def normalize_query(query: str) -> str:
    """Lowercase and collapse whitespace so trivially different queries share a key."""
    return _WHITESPACE.sub(" ", query).strip().lower()


def format_faq_context(entries: List[FAQEntry]) -> str:
    """Render FAQ entries as numbered blocks separated by a blank line."""
    if not entries:
        return NO_FAQ_CONTEXT

    blocks = []
    for index, faq in enumerate(entries, start=1):
        region_info = f" [{faq.region}]" if faq.region else " [Global]"
        blocks.append(f"{index}. Category: {faq.category}{region_info}\nQ: {faq.question}\nA: {faq.answer}")
    return "\n\n".join(blocks)


def extract_sources(faq_context: str) -> List[str]:
    """Distinct category labels found in a rendered FAQ context, in order of appearance."""
    sources: List[str] = []
    for match in _CATEGORY_MARKER.finditer(faq_context):
        category = match.group(1).strip()
        if category and category not in sources:
            sources.append(category)
    return sources


class KnowledgeCache:
    """
    Redis-backed FAQ search cache.

    Handles serialization of FAQEntry lists to JSON strings with
    TTL expiry managed by the store.
    """

    def __init__(self, redis, ttl_seconds: int = 3600):
        """
        Args:
            redis: RedisManager instance
            ttl_seconds: Search-result TTL in seconds (default 1 hour)
        """
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    def _make_key(self, query: str, region: Optional[str]) -> str:
        return f"{FAQ_SEARCH_PREFIX}{normalize_query(query)}:{region or 'global'}"

    async def get(self, query: str, region: Optional[str] = None) -> Optional[List[FAQEntry]]:
        """
        Look up cached search results.

        Returns:
            List of FAQEntry (possibly empty) on hit, None on miss
        """
        key = self._make_key(query, region)
        raw = await self.redis.get(key)
        if raw is None:
            log_cache(logger, "faq", hit=False, key=key)
            return None

        try:
            entries = [FAQEntry.from_dict(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Discarding corrupt FAQ cache entry {key}: {e}")
            await self.redis.delete(key)
            return None

        log_cache(logger, "faq", hit=True, key=key)
        return entries

    async def put(
        self,
        query: str,
        region: Optional[str],
        entries: List[FAQEntry],
        ttl: Optional[int] = None,
    ) -> bool:
        """Store search results (an empty list is a valid value)."""
        key = self._make_key(query, region)
        try:
            payload = json.dumps([e.to_dict() for e in entries])
            return await self.redis.set(key, payload, ttl=ttl or self.ttl_seconds)
        except Exception as e:
            logger.error(f"Failed to cache FAQ search {key}: {e}")
            return False

    async def invalidate_all(self) -> int:
        """Drop every cached FAQ search (after FAQ content changes)."""
        removed = await self.redis.delete_pattern(f"{FAQ_PREFIX}*")
        logger.info(f"FAQ cache invalidated ({removed} keys)")
        return removed

    async def count(self) -> int:
        return len(await self.redis.scan_keys(f"{FAQ_PREFIX}*"))
