"""
Redis Connection Manager - Cache and rate-window infrastructure.

Provides:
- Async connection with health checks and reconnection
- Atomic fixed-window counters for rate limiting
- Graceful fallback to an in-memory LRU+TTL store when Redis is unavailable

The manager is constructed explicitly at startup and injected into the
components that need it (caches, rate limiter).

Usage:
    from services.redis_client import RedisManager

    redis = RedisManager(url=runtime_config.redis_url)
    await redis.connect()
    await redis.set("key", "value", ttl=60)
"""

import fnmatch
import logging
import asyncio
import time
from collections import OrderedDict
from typing import Optional, Any, Callable, Dict, List, Tuple
from dataclasses import dataclass, field

import redis.asyncio as redis_async

logger = logging.getLogger(__name__)

# INCR + first-hit PEXPIRE as one atomic step. A key that somehow lost its
# TTL gets one again on the next hit.
_INCR_WINDOW_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
local ttl = redis.call('PTTL', KEYS[1])
if ttl < 0 then
  redis.call('PEXPIRE', KEYS[1], ARGV[1])
  ttl = tonumber(ARGV[1])
end
return {count, ttl}
"""


@dataclass
class RedisManager:
    """
    Redis connection manager with fallback support.

    Maintains connection state and provides graceful degradation
    when Redis is unavailable.
    """

    url: str = "redis://localhost:6379/0"
    enabled: bool = True
    clock: Callable[[], float] = field(default=time.time, repr=False)

    # Fallback cache limits
    _fallback_max_entries: int = 5000

    # Connection state
    _client: Any = field(default=None, repr=False)
    _available: bool = field(default=False, repr=False)
    _fallback_mode: bool = field(default=False, repr=False)
    _local_cache: Any = field(default=None, repr=False)  # OrderedDict for LRU
    _local_cache_ttl: Dict[str, float] = field(default_factory=dict, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    _initialized: bool = field(default=False, repr=False)

    def __post_init__(self):
        if not self.enabled:
            self._enter_fallback(quiet=True)

    @property
    def available(self) -> bool:
        """Check if Redis is available."""
        return self._available and not self._fallback_mode

    @property
    def fallback_mode(self) -> bool:
        """Check if operating in fallback mode."""
        return self._fallback_mode

    async def connect(self) -> bool:
        """
        Establish Redis connection.

        Returns:
            True if connected, False if fallback mode activated
        """
        if not self.enabled:
            logger.info("Redis disabled by config, using in-memory fallback")
            self._enter_fallback(quiet=True)
            self._initialized = True
            return False

        async with self._lock:
            if self._initialized and self._available:
                return True

            try:
                self._client = redis_async.from_url(
                    self.url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=5.0,
                    socket_timeout=5.0,
                )
                await self._client.ping()
                self._available = True
                self._fallback_mode = False
                self._initialized = True
                logger.info(f"Redis connected: {self.url}")
                return True
            except Exception as e:
                logger.warning(f"Redis connection failed: {e}, using in-memory fallback")
                self._enter_fallback(quiet=True)
                self._initialized = True
                return False

    async def disconnect(self) -> None:
        """Close Redis connection."""
        async with self._lock:
            if self._client:
                try:
                    await self._client.aclose()
                except Exception as e:
                    logger.warning(f"Error closing Redis: {e}")
                finally:
                    self._client = None
                    self._available = False

    async def health_check(self) -> Dict[str, Any]:
        """
        Check Redis health status.

        Returns:
            Dict with status, mode, and latency info
        """
        if self._fallback_mode:
            return {
                "status": "fallback",
                "mode": "in-memory",
                "cache_size": len(self._local_cache) if self._local_cache is not None else 0,
            }

        if not self._client:
            return {"status": "disconnected", "mode": "none"}

        try:
            start = time.perf_counter()
            await self._client.ping()
            latency_ms = (time.perf_counter() - start) * 1000
            return {"status": "connected", "mode": "redis", "latency_ms": round(latency_ms, 2)}
        except Exception as e:
            logger.warning(f"Redis health check failed: {e}, switching to fallback")
            self._enter_fallback()
            return {"status": "error", "mode": "fallback", "error": str(e)}

    # === Key-Value Operations ===

    async def get(self, key: str) -> Optional[str]:
        """Get a value by key."""
        if self._fallback_mode:
            return self._fallback_get(key)

        try:
            return await self._client.get(key)
        except Exception as e:
            logger.warning(f"Redis GET failed for {key}: {e}")
            self._enter_fallback()
            return self._fallback_get(key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """Set a value with optional TTL in seconds."""
        if self._fallback_mode:
            self._fallback_set_with_ttl(key, value, ttl)
            return True

        try:
            if ttl:
                await self._client.setex(key, ttl, value)
            else:
                await self._client.set(key, value)
            return True
        except Exception as e:
            logger.warning(f"Redis SET failed for {key}: {e}")
            self._enter_fallback()
            self._fallback_set_with_ttl(key, value, ttl)
            return True

    async def delete(self, *keys: str) -> int:
        """Delete one or more keys. Returns the number removed."""
        if not keys:
            return 0

        if self._fallback_mode:
            return self._fallback_delete(keys)

        try:
            return await self._client.delete(*keys)
        except Exception as e:
            logger.warning(f"Redis DELETE failed for {keys}: {e}")
            self._enter_fallback()
            return self._fallback_delete(keys)

    async def exists(self, key: str) -> bool:
        """Check if key exists."""
        if self._fallback_mode:
            return self._fallback_get(key) is not None

        try:
            return await self._client.exists(key) > 0
        except Exception as e:
            logger.warning(f"Redis EXISTS failed for {key}: {e}")
            self._enter_fallback()
            return self._fallback_get(key) is not None

    async def get_ttl(self, key: str) -> int:
        """Get remaining TTL for a key in seconds (-2 missing, -1 no expiry)."""
        if self._fallback_mode:
            if self._fallback_get(key) is None:
                return -2
            expiry = self._local_cache_ttl.get(key)
            if expiry is None:
                return -1
            return max(0, int(expiry - self.clock()))

        try:
            return await self._client.ttl(key)
        except Exception as e:
            logger.warning(f"Redis TTL failed for {key}: {e}")
            return -1

    # === Rate Window Operations ===

    async def incr_window(self, key: str, window_ms: int) -> Tuple[int, int]:
        """
        Atomically count a hit in the fixed window stored at key.

        The first hit creates the window and sets its expiry; later hits
        only increment. Storage faults propagate so the caller can apply
        its own fail-open/fail-closed policy.

        Returns:
            Tuple of (count_in_window, remaining_window_ms)
        """
        if self._fallback_mode:
            return self._fallback_incr_window(key, window_ms)

        try:
            count, ttl_ms = await self._client.eval(_INCR_WINDOW_SCRIPT, 1, key, window_ms)
            return int(count), int(ttl_ms)
        except Exception as e:
            logger.warning(f"Redis window INCR failed for {key}: {e}")
            raise

    # === Key Scanning ===

    async def scan_keys(self, pattern: str) -> List[str]:
        """List keys matching a glob pattern (SCAN-based, non-blocking)."""
        if self._fallback_mode:
            return self._fallback_scan(pattern)

        try:
            return [key async for key in self._client.scan_iter(match=pattern, count=100)]
        except Exception as e:
            logger.warning(f"Redis SCAN failed for {pattern}: {e}")
            self._enter_fallback()
            return self._fallback_scan(pattern)

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern. Returns the number removed."""
        keys = await self.scan_keys(pattern)
        if not keys:
            return 0
        return await self.delete(*keys)

    # === Fallback Store ===

    def _ensure_local_cache(self) -> None:
        if self._local_cache is None:
            self._local_cache = OrderedDict()

    def _fallback_set_with_ttl(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Set a value in fallback cache with optional TTL and LRU eviction."""
        self._ensure_local_cache()

        # Enforce max entries - LRU eviction
        if len(self._local_cache) >= self._fallback_max_entries and key not in self._local_cache:
            self._sweep_expired()
            while len(self._local_cache) >= self._fallback_max_entries:
                evicted_key, _ = self._local_cache.popitem(last=False)
                self._local_cache_ttl.pop(evicted_key, None)

        self._local_cache[key] = value
        self._local_cache.move_to_end(key)
        if ttl is not None:
            self._local_cache_ttl[key] = self.clock() + ttl
        else:
            self._local_cache_ttl.pop(key, None)

    def _fallback_get(self, key: str) -> Optional[Any]:
        """Get a value from fallback cache, respecting TTL. Marks LRU access."""
        self._ensure_local_cache()
        expiry = self._local_cache_ttl.get(key)
        if expiry is not None and self.clock() > expiry:
            self._local_cache.pop(key, None)
            self._local_cache_ttl.pop(key, None)
            return None
        value = self._local_cache.get(key)
        if value is not None:
            self._local_cache.move_to_end(key)
        return value

    def _fallback_delete(self, keys) -> int:
        self._ensure_local_cache()
        removed = 0
        for key in keys:
            if self._local_cache.pop(key, None) is not None:
                removed += 1
            self._local_cache_ttl.pop(key, None)
        return removed

    def _fallback_scan(self, pattern: str) -> List[str]:
        self._ensure_local_cache()
        self._sweep_expired()
        return [k for k in self._local_cache if fnmatch.fnmatchcase(k, pattern)]

    def _fallback_incr_window(self, key: str, window_ms: int) -> Tuple[int, int]:
        # No await between read and write, so this is atomic on the event loop
        now = self.clock()
        current = self._fallback_get(key)
        expiry = self._local_cache_ttl.get(key)
        if current is None or expiry is None:
            self._fallback_set_with_ttl(key, "1", window_ms / 1000)
            return 1, window_ms

        count = int(current) + 1
        self._local_cache[key] = str(count)
        remaining_ms = int((expiry - now) * 1000)
        return count, max(0, remaining_ms)

    def _sweep_expired(self) -> None:
        """Remove expired entries from fallback cache."""
        now = self.clock()
        expired = [k for k, exp in self._local_cache_ttl.items() if now > exp]
        for k in expired:
            self._local_cache.pop(k, None)
            self._local_cache_ttl.pop(k, None)

    # === Internal ===

    def _enter_fallback(self, quiet: bool = False) -> None:
        """Switch to fallback mode."""
        if not self._fallback_mode:
            if not quiet:
                logger.warning("Redis unavailable, switching to in-memory fallback")
            self._fallback_mode = True
            self._available = False
        self._ensure_local_cache()

    async def try_reconnect(self) -> bool:
        """Attempt to reconnect to Redis."""
        if not self._fallback_mode or not self.enabled:
            return not self._fallback_mode

        logger.info("Attempting Redis reconnection...")
        self._fallback_mode = False
        self._initialized = False
        return await self.connect()
