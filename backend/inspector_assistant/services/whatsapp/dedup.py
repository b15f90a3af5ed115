"""
Redis-based Delivery Guard for Inbound Webhooks

The messaging platform may deliver the same inbound message more than once.
The guard claims each provider message id for a TTL (24 hours by default);
a second delivery of a claimed id is reported as a duplicate. A claim is
released when processing fails so that redelivery gets a fresh attempt.

Falls back to in-memory storage if Redis is unavailable.
"""

import time
import logging
from typing import Optional, Dict

from ... import config

logger = logging.getLogger(__name__)

KEY_PREFIX = "wa:inbound:"

# In-memory claims are swept of expired ids once the map reaches this size
MEMORY_SWEEP_THRESHOLD = 10_000


class DeliveryGuard:
    """
    Claim/release provider message ids.

    Args:
        redis_url: Redis connection URL (REDIS_URL when omitted)
        ttl_seconds: How long a claimed id blocks redelivery
        redis_client: Pre-built redis.asyncio client (tests)
        memory_sweep_threshold: Fallback map size that triggers an expiry sweep
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        redis_client=None,
        memory_sweep_threshold: int = MEMORY_SWEEP_THRESHOLD
    ):
        self.redis_url = redis_url or config.redis_url()
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else config.dedup_ttl_seconds()
        self._redis = redis_client
        self._redis_available = True if redis_client is not None else None
        self._memory: Dict[str, float] = {}
        self.memory_sweep_threshold = memory_sweep_threshold

    async def _get_redis(self):
        """Get or create Redis connection"""
        if self._redis_available is False:
            return None

        if self._redis is not None:
            return self._redis

        try:
            import redis.asyncio as redis
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5
            )
            await self._redis.ping()
            self._redis_available = True
            logger.info(f"Connected to Redis at {self.redis_url}")
            return self._redis
        except Exception as e:
            logger.warning(f"Redis unavailable, using in-memory delivery guard: {e}")
            self._redis = None
            self._redis_available = False
            return None

    async def claim(self, message_id: Optional[str]) -> bool:
        """
        Claim a message id.

        Returns:
            True if this is the first delivery (or no id was given),
            False if the id was already claimed within the TTL
        """
        if not message_id:
            return True

        key = f"{KEY_PREFIX}{message_id}"

        redis = await self._get_redis()
        if redis:
            try:
                claimed = await redis.set(key, "1", nx=True, ex=self.ttl_seconds)
                return bool(claimed)
            except Exception as e:
                logger.error(f"Error claiming {key} in Redis: {e}")

        now = time.monotonic()
        if len(self._memory) >= self.memory_sweep_threshold:
            self._sweep(now)

        expires_at = self._memory.get(key)
        if expires_at is not None and expires_at > now:
            return False
        self._memory[key] = now + self.ttl_seconds
        return True

    async def release(self, message_id: Optional[str]) -> None:
        """Forget a claim so the next delivery is processed."""
        if not message_id:
            return

        key = f"{KEY_PREFIX}{message_id}"

        redis = await self._get_redis()
        if redis:
            try:
                await redis.delete(key)
            except Exception as e:
                logger.error(f"Error releasing {key} in Redis: {e}")

        self._memory.pop(key, None)

    def _sweep(self, now: float) -> None:
        """Drop in-memory claims whose TTL has passed."""
        expired = [key for key, expires_at in self._memory.items() if expires_at <= now]
        for key in expired:
            del self._memory[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired delivery claims")
