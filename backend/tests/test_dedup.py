"""
Tests for the inbound delivery guard.
"""
import pytest
from unittest.mock import AsyncMock

from inspector_assistant.services.whatsapp.dedup import DeliveryGuard, KEY_PREFIX


def memory_guard(ttl_seconds=60, **kwargs):
    guard = DeliveryGuard(redis_url="redis://unused", ttl_seconds=ttl_seconds, **kwargs)
    guard._redis_available = False
    return guard


class TestMemoryFallback:
    """Claims tracked in process memory when Redis is unavailable."""

    @pytest.mark.asyncio
    async def test_first_claim_wins(self):
        guard = memory_guard()
        assert await guard.claim("m1") is True
        assert await guard.claim("m1") is False

    @pytest.mark.asyncio
    async def test_release_allows_reclaim(self):
        guard = memory_guard()
        await guard.claim("m1")
        await guard.release("m1")
        assert await guard.claim("m1") is True

    @pytest.mark.asyncio
    async def test_expired_claim_can_be_reclaimed(self):
        guard = memory_guard(ttl_seconds=0)
        assert await guard.claim("m1") is True
        assert await guard.claim("m1") is True

    @pytest.mark.asyncio
    async def test_expired_claims_are_swept(self):
        guard = memory_guard(ttl_seconds=0, memory_sweep_threshold=10)
        for index in range(1000):
            assert await guard.claim(f"m{index}") is True
        assert len(guard._memory) <= 10

    @pytest.mark.asyncio
    async def test_sweep_keeps_live_claims(self):
        guard = memory_guard(ttl_seconds=60, memory_sweep_threshold=3)
        for index in range(5):
            await guard.claim(f"m{index}")
        for index in range(5):
            assert await guard.claim(f"m{index}") is False
        assert len(guard._memory) == 5

    @pytest.mark.asyncio
    async def test_missing_id_always_processed(self):
        guard = memory_guard()
        assert await guard.claim(None) is True
        assert await guard.claim(None) is True


class TestRedisBackend:
    """Claims stored with SET NX EX."""

    @pytest.mark.asyncio
    async def test_claim_uses_set_nx_with_ttl(self):
        redis = AsyncMock()
        redis.set.return_value = True
        guard = DeliveryGuard(ttl_seconds=120, redis_client=redis)

        assert await guard.claim("m1") is True
        redis.set.assert_awaited_once_with(f"{KEY_PREFIX}m1", "1", nx=True, ex=120)

    @pytest.mark.asyncio
    async def test_existing_key_is_duplicate(self):
        redis = AsyncMock()
        redis.set.return_value = None
        guard = DeliveryGuard(ttl_seconds=120, redis_client=redis)
        assert await guard.claim("m1") is False

    @pytest.mark.asyncio
    async def test_release_deletes_key(self):
        redis = AsyncMock()
        guard = DeliveryGuard(ttl_seconds=120, redis_client=redis)
        await guard.release("m1")
        redis.delete.assert_awaited_once_with(f"{KEY_PREFIX}m1")

    @pytest.mark.asyncio
    async def test_redis_error_falls_back_to_memory(self):
        redis = AsyncMock()
        redis.set.side_effect = ConnectionError("redis down")
        guard = DeliveryGuard(ttl_seconds=120, redis_client=redis)
        assert await guard.claim("m1") is True
        assert await guard.claim("m1") is False
