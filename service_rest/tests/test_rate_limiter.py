"""
Unit tests for the fixed-window rate limiter.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from service_rest.app.ratelimit import (
    FixedWindowRateLimiter,
    MemoryWindowStore,
    RateLimiterPolicy,
    RedisWindowStore,
    get_client_id,
)
from service_rest.tests.helpers import make_config


class FakeClock:
    def __init__(self, now: float = 50.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRateLimiterPolicy:

    def test_from_config(self):
        config = make_config(rate_limiter_enabled=True, rate_limiter_window_ms=15000, rate_limiter_max=20)

        policy = RateLimiterPolicy.from_config(config)

        assert policy == RateLimiterPolicy(window_ms=15000, max_requests=20, enabled=True)

    def test_policy_is_immutable(self):
        policy = RateLimiterPolicy(window_ms=1000, max_requests=5)

        with pytest.raises(AttributeError):
            policy.max_requests = 10

    def test_memory_store_by_default(self):
        limiter = FixedWindowRateLimiter.from_config(make_config(rate_limiter_enabled=True))

        assert isinstance(limiter.store, MemoryWindowStore)

    def test_redis_store_when_configured(self):
        config = make_config(rate_limiter_enabled=True, rate_limiter_redis_url="redis://localhost:6379/0")

        limiter = FixedWindowRateLimiter.from_config(config)

        assert isinstance(limiter.store, RedisWindowStore)


class TestFixedWindowRateLimiter:

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def rate_limiter(self, clock):
        return FixedWindowRateLimiter(
            RateLimiterPolicy(window_ms=2000, max_requests=2),
            MemoryWindowStore(clock=clock),
        )

    @pytest.mark.asyncio
    async def test_cap_and_reset(self, rate_limiter, clock):
        first = await rate_limiter.check_rate_limit("10.0.0.1")
        second = await rate_limiter.check_rate_limit("10.0.0.1")
        third = await rate_limiter.check_rate_limit("10.0.0.1")

        assert (first.allowed, second.allowed, third.allowed) == (True, True, False)
        assert third.current_count == 3
        assert third.remaining == 0
        assert third.reset_in_seconds == 2

        clock.now += 1.5
        still_blocked = await rate_limiter.check_rate_limit("10.0.0.1")
        assert still_blocked.allowed is False
        assert still_blocked.reset_in_seconds == 1

        clock.now += 0.5
        fresh = await rate_limiter.check_rate_limit("10.0.0.1")
        assert fresh.allowed is True
        assert fresh.current_count == 1

    @pytest.mark.asyncio
    async def test_clients_are_counted_separately(self, rate_limiter):
        for _ in range(3):
            await rate_limiter.check_rate_limit("10.0.0.1")

        other = await rate_limiter.check_rate_limit("10.0.0.2")

        assert other.allowed is True
        assert other.current_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_hits_are_not_undercounted(self):
        rate_limiter = FixedWindowRateLimiter(RateLimiterPolicy(window_ms=60000, max_requests=10))

        results = await asyncio.gather(*(rate_limiter.check_rate_limit("10.0.0.1") for _ in range(50)))

        assert sum(result.allowed for result in results) == 10
        assert sorted(result.current_count for result in results) == list(range(1, 51))

    @pytest.mark.asyncio
    async def test_status_does_not_count(self, rate_limiter):
        await rate_limiter.check_rate_limit("10.0.0.1")

        status = await rate_limiter.get_rate_limit_status("10.0.0.1")
        status_again = await rate_limiter.get_rate_limit_status("10.0.0.1")

        assert status.current_count == 1
        assert status_again.current_count == 1
        assert status.remaining == 1

    @pytest.mark.asyncio
    async def test_reset_rate_limit(self, rate_limiter):
        for _ in range(3):
            await rate_limiter.check_rate_limit("10.0.0.1")

        await rate_limiter.reset_rate_limit("10.0.0.1")
        result = await rate_limiter.check_rate_limit("10.0.0.1")

        assert result.allowed is True
        assert result.current_count == 1

    @pytest.mark.asyncio
    async def test_store_failure_fails_open(self):
        store = MagicMock()
        store.increment = AsyncMock(side_effect=ConnectionError("Redis connection failed"))
        rate_limiter = FixedWindowRateLimiter(RateLimiterPolicy(window_ms=1000, max_requests=1), store)

        result = await rate_limiter.check_rate_limit("10.0.0.1")

        assert result.allowed is True
        assert result.error == "Redis connection failed"

    @pytest.mark.asyncio
    async def test_expired_windows_are_pruned(self, clock):
        store = MemoryWindowStore(clock=clock, cleanup_interval=10)
        await store.increment("rate_limit:a", 1000)

        clock.now += 11
        await store.increment("rate_limit:b", 1000)

        assert "rate_limit:a" not in store._windows
        assert "rate_limit:b" in store._windows


class TestRedisWindowStore:

    @pytest.fixture
    def store(self):
        return RedisWindowStore("redis://localhost:6379/0")

    def _mock_redis(self, count, ttl):
        mock_redis = MagicMock()
        mock_pipeline = MagicMock()
        mock_pipeline.execute = AsyncMock(return_value=[count, ttl])
        mock_redis.pipeline.return_value.__aenter__.return_value = mock_pipeline
        mock_redis.pexpire = AsyncMock()
        return mock_redis, mock_pipeline

    @pytest.mark.asyncio
    async def test_first_hit_sets_expiry(self, store):
        mock_redis, mock_pipeline = self._mock_redis(1, -1)

        with patch.object(store, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_get_redis.return_value = mock_redis
            count, ttl = await store.increment("rate_limit:10.0.0.1", 60000)

        assert (count, ttl) == (1, 60000)
        mock_pipeline.incr.assert_called_once_with("rate_limit:10.0.0.1")
        mock_redis.pexpire.assert_awaited_once_with("rate_limit:10.0.0.1", 60000)

    @pytest.mark.asyncio
    async def test_later_hit_keeps_window(self, store):
        mock_redis, _ = self._mock_redis(7, 12500)

        with patch.object(store, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_get_redis.return_value = mock_redis
            count, ttl = await store.increment("rate_limit:10.0.0.1", 60000)

        assert (count, ttl) == (7, 12500)
        mock_redis.pexpire.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_decodes_bytes(self, store):
        mock_redis = MagicMock()
        mock_redis.get = AsyncMock(return_value=b"4")
        mock_redis.pttl = AsyncMock(return_value=3000)

        with patch.object(store, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_get_redis.return_value = mock_redis
            assert await store.get("rate_limit:10.0.0.1") == (4, 3000)

    @pytest.mark.asyncio
    async def test_reset_deletes_key(self, store):
        mock_redis = MagicMock()
        mock_redis.delete = AsyncMock()

        with patch.object(store, '_get_redis', new_callable=AsyncMock) as mock_get_redis:
            mock_get_redis.return_value = mock_redis
            await store.reset("rate_limit:10.0.0.1")

        mock_redis.delete.assert_awaited_once_with("rate_limit:10.0.0.1")


class TestClientIdentity:

    @pytest.fixture
    def mock_request(self):
        request = MagicMock()
        request.client.host = "192.0.2.10"
        request.headers = {"X-Forwarded-For": "203.0.113.5, 10.0.0.1", "X-Real-IP": "198.51.100.7"}
        return request

    def test_peer_address_by_default(self, mock_request):
        assert get_client_id(mock_request) == "192.0.2.10"

    def test_forwarded_for_behind_trusted_proxy(self, mock_request):
        assert get_client_id(mock_request, trust_proxy=True) == "203.0.113.5"

    def test_real_ip_fallback(self, mock_request):
        mock_request.headers = {"X-Real-IP": "198.51.100.7"}

        assert get_client_id(mock_request, trust_proxy=True) == "198.51.100.7"

    def test_unknown_without_peer(self, mock_request):
        mock_request.client = None

        assert get_client_id(mock_request) == "unknown"
