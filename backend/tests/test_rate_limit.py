"""
Tests for the Redis-backed rate limiter.
"""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.core.config import get_settings
from app.core.exceptions import RateLimitExceeded
from app.services import rate_limit
from app.services.rate_limit import (
    RateLimitConfig,
    RateLimiter,
    chat_rate_limit,
    enforce_rate_limit,
    get_rate_limiter,
)


class TestRateLimiter:
    """Window admission against a fake Redis server."""

    @pytest.mark.asyncio
    async def test_first_call_opens_window(self, limiter):
        config = RateLimitConfig(max_requests=5, window_seconds=60)
        before = int(time.time() * 1000)

        result = await limiter.check("chat:user-1", config)

        assert result.allowed is True
        assert result.remaining == 4
        assert result.degraded is False
        assert before + 59_000 <= result.reset_at <= before + 61_000

    @pytest.mark.asyncio
    async def test_call_over_limit_is_rejected(self, limiter):
        config = RateLimitConfig(max_requests=3, window_seconds=60)

        results = [await limiter.check("chat:user-1", config) for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]
        assert results[-1].reset_at > int(time.time() * 1000)

    @pytest.mark.asyncio
    async def test_count_never_exceeds_limit(self, limiter, fake_redis):
        config = RateLimitConfig(max_requests=2, window_seconds=60)

        for _ in range(6):
            await limiter.check("chat:user-1", config)

        assert int(await fake_redis.get("ratelimit:chat:user-1")) == 2

    @pytest.mark.asyncio
    async def test_window_expiry_starts_fresh_window(self, limiter):
        config = RateLimitConfig(max_requests=1, window_seconds=0.2)

        assert (await limiter.check("chat:user-1", config)).allowed is True
        assert (await limiter.check("chat:user-1", config)).allowed is False

        await asyncio.sleep(0.3)

        result = await limiter.check("chat:user-1", config)
        assert result.allowed is True
        assert result.remaining == 0

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, limiter):
        config = RateLimitConfig(max_requests=1, window_seconds=60)

        assert (await limiter.check("chat:user-1", config)).allowed is True
        assert (await limiter.check("chat:user-2", config)).allowed is True
        assert (await limiter.check("search:user-1", config)).allowed is True
        assert (await limiter.check("chat:user-1", config)).allowed is False

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_the_quota(self, limiter):
        config = RateLimitConfig(max_requests=10, window_seconds=60)

        results = await asyncio.gather(
            *[limiter.check("chat:user-1", config) for _ in range(30)]
        )

        assert sum(r.allowed for r in results) == 10

    @pytest.mark.asyncio
    async def test_invalid_config_rejected(self, limiter):
        with pytest.raises(ValueError):
            await limiter.check("chat:user-1", RateLimitConfig(max_requests=0, window_seconds=60))


class TestFailOpen:
    """The limiter allows traffic when its counter store is missing or down."""

    @pytest.mark.asyncio
    async def test_unconfigured_store_allows_everything(self):
        limiter = RateLimiter(None)
        config = RateLimitConfig(max_requests=1, window_seconds=60)

        results = [await limiter.check("chat:user-1", config) for _ in range(5)]

        assert all(r.allowed for r in results)
        assert all(r.degraded for r in results)
        assert results[0].remaining == 1

    @pytest.mark.asyncio
    async def test_unreachable_store_allows_request(self):
        client = MagicMock()
        client.register_script.return_value = AsyncMock(
            side_effect=RedisConnectionError("connection refused")
        )
        limiter = RateLimiter(client)

        result = await limiter.check("chat:user-1", RateLimitConfig(max_requests=1, window_seconds=60))

        assert result.allowed is True
        assert result.degraded is True

    @pytest.mark.asyncio
    async def test_stalled_store_times_out_and_allows_request(self):
        client = MagicMock()
        client.register_script.return_value = AsyncMock(
            side_effect=RedisTimeoutError("Timeout reading from socket")
        )
        limiter = RateLimiter(client)
        config = RateLimitConfig(max_requests=1, window_seconds=60)

        result = await limiter.check("chat:user-1", config)

        assert result.allowed is True
        assert result.degraded is True
        assert result.remaining == 1

    @pytest.mark.asyncio
    async def test_client_uses_short_socket_timeouts(self, monkeypatch):
        settings = get_settings()
        monkeypatch.setattr(settings, "redis_url", "redis://localhost:6379/0")
        monkeypatch.setattr(rate_limit, "_limiter", None)

        limiter = get_rate_limiter()

        kwargs = limiter.client.connection_pool.connection_kwargs
        assert kwargs["socket_connect_timeout"] == settings.redis_socket_connect_timeout_seconds
        assert kwargs["socket_timeout"] == settings.redis_socket_timeout_seconds
        assert settings.redis_socket_timeout_seconds < 1
        await limiter.client.aclose()


class TestEnforceRateLimit:

    @pytest.mark.asyncio
    async def test_raises_with_reset_time_when_spent(self, limiter):
        config = RateLimitConfig(max_requests=1, window_seconds=60)
        await enforce_rate_limit("chat", "user-1", config)

        with pytest.raises(RateLimitExceeded) as exc_info:
            await enforce_rate_limit("chat", "user-1", config)

        assert exc_info.value.remaining == 0
        assert exc_info.value.reset_at > int(time.time() * 1000)
        assert exc_info.value.status_code == 429

    def test_chat_limit_defaults(self):
        config = chat_rate_limit()
        assert config.max_requests == 20
        assert config.window_seconds == 60
