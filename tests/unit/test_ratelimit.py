"""Tests for the per-wallet rate limiters."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
import redis.asyncio as redis

from openbands.config.schema import RateLimitConfig
from openbands.core.errors import ConfigError, RateLimitExceededError, StorageError
from openbands.ratelimit import (
    RateLimiter,
    RedisRateLimiter,
    SlidingWindowRateLimiter,
    build_rate_limiters,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


# ─── Sliding window ───────────────────────────────────────────


class TestSlidingWindow:
    async def test_limit_allowed_then_rejected(self):
        limiter = SlidingWindowRateLimiter(3, 60, clock=FakeClock())
        for _ in range(3):
            await limiter.hit("0xabc")
        with pytest.raises(RateLimitExceededError) as exc_info:
            await limiter.hit("0xabc")
        assert exc_info.value.key == "0xabc"
        assert exc_info.value.retry_after == pytest.approx(60)

    async def test_keys_independent(self):
        limiter = SlidingWindowRateLimiter(1, 60, clock=FakeClock())
        await limiter.hit("0xabc")
        await limiter.hit("0xdef")
        with pytest.raises(RateLimitExceededError):
            await limiter.hit("0xabc")

    async def test_window_slides(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(2, 60, clock=clock)
        await limiter.hit("k")
        clock.now += 30
        await limiter.hit("k")

        clock.now += 31  # first hit has left the window
        await limiter.hit("k")

        with pytest.raises(RateLimitExceededError) as exc_info:
            await limiter.hit("k")
        assert exc_info.value.retry_after == pytest.approx(29)

    async def test_rejected_attempts_not_counted(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(1, 10, clock=clock)
        await limiter.hit("k")
        for _ in range(5):
            with pytest.raises(RateLimitExceededError):
                await limiter.hit("k")
        clock.now += 10
        await limiter.hit("k")

    async def test_stale_keys_swept(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(1, 10, max_keys=2, clock=clock)
        for key in ("a", "b", "c"):
            await limiter.hit(key)
        clock.now += 11
        await limiter.hit("d")
        assert set(limiter._hits) == {"d"}

    def test_satisfies_protocol(self):
        assert isinstance(SlidingWindowRateLimiter(1, 1), RateLimiter)


# ─── Redis ────────────────────────────────────────────────────


def _redis_client(count: int, ttl: int = 42) -> tuple[MagicMock, MagicMock]:
    pipe = MagicMock()
    pipe.__aenter__.return_value = pipe
    pipe.execute = AsyncMock(return_value=[count, True])
    client = MagicMock()
    client.pipeline.return_value = pipe
    client.ttl = AsyncMock(return_value=ttl)
    return client, pipe


class TestRedisLimiter:
    async def test_under_limit(self):
        client, pipe = _redis_client(count=3)
        limiter = RedisRateLimiter(client, 3, 60, prefix="test")
        await limiter.hit("0xabc")
        pipe.incr.assert_called_once_with("test:0xabc")
        pipe.expire.assert_called_once_with("test:0xabc", 60, nx=True)
        client.ttl.assert_not_called()

    async def test_over_limit_reports_ttl(self):
        client, _ = _redis_client(count=4, ttl=17)
        limiter = RedisRateLimiter(client, 3, 60)
        with pytest.raises(RateLimitExceededError) as exc_info:
            await limiter.hit("0xabc")
        assert exc_info.value.retry_after == 17.0

    async def test_missing_ttl_falls_back_to_window(self):
        client, _ = _redis_client(count=4, ttl=-1)
        limiter = RedisRateLimiter(client, 3, 60)
        with pytest.raises(RateLimitExceededError) as exc_info:
            await limiter.hit("0xabc")
        assert exc_info.value.retry_after == 60.0

    async def test_backend_failure_is_storage_error(self):
        client, pipe = _redis_client(count=1)
        pipe.execute = AsyncMock(side_effect=redis.ConnectionError("refused"))
        limiter = RedisRateLimiter(client, 3, 60)
        with pytest.raises(StorageError, match="backend unavailable"):
            await limiter.hit("0xabc")


# ─── Factory ──────────────────────────────────────────────────


class TestBuildRateLimiters:
    def test_memory_backend_uses_configured_rules(self):
        limiters = build_rate_limiters(RateLimitConfig())
        assert isinstance(limiters.join, SlidingWindowRateLimiter)
        assert (limiters.join.limit, limiters.join.window) == (10, 60)
        assert (limiters.create_community.limit, limiters.create_community.window) == (
            5,
            3600,
        )
        assert limiters.create_post.limit == 10

    def test_redis_backend(self):
        limiters = build_rate_limiters(
            RateLimitConfig(backend="redis", redis_url="redis://localhost:6379/9")
        )
        assert isinstance(limiters.create_post, RedisRateLimiter)
        assert limiters.create_post._prefix == "openbands:ratelimit:create_post"

    def test_unknown_backend(self):
        with pytest.raises(ConfigError, match="Unknown rate limit backend"):
            build_rate_limiters(RateLimitConfig(backend="memcached"))
