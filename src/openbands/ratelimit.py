"""Per-wallet rate limiting for mutating actions.

Handlers depend on the ``RateLimiter`` protocol only. Two backends:

- ``SlidingWindowRateLimiter``: in-process, per-key timestamp lists.
  Does not survive restarts or coordinate across workers.
- ``RedisRateLimiter``: fixed window with atomic ``INCR`` + ``EXPIRE NX``,
  shared by every process pointed at the same Redis.

Both allow ``limit`` attempts per window; attempt ``limit + 1`` raises
``RateLimitExceededError``.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import redis.asyncio as redis

from openbands.core.errors import ConfigError, RateLimitExceededError, StorageError

if TYPE_CHECKING:
    from collections.abc import Callable

    from openbands.config.schema import RateLimitConfig, RateLimitRule

logger = logging.getLogger(__name__)


@runtime_checkable
class RateLimiter(Protocol):
    """Counts attempts per key and rejects the ones over the limit."""

    async def hit(self, key: str) -> None:
        """Record an attempt. Raises RateLimitExceededError when over the limit."""
        ...


class SlidingWindowRateLimiter:
    """In-memory sliding window limiter."""

    def __init__(
        self,
        limit: int,
        window: float,
        *,
        max_keys: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window = window
        self._max_keys = max_keys
        self._clock = clock
        self._hits: dict[str, list[float]] = defaultdict(list)

    def _sweep(self, now: float) -> None:
        """Drop keys whose attempts have all expired."""
        stale = [k for k, ts in self._hits.items() if not ts or now - ts[-1] >= self.window]
        for k in stale:
            del self._hits[k]

    async def hit(self, key: str) -> None:
        now = self._clock()
        if len(self._hits) > self._max_keys:
            self._sweep(now)

        # Clean old entries
        hits = [t for t in self._hits[key] if now - t < self.window]
        self._hits[key] = hits

        if len(hits) >= self.limit:
            retry_after = self.window - (now - hits[0])
            raise RateLimitExceededError(key, retry_after)

        hits.append(now)


class RedisRateLimiter:
    """Fixed-window limiter backed by a shared Redis."""

    def __init__(
        self,
        client: redis.Redis,
        limit: int,
        window: int,
        *,
        prefix: str = "openbands:ratelimit",
    ) -> None:
        self.limit = limit
        self.window = window
        self._client = client
        self._prefix = prefix

    async def hit(self, key: str) -> None:
        redis_key = f"{self._prefix}:{key}"
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(redis_key)
                pipe.expire(redis_key, self.window, nx=True)
                count, _ = await pipe.execute()
            if int(count) <= self.limit:
                return
            ttl = await self._client.ttl(redis_key)
        except redis.RedisError as e:
            msg = f"Rate limit backend unavailable: {e}"
            raise StorageError(msg) from e
        raise RateLimitExceededError(key, float(ttl if ttl > 0 else self.window))


@dataclass(slots=True)
class RateLimiters:
    """One limiter per rate-limited action."""

    join: RateLimiter
    create_community: RateLimiter
    create_post: RateLimiter
    create_comment: RateLimiter


def build_rate_limiters(config: RateLimitConfig) -> RateLimiters:
    """Instantiate limiters for the configured backend."""
    if config.backend == "memory":

        def make(rule: RateLimitRule, _action: str) -> RateLimiter:
            return SlidingWindowRateLimiter(rule.limit, rule.window)

    elif config.backend == "redis":
        client = redis.Redis.from_url(config.redis_url)

        def make(rule: RateLimitRule, action: str) -> RateLimiter:
            return RedisRateLimiter(
                client, rule.limit, rule.window, prefix=f"openbands:ratelimit:{action}"
            )

    else:
        msg = f"Unknown rate limit backend: {config.backend!r}"
        raise ConfigError(msg)

    logger.info("Rate limiting with %s backend", config.backend)
    return RateLimiters(
        join=make(config.join, "join"),
        create_community=make(config.create_community, "create_community"),
        create_post=make(config.create_post, "create_post"),
        create_comment=make(config.create_comment, "create_comment"),
    )
