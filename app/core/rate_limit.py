"""Sliding-window request limits for the public auth endpoints.

Both backends remember one timestamp per accepted request under a key and
refuse the next request once ``limit`` timestamps fall inside the trailing
window. A refused request is not remembered, so a client that backs off
regains its budget as the oldest accepted request ages out.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Protocol
from uuid import uuid4

from app.core.config import get_settings


@dataclass(frozen=True, slots=True)
class RateLimitRule:
    limit: int
    window_seconds: int


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0


ALLOWED = RateLimitDecision(allowed=True)


def _refused(oldest: float, rule: RateLimitRule, now: float) -> RateLimitDecision:
    return RateLimitDecision(allowed=False, retry_after=max(1, math.ceil(oldest + rule.window_seconds - now)))


class RateLimiter(Protocol):
    async def hit(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        """Record one request under ``key`` unless the rule's budget is spent."""


@dataclass
class _Bucket:
    window_seconds: int
    hits: deque[float] = field(default_factory=deque)

    def drop_expired(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self.hits and self.hits[0] <= cutoff:
            self.hits.popleft()

    def is_idle(self, now: float) -> bool:
        return not self.hits or self.hits[-1] <= now - self.window_seconds


class InMemoryRateLimiter:
    """Per-process limiter; each app instance keeps its own budgets."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}
        self._lock = asyncio.Lock()

    async def hit(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        now = self._clock()
        async with self._lock:
            self._forget_idle(now)
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = self._buckets[key] = _Bucket(rule.window_seconds)
            bucket.window_seconds = rule.window_seconds
            bucket.drop_expired(now)
            if len(bucket.hits) >= rule.limit:
                return _refused(bucket.hits[0], rule, now)
            bucket.hits.append(now)
        return ALLOWED

    def _forget_idle(self, now: float) -> None:
        for key in [key for key, bucket in self._buckets.items() if bucket.is_idle(now)]:
            del self._buckets[key]

    def tracked_keys(self) -> int:
        return len(self._buckets)


class RedisRateLimiter:
    """Limiter shared by every app instance through one Redis sorted set per key.

    The member is added before counting; when the count overshoots the
    limit the member is removed again, which keeps refused requests out of
    the window.
    """

    def __init__(self, client: Any, *, namespace: str, clock: Callable[[], float] = time.time) -> None:
        self._client = client
        self._namespace = namespace
        self._clock = clock

    @classmethod
    def from_url(cls, redis_url: str, *, namespace: str) -> RedisRateLimiter:
        from redis.asyncio import Redis

        return cls(Redis.from_url(redis_url, decode_responses=True), namespace=namespace)

    async def hit(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        now = self._clock()
        storage_key = f"{self._namespace}:{key}"
        member = f"{now:.6f}:{uuid4().hex}"

        async with self._client.pipeline(transaction=True) as pipe:
            _, _, count, oldest, _ = await (
                pipe.zremrangebyscore(storage_key, "-inf", now - rule.window_seconds)
                .zadd(storage_key, {member: now})
                .zcard(storage_key)
                .zrange(storage_key, 0, 0, withscores=True)
                .expire(storage_key, rule.window_seconds)
                .execute()
            )

        if count <= rule.limit:
            return ALLOWED
        await self._client.zrem(storage_key, member)
        return _refused(float(oldest[0][1]), rule, now)


@lru_cache(maxsize=4)
def _limiter_for(backend: str, redis_url: str | None, namespace: str) -> RateLimiter:
    if backend == "redis":
        return RedisRateLimiter.from_url(redis_url or "", namespace=namespace)
    return InMemoryRateLimiter()


def get_rate_limiter() -> RateLimiter:
    """Return the shared limiter for the configured backend."""
    settings = get_settings()
    return _limiter_for(
        settings.auth_rate_limit_backend,
        settings.redis_url,
        settings.auth_rate_limit_redis_namespace,
    )
