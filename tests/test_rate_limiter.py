from __future__ import annotations

from types import SimpleNamespace

import pytest

from app.core import rate_limit as rate_limit_module
from app.core.rate_limit import InMemoryRateLimiter, RateLimitDecision, RateLimitRule, RedisRateLimiter

RESET_RULE = RateLimitRule(limit=2, window_seconds=60)


class FakeRedis:
    """Sorted sets kept in dicts; pipelines run their queued calls on execute."""

    def __init__(self) -> None:
        self.sets: dict[str, dict[str, float]] = {}
        self.expiry: dict[str, int] = {}

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    async def zrem(self, key: str, member: str) -> int:
        return int(self.sets.get(key, {}).pop(member, None) is not None)


class FakePipeline:
    def __init__(self, redis: FakeRedis) -> None:
        self.redis = redis
        self.queued: list = []

    async def __aenter__(self) -> FakePipeline:
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.queued.clear()

    def _queue(self, call) -> FakePipeline:
        self.queued.append(call)
        return self

    def zremrangebyscore(self, key: str, low: str, high: float) -> FakePipeline:
        def run():
            members = self.redis.sets.setdefault(key, {})
            stale = [member for member, score in members.items() if score <= high]
            for member in stale:
                del members[member]
            return len(stale)

        return self._queue(run)

    def zadd(self, key: str, mapping: dict[str, float]) -> FakePipeline:
        return self._queue(lambda: self.redis.sets.setdefault(key, {}).update(mapping) or len(mapping))

    def zcard(self, key: str) -> FakePipeline:
        return self._queue(lambda: len(self.redis.sets.get(key, {})))

    def zrange(self, key: str, start: int, stop: int, withscores: bool = False) -> FakePipeline:
        def run():
            ordered = sorted(self.redis.sets.get(key, {}).items(), key=lambda item: item[1])
            return ordered[start : stop + 1]

        return self._queue(run)

    def expire(self, key: str, seconds: int) -> FakePipeline:
        return self._queue(lambda: self.redis.expiry.__setitem__(key, seconds) or True)

    async def execute(self) -> list:
        return [call() for call in self.queued]


@pytest.mark.asyncio
async def test_in_memory_window_reports_retry_after_and_recovers() -> None:
    clock = [500.0]
    limiter = InMemoryRateLimiter(clock=lambda: clock[0])
    key = "identity:password-reset:1.1.1.1"

    assert await limiter.hit(key, RESET_RULE) == RateLimitDecision(allowed=True)
    clock[0] = 520.0
    assert (await limiter.hit(key, RESET_RULE)).allowed is True
    clock[0] = 530.0
    assert await limiter.hit(key, RESET_RULE) == RateLimitDecision(allowed=False, retry_after=30)

    # The refused request does not count; the first hit ages out at 560.
    clock[0] = 560.5
    assert (await limiter.hit(key, RESET_RULE)).allowed is True


@pytest.mark.asyncio
async def test_keys_are_limited_independently() -> None:
    limiter = InMemoryRateLimiter(clock=lambda: 10.0)
    rule = RateLimitRule(limit=1, window_seconds=60)

    assert (await limiter.hit("identity:login:1.1.1.1", rule)).allowed is True
    assert (await limiter.hit("identity:login:1.1.1.1", rule)).allowed is False
    assert (await limiter.hit("identity:login:2.2.2.2", rule)).allowed is True


@pytest.mark.asyncio
async def test_idle_keys_are_forgotten_once_their_window_passes() -> None:
    clock = [0.0]
    limiter = InMemoryRateLimiter(clock=lambda: clock[0])
    rule = RateLimitRule(limit=3, window_seconds=30)
    for index in range(5):
        await limiter.hit(f"identity:register:10.0.0.{index}", rule)
    assert limiter.tracked_keys() == 5

    clock[0] = 31.0
    await limiter.hit("identity:register:10.0.0.99", rule)

    assert limiter.tracked_keys() == 1


@pytest.mark.asyncio
async def test_redis_limiter_keeps_refused_requests_out_of_the_window() -> None:
    redis = FakeRedis()
    clock = [1000.0]
    limiter = RedisRateLimiter(redis, namespace="trainerhub_auth", clock=lambda: clock[0])
    key = "identity:login:3.3.3.3"

    assert (await limiter.hit(key, RESET_RULE)).allowed is True
    clock[0] = 1010.0
    assert (await limiter.hit(key, RESET_RULE)).allowed is True
    clock[0] = 1015.0
    assert await limiter.hit(key, RESET_RULE) == RateLimitDecision(allowed=False, retry_after=45)

    stored = redis.sets["trainerhub_auth:identity:login:3.3.3.3"]
    assert sorted(stored.values()) == [1000.0, 1010.0]
    assert redis.expiry["trainerhub_auth:identity:login:3.3.3.3"] == 60

    clock[0] = 1060.0
    assert (await limiter.hit(key, RESET_RULE)).allowed is True
    assert sorted(stored.values()) == [1010.0, 1060.0]


@pytest.fixture
def limiter_cache():
    rate_limit_module._limiter_for.cache_clear()
    yield
    rate_limit_module._limiter_for.cache_clear()


def test_configured_backend_is_built_once_and_rebuilt_on_switch(
    monkeypatch: pytest.MonkeyPatch,
    limiter_cache: None,
) -> None:
    built: list[tuple[str, str]] = []

    def fake_from_url(redis_url: str, *, namespace: str) -> RedisRateLimiter:
        built.append((redis_url, namespace))
        return RedisRateLimiter(FakeRedis(), namespace=namespace)

    monkeypatch.setattr(RedisRateLimiter, "from_url", staticmethod(fake_from_url))
    settings = SimpleNamespace(
        auth_rate_limit_backend="memory",
        redis_url=None,
        auth_rate_limit_redis_namespace="trainerhub_auth",
    )
    monkeypatch.setattr(rate_limit_module, "get_settings", lambda: settings)

    in_memory = rate_limit_module.get_rate_limiter()
    assert isinstance(in_memory, InMemoryRateLimiter)
    assert rate_limit_module.get_rate_limiter() is in_memory

    settings.auth_rate_limit_backend = "redis"
    settings.redis_url = "redis://redis:6379/1"
    shared = rate_limit_module.get_rate_limiter()

    assert isinstance(shared, RedisRateLimiter)
    assert rate_limit_module.get_rate_limiter() is shared
    assert built == [("redis://redis:6379/1", "trainerhub_auth")]
