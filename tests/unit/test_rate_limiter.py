"""Unit tests for the fixed-window rate limiter and the key-value stores."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from errors import CacheUnavailableError, RateLimitError
from infrastructure.cache.store import MemoryStore, RedisStore
from services.limits import Limits, RateLimitPolicy
from services.rate_limiter import RateLimiter


# ── MemoryStore ───────────────────────────────────────────────────────────────


class TestMemoryStore:
    async def test_set_get_and_expiry(self, store, clock):
        await store.set("k", "v", 10)
        assert await store.get("k") == "v"
        clock.advance(9)
        assert await store.get("k") == "v"
        clock.advance(1)
        assert await store.get("k") is None

    async def test_delete_reports_removed_count(self, store):
        await store.set("k", "v", 10)
        assert await store.delete("k") == 1
        assert await store.delete("k") == 0

    async def test_ttl(self, store, clock):
        assert await store.ttl("missing") == -2
        await store.set("k", "v", 30)
        clock.advance(10)
        assert await store.ttl("k") == 20

    async def test_incr_window(self, store, clock):
        assert await store.incr_window("c", 60) == (1, 60)
        clock.advance(15)
        assert await store.incr_window("c", 60) == (2, 45)
        clock.advance(45)
        assert await store.incr_window("c", 60) == (1, 60)

    async def test_purge_expired(self, store, clock):
        await store.set("a", "1", 5)
        await store.set("b", "1", 50)
        clock.advance(10)
        assert store.purge_expired() == 1
        assert len(store) == 1


# ── RedisStore ────────────────────────────────────────────────────────────────


def _redis_with_pipeline(results):
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=results)
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=pipe)
    ctx.__aexit__ = AsyncMock(return_value=False)
    redis = AsyncMock()
    redis.pipeline = MagicMock(return_value=ctx)
    return redis, pipe


class TestRedisStore:
    async def test_incr_window_is_one_transaction(self):
        redis, pipe = _redis_with_pipeline([True, 1, 900])
        count, ttl = await RedisStore(redis).incr_window("rate_limit:otp:a", 900)
        assert (count, ttl) == (1, 900)
        redis.pipeline.assert_called_once_with(transaction=True)
        pipe.set.assert_called_once_with("rate_limit:otp:a", 0, ex=900, nx=True)
        pipe.incr.assert_called_once_with("rate_limit:otp:a")
        pipe.ttl.assert_called_once_with("rate_limit:otp:a")

    async def test_incr_window_rearms_missing_expiry(self):
        redis, _ = _redis_with_pipeline([None, 7, -1])
        count, ttl = await RedisStore(redis).incr_window("k", 60)
        assert (count, ttl) == (7, 60)
        redis.expire.assert_awaited_once_with("k", 60)

    async def test_set_uses_expiry(self):
        redis = AsyncMock()
        await RedisStore(redis).set("k", "v", 30)
        redis.set.assert_awaited_once_with("k", "v", ex=30)

    @pytest.mark.parametrize("op, args", [("get", ("k",)), ("delete", ("k",))])
    async def test_errors_become_cache_unavailable(self, op, args):
        redis = AsyncMock()
        getattr(redis, op).side_effect = RedisConnectionError("refused")
        with pytest.raises(CacheUnavailableError):
            await getattr(RedisStore(redis), op)(*args)

    async def test_timeout_becomes_cache_unavailable(self):
        redis = AsyncMock()
        redis.get.side_effect = TimeoutError("slow")
        with pytest.raises(CacheUnavailableError):
            await RedisStore(redis).get("k")


# ── RateLimiter ───────────────────────────────────────────────────────────────


class TestRateLimiter:
    async def test_counts_within_window(self, limiter):
        results = [await limiter.check("otp:a", 3, 15) for _ in range(4)]
        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]
        assert results[0].retry_after_seconds is None
        assert results[3].retry_after_seconds == 900

    async def test_window_resets(self, limiter, clock):
        for _ in range(3):
            await limiter.check("otp:a", 3, 15)
        clock.advance(15 * 60)
        result = await limiter.check("otp:a", 3, 15)
        assert result.allowed is True
        assert result.remaining == 2

    async def test_reset_at(self, limiter, clock):
        first = await limiter.check("otp:a", 3, 15)
        clock.advance(60)
        second = await limiter.check("otp:a", 3, 15)
        assert first.reset_at == second.reset_at
        assert (second.reset_at - clock()).total_seconds() == 14 * 60

    async def test_keys_are_independent(self, limiter):
        await limiter.check("otp:a", 1, 15)
        assert (await limiter.check("otp:a", 1, 15)).allowed is False
        assert (await limiter.check("otp:b", 1, 15)).allowed is True

    async def test_store_key_prefix(self, limiter, store):
        await limiter.check("verify:a@b.co", 10, 15)
        assert await store.get("rate_limit:verify:a@b.co") == "1"

    async def test_falls_back_to_memory_when_store_down(self, clock):
        broken = AsyncMock()
        broken.incr_window = AsyncMock(side_effect=CacheUnavailableError("down"))
        fallback = MemoryStore(clock)
        limiter = RateLimiter(broken, clock=clock, fallback=fallback)

        first = await limiter.check("otp:a", 1, 15)
        second = await limiter.check("otp:a", 1, 15)
        assert first.allowed is True
        assert second.allowed is False
        assert await fallback.get("rate_limit:otp:a") == "2"

    async def test_enforce_raises_with_retry_after(self, limiter):
        policy = RateLimitPolicy("otp", 1, 15, "Too many requests")
        await limiter.enforce(policy, "a@b.co")
        with pytest.raises(RateLimitError) as exc:
            await limiter.enforce(policy, "a@b.co")
        err = exc.value
        assert err.message == "Too many requests"
        assert err.retry_after_seconds == 900
        assert err.hint == "Please wait 15 minutes before trying again"
        assert "resetTime" in err.details

    def test_policies(self):
        assert (Limits.OTP_ISSUE.max_requests, Limits.OTP_ISSUE.window_minutes) == (5, 15)
        assert (Limits.OTP_VERIFY.max_requests, Limits.OTP_VERIFY.window_minutes) == (10, 15)
        assert (Limits.OTP_RESEND.max_requests, Limits.OTP_RESEND.window_minutes) == (3, 15)
        assert Limits.OTP_ISSUE.key("a@b.co") == "otp:a@b.co"
