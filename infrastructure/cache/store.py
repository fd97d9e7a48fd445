"""Key-value store abstraction shared by the rate limiter, OTP engine,
revocation list and verification cache.

Two implementations:
  RedisStore  — shared across instances; every call is bounded by the
                client's socket timeout. Any Redis failure surfaces as
                CacheUnavailableError so callers can pick their fallback.
  MemoryStore — per-process dict with lazy expiry plus a periodic sweep.
                Used when REDIS_URI is unset, as the fallback window for the
                rate limiter and revocation list, and in tests.

A MemoryStore makes rate limits and revocations per-instance: with several
workers behind a load balancer each one counts separately.
"""

from __future__ import annotations

import asyncio
import math
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, Optional, Protocol, runtime_checkable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from errors import CacheUnavailableError
from shared.datetime_utils import Clock, utc_now
from shared.logging import get_logger

log = get_logger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def incr_window(self, key: str, window_seconds: int) -> tuple[int, int]:
        """Atomically bump a fixed-window counter.

        Creates the key with TTL *window_seconds* when absent. Returns
        ``(count, seconds_until_reset)``.
        """
        ...

    async def delete(self, key: str) -> int:
        """Delete *key*; returns the number of keys removed (0 or 1)."""
        ...

    async def ttl(self, key: str) -> int:
        """Seconds until expiry, ``-2`` if the key does not exist."""
        ...


class RedisStore:
    def __init__(self, redis_client: aioredis.Redis) -> None:
        self._redis = redis_client

    @asynccontextmanager
    async def _guard(self, op: str, key: str) -> AsyncIterator[None]:
        try:
            yield
        except (RedisError, asyncio.TimeoutError, OSError) as e:
            log.warning(
                "redis_store_error",
                op=op,
                store_key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise CacheUnavailableError(f"redis {op} failed: {e}") from e

    async def get(self, key: str) -> Optional[str]:
        async with self._guard("get", key):
            return await self._redis.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        async with self._guard("set", key):
            await self._redis.set(key, value, ex=max(1, int(ttl_seconds)))

    async def incr_window(self, key: str, window_seconds: int) -> tuple[int, int]:
        async with self._guard("incr_window", key):
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, ex=window_seconds, nx=True)
                pipe.incr(key)
                pipe.ttl(key)
                _, count, ttl = await pipe.execute()
            if ttl < 0:
                # Counter lost its expiry (e.g. restored from a dump); re-arm it
                await self._redis.expire(key, window_seconds)
                ttl = window_seconds
            return int(count), int(ttl)

    async def delete(self, key: str) -> int:
        async with self._guard("delete", key):
            return int(await self._redis.delete(key))

    async def ttl(self, key: str) -> int:
        async with self._guard("ttl", key):
            return int(await self._redis.ttl(key))


class MemoryStore:
    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, datetime]] = {}

    def _now(self) -> datetime:
        return self._clock()

    def _live(self, key: str) -> Optional[tuple[str, datetime]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if self._now() >= entry[1]:
            del self._data[key]
            return None
        return entry

    def _remaining(self, expires_at: datetime) -> int:
        return max(1, math.ceil((expires_at - self._now()).total_seconds()))

    async def get(self, key: str) -> Optional[str]:
        entry = self._live(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (
            value,
            self._now() + timedelta(seconds=max(1, int(ttl_seconds))),
        )

    async def incr_window(self, key: str, window_seconds: int) -> tuple[int, int]:
        entry = self._live(key)
        if entry is None:
            expires_at = self._now() + timedelta(seconds=window_seconds)
            count = 1
        else:
            count = int(entry[0]) + 1
            expires_at = entry[1]
        self._data[key] = (str(count), expires_at)
        return count, self._remaining(expires_at)

    async def delete(self, key: str) -> int:
        if self._live(key) is None:
            return 0
        del self._data[key]
        return 1

    async def ttl(self, key: str) -> int:
        entry = self._live(key)
        if entry is None:
            return -2
        return self._remaining(entry[1])

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = self._now()
        expired = [k for k, (_, exp) in self._data.items() if now >= exp]
        for k in expired:
            del self._data[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._data)

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Purge expired entries forever; cancel the task to stop."""
        while True:
            await asyncio.sleep(interval_seconds)
            removed = self.purge_expired()
            if removed:
                log.debug("memory_store_swept", removed=removed, size=len(self))
