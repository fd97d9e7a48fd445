"""Fixed-window rate limiter.

Bursts at a window boundary (up to 2x the limit across two adjacent
windows) are accepted in exchange for one atomic store call per request.

When the shared store is unavailable the limiter keeps counting in a
per-process MemoryStore rather than failing open or closed, and logs
``rate_limit_store_unavailable``. Counts in that window are per-instance.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from errors import CacheUnavailableError, RateLimitError
from infrastructure.cache.store import KeyValueStore, MemoryStore
from services.limits import RateLimitPolicy
from shared.datetime_utils import Clock, utc_now
from shared.logging import get_logger

log = get_logger(__name__)

KEY_PREFIX = "rate_limit"


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime
    retry_after_seconds: Optional[int] = None


class RateLimiter:
    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock = utc_now,
        fallback: Optional[MemoryStore] = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._fallback = fallback if fallback is not None else MemoryStore(clock)

    @property
    def fallback(self) -> MemoryStore:
        return self._fallback

    async def check(
        self, key: str, max_requests: int, window_minutes: int
    ) -> RateLimitResult:
        """Count one request against *key* and report whether it is allowed."""
        window_seconds = window_minutes * 60
        store_key = f"{KEY_PREFIX}:{key}"
        try:
            count, ttl = await self._store.incr_window(store_key, window_seconds)
        except CacheUnavailableError as e:
            log.warning("rate_limit_store_unavailable", limit_key=key, error=str(e))
            count, ttl = await self._fallback.incr_window(store_key, window_seconds)

        now = self._clock()
        reset_at = now + timedelta(seconds=ttl)
        allowed = count <= max_requests
        result = RateLimitResult(
            allowed=allowed,
            limit=max_requests,
            remaining=max(0, max_requests - count),
            reset_at=reset_at,
            retry_after_seconds=None if allowed else max(1, math.ceil(ttl)),
        )
        if not allowed:
            log.info(
                "rate_limit_exceeded",
                limit_key=key,
                count=count,
                limit=max_requests,
                retry_after=result.retry_after_seconds,
            )
        return result

    async def enforce(self, policy: RateLimitPolicy, caller: str) -> RateLimitResult:
        """Like check(), but raises RateLimitError when the request is over budget."""
        result = await self.check(
            policy.key(caller), policy.max_requests, policy.window_minutes
        )
        if not result.allowed:
            retry_after = result.retry_after_seconds or 1
            minutes = math.ceil(retry_after / 60)
            raise RateLimitError(
                policy.message,
                retry_after_seconds=retry_after,
                hint=f"Please wait {minutes} minute{'s' if minutes != 1 else ''} "
                "before trying again",
                details={"resetTime": result.reset_at.isoformat()},
            )
        return result
