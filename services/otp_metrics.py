"""
Per-purpose OTP counters.

Counts generated, verified, failed and expired codes in the key-value store
under ``otp_metrics:{purpose}:{outcome}``. Each counter is a fixed 24h window,
so the numbers reset daily. Counting is best-effort: a store outage is logged
and never fails the OTP operation that triggered it.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from errors import CacheUnavailableError
from infrastructure.cache.store import KeyValueStore
from shared.logging import get_logger

log = get_logger(__name__)

Outcome = Literal["generated", "verified", "failed", "expired"]
OUTCOMES: tuple[Outcome, ...] = ("generated", "verified", "failed", "expired")

METRICS_WINDOW_SECONDS = 24 * 60 * 60


class OTPMetricsSnapshot(BaseModel):
    purpose: str
    generated: int = 0
    verified: int = 0
    failed: int = 0
    expired: int = 0


class OTPMetrics:
    def __init__(
        self, store: KeyValueStore, window_seconds: int = METRICS_WINDOW_SECONDS
    ) -> None:
        self._store = store
        self._window = window_seconds

    @staticmethod
    def key(purpose: str, outcome: Outcome) -> str:
        return f"otp_metrics:{purpose}:{outcome}"

    async def track(self, purpose: str, outcome: Outcome) -> None:
        try:
            await self._store.incr_window(self.key(purpose, outcome), self._window)
        except CacheUnavailableError as e:
            log.warning(
                "otp_metrics_unavailable", purpose=purpose, outcome=outcome, error=str(e)
            )

    async def snapshot(self, purpose: str) -> OTPMetricsSnapshot:
        counts: dict[str, int] = {}
        for outcome in OUTCOMES:
            try:
                raw = await self._store.get(self.key(purpose, outcome))
            except CacheUnavailableError as e:
                log.warning("otp_metrics_unavailable", purpose=purpose, error=str(e))
                raw = None
            counts[outcome] = int(raw) if raw else 0
        return OTPMetricsSnapshot(purpose=purpose, **counts)
