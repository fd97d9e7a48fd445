"""Token revocation list.

Each entry is ``blacklist:{jti}`` with a TTL equal to the revoked token's
remaining lifetime, so the list prunes itself and never outlives the token.

If the shared store is down, entries go to (and are checked against) an
in-process MemoryStore. A revocation recorded there is only visible to this
instance until it expires.
"""

from __future__ import annotations

from typing import Optional

from errors import CacheUnavailableError
from infrastructure.cache.store import KeyValueStore, MemoryStore
from shared.datetime_utils import Clock, utc_now
from shared.logging import get_logger

log = get_logger(__name__)


def _key(jti: str) -> str:
    return f"blacklist:{jti}"


class RevocationList:
    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock = utc_now,
        fallback: Optional[MemoryStore] = None,
    ) -> None:
        self._store = store
        self._fallback = fallback if fallback is not None else MemoryStore(clock)

    async def revoke(self, jti: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        try:
            await self._store.set(_key(jti), "true", ttl_seconds)
        except CacheUnavailableError as e:
            log.warning("revocation_store_unavailable", jti=jti, error=str(e))
            await self._fallback.set(_key(jti), "true", ttl_seconds)
        log.info("token_revoked", jti=jti, ttl=ttl_seconds)

    async def is_revoked(self, jti: str) -> bool:
        if await self._fallback.get(_key(jti)) == "true":
            return True
        try:
            return await self._store.get(_key(jti)) == "true"
        except CacheUnavailableError as e:
            log.warning("revocation_check_degraded", jti=jti, error=str(e))
            return False
