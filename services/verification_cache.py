"""Cache-aside layer over verification state.

Age verification:
    read  — ``age_verified:{subject_id}`` first, MongoDB on miss or when the
            store is unavailable; a verified durable result is written back.
    write — MongoDB first (authoritative), then the cache entry is
            overwritten. A failed cache write is logged and ignored.

Only verified entries are cached, so a cached entry never disagrees with a
durable ``age_verified=True``.

Email verification:
    ``verified:{identifier}`` is set for an hour after a signup OTP is
    verified, before the user document exists. Reads fall back to the
    durable ``email_verified`` flag.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from errors import CacheUnavailableError, NotFoundError, ValidationError
from infrastructure.cache.store import KeyValueStore
from repositories.protocol import UserStore
from schemas.models.user import UserDoc
from schemas.models.verification import VerificationCacheEntry, VerificationStatus
from shared.datetime_utils import Clock, calculate_age, ensure_utc, utc_now
from shared.logging import get_logger
from shared.validators import validate_date_of_birth

log = get_logger(__name__)

HOUR_SECONDS = 3600


def _email_key(identifier: str) -> str:
    return f"verified:{identifier}"


class VerificationCache:
    def __init__(
        self,
        store: KeyValueStore,
        users: UserStore,
        clock: Clock = utc_now,
        age_ttl_hours: int = 24 * 7,
        email_ttl_hours: int = 1,
    ) -> None:
        self._store = store
        self._users = users
        self._clock = clock
        self._age_ttl = age_ttl_hours * HOUR_SECONDS
        self._email_ttl = email_ttl_hours * HOUR_SECONDS

    # ── age verification ─────────────────────────────────────────────────────

    async def _read_cached(self, subject_id: str) -> Optional[VerificationCacheEntry]:
        key = VerificationCacheEntry.store_key(subject_id)
        try:
            raw = await self._store.get(key)
        except CacheUnavailableError:
            log.warning("verification_cache_read_failed", user_id=subject_id)
            return None
        if raw is None:
            return None
        try:
            return VerificationCacheEntry.model_validate_json(raw)
        except PydanticValidationError:
            log.warning("verification_cache_entry_corrupt", user_id=subject_id)
            await self.invalidate(subject_id)
            return None

    async def get_status(self, subject_id: str) -> VerificationStatus:
        cached = await self._read_cached(subject_id)
        if cached is not None and cached.verified:
            log.debug("verification_cache_hit", user_id=subject_id)
            return VerificationStatus(
                subject_id=subject_id,
                verified=True,
                verified_at=cached.verified_at,
                age=cached.age,
                source="cache",
            )

        user = await self._users.find_by_identifier(subject_id)
        if user is None:
            raise NotFoundError("User not found")

        age = self._age_of(user)
        if user.age_verified:
            await self.set_status(
                VerificationCacheEntry(
                    subject_id=subject_id,
                    verified=True,
                    verified_at=user.age_verified_at,
                    age=age,
                )
            )
        return VerificationStatus(
            subject_id=subject_id,
            verified=user.age_verified,
            verified_at=user.age_verified_at,
            age=age,
            source="durable",
            role=user.role,
            has_date_of_birth=user.date_of_birth is not None,
        )

    async def set_status(
        self, entry: VerificationCacheEntry, ttl_seconds: Optional[int] = None
    ) -> None:
        """Best-effort write; unverified entries are dropped instead of cached."""
        key = VerificationCacheEntry.store_key(entry.subject_id)
        try:
            if not entry.verified:
                await self._store.delete(key)
                return
            await self._store.set(
                key, entry.model_dump_json(), ttl_seconds or self._age_ttl
            )
        except CacheUnavailableError:
            log.warning("verification_cache_write_failed", user_id=entry.subject_id)

    async def invalidate(self, subject_id: str) -> None:
        try:
            await self._store.delete(VerificationCacheEntry.store_key(subject_id))
        except CacheUnavailableError:
            log.warning("verification_cache_invalidate_failed", user_id=subject_id)

    async def record_age_verification(
        self, subject_id: str, date_of_birth: date
    ) -> VerificationStatus:
        now = self._clock()
        validate_date_of_birth(date_of_birth, now.date())

        user = await self._users.find_by_identifier(subject_id)
        if user is None:
            raise NotFoundError("User not found")

        age = calculate_age(date_of_birth, now.date())
        required = user.min_age
        if age < required:
            log.info(
                "age_verification_rejected",
                user_id=subject_id,
                role=user.role,
                required_age=required,
            )
            raise ValidationError(
                f"You must be at least {required} years old",
                field="dateOfBirth",
                details={"userAge": age, "requiredAge": required},
            )

        await self._users.update_status(
            subject_id,
            {
                "date_of_birth": datetime.combine(
                    date_of_birth, time.min, tzinfo=timezone.utc
                ),
                "age_verified": True,
                "age_verified_at": now,
            },
        )
        await self.set_status(
            VerificationCacheEntry(
                subject_id=subject_id, verified=True, verified_at=now, age=age
            )
        )
        log.info("age_verified", user_id=subject_id, role=user.role)
        return VerificationStatus(
            subject_id=subject_id,
            verified=True,
            verified_at=now,
            age=age,
            source="durable",
            role=user.role,
            has_date_of_birth=True,
        )

    def _age_of(self, user: UserDoc) -> Optional[int]:
        if user.date_of_birth is None:
            return None
        return calculate_age(ensure_utc(user.date_of_birth).date(), self._clock().date())

    # ── email verification ───────────────────────────────────────────────────

    async def mark_email_verified(self, identifier: str) -> None:
        try:
            await self._store.set(_email_key(identifier), "true", self._email_ttl)
        except CacheUnavailableError:
            log.warning("email_verified_flag_write_failed", identifier=identifier)

    async def is_email_verified(self, identifier: str) -> bool:
        try:
            if await self._store.get(_email_key(identifier)) == "true":
                return True
        except CacheUnavailableError:
            log.warning("email_verified_flag_read_failed", identifier=identifier)
        user = await self._users.find_by_identifier(identifier)
        return bool(user and user.email_verified)

    async def clear_email_verified(self, identifier: str) -> None:
        try:
            await self._store.delete(_email_key(identifier))
        except CacheUnavailableError:
            log.warning("email_verified_flag_clear_failed", identifier=identifier)
