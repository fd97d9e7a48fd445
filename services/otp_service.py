"""One-time passcode engine.

Per (identifier, purpose) an OTP moves NONE -> ISSUED -> VERIFIED | EXPIRED |
EXHAUSTED. The record lives only in the key-value store under
``otp:{purpose}:{identifier}``; consuming it is a single DEL, and only the
caller whose DEL removed the key is told the code was verified.

The record is never rewritten after issue. Wrong guesses bump a separate
counter (``OTPRecord.attempts_key``) with an atomic INCR; once it reaches
``max_attempts`` the record is deleted.

The OTP store is authoritative for codes, so a store outage here surfaces as
UnavailableError rather than falling back to process memory.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from config import OTPSettings
from errors import (
    CacheUnavailableError,
    ConflictError,
    NotFoundError,
    OTPExpiredError,
    OTPMismatchError,
    OTPNotFoundError,
    RateLimitError,
    UnavailableError,
)
from infrastructure.cache.store import KeyValueStore
from infrastructure.email.protocol import Notifier
from repositories.protocol import UserStore
from schemas.models.otp import OTPRecord
from schemas.models.token import SCOPE_PASSWORD_RESET
from services.limits import Limits
from services.otp_metrics import OTPMetrics
from services.rate_limiter import RateLimiter
from services.token_service import TokenService
from services.verification_cache import VerificationCache
from shared.background import spawn
from shared.datetime_utils import Clock, utc_now
from shared.generators import generate_otp_code
from shared.logging import get_logger
from shared.validators import normalize_identifier, validate_otp_format, validate_purpose

log = get_logger(__name__)

NEXT_STEP_PROFILE = "profile-details"
NEXT_STEP_RESET = "reset-password"

OTP_GONE_MESSAGE = "OTP has expired or does not exist. Please request a new code."


@dataclass(frozen=True)
class IssueResult:
    identifier: str
    purpose: str
    expires_in: int
    expires_at: datetime
    remaining: int


@dataclass(frozen=True)
class VerifyResult:
    verified: bool
    next_step: str
    reset_token: Optional[str] = None


class OTPEngine:
    def __init__(
        self,
        store: KeyValueStore,
        limiter: RateLimiter,
        users: UserStore,
        verification: VerificationCache,
        tokens: TokenService,
        notifier: Notifier,
        settings: Optional[OTPSettings] = None,
        clock: Clock = utc_now,
        metrics: Optional[OTPMetrics] = None,
    ) -> None:
        self._store = store
        self._limiter = limiter
        self._users = users
        self._verification = verification
        self._tokens = tokens
        self._notifier = notifier
        self._settings = settings or OTPSettings()
        self._clock = clock
        self.metrics = metrics or OTPMetrics(store)

    def ttl_minutes(self, purpose: str) -> int:
        if purpose == "reset":
            return self._settings.otp_reset_ttl_minutes
        return self._settings.otp_signup_ttl_minutes

    # ── record storage ───────────────────────────────────────────────────────

    async def _load(self, identifier: str, purpose: str) -> Optional[OTPRecord]:
        key = OTPRecord.store_key(purpose, identifier)
        try:
            raw = await self._store.get(key)
        except CacheUnavailableError as e:
            raise UnavailableError("Verification service temporarily unavailable") from e
        if raw is None:
            return None
        try:
            return OTPRecord.model_validate_json(raw)
        except PydanticValidationError:
            log.warning("otp_record_corrupt", identifier=identifier, purpose=purpose)
            await self._delete(identifier, purpose)
            return None

    async def _save(self, record: OTPRecord, ttl_seconds: int) -> None:
        try:
            await self._store.set(
                OTPRecord.store_key(record.purpose, record.identifier),
                record.model_dump_json(),
                ttl_seconds,
            )
        except CacheUnavailableError as e:
            raise UnavailableError("Verification service temporarily unavailable") from e

    async def _delete(self, identifier: str, purpose: str) -> int:
        try:
            return await self._store.delete(OTPRecord.store_key(purpose, identifier))
        except CacheUnavailableError as e:
            raise UnavailableError("Verification service temporarily unavailable") from e

    async def _count_failure(self, record: OTPRecord, now: datetime) -> int:
        try:
            failures, _ = await self._store.incr_window(
                record.attempts_key(), max(1, record.seconds_left(now))
            )
        except CacheUnavailableError as e:
            raise UnavailableError("Verification service temporarily unavailable") from e
        return failures

    async def _clear_failures(self, record: OTPRecord) -> None:
        # The counter expires with the record anyway
        try:
            await self._store.delete(record.attempts_key())
        except CacheUnavailableError as e:
            log.warning("otp_attempts_clear_failed", purpose=record.purpose, error=str(e))

    async def _dispatch(
        self, identifier: str, display_name: Optional[str], code: str, purpose: str
    ) -> None:
        delivered = await self._notifier.send_code(identifier, display_name, code, purpose)
        if not delivered:
            log.error("otp_delivery_failed", identifier=identifier, purpose=purpose)

    # ── operations ───────────────────────────────────────────────────────────

    async def issue(self, identifier: str, purpose: str) -> IssueResult:
        identifier = normalize_identifier(identifier)
        validate_purpose(purpose)
        budget = await self._limiter.enforce(Limits.OTP_ISSUE, identifier)

        now = self._clock()
        ttl_seconds = self.ttl_minutes(purpose) * 60

        user = await self._users.find_by_identifier(identifier)
        conflict = purpose == "signup" and user is not None
        unknown = purpose == "reset" and user is None
        if conflict or unknown:
            if not self._settings.otp_reveal_account_existence:
                log.info("otp_issue_suppressed", identifier=identifier, purpose=purpose)
                return IssueResult(
                    identifier=identifier,
                    purpose=purpose,
                    expires_in=ttl_seconds,
                    expires_at=now + timedelta(seconds=ttl_seconds),
                    remaining=budget.remaining,
                )
            if conflict:
                raise ConflictError(
                    "An account with this email already exists",
                    field="identifier",
                    hint="Please sign in instead",
                )
            raise NotFoundError("No account found with this email", field="identifier")

        record = await self._load(identifier, purpose)
        if record is not None and not record.is_expired(now):
            # Re-send the active code; expiry is not extended
            reused = True
        else:
            reused = False
            record = OTPRecord(
                identifier=identifier,
                code=generate_otp_code(),
                purpose=purpose,
                issued_at=now,
                expires_at=now + timedelta(seconds=ttl_seconds),
                max_attempts=self._settings.otp_max_attempts,
            )
            await self._save(record, ttl_seconds)
            await self.metrics.track(purpose, "generated")

        display_name = user.name if user is not None else None
        spawn(
            self._dispatch(identifier, display_name, record.code, purpose),
            name=f"otp_email:{purpose}",
        )
        log.info("otp_issued", identifier=identifier, purpose=purpose, reused=reused)
        return IssueResult(
            identifier=identifier,
            purpose=purpose,
            expires_in=record.seconds_left(now),
            expires_at=record.expires_at,
            remaining=budget.remaining,
        )

    async def verify(self, identifier: str, code: str, purpose: str) -> VerifyResult:
        identifier = normalize_identifier(identifier)
        validate_purpose(purpose)
        validate_otp_format(code)
        budget = await self._limiter.enforce(Limits.OTP_VERIFY, identifier)

        record = await self._load(identifier, purpose)
        if record is None:
            raise OTPNotFoundError(OTP_GONE_MESSAGE)

        now = self._clock()
        if record.is_expired(now):
            await self._delete(identifier, purpose)
            await self._clear_failures(record)
            await self.metrics.track(purpose, "expired")
            raise OTPExpiredError("OTP has expired. Please request a new code.")

        if not hmac.compare_digest(record.code.encode(), code.encode()):
            failures = await self._count_failure(record, now)
            if failures >= record.max_attempts:
                await self._delete(identifier, purpose)
                await self._clear_failures(record)
                log.info("otp_exhausted", identifier=identifier, purpose=purpose)
            log.info(
                "otp_mismatch",
                identifier=identifier,
                purpose=purpose,
                attempts_left=max(0, record.max_attempts - failures),
            )
            await self.metrics.track(purpose, "failed")
            raise OTPMismatchError(
                "Invalid OTP",
                hint="Please check the code and try again",
                details={"remaining": budget.remaining},
            )

        if await self._delete(identifier, purpose) == 0:
            raise OTPNotFoundError(OTP_GONE_MESSAGE)
        await self._clear_failures(record)
        await self.metrics.track(purpose, "verified")
        log.info("otp_verified", identifier=identifier, purpose=purpose)

        if purpose == "signup":
            await self._verification.mark_email_verified(identifier)
            return VerifyResult(verified=True, next_step=NEXT_STEP_PROFILE)

        user = await self._users.find_by_identifier(identifier)
        if user is None:
            raise NotFoundError("User not found")
        reset_token, _ = await self._tokens.issue_scoped_token(
            user.id_str,
            SCOPE_PASSWORD_RESET,
            claims={"email": user.email, "username": user.username, "role": user.role},
        )
        return VerifyResult(
            verified=True, next_step=NEXT_STEP_RESET, reset_token=reset_token
        )

    async def resend(self, identifier: str, purpose: str) -> IssueResult:
        identifier = normalize_identifier(identifier)
        validate_purpose(purpose)

        record = await self._load(identifier, purpose)
        now = self._clock()
        if record is not None and not record.is_expired(now):
            raise RateLimitError(
                "Please wait before requesting a new code",
                retry_after_seconds=record.seconds_left(now),
            )

        await self._limiter.enforce(Limits.OTP_RESEND, identifier)
        return await self.issue(identifier, purpose)
