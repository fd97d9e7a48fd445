"""Signup completion.

Last step of the signup flow: the email was proven by a ``signup`` OTP (see
services/otp_service.py), which left an email-verified flag behind. This
creates the user and signs them in with a fresh token pair.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from errors import ConflictError, ValidationError
from repositories.protocol import UserStore
from schemas.models.token import TokenPair
from schemas.models.user import UserDoc
from services.limits import Limits
from services.rate_limiter import RateLimiter
from services.token_service import TokenService
from services.verification_cache import VerificationCache
from shared.logging import get_logger
from shared.validators import normalize_identifier, normalize_username

log = get_logger(__name__)

NEXT_STEP_VERIFY_EMAIL = "email-verification"
NEXT_STEP_DASHBOARD = "dashboard"


@dataclass(frozen=True)
class SignupResult:
    user: UserDoc
    tokens: TokenPair


class SignupService:
    def __init__(
        self,
        users: UserStore,
        verification: VerificationCache,
        tokens: TokenService,
        limiter: RateLimiter,
    ) -> None:
        self._users = users
        self._verification = verification
        self._tokens = tokens
        self._limiter = limiter

    async def complete(
        self,
        identifier: str,
        username: str,
        role: str,
        name: Optional[str] = None,
    ) -> SignupResult:
        """Create the account for a verified email and mint its first token pair.

        Raises:
            ValidationError: email not verified, or a malformed field.
            ConflictError: email or username already registered.
            RateLimitError: too many attempts for this email.
        """
        identifier = normalize_identifier(identifier)
        username = normalize_username(username)
        await self._limiter.enforce(Limits.SIGNUP, identifier)

        if await self._users.find_by_identifier(identifier) is not None:
            raise ConflictError(
                "User already exists with this email",
                field="identifier",
                hint="Please sign in instead",
            )
        if not await self._verification.is_email_verified(identifier):
            raise ValidationError(
                "Email not verified",
                field="identifier",
                hint="Please verify your email before completing signup",
                details={"nextStep": NEXT_STEP_VERIFY_EMAIL},
            )

        user = await self._users.create(
            {
                "email": identifier,
                "username": username,
                "name": name.strip() if name else None,
                "role": role,
                "is_active": True,
                "email_verified": True,
            }
        )
        pair = await self._tokens.issue(
            user.id_str,
            claims={"email": user.email, "username": user.username, "role": user.role},
        )
        await self._verification.clear_email_verified(identifier)
        log.info("signup_completed", user_id=user.id_str, role=user.role)
        return SignupResult(user=user, tokens=pair)
