"""Access/refresh token lifecycle.

Tokens are HS256 JWTs (PyJWT). Expiry is checked here against the injected
clock rather than by PyJWT, so the rule is exactly ``now >= exp`` means
expired and tests can drive time.

The user record holds the SHA-256 of the one live refresh token. A refresh
request must present that exact token; an older token for the same subject
(e.g. from a previous login) is rejected as stale even if its signature and
expiry are fine.
"""

from __future__ import annotations

from typing import Any, Optional

import jwt
from pydantic import ValidationError as PydanticValidationError

from config import JWTSettings
from errors import (
    ForbiddenError,
    InvalidTokenError,
    RevokedTokenError,
    StaleTokenError,
    TokenExpiredError,
)
from repositories.protocol import UserStore
from schemas.models.token import (
    TOKEN_TYPE_REFRESH,
    AccessClaims,
    AccessGrant,
    RefreshClaims,
    SubjectClaims,
    TokenClaims,
    TokenPair,
)
from schemas.models.user import UserDoc
from services.revocation import RevocationList
from shared.crypto import constant_time_equals, hash_token
from shared.datetime_utils import Clock, to_epoch_seconds, utc_now
from shared.generators import generate_jti, generate_session_id
from shared.logging import get_logger

log = get_logger(__name__)

_REQUIRED_CLAIMS = ["sub", "iat", "exp", "jti", "type"]


class TokenService:
    def __init__(
        self,
        settings: JWTSettings,
        revocations: RevocationList,
        users: UserStore,
        clock: Clock = utc_now,
    ) -> None:
        self._settings = settings
        self._revocations = revocations
        self._users = users
        self._clock = clock

    # ── signing ──────────────────────────────────────────────────────────────

    def _secret(self) -> str:
        if not self._settings.jwt_secret:
            raise RuntimeError("JWT_SECRET must be set to sign or verify tokens")
        return self._settings.jwt_secret

    def _sign(self, claims: TokenClaims) -> str:
        return jwt.encode(
            claims.to_payload(), self._secret(), algorithm=self._settings.jwt_algorithm
        )

    def _now_ts(self) -> int:
        return to_epoch_seconds(self._clock())

    def _access_claims(
        self, subject: str, sid: str, extra: SubjectClaims, scope: Optional[str] = None,
        ttl: Optional[int] = None,
    ) -> AccessClaims:
        now = self._now_ts()
        return AccessClaims(
            sub=subject,
            iss=self._settings.jwt_issuer,
            iat=now,
            exp=now + (ttl or self._settings.access_token_ttl_seconds),
            jti=generate_jti(),
            sid=sid,
            email=extra.email,
            username=extra.username,
            role=extra.role,
            scope=scope,
        )

    def _refresh_claims(self, subject: str, sid: str) -> RefreshClaims:
        now = self._now_ts()
        return RefreshClaims(
            sub=subject,
            iss=self._settings.jwt_issuer,
            iat=now,
            exp=now + self._settings.refresh_token_ttl_seconds,
            jti=generate_jti(),
            sid=sid,
        )

    # ── decoding ─────────────────────────────────────────────────────────────

    def _decode(self, token: str) -> TokenClaims:
        """Verify signature/issuer and parse into a tagged claim set."""
        try:
            payload = jwt.decode(
                token,
                self._secret(),
                algorithms=[self._settings.jwt_algorithm],
                issuer=self._settings.jwt_issuer,
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": _REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidTokenError as e:
            log.info("token_rejected", reason="invalid", error_type=type(e).__name__)
            raise InvalidTokenError("Invalid or malformed token") from e

        try:
            if payload.get("type") == TOKEN_TYPE_REFRESH:
                return RefreshClaims.model_validate(payload)
            return AccessClaims.model_validate(payload)
        except PydanticValidationError as e:
            log.info("token_rejected", reason="bad_claims")
            raise InvalidTokenError("Invalid token claims") from e

    async def _ensure_live(self, claims: TokenClaims) -> None:
        if self._now_ts() >= claims.exp:
            log.info("token_rejected", reason="expired", token_type=claims.type)
            raise TokenExpiredError(
                "Refresh token has expired"
                if claims.type == TOKEN_TYPE_REFRESH
                else "Access token has expired"
            )
        if await self._revocations.is_revoked(claims.jti):
            log.info("token_rejected", reason="revoked", jti=claims.jti)
            raise RevokedTokenError("Token has been revoked")

    # ── public API ───────────────────────────────────────────────────────────

    async def issue(
        self, subject: str, claims: Optional[dict[str, Any]] = None
    ) -> TokenPair:
        """Mint an access/refresh pair and bind the refresh token to *subject*."""
        extra = SubjectClaims.model_validate(claims or {})
        sid = generate_session_id()
        access = self._sign(self._access_claims(subject, sid, extra))
        refresh = self._sign(self._refresh_claims(subject, sid))

        await self._users.update_status(
            subject,
            {"refresh_token_hash": hash_token(refresh), "last_login_at": self._clock()},
        )
        log.info("token_pair_issued", user_id=subject)
        return TokenPair(
            access_token=access,
            refresh_token=refresh,
            expires_in=self._settings.access_token_ttl_seconds,
        )

    async def issue_scoped_token(
        self,
        subject: str,
        scope: str,
        ttl: Optional[int] = None,
        claims: Optional[dict[str, Any]] = None,
    ) -> tuple[str, int]:
        """Short-lived access token restricted to one operation (e.g. password reset)."""
        ttl = ttl or self._settings.reset_token_ttl_seconds
        extra = SubjectClaims.model_validate(claims or {})
        token = self._sign(
            self._access_claims(subject, generate_session_id(), extra, scope, ttl)
        )
        log.info("scoped_token_issued", user_id=subject, scope=scope)
        return token, ttl

    async def verify_access(
        self, token: str, scope: Optional[str] = None
    ) -> AccessClaims:
        """Validate a bearer token. Scoped tokens only pass when *scope* matches."""
        claims = self._decode(token)
        if not isinstance(claims, AccessClaims):
            raise InvalidTokenError("Invalid token type")
        await self._ensure_live(claims)
        if claims.scope != scope:
            raise InvalidTokenError("Token is not valid for this operation")
        return claims

    async def refresh(self, refresh_token: str) -> AccessGrant:
        claims = self._decode(refresh_token)
        if not isinstance(claims, RefreshClaims):
            raise InvalidTokenError("Invalid token type")
        await self._ensure_live(claims)

        user = await self._users.find_by_identifier(claims.sub)
        if user is None:
            raise InvalidTokenError("Invalid refresh token")
        if not user.is_active:
            raise ForbiddenError("Account is deactivated")
        if not user.refresh_token_hash or not constant_time_equals(
            user.refresh_token_hash, hash_token(refresh_token)
        ):
            log.warning("refresh_token_stale", user_id=claims.sub, jti=claims.jti)
            raise StaleTokenError("Invalid refresh token")

        access = self._sign(
            self._access_claims(claims.sub, claims.sid, _subject_claims(user))
        )
        fields: dict[str, Any] = {"last_login_at": self._clock()}
        new_refresh: Optional[str] = None
        if self._settings.jwt_rotate_refresh_tokens:
            new_refresh = self._sign(self._refresh_claims(claims.sub, claims.sid))
            fields["refresh_token_hash"] = hash_token(new_refresh)
            await self._revocations.revoke(claims.jti, claims.exp - self._now_ts())

        await self._users.update_status(claims.sub, fields)
        log.info(
            "access_token_refreshed",
            user_id=claims.sub,
            rotated=new_refresh is not None,
        )
        return AccessGrant(
            access_token=access,
            expires_in=self._settings.access_token_ttl_seconds,
            refresh_token=new_refresh,
        )

    async def revoke(self, token: str) -> bool:
        """Revoke *token* for the rest of its lifetime.

        The signature is not checked: an expired or garbage token needs no
        entry. Returns True when a revocation entry was written.
        """
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return False

        jti = payload.get("jti")
        exp = payload.get("exp")
        if not jti or not isinstance(exp, (int, float)):
            return False
        # No token this service signs outlives the refresh TTL; an unsigned
        # far-future exp must not pin an entry in the store
        remaining = min(
            int(exp) - self._now_ts(), self._settings.refresh_token_ttl_seconds
        )
        if remaining <= 0:
            return False

        await self._revocations.revoke(str(jti), remaining)

        subject = payload.get("sub")
        if payload.get("type") == TOKEN_TYPE_REFRESH and subject:
            user = await self._users.find_by_identifier(str(subject))
            # Only clear the stored reference when this is the live token,
            # so a forged unsigned token cannot log someone else out
            if (
                user is not None
                and user.refresh_token_hash
                and constant_time_equals(user.refresh_token_hash, hash_token(token))
            ):
                await self._users.update_status(
                    str(subject),
                    {"refresh_token_hash": None, "last_logout_at": self._clock()},
                )
        return True

    async def logout(
        self, access_token: Optional[str], refresh_token: Optional[str]
    ) -> dict[str, bool]:
        revoked = {"access": False, "refresh": False}
        if access_token:
            revoked["access"] = await self.revoke(access_token)
        if refresh_token:
            revoked["refresh"] = await self.revoke(refresh_token)
        log.info("logout_processed", **{f"{k}_revoked": v for k, v in revoked.items()})
        return revoked


def _subject_claims(user: UserDoc) -> SubjectClaims:
    return SubjectClaims(email=user.email, username=user.username, role=user.role)
