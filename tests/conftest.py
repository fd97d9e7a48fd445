"""
Shared test fakes and service fixtures.

In-process stand-ins for the auth core's collaborators: a controllable
clock, a MemoryStore bound to it (and a variant that yields to the event
loop inside every operation), an in-memory user store and a recording
notifier. Both unit and integration tests build real services on top.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import asyncio

import pytest
from bson import ObjectId

from config import JWTSettings, OTPSettings
from errors import ConflictError, NotFoundError
from infrastructure.cache.store import MemoryStore
from schemas.models.user import UserDoc
from services.otp_service import OTPEngine
from services.rate_limiter import RateLimiter
from services.revocation import RevocationList
from services.signup_service import SignupService
from services.token_service import TokenService
from services.verification_cache import VerificationCache

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


# ── Fakes ─────────────────────────────────────────────────────────────────────


class FakeClock:
    """Callable clock; advance() moves time forward."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs: float) -> None:
        self.now += timedelta(seconds=seconds, **kwargs)


class InMemoryUsers:
    """UserStore over a dict keyed by ObjectId string."""

    def __init__(self) -> None:
        self.docs: dict[str, dict[str, Any]] = {}
        self.updates: list[tuple[str, dict[str, Any]]] = []

    def add(self, email: str, **fields: Any) -> UserDoc:
        oid = ObjectId()
        doc = {"_id": oid, "email": email, **fields}
        self.docs[str(oid)] = doc
        return UserDoc.from_mongo(doc)

    def _find(self, identifier: str) -> Optional[dict[str, Any]]:
        if identifier in self.docs:
            return self.docs[identifier]
        for doc in self.docs.values():
            if doc["email"] == identifier.strip().lower():
                return doc
        return None

    async def find_by_identifier(self, identifier: str) -> Optional[UserDoc]:
        return UserDoc.from_mongo(self._find(identifier))

    async def update_status(self, identifier: str, fields: dict[str, Any]) -> UserDoc:
        doc = self._find(identifier)
        if doc is None:
            raise NotFoundError("User not found")
        doc.update(fields)
        self.updates.append((identifier, dict(fields)))
        return UserDoc.from_mongo(doc)

    async def create(self, fields: dict[str, Any]) -> UserDoc:
        for doc in self.docs.values():
            if doc["email"] == fields["email"]:
                raise ConflictError(
                    "User already exists with this email", field="identifier"
                )
            if fields.get("username") and doc.get("username") == fields["username"]:
                raise ConflictError("Username is already taken", field="username")
        return self.add(**fields)


class YieldingStore(MemoryStore):
    """MemoryStore that hands control back to the event loop before each
    operation, so concurrent callers interleave the way they do over Redis."""

    async def get(self, key: str) -> Optional[str]:
        await asyncio.sleep(0)
        return await super().get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await asyncio.sleep(0)
        await super().set(key, value, ttl_seconds)

    async def incr_window(self, key: str, window_seconds: int) -> tuple[int, int]:
        await asyncio.sleep(0)
        return await super().incr_window(key, window_seconds)

    async def delete(self, key: str) -> int:
        await asyncio.sleep(0)
        return await super().delete(key)


class RecordingNotifier:
    def __init__(self, delivered: bool = True) -> None:
        self.sent: list[tuple[str, Optional[str], str, str]] = []
        self.delivered = delivered

    async def send_code(
        self, identifier: str, display_name: Optional[str], code: str, purpose: str
    ) -> bool:
        self.sent.append((identifier, display_name, code, purpose))
        return self.delivered


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock)


@pytest.fixture
def yielding_store(clock):
    return YieldingStore(clock)


@pytest.fixture
def users():
    return InMemoryUsers()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def jwt_settings():
    return JWTSettings(jwt_secret=TEST_SECRET)


@pytest.fixture
def limiter(store, clock):
    return RateLimiter(store, clock=clock)


@pytest.fixture
def revocations(store, clock):
    return RevocationList(store, clock=clock)


@pytest.fixture
def token_service(jwt_settings, revocations, users, clock):
    return TokenService(jwt_settings, revocations, users, clock=clock)


@pytest.fixture
def verification_cache(store, users, clock):
    return VerificationCache(store, users, clock=clock)


@pytest.fixture
def otp_settings():
    return OTPSettings()


@pytest.fixture
def otp_engine(
    store, limiter, users, verification_cache, token_service, notifier, otp_settings, clock
):
    return OTPEngine(
        store,
        limiter,
        users,
        verification_cache,
        token_service,
        notifier,
        settings=otp_settings,
        clock=clock,
    )


@pytest.fixture
def signup_service(users, verification_cache, token_service, limiter):
    return SignupService(users, verification_cache, token_service, limiter)
