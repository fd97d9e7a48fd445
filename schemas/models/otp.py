"""
OTP record model.

Lives only in the key-value store under ``otp:{purpose}:{identifier}`` with a
TTL equal to its remaining lifetime; it is never written to MongoDB.
Serialized as JSON (not pickle) so entries are debuggable.

The record is written once and never rewritten. Failed guesses are counted
under a separate key tied to this record (``attempts_key``) with an atomic
increment, so a wrong guess can never resurrect a code another request has
already consumed. Attempts remaining = ``max_attempts`` - that count.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

OTPPurpose = Literal["signup", "reset"]


class OTPRecord(BaseModel):
    identifier: str
    code: str = Field(pattern=r"^[0-9]{6}$")
    purpose: OTPPurpose
    issued_at: datetime
    expires_at: datetime
    max_attempts: int = Field(ge=1)

    @staticmethod
    def store_key(purpose: str, identifier: str) -> str:
        return f"otp:{purpose}:{identifier}"

    def attempts_key(self) -> str:
        # Issue time in microseconds keeps a stale counter from a previous
        # code from ever applying to this one
        issued_us = int(self.issued_at.timestamp() * 1_000_000)
        return f"otp_attempts:{self.purpose}:{self.identifier}:{issued_us}"

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def seconds_left(self, now: datetime) -> int:
        return max(0, int((self.expires_at - now).total_seconds()))
