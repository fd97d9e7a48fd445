"""
Verification status models.

VerificationCacheEntry is what sits in the store under
``age_verified:{subject_id}``; VerificationStatus is what callers get back,
tagged with where it came from.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

StatusSource = Literal["cache", "durable"]


class VerificationCacheEntry(BaseModel):
    subject_id: str
    verified: bool
    verified_at: Optional[datetime] = None
    age: Optional[int] = None

    @staticmethod
    def store_key(subject_id: str) -> str:
        return f"age_verified:{subject_id}"


class VerificationStatus(BaseModel):
    subject_id: str
    verified: bool
    verified_at: Optional[datetime] = None
    age: Optional[int] = None
    source: StatusSource
    role: Optional[str] = None
    has_date_of_birth: Optional[bool] = None
