"""
User document model.

Maps to the `users` MongoDB collection. Only the fields the auth core reads
or writes are modelled; anything else in the document is ignored.

role values: "hirer" | "fixer" (minimum age 16 / 18)
refresh_token_hash: SHA-256 of the single live refresh token, None after logout
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import ConfigDict

from schemas.models.base import MongoBaseModel

UserRole = Literal["hirer", "fixer"]

MIN_AGE_BY_ROLE: dict[str, int] = {"fixer": 18, "hirer": 16}


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    model_config = ConfigDict(
        populate_by_name=True, arbitrary_types_allowed=True, extra="ignore"
    )

    email: str
    username: Optional[str] = None
    name: Optional[str] = None
    role: UserRole = "hirer"
    is_active: bool = True
    email_verified: bool = False
    date_of_birth: Optional[datetime] = None
    age_verified: bool = False
    age_verified_at: Optional[datetime] = None
    refresh_token_hash: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    last_logout_at: Optional[datetime] = None

    @property
    def min_age(self) -> int:
        return MIN_AGE_BY_ROLE.get(self.role, 16)
