"""
Signed token claim sets.

Access and refresh tokens are distinct tagged structures (``type`` is a
Literal) with a fixed field set. The JWT payload is ``model_dump()`` of one
of these, produced in declaration order, so what gets signed is always the
same shape for the same inputs.
"""

from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"

SCOPE_PASSWORD_RESET = "password_reset"


class _BaseClaims(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    sub: str
    iss: str
    iat: int
    exp: int
    jti: str
    sid: str

    def to_payload(self) -> dict:
        return self.model_dump(exclude_none=True)


class AccessClaims(_BaseClaims):
    type: Literal["access"] = TOKEN_TYPE_ACCESS
    email: Optional[str] = None
    username: Optional[str] = None
    role: Optional[str] = None
    scope: Optional[str] = None


class RefreshClaims(_BaseClaims):
    type: Literal["refresh"] = TOKEN_TYPE_REFRESH


TokenClaims = Union[AccessClaims, RefreshClaims]


class SubjectClaims(BaseModel):
    """Caller-supplied claims copied into access tokens."""

    model_config = ConfigDict(extra="ignore")

    email: Optional[str] = None
    username: Optional[str] = None
    role: Optional[str] = None


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int = Field(description="Access token lifetime in seconds")
    token_type: str = "Bearer"


class AccessGrant(BaseModel):
    access_token: str
    expires_in: int
    token_type: str = "Bearer"
    # Only set when refresh-token rotation is enabled
    refresh_token: Optional[str] = None
