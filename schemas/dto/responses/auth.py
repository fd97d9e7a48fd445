"""
Response DTOs for the auth core endpoints.

Field names are camelCase here because these are response-only models built
explicitly in the route handlers.

OTPIssuedResponse          — POST /otp/issue, PATCH /otp/resend  (200)
OTPVerifiedResponse        — POST /otp/verify  (200)
OTPMetricsResponse         — GET /otp/metrics  (200)
SignupCompletedResponse    — POST /auth/signup  (201)
TokenRefreshResponse       — POST /token/refresh  (200)
LogoutResponse             — DELETE /token  (200)
AgeVerificationResponse    — POST /verification/age, GET /verification/age/status
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from services.otp_metrics import OTPMetricsSnapshot


class OTPIssuedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    purpose: str
    expiresIn: int
    remaining: int


class OTPVerifiedResponse(BaseModel):
    """resetToken is only present for the ``reset`` purpose (exclude_none)."""

    model_config = ConfigDict(populate_by_name=True)

    verified: bool
    nextStep: str
    resetToken: Optional[str] = None


class OTPMetricsResponse(BaseModel):
    metrics: list[OTPMetricsSnapshot]


class SignupUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    username: str
    name: Optional[str] = None
    role: str
    emailVerified: bool


class SignupCompletedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Account created successfully! Welcome to Fixly!"
    user: SignupUser
    accessToken: str
    refreshToken: str
    tokenType: str = "Bearer"
    expiresIn: int
    nextStep: str = "dashboard"


class TokenRefreshResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    accessToken: str
    tokenType: str = "Bearer"
    expiresIn: int
    # Only present when refresh-token rotation is enabled
    refreshToken: Optional[str] = None


class LogoutResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Signed out successfully"
    accessRevoked: bool
    refreshRevoked: bool


class AgeVerificationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    verified: bool
    verifiedAt: Optional[str] = None  # ISO 8601
    age: Optional[int] = None
    source: str
    role: Optional[str] = None
    hasDateOfBirth: Optional[bool] = None
