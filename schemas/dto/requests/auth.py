"""
Request DTOs for the auth core endpoints.

IssueOTPRequest         — POST /otp/issue, PATCH /otp/resend
VerifyOTPRequest        — POST /otp/verify
CompleteSignupRequest   — POST /auth/signup
RefreshTokenRequest     — POST /token/refresh
RevokeTokensRequest     — DELETE /token
AgeVerificationRequest  — POST /verification/age

The OTP bodies accept the older field names as aliases: ``email`` for
``identifier``, ``otp`` for ``code`` and ``type`` for ``purpose``.
"""

from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class IssueOTPRequest(BaseModel):
    """Request body for POST /otp/issue and PATCH /otp/resend."""

    model_config = ConfigDict(populate_by_name=True)

    identifier: str = Field(validation_alias=AliasChoices("identifier", "email"))
    purpose: Literal["signup", "reset"] = Field(
        default="signup", validation_alias=AliasChoices("purpose", "type")
    )


class VerifyOTPRequest(BaseModel):
    """Request body for POST /otp/verify.

    ``code`` is a plain string; the 6-digit format check happens in the
    service so that a bad format is a validation error, not a mismatch.
    """

    model_config = ConfigDict(populate_by_name=True)

    identifier: str = Field(validation_alias=AliasChoices("identifier", "email"))
    code: str = Field(validation_alias=AliasChoices("code", "otp"))
    purpose: Literal["signup", "reset"] = Field(
        default="signup", validation_alias=AliasChoices("purpose", "type")
    )


class CompleteSignupRequest(BaseModel):
    """Request body for POST /auth/signup, after the signup OTP is verified."""

    model_config = ConfigDict(populate_by_name=True)

    identifier: str = Field(validation_alias=AliasChoices("identifier", "email"))
    username: str
    name: Optional[str] = Field(default=None, max_length=80)
    role: Literal["hirer", "fixer"]


class RefreshTokenRequest(BaseModel):
    """Request body for POST /token/refresh."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(
        validation_alias=AliasChoices("refreshToken", "refresh_token")
    )


class RevokeTokensRequest(BaseModel):
    """Request body for DELETE /token. Either token may be omitted."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("accessToken", "access_token")
    )
    refresh_token: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("refreshToken", "refresh_token")
    )


class AgeVerificationRequest(BaseModel):
    """Request body for POST /verification/age."""

    model_config = ConfigDict(populate_by_name=True)

    date_of_birth: date = Field(
        validation_alias=AliasChoices("dateOfBirth", "date_of_birth")
    )
