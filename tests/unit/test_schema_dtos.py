"""Unit tests for request and response DTOs."""

from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from schemas.dto.requests.auth import (
    AgeVerificationRequest,
    IssueOTPRequest,
    RefreshTokenRequest,
    RevokeTokensRequest,
    VerifyOTPRequest,
)
from schemas.dto.responses.auth import OTPVerifiedResponse, TokenRefreshResponse
from schemas.dto.responses.common import ErrorResponse


class TestIssueOTPRequest:
    def test_canonical_names(self):
        req = IssueOTPRequest.model_validate({"identifier": "a@b.co", "purpose": "reset"})
        assert (req.identifier, req.purpose) == ("a@b.co", "reset")

    def test_aliases(self):
        req = IssueOTPRequest.model_validate({"email": "a@b.co", "type": "reset"})
        assert (req.identifier, req.purpose) == ("a@b.co", "reset")

    def test_purpose_defaults_to_signup(self):
        assert IssueOTPRequest.model_validate({"email": "a@b.co"}).purpose == "signup"

    def test_unknown_purpose_rejected(self):
        with pytest.raises(ValidationError):
            IssueOTPRequest.model_validate({"email": "a@b.co", "type": "login"})


class TestVerifyOTPRequest:
    def test_otp_alias(self):
        req = VerifyOTPRequest.model_validate({"email": "a@b.co", "otp": "123456"})
        assert req.code == "123456"

    def test_code_format_not_checked_here(self):
        req = VerifyOTPRequest.model_validate({"identifier": "a@b.co", "code": "12"})
        assert req.code == "12"

    def test_code_required(self):
        with pytest.raises(ValidationError):
            VerifyOTPRequest.model_validate({"identifier": "a@b.co"})


class TestTokenRequests:
    def test_refresh_camel_case(self):
        assert RefreshTokenRequest.model_validate({"refreshToken": "t"}).refresh_token == "t"

    def test_revoke_both_optional(self):
        req = RevokeTokensRequest.model_validate({})
        assert req.access_token is None and req.refresh_token is None

    def test_revoke_camel_case(self):
        req = RevokeTokensRequest.model_validate({"accessToken": "a", "refreshToken": "r"})
        assert (req.access_token, req.refresh_token) == ("a", "r")


class TestAgeVerificationRequest:
    def test_parses_iso_date(self):
        req = AgeVerificationRequest.model_validate({"dateOfBirth": "2000-01-31"})
        assert req.date_of_birth == date(2000, 1, 31)

    def test_rejects_garbage(self):
        with pytest.raises(ValidationError):
            AgeVerificationRequest.model_validate({"dateOfBirth": "31/01/2000"})


class TestResponses:
    def test_verified_response_drops_absent_reset_token(self):
        body = OTPVerifiedResponse(verified=True, nextStep="profile-details")
        assert body.model_dump(exclude_none=True) == {
            "verified": True,
            "nextStep": "profile-details",
        }

    def test_refresh_response_defaults(self):
        body = TokenRefreshResponse(accessToken="a", expiresIn=900)
        assert body.model_dump(exclude_none=True) == {
            "accessToken": "a",
            "tokenType": "Bearer",
            "expiresIn": 900,
        }

    def test_error_response_matches_app_error_shape(self):
        err = ErrorResponse.model_validate(
            {"error": "Too many requests", "code": "rate_limit_exceeded", "retryAfter": 60}
        )
        assert err.retryAfter == 60
