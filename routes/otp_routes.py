"""
OTP endpoints.

POST  /otp/issue   — send a 6-digit code for signup or password reset
POST  /otp/verify  — consume a code
PATCH /otp/resend  — re-issue once the previous code has expired
GET   /otp/metrics — daily generated/verified/failed/expired counts (bearer)

Rate limits are keyed by the normalized identifier and enforced inside the
OTP engine (see services/limits.py).
"""

from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from dependencies import get_current_subject, get_otp_engine
from schemas.dto.requests.auth import IssueOTPRequest, VerifyOTPRequest
from schemas.dto.responses.auth import (
    OTPIssuedResponse,
    OTPMetricsResponse,
    OTPVerifiedResponse,
)
from schemas.models.token import AccessClaims
from services.otp_service import IssueResult, OTPEngine

router = APIRouter(prefix="/otp", tags=["otp"])


def _issued(result: IssueResult) -> JSONResponse:
    body = OTPIssuedResponse(
        message="Verification code sent",
        purpose=result.purpose,
        expiresIn=result.expires_in,
        remaining=result.remaining,
    )
    return JSONResponse(content=body.model_dump())


@router.post("/issue", response_model=OTPIssuedResponse)
async def issue_otp(
    body: IssueOTPRequest, engine: OTPEngine = Depends(get_otp_engine)
) -> JSONResponse:
    result = await engine.issue(body.identifier, body.purpose)
    return _issued(result)


@router.post("/verify", response_model=OTPVerifiedResponse)
async def verify_otp(
    body: VerifyOTPRequest, engine: OTPEngine = Depends(get_otp_engine)
) -> JSONResponse:
    result = await engine.verify(body.identifier, body.code, body.purpose)
    resp = OTPVerifiedResponse(
        verified=result.verified,
        nextStep=result.next_step,
        resetToken=result.reset_token,
    )
    return JSONResponse(content=resp.model_dump(exclude_none=True))


@router.patch("/resend", response_model=OTPIssuedResponse)
async def resend_otp(
    body: IssueOTPRequest, engine: OTPEngine = Depends(get_otp_engine)
) -> JSONResponse:
    result = await engine.resend(body.identifier, body.purpose)
    return _issued(result)


@router.get("/metrics", response_model=OTPMetricsResponse)
async def otp_metrics(
    purpose: Optional[Literal["signup", "reset"]] = Query(default=None),
    engine: OTPEngine = Depends(get_otp_engine),
    _: AccessClaims = Depends(get_current_subject),
) -> JSONResponse:
    purposes = [purpose] if purpose else ["signup", "reset"]
    snapshots = [await engine.metrics.snapshot(p) for p in purposes]
    return JSONResponse(content=OTPMetricsResponse(metrics=snapshots).model_dump())
