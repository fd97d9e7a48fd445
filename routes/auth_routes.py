"""
Account endpoints.

POST /auth/signup — create the account for an email proven by a signup OTP
                    and return its first access/refresh pair (201)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from dependencies import get_signup_service
from schemas.dto.requests.auth import CompleteSignupRequest
from schemas.dto.responses.auth import SignupCompletedResponse, SignupUser
from services.signup_service import NEXT_STEP_DASHBOARD, SignupService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=SignupCompletedResponse, status_code=201)
async def complete_signup(
    body: CompleteSignupRequest, signup: SignupService = Depends(get_signup_service)
) -> JSONResponse:
    result = await signup.complete(
        body.identifier, body.username, body.role, name=body.name
    )
    user = result.user
    resp = SignupCompletedResponse(
        user=SignupUser(
            id=user.id_str,
            email=user.email,
            username=user.username or "",
            name=user.name,
            role=user.role,
            emailVerified=user.email_verified,
        ),
        accessToken=result.tokens.access_token,
        refreshToken=result.tokens.refresh_token,
        tokenType=result.tokens.token_type,
        expiresIn=result.tokens.expires_in,
        nextStep=NEXT_STEP_DASHBOARD,
    )
    return JSONResponse(status_code=201, content=resp.model_dump())
