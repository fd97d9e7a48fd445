"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Components are constructed once in the app
lifespan and read from app.state.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from errors import AuthenticationError
from schemas.models.token import AccessClaims
from services.otp_service import OTPEngine
from services.rate_limiter import RateLimiter
from services.signup_service import SignupService
from services.token_service import TokenService
from services.verification_cache import VerificationCache

_bearer = HTTPBearer(auto_error=False)


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_otp_engine(request: Request) -> OTPEngine:
    return request.app.state.otp_engine


def get_signup_service(request: Request) -> SignupService:
    return request.app.state.signup_service


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_verification_cache(request: Request) -> VerificationCache:
    return request.app.state.verification_cache


async def get_current_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    tokens: TokenService = Depends(get_token_service),
) -> AccessClaims:
    """Validate the ``Authorization: Bearer`` access token.

    Raises:
        AuthenticationError: header missing, or any token error subclass.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(
            "Authentication required", hint="Provide a Bearer access token"
        )
    return await tokens.verify_access(credentials.credentials)
