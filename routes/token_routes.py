"""
Token endpoints.

POST   /token/refresh  — exchange a refresh token for a new access token
DELETE /token          — sign out: revoke the access and/or refresh token

Both are rate limited per client IP.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from dependencies import get_rate_limiter, get_token_service
from schemas.dto.requests.auth import RefreshTokenRequest, RevokeTokensRequest
from schemas.dto.responses.auth import LogoutResponse, TokenRefreshResponse
from services.limits import Limits
from services.rate_limiter import RateLimiter
from services.token_service import TokenService
from shared.ip_utils import get_client_ip

router = APIRouter(prefix="/token", tags=["token"])


@router.post("/refresh", response_model=TokenRefreshResponse)
async def refresh_token(
    body: RefreshTokenRequest,
    request: Request,
    tokens: TokenService = Depends(get_token_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> JSONResponse:
    await limiter.enforce(Limits.TOKEN_REFRESH, get_client_ip(request))
    grant = await tokens.refresh(body.refresh_token)
    resp = TokenRefreshResponse(
        accessToken=grant.access_token,
        tokenType=grant.token_type,
        expiresIn=grant.expires_in,
        refreshToken=grant.refresh_token,
    )
    return JSONResponse(content=resp.model_dump(exclude_none=True))


@router.delete("", response_model=LogoutResponse)
async def revoke_tokens(
    body: RevokeTokensRequest,
    request: Request,
    tokens: TokenService = Depends(get_token_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> JSONResponse:
    await limiter.enforce(Limits.LOGOUT, get_client_ip(request))
    revoked = await tokens.logout(body.access_token, body.refresh_token)
    resp = LogoutResponse(
        accessRevoked=revoked["access"], refreshRevoked=revoked["refresh"]
    )
    return JSONResponse(content=resp.model_dump())
