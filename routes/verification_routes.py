"""
Age verification endpoints (bearer auth).

POST /verification/age         — record date of birth, check role minimum age
GET  /verification/age/status  — cache-first read of the verification status
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from dependencies import get_current_subject, get_rate_limiter, get_verification_cache
from schemas.dto.requests.auth import AgeVerificationRequest
from schemas.dto.responses.auth import AgeVerificationResponse
from schemas.models.token import AccessClaims
from schemas.models.verification import VerificationStatus
from services.limits import Limits
from services.rate_limiter import RateLimiter
from services.verification_cache import VerificationCache

router = APIRouter(prefix="/verification", tags=["verification"])


def _to_response(status: VerificationStatus) -> JSONResponse:
    resp = AgeVerificationResponse(
        verified=status.verified,
        verifiedAt=status.verified_at.isoformat() if status.verified_at else None,
        age=status.age,
        source=status.source,
        role=status.role,
        hasDateOfBirth=status.has_date_of_birth,
    )
    return JSONResponse(content=resp.model_dump(exclude_none=True))


@router.post("/age", response_model=AgeVerificationResponse)
async def verify_age(
    body: AgeVerificationRequest,
    claims: AccessClaims = Depends(get_current_subject),
    limiter: RateLimiter = Depends(get_rate_limiter),
    cache: VerificationCache = Depends(get_verification_cache),
) -> JSONResponse:
    await limiter.enforce(Limits.AGE_VERIFY, claims.sub)
    status = await cache.record_age_verification(claims.sub, body.date_of_birth)
    return _to_response(status)


@router.get("/age/status", response_model=AgeVerificationResponse)
async def age_status(
    claims: AccessClaims = Depends(get_current_subject),
    cache: VerificationCache = Depends(get_verification_cache),
) -> JSONResponse:
    status = await cache.get_status(claims.sub)
    return _to_response(status)
