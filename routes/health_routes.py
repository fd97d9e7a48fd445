"""
Health check endpoint.

GET /health — pings MongoDB and Redis.

- MongoDB down: "unhealthy" (503). Users, refresh and age verification all
  read it.
- Redis down or not configured: "degraded" (200). Rate limits and
  revocations carry on in per-process memory; OTP issue/verify fail with 503
  while a configured Redis is unreachable.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from schemas.dto.responses.common import HealthChecks, HealthResponse
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["health"])


async def _ping_mongo(request: Request) -> str:
    try:
        await request.app.state.db.client.admin.command("ping")
    except Exception as e:
        log.warning("health_mongo_failed", error=str(e))
        return "error"
    return "ok"


async def _ping_redis(request: Request) -> str:
    redis = request.app.state.redis
    if redis is None:
        return "not_configured"
    try:
        await redis.ping()
    except Exception as e:
        log.warning("health_redis_failed", error=str(e))
        return "error"
    return "ok"


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> JSONResponse:
    redis_state = await _ping_redis(request)
    checks = HealthChecks(
        mongodb=await _ping_mongo(request),
        redis=redis_state,
        store="memory" if redis_state == "not_configured" else "redis",
    )

    if checks.mongodb != "ok":
        status = "unhealthy"
    elif checks.redis != "ok":
        status = "degraded"
    else:
        status = "healthy"

    body = HealthResponse(status=status, checks=checks)
    return JSONResponse(
        status_code=503 if status == "unhealthy" else 200,
        content=body.model_dump(),
    )
