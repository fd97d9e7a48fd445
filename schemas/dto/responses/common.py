"""
Response shapes shared by every router.

ErrorResponse   — body written by the AppError handlers (see errors.py)
HealthResponse  — GET /health
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict

HealthStatus = Literal["healthy", "degraded", "unhealthy"]


class ErrorResponse(BaseModel):
    """Mirror of AppError.to_dict(); used for OpenAPI docs and in tests."""

    model_config = ConfigDict(populate_by_name=True)

    error: str
    code: str
    message: Optional[str] = None
    field: Optional[str] = None
    details: Optional[Any] = None
    retryAfter: Optional[int] = None


class HealthChecks(BaseModel):
    mongodb: Literal["ok", "error"]
    redis: Literal["ok", "error", "not_configured"]
    # Which backend the rate limiter, revocations and OTPs are using
    store: Literal["redis", "memory"]


class HealthResponse(BaseModel):
    status: HealthStatus
    checks: HealthChecks
