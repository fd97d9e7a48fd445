"""
Client IP resolution for FastAPI requests.

Used as the caller identity for rate limits on endpoints that have no
better key (token refresh, logout).
"""

from __future__ import annotations

from fastapi import Request

_PROXY_HEADERS: tuple[str, ...] = (
    "CF-Connecting-IP",
    "True-Client-IP",
    "X-Forwarded-For",
    "X-Real-IP",
)


def get_client_ip(request: Request) -> str:
    """Extract the real client IP from a FastAPI ``Request``.

    Checks proxy headers in priority order (first IP of a comma-separated
    list) before falling back to the direct connection address.

    Returns:
        The resolved client IP string, or ``"unknown"`` if none can be found.
    """
    for header in _PROXY_HEADERS:
        ip_value: str | None = request.headers.get(header)
        if ip_value:
            client_ip = ip_value.split(",")[0].strip()
            if client_ip:
                return client_ip

    return request.client.host if request.client else "unknown"
