"""Outbound HTTP for the auth service.

One pooled httpx.AsyncClient per process, opened in the app lifespan and
closed on shutdown. The email notifier is the only caller.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from shared.logging import get_logger

log = get_logger(__name__)

USER_AGENT = "fixly-auth/1.0"


class HttpClient:
    def __init__(
        self,
        timeout: float = 5.0,
        max_connections: int = 20,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(max_connections=max_connections),
            headers={"User-Agent": USER_AGENT, **(headers or {})},
        )

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.post(url, **kwargs)
        except httpx.HTTPError as e:
            log.warning(
                "http_request_failed",
                method="POST",
                url=url,
                error_type=type(e).__name__,
            )
            raise

    async def aclose(self) -> None:
        await self._client.aclose()
