"""Async Redis connection factory.

Returns an async redis.Redis client, or None if Redis is not configured
or the connection fails. All callers must handle the None case gracefully
(the application falls back to an in-memory store).

Socket timeouts are always set so a slow or partitioned Redis turns into a
CacheUnavailableError instead of a hung request.
"""

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config import RedisSettings
from shared.logging import get_logger

log = get_logger(__name__)


async def create_redis_client(settings: RedisSettings) -> Optional[aioredis.Redis]:
    """Connect to Redis and return a client, or None on failure."""
    if not settings.redis_uri:
        log.info("redis_not_configured", fallback="memory_store")
        return None
    try:
        client: aioredis.Redis = aioredis.from_url(
            settings.redis_uri,
            decode_responses=True,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_connect_timeout,
        )
        await client.ping()
        # mask credentials
        log.info("redis_connected", uri=settings.redis_uri.split("@")[-1])
        return client
    except RedisError as e:
        log.warning(
            "redis_connection_failed", error=str(e), error_type=type(e).__name__
        )
        return None
    except Exception as e:
        log.warning("redis_unexpected_error", error=str(e), error_type=type(e).__name__)
        return None
