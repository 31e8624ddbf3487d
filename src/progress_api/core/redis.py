"""
Redis Client

Backs the sliding-window rate limiter. Redis is optional: when it is not
connected the limiter counts in process memory instead, which is only
accurate for a single worker.
"""

import logging

from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from progress_api.core.config import settings

logger = logging.getLogger(__name__)

redis_client: Redis | None = None


async def init_redis() -> Redis:
    """Connect and ping. Raises if the server is unreachable."""
    global redis_client
    client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=settings.redis_connect_timeout,
    )
    await client.ping()
    redis_client = client
    return client


async def redis_status() -> str:
    """
    Report the rate-limit backend for the readiness probe.

    Returns "connected", "unavailable" (client set but ping fails) or
    "disabled" (never connected; in-memory limiting).
    """
    if redis_client is None:
        return "disabled"
    try:
        await redis_client.ping()
    except RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        return "unavailable"
    return "connected"


async def close_redis() -> None:
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
