"""
Sliding-Window Rate Limiter

Each key keeps the timestamps of its accepted hits for one window, in a
Redis sorted set when Redis is connected and in process memory otherwise.
Rejected hits are not recorded, so a client hammering a closed window does
not keep extending it.

Rules live beside the routes that use them:

    SUBMIT = RateLimit(5, 60 * 60)
    await enforce_rate_limit(client_key(request, "applications:submit"), SUBMIT)
"""

import logging
import math
import time
import uuid
from dataclasses import dataclass

from fastapi import HTTPException, Request, status
from redis.asyncio import Redis
from redis.exceptions import RedisError

from progress_api.core import redis as redis_module

logger = logging.getLogger(__name__)

_memory_hits: dict[str, list[float]] = {}


@dataclass(frozen=True)
class RateLimit:
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: int  # seconds until a slot frees up; 0 when allowed


class RateLimitExceeded(HTTPException):
    def __init__(self, rule: RateLimit, retry_after: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RATE_LIMIT_EXCEEDED",
                "message": (
                    f"Too many requests: at most {rule.limit} per "
                    f"{rule.window_seconds} seconds. Try again in {retry_after} seconds."
                ),
                "retry_after_seconds": retry_after,
            },
            headers={"Retry-After": str(retry_after)},
        )


def _seconds_until_free(oldest: float, rule: RateLimit, now: float) -> int:
    return max(1, math.ceil(oldest + rule.window_seconds - now))


async def _hit_redis(client: Redis, key: str, rule: RateLimit) -> RateLimitDecision:
    now = time.time()
    member = f"{now}:{uuid.uuid4().hex}"

    pipe = client.pipeline()
    pipe.zremrangebyscore(key, 0, now - rule.window_seconds)
    pipe.zadd(key, {member: now})
    pipe.zcard(key)
    pipe.zrange(key, 0, 0, withscores=True)
    pipe.expire(key, rule.window_seconds)
    _, _, count, oldest, _ = await pipe.execute()

    if count <= rule.limit:
        return RateLimitDecision(True, rule.limit - count, 0)

    await client.zrem(key, member)
    oldest_ts = oldest[0][1] if oldest else now
    return RateLimitDecision(False, 0, _seconds_until_free(oldest_ts, rule, now))


def _hit_memory(key: str, rule: RateLimit) -> RateLimitDecision:
    now = time.time()
    hits = [ts for ts in _memory_hits.get(key, []) if ts > now - rule.window_seconds]

    if len(hits) >= rule.limit:
        _memory_hits[key] = hits
        return RateLimitDecision(False, 0, _seconds_until_free(hits[0], rule, now))

    hits.append(now)
    _memory_hits[key] = hits
    return RateLimitDecision(True, rule.limit - len(hits), 0)


async def check_rate_limit(key: str, rule: RateLimit) -> RateLimitDecision:
    """
    Record a hit on ``key`` if the window has room.

    Redis errors are logged and the in-memory store is used for that call.
    """
    client = redis_module.redis_client
    if client is not None:
        try:
            return await _hit_redis(client, key, rule)
        except RedisError as e:
            logger.warning(f"Rate limiter falling back to memory for {key}: {e}")
    return _hit_memory(key, rule)


def client_key(request: Request, action: str) -> str:
    """Key for ``action`` scoped to the caller's IP."""
    host = request.client.host if request.client else "unknown"
    return f"rate_limit:{action}:{host}"


async def enforce_rate_limit(key: str, rule: RateLimit) -> RateLimitDecision:
    """Record a hit or raise ``RateLimitExceeded`` (HTTP 429)."""
    decision = await check_rate_limit(key, rule)
    if not decision.allowed:
        logger.warning(f"Rate limit hit for {key} ({rule.limit}/{rule.window_seconds}s)")
        raise RateLimitExceeded(rule, decision.retry_after)
    return decision


def reset_memory_store() -> None:
    _memory_hits.clear()


__all__ = [
    "RateLimit",
    "RateLimitDecision",
    "RateLimitExceeded",
    "check_rate_limit",
    "client_key",
    "enforce_rate_limit",
    "reset_memory_store",
]
