"""
Redis connection for the per-day rule code counters.

Only rule creation depends on it; price quotes never touch Redis.
"""

import logging

import redis.asyncio as redis
from parcel_pricing.app.core.config import settings

logger = logging.getLogger("parcel_pricing")

redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """FastAPI dependency for the counter store."""
    return redis_client


async def ping_redis() -> bool:
    try:
        return bool(await redis_client.ping())
    except redis.RedisError as exc:
        logger.warning("Redis unreachable", extra={"error": str(exc)})
        return False


async def close_redis() -> None:
    await redis_client.aclose()
