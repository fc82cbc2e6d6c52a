"""
Rule code allocation.

A per-day redis counter hands out sequence numbers. INCR is atomic, so
concurrent rule creations on the same day never receive the same code.
The counter is seeded from the database with SET NX, so only the first
seeding of the day takes effect.
"""

import logging
from datetime import date

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_pricing.app.core.config import settings
from parcel_pricing.app.core.exceptions import CodeAllocationError
from parcel_pricing.app.domain.pricing.rule_codes import format_code
from parcel_pricing.app.services.rule_repository import latest_sequence_for_day

logger = logging.getLogger("parcel_pricing")

# Redis key prefix for per-day sequence counters
SEQUENCE_KEY_PREFIX = "pricing:rule_code_seq:"


def sequence_key(day: date) -> str:
    return f"{SEQUENCE_KEY_PREFIX}{day.strftime('%Y%m%d')}"


async def allocate_rule_code(db: AsyncSession, redis: Redis, today: date) -> str:
    """
    Reserve the next rule code for `today`.
    
    Sequence numbers may be skipped (a reserved code whose rule is never
    saved is not reused) but are never handed out twice.
    """
    key = sequence_key(today)
    persisted = await latest_sequence_for_day(db, today)
    
    try:
        await redis.set(key, persisted, nx=True, ex=settings.rule_code_sequence_ttl_seconds)
        sequence = await redis.incr(key)
        
        # Counter fell behind codes written with an explicit value
        if sequence <= persisted:
            sequence = await redis.incrby(key, persisted - sequence + 1)
    except RedisError as exc:
        logger.error("Rule code counter unavailable", extra={"key": key, "error": str(exc)})
        raise CodeAllocationError(details={"day": today.isoformat()}) from exc
    
    code = format_code(today, sequence)
    logger.info("Allocated pricing rule code", extra={"code": code})
    return code
