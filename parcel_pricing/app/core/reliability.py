"""
Reliability Utilities.

Retry helper for callers of optimistic-concurrency operations.
"""

import logging
from typing import Awaitable, Callable, TypeVar

from parcel_pricing.app.core.config import settings
from parcel_pricing.app.core.exceptions import ConcurrencyConflictError

logger = logging.getLogger("parcel_pricing")

T = TypeVar("T")


async def retry_on_conflict(
    operation: Callable[[], Awaitable[T]],
    attempts: int = None,
) -> T:
    """
    Run `operation` until it stops raising ConcurrencyConflictError.
    
    `operation` must re-read whatever state it depends on (rule version,
    latest code) on every call; a retry against stale state would conflict
    again. The last conflict is re-raised once `attempts` is exhausted.
    """
    attempts = attempts or settings.max_conflict_retries
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except ConcurrencyConflictError as exc:
            if attempt == attempts:
                raise
            logger.info(
                "Retrying after concurrency conflict",
                extra={"attempt": attempt, "details": exc.details}
            )
    raise RuntimeError("unreachable")
