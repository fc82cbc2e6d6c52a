"""
Pricing rule repository.

Reads pricing rules from the database and turns them into the immutable
snapshots the engine consumes.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_pricing.app.core.exceptions import ResourceNotFoundError
from parcel_pricing.app.domain.pricing.rule_codes import code_prefix, format_code, parse_sequence
from parcel_pricing.app.models.pricing_enums import ServiceType
from parcel_pricing.app.models.pricing_rule import PricingRule
from parcel_pricing.app.schemas.pricing import PricingRuleSnapshot, SelectionCriteria


def to_snapshot(record: PricingRule) -> PricingRuleSnapshot:
    return PricingRuleSnapshot.model_validate(record)


async def get_rule_record(db: AsyncSession, code: str) -> PricingRule:
    """
    Fetch a rule by code, bypassing the session's identity map so the
    version seen is the one currently stored.
    
    Raises:
        ResourceNotFoundError: If no rule has this code.
    """
    result = await db.execute(
        select(PricingRule)
        .where(PricingRule.code == code)
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise ResourceNotFoundError("Pricing rule", code)
    return record


async def get_rule(db: AsyncSession, code: str) -> PricingRuleSnapshot:
    return to_snapshot(await get_rule_record(db, code))


async def list_rules(
    db: AsyncSession,
    service_type: Optional[ServiceType] = None,
    is_active: Optional[bool] = None,
) -> List[PricingRule]:
    query = select(PricingRule).order_by(PricingRule.code)
    if service_type is not None:
        query = query.where(PricingRule.service_type == service_type)
    if is_active is not None:
        query = query.where(PricingRule.is_active == is_active)
    result = await db.execute(query)
    return list(result.scalars().all())


async def load_candidate_rules(db: AsyncSession, criteria: SelectionCriteria) -> List[PricingRuleSnapshot]:
    """
    Coarse store-side prefilter (active rules of the requested service type).
    
    Area, customer, branch and validity matching belong to the engine.
    """
    records = await list_rules(db, service_type=criteria.service_type, is_active=True)
    return [to_snapshot(record) for record in records]


async def latest_sequence_for_day(db: AsyncSession, day: date) -> int:
    """Highest persisted sequence number for `day`, 0 if none."""
    result = await db.execute(
        select(PricingRule.code).where(PricingRule.code.like(f"{code_prefix(day)}%"))
    )
    sequences = [parse_sequence(code, day) for code in result.scalars().all()]
    return max((seq for seq in sequences if seq is not None), default=0)


async def latest_code_for_day(db: AsyncSession, day: date) -> Optional[str]:
    sequence = await latest_sequence_for_day(db, day)
    return format_code(day, sequence) if sequence else None
