"""
Pricing rule administration.

Every mutation runs under optimistic concurrency: the caller names the
version it read, the write is refused if the stored version differs, and
the UPDATE itself is guarded by the version column. Conflicts surface as
ConcurrencyConflictError; retrying is the caller's decision.
"""

import logging
from datetime import date
from typing import Iterable, List, Optional

from pydantic import BaseModel
from redis.asyncio import Redis
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from parcel_pricing.app.core.clock import utctoday
from parcel_pricing.app.core.exceptions import (
    ConcurrencyConflictError, DuplicateEntryError, PricingValidationError, ResourceNotFoundError,
)
from parcel_pricing.app.domain.pricing.tier_validation import (
    check_no_overlap, insert_sorted, validate_tier_set,
)
from parcel_pricing.app.models.pricing_rule import PricingRule
from parcel_pricing.app.schemas.pricing import Discount, SpecialService, Tier
from parcel_pricing.app.schemas.pricing_admin import PricingRuleCreate, PricingRuleFields, PricingRuleUpdate
from parcel_pricing.app.services.audit import AuditAction, log_event
from parcel_pricing.app.services.rule_code_sequence import allocate_rule_code
from parcel_pricing.app.services.rule_repository import get_rule_record

logger = logging.getLogger("parcel_pricing")


def _dump(items: Iterable[BaseModel]) -> List[dict]:
    return [item.model_dump(mode="json") for item in items]


def _check_unique_entries(services: Iterable[SpecialService], discounts: Iterable[Discount]) -> None:
    seen_services = set()
    for service in services:
        if service.code in seen_services:
            raise DuplicateEntryError("Special service", service.code)
        seen_services.add(service.code)
    
    seen_names, seen_codes = set(), set()
    for discount in discounts:
        if discount.name in seen_names:
            raise DuplicateEntryError("Discount", discount.name)
        if discount.code is not None and discount.code in seen_codes:
            raise DuplicateEntryError("Discount", discount.code)
        seen_names.add(discount.name)
        if discount.code is not None:
            seen_codes.add(discount.code)


async def _load_for_update(db: AsyncSession, code: str, expected_version: int) -> PricingRule:
    record = await get_rule_record(db, code)
    if record.version != expected_version:
        raise ConcurrencyConflictError(
            f"Pricing rule {code} is at version {record.version}, not {expected_version}",
            details={"code": code, "expected_version": expected_version, "current_version": record.version}
        )
    return record


async def _commit(db: AsyncSession, record: PricingRule) -> None:
    code = record.code
    try:
        await db.commit()
    except StaleDataError as exc:
        await db.rollback()
        logger.warning("Stale pricing rule write rejected", extra={"code": code})
        raise ConcurrencyConflictError(
            f"Pricing rule {code} was modified concurrently",
            details={"code": code}
        ) from exc
    await db.refresh(record)


async def _audit(db: AsyncSession, action: str, record: PricingRule, actor_username: Optional[str], **metadata) -> None:
    await log_event(
        db=db,
        action=action,
        rule_code=record.code,
        rule_version=record.version,
        actor_username=actor_username,
        metadata=metadata or None
    )


def _validate_fields(payload: PricingRuleFields) -> None:
    validate_tier_set(payload.weight_tiers, "weight")
    validate_tier_set(payload.distance_tiers, "distance")
    _check_unique_entries(payload.special_services, payload.discounts)


def _apply_fields(record: PricingRule, payload: PricingRuleFields) -> None:
    record.name = payload.name
    record.description = payload.description
    record.service_type = payload.service_type
    record.origin_area = payload.origin_area.model_dump(mode="json")
    record.destination_area = payload.destination_area.model_dump(mode="json")
    record.branch = payload.branch
    record.applicable_customer_types = [customer.value for customer in payload.applicable_customer_types]
    record.pricing_type = payload.pricing_type
    record.base_price = payload.base_price
    record.minimum_price = payload.minimum_price
    record.weight_tiers = _dump(sorted(payload.weight_tiers, key=lambda tier: tier.minimum))
    record.distance_tiers = _dump(sorted(payload.distance_tiers, key=lambda tier: tier.minimum))
    record.special_services = _dump(payload.special_services)
    record.discounts = _dump(payload.discounts)
    record.tax_percentage = payload.tax_percentage
    record.insurance_percentage = payload.insurance_percentage
    record.volumetric_divisor = payload.volumetric_divisor
    record.effective_date = payload.effective_date
    record.expiry_date = payload.expiry_date
    record.priority = payload.priority
    record.is_active = payload.is_active


async def create_rule(
    db: AsyncSession,
    redis: Redis,
    payload: PricingRuleCreate,
    today: Optional[date] = None,
    actor_username: Optional[str] = None,
) -> PricingRule:
    """
    Create a pricing rule, allocating its code when none was given.
    
    Raises:
        InvalidTierBoundsError / TierOverlapError: If the submitted tiers are invalid.
        DuplicateEntryError: If the code, a service code or a discount repeats.
        ConcurrencyConflictError: If an allocated code was taken meanwhile.
    """
    _validate_fields(payload)
    
    code = payload.code or await allocate_rule_code(db, redis, today or utctoday())
    
    record = PricingRule(code=code)
    _apply_fields(record, payload)
    db.add(record)
    
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        if payload.code:
            raise DuplicateEntryError("Pricing rule", code) from exc
        raise ConcurrencyConflictError(
            f"Rule code {code} was taken concurrently",
            details={"code": code}
        ) from exc
    await db.refresh(record)
    
    await _audit(db, AuditAction.PRICING_RULE_CREATED, record, actor_username, name=record.name)
    return record


async def update_rule(
    db: AsyncSession,
    code: str,
    payload: PricingRuleUpdate,
    expected_version: int,
    actor_username: Optional[str] = None,
) -> PricingRule:
    """
    Replace every editable field of a rule. The code is kept.
    
    Raises:
        InvalidTierBoundsError / TierOverlapError: If the submitted tiers are invalid.
        DuplicateEntryError: If a service code or a discount repeats.
        ConcurrencyConflictError: If the rule changed since `expected_version`.
    """
    _validate_fields(payload)
    record = await _load_for_update(db, code, expected_version)
    _apply_fields(record, payload)
    await _commit(db, record)
    await _audit(db, AuditAction.PRICING_RULE_UPDATED, record, actor_username, name=record.name)
    return record


async def delete_rule(
    db: AsyncSession, code: str, expected_version: int, actor_username: Optional[str] = None
) -> None:
    """
    Delete a rule. Its audit trail is kept.
    
    Raises:
        ConcurrencyConflictError: If the rule changed since `expected_version`.
    """
    record = await _load_for_update(db, code, expected_version)
    await db.delete(record)
    try:
        await db.commit()
    except StaleDataError as exc:
        await db.rollback()
        raise ConcurrencyConflictError(
            f"Pricing rule {code} was modified concurrently",
            details={"code": code}
        ) from exc
    
    await log_event(
        db=db,
        action=AuditAction.PRICING_RULE_DELETED,
        rule_code=code,
        rule_version=expected_version,
        actor_username=actor_username,
    )


async def _set_active(
    db: AsyncSession, code: str, expected_version: int, active: bool, actor_username: Optional[str]
) -> PricingRule:
    record = await _load_for_update(db, code, expected_version)
    record.is_active = active
    await _commit(db, record)
    action = AuditAction.PRICING_RULE_ACTIVATED if active else AuditAction.PRICING_RULE_DEACTIVATED
    await _audit(db, action, record, actor_username)
    return record


async def activate_rule(db: AsyncSession, code: str, expected_version: int, actor_username: Optional[str] = None) -> PricingRule:
    return await _set_active(db, code, expected_version, True, actor_username)


async def deactivate_rule(db: AsyncSession, code: str, expected_version: int, actor_username: Optional[str] = None) -> PricingRule:
    return await _set_active(db, code, expected_version, False, actor_username)


# Tiers

_TIER_ACTIONS = {
    "weight": (AuditAction.WEIGHT_TIER_ADDED, AuditAction.WEIGHT_TIER_REMOVED),
    "distance": (AuditAction.DISTANCE_TIER_ADDED, AuditAction.DISTANCE_TIER_REMOVED),
}


async def _add_tier(
    db: AsyncSession, code: str, tier: Tier, expected_version: int, dimension: str, actor_username: Optional[str]
) -> PricingRule:
    record = await _load_for_update(db, code, expected_version)
    attribute = f"{dimension}_tiers"
    existing = [Tier.model_validate(raw) for raw in getattr(record, attribute)]
    
    check_no_overlap(existing, tier, dimension)
    
    setattr(record, attribute, _dump(insert_sorted(existing, tier)))
    await _commit(db, record)
    await _audit(db, _TIER_ACTIONS[dimension][0], record, actor_username, tier=tier.model_dump(mode="json"))
    return record


async def _remove_tier(
    db: AsyncSession, code: str, index: int, expected_version: int, dimension: str, actor_username: Optional[str]
) -> PricingRule:
    record = await _load_for_update(db, code, expected_version)
    attribute = f"{dimension}_tiers"
    tiers = list(getattr(record, attribute))
    if not 0 <= index < len(tiers):
        raise ResourceNotFoundError(f"{dimension.capitalize()} tier", index)
    
    removed = tiers.pop(index)
    setattr(record, attribute, tiers)
    await _commit(db, record)
    await _audit(db, _TIER_ACTIONS[dimension][1], record, actor_username, tier=removed)
    return record


async def add_weight_tier(db: AsyncSession, code: str, tier: Tier, expected_version: int, actor_username: Optional[str] = None) -> PricingRule:
    return await _add_tier(db, code, tier, expected_version, "weight", actor_username)


async def add_distance_tier(db: AsyncSession, code: str, tier: Tier, expected_version: int, actor_username: Optional[str] = None) -> PricingRule:
    return await _add_tier(db, code, tier, expected_version, "distance", actor_username)


async def remove_weight_tier(db: AsyncSession, code: str, index: int, expected_version: int, actor_username: Optional[str] = None) -> PricingRule:
    return await _remove_tier(db, code, index, expected_version, "weight", actor_username)


async def remove_distance_tier(db: AsyncSession, code: str, index: int, expected_version: int, actor_username: Optional[str] = None) -> PricingRule:
    return await _remove_tier(db, code, index, expected_version, "distance", actor_username)


# Special services

async def add_special_service(
    db: AsyncSession, code: str, service: SpecialService, expected_version: int, actor_username: Optional[str] = None
) -> PricingRule:
    record = await _load_for_update(db, code, expected_version)
    services = [SpecialService.model_validate(raw) for raw in record.special_services]
    if any(existing.code == service.code for existing in services):
        raise DuplicateEntryError("Special service", service.code)
    
    record.special_services = _dump([*services, service])
    await _commit(db, record)
    await _audit(db, AuditAction.SPECIAL_SERVICE_ADDED, record, actor_username, service_code=service.code)
    return record


async def remove_special_service(
    db: AsyncSession, code: str, service_code: str, expected_version: int, actor_username: Optional[str] = None
) -> PricingRule:
    record = await _load_for_update(db, code, expected_version)
    remaining = [raw for raw in record.special_services if raw["code"] != service_code]
    if len(remaining) == len(record.special_services):
        raise ResourceNotFoundError("Special service", service_code)
    
    record.special_services = remaining
    await _commit(db, record)
    await _audit(db, AuditAction.SPECIAL_SERVICE_REMOVED, record, actor_username, service_code=service_code)
    return record


# Discounts

async def add_discount(
    db: AsyncSession, code: str, discount: Discount, expected_version: int, actor_username: Optional[str] = None
) -> PricingRule:
    record = await _load_for_update(db, code, expected_version)
    discounts = [Discount.model_validate(raw) for raw in record.discounts]
    _check_unique_entries([], [*discounts, discount])
    
    record.discounts = _dump([*discounts, discount])
    await _commit(db, record)
    await _audit(db, AuditAction.DISCOUNT_ADDED, record, actor_username, discount_name=discount.name)
    return record


async def remove_discount(
    db: AsyncSession, code: str, discount_name: str, expected_version: int, actor_username: Optional[str] = None
) -> PricingRule:
    record = await _load_for_update(db, code, expected_version)
    remaining = [raw for raw in record.discounts if raw["name"] != discount_name]
    if len(remaining) == len(record.discounts):
        raise ResourceNotFoundError("Discount", discount_name)
    
    record.discounts = remaining
    await _commit(db, record)
    await _audit(db, AuditAction.DISCOUNT_REMOVED, record, actor_username, discount_name=discount_name)
    return record


async def redeem_discount(
    db: AsyncSession, code: str, discount_name: str, expected_version: int, actor_username: Optional[str] = None
) -> PricingRule:
    """
    Count one use of a discount after a priced shipment is confirmed.
    
    Raises:
        ResourceNotFoundError: If the rule has no discount with this name.
        PricingValidationError: If the usage limit is already reached.
        ConcurrencyConflictError: If the rule changed since `expected_version`.
    """
    record = await _load_for_update(db, code, expected_version)
    discounts = [Discount.model_validate(raw) for raw in record.discounts]
    
    for position, discount in enumerate(discounts):
        if discount.name == discount_name:
            break
    else:
        raise ResourceNotFoundError("Discount", discount_name)
    
    if discount.usage_limit is not None and discount.usage_count >= discount.usage_limit:
        raise PricingValidationError(
            "Discount usage limit reached",
            details={"code": code, "discount": discount_name, "usage_limit": discount.usage_limit}
        )
    
    discounts[position] = discount.model_copy(update={"usage_count": discount.usage_count + 1})
    record.discounts = _dump(discounts)
    await _commit(db, record)
    await _audit(
        db, AuditAction.DISCOUNT_REDEEMED, record, actor_username,
        discount_name=discount_name, usage_count=discount.usage_count + 1
    )
    return record
