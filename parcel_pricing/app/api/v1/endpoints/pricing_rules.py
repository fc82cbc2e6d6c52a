"""
Pricing Rule Administration API Endpoints.

Mutations take the rule version the client last read as
`expected_version`; a stale version is answered with 409.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Path, Query, status
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_pricing.app.core.redis_client import get_redis
from parcel_pricing.app.db.session import get_db
from parcel_pricing.app.models.pricing_enums import ServiceType
from parcel_pricing.app.schemas.pricing import Discount, SpecialService, Tier
from parcel_pricing.app.schemas.pricing_admin import (
    AuditEntryResponse, PricingRuleCreate, PricingRuleResponse, PricingRuleUpdate,
)
from parcel_pricing.app.services import rule_admin
from parcel_pricing.app.services.audit import get_audit_trail
from parcel_pricing.app.services.rule_repository import get_rule_record, list_rules

router = APIRouter(prefix="/pricing/rules", tags=["Pricing Rules"])


@router.post("", response_model=PricingRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_pricing_rule(
    rule: PricingRuleCreate,
    actor: Optional[str] = Header(None, alias="X-Actor"),
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis)
):
    """
    Create a new pricing rule.
    """
    return await rule_admin.create_rule(db, redis, rule, actor_username=actor)


@router.get("", response_model=List[PricingRuleResponse])
async def list_pricing_rules(
    service_type: Optional[ServiceType] = Query(None),
    is_active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """
    List pricing rules ordered by code.
    """
    return await list_rules(db, service_type=service_type, is_active=is_active)


@router.get("/{code}", response_model=PricingRuleResponse)
async def get_pricing_rule(
    code: str = Path(..., description="Pricing rule code"),
    db: AsyncSession = Depends(get_db)
):
    return await get_rule_record(db, code)


@router.put("/{code}", response_model=PricingRuleResponse)
async def update_pricing_rule(
    rule: PricingRuleUpdate,
    code: str = Path(..., description="Pricing rule code"),
    expected_version: int = Query(..., ge=1),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    db: AsyncSession = Depends(get_db)
):
    """
    Replace a rule's fields. The code is kept and the version bumped.
    """
    return await rule_admin.update_rule(db, code, rule, expected_version, actor)


@router.delete("/{code}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_pricing_rule(
    code: str = Path(..., description="Pricing rule code"),
    expected_version: int = Query(..., ge=1),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    db: AsyncSession = Depends(get_db)
):
    await rule_admin.delete_rule(db, code, expected_version, actor)


@router.get("/{code}/audit", response_model=List[AuditEntryResponse])
async def get_pricing_rule_audit(
    code: str = Path(..., description="Pricing rule code"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db)
):
    """
    Change history of a rule, most recent first.
    """
    await get_rule_record(db, code)
    return await get_audit_trail(db, rule_code=code, limit=limit)


@router.post("/{code}/activate", response_model=PricingRuleResponse)
async def activate_pricing_rule(
    code: str = Path(..., description="Pricing rule code"),
    expected_version: int = Query(..., ge=1),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    db: AsyncSession = Depends(get_db)
):
    return await rule_admin.activate_rule(db, code, expected_version, actor)


@router.post("/{code}/deactivate", response_model=PricingRuleResponse)
async def deactivate_pricing_rule(
    code: str = Path(..., description="Pricing rule code"),
    expected_version: int = Query(..., ge=1),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    db: AsyncSession = Depends(get_db)
):
    return await rule_admin.deactivate_rule(db, code, expected_version, actor)


@router.post("/{code}/weight-tiers", response_model=PricingRuleResponse)
async def add_weight_tier(
    tier: Tier,
    code: str = Path(..., description="Pricing rule code"),
    expected_version: int = Query(..., ge=1),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    db: AsyncSession = Depends(get_db)
):
    """
    Add a weight tier. Overlapping or inverted tiers are rejected with 400.
    """
    return await rule_admin.add_weight_tier(db, code, tier, expected_version, actor)


@router.delete("/{code}/weight-tiers/{index}", response_model=PricingRuleResponse)
async def remove_weight_tier(
    code: str = Path(..., description="Pricing rule code"),
    index: int = Path(..., ge=0, description="Position of the tier, lowest band first"),
    expected_version: int = Query(..., ge=1),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    db: AsyncSession = Depends(get_db)
):
    return await rule_admin.remove_weight_tier(db, code, index, expected_version, actor)


@router.post("/{code}/distance-tiers", response_model=PricingRuleResponse)
async def add_distance_tier(
    tier: Tier,
    code: str = Path(..., description="Pricing rule code"),
    expected_version: int = Query(..., ge=1),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    db: AsyncSession = Depends(get_db)
):
    return await rule_admin.add_distance_tier(db, code, tier, expected_version, actor)


@router.delete("/{code}/distance-tiers/{index}", response_model=PricingRuleResponse)
async def remove_distance_tier(
    code: str = Path(..., description="Pricing rule code"),
    index: int = Path(..., ge=0, description="Position of the tier, lowest band first"),
    expected_version: int = Query(..., ge=1),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    db: AsyncSession = Depends(get_db)
):
    return await rule_admin.remove_distance_tier(db, code, index, expected_version, actor)


@router.post("/{code}/special-services", response_model=PricingRuleResponse)
async def add_special_service(
    service: SpecialService,
    code: str = Path(..., description="Pricing rule code"),
    expected_version: int = Query(..., ge=1),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    db: AsyncSession = Depends(get_db)
):
    return await rule_admin.add_special_service(db, code, service, expected_version, actor)


@router.delete("/{code}/special-services/{service_code}", response_model=PricingRuleResponse)
async def remove_special_service(
    code: str = Path(..., description="Pricing rule code"),
    service_code: str = Path(...),
    expected_version: int = Query(..., ge=1),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    db: AsyncSession = Depends(get_db)
):
    return await rule_admin.remove_special_service(db, code, service_code, expected_version, actor)


@router.post("/{code}/discounts", response_model=PricingRuleResponse)
async def add_discount(
    discount: Discount,
    code: str = Path(..., description="Pricing rule code"),
    expected_version: int = Query(..., ge=1),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    db: AsyncSession = Depends(get_db)
):
    return await rule_admin.add_discount(db, code, discount, expected_version, actor)


@router.delete("/{code}/discounts/{name}", response_model=PricingRuleResponse)
async def remove_discount(
    code: str = Path(..., description="Pricing rule code"),
    name: str = Path(..., description="Discount name"),
    expected_version: int = Query(..., ge=1),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    db: AsyncSession = Depends(get_db)
):
    return await rule_admin.remove_discount(db, code, name, expected_version, actor)


@router.post("/{code}/discounts/{name}/redeem", response_model=PricingRuleResponse)
async def redeem_discount(
    code: str = Path(..., description="Pricing rule code"),
    name: str = Path(..., description="Discount name"),
    expected_version: int = Query(..., ge=1),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    db: AsyncSession = Depends(get_db)
):
    """
    Record one use of a discount for a confirmed shipment.
    """
    return await rule_admin.redeem_discount(db, code, name, expected_version, actor)
