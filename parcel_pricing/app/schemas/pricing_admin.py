"""
Pricing rule administration schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator, model_validator

from parcel_pricing.app.core.clock import ensure_utc, utcnow
from parcel_pricing.app.core.config import settings
from parcel_pricing.app.models.pricing_enums import ServiceType, PricingType, CustomerType
from parcel_pricing.app.schemas.pricing import (
    Area, Tier, SpecialService, Discount, PricingRuleSnapshot,
)


class PricingRuleFields(BaseModel):
    """Editable fields of a pricing rule, shared by create and update."""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    service_type: ServiceType = ServiceType.REGULAR
    origin_area: Area
    destination_area: Area
    pricing_type: PricingType = PricingType.WEIGHT
    base_price: Decimal = Field(Decimal("0"), ge=0)
    minimum_price: Decimal = Field(Decimal("0"), ge=0)
    weight_tiers: List[Tier] = []
    distance_tiers: List[Tier] = []
    special_services: List[SpecialService] = []
    discounts: List[Discount] = []
    tax_percentage: Decimal = Field(default_factory=lambda: settings.default_tax_percentage, ge=0)
    insurance_percentage: Decimal = Field(default_factory=lambda: settings.default_insurance_percentage, ge=0)
    volumetric_divisor: int = Field(default_factory=lambda: settings.default_volumetric_divisor, ge=1)
    effective_date: datetime = Field(default_factory=utcnow)
    expiry_date: Optional[datetime] = None
    priority: int = 0
    is_active: bool = True
    branch: Optional[str] = Field(None, max_length=64)
    applicable_customer_types: List[CustomerType] = list(CustomerType)
    
    @field_validator("effective_date", "expiry_date")
    @classmethod
    def _as_utc(cls, value):
        return ensure_utc(value) if value is not None else value
    
    @model_validator(mode="after")
    def _expiry_after_effective(self):
        if self.expiry_date is not None and self.expiry_date < self.effective_date:
            raise ValueError("expiry_date must not precede effective_date")
        return self


class PricingRuleCreate(PricingRuleFields):
    """Schema for creating a pricing rule. The code is allocated when omitted."""
    code: Optional[str] = Field(None, max_length=20, pattern=r"^[A-Z]{1,4}-\d{8}-\d{3,6}$")


class PricingRuleUpdate(PricingRuleFields):
    """
    Full replacement of a rule's fields. The code and version are kept;
    usage counts travel with the submitted discounts.
    """
    effective_date: datetime


class PricingRuleResponse(PricingRuleSnapshot):
    """Schema for displaying a pricing rule."""
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RuleCodeResponse(BaseModel):
    code: str


class AuditEntryResponse(BaseModel):
    """One change in a rule's history."""
    action: str
    rule_code: Optional[str] = None
    rule_version: Optional[int] = None
    actor_username: Optional[str] = None
    meta_data: Optional[dict] = None
    timestamp: datetime
    
    class Config:
        from_attributes = True
