"""
Pricing Schemas.

Value types consumed and produced by the pricing engine. Every model is
frozen: a rule handed to the engine is an immutable snapshot for the
duration of one calculation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from parcel_pricing.app.core.clock import ensure_utc
from parcel_pricing.app.core.config import settings
from parcel_pricing.app.models.pricing_enums import (
    ServiceType, PricingType, DiscountType, CustomerType
)


class Area(BaseModel):
    """Administrative area, matched by equality."""
    province: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    district: Optional[str] = None
    
    class Config:
        frozen = True


class Tier(BaseModel):
    """
    A weight or distance band.
    
    Within the band, price = flat_price + quantity * price_per_unit.
    A missing maximum means the band is unbounded.
    """
    minimum: Decimal = Field(..., ge=0)
    maximum: Optional[Decimal] = Field(None, ge=0)
    price_per_unit: Decimal = Field(..., ge=0)
    flat_price: Decimal = Field(Decimal("0"), ge=0)
    
    class Config:
        frozen = True


class SpecialService(BaseModel):
    """Optional add-on; `price` is a percent of the base rate when `is_percentage`."""
    code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    is_percentage: bool = False
    applicable_service_types: Tuple[ServiceType, ...] = tuple(ServiceType)
    
    class Config:
        frozen = True


class Discount(BaseModel):
    """Conditional reduction. A code supplied with a request excludes discounts carrying a different code."""
    code: Optional[str] = None
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    discount_type: DiscountType = DiscountType.PERCENTAGE
    value: Decimal = Field(..., ge=0)
    max_discount_amount: Optional[Decimal] = Field(None, ge=0)
    min_order_value: Decimal = Field(Decimal("0"), ge=0)
    applicable_service_types: Tuple[ServiceType, ...] = tuple(ServiceType)
    applicable_customer_types: Tuple[CustomerType, ...] = tuple(CustomerType)
    start_date: datetime
    end_date: Optional[datetime] = None
    usage_limit: Optional[int] = Field(None, ge=0)
    usage_count: int = Field(0, ge=0)
    is_active: bool = True
    
    @field_validator("start_date", "end_date")
    @classmethod
    def _as_utc(cls, value):
        return ensure_utc(value) if value is not None else value
    
    class Config:
        frozen = True


class PricingRuleSnapshot(BaseModel):
    """
    Immutable view of a pricing rule.
    
    Built from the ORM record with `model_validate(record)`.
    """
    code: str
    name: str
    description: Optional[str] = None
    service_type: ServiceType = ServiceType.REGULAR
    origin_area: Area
    destination_area: Area
    pricing_type: PricingType = PricingType.WEIGHT
    base_price: Decimal = Field(Decimal("0"), ge=0)
    minimum_price: Decimal = Field(Decimal("0"), ge=0)
    weight_tiers: Tuple[Tier, ...] = ()
    distance_tiers: Tuple[Tier, ...] = ()
    special_services: Tuple[SpecialService, ...] = ()
    discounts: Tuple[Discount, ...] = ()
    tax_percentage: Decimal = Field(default_factory=lambda: settings.default_tax_percentage, ge=0)
    insurance_percentage: Decimal = Field(default_factory=lambda: settings.default_insurance_percentage, ge=0)
    volumetric_divisor: int = Field(default_factory=lambda: settings.default_volumetric_divisor, ge=1)
    effective_date: datetime
    expiry_date: Optional[datetime] = None
    priority: int = 0
    is_active: bool = True
    branch: Optional[str] = None
    applicable_customer_types: Tuple[CustomerType, ...] = tuple(CustomerType)
    version: int = 1
    
    @field_validator("effective_date", "expiry_date")
    @classmethod
    def _as_utc(cls, value):
        return ensure_utc(value) if value is not None else value
    
    class Config:
        frozen = True
        from_attributes = True


class SelectionCriteria(BaseModel):
    """Shipment attributes used to find the applicable rule."""
    service_type: ServiceType
    origin_area: Area
    destination_area: Area
    customer_type: CustomerType = CustomerType.REGULAR
    branch: Optional[str] = None
    
    class Config:
        frozen = True


class PriceCalculationRequest(SelectionCriteria):
    """
    Engine input.
    
    Numeric edge cases are rejected here, before any calculation.
    """
    weight: Decimal = Field(..., gt=0)
    distance: Decimal = Field(Decimal("0"), ge=0)
    volumetric_weight: Decimal = Field(Decimal("0"), ge=0)
    selected_service_codes: Tuple[str, ...] = ()
    discount_code: Optional[str] = None
    declared_value: Decimal = Field(Decimal("0"), ge=0)


class AppliedRule(BaseModel):
    code: str
    name: str
    service_type: ServiceType
    
    class Config:
        frozen = True


class AppliedDiscount(BaseModel):
    name: str
    code: Optional[str] = None
    discount_type: DiscountType
    
    class Config:
        frozen = True


class PriceBreakdown(BaseModel):
    """Engine output: the fully itemized price."""
    base_rate: Decimal
    additional_services: Decimal
    insurance: Decimal
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    chargeable_weight: Decimal
    actual_weight: Decimal
    volumetric_weight: Decimal
    applied_rule: AppliedRule
    applied_discount: Optional[AppliedDiscount] = None
    
    class Config:
        frozen = True
