"""
Discount eligibility and selection.

Exactly one discount applies per calculation. Fixed discounts are
preferred over percentage discounts; within a type the higher value wins;
remaining ties keep the order the discounts are listed on the rule.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from parcel_pricing.app.core.clock import ensure_utc
from parcel_pricing.app.models.pricing_enums import CustomerType, DiscountType
from parcel_pricing.app.schemas.pricing import Discount, PricingRuleSnapshot

_TYPE_RANK = {
    DiscountType.FIXED: 0,
    DiscountType.PERCENTAGE: 1,
    DiscountType.FREE_SERVICE: 2,
}


def is_eligible(
    discount: Discount,
    rule: PricingRuleSnapshot,
    discount_code: Optional[str],
    customer_type: CustomerType,
    subtotal: Decimal,
    now: datetime,
) -> bool:
    if not discount.is_active:
        return False
    if discount.start_date > now:
        return False
    if discount.end_date is not None and discount.end_date < now:
        return False
    if discount.usage_limit is not None and discount.usage_count >= discount.usage_limit:
        return False
    if subtotal < discount.min_order_value:
        return False
    if customer_type not in discount.applicable_customer_types:
        return False
    if rule.service_type not in discount.applicable_service_types:
        return False
    # Code-less discounts apply whatever code the customer typed.
    if discount_code and discount.code and discount.code != discount_code:
        return False
    return True


def select_best_discount(
    rule: PricingRuleSnapshot,
    discount_code: Optional[str],
    customer_type: CustomerType,
    subtotal: Decimal,
    now: datetime,
) -> Optional[Discount]:
    now = ensure_utc(now)
    eligible = [
        discount for discount in rule.discounts
        if is_eligible(discount, rule, discount_code, customer_type, subtotal, now)
    ]
    if not eligible:
        return None
    # sorted() is stable, so equal keys keep rule order.
    return sorted(eligible, key=lambda d: (_TYPE_RANK[d.discount_type], -d.value))[0]


def discount_amount(discount: Discount, subtotal: Decimal) -> Decimal:
    """Monetary value of `discount` against `subtotal`."""
    if discount.discount_type == DiscountType.PERCENTAGE:
        amount = subtotal * discount.value / 100
        if discount.max_discount_amount is not None:
            amount = min(amount, discount.max_discount_amount)
        return amount
    if discount.discount_type == DiscountType.FIXED:
        return min(discount.value, subtotal)
    # free_service is honoured outside the engine
    return Decimal("0")


def resolve_best_discount(
    rule: PricingRuleSnapshot,
    discount_code: Optional[str],
    customer_type: CustomerType,
    subtotal: Decimal,
    now: datetime,
) -> Decimal:
    """Amount of the best eligible discount, 0 when none applies."""
    if subtotal <= 0:
        return Decimal("0")
    best = select_best_discount(rule, discount_code, customer_type, subtotal, now)
    if best is None:
        return Decimal("0")
    return discount_amount(best, subtotal)
