"""
Base rate calculation.

Dispatches on the rule's pricing strategy and enforces the price floor.
"""

from decimal import Decimal
from typing import Sequence, assert_never

from parcel_pricing.app.domain.pricing.tier_resolver import resolve_tier, tier_price
from parcel_pricing.app.models.pricing_enums import PricingType
from parcel_pricing.app.schemas.pricing import PricingRuleSnapshot, Tier


def _banded_price(tiers: Sequence[Tier], quantity: Decimal, base_price: Decimal) -> Decimal:
    tier = resolve_tier(tiers, quantity)
    if tier is None:
        return base_price
    return tier_price(tier, quantity)


def compute_base_rate(
    rule: PricingRuleSnapshot,
    weight: Decimal,
    distance: Decimal,
    volumetric_weight: Decimal = Decimal("0"),
) -> Decimal:
    """
    Compute the base rate for `rule`.
    
    Weight tiers are looked up with the chargeable weight (the greater of
    actual and volumetric weight). Combined pricing is the weight price
    plus the distance price, each computed on its own. The result is never
    below `rule.minimum_price`.
    """
    chargeable_weight = max(weight, volumetric_weight)
    
    match rule.pricing_type:
        case PricingType.FLAT:
            amount = rule.base_price
        case PricingType.WEIGHT:
            amount = _banded_price(rule.weight_tiers, chargeable_weight, rule.base_price)
        case PricingType.DISTANCE:
            amount = _banded_price(rule.distance_tiers, distance, rule.base_price)
        case PricingType.COMBINED:
            amount = (
                _banded_price(rule.weight_tiers, chargeable_weight, rule.base_price)
                + _banded_price(rule.distance_tiers, distance, rule.base_price)
            )
        case _:
            assert_never(rule.pricing_type)
    
    return max(amount, rule.minimum_price)
