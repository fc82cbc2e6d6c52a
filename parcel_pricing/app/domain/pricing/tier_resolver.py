"""
Tiered rate lookup, shared by weight and distance tiers.
"""

from decimal import Decimal
from typing import Optional, Sequence

from parcel_pricing.app.schemas.pricing import Tier


def resolve_tier(tiers: Sequence[Tier], quantity: Decimal) -> Optional[Tier]:
    """
    Pick the tier that prices `quantity`.
    
    Tiers are scanned in order and the first one with
    `minimum <= quantity <= maximum` (maximum absent = unbounded) wins.
    When no tier contains the quantity, the last tier is used as an
    open-ended extrapolation. Returns None only for an empty tier list;
    the caller then falls back to the rule's base price.
    """
    if not tiers:
        return None
    
    for tier in tiers:
        if quantity >= tier.minimum and (tier.maximum is None or quantity <= tier.maximum):
            return tier
    
    return tiers[-1]


def tier_price(tier: Tier, quantity: Decimal) -> Decimal:
    return tier.flat_price + quantity * tier.price_per_unit
