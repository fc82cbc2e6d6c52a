"""
Tier edit validation.

Runs when an administrator adds tiers to a rule, never during pricing.
Tiers are half-open bands [minimum, maximum), so a tier may start exactly
where the previous one ends.
"""

from decimal import Decimal
from typing import Optional, Sequence

from parcel_pricing.app.core.exceptions import InvalidTierBoundsError, TierOverlapError
from parcel_pricing.app.schemas.pricing import Tier

_UNBOUNDED = Decimal("Infinity")


def _upper(tier: Tier) -> Decimal:
    return tier.maximum if tier.maximum is not None else _UNBOUNDED


def validate_tier_bounds(tier: Tier, dimension: str = "weight") -> None:
    """
    Raises:
        InvalidTierBoundsError: If the tier's minimum is not below its maximum.
    """
    if tier.maximum is not None and tier.minimum >= tier.maximum:
        raise InvalidTierBoundsError(dimension, tier.minimum, tier.maximum)


def tiers_overlap(first: Tier, second: Tier) -> bool:
    """
    True if the bands share any quantity.
    
    Covers a bound of one band falling inside the other as well as one band
    enclosing the other; a missing maximum extends to infinity.
    """
    return first.minimum < _upper(second) and second.minimum < _upper(first)


def find_overlap(existing_tiers: Sequence[Tier], candidate: Tier) -> Optional[int]:
    for index, tier in enumerate(existing_tiers):
        if tiers_overlap(tier, candidate):
            return index
    return None


def check_no_overlap(existing_tiers: Sequence[Tier], candidate: Tier, dimension: str = "weight") -> None:
    """
    Guard a tier addition.
    
    Raises:
        InvalidTierBoundsError: If the candidate's bounds are malformed.
        TierOverlapError: If the candidate overlaps an existing tier.
    """
    validate_tier_bounds(candidate, dimension)
    index = find_overlap(existing_tiers, candidate)
    if index is not None:
        raise TierOverlapError(dimension, index)


def validate_tier_set(tiers: Sequence[Tier], dimension: str = "weight") -> None:
    """Check a whole tier list, as submitted with a new rule."""
    for position, tier in enumerate(tiers):
        check_no_overlap(tiers[:position], tier, dimension)


def insert_sorted(tiers: Sequence[Tier], candidate: Tier) -> list[Tier]:
    """Return a new list with `candidate` placed by ascending minimum."""
    return sorted([*tiers, candidate], key=lambda tier: tier.minimum)
