"""
Special service surcharges.
"""

from decimal import Decimal
from typing import Iterable

from parcel_pricing.app.schemas.pricing import PricingRuleSnapshot


def compute_surcharges(
    rule: PricingRuleSnapshot,
    selected_service_codes: Iterable[str],
    base_rate: Decimal,
) -> Decimal:
    """
    Sum the selected special services that apply to the rule's service type.
    
    Percentage services are charged on `base_rate`. Codes the rule does not
    offer, or does not offer for its service type, contribute nothing.
    """
    selected = set(selected_service_codes)
    total = Decimal("0")
    if not selected:
        return total
    
    for service in rule.special_services:
        if service.code not in selected:
            continue
        if rule.service_type not in service.applicable_service_types:
            continue
        if service.is_percentage:
            total += base_rate * service.price / 100
        else:
            total += service.price
    
    return total
