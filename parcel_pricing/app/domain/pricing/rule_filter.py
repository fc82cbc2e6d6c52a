"""
Rule candidate filtering and selection.

Decides whether a rule applies to a shipment and orders the matches.
Equal priorities are broken by rule code, ascending, so the outcome
never depends on the order the store returned the candidates in.
"""

import logging
from datetime import datetime
from typing import Iterable, List

from parcel_pricing.app.core.clock import ensure_utc
from parcel_pricing.app.schemas.pricing import Area, PricingRuleSnapshot, SelectionCriteria

logger = logging.getLogger("parcel_pricing")


def area_matches(rule_area: Area, requested: Area) -> bool:
    """Province and city must be equal; district only when the rule names one."""
    if rule_area.province != requested.province or rule_area.city != requested.city:
        return False
    if rule_area.district is not None and rule_area.district != requested.district:
        return False
    return True


def matches(rule: PricingRuleSnapshot, criteria: SelectionCriteria, now: datetime) -> bool:
    now = ensure_utc(now)
    
    if not rule.is_active:
        return False
    if rule.service_type != criteria.service_type:
        return False
    if rule.effective_date > now:
        return False
    if rule.expiry_date is not None and rule.expiry_date < now:
        return False
    if criteria.customer_type not in rule.applicable_customer_types:
        return False
    if not area_matches(rule.origin_area, criteria.origin_area):
        return False
    if not area_matches(rule.destination_area, criteria.destination_area):
        return False
    if rule.branch is not None and rule.branch != criteria.branch:
        return False
    return True


def select_applicable_rules(
    rules: Iterable[PricingRuleSnapshot],
    criteria: SelectionCriteria,
    now: datetime,
) -> List[PricingRuleSnapshot]:
    """Matching rules, highest priority first, then by code."""
    selected = sorted(
        (rule for rule in rules if matches(rule, criteria, now)),
        key=lambda rule: (-rule.priority, rule.code),
    )
    logger.debug(
        "Selected applicable pricing rules",
        extra={
            "service_type": criteria.service_type.value,
            "rule_codes": [rule.code for rule in selected],
        }
    )
    return selected
