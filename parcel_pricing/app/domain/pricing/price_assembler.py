"""
Price Assembler.

Combines base rate, surcharges, insurance, discount and tax into the
itemized price of a shipment.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from parcel_pricing.app.core.clock import ensure_utc
from parcel_pricing.app.core.exceptions import NotApplicableError, PricingValidationError
from parcel_pricing.app.domain.pricing.discounts import discount_amount, select_best_discount
from parcel_pricing.app.domain.pricing.rate_calculator import compute_base_rate
from parcel_pricing.app.domain.pricing.rule_filter import select_applicable_rules
from parcel_pricing.app.domain.pricing.surcharges import compute_surcharges
from parcel_pricing.app.models.pricing_enums import PricingType
from parcel_pricing.app.schemas.pricing import (
    AppliedDiscount, AppliedRule, PriceBreakdown, PriceCalculationRequest, PricingRuleSnapshot,
)

logger = logging.getLogger("parcel_pricing")

_DISTANCE_PRICED = (PricingType.DISTANCE, PricingType.COMBINED)


class PriceAssembler:
    
    @staticmethod
    def calculate_price(
        rule: Optional[PricingRuleSnapshot],
        request: PriceCalculationRequest,
        now: datetime,
    ) -> PriceBreakdown:
        """
        Calculate the itemized price of a shipment under `rule`.
        
        Flow:
        1. Chargeable weight = max(actual, volumetric)
        2. Base rate (strategy + price floor)
        3. Special service surcharges on the base rate
        4. Insurance on the declared value
        5. Subtotal
        6. Best eligible discount on the subtotal
        7-9. Tax on (subtotal - discount), total
        
        Raises:
            NotApplicableError: If no rule was found upstream.
            PricingValidationError: If a distance-priced rule gets no distance.
        """
        if rule is None:
            raise NotApplicableError()
        
        if rule.pricing_type in _DISTANCE_PRICED and request.distance <= 0:
            raise PricingValidationError(
                "Distance must be positive for distance-priced rules",
                details={"rule_code": rule.code, "distance": str(request.distance)}
            )
        
        now = ensure_utc(now)
        
        chargeable_weight = max(request.weight, request.volumetric_weight)
        base_rate = compute_base_rate(rule, chargeable_weight, request.distance)
        additional_services = compute_surcharges(rule, request.selected_service_codes, base_rate)
        
        insurance = Decimal("0")
        if request.declared_value > 0:
            insurance = request.declared_value * rule.insurance_percentage / 100
        
        subtotal = base_rate + additional_services + insurance
        
        discount = Decimal("0")
        applied_discount = None
        if subtotal > 0:
            best = select_best_discount(
                rule, request.discount_code, request.customer_type, subtotal, now
            )
            if best is not None:
                discount = discount_amount(best, subtotal)
                applied_discount = AppliedDiscount(
                    name=best.name, code=best.code, discount_type=best.discount_type
                )
        
        taxable_amount = subtotal - discount
        tax = taxable_amount * rule.tax_percentage / 100
        total = taxable_amount + tax
        
        logger.debug(
            "Calculated shipment price",
            extra={"rule_code": rule.code, "total": str(total)}
        )
        
        return PriceBreakdown(
            base_rate=base_rate,
            additional_services=additional_services,
            insurance=insurance,
            subtotal=subtotal,
            discount=discount,
            tax=tax,
            total=total,
            chargeable_weight=chargeable_weight,
            actual_weight=request.weight,
            volumetric_weight=request.volumetric_weight,
            applied_rule=AppliedRule(
                code=rule.code, name=rule.name, service_type=rule.service_type
            ),
            applied_discount=applied_discount,
        )
    
    @staticmethod
    def quote(
        rules: Iterable[PricingRuleSnapshot],
        request: PriceCalculationRequest,
        now: datetime,
    ) -> PriceBreakdown:
        """
        Price a shipment against a candidate rule set.
        
        The highest-priority matching rule is used.
        
        Raises:
            NotApplicableError: If no candidate matches the shipment.
        """
        applicable = select_applicable_rules(rules, request, now)
        if not applicable:
            raise NotApplicableError(
                details={
                    "service_type": request.service_type.value,
                    "origin": request.origin_area.model_dump(),
                    "destination": request.destination_area.model_dump(),
                    "customer_type": request.customer_type.value,
                }
            )
        return PriceAssembler.calculate_price(applicable[0], request, now)


calculate_price = PriceAssembler.calculate_price
quote = PriceAssembler.quote
