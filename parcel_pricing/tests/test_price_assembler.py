"""
Price assembly tests: full breakdowns and rule selection.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from parcel_pricing.app.core.exceptions import NotApplicableError, PricingValidationError
from parcel_pricing.app.domain.pricing.price_assembler import PriceAssembler, calculate_price, quote
from parcel_pricing.app.schemas.pricing import Discount, SpecialService, Tier

from conftest import NOW

START = datetime(2026, 1, 1, tzinfo=timezone.utc)


# Scenario D
def test_insurance_discount_and_tax_assembly(make_rule, make_request):
    rule = make_rule(
        pricing_type="flat",
        base_price=Decimal("28000"),
        special_services=(SpecialService(code="PACK", name="Packing", price=Decimal("5000")),),
        discounts=(Discount(name="Ten percent", value=Decimal("10"), start_date=START),),
        tax_percentage=Decimal("10"),
    )
    breakdown = calculate_price(rule, make_request(selected_service_codes=("PACK",)), NOW)
    
    assert breakdown.base_rate == Decimal("28000")
    assert breakdown.additional_services == Decimal("5000")
    assert breakdown.insurance == Decimal("0")
    assert breakdown.subtotal == Decimal("33000")
    assert breakdown.discount == Decimal("3300")
    assert breakdown.tax == Decimal("2970")
    assert breakdown.total == Decimal("32670")
    assert breakdown.applied_discount.name == "Ten percent"


def test_breakdown_weights_and_rule_trace(make_rule, make_request):
    rule = make_rule()
    breakdown = calculate_price(rule, make_request(weight=Decimal("1.5"), volumetric_weight=Decimal("2.5")), NOW)
    
    assert breakdown.actual_weight == Decimal("1.5")
    assert breakdown.volumetric_weight == Decimal("2.5")
    assert breakdown.chargeable_weight == Decimal("2.5")
    assert breakdown.base_rate == Decimal("22500")
    assert breakdown.applied_rule.code == rule.code
    assert breakdown.applied_rule.name == rule.name
    assert breakdown.applied_rule.service_type == "regular"
    assert breakdown.applied_discount is None


def test_insurance_on_declared_value(make_rule, make_request):
    rule = make_rule(insurance_percentage=Decimal("0.2"), tax_percentage=Decimal("11"))
    breakdown = calculate_price(rule, make_request(declared_value=Decimal("1000000")), NOW)
    
    assert breakdown.insurance == Decimal("2000")
    assert breakdown.subtotal == Decimal("20000")
    assert breakdown.tax == Decimal("2200")
    assert breakdown.total == Decimal("22200")


def test_percentage_service_uses_floored_base_rate(make_rule, make_request):
    rule = make_rule(
        minimum_price=Decimal("20000"),
        special_services=(SpecialService(code="FRAGILE", name="Fragile", price=Decimal("10"), is_percentage=True),),
    )
    breakdown = calculate_price(rule, make_request(weight=Decimal("0.5"), selected_service_codes=("FRAGILE",)), NOW)
    assert breakdown.base_rate == Decimal("20000")
    assert breakdown.additional_services == Decimal("2000")


def test_calculation_is_idempotent(make_rule, make_request):
    rule = make_rule(
        discounts=(Discount(name="Fix", discount_type="fixed", value=Decimal("1234.5"), start_date=START),),
        tax_percentage=Decimal("11"),
    )
    request = make_request(weight=Decimal("2.75"), declared_value=Decimal("350000"))
    first = calculate_price(rule, request, NOW)
    second = calculate_price(rule, request, NOW)
    assert first == second
    assert first.model_dump_json() == second.model_dump_json()


def test_missing_rule_is_not_applicable(make_request):
    with pytest.raises(NotApplicableError):
        calculate_price(None, make_request(), NOW)


def test_distance_rule_requires_distance(make_rule, make_request):
    rule = make_rule(pricing_type="distance", distance_tiers=(Tier(minimum=Decimal("0"), price_per_unit=Decimal("10")),))
    with pytest.raises(PricingValidationError):
        calculate_price(rule, make_request(), NOW)
    assert calculate_price(rule, make_request(distance=Decimal("30")), NOW).base_rate == Decimal("300")


@pytest.mark.parametrize("field, value", [
    ("weight", Decimal("0")),
    ("weight", Decimal("-1")),
    ("distance", Decimal("-5")),
    ("volumetric_weight", Decimal("-0.1")),
    ("declared_value", Decimal("-100")),
])
def test_request_rejects_invalid_numbers(make_request, field, value):
    with pytest.raises(ValidationError):
        make_request(**{field: value})


# Scenario E
def test_quote_without_matching_rule_raises(make_rule, make_request):
    rules = [make_rule(service_type="express"), make_rule(is_active=False)]
    with pytest.raises(NotApplicableError) as exc_info:
        quote(rules, make_request(), NOW)
    assert exc_info.value.status_code == 404
    assert exc_info.value.details["service_type"] == "regular"


def test_quote_uses_highest_priority_rule(make_rule, make_request):
    rules = [
        make_rule(code="PR-20260101-001", pricing_type="flat", base_price=Decimal("10000"), priority=1),
        make_rule(code="PR-20260101-002", pricing_type="flat", base_price=Decimal("30000"), priority=7),
    ]
    breakdown = PriceAssembler.quote(rules, make_request(), NOW)
    assert breakdown.applied_rule.code == "PR-20260101-002"
    assert breakdown.base_rate == Decimal("30000")
