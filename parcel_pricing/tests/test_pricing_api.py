"""
Pricing API Tests.

Exercises the HTTP surface end to end against the in-memory database.
"""

from decimal import Decimal

import pytest

from parcel_pricing.app.core.clock import utctoday

RULE_PAYLOAD = {
    "name": "Surabaya - Jakarta Regular",
    "service_type": "regular",
    "origin_area": {"province": "Jawa Timur", "city": "Surabaya"},
    "destination_area": {"province": "DKI Jakarta", "city": "Jakarta Selatan"},
    "pricing_type": "weight",
    "base_price": "15000",
    "weight_tiers": [
        {"minimum": "0", "maximum": "1", "price_per_unit": "10000"},
        {"minimum": "1", "maximum": "3", "price_per_unit": "9000"},
    ],
}

QUOTE_PAYLOAD = {
    "service_type": "regular",
    "origin_area": {"province": "Jawa Timur", "city": "Surabaya"},
    "destination_area": {"province": "DKI Jakarta", "city": "Jakarta Selatan"},
    "weight": "2",
}


def today_prefix() -> str:
    return f"PR-{utctoday():%Y%m%d}"


async def create_rule(client, **overrides):
    response = await client.post("/v1/pricing/rules", json={**RULE_PAYLOAD, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["redis"] is True
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
async def test_create_rule_allocates_code(client):
    first = await create_rule(client)
    second = await create_rule(client, name="Surabaya - Jakarta Regular B")
    
    assert first["code"] == f"{today_prefix()}-001"
    assert second["code"] == f"{today_prefix()}-002"
    assert first["version"] == 1
    assert Decimal(first["tax_percentage"]) == Decimal("11")


@pytest.mark.asyncio
async def test_calculate_price(client):
    rule = await create_rule(client)
    
    response = await client.post("/v1/pricing/calculate", json=QUOTE_PAYLOAD)
    
    assert response.status_code == 200, response.text
    body = response.json()
    assert Decimal(body["base_rate"]) == Decimal("18000")
    assert Decimal(body["subtotal"]) == Decimal("18000")
    assert Decimal(body["tax"]) == Decimal("1980")
    assert Decimal(body["total"]) == Decimal("19980")
    assert body["applied_rule"]["code"] == rule["code"]
    assert body["applied_discount"] is None


@pytest.mark.asyncio
async def test_calculate_without_rule_is_404(client):
    response = await client.post("/v1/pricing/calculate", json=QUOTE_PAYLOAD)
    
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_PRICING_NOT_APPLICABLE"


@pytest.mark.asyncio
async def test_calculate_rejects_zero_weight(client):
    await create_rule(client)
    
    response = await client.post("/v1/pricing/calculate", json={**QUOTE_PAYLOAD, "weight": "0"})
    
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_inactive_rule_is_not_applied(client):
    rule = await create_rule(client)
    
    response = await client.post(
        f"/v1/pricing/rules/{rule['code']}/deactivate",
        params={"expected_version": 1},
        headers={"X-Actor": "ops"},
    )
    assert response.status_code == 200
    assert response.json()["is_active"] is False
    
    response = await client.post("/v1/pricing/calculate", json=QUOTE_PAYLOAD)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_add_tier_overlap_and_stale_version(client):
    rule = await create_rule(client)
    url = f"/v1/pricing/rules/{rule['code']}/weight-tiers"
    
    overlap = await client.post(
        url, params={"expected_version": 1},
        json={"minimum": "2", "maximum": "5", "price_per_unit": "8000"},
    )
    assert overlap.status_code == 400
    assert overlap.json()["error_code"] == "ERR_PRICING_VALIDATION"
    
    added = await client.post(
        url, params={"expected_version": 1},
        json={"minimum": "3", "price_per_unit": "8000"},
    )
    assert added.status_code == 200
    assert added.json()["version"] == 2
    assert len(added.json()["weight_tiers"]) == 3
    
    stale = await client.delete(
        f"/v1/pricing/rules/{rule['code']}/weight-tiers/0", params={"expected_version": 1},
    )
    assert stale.status_code == 409
    assert stale.json()["error_code"] == "ERR_CONCURRENCY_CONFLICT"


@pytest.mark.asyncio
async def test_get_unknown_rule_is_404(client):
    response = await client.get("/v1/pricing/rules/PR-20260101-999")
    
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_list_rules_filters_active(client):
    first = await create_rule(client)
    await create_rule(client, name="Inactive lane", is_active=False)
    
    response = await client.get("/v1/pricing/rules", params={"is_active": True})
    
    assert response.status_code == 200
    assert [rule["code"] for rule in response.json()] == [first["code"]]


@pytest.mark.asyncio
async def test_next_rule_code_preview(client):
    response = await client.get("/v1/pricing/rule-codes/next")
    assert response.json()["code"] == f"{today_prefix()}-001"
    
    await create_rule(client)
    
    response = await client.get("/v1/pricing/rule-codes/next")
    assert response.json()["code"] == f"{today_prefix()}-002"


@pytest.mark.asyncio
async def test_discount_redemption_over_http(client):
    rule = await create_rule(client)
    base = f"/v1/pricing/rules/{rule['code']}"
    
    added = await client.post(
        f"{base}/discounts", params={"expected_version": 1},
        json={"name": "Launch", "discount_type": "percentage", "value": "10", "usage_limit": 1,
              "start_date": "2026-01-01T00:00:00Z"},
    )
    assert added.status_code == 200, added.text
    
    quote = await client.post("/v1/pricing/calculate", json=QUOTE_PAYLOAD)
    assert Decimal(quote.json()["discount"]) == Decimal("1800")
    assert quote.json()["applied_discount"]["name"] == "Launch"
    
    redeemed = await client.post(f"{base}/discounts/Launch/redeem", params={"expected_version": 2})
    assert redeemed.status_code == 200
    
    quote = await client.post("/v1/pricing/calculate", json=QUOTE_PAYLOAD)
    assert Decimal(quote.json()["discount"]) == Decimal("0")
    
    exhausted = await client.post(f"{base}/discounts/Launch/redeem", params={"expected_version": 3})
    assert exhausted.status_code == 400


@pytest.mark.asyncio
async def test_audit_trail_lists_changes(client):
    rule = await create_rule(client)
    await client.post(
        f"/v1/pricing/rules/{rule['code']}/deactivate",
        params={"expected_version": 1},
        headers={"X-Actor": "ops"},
    )
    
    response = await client.get(f"/v1/pricing/rules/{rule['code']}/audit")
    
    assert response.status_code == 200
    trail = response.json()
    assert [entry["action"] for entry in trail] == ["PRICING_RULE_DEACTIVATED", "PRICING_RULE_CREATED"]
    assert trail[0]["actor_username"] == "ops"
    assert trail[0]["rule_version"] == 2
    
    missing = await client.get("/v1/pricing/rules/PR-20260101-999/audit")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_update_and_delete_rule(client):
    rule = await create_rule(client)
    url = f"/v1/pricing/rules/{rule['code']}"
    
    updated = await client.put(
        url, params={"expected_version": 1},
        json={**RULE_PAYLOAD, "base_price": "20000", "effective_date": "2026-01-01T00:00:00Z"},
    )
    assert updated.status_code == 200, updated.text
    assert updated.json()["code"] == rule["code"]
    assert updated.json()["version"] == 2
    assert Decimal(updated.json()["base_price"]) == Decimal("20000")
    
    stale = await client.put(
        url, params={"expected_version": 1},
        json={**RULE_PAYLOAD, "effective_date": "2026-01-01T00:00:00Z"},
    )
    assert stale.status_code == 409
    assert stale.json()["error_code"] == "ERR_CONCURRENCY_CONFLICT"
    
    stale_delete = await client.delete(url, params={"expected_version": 1})
    assert stale_delete.status_code == 409
    
    deleted = await client.delete(url, params={"expected_version": 2})
    assert deleted.status_code == 204
    
    assert (await client.get(url)).status_code == 404


@pytest.mark.asyncio
async def test_overlong_rule_code_is_rejected(client):
    response = await client.post("/v1/pricing/rules", json={**RULE_PAYLOAD, "code": "PRICING-20261018-0000001"})
    
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"
