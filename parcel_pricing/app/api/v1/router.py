"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from parcel_pricing.app.api.v1.endpoints import pricing, pricing_rules

router = APIRouter()

# Price calculation
router.include_router(pricing.router)

# Rule administration
router.include_router(pricing_rules.router)
