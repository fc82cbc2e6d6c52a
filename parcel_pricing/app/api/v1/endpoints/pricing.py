"""
Pricing API Endpoints.

Price calculation and rule code preview.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_pricing.app.core.clock import utcnow, utctoday
from parcel_pricing.app.db.session import get_db
from parcel_pricing.app.domain.pricing.price_assembler import PriceAssembler
from parcel_pricing.app.domain.pricing.rule_codes import next_code
from parcel_pricing.app.schemas.pricing import PriceBreakdown, PriceCalculationRequest
from parcel_pricing.app.schemas.pricing_admin import RuleCodeResponse
from parcel_pricing.app.services.rule_repository import latest_code_for_day, load_candidate_rules

router = APIRouter(prefix="/pricing", tags=["Pricing"])


@router.post("/calculate", response_model=PriceBreakdown)
async def calculate_price(
    request: PriceCalculationRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Price a shipment with the highest-priority applicable rule.
    
    Returns 404 when no rule applies.
    """
    candidates = await load_candidate_rules(db, request)
    return PriceAssembler.quote(candidates, request, utcnow())


@router.get("/rule-codes/next", response_model=RuleCodeResponse)
async def preview_next_rule_code(db: AsyncSession = Depends(get_db)):
    """
    Preview the code the next rule created today would receive.
    
    Nothing is reserved; creation allocates its own code.
    """
    today = utctoday()
    latest = await latest_code_for_day(db, today)
    return RuleCodeResponse(code=next_code(today, latest))
