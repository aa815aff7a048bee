from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from fxguard.models.constants import DEFAULT_BASE_CURRENCY, DEFAULT_QUOTE_CURRENCY
from fxguard.models.rates import CurrentRate
from fxguard.services.rates.query import RateQueryService
from fxguard.services.registry import get_rate_query_service

"""Rates router.

Endpoints:
    - GET /rates/current?from=USD&to=INR -> latest stored rate plus drift
      against today's daily reference rate
"""

router = APIRouter(prefix="/rates", tags=["rates"])


@router.get(
    "/current",
    response_model=CurrentRate,
    summary="Latest stored rate and day-over-day change",
)
async def get_current_rate(
    from_ccy: str = Query(DEFAULT_BASE_CURRENCY, alias="from"),
    to_ccy: str = Query(DEFAULT_QUOTE_CURRENCY, alias="to"),
    svc: RateQueryService = Depends(get_rate_query_service),
):
    return svc.get_current_rate(from_ccy, to_ccy)
