from fastapi import APIRouter, Depends

from fxguard.models.orders import ImpactRequest, ImpactResult
from fxguard.services.impact import ImpactCalculationService
from fxguard.services.registry import get_impact_service

router = APIRouter(tags=["impact"])


@router.post(
    "/calculate-impact",
    response_model=ImpactResult,
    summary="Margin impact of rate drift since the order date",
)
async def calculate_impact(
    payload: ImpactRequest,
    svc: ImpactCalculationService = Depends(get_impact_service),
):
    return svc.calculate_impact(payload)
