from __future__ import annotations

from typing import Optional

from pydantic import Field

from .rates import CamelModel


class OrderImpactRecord(CamelModel):
    order_id: str
    store_id: str
    order_date: str = Field(..., description="Normalized ISO-8601 UTC instant")
    order_amount: float = Field(..., gt=0)
    order_rate: float
    current_rate: float
    margin_loss: float
    percentage_change: float
    timestamp: int
    ttl: int


class ImpactRequest(CamelModel):
    """Body of POST /calculate-impact.

    Every field is optional at the schema level so that missing values reach the
    impact service, which reports them as one 400 instead of a field-by-field 422.
    """

    order_amount: Optional[float] = None
    order_date: Optional[str] = None
    from_currency: Optional[str] = None
    to_currency: Optional[str] = None
    order_id: Optional[str] = None
    store_id: Optional[str] = None


class ImpactResult(CamelModel):
    order_rate: float
    current_rate: float
    expected_inr_amount: float
    current_inr_amount: float
    margin_loss: float
    percentage_change: float
    suggestion: str
