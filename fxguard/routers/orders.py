from datetime import date
from itertools import islice
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from fxguard.db.order_store import OrderImpactStore
from fxguard.models.orders import OrderImpactRecord
from fxguard.services.registry import get_order_store

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get(
    "",
    response_model=List[OrderImpactRecord],
    summary="Recorded order impacts for a store, newest order first",
)
async def list_orders(
    store_id: str = Query(..., alias="storeId", min_length=1),
    start: Optional[date] = Query(None, description="Earliest order date (inclusive)"),
    end: Optional[date] = Query(None, description="Latest order date (inclusive)"),
    limit: int = Query(50, gt=0, le=500),
    store: OrderImpactStore = Depends(get_order_store),
):
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="end cannot be before start")
    return list(islice(store.list_by_store(store_id, start, end, page_size=limit), limit))
