"""Stock movement router - FastAPI endpoints for inventory movements"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import api_rate_limiter
from ...shared.http import unwrap
from .schemas import (
    StockAdjustmentCreate,
    StockEntryCreate,
    StockMovementEnvelope,
    StockMovementListEnvelope,
    StockMovementPageEnvelope,
    StockNotesUpdate,
    StockSummaryEnvelope,
)
from .service import StockMovementService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/stock-movements", tags=["Stock"], dependencies=[Depends(api_rate_limiter("stock_movements"))]
)


def get_stock_service(db: Session = Depends(get_db)) -> StockMovementService:
    """Dependency injection for StockMovementService"""
    return StockMovementService(db)


# ============================================================================
# HISTORY
# ============================================================================


@router.get("", response_model=StockMovementPageEnvelope)
async def get_stock_history(
    unit_id: Optional[str] = Query(None),
    product_id: Optional[str] = Query(None),
    movement_type: Optional[str] = Query(None),
    reason: Optional[str] = Query(None),
    performed_by: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    page: int = Query(1),
    page_size: int = Query(20),
    current_user: User = Depends(get_current_user),
    service: StockMovementService = Depends(get_stock_service),
):
    """Paginated movement history of a unit, newest first"""
    filters = {
        "unit_id": unit_id,
        "product_id": product_id,
        "movement_type": movement_type,
        "reason": reason,
        "performed_by": performed_by,
        "start_date": start_date,
        "end_date": end_date,
        "page": page,
        "page_size": page_size,
    }
    result = unwrap(service.get_stock_history(filters, current_user))
    return {"data": result.items, "pagination": result.pagination()}


@router.get("/summary", response_model=StockSummaryEnvelope)
async def get_stock_summary(
    unit_id: str = Query(...),
    start_date: str = Query(...),
    end_date: str = Query(...),
    current_user: User = Depends(get_current_user),
    service: StockMovementService = Depends(get_stock_service),
):
    return {"data": unwrap(service.get_summary_by_period(unit_id, start_date, end_date, current_user))}


@router.get("/product/{product_id}", response_model=StockMovementListEnvelope)
async def get_product_history(
    product_id: str,
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: StockMovementService = Depends(get_stock_service),
):
    return {"data": unwrap(service.get_product_history(product_id, current_user, start_date, end_date))}


# ============================================================================
# MOVEMENTS
# ============================================================================


@router.post("/entries", response_model=StockMovementEnvelope, status_code=status.HTTP_201_CREATED)
async def record_entry(
    data: StockEntryCreate,
    current_user: User = Depends(get_current_user),
    service: StockMovementService = Depends(get_stock_service),
):
    """Register an ENTRADA"""
    return {"data": unwrap(service.record_entry(data.model_dump(exclude_unset=True), current_user))}


@router.post("/exits", response_model=StockMovementEnvelope, status_code=status.HTTP_201_CREATED)
async def record_exit(
    data: StockEntryCreate,
    current_user: User = Depends(get_current_user),
    service: StockMovementService = Depends(get_stock_service),
):
    """Register a SAIDA"""
    return {"data": unwrap(service.record_exit(data.model_dump(exclude_unset=True), current_user))}


@router.post("/adjustments", response_model=StockMovementEnvelope, status_code=status.HTTP_201_CREATED)
async def adjust_stock(
    data: StockAdjustmentCreate,
    current_user: User = Depends(get_current_user),
    service: StockMovementService = Depends(get_stock_service),
):
    """Inventory correction; the sign of quantity picks the direction"""
    return {"data": unwrap(service.adjust_stock(data.model_dump(exclude_unset=True), current_user))}


@router.patch("/{movement_id}", response_model=StockMovementEnvelope)
async def update_movement_notes(
    movement_id: str,
    data: StockNotesUpdate,
    current_user: User = Depends(get_current_user),
    service: StockMovementService = Depends(get_stock_service),
):
    return {"data": unwrap(service.update_notes(movement_id, data.notes, current_user))}


@router.post("/{movement_id}/revert")
async def revert_movement(
    movement_id: str,
    current_user: User = Depends(get_current_user),
    service: StockMovementService = Depends(get_stock_service),
):
    """Undo a movement and its stock effect"""
    return {"data": unwrap(service.revert_movement(movement_id, current_user))}


@router.delete("/{movement_id}")
async def delete_movement(
    movement_id: str,
    current_user: User = Depends(get_current_user),
    service: StockMovementService = Depends(get_stock_service),
):
    return {"data": unwrap(service.delete_movement(movement_id, current_user))}
