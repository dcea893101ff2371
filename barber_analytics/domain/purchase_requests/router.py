"""Purchase request router - FastAPI endpoints for purchase requests, approvals and quotes"""

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
    PurchaseRequestCreate,
    PurchaseRequestEnvelope,
    PurchaseRequestListEnvelope,
    PurchaseRequestPageEnvelope,
    PurchaseRequestUpdate,
    QuoteComparisonEnvelope,
    QuoteCreate,
    QuoteEnvelope,
    QuoteListEnvelope,
    QuoteSelection,
    RejectPayload,
)
from .service import PurchaseRequestService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/purchase-requests",
    tags=["Purchase Requests"],
    dependencies=[Depends(api_rate_limiter("purchase_requests"))],
)


def get_purchase_request_service(db: Session = Depends(get_db)) -> PurchaseRequestService:
    """Dependency injection for PurchaseRequestService"""
    return PurchaseRequestService(db)


# ============================================================================
# REQUESTS
# ============================================================================


@router.get("", response_model=PurchaseRequestPageEnvelope)
async def list_purchase_requests(
    unit_id: str = Query(...),
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = Query(None),
    requested_by: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1),
    page_size: int = Query(20),
    current_user: User = Depends(get_current_user),
    service: PurchaseRequestService = Depends(get_purchase_request_service),
):
    filters = {
        "status": status_filter,
        "priority": priority,
        "requested_by": requested_by,
        "start_date": start_date,
        "end_date": end_date,
        "search": search,
        "page": page,
        "page_size": page_size,
    }
    result = unwrap(service.list_requests(unit_id, filters, current_user))
    return {"data": result.items, "pagination": result.pagination()}


@router.post("", response_model=PurchaseRequestEnvelope, status_code=status.HTTP_201_CREATED)
async def create_purchase_request(
    data: PurchaseRequestCreate,
    current_user: User = Depends(get_current_user),
    service: PurchaseRequestService = Depends(get_purchase_request_service),
):
    """New DRAFT request; the current user is the requester"""
    return {"data": unwrap(service.create_request(data.model_dump(exclude_unset=True), current_user))}


@router.get("/pending", response_model=PurchaseRequestListEnvelope)
async def list_pending_approvals(
    unit_id: str = Query(...),
    current_user: User = Depends(get_current_user),
    service: PurchaseRequestService = Depends(get_purchase_request_service),
):
    """Requests waiting for approval, most urgent first"""
    return {"data": unwrap(service.get_pending_approvals(unit_id, current_user))}


@router.get("/{request_id}", response_model=PurchaseRequestEnvelope)
async def get_purchase_request(
    request_id: str,
    current_user: User = Depends(get_current_user),
    service: PurchaseRequestService = Depends(get_purchase_request_service),
):
    return {"data": unwrap(service.get_request(request_id, current_user))}


@router.patch("/{request_id}", response_model=PurchaseRequestEnvelope)
async def update_purchase_request(
    request_id: str,
    data: PurchaseRequestUpdate,
    current_user: User = Depends(get_current_user),
    service: PurchaseRequestService = Depends(get_purchase_request_service),
):
    return {
        "data": unwrap(service.update_request(request_id, data.model_dump(exclude_unset=True), current_user))
    }


@router.delete("/{request_id}")
async def delete_purchase_request(
    request_id: str,
    current_user: User = Depends(get_current_user),
    service: PurchaseRequestService = Depends(get_purchase_request_service),
):
    return {"data": unwrap(service.delete_request(request_id, current_user))}


@router.post("/{request_id}/submit", response_model=PurchaseRequestEnvelope)
async def submit_purchase_request(
    request_id: str,
    current_user: User = Depends(get_current_user),
    service: PurchaseRequestService = Depends(get_purchase_request_service),
):
    return {"data": unwrap(service.submit_for_approval(request_id, current_user))}


@router.post("/{request_id}/approve", response_model=PurchaseRequestEnvelope)
async def approve_purchase_request(
    request_id: str,
    current_user: User = Depends(get_current_user),
    service: PurchaseRequestService = Depends(get_purchase_request_service),
):
    return {"data": unwrap(service.approve_request(request_id, current_user))}


@router.post("/{request_id}/reject", response_model=PurchaseRequestEnvelope)
async def reject_purchase_request(
    request_id: str,
    data: RejectPayload,
    current_user: User = Depends(get_current_user),
    service: PurchaseRequestService = Depends(get_purchase_request_service),
):
    return {"data": unwrap(service.reject_request(request_id, data.reason, current_user))}


# ============================================================================
# QUOTES
# ============================================================================


@router.post("/{request_id}/quotes", response_model=QuoteEnvelope, status_code=status.HTTP_201_CREATED)
async def record_purchase_quote(
    request_id: str,
    data: QuoteCreate,
    current_user: User = Depends(get_current_user),
    service: PurchaseRequestService = Depends(get_purchase_request_service),
):
    return {"data": unwrap(service.record_quote(request_id, data.model_dump(exclude_unset=True), current_user))}


@router.get("/{request_id}/quotes", response_model=QuoteListEnvelope)
async def list_purchase_quotes(
    request_id: str,
    current_user: User = Depends(get_current_user),
    service: PurchaseRequestService = Depends(get_purchase_request_service),
):
    return {"data": unwrap(service.get_quotes(request_id, current_user))}


@router.get("/{request_id}/quotes/compare", response_model=QuoteComparisonEnvelope)
async def compare_purchase_quotes(
    request_id: str,
    current_user: User = Depends(get_current_user),
    service: PurchaseRequestService = Depends(get_purchase_request_service),
):
    """Quotes cheapest first with the difference to the lowest price"""
    return {"data": unwrap(service.compare_quotes(request_id, current_user))}


@router.post("/quotes/{quote_id}/select", response_model=QuoteEnvelope)
async def select_purchase_quote(
    quote_id: str,
    data: QuoteSelection,
    current_user: User = Depends(get_current_user),
    service: PurchaseRequestService = Depends(get_purchase_request_service),
):
    return {"data": unwrap(service.select_quote(quote_id, data.reason, current_user))}
