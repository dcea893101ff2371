"""Reconciliation router - FastAPI endpoints for matching statement lines to expenses"""

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
    AutoReconcileEnvelope,
    ConfirmMatch,
    MatchSuggestionsEnvelope,
    ReconciliationEnvelope,
    ReconciliationPageEnvelope,
    ReconciliationStatisticsEnvelope,
)
from .service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/reconciliation", tags=["Reconciliation"], dependencies=[Depends(api_rate_limiter("reconciliation"))]
)


def get_reconciliation_service(db: Session = Depends(get_db)) -> ReconciliationService:
    """Dependency injection for ReconciliationService"""
    return ReconciliationService(db)


@router.get("/suggestions", response_model=MatchSuggestionsEnvelope)
async def suggest_matches(
    unit_id: str = Query(...),
    bank_account_id: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Candidate expenses for each pending debit, best first"""
    filters = {"bank_account_id": bank_account_id, "start_date": start_date, "end_date": end_date}
    return {"data": unwrap(service.suggest_matches(unit_id, current_user, filters))}


@router.post("/confirm", response_model=ReconciliationEnvelope, status_code=status.HTTP_201_CREATED)
async def confirm_match(
    data: ConfirmMatch,
    current_user: User = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    return {"data": unwrap(service.confirm_match(data.model_dump(exclude_unset=True), current_user))}


@router.post("/auto", response_model=AutoReconcileEnvelope)
async def auto_reconcile(
    unit_id: str = Query(...),
    bank_account_id: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Link every high-confidence match in one call"""
    filters = {"bank_account_id": bank_account_id, "start_date": start_date, "end_date": end_date}
    return {"data": unwrap(service.auto_reconcile(unit_id, current_user, filters))}


@router.get("/statistics", response_model=ReconciliationStatisticsEnvelope)
async def reconciliation_statistics(
    unit_id: str = Query(...),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    filters = {"start_date": start_date, "end_date": end_date}
    return {"data": unwrap(service.get_statistics(unit_id, current_user, filters))}


@router.get("", response_model=ReconciliationPageEnvelope)
async def list_reconciliations(
    unit_id: str = Query(...),
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1),
    page_size: int = Query(20),
    current_user: User = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    filters = {"status": status_filter, "page": page, "page_size": page_size}
    result = unwrap(service.list_reconciliations(unit_id, filters, current_user))
    return {"data": result.items, "pagination": result.pagination()}


@router.delete("/{reconciliation_id}")
async def undo_reconciliation(
    reconciliation_id: str,
    current_user: User = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Unlink; the statement goes back to pending"""
    return {"data": unwrap(service.undo_reconciliation(reconciliation_id, current_user))}
