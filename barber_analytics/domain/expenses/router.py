"""Expense router - FastAPI endpoints for expenses and recurring expenses"""

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
    ExpenseCreate,
    ExpenseEnvelope,
    ExpensePageEnvelope,
    ExpensePayment,
    ExpenseSummaryEnvelope,
    ExpenseUpdate,
    RecurringExpenseCreate,
    RecurringExpenseEnvelope,
    RecurringExpenseListEnvelope,
    RecurringGenerate,
)
from .service import ExpenseService, RecurringExpenseService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/expenses", tags=["Expenses"], dependencies=[Depends(api_rate_limiter("expenses"))])
recurring_router = APIRouter(
    prefix="/recurring-expenses",
    tags=["Expenses"],
    dependencies=[Depends(api_rate_limiter("recurring_expenses"))],
)


def get_expense_service(db: Session = Depends(get_db)) -> ExpenseService:
    """Dependency injection for ExpenseService"""
    return ExpenseService(db)


def get_recurring_service(db: Session = Depends(get_db)) -> RecurringExpenseService:
    """Dependency injection for RecurringExpenseService"""
    return RecurringExpenseService(db)


# ============================================================================
# EXPENSES
# ============================================================================


@router.get("", response_model=ExpensePageEnvelope)
async def list_expenses(
    unit_id: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    expense_status: Optional[str] = Query(None, alias="status"),
    expense_type: Optional[str] = Query(None, alias="type"),
    account_id: Optional[str] = Query(None),
    category_id: Optional[str] = Query(None),
    party_id: Optional[str] = Query(None),
    recurring_expense_id: Optional[str] = Query(None),
    page: int = Query(1),
    page_size: int = Query(20),
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    filters = {
        "unit_id": unit_id,
        "start_date": start_date,
        "end_date": end_date,
        "status": expense_status,
        "type": expense_type,
        "account_id": account_id,
        "category_id": category_id,
        "party_id": party_id,
        "recurring_expense_id": recurring_expense_id,
        "page": page,
        "page_size": page_size,
    }
    result = unwrap(service.list_expenses(filters, current_user))
    return {"data": result.items, "pagination": result.pagination()}


@router.get("/summary", response_model=ExpenseSummaryEnvelope)
async def get_period_summary(
    unit_id: str = Query(...),
    start_date: str = Query(...),
    end_date: str = Query(...),
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    """Totals by status and type for a date range"""
    return {"data": unwrap(service.get_period_summary(unit_id, start_date, end_date, current_user))}


@router.post("", response_model=ExpenseEnvelope, status_code=status.HTTP_201_CREATED)
async def create_expense(
    data: ExpenseCreate,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    return {"data": unwrap(service.create_expense(data.model_dump(exclude_unset=True), current_user))}


@router.get("/{expense_id}", response_model=ExpenseEnvelope)
async def get_expense(
    expense_id: str,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    return {"data": unwrap(service.get_expense(expense_id, current_user))}


@router.patch("/{expense_id}", response_model=ExpenseEnvelope)
async def update_expense(
    expense_id: str,
    data: ExpenseUpdate,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    return {"data": unwrap(service.update_expense(expense_id, data.model_dump(exclude_unset=True), current_user))}


@router.post("/{expense_id}/pay", response_model=ExpenseEnvelope)
async def mark_as_paid(
    expense_id: str,
    data: Optional[ExpensePayment] = None,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    payment_date = data.payment_date if data else None
    return {"data": unwrap(service.mark_as_paid(expense_id, current_user, payment_date))}


@router.delete("/{expense_id}")
async def delete_expense(
    expense_id: str,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    return {"data": unwrap(service.delete_expense(expense_id, current_user))}


# ============================================================================
# RECURRING EXPENSES
# ============================================================================


@recurring_router.get("", response_model=RecurringExpenseListEnvelope)
async def list_recurring(
    unit_id: str = Query(...),
    recurring_status: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    service: RecurringExpenseService = Depends(get_recurring_service),
):
    return {"data": unwrap(service.list_recurring(unit_id, current_user, recurring_status))}


@recurring_router.post("", response_model=RecurringExpenseEnvelope, status_code=status.HTTP_201_CREATED)
async def create_recurring(
    data: RecurringExpenseCreate,
    current_user: User = Depends(get_current_user),
    service: RecurringExpenseService = Depends(get_recurring_service),
):
    """Create a series and its first installment"""
    return {"data": unwrap(service.create_recurring(data.model_dump(exclude_unset=True), current_user))}


@recurring_router.post("/generate")
async def generate_due_installments(
    data: Optional[RecurringGenerate] = None,
    current_user: User = Depends(get_current_user),
    service: RecurringExpenseService = Depends(get_recurring_service),
):
    """Generate the installments due up to a date (today by default)"""
    unit_id = data.unit_id if data else None
    up_to = data.up_to if data else None
    return {"data": unwrap(service.generate_due_installments(current_user, unit_id=unit_id, up_to=up_to))}


@recurring_router.get("/{recurring_id}", response_model=RecurringExpenseEnvelope)
async def get_recurring(
    recurring_id: str,
    current_user: User = Depends(get_current_user),
    service: RecurringExpenseService = Depends(get_recurring_service),
):
    return {"data": unwrap(service.get_recurring(recurring_id, current_user))}


@recurring_router.post("/{recurring_id}/pause", response_model=RecurringExpenseEnvelope)
async def pause_recurring(
    recurring_id: str,
    current_user: User = Depends(get_current_user),
    service: RecurringExpenseService = Depends(get_recurring_service),
):
    return {"data": unwrap(service.pause_recurring(recurring_id, current_user))}


@recurring_router.post("/{recurring_id}/resume", response_model=RecurringExpenseEnvelope)
async def resume_recurring(
    recurring_id: str,
    current_user: User = Depends(get_current_user),
    service: RecurringExpenseService = Depends(get_recurring_service),
):
    return {"data": unwrap(service.resume_recurring(recurring_id, current_user))}


@recurring_router.post("/{recurring_id}/cancel")
async def cancel_recurring_series(
    recurring_id: str,
    current_user: User = Depends(get_current_user),
    service: RecurringExpenseService = Depends(get_recurring_service),
):
    """Finish the series and drop its future pending installments"""
    return {"data": unwrap(service.cancel_recurring_series(recurring_id, current_user))}
