"""Expense schemas - Pydantic models for request and response bodies"""

import datetime as dt
from typing import Optional, Union

from pydantic import BaseModel

from ...shared.schemas import Pagination

Number = Union[float, str]


class ExpenseCreate(BaseModel):
    unit_id: Optional[str] = None
    value: Optional[Number] = None
    date: Optional[str] = None
    status: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    party_id: Optional[str] = None
    user_id: Optional[str] = None
    expected_payment_date: Optional[str] = None
    actual_payment_date: Optional[str] = None
    observations: Optional[str] = None


class ExpenseUpdate(BaseModel):
    value: Optional[Number] = None
    date: Optional[str] = None
    status: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    party_id: Optional[str] = None
    expected_payment_date: Optional[str] = None
    actual_payment_date: Optional[str] = None
    observations: Optional[str] = None


class ExpensePayment(BaseModel):
    payment_date: Optional[str] = None  # YYYY-MM-DD, today when omitted


class ExpenseResponse(BaseModel):
    id: str
    unit_id: str
    value: float
    value_formatted: str
    date: dt.date
    date_formatted: str
    status: str
    status_label: str
    description: str
    type: Optional[str] = None
    type_label: Optional[str] = None
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    party_id: Optional[str] = None
    user_id: Optional[str] = None
    expected_payment_date: Optional[dt.date] = None
    actual_payment_date: Optional[dt.date] = None
    observations: Optional[str] = None
    recurring_expense_id: Optional[str] = None
    installment_number: Optional[int] = None
    is_active: bool
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None


class ExpenseEnvelope(BaseModel):
    data: ExpenseResponse


class ExpensePageEnvelope(BaseModel):
    data: list[ExpenseResponse]
    pagination: Pagination


class BucketTotal(BaseModel):
    count: int
    total: float


class ExpenseSummary(BaseModel):
    count: int
    total: float
    by_status: dict[str, BucketTotal]
    by_type: dict[str, BucketTotal]


class ExpenseSummaryEnvelope(BaseModel):
    data: ExpenseSummary


class RecurringExpenseCreate(BaseModel):
    expense: Optional[ExpenseCreate] = None
    configuracao: Optional[str] = None
    cobrar_sempre_no: Optional[Number] = None
    duracao_personalizada: Optional[Number] = None
    unit_id: Optional[str] = None
    data_inicio: Optional[str] = None


class RecurringGenerate(BaseModel):
    unit_id: Optional[str] = None
    up_to: Optional[str] = None


class RecurringExpenseResponse(BaseModel):
    id: str
    unit_id: str
    expense_id: Optional[str] = None
    description: str
    monthly_value: float
    monthly_value_formatted: str
    configuracao: str
    config_label: str
    cobrar_sempre_no: int
    duracao_personalizada: Optional[int] = None
    total_parcelas: int
    parcelas_geradas: int
    parcelas_restantes: int
    completion_percent: float
    total_value: float
    total_value_formatted: str
    generated_value: float
    status: str
    status_label: str
    data_inicio: dt.date
    data_fim: Optional[dt.date] = None
    next_due_date: Optional[dt.date] = None
    created_at: Optional[dt.datetime] = None


class RecurringExpenseEnvelope(BaseModel):
    data: RecurringExpenseResponse


class RecurringExpenseListEnvelope(BaseModel):
    data: list[RecurringExpenseResponse]
