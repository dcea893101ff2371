"""Bank statement schemas - Pydantic models for request and response bodies"""

import datetime as dt
from typing import Any, Optional

from pydantic import BaseModel

from ...shared.schemas import Pagination


class StatementImport(BaseModel):
    """Rows are validated one by one so a bad line does not reject the batch"""

    unit_id: Optional[str] = None
    bank_account_id: Optional[str] = None
    statements: list[dict[str, Any]] = []


class StatementUpdate(BaseModel):
    description: Optional[str] = None
    observations: Optional[str] = None
    status: Optional[str] = None


class ImportSummary(BaseModel):
    imported: int
    duplicates: int
    invalid: int
    errors: list[str]


class ImportSummaryEnvelope(BaseModel):
    data: ImportSummary


class ParsedFileSummary(BaseModel):
    bank: Optional[str] = None
    bank_name: Optional[str] = None
    format: str
    confidence: float
    total_transactions: int
    credits_count: int
    debits_count: int
    total_credits: float
    total_debits: float
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class FileImportSummary(ImportSummary):
    file: ParsedFileSummary


class FileImportSummaryEnvelope(BaseModel):
    data: FileImportSummary


class BankStatementResponse(BaseModel):
    id: str
    unit_id: str
    bank_account_id: str
    transaction_date: dt.date
    transaction_date_formatted: str
    description: str
    amount: float
    signed_amount: float
    amount_formatted: str
    type: str
    type_label: str
    status: str
    status_label: str
    reconciled: bool
    reconciled_at: Optional[dt.datetime] = None
    reconciled_by: Optional[str] = None
    fitid: Optional[str] = None
    observations: Optional[str] = None
    balance_after: Optional[float] = None
    created_at: Optional[dt.datetime] = None


class BankStatementEnvelope(BaseModel):
    data: BankStatementResponse


class BankStatementPageEnvelope(BaseModel):
    data: list[BankStatementResponse]
    pagination: Pagination


class TypeTotal(BaseModel):
    count: int
    total: float


class StatementSummary(BaseModel):
    count: int
    total_credits: float
    total_debits: float
    balance: float
    by_type: dict[str, TypeTotal]
    by_reconciliation: dict[str, int]


class StatementSummaryEnvelope(BaseModel):
    data: StatementSummary
