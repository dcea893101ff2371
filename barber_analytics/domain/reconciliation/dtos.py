"""Reconciliation DTOs - payload checks and response shaping for statement/expense links"""

from datetime import date
from typing import Optional

from ...shared.dto import BaseDTO, PaginationDTO, ValidationResult
from ...shared.formatters import format_currency, format_date
from ...shared.sanitization import clean_text
from ...shared.validators import is_valid_date, is_valid_uuid, to_number

RECONCILIATION_STATUSES = ("Reconciled", "Divergent")
STATUS_LABELS = {"Reconciled": "Conciliado", "Divergent": "Divergente"}

# Differences up to one cent count as a clean match
DIVERGENCE_TOLERANCE = 0.01
NOTES_MAX_LENGTH = 1000


def reconciliation_status(difference: float) -> str:
    return "Divergent" if abs(difference) > DIVERGENCE_TOLERANCE else "Reconciled"


def entry_date(expense) -> Optional[date]:
    """The day money actually left the account, as far as the expense knows it"""
    return expense.actual_payment_date or expense.expected_payment_date or expense.date


def statement_to_match(statement) -> dict:
    return {
        "id": statement.id,
        "description": statement.description,
        "amount": float(statement.amount or 0),
        "type": statement.type,
        "date": statement.transaction_date,
    }


def expense_to_match(expense) -> dict:
    return {
        "id": expense.id,
        "kind": "Expense",
        "description": expense.description,
        "value": float(expense.value or 0),
        "date": entry_date(expense),
        "party_id": expense.party_id,
    }


class ConfirmMatchDTO(BaseDTO):
    """Link one statement line to one expense; adjustment covers known fees or discounts"""

    ALLOWED_FIELDS = ("statement_id", "expense_id", "adjustment", "notes")

    def prepare(self, data: dict) -> None:
        self.raw_adjustment = data.get("adjustment")
        self.values["statement_id"] = data.get("statement_id") or None
        self.values["expense_id"] = data.get("expense_id") or None
        self.values["adjustment"] = to_number(self.raw_adjustment, 0.0)
        self.values["notes"] = clean_text(data.get("notes"))

    def collect_errors(self) -> list[str]:
        errors = []
        if not is_valid_uuid(self.values["statement_id"]):
            errors.append("statement_id inválido ou ausente")
        if not is_valid_uuid(self.values["expense_id"]):
            errors.append("expense_id inválido ou ausente")
        if self.raw_adjustment not in (None, "") and to_number(self.raw_adjustment) is None:
            errors.append(f"Ajuste inválido: {self.raw_adjustment}")
        notes = self.values["notes"]
        if notes and len(notes) > NOTES_MAX_LENGTH:
            errors.append(f"Observações devem ter no máximo {NOTES_MAX_LENGTH} caracteres")
        return errors


class MatchFiltersDTO:
    """Optional window for suggestions; both ends inclusive"""

    def __init__(self, filters: Optional[dict] = None):
        filters = filters or {}
        self.bank_account_id = filters.get("bank_account_id") or None
        self.raw_start_date = filters.get("start_date")
        self.raw_end_date = filters.get("end_date")

    def validate(self) -> ValidationResult:
        errors = []
        if self.raw_start_date and not is_valid_date(self.raw_start_date):
            errors.append("start_date inválida (use YYYY-MM-DD)")
        if self.raw_end_date and not is_valid_date(self.raw_end_date):
            errors.append("end_date inválida (use YYYY-MM-DD)")
        if not errors and self.raw_start_date and self.raw_end_date and self.raw_start_date > self.raw_end_date:
            errors.append("start_date deve ser anterior a end_date")
        return ValidationResult(is_valid=not errors, errors=errors)

    def to_object(self) -> dict:
        return {
            "bank_account_id": self.bank_account_id,
            "start_date": date.fromisoformat(self.raw_start_date) if self.raw_start_date else None,
            "end_date": date.fromisoformat(self.raw_end_date) if self.raw_end_date else None,
        }


class ReconciliationFiltersDTO:
    def __init__(self, filters: Optional[dict] = None):
        filters = filters or {}
        self.status = filters.get("status") or None
        self.pagination = PaginationDTO(filters.get("page", 1), filters.get("page_size", 20))

    def validate(self) -> ValidationResult:
        errors = []
        if self.status and self.status not in RECONCILIATION_STATUSES:
            errors.append(f"Status inválido: {self.status}")
        errors.extend(self.pagination.validate().errors)
        return ValidationResult(is_valid=not errors, errors=errors)

    def to_object(self) -> dict:
        return {"status": self.status, "page": self.pagination.page, "page_size": self.pagination.page_size}


class ReconciliationResponseDTO:
    def __init__(self, reconciliation):
        self.reconciliation = reconciliation

    def to_object(self) -> dict:
        r = self.reconciliation
        statement = r.statement
        return {
            "id": r.id,
            "unit_id": r.unit_id,
            "bank_statement_id": r.bank_statement_id,
            "reference_type": r.reference_type,
            "reference_id": r.reference_id,
            "status": r.status,
            "status_label": STATUS_LABELS.get(r.status, r.status),
            "difference": float(r.difference or 0),
            "difference_formatted": format_currency(r.difference or 0),
            "confidence": r.confidence,
            "is_auto": r.is_auto,
            "notes": r.notes,
            "reconciled_by": r.reconciled_by,
            "statement_description": statement.description if statement else None,
            "statement_amount": float(statement.amount or 0) if statement else None,
            "statement_date": format_date(statement.transaction_date) if statement else None,
            "created_at": r.created_at,
        }
