"""Bank statement DTOs - validation, dedupe hashing and shaping of statement lines"""

import hashlib
from datetime import date
from typing import Any, Optional

from ...shared.dto import BaseDTO, PaginationDTO, ValidationResult
from ...shared.formatters import format_currency, format_date
from ...shared.sanitization import clean_name, clean_text
from ...shared.validators import is_valid_date, is_valid_uuid, to_number

STATEMENT_TYPES = ("Credit", "Debit")
STATEMENT_STATUSES = ("pending", "reconciled", "ignored")

TYPE_LABELS = {"Credit": "Crédito", "Debit": "Débito"}
STATUS_LABELS = {"pending": "Pendente", "reconciled": "Conciliado", "ignored": "Ignorado"}

REQUIRED_FIELDS = ("bank_account_id", "transaction_date", "description", "amount")

BANK_STATEMENT_FIELDS = (
    "bank_account_id",
    "unit_id",
    "transaction_date",
    "description",
    "amount",
    "type",
    "status",
    "fitid",
    "observations",
    "balance_after",
)

DESCRIPTION_MAX_LENGTH = 500


def normalize_description(description: Optional[str]) -> str:
    return " ".join(str(description or "").split()).lower()


def generate_statement_hash(account_id: str, transaction_date, amount: float, description: str) -> str:
    """
    SHA-256 fingerprint of a statement line, used to skip re-imported rows.

    amount is signed (debits negative) so a credit and a debit of the same
    value on the same day do not collide.
    """
    day = transaction_date.isoformat() if isinstance(transaction_date, date) else str(transaction_date)
    raw = f"{account_id}-{day}-{float(amount):.2f}-{normalize_description(description)}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_day(value: Any) -> Optional[date]:
    """Accept a date, or an ISO string whose first 10 chars are YYYY-MM-DD"""
    if isinstance(value, date):
        return value
    if isinstance(value, str) and is_valid_date(value[:10]):
        return date.fromisoformat(value[:10])
    return None


class CreateBankStatementDTO(BaseDTO):
    """
    One imported statement line.

    amount is stored as a magnitude and type carries the sign: a negative
    amount without a type becomes a Debit.
    """

    ALLOWED_FIELDS = BANK_STATEMENT_FIELDS

    def prepare(self, data: dict) -> None:
        values = self.values
        self.raw_amount = data.get("amount")
        self.raw_date = data.get("transaction_date")
        self.raw_type = data.get("type")

        amount = to_number(self.raw_amount)
        statement_type = self.raw_type if self.raw_type not in (None, "") else None
        if amount is not None and statement_type is None:
            statement_type = "Debit" if amount < 0 else "Credit"

        values["bank_account_id"] = data.get("bank_account_id") or None
        values["unit_id"] = data.get("unit_id") or None
        values["transaction_date"] = _to_day(self.raw_date)
        values["description"] = clean_name(data.get("description"))
        values["amount"] = abs(amount) if amount is not None else None
        values["type"] = statement_type
        values["status"] = data.get("status") or "pending"
        values["fitid"] = clean_name(data.get("fitid"))
        values["observations"] = clean_text(data.get("observations"))
        values["balance_after"] = to_number(data.get("balance_after"))

    def collect_errors(self) -> list[str]:
        for field in REQUIRED_FIELDS:
            if _missing(self.raw.get(field)):
                return [f"Campo obrigatório '{field}' está ausente ou vazio"]

        errors = []
        values = self.values
        if not is_valid_uuid(values["unit_id"]):
            errors.append("unit_id inválido ou ausente")
        if values["transaction_date"] is None:
            errors.append(f"Data da transação inválida: {self.raw_date}")
        if values["amount"] is None:
            errors.append(f"Valor inválido: {self.raw_amount}")
        if values["type"] not in STATEMENT_TYPES:
            errors.append(f"Tipo deve ser 'Credit' ou 'Debit': {values['type']}")
        elif values["type"] == "Credit" and (to_number(self.raw_amount) or 0) < 0:
            errors.append("Valor negativo não pode ser um crédito")
        if values["status"] not in STATEMENT_STATUSES:
            errors.append(f"Status inválido: {values['status']}")
        if values["description"] and len(values["description"]) > DESCRIPTION_MAX_LENGTH:
            errors.append(f"Descrição deve ter no máximo {DESCRIPTION_MAX_LENGTH} caracteres")
        return errors

    @property
    def signed_amount(self) -> float:
        amount = self.values["amount"] or 0
        return -amount if self.values["type"] == "Debit" else amount

    def hash(self) -> str:
        return generate_statement_hash(
            self.values["bank_account_id"],
            self.values["transaction_date"],
            self.signed_amount,
            self.values["description"],
        )


class UpdateBankStatementDTO(BaseDTO):
    """Amount, date and account are part of the dedupe hash and stay fixed"""

    ALLOWED_FIELDS = ("description", "observations", "status")

    def prepare(self, data: dict) -> None:
        if "description" in data:
            self.values["description"] = clean_name(data["description"])
        if "observations" in data:
            self.values["observations"] = clean_text(data["observations"])
        if "status" in data:
            self.values["status"] = data["status"]

    def collect_errors(self) -> list[str]:
        errors = []
        if not self.values:
            return ["Nenhum campo para atualizar"]
        if "description" in self.values:
            description = self.values["description"]
            if not description:
                errors.append("Campo obrigatório 'description' está ausente ou vazio")
            elif len(description) > DESCRIPTION_MAX_LENGTH:
                errors.append(f"Descrição deve ter no máximo {DESCRIPTION_MAX_LENGTH} caracteres")
        if "status" in self.values and self.values["status"] not in STATEMENT_STATUSES:
            errors.append(f"Status inválido: {self.values['status']}")
        return errors

    def to_object(self) -> dict:
        # observations may be cleared
        return dict(self.values)


class BankStatementFiltersDTO:
    def __init__(self, filters: Optional[dict] = None):
        filters = filters or {}
        self.unit_id = filters.get("unit_id") or None
        self.bank_account_id = filters.get("bank_account_id") or None
        self.raw_start_date = filters.get("start_date")
        self.raw_end_date = filters.get("end_date")
        self.type = filters.get("type") or None
        self.status = filters.get("status") or None
        self.reconciled = filters.get("reconciled")
        self.pagination = PaginationDTO(filters.get("page", 1), filters.get("page_size", 50))

    def validate(self) -> ValidationResult:
        errors = []
        if self.raw_start_date and not is_valid_date(self.raw_start_date):
            errors.append("start_date inválida (use YYYY-MM-DD)")
        if self.raw_end_date and not is_valid_date(self.raw_end_date):
            errors.append("end_date inválida (use YYYY-MM-DD)")
        if self.type and self.type not in STATEMENT_TYPES:
            errors.append(f"Tipo inválido: {self.type}")
        if self.status and self.status not in STATEMENT_STATUSES:
            errors.append(f"Status inválido: {self.status}")
        errors.extend(self.pagination.validate().errors)
        return ValidationResult(is_valid=not errors, errors=errors)

    def to_object(self) -> dict:
        return {
            "unit_id": self.unit_id,
            "bank_account_id": self.bank_account_id,
            "start_date": date.fromisoformat(self.raw_start_date) if self.raw_start_date else None,
            "end_date": date.fromisoformat(self.raw_end_date) if self.raw_end_date else None,
            "type": self.type,
            "status": self.status,
            "reconciled": self.reconciled,
            "page": self.pagination.page,
            "page_size": self.pagination.page_size,
        }


class BankStatementResponseDTO:
    def __init__(self, statement):
        self.statement = statement

    def to_object(self) -> dict:
        s = self.statement
        amount = float(s.amount or 0)
        signed = -amount if s.type == "Debit" else amount
        return {
            "id": s.id,
            "unit_id": s.unit_id,
            "bank_account_id": s.bank_account_id,
            "transaction_date": s.transaction_date,
            "transaction_date_formatted": format_date(s.transaction_date),
            "description": s.description,
            "amount": amount,
            "signed_amount": signed,
            "amount_formatted": format_currency(signed),
            "type": s.type,
            "type_label": TYPE_LABELS.get(s.type, s.type),
            "status": s.status,
            "status_label": STATUS_LABELS.get(s.status, s.status),
            "reconciled": s.reconciled,
            "reconciled_at": s.reconciled_at,
            "reconciled_by": s.reconciled_by,
            "fitid": s.fitid,
            "observations": s.observations,
            "balance_after": s.balance_after,
            "created_at": s.created_at,
        }
