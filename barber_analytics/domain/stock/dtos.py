"""Stock movement DTOs - validation and shaping of inventory movements"""

from datetime import date, datetime, time
from typing import Optional

from ...shared.dto import BaseDTO, PaginationDTO, ValidationResult
from ...shared.formatters import format_currency
from ...shared.sanitization import clean_code, clean_text
from ...shared.validators import is_valid_date, is_valid_uuid, to_int, to_number

MOVEMENT_TYPES = ("ENTRADA", "SAIDA")

MOVEMENT_REASONS = (
    "COMPRA",
    "VENDA",
    "AJUSTE",
    "CONSUMO_INTERNO",
    "LIMPEZA",
    "DEVOLUCAO",
)

REFERENCE_TYPES = ("PURCHASE", "REVENUE", "SERVICE")

MOVEMENT_TYPE_LABELS = {"ENTRADA": "Entrada", "SAIDA": "Saída"}

REASON_LABELS = {
    "COMPRA": "Compra",
    "VENDA": "Venda",
    "AJUSTE": "Ajuste",
    "CONSUMO_INTERNO": "Consumo Interno",
    "LIMPEZA": "Limpeza",
    "DEVOLUCAO": "Devolução",
}

# total_cost is derived from quantity * unit_cost and never accepted from input
STOCK_MOVEMENT_FIELDS = (
    "unit_id",
    "product_id",
    "movement_type",
    "reason",
    "quantity",
    "unit_cost",
    "performed_by",
    "reference_id",
    "reference_type",
    "notes",
    "is_active",
)

NOTES_MAX_LENGTH = 500


class CreateStockMovementDTO(BaseDTO):
    """A single ENTRADA or SAIDA of one product"""

    ALLOWED_FIELDS = STOCK_MOVEMENT_FIELDS

    def prepare(self, data: dict) -> None:
        values = self.values
        values["unit_id"] = data.get("unit_id")
        values["product_id"] = data.get("product_id")
        values["performed_by"] = data.get("performed_by")
        values["movement_type"] = clean_code(data.get("movement_type"))
        values["reason"] = clean_code(data.get("reason"))
        values["quantity"] = to_int(data.get("quantity"))
        values["unit_cost"] = to_number(data.get("unit_cost"))
        values["reference_id"] = data.get("reference_id") or None
        values["reference_type"] = clean_code(data.get("reference_type"))
        values["notes"] = clean_text(data.get("notes"))
        is_active = data.get("is_active")
        values["is_active"] = True if is_active is None else bool(is_active)

    def collect_errors(self) -> list[str]:
        errors = []
        values = self.values

        if not is_valid_uuid(values["unit_id"]):
            errors.append("unit_id inválido ou ausente")
        if not is_valid_uuid(values["product_id"]):
            errors.append("product_id inválido ou ausente")
        if not is_valid_uuid(values["performed_by"]):
            errors.append("performed_by inválido ou ausente")

        if values["movement_type"] not in MOVEMENT_TYPES:
            errors.append(f"movement_type deve ser ENTRADA ou SAIDA (recebido: {values['movement_type']})")

        if values["reason"] not in MOVEMENT_REASONS:
            errors.append(f"reason inválido. Valores permitidos: {', '.join(MOVEMENT_REASONS)}")

        if values["quantity"] is None or values["quantity"] <= 0:
            errors.append("quantity deve ser maior que 0")

        if values["unit_cost"] is None or values["unit_cost"] < 0:
            errors.append("unit_cost deve ser maior ou igual a 0")

        reference_id = values["reference_id"]
        if reference_id and not is_valid_uuid(reference_id):
            errors.append("reference_id inválido")
        if reference_id and values["reference_type"] not in REFERENCE_TYPES:
            errors.append(f"reference_type inválido. Valores permitidos: {', '.join(REFERENCE_TYPES)}")
        if values["reference_type"] and not reference_id:
            errors.append("reference_id obrigatório quando reference_type é fornecido")

        return errors

    def get_total_cost(self) -> float:
        return (self.values["quantity"] or 0) * (self.values["unit_cost"] or 0)


class UpdateStockMovementDTO(BaseDTO):
    """Only the notes of a movement can change"""

    ALLOWED_FIELDS = ("notes",)

    def prepare(self, data: dict) -> None:
        self.raw_notes = data.get("notes")
        self.values["notes"] = clean_text(self.raw_notes) if isinstance(self.raw_notes, str) else None

    def collect_errors(self) -> list[str]:
        errors = []
        if self.raw_notes is not None and not isinstance(self.raw_notes, str):
            errors.append("notes deve ser uma string")
        elif self.raw_notes and len(self.raw_notes.strip()) > NOTES_MAX_LENGTH:
            errors.append(f"notes deve ter no máximo {NOTES_MAX_LENGTH} caracteres")
        return errors

    def to_object(self) -> dict:
        # notes may be cleared
        return {"notes": self.values["notes"]}


class StockMovementResponseDTO:
    def __init__(self, movement):
        self.movement = movement

    def to_object(self) -> dict:
        m = self.movement
        product = getattr(m, "product", None)
        return {
            "id": m.id,
            "unit_id": m.unit_id,
            "product_id": m.product_id,
            "product_name": product.name if product is not None else None,
            "movement_type": m.movement_type,
            "movement_type_label": MOVEMENT_TYPE_LABELS.get(m.movement_type, m.movement_type),
            "reason": m.reason,
            "reason_label": REASON_LABELS.get(m.reason, m.reason),
            "quantity": m.quantity,
            "unit_cost": float(m.unit_cost or 0),
            "unit_cost_formatted": format_currency(m.unit_cost),
            "total_cost": float(m.total_cost or 0),
            "total_cost_formatted": format_currency(m.total_cost),
            "performed_by": m.performed_by,
            "reference_id": m.reference_id,
            "reference_type": m.reference_type,
            "notes": m.notes,
            "is_active": m.is_active,
            "created_at": m.created_at,
            "updated_at": m.updated_at,
        }


def parse_day(value, end_of_day: bool = False) -> Optional[datetime]:
    """YYYY-MM-DD (or a date) to the first or last instant of that day"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        day = value
    elif is_valid_date(value):
        day = date.fromisoformat(value)
    else:
        return None
    return datetime.combine(day, time.max if end_of_day else time.min)


class StockMovementFiltersDTO:
    def __init__(self, filters: Optional[dict] = None):
        filters = filters or {}
        self.unit_id = filters.get("unit_id") or None
        self.product_id = filters.get("product_id") or None
        self.movement_type = clean_code(filters.get("movement_type"))
        self.reason = clean_code(filters.get("reason"))
        self.performed_by = filters.get("performed_by") or None
        self.raw_start_date = filters.get("start_date")
        self.raw_end_date = filters.get("end_date")
        self.start_date = parse_day(self.raw_start_date)
        self.end_date = parse_day(self.raw_end_date, end_of_day=True)
        is_active = filters.get("is_active")
        self.is_active = True if is_active is None else bool(is_active)
        self.pagination = PaginationDTO(filters.get("page", 1), filters.get("page_size", 20))

    def validate(self) -> ValidationResult:
        errors = []
        if self.movement_type and self.movement_type not in MOVEMENT_TYPES:
            errors.append(f"movement_type inválido: {self.movement_type}")
        if self.reason and self.reason not in MOVEMENT_REASONS:
            errors.append(f"reason inválido: {self.reason}")
        if self.raw_start_date and self.start_date is None:
            errors.append("start_date inválida (use YYYY-MM-DD)")
        if self.raw_end_date and self.end_date is None:
            errors.append("end_date inválida (use YYYY-MM-DD)")
        errors.extend(self.pagination.validate().errors)
        return ValidationResult(is_valid=not errors, errors=errors)

    def to_object(self) -> dict:
        return {
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "reason": self.reason,
            "performed_by": self.performed_by,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "is_active": self.is_active,
            "page": self.pagination.page,
            "page_size": self.pagination.page_size,
        }
