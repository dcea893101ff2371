"""Purchase request DTOs - validation and shaping of purchase requests and supplier quotes"""

from typing import Any, Optional

from ...shared.dto import BaseDTO, PaginationDTO, ValidationResult
from ...shared.formatters import format_currency
from ...shared.sanitization import clean_code, clean_name, clean_text
from ...shared.validators import is_valid_date, is_valid_url, is_valid_uuid, to_int, to_number

REQUEST_STATUSES = ("DRAFT", "SUBMITTED", "APPROVED", "REJECTED", "CANCELLED")
PRIORITIES = ("LOW", "NORMAL", "HIGH", "URGENT")

STATUS_LABELS = {
    "DRAFT": "Rascunho",
    "SUBMITTED": "Aguardando Aprovação",
    "APPROVED": "Aprovada",
    "REJECTED": "Rejeitada",
    "CANCELLED": "Cancelada",
}
STATUS_COLORS = {
    "DRAFT": "gray",
    "SUBMITTED": "blue",
    "APPROVED": "green",
    "REJECTED": "red",
    "CANCELLED": "gray",
}
PRIORITY_LABELS = {"LOW": "Baixa", "NORMAL": "Normal", "HIGH": "Alta", "URGENT": "Urgente"}
PRIORITY_COLORS = {"LOW": "green", "NORMAL": "blue", "HIGH": "orange", "URGENT": "red"}

# Pending approvals are worked most urgent first
PRIORITY_RANK = {"URGENT": 0, "HIGH": 1, "NORMAL": 2, "LOW": 3}

INVALID_PRIORITY = "Prioridade deve ser LOW, NORMAL, HIGH ou URGENT"
JUSTIFICATION_MIN_LENGTH = 10
REASON_MIN_LENGTH = 10


def _uuid_error(values: dict, field: str) -> Optional[str]:
    if not is_valid_uuid(values.get(field)):
        return f"{field} é obrigatório e deve ser um UUID válido"
    return None


def _item_product_error(position: int, item: dict) -> Optional[str]:
    if not is_valid_uuid(item.get("product_id")):
        return f"Item {position}: product_id é obrigatório e deve ser um UUID válido"
    return None


def _quantity_error(position: int, item: dict) -> Optional[str]:
    quantity = item.get("quantity")
    if quantity is None or quantity <= 0:
        return f"Item {position}: Quantidade deve ser maior que zero"
    return None


class CreatePurchaseRequestDTO(BaseDTO):
    """
    New purchase request with its items.

    Requests always start as DRAFT. total_estimated is derived from the
    items that carry an estimated_unit_cost.
    """

    ALLOWED_FIELDS = ("unit_id", "requested_by", "justification", "notes", "priority", "items")

    def prepare(self, data: dict) -> None:
        values = self.values
        values["unit_id"] = data.get("unit_id") or None
        values["requested_by"] = data.get("requested_by") or None
        values["justification"] = clean_text(data.get("justification"))
        values["notes"] = clean_text(data.get("notes"))
        values["priority"] = clean_code(data.get("priority")) or "NORMAL"

        raw_items = data.get("items")
        self.items = [self._prepare_item(item) for item in raw_items] if isinstance(raw_items, list) else []

    @staticmethod
    def _prepare_item(item: Any) -> Optional[dict]:
        if not isinstance(item, dict):
            return None
        raw_cost = item.get("estimated_unit_cost")
        return {
            "product_id": item.get("product_id") or None,
            "quantity": to_int(item.get("quantity")),
            "unit_measurement": clean_code(item.get("unit_measurement")),
            "estimated_unit_cost": to_number(raw_cost),
            "cost_given": raw_cost not in (None, ""),
            "notes": clean_text(item.get("notes")),
        }

    def collect_errors(self) -> list[str]:
        errors = []
        values = self.values

        for field in ("unit_id", "requested_by"):
            error = _uuid_error(values, field)
            if error:
                errors.append(error)

        justification = values["justification"]
        if justification and len(justification) < JUSTIFICATION_MIN_LENGTH:
            errors.append("Justificativa deve ter no mínimo 10 caracteres")

        if values["priority"] not in PRIORITIES:
            errors.append(INVALID_PRIORITY)

        if not self.items:
            errors.append("Deve haver pelo menos um item na solicitação")
        for position, item in enumerate(self.items, start=1):
            if item is None:
                errors.append(f"Item {position}: formato inválido")
                continue
            for error in (_item_product_error(position, item), _quantity_error(position, item)):
                if error:
                    errors.append(error)
            if not item["unit_measurement"]:
                errors.append(f"Item {position}: Unidade de medida é obrigatória (UN, KG, L, CX, etc)")
            cost = item["estimated_unit_cost"]
            if item["cost_given"] and (cost is None or cost < 0):
                errors.append(f"Item {position}: Custo estimado não pode ser negativo")

        return errors

    def get_items(self) -> list[dict]:
        return [
            {
                "product_id": item["product_id"],
                "quantity": item["quantity"],
                "unit_measurement": item["unit_measurement"],
                "estimated_unit_cost": item["estimated_unit_cost"],
                "notes": item["notes"],
            }
            for item in self.items
            if item is not None
        ]

    def total_estimated(self) -> float:
        total = sum((item["quantity"] or 0) * (item["estimated_unit_cost"] or 0) for item in self.get_items())
        return round(total, 2)

    def to_object(self) -> dict:
        data = {key: value for key, value in self.values.items() if key != "items" and value is not None}
        data["status"] = "DRAFT"
        data["total_estimated"] = self.total_estimated()
        data["is_active"] = True
        return data


class UpdatePurchaseRequestDTO(BaseDTO):
    """Partial update of a DRAFT request; items and workflow fields are not editable here"""

    ALLOWED_FIELDS = ("justification", "notes", "priority")

    def prepare(self, data: dict) -> None:
        for key, value in data.items():
            if key == "priority":
                self.values[key] = clean_code(value)
            else:
                self.values[key] = clean_text(value)

    def collect_errors(self) -> list[str]:
        errors = []
        if not self.values:
            errors.append("Nenhum campo para atualizar")
        if "priority" in self.values and self.values["priority"] not in PRIORITIES:
            errors.append(INVALID_PRIORITY)
        justification = self.values.get("justification")
        if justification and len(justification) < JUSTIFICATION_MIN_LENGTH:
            errors.append("Justificativa deve ter no mínimo 10 caracteres")
        return errors

    def to_object(self) -> dict:
        return dict(self.values)


class PurchaseRequestFiltersDTO:
    def __init__(self, filters: Optional[dict] = None):
        filters = filters or {}
        self.status = clean_code(filters.get("status"))
        self.priority = clean_code(filters.get("priority"))
        self.requested_by = filters.get("requested_by") or None
        self.start_date = filters.get("start_date") or None
        self.end_date = filters.get("end_date") or None
        self.search = clean_name(filters.get("search"))
        self.pagination = PaginationDTO(filters.get("page", 1), filters.get("page_size", 20))

    def validate(self) -> ValidationResult:
        errors = []
        if self.status and self.status not in REQUEST_STATUSES:
            errors.append("status inválido")
        if self.priority and self.priority not in PRIORITIES:
            errors.append("priority inválida")
        if self.requested_by and not is_valid_uuid(self.requested_by):
            errors.append("requested_by deve ser um UUID válido")
        if self.start_date and not is_valid_date(self.start_date):
            errors.append("start_date inválida (use YYYY-MM-DD)")
        if self.end_date and not is_valid_date(self.end_date):
            errors.append("end_date inválida (use YYYY-MM-DD)")
        errors.extend(self.pagination.validate().errors)
        return ValidationResult(is_valid=not errors, errors=errors)

    def to_object(self) -> dict:
        return {
            "status": self.status,
            "priority": self.priority,
            "requested_by": self.requested_by,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "search": self.search,
            "page": self.pagination.page,
            "page_size": self.pagination.page_size,
        }


class PurchaseRequestResponseDTO:
    """Formats a purchase request (and its active items) for the API"""

    def __init__(self, request):
        self.request = request

    def can_edit(self) -> bool:
        return self.request.status == "DRAFT"

    def can_submit(self) -> bool:
        return self.request.status == "DRAFT" and len(self.request.items) > 0

    def can_approve(self) -> bool:
        return self.request.status == "SUBMITTED"

    def to_object(self) -> dict[str, Any]:
        r = self.request
        total = r.total_estimated or 0
        return {
            "id": r.id,
            "request_number": r.request_number,
            "unit_id": r.unit_id,
            "requested_by": r.requested_by,
            "requester_name": r.requester.name if r.requester else None,
            "approved_by": r.approved_by,
            "rejected_by": r.rejected_by,
            "status": r.status,
            "status_label": STATUS_LABELS.get(r.status, r.status),
            "status_color": STATUS_COLORS.get(r.status, "gray"),
            "priority": r.priority or "NORMAL",
            "priority_label": PRIORITY_LABELS.get(r.priority, r.priority),
            "priority_color": PRIORITY_COLORS.get(r.priority, "blue"),
            "total_estimated": float(total),
            "total_formatted": format_currency(total),
            "justification": r.justification,
            "notes": r.notes,
            "approved_at": r.approved_at,
            "rejected_at": r.rejected_at,
            "rejection_reason": r.rejection_reason,
            "items": [
                {
                    "id": i.id,
                    "product_id": i.product_id,
                    "product_name": i.product.name if i.product else None,
                    "quantity": i.quantity,
                    "unit_measurement": i.unit_measurement,
                    "estimated_unit_cost": i.estimated_unit_cost,
                    "notes": i.notes,
                }
                for i in r.items
            ],
            "items_count": len(r.items),
            "can_edit": self.can_edit(),
            "can_submit": self.can_submit(),
            "can_approve": self.can_approve(),
            "created_at": r.created_at,
            "updated_at": r.updated_at,
        }


# ============================================================================
# QUOTES
# ============================================================================


class CreatePurchaseQuoteDTO(BaseDTO):
    """Supplier quote for a request; line totals and total_price are computed here"""

    ALLOWED_FIELDS = (
        "request_id",
        "supplier_id",
        "quoted_by",
        "delivery_days",
        "payment_terms",
        "notes",
        "attachment_url",
        "items",
    )

    def prepare(self, data: dict) -> None:
        values = self.values
        values["request_id"] = data.get("request_id") or None
        values["supplier_id"] = data.get("supplier_id") or None
        values["quoted_by"] = data.get("quoted_by") or None
        raw_days = data.get("delivery_days")
        self.raw_delivery_days = raw_days
        values["delivery_days"] = 0 if raw_days in (None, "") else to_number(raw_days)
        values["payment_terms"] = clean_text(data.get("payment_terms"))
        values["notes"] = clean_text(data.get("notes"))
        values["attachment_url"] = clean_text(data.get("attachment_url"))

        raw_items = data.get("items")
        items = raw_items if isinstance(raw_items, list) else []
        self.items = [
            {
                "product_id": item.get("product_id") or None,
                "quantity": to_int(item.get("quantity")),
                "unit_cost": to_number(item.get("unit_cost")),
            }
            if isinstance(item, dict)
            else None
            for item in items
        ]

    def collect_errors(self) -> list[str]:
        errors = []
        values = self.values

        for field in ("request_id", "supplier_id", "quoted_by"):
            error = _uuid_error(values, field)
            if error:
                errors.append(error)

        days = values["delivery_days"]
        if days is None or days < 0 or days != int(days):
            errors.append("Prazo de entrega deve ser ≥ 0")

        if values["attachment_url"] and not is_valid_url(values["attachment_url"]):
            errors.append("attachment_url deve ser uma URL válida")

        if not self.items:
            errors.append("Deve haver pelo menos um item na cotação")
        for position, item in enumerate(self.items, start=1):
            if item is None:
                errors.append(f"Item {position}: formato inválido")
                continue
            for error in (_item_product_error(position, item), _quantity_error(position, item)):
                if error:
                    errors.append(error)
            if item["unit_cost"] is None or item["unit_cost"] <= 0:
                errors.append(f"Item {position}: Custo unitário deve ser maior que zero")

        return errors

    def get_items(self) -> list[dict]:
        return [
            {
                "product_id": item["product_id"],
                "quantity": item["quantity"],
                "unit_cost": item["unit_cost"],
                "line_total": round(item["quantity"] * item["unit_cost"], 2),
            }
            for item in self.items
            if item is not None
        ]

    def total_price(self) -> float:
        return round(sum(item["line_total"] for item in self.get_items()), 2)

    def to_object(self) -> dict:
        data = {key: value for key, value in self.values.items() if key != "items" and value is not None}
        data["delivery_days"] = int(self.values["delivery_days"])
        data["total_price"] = self.total_price()
        data["is_selected"] = False
        data["is_active"] = True
        return data


def delivery_label(days: Optional[int]) -> str:
    if not days:
        return "Não informado"
    return f"{days} {'dia' if days == 1 else 'dias'}"


class PurchaseQuoteResponseDTO:
    def __init__(self, quote):
        self.quote = quote

    def to_object(self) -> dict[str, Any]:
        q = self.quote
        total = q.total_price or 0
        return {
            "id": q.id,
            "quote_number": q.quote_number,
            "request_id": q.request_id,
            "supplier_id": q.supplier_id,
            "supplier_name": q.supplier.name if q.supplier else None,
            "quoted_by": q.quoted_by,
            "total_price": float(total),
            "total_formatted": format_currency(total),
            "delivery_days": q.delivery_days,
            "delivery_label": delivery_label(q.delivery_days),
            "payment_terms": q.payment_terms,
            "notes": q.notes,
            "attachment_url": q.attachment_url,
            "is_selected": bool(q.is_selected),
            "selected_at": q.selected_at,
            "selected_by": q.selected_by,
            "selection_reason": q.selection_reason,
            "items": [
                {
                    "id": i.id,
                    "product_id": i.product_id,
                    "quantity": i.quantity,
                    "unit_cost": i.unit_cost,
                    "line_total": i.line_total,
                }
                for i in q.items
            ],
            "items_count": len(q.items),
            "can_select": not q.is_selected,
            "created_at": q.created_at,
            "updated_at": q.updated_at,
        }


def compare_quotes(quotes: list) -> list[dict]:
    """
    Side-by-side view of a request's quotes, cheapest first.

    difference_from_lowest is absolute (R$); ties on price go to the faster delivery.
    """
    ordered = sorted(quotes, key=lambda q: (q.total_price or 0, q.delivery_days or 0))
    if not ordered:
        return []
    lowest = ordered[0].total_price or 0
    return [
        {
            "quote_id": q.id,
            "quote_number": q.quote_number,
            "supplier_id": q.supplier_id,
            "supplier_name": q.supplier.name if q.supplier else None,
            "total_price": float(q.total_price or 0),
            "total_formatted": format_currency(q.total_price or 0),
            "delivery_days": q.delivery_days,
            "delivery_label": delivery_label(q.delivery_days),
            "payment_terms": q.payment_terms,
            "difference_from_lowest": round((q.total_price or 0) - lowest, 2),
            "is_lowest": position == 0,
            "is_selected": bool(q.is_selected),
        }
        for position, q in enumerate(ordered)
    ]
