"""Product DTOs - validation and shaping of product payloads"""

from typing import Any, Optional

from ...shared.dto import BaseDTO, PaginationDTO, ValidationResult
from ...shared.formatters import format_currency, format_percent
from ...shared.sanitization import clean_name, clean_text
from ...shared.validators import is_valid_uuid, to_int, to_number

UNIT_OF_MEASURE = ("UN", "CX", "PCT", "FR", "LT", "ML", "KG", "GR", "MT", "CM")

UNIT_LABELS = {
    "UN": "Unidade",
    "CX": "Caixa",
    "PCT": "Pacote",
    "FR": "Frasco",
    "LT": "Litro",
    "ML": "Mililitro",
    "KG": "Kilograma",
    "GR": "Grama",
    "MT": "Metro",
    "CM": "Centímetro",
}

STOCK_STATUS_CRITICAL = "CRITICAL"
STOCK_STATUS_LOW = "LOW"
STOCK_STATUS_OK = "OK"
STOCK_STATUS_EXCESS = "EXCESS"

STOCK_STATUS_CONFIG = {
    STOCK_STATUS_CRITICAL: {"label": "Crítico", "color": "red"},
    STOCK_STATUS_LOW: {"label": "Baixo", "color": "orange"},
    STOCK_STATUS_OK: {"label": "Normal", "color": "green"},
    STOCK_STATUS_EXCESS: {"label": "Excesso", "color": "blue"},
}

ORDERABLE_FIELDS = (
    "name",
    "sku",
    "category",
    "brand",
    "cost_price",
    "selling_price",
    "current_stock",
    "created_at",
    "updated_at",
)

PRODUCT_FIELDS = (
    "unit_id",
    "name",
    "description",
    "sku",
    "category",
    "brand",
    "cost_price",
    "selling_price",
    "current_stock",
    "min_stock",
    "max_stock",
    "unit_of_measure",
    "supplier_id",
    "barcode",
    "location",
    "notes",
    "created_by",
    "category_id",
    "is_active",
)

PRICE_FIELDS = ("cost_price", "selling_price")
STOCK_FIELDS = ("current_stock", "min_stock", "max_stock")
TEXT_FIELDS = ("description", "category", "brand", "location", "notes")


def _upper_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip().upper()
    return value or None


def _stripped_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class _ProductPayload(BaseDTO):
    """Shared normalization for create and update payloads"""

    ALLOWED_FIELDS = PRODUCT_FIELDS

    def prepare(self, data: dict) -> None:
        self.invalid_numbers: list[str] = []
        for key, value in data.items():
            if key == "name":
                self.values[key] = clean_name(value)
            elif key == "sku":
                self.values[key] = _upper_or_none(value)
            elif key == "barcode":
                self.values[key] = _stripped_or_none(value)
            elif key in TEXT_FIELDS:
                self.values[key] = clean_text(value)
            elif key in PRICE_FIELDS:
                self.values[key] = self._number(key, value, to_number, 0.0)
            elif key in STOCK_FIELDS:
                self.values[key] = self._number(key, value, to_int, 0)
            elif key in ("supplier_id", "category_id", "created_by", "unit_id"):
                self.values[key] = value or None
            elif key == "is_active":
                self.values[key] = bool(value)
            else:
                self.values[key] = value

    def _number(self, key: str, value: Any, converter, empty_default):
        if value is None or value == "":
            return empty_default
        converted = converter(value)
        if converted is None:
            self.invalid_numbers.append(key)
            return empty_default
        return converted

    def _field_errors(self, present) -> list[str]:
        """Errors for the fields that `present(key)` selects"""
        errors = []
        values = self.values

        if present("name"):
            name = values.get("name")
            if not name or len(name) < 3:
                errors.append("Nome deve ter pelo menos 3 caracteres")
            if name and len(name) > 255:
                errors.append("Nome deve ter no máximo 255 caracteres")

        if present("sku") and values.get("sku") and len(values["sku"]) > 50:
            errors.append("SKU deve ter no máximo 50 caracteres")

        if "cost_price" in self.invalid_numbers:
            errors.append("Preço de custo inválido")
        elif present("cost_price") and values.get("cost_price", 0) < 0:
            errors.append("Preço de custo não pode ser negativo")

        if "selling_price" in self.invalid_numbers:
            errors.append("Preço de venda inválido")
        elif present("selling_price") and values.get("selling_price", 0) < 0:
            errors.append("Preço de venda não pode ser negativo")

        cost = values.get("cost_price") or 0
        selling = values.get("selling_price") or 0
        if present("cost_price") and present("selling_price") and cost > 0 and selling > 0 and selling < cost:
            errors.append("Preço de venda não pode ser menor que o preço de custo")

        labels = {"current_stock": "atual", "min_stock": "mínimo", "max_stock": "máximo"}
        for key, label in labels.items():
            if key in self.invalid_numbers:
                errors.append(f"Estoque {label} inválido")
            elif present(key) and values.get(key, 0) < 0:
                errors.append(f"Estoque {label} não pode ser negativo")

        min_stock = values.get("min_stock") or 0
        max_stock = values.get("max_stock") or 0
        if present("min_stock") and present("max_stock") and max_stock > 0 and min_stock > max_stock:
            errors.append("Estoque mínimo não pode ser maior que o máximo")

        if present("unit_of_measure") and values.get("unit_of_measure") not in UNIT_OF_MEASURE:
            errors.append("Unidade de medida inválida")

        if present("supplier_id") and values.get("supplier_id") and not is_valid_uuid(values["supplier_id"]):
            errors.append("ID do fornecedor inválido")
        if present("category_id") and values.get("category_id") and not is_valid_uuid(values["category_id"]):
            errors.append("ID da categoria inválido")
        if present("created_by") and values.get("created_by") and not is_valid_uuid(values["created_by"]):
            errors.append("ID do criador inválido")

        return errors


class CreateProductDTO(_ProductPayload):
    """Payload for a new product; missing numbers default to zero"""

    def prepare(self, data: dict) -> None:
        super().prepare(data)
        self.values.setdefault("cost_price", 0.0)
        self.values.setdefault("selling_price", 0.0)
        self.values.setdefault("current_stock", 0)
        self.values.setdefault("min_stock", 0)
        self.values.setdefault("max_stock", 0)
        if not self.values.get("unit_of_measure"):
            self.values["unit_of_measure"] = "UN"
        # Always active on creation
        self.values["is_active"] = True

    def collect_errors(self) -> list[str]:
        errors = []
        unit_id = self.values.get("unit_id")
        if not unit_id:
            errors.append("Unidade é obrigatória")
        elif not is_valid_uuid(unit_id):
            errors.append("ID da unidade inválido")

        errors.extend(self._field_errors(lambda key: True))
        return errors


class UpdateProductDTO(_ProductPayload):
    """Partial update: only the provided fields are validated and written"""

    ALLOWED_FIELDS = tuple(f for f in PRODUCT_FIELDS if f not in ("unit_id", "created_by"))

    def collect_errors(self) -> list[str]:
        errors = self._field_errors(lambda key: key in self.values)
        if not self.values:
            errors.append("Nenhum campo para atualizar")
        return errors

    def to_object(self) -> dict:
        # Provided keys are kept even when None so fields can be cleared
        return {key: value for key, value in self.values.items() if key in self.ALLOWED_FIELDS}


class ProductResponseDTO:
    """Adds stock status, margins and formatted values to a product"""

    def __init__(self, product):
        self.product = product
        self.cost_price = product.cost_price or 0
        self.selling_price = product.selling_price or 0
        self.current_stock = product.current_stock or 0
        self.min_stock = product.min_stock or 0
        self.max_stock = product.max_stock or 0

    def get_stock_status(self) -> str:
        if self.current_stock == 0:
            return STOCK_STATUS_CRITICAL
        if self.min_stock > 0 and self.current_stock < self.min_stock:
            return STOCK_STATUS_LOW
        if self.max_stock > 0 and self.current_stock > self.max_stock:
            return STOCK_STATUS_EXCESS
        return STOCK_STATUS_OK

    def get_profit_margin(self) -> float:
        """Margin over the selling price, in percent"""
        if self.cost_price == 0 or self.selling_price == 0:
            return 0.0
        return round((self.selling_price - self.cost_price) / self.selling_price * 100, 2)

    def get_total_stock_value(self) -> float:
        return self.current_stock * self.cost_price

    def get_total_stock_value_selling(self) -> float:
        return self.current_stock * self.selling_price

    def is_out_of_stock(self) -> bool:
        return self.current_stock == 0

    def is_low_stock(self) -> bool:
        return self.min_stock > 0 and 0 < self.current_stock < self.min_stock

    def is_excess_stock(self) -> bool:
        return self.max_stock > 0 and self.current_stock > self.max_stock

    def to_object(self) -> dict:
        product = self.product
        status = self.get_stock_status()
        margin = self.get_profit_margin()
        data = {field: getattr(product, field, None) for field in PRODUCT_FIELDS}
        data.update(
            {
                "id": product.id,
                "created_at": product.created_at,
                "updated_at": product.updated_at,
                "cost_price_formatted": format_currency(self.cost_price),
                "selling_price_formatted": format_currency(self.selling_price),
                "total_stock_value": self.get_total_stock_value(),
                "total_stock_value_formatted": format_currency(self.get_total_stock_value()),
                "total_stock_value_selling": self.get_total_stock_value_selling(),
                "total_stock_value_selling_formatted": format_currency(self.get_total_stock_value_selling()),
                "profit_margin": margin,
                "profit_margin_formatted": format_percent(margin, 1),
                "stock_status": status,
                "stock_status_label": STOCK_STATUS_CONFIG[status]["label"],
                "stock_status_color": STOCK_STATUS_CONFIG[status]["color"],
                "is_out_of_stock": self.is_out_of_stock(),
                "is_low_stock": self.is_low_stock(),
                "is_excess_stock": self.is_excess_stock(),
                "unit_of_measure_label": UNIT_LABELS.get(product.unit_of_measure, product.unit_of_measure),
            }
        )
        return data


class ProductFiltersDTO:
    """Search filters, pagination and ordering for product listings"""

    def __init__(self, filters: Optional[dict] = None):
        filters = filters or {}
        self.unit_id = filters.get("unit_id") or None
        self.search = _stripped_or_none(filters.get("search"))
        self.category = _stripped_or_none(filters.get("category"))
        self.category_id = filters.get("category_id") or None
        self.brand = _stripped_or_none(filters.get("brand"))
        self.supplier_id = filters.get("supplier_id") or None
        self.stock_status = filters.get("stock_status") or None
        self.low_stock = bool(filters.get("low_stock"))
        is_active = filters.get("is_active")
        self.is_active = True if is_active is None else bool(is_active)
        self.min_price = to_number(filters.get("min_price"))
        self.max_price = to_number(filters.get("max_price"))
        self.location = _stripped_or_none(filters.get("location"))
        self.pagination = PaginationDTO(filters.get("page", 1), filters.get("page_size", 20))
        self.order_by = filters.get("order_by") or "name"
        self.order_direction = (filters.get("order_direction") or "ASC").upper()

    @property
    def page(self) -> int:
        return self.pagination.page

    @property
    def page_size(self) -> int:
        return self.pagination.page_size

    def validate(self) -> ValidationResult:
        errors = []
        if self.unit_id and not is_valid_uuid(self.unit_id):
            errors.append("ID da unidade inválido")
        if self.category_id and not is_valid_uuid(self.category_id):
            errors.append("ID da categoria inválido")
        if self.supplier_id and not is_valid_uuid(self.supplier_id):
            errors.append("ID do fornecedor inválido")
        if self.stock_status and self.stock_status not in STOCK_STATUS_CONFIG:
            errors.append("Status de estoque inválido")
        if self.min_price is not None and self.min_price < 0:
            errors.append("Preço mínimo não pode ser negativo")
        if self.max_price is not None and self.max_price < 0:
            errors.append("Preço máximo não pode ser negativo")
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            errors.append("Preço mínimo não pode ser maior que o máximo")
        errors.extend(self.pagination.validate().errors)
        if self.order_by not in ORDERABLE_FIELDS:
            errors.append("Campo de ordenação inválido")
        if self.order_direction not in ("ASC", "DESC"):
            errors.append("Direção de ordenação deve ser ASC ou DESC")
        return ValidationResult(is_valid=not errors, errors=errors)

    def to_object(self) -> dict:
        return {
            "unit_id": self.unit_id,
            "search": self.search,
            "category": self.category,
            "category_id": self.category_id,
            "brand": self.brand,
            "supplier_id": self.supplier_id,
            "stock_status": self.stock_status,
            "low_stock": self.low_stock,
            "is_active": self.is_active,
            "min_price": self.min_price,
            "max_price": self.max_price,
            "location": self.location,
            "page": self.page,
            "page_size": self.page_size,
            "order_by": self.order_by,
            "order_direction": self.order_direction,
        }
