"""Supplier DTOs - validation and shaping of supplier payloads"""

from typing import Any, Optional

from ...shared.dto import BaseDTO, PaginationDTO, ValidationResult
from ...shared.formatters import format_document, format_phone
from ...shared.sanitization import clean_code, clean_email, clean_name, clean_text
from ...shared.validators import (
    is_valid_cnpj,
    is_valid_cpf,
    is_valid_email,
    is_valid_state,
    is_valid_uuid,
    only_digits,
)

SUPPLIER_STATUSES = ("ATIVO", "INATIVO", "BLOQUEADO")

STATUS_LABELS = {
    "ATIVO": "Ativo",
    "INATIVO": "Inativo",
    "BLOQUEADO": "Bloqueado",
}

SUPPLIER_FIELDS = (
    "unit_id",
    "name",
    "cnpj_cpf",
    "email",
    "phone",
    "address",
    "city",
    "state",
    "zip_code",
    "payment_terms",
    "observations",
    "status",
    "created_by",
)

INVALID_STATUS = "Status inválido (ATIVO, INATIVO ou BLOQUEADO)"


def validate_document(document: Optional[str]) -> Optional[str]:
    """Check digit validation for a digits-only CPF/CNPJ; returns the error message or None"""
    if not document:
        return None
    if len(document) == 14:
        return None if is_valid_cnpj(document) else "CNPJ inválido (dígitos verificadores incorretos)"
    if len(document) == 11:
        return None if is_valid_cpf(document) else "CPF inválido (dígitos verificadores incorretos)"
    return "Documento deve ter 11 (CPF) ou 14 (CNPJ) dígitos"


class _SupplierPayload(BaseDTO):
    ALLOWED_FIELDS = SUPPLIER_FIELDS

    def prepare(self, data: dict) -> None:
        for key, value in data.items():
            if key == "name":
                self.values[key] = clean_name(value)
            elif key in ("cnpj_cpf", "phone", "zip_code"):
                self.values[key] = only_digits(value) or None
            elif key == "email":
                self.values[key] = clean_email(value)
            elif key in ("state", "status"):
                self.values[key] = clean_code(value)
            elif key in ("address", "city", "payment_terms", "observations"):
                self.values[key] = clean_text(value)
            else:
                self.values[key] = value or None

    def _field_errors(self, present) -> list[str]:
        errors = []
        values = self.values

        if present("name"):
            name = values.get("name")
            if not name or len(name) < 2:
                errors.append("Nome deve ter no mínimo 2 caracteres")

        document = values.get("cnpj_cpf")
        if present("cnpj_cpf") and document and len(document) not in (11, 14):
            errors.append("CNPJ/CPF inválido (deve ter 11 ou 14 dígitos)")

        if present("email") and values.get("email") and not is_valid_email(values["email"]):
            errors.append("E-mail inválido")

        phone = values.get("phone")
        if present("phone") and phone and len(phone) not in (10, 11):
            errors.append("Telefone inválido (deve ter 10 ou 11 dígitos)")

        if present("state") and values.get("state") and not is_valid_state(values["state"]):
            errors.append("Estado inválido (use sigla UF: MG, SP, etc.)")

        if present("status") and values.get("status") not in SUPPLIER_STATUSES:
            errors.append(INVALID_STATUS)

        return errors


class CreateSupplierDTO(_SupplierPayload):
    def prepare(self, data: dict) -> None:
        super().prepare(data)
        if not self.values.get("status"):
            self.values["status"] = "ATIVO"

    def collect_errors(self) -> list[str]:
        errors = []
        if not is_valid_uuid(self.values.get("unit_id")):
            errors.append("unit_id é obrigatório e deve ser um UUID válido")
        errors.extend(self._field_errors(lambda key: True))
        return errors

    def to_object(self) -> dict:
        data = super().to_object()
        data["is_active"] = True
        return data


class UpdateSupplierDTO(_SupplierPayload):
    """Partial update; unit and creator are fixed after creation"""

    ALLOWED_FIELDS = tuple(f for f in SUPPLIER_FIELDS if f not in ("unit_id", "created_by"))

    def collect_errors(self) -> list[str]:
        errors = self._field_errors(lambda key: key in self.values)
        if not self.values:
            errors.append("Nenhum campo para atualizar")
        return errors

    def to_object(self) -> dict:
        return {key: value for key, value in self.values.items() if key in self.ALLOWED_FIELDS}


class SupplierContactDTO(BaseDTO):
    """Contact person at a supplier"""

    ALLOWED_FIELDS = ("name", "role", "phone", "email")

    def __init__(self, data: Optional[dict] = None, partial: bool = False):
        self.partial = partial
        super().__init__(data)

    def prepare(self, data: dict) -> None:
        for key, value in data.items():
            if key == "name":
                self.values[key] = clean_name(value)
            elif key == "phone":
                self.values[key] = only_digits(value) or None
            elif key == "email":
                self.values[key] = clean_email(value)
            else:
                self.values[key] = clean_text(value)

    def collect_errors(self) -> list[str]:
        errors = []
        if not self.partial or "name" in self.values:
            name = self.values.get("name")
            if not name or len(name) < 2:
                errors.append("Nome do contato deve ter no mínimo 2 caracteres")
        if self.values.get("email") and not is_valid_email(self.values["email"]):
            errors.append("E-mail inválido")
        phone = self.values.get("phone")
        if phone and len(phone) not in (10, 11):
            errors.append("Telefone inválido (deve ter 10 ou 11 dígitos)")
        return errors


class SupplierResponseDTO:
    """Formats a supplier (and its active contacts) for the API"""

    def __init__(self, supplier):
        self.supplier = supplier

    def build_full_address(self) -> str:
        s = self.supplier
        parts = [part for part in (s.address, s.city, s.state) if part]
        if s.zip_code:
            parts.append(f"CEP: {s.zip_code}")
        return ", ".join(parts)

    def to_object(self) -> dict[str, Any]:
        s = self.supplier
        return {
            "id": s.id,
            "unit_id": s.unit_id,
            "name": s.name,
            "cnpj_cpf": s.cnpj_cpf,
            "cnpj_cpf_formatted": format_document(s.cnpj_cpf),
            "email": s.email,
            "phone": s.phone,
            "phone_formatted": format_phone(s.phone),
            "address": s.address,
            "city": s.city,
            "state": s.state,
            "zip_code": s.zip_code,
            "full_address": self.build_full_address(),
            "payment_terms": s.payment_terms,
            "observations": s.observations,
            "status": s.status,
            "status_label": STATUS_LABELS.get(s.status, s.status),
            "is_active": s.is_active,
            "created_at": s.created_at,
            "updated_at": s.updated_at,
            "contacts": [
                {
                    "id": c.id,
                    "name": c.name,
                    "role": c.role,
                    "phone": c.phone,
                    "phone_formatted": format_phone(c.phone),
                    "email": c.email,
                }
                for c in s.contacts
            ],
        }


class SupplierFiltersDTO:
    def __init__(self, filters: Optional[dict] = None):
        filters = filters or {}
        self.status = clean_code(filters.get("status"))
        self.search = clean_name(filters.get("search"))
        self.pagination = PaginationDTO(filters.get("page", 1), filters.get("page_size", 50))

    def validate(self) -> ValidationResult:
        errors = []
        if self.status and self.status not in SUPPLIER_STATUSES:
            errors.append(INVALID_STATUS)
        errors.extend(self.pagination.validate().errors)
        return ValidationResult(is_valid=not errors, errors=errors)

    def to_object(self) -> dict:
        return {
            "status": self.status,
            "search": self.search,
            "page": self.pagination.page,
            "page_size": self.pagination.page_size,
        }
