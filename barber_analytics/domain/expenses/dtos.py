"""Expense DTOs - pydantic schemas wrapped in the DTO validate/to_object contract"""

import calendar
import datetime as dt
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator, model_validator

from ...shared.dto import SchemaDTO, ValidationResult
from ...shared.formatters import format_currency, format_date
from ...shared.validators import is_valid_date, is_valid_uuid, to_int, to_number

EXPENSE_STATUSES = ("Pending", "Paid", "Cancelled", "Overdue")
EXPENSE_TYPES = ("rent", "salary", "supplies", "utilities", "other")

STATUS_LABELS = {
    "Pending": "Pendente",
    "Paid": "Pago",
    "Cancelled": "Cancelado",
    "Overdue": "Vencido",
}

TYPE_LABELS = {
    "rent": "Aluguel",
    "salary": "Salário",
    "supplies": "Produtos e Insumos",
    "utilities": "Utilidades",
    "other": "Outros",
}

RECURRING_CONFIGS = ("mensal-12x", "mensal-36x", "mensal-8x", "personalizar")
RECURRING_STATUSES = ("ativo", "pausado", "finalizado")

CONFIG_LABELS = {
    "mensal-12x": "Mensal - 12 vezes",
    "mensal-36x": "Mensal - 36 vezes",
    "mensal-8x": "Mensal - 8 vezes",
    "personalizar": "Personalizado",
}

RECURRING_STATUS_LABELS = {"ativo": "Ativo", "pausado": "Pausado", "finalizado": "Finalizado"}

CONFIG_INSTALLMENTS = {"mensal-12x": 12, "mensal-36x": 36, "mensal-8x": 8}

MIN_VALUE = 0.01
MAX_VALUE = 999999.99

# Columns that must never be cleared by an update
NON_NULLABLE_FIELDS = ("value", "date", "status", "description")

UUID_MESSAGES = {
    "unit_id": "ID da unidade deve ser um UUID válido",
    "account_id": "ID da conta bancária deve ser um UUID válido",
    "category_id": "ID da categoria deve ser um UUID válido",
    "party_id": "ID do fornecedor deve ser um UUID válido",
    "user_id": "ID do usuário deve ser um UUID válido",
}

DATE_MESSAGES = {
    "date": "Data deve estar no formato YYYY-MM-DD",
    "expected_payment_date": "Data esperada deve estar no formato YYYY-MM-DD",
    "actual_payment_date": "Data real deve estar no formato YYYY-MM-DD",
    "data_inicio": "Data de início deve estar no formato YYYY-MM-DD",
    "data_fim": "Data de fim deve estar no formato YYYY-MM-DD",
    "start_date": "Data inicial deve estar no formato YYYY-MM-DD",
    "end_date": "Data final deve estar no formato YYYY-MM-DD",
}

REQUIRED_MESSAGES = {
    "unit_id": UUID_MESSAGES["unit_id"],
    "value": "Valor é obrigatório",
    "date": "Data é obrigatória",
    "status": "Status deve ser: Pending, Paid, Cancelled ou Overdue",
    "description": "Descrição é obrigatória",
    "expense": "Dados da despesa são obrigatórios",
    "configuracao": "Configuração deve ser: mensal-12x, mensal-36x, mensal-8x ou personalizar",
    "cobrar_sempre_no": "Dia deve ser entre 1 e 31",
    "data_inicio": DATE_MESSAGES["data_inicio"],
}


def get_expense_status_label(status: Optional[str]) -> Optional[str]:
    return STATUS_LABELS.get(status, status)


def get_expense_type_label(expense_type: Optional[str]) -> Optional[str]:
    return TYPE_LABELS.get(expense_type, expense_type)


def calculate_total_installments(configuracao: Optional[str], duracao_personalizada: Any = None) -> int:
    """Number of monthly installments of a recurrence; 12 when unknown"""
    if configuracao == "personalizar":
        return to_int(duracao_personalizada) or 12
    return CONFIG_INSTALLMENTS.get(configuracao, 12)


def installment_due_date(start: dt.date, due_day: int, number: int) -> dt.date:
    """
    Due date of the given installment (1-based).

    Installment N falls N-1 months after the start month; the day is
    clamped to the month length (31 becomes 28/29 in February).
    """
    month_index = start.month - 1 + number - 1
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(due_day, calendar.monthrange(year, month)[1])
    return dt.date(year, month, day)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_date(value: Any) -> Optional[dt.date]:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if is_valid_date(value):
        return dt.date.fromisoformat(value)
    return None


# ============================================================================
# SCHEMAS
# ============================================================================


class ExpenseSchema(BaseModel):
    """Expense payload; fields listed in REQUIRED must be present"""

    model_config = ConfigDict(extra="ignore", validate_default=True)

    REQUIRED: ClassVar[frozenset[str]] = frozenset()

    unit_id: Optional[str] = None
    value: Optional[float] = None
    date: Optional[dt.date] = None
    status: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    party_id: Optional[str] = None
    user_id: Optional[str] = None
    expected_payment_date: Optional[dt.date] = None
    actual_payment_date: Optional[dt.date] = None
    observations: Optional[str] = None

    @classmethod
    def required_or_none(cls, value: Any, info: ValidationInfo) -> Any:
        if _blank(value):
            if info.field_name in cls.REQUIRED:
                raise ValueError(REQUIRED_MESSAGES[info.field_name])
            return None
        return value

    @field_validator("unit_id", "account_id", "category_id", "party_id", "user_id", mode="before")
    @classmethod
    def check_uuid(cls, value, info: ValidationInfo):
        value = cls.required_or_none(value, info)
        if value is not None and not is_valid_uuid(value):
            raise ValueError(UUID_MESSAGES[info.field_name])
        return value

    @field_validator("value", mode="before")
    @classmethod
    def check_value(cls, value, info: ValidationInfo):
        value = cls.required_or_none(value, info)
        if value is None:
            return None
        number = to_number(value)
        if number is None:
            raise ValueError("Valor deve ser um número")
        if number < MIN_VALUE:
            raise ValueError("Valor deve ser maior que zero")
        if number > MAX_VALUE:
            raise ValueError("Valor não pode exceder R$ 999.999,99")
        return number

    @field_validator("date", "expected_payment_date", "actual_payment_date", mode="before")
    @classmethod
    def check_date(cls, value, info: ValidationInfo):
        value = cls.required_or_none(value, info)
        if value is None:
            return None
        parsed = parse_date(value)
        if parsed is None:
            raise ValueError(DATE_MESSAGES[info.field_name])
        return parsed

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, value, info: ValidationInfo):
        value = cls.required_or_none(value, info)
        if value is not None and value not in EXPENSE_STATUSES:
            raise ValueError("Status deve ser: Pending, Paid, Cancelled ou Overdue")
        return value

    @field_validator("type", mode="before")
    @classmethod
    def check_type(cls, value, info: ValidationInfo):
        value = cls.required_or_none(value, info)
        if value is not None and value not in EXPENSE_TYPES:
            raise ValueError("Tipo deve ser: rent, salary, supplies, utilities ou other")
        return value

    @field_validator("description", mode="before")
    @classmethod
    def check_description(cls, value, info: ValidationInfo):
        value = cls.required_or_none(value, info)
        if value is None:
            return None
        value = str(value).strip()
        if len(value) < 3:
            raise ValueError("Descrição deve ter pelo menos 3 caracteres")
        if len(value) > 500:
            raise ValueError("Descrição não pode exceder 500 caracteres")
        return value

    @field_validator("observations", mode="before")
    @classmethod
    def check_observations(cls, value, info: ValidationInfo):
        value = cls.required_or_none(value, info)
        if value is None:
            return None
        value = str(value).strip()
        if len(value) > 1000:
            raise ValueError("Observações não podem exceder 1000 caracteres")
        return value


class CreateExpenseSchema(ExpenseSchema):
    REQUIRED: ClassVar[frozenset[str]] = frozenset({"unit_id", "value", "date", "status", "description"})


class RecurringExpenseSchema(BaseModel):
    model_config = ConfigDict(extra="ignore", validate_default=True)

    expense: Optional[CreateExpenseSchema] = None
    configuracao: Optional[str] = None
    cobrar_sempre_no: Optional[int] = None
    duracao_personalizada: Optional[int] = None
    unit_id: Optional[str] = None
    data_inicio: Optional[dt.date] = None

    @field_validator("expense", mode="before")
    @classmethod
    def check_expense(cls, value):
        if not value:
            raise ValueError(REQUIRED_MESSAGES["expense"])
        return value

    @field_validator("configuracao", mode="before")
    @classmethod
    def check_configuracao(cls, value):
        if value not in RECURRING_CONFIGS:
            raise ValueError(REQUIRED_MESSAGES["configuracao"])
        return value

    @field_validator("cobrar_sempre_no", mode="before")
    @classmethod
    def check_due_day(cls, value):
        number = to_number(value)
        if number is None or number != int(number) or not 1 <= number <= 31:
            raise ValueError("Dia deve ser entre 1 e 31")
        return int(number)

    @field_validator("duracao_personalizada", mode="before")
    @classmethod
    def check_duration(cls, value):
        if _blank(value):
            return None
        months = to_int(value)
        if months is None or not 1 <= months <= 120:
            raise ValueError("Duração personalizada deve ser entre 1 e 120 meses")
        return months

    @field_validator("unit_id", mode="before")
    @classmethod
    def check_unit_id(cls, value):
        if not is_valid_uuid(value):
            raise ValueError(UUID_MESSAGES["unit_id"])
        return value

    @field_validator("data_inicio", mode="before")
    @classmethod
    def check_start(cls, value):
        parsed = parse_date(value)
        if parsed is None:
            raise ValueError(DATE_MESSAGES["data_inicio"])
        return parsed

    @model_validator(mode="after")
    def check_custom_duration(self):
        if self.configuracao == "personalizar" and not self.duracao_personalizada:
            raise ValueError('Duração personalizada é obrigatória quando configuração é "personalizar"')
        return self


class UpdateRecurringExpenseSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: Optional[str] = None
    data_fim: Optional[dt.date] = None

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, value):
        if value is not None and value not in RECURRING_STATUSES:
            raise ValueError("Status deve ser: ativo, pausado ou finalizado")
        return value

    @field_validator("data_fim", mode="before")
    @classmethod
    def check_end(cls, value):
        if _blank(value):
            return None
        parsed = parse_date(value)
        if parsed is None:
            raise ValueError(DATE_MESSAGES["data_fim"])
        return parsed


class ExpenseFiltersSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    unit_id: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    status: Optional[str] = None
    type: Optional[str] = None
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    party_id: Optional[str] = None
    recurring_expense_id: Optional[str] = None
    page: int = 1
    page_size: int = 20

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def check_dates(cls, value, info: ValidationInfo):
        if _blank(value):
            return None
        parsed = parse_date(value)
        if parsed is None:
            raise ValueError(DATE_MESSAGES[info.field_name])
        return parsed

    @field_validator("status", mode="before")
    @classmethod
    def check_status(cls, value):
        if _blank(value):
            return None
        if value not in EXPENSE_STATUSES:
            raise ValueError(f"Status inválido: {value}")
        return value

    @field_validator("type", mode="before")
    @classmethod
    def check_type(cls, value):
        if _blank(value):
            return None
        if value not in EXPENSE_TYPES:
            raise ValueError(f"Tipo inválido: {value}")
        return value

    @field_validator("page", mode="before")
    @classmethod
    def check_page(cls, value):
        page = to_int(value, 1)
        if page < 1:
            raise ValueError("Página deve ser maior que zero")
        return page

    @field_validator("page_size", mode="before")
    @classmethod
    def check_page_size(cls, value):
        page_size = to_int(value, 20)
        if not 1 <= page_size <= 100:
            raise ValueError("Tamanho da página deve estar entre 1 e 100")
        return page_size


# ============================================================================
# DTOS
# ============================================================================


class CreateExpenseDTO(SchemaDTO):
    SCHEMA = CreateExpenseSchema


class UpdateExpenseDTO(SchemaDTO):
    """Partial update; explicit nulls clear optional columns only"""

    SCHEMA = ExpenseSchema
    FORBIDDEN_FIELDS = SchemaDTO.FORBIDDEN_FIELDS + ("unit_id",)

    def validate(self) -> ValidationResult:
        result = super().validate()
        if result.is_valid and not self.to_object():
            self._result = ValidationResult(is_valid=False, errors=["Nenhum campo para atualizar"])
        return self._result

    def to_object(self) -> dict:
        if not super().validate().is_valid:
            return {}
        updates = self.model.model_dump(exclude_unset=True)
        return {
            key: value
            for key, value in updates.items()
            if not (value is None and key in NON_NULLABLE_FIELDS)
        }


class ExpenseFiltersDTO(SchemaDTO):
    SCHEMA = ExpenseFiltersSchema
    FORBIDDEN_FIELDS = ()

    def to_object(self) -> dict:
        if not self.is_valid():
            return {}
        return self.model.model_dump()


class CreateRecurringExpenseDTO(SchemaDTO):
    SCHEMA = RecurringExpenseSchema
    FORBIDDEN_FIELDS = ()

    def total_installments(self) -> int:
        return calculate_total_installments(self.raw.get("configuracao"), self.raw.get("duracao_personalizada"))


class UpdateRecurringExpenseDTO(SchemaDTO):
    SCHEMA = UpdateRecurringExpenseSchema


# ============================================================================
# RESPONSES
# ============================================================================


class ExpenseResponseDTO:
    def __init__(self, expense):
        self.expense = expense

    def to_object(self) -> dict:
        e = self.expense
        return {
            "id": e.id,
            "unit_id": e.unit_id,
            "value": float(e.value or 0),
            "value_formatted": format_currency(e.value),
            "date": e.date,
            "date_formatted": format_date(e.date),
            "status": e.status,
            "status_label": get_expense_status_label(e.status),
            "description": e.description,
            "type": e.type,
            "type_label": get_expense_type_label(e.type),
            "account_id": e.account_id,
            "category_id": e.category_id,
            "party_id": e.party_id,
            "user_id": e.user_id,
            "expected_payment_date": e.expected_payment_date,
            "actual_payment_date": e.actual_payment_date,
            "observations": e.observations,
            "recurring_expense_id": e.recurring_expense_id,
            "installment_number": e.installment_number,
            "is_active": e.is_active,
            "created_at": e.created_at,
            "updated_at": e.updated_at,
        }


class RecurringExpenseResponseDTO:
    def __init__(self, recurring):
        self.recurring = recurring

    def to_object(self) -> dict:
        r = self.recurring
        generated = r.parcelas_geradas or 0
        total = r.total_parcelas or 0
        monthly_value = float(r.monthly_value or 0)
        next_due = None
        if r.status == "ativo" and generated < total:
            next_due = installment_due_date(r.data_inicio, r.cobrar_sempre_no, generated + 1)
        return {
            "id": r.id,
            "unit_id": r.unit_id,
            "expense_id": r.expense_id,
            "description": r.description,
            "monthly_value": monthly_value,
            "monthly_value_formatted": format_currency(monthly_value),
            "configuracao": r.configuracao,
            "config_label": CONFIG_LABELS.get(r.configuracao, r.configuracao),
            "cobrar_sempre_no": r.cobrar_sempre_no,
            "duracao_personalizada": r.duracao_personalizada,
            "total_parcelas": total,
            "parcelas_geradas": generated,
            "parcelas_restantes": max(total - generated, 0),
            "completion_percent": round(generated / total * 100, 1) if total else 0.0,
            "total_value": monthly_value * total,
            "total_value_formatted": format_currency(monthly_value * total),
            "generated_value": monthly_value * generated,
            "status": r.status,
            "status_label": RECURRING_STATUS_LABELS.get(r.status, r.status),
            "data_inicio": r.data_inicio,
            "data_fim": r.data_fim,
            "next_due_date": next_due,
            "created_at": r.created_at,
        }
