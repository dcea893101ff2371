import datetime as dt
import uuid

import pytest

from barber_analytics.domain.expenses.dtos import (
    CreateExpenseDTO,
    CreateRecurringExpenseDTO,
    ExpenseFiltersDTO,
    ExpenseResponseDTO,
    RecurringExpenseResponseDTO,
    UpdateExpenseDTO,
    UpdateRecurringExpenseDTO,
    calculate_total_installments,
    installment_due_date,
)
from barber_analytics.models import Expense, RecurringExpense


def new_id():
    return str(uuid.uuid4())


def expense_payload(**overrides):
    data = {
        "unit_id": new_id(),
        "value": "150.50",
        "date": "2024-03-10",
        "status": "Pending",
        "description": "Conta de luz",
        "type": "utilities",
    }
    data.update(overrides)
    return data


def test_create_expense_parses_and_whitelists():
    dto = CreateExpenseDTO(expense_payload(id="forged", is_active=False, hacked=1))

    assert dto.validate().is_valid
    data = dto.to_object()
    assert data["value"] == 150.5
    assert data["date"] == dt.date(2024, 3, 10)
    assert data["type"] == "utilities"
    assert set(data) == {"unit_id", "value", "date", "status", "description", "type"}


def test_create_expense_errors_follow_field_order():
    dto = CreateExpenseDTO({"value": 0, "date": "10/03/2024", "status": "Open", "description": "ab"})
    result = dto.validate()

    assert result.is_valid is False
    assert result.errors == [
        "unit_id: ID da unidade deve ser um UUID válido",
        "value: Valor deve ser maior que zero",
        "date: Data deve estar no formato YYYY-MM-DD",
        "status: Status deve ser: Pending, Paid, Cancelled ou Overdue",
        "description: Descrição deve ter pelo menos 3 caracteres",
    ]
    assert dto.to_object() == {}


@pytest.mark.parametrize(
    "field, value, message",
    [
        ("value", 1_000_000, "value: Valor não pode exceder R$ 999.999,99"),
        ("value", "abc", "value: Valor deve ser um número"),
        ("value", "nan", "value: Valor deve ser um número"),
        ("value", "inf", "value: Valor deve ser um número"),
        ("value", float("nan"), "value: Valor deve ser um número"),
        ("type", "food", "type: Tipo deve ser: rent, salary, supplies, utilities ou other"),
        ("observations", "x" * 1001, "observations: Observações não podem exceder 1000 caracteres"),
        ("account_id", "123", "account_id: ID da conta bancária deve ser um UUID válido"),
        ("status", "", "status: Status deve ser: Pending, Paid, Cancelled ou Overdue"),
    ],
)
def test_create_expense_single_rule(field, value, message):
    assert CreateExpenseDTO(expense_payload(**{field: value})).validate().errors == [message]


def test_update_expense_is_partial():
    assert UpdateExpenseDTO({}).validate().errors == ["Nenhum campo para atualizar"]

    dto = UpdateExpenseDTO({"observations": None, "value": None, "unit_id": new_id()})
    assert dto.validate().is_valid
    # value cannot be cleared and unit_id is fixed
    assert dto.to_object() == {"observations": None}


def test_recurring_expense_schema():
    unit_id = new_id()
    dto = CreateRecurringExpenseDTO(
        {
            "expense": expense_payload(unit_id=unit_id),
            "configuracao": "mensal-12x",
            "cobrar_sempre_no": "10",
            "unit_id": unit_id,
            "data_inicio": "2024-01-31",
        }
    )
    assert dto.validate().is_valid
    assert dto.model.cobrar_sempre_no == 10
    assert dto.model.expense.value == 150.5
    assert dto.total_installments() == 12


def test_custom_recurrence_needs_a_duration():
    unit_id = new_id()
    base = {
        "expense": expense_payload(unit_id=unit_id),
        "configuracao": "personalizar",
        "cobrar_sempre_no": 5,
        "unit_id": unit_id,
        "data_inicio": "2024-01-05",
    }
    assert CreateRecurringExpenseDTO(base).validate().errors == [
        'Duração personalizada é obrigatória quando configuração é "personalizar"'
    ]

    dto = CreateRecurringExpenseDTO({**base, "duracao_personalizada": "18"})
    assert dto.is_valid()
    assert dto.total_installments() == 18


def test_recurring_expense_field_errors():
    dto = CreateRecurringExpenseDTO(
        {
            "expense": expense_payload(unit_id=None),
            "configuracao": "semanal",
            "cobrar_sempre_no": 32,
            "duracao_personalizada": 121,
            "unit_id": "x",
            "data_inicio": "amanhã",
        }
    )
    assert dto.validate().errors == [
        "expense.unit_id: ID da unidade deve ser um UUID válido",
        "configuracao: Configuração deve ser: mensal-12x, mensal-36x, mensal-8x ou personalizar",
        "cobrar_sempre_no: Dia deve ser entre 1 e 31",
        "duracao_personalizada: Duração personalizada deve ser entre 1 e 120 meses",
        "unit_id: ID da unidade deve ser um UUID válido",
        "data_inicio: Data de início deve estar no formato YYYY-MM-DD",
    ]


def test_update_recurring_status():
    assert UpdateRecurringExpenseDTO({"status": "pausado"}).to_object() == {"status": "pausado"}
    assert UpdateRecurringExpenseDTO({"status": "parado"}).validate().errors == [
        "status: Status deve ser: ativo, pausado ou finalizado"
    ]


@pytest.mark.parametrize(
    "configuracao, duracao, expected",
    [
        ("mensal-12x", None, 12),
        ("mensal-36x", None, 36),
        ("mensal-8x", None, 8),
        ("personalizar", "18", 18),
        ("personalizar", None, 12),
        ("desconhecida", None, 12),
    ],
)
def test_calculate_total_installments(configuracao, duracao, expected):
    assert calculate_total_installments(configuracao, duracao) == expected


@pytest.mark.parametrize(
    "start, due_day, number, expected",
    [
        (dt.date(2024, 1, 5), 20, 1, dt.date(2024, 1, 20)),
        (dt.date(2024, 1, 31), 31, 2, dt.date(2024, 2, 29)),
        (dt.date(2023, 1, 31), 31, 2, dt.date(2023, 2, 28)),
        (dt.date(2024, 1, 31), 31, 4, dt.date(2024, 4, 30)),
        (dt.date(2024, 11, 10), 10, 3, dt.date(2025, 1, 10)),
    ],
)
def test_installment_due_date_clamps_to_month_length(start, due_day, number, expected):
    assert installment_due_date(start, due_day, number) == expected


def test_expense_filters():
    assert ExpenseFiltersDTO({"page_size": 0}).validate().errors == [
        "page_size: Tamanho da página deve estar entre 1 e 100"
    ]
    assert ExpenseFiltersDTO({"status": "Lost"}).validate().errors == ["status: Status inválido: Lost"]

    data = ExpenseFiltersDTO({"start_date": "2024-01-01", "status": ""}).to_object()
    assert data["start_date"] == dt.date(2024, 1, 1)
    assert data["status"] is None
    assert data["page"] == 1
    assert data["page_size"] == 20


def test_expense_response_labels():
    expense = Expense(
        id=new_id(),
        unit_id=new_id(),
        value=1500.0,
        date=dt.date(2024, 3, 5),
        status="Paid",
        description="Aluguel março",
        type="rent",
        is_active=True,
    )
    data = ExpenseResponseDTO(expense).to_object()
    assert data["value_formatted"] == "R$ 1.500,00"
    assert data["date_formatted"] == "05/03/2024"
    assert data["status_label"] == "Pago"
    assert data["type_label"] == "Aluguel"


def test_recurring_response_progress():
    recurring = RecurringExpense(
        id=new_id(),
        unit_id=new_id(),
        description="Aluguel",
        monthly_value=100.0,
        configuracao="mensal-12x",
        cobrar_sempre_no=31,
        total_parcelas=12,
        parcelas_geradas=3,
        status="ativo",
        data_inicio=dt.date(2024, 1, 31),
    )
    data = RecurringExpenseResponseDTO(recurring).to_object()
    assert data["parcelas_restantes"] == 9
    assert data["completion_percent"] == 25.0
    assert data["total_value"] == 1200.0
    assert data["generated_value"] == 300.0
    assert data["config_label"] == "Mensal - 12 vezes"
    assert data["next_due_date"] == dt.date(2024, 4, 30)
