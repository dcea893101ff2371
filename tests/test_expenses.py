import datetime as dt

import pytest

from barber_analytics.domain.expenses.service import ExpenseService, RecurringExpenseService
from barber_analytics.models import Expense
from barber_analytics.shared.errors import ErrorCode


def expense_data(unit, **overrides):
    data = {
        "unit_id": unit.id,
        "value": 320.0,
        "date": "2024-03-10",
        "status": "Pending",
        "description": "Conta de energia",
        "type": "utilities",
    }
    data.update(overrides)
    return data


def recurring_data(unit, start="2024-01-31", due_day=31, configuracao="mensal-12x", **overrides):
    data = {
        "unit_id": unit.id,
        "configuracao": configuracao,
        "cobrar_sempre_no": due_day,
        "data_inicio": start,
        "expense": {
            "value": 2500,
            "date": start,
            "status": "Pending",
            "description": "Aluguel do salão",
            "type": "rent",
        },
    }
    data.update(overrides)
    return data


def installments(db, recurring_id, active_only=True):
    query = db.query(Expense).filter(Expense.recurring_expense_id == recurring_id)
    if active_only:
        query = query.filter(Expense.is_active.is_(True))
    return query.order_by(Expense.installment_number).all()


@pytest.fixture
def expenses(db):
    return ExpenseService(db)


@pytest.fixture
def recurring(db):
    return RecurringExpenseService(db)


# ============================================================================
# EXPENSES
# ============================================================================


def test_create_expense_defaults_owner(expenses, unit, users):
    result = expenses.create_expense(expense_data(unit), users["gerente"])

    assert result.ok
    assert result.data["user_id"] == users["gerente"].id
    assert result.data["value_formatted"] == "R$ 320,00"
    assert result.data["type_label"] == "Utilidades"


def test_create_expense_reports_schema_errors(expenses, unit, users):
    result = expenses.create_expense(expense_data(unit, value=0, description="ab"), users["gerente"])

    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.errors == [
        "value: Valor deve ser maior que zero",
        "description: Descrição deve ter pelo menos 3 caracteres",
    ]


def test_mark_as_paid(expenses, unit, users):
    gerente = users["gerente"]
    expense = expenses.create_expense(expense_data(unit), gerente).data

    paid = expenses.mark_as_paid(expense["id"], gerente, "2024-03-15")
    assert paid.data["status"] == "Paid"
    assert paid.data["actual_payment_date"] == dt.date(2024, 3, 15)

    again = expenses.mark_as_paid(expense["id"], gerente)
    assert again.error.message == "Despesa já está paga"

    bad_date = expenses.mark_as_paid(expense["id"], gerente, "15/03/2024")
    assert bad_date.error.errors == ["Data de pagamento deve estar no formato YYYY-MM-DD"]


def test_cancelled_expense_cannot_be_paid(expenses, unit, users):
    gerente = users["gerente"]
    expense = expenses.create_expense(expense_data(unit, status="Cancelled"), gerente).data

    result = expenses.mark_as_paid(expense["id"], gerente)
    assert result.error.message == "Despesa cancelada não pode ser marcada como paga"


def test_update_and_delete_expense(expenses, unit, users):
    gerente = users["gerente"]
    expense = expenses.create_expense(expense_data(unit, observations="Vence dia 10"), gerente).data

    updated = expenses.update_expense(expense["id"], {"observations": None, "value": "350"}, gerente)
    assert updated.data["observations"] is None
    assert updated.data["value"] == 350.0

    assert expenses.delete_expense(expense["id"], gerente).data == {"id": expense["id"], "deleted": True}
    assert expenses.get_expense(expense["id"], gerente).error.code == ErrorCode.NOT_FOUND


def test_list_and_summarize_expenses(expenses, unit, users):
    gerente = users["gerente"]
    expenses.create_expense(expense_data(unit, date="2024-03-01", value=100, type="rent"), gerente)
    expenses.create_expense(expense_data(unit, date="2024-03-20", value=50), gerente)
    expenses.create_expense(expense_data(unit, date="2024-05-02", value=70), gerente)

    page = expenses.list_expenses({"unit_id": unit.id, "end_date": "2024-03-31"}, gerente).data
    assert page.total == 2
    assert [e["date"] for e in page.items] == [dt.date(2024, 3, 20), dt.date(2024, 3, 1)]

    summary = expenses.get_period_summary(unit.id, "2024-03-01", "2024-03-31", gerente).data
    assert summary["total"] == 150.0
    assert summary["by_type"]["rent"]["count"] == 1

    reversed_period = expenses.get_period_summary(unit.id, "2024-03-31", "2024-03-01", gerente)
    assert reversed_period.error.errors == ["start_date deve ser anterior a end_date"]


# ============================================================================
# RECURRING EXPENSES
# ============================================================================


def test_create_recurring_stores_first_installment(db, recurring, unit, users):
    result = recurring.create_recurring(recurring_data(unit), users["gerente"])

    assert result.ok
    series = result.data
    assert series["total_parcelas"] == 12
    assert series["parcelas_geradas"] == 1
    assert series["monthly_value"] == 2500.0
    assert series["next_due_date"] == dt.date(2024, 2, 29)

    [first] = installments(db, series["id"])
    assert first.installment_number == 1
    assert first.unit_id == unit.id
    assert first.description == "Aluguel do salão"
    assert series["expense_id"] == first.id


def test_custom_recurrence_duration(recurring, unit, users):
    data = recurring_data(unit, configuracao="personalizar", duracao_personalizada=18)
    assert recurring.create_recurring(data, users["gerente"]).data["total_parcelas"] == 18

    missing = recurring.create_recurring(recurring_data(unit, configuracao="personalizar"), users["gerente"])
    assert missing.error.errors == ['Duração personalizada é obrigatória quando configuração é "personalizar"']


def test_generate_due_installments_clamps_due_day(db, recurring, unit, users):
    gerente = users["gerente"]
    series = recurring.create_recurring(recurring_data(unit), gerente).data

    summary = recurring.generate_due_installments(gerente, unit_id=unit.id, up_to="2024-04-30").data
    assert summary == {"processed": 1, "generated": 3, "errors": []}

    rows = installments(db, series["id"])
    assert [row.date for row in rows] == [
        dt.date(2024, 1, 31),
        dt.date(2024, 2, 29),
        dt.date(2024, 3, 31),
        dt.date(2024, 4, 30),
    ]
    assert rows[1].description == "Aluguel do salão (2/12)"
    assert rows[1].status == "Pending"
    assert rows[1].type == "rent"
    assert rows[1].user_id == gerente.id

    # nothing new is due on a second run
    rerun = recurring.generate_due_installments(gerente, unit_id=unit.id, up_to="2024-04-30").data
    assert rerun["generated"] == 0


def test_generation_finishes_the_series(recurring, unit, users):
    gerente = users["gerente"]
    data = recurring_data(unit, start="2024-01-10", due_day=10, configuracao="mensal-8x")
    series = recurring.create_recurring(data, gerente).data

    recurring.generate_due_installments(gerente, unit_id=unit.id, up_to="2025-01-01")

    finished = recurring.get_recurring(series["id"], gerente).data
    assert finished["parcelas_geradas"] == 8
    assert finished["status"] == "finalizado"
    assert finished["data_fim"] == dt.date(2024, 8, 10)
    assert finished["next_due_date"] is None


def test_generation_for_every_unit_is_admin_only(recurring, unit, users):
    result = recurring.generate_due_installments(users["gerente"])
    assert result.error.errors == ["unit_id é obrigatório"]

    assert recurring.generate_due_installments(users["admin"], up_to="2024-01-01").ok


def test_pause_and_resume(recurring, unit, users):
    gerente = users["gerente"]
    series = recurring.create_recurring(recurring_data(unit), gerente).data

    assert recurring.pause_recurring(series["id"], gerente).data["status"] == "pausado"
    # paused series are skipped
    skipped = recurring.generate_due_installments(gerente, unit_id=unit.id, up_to="2024-12-31").data
    assert skipped["processed"] == 0

    again = recurring.pause_recurring(series["id"], gerente)
    assert again.error.message == "Recorrência está pausado e não pode ser alterada para pausado"

    assert recurring.resume_recurring(series["id"], gerente).data["status"] == "ativo"


def test_cancel_series_drops_future_pending_installments(db, recurring, unit, users):
    gerente = users["gerente"]
    today = dt.date.today()
    start = (today.replace(day=1) + dt.timedelta(days=32)).replace(day=1)
    data = recurring_data(unit, start=start.isoformat(), due_day=1)
    series = recurring.create_recurring(data, gerente).data
    recurring.generate_due_installments(gerente, unit_id=unit.id, up_to=start + dt.timedelta(days=70))
    assert len(installments(db, series["id"])) == 3

    result = recurring.cancel_recurring_series(series["id"], gerente)

    assert result.data == {"id": series["id"], "cancelled": True, "removed_installments": 3}
    assert installments(db, series["id"]) == []
    assert len(installments(db, series["id"], active_only=False)) == 3
    assert recurring.get_recurring(series["id"], gerente).data["status"] == "finalizado"

    assert recurring.cancel_recurring_series(series["id"], gerente).error.message == "Recorrência já está finalizada"


def test_recurring_series_of_another_unit_is_hidden(recurring, other_unit, users):
    series = recurring.create_recurring(recurring_data(other_unit), users["admin"]).data

    result = recurring.get_recurring(series["id"], users["gerente"])
    assert result.error.code == ErrorCode.PERMISSION_DENIED
    assert recurring.list_recurring(other_unit.id, users["admin"]).data[0]["id"] == series["id"]
