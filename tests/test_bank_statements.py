import datetime as dt
import uuid

import pytest

from barber_analytics.domain.bank_statements.dtos import (
    CreateBankStatementDTO,
    UpdateBankStatementDTO,
    generate_statement_hash,
    normalize_description,
)
from barber_analytics.domain.bank_statements.service import BankStatementService
from barber_analytics.models import BankStatement
from barber_analytics.shared.errors import ErrorCode

ACCOUNT_ID = "6f1c2d3e-4b5a-4c7d-8e9f-0a1b2c3d4e5f"


@pytest.fixture
def service(db):
    return BankStatementService(db)


def line(day, description, amount, **extra):
    return {"transaction_date": day, "description": description, "amount": amount, **extra}


# ============================================================================
# HASH AND DTO
# ============================================================================


def test_hash_ignores_spacing_and_case_but_not_sign():
    base = generate_statement_hash(ACCOUNT_ID, dt.date(2024, 3, 5), 150, "PIX Recebido")

    assert normalize_description("  PIX   Recebido ") == "pix recebido"
    assert generate_statement_hash(ACCOUNT_ID, "2024-03-05", 150.0, " pix  recebido ") == base
    assert generate_statement_hash(ACCOUNT_ID, dt.date(2024, 3, 5), -150, "PIX Recebido") != base
    assert generate_statement_hash(str(uuid.uuid4()), dt.date(2024, 3, 5), 150, "PIX Recebido") != base


def test_negative_amount_becomes_a_debit():
    dto = CreateBankStatementDTO(
        {
            "bank_account_id": ACCOUNT_ID,
            "unit_id": str(uuid.uuid4()),
            "transaction_date": "2024-03-05T10:30:00",
            "description": "Tarifa",
            "amount": "-12.5",
        }
    )

    assert dto.is_valid()
    data = dto.to_object()
    assert data["amount"] == 12.5
    assert data["type"] == "Debit"
    assert data["status"] == "pending"
    assert data["transaction_date"] == dt.date(2024, 3, 5)
    assert dto.signed_amount == -12.5
    assert dto.hash() == generate_statement_hash(ACCOUNT_ID, dt.date(2024, 3, 5), -12.5, "Tarifa")


def test_statement_dto_errors():
    base = {"bank_account_id": ACCOUNT_ID, "unit_id": str(uuid.uuid4()), "transaction_date": "2024-03-05"}

    assert CreateBankStatementDTO({**base, "amount": 10}).validate().errors == [
        "Campo obrigatório 'description' está ausente ou vazio"
    ]
    assert CreateBankStatementDTO({**base, "description": "PIX", "amount": "abc"}).validate().errors == [
        "Valor inválido: abc",
        "Tipo deve ser 'Credit' ou 'Debit': None",
    ]
    for amount in ("nan", "inf", "1e400"):
        assert CreateBankStatementDTO({**base, "description": "PIX", "amount": amount}).validate().errors == [
            f"Valor inválido: {amount}",
            "Tipo deve ser 'Credit' ou 'Debit': None",
        ]
    assert CreateBankStatementDTO({**base, "description": "PIX", "amount": -5, "type": "Credit"}).validate().errors == [
        "Valor negativo não pode ser um crédito"
    ]
    assert CreateBankStatementDTO(
        {**base, "transaction_date": "05/03/2024", "description": "PIX", "amount": 5}
    ).validate().errors == ["Data da transação inválida: 05/03/2024"]


def test_update_statement_dto():
    assert UpdateBankStatementDTO({}).validate().errors == ["Nenhum campo para atualizar"]
    assert UpdateBankStatementDTO({"status": "done"}).validate().errors == ["Status inválido: done"]
    assert UpdateBankStatementDTO({"amount": 1, "observations": None}).to_object() == {"observations": None}


# ============================================================================
# IMPORT
# ============================================================================


def test_import_reports_duplicates_and_invalid_rows(db, service, unit, users):
    rows = [
        line("2024-03-05", "PIX Recebido", "150.00"),
        line("2024-03-05", " pix  recebido ", 150),
        line("2024-03-06", "Tarifa bancária", -12.5),
        line("2024-03-07", "", 10),
    ]

    result = service.import_statements(unit.id, rows, users["gerente"], bank_account_id=ACCOUNT_ID)

    assert result.data == {
        "imported": 2,
        "duplicates": 1,
        "invalid": 1,
        "errors": ["Extrato 4: Campo obrigatório 'description' está ausente ou vazio"],
    }
    assert db.query(BankStatement).filter(BankStatement.unit_id == unit.id).count() == 2


def test_reimport_counts_stored_rows_as_duplicates(service, unit, users):
    rows = [line("2024-03-05", "PIX Recebido", 150)]
    service.import_statements(unit.id, rows, users["gerente"], bank_account_id=ACCOUNT_ID)

    again = service.import_statements(unit.id, rows, users["gerente"], bank_account_id=ACCOUNT_ID)
    assert again.data["imported"] == 0
    assert again.data["duplicates"] == 1


def test_credit_and_debit_of_same_value_are_distinct(service, unit, users):
    rows = [line("2024-03-05", "Transferência", 50), line("2024-03-05", "Transferência", -50)]

    result = service.import_statements(unit.id, rows, users["gerente"], bank_account_id=ACCOUNT_ID)
    assert result.data["imported"] == 2


def test_rows_may_carry_their_own_account(service, unit, users):
    other_account = str(uuid.uuid4())
    rows = [line("2024-03-05", "PIX", 20), line("2024-03-05", "PIX", 20, bank_account_id=other_account)]

    result = service.import_statements(unit.id, rows, users["admin"], bank_account_id=ACCOUNT_ID)
    assert result.data["imported"] == 2


def test_empty_import_is_rejected(service, unit, users):
    result = service.import_statements(unit.id, [], users["gerente"])
    assert result.error.errors == ["Nenhum extrato para importar"]


# ============================================================================
# RECONCILIATION AND QUERIES
# ============================================================================


def imported_ids(service, unit, user, rows):
    service.import_statements(unit.id, rows, user, bank_account_id=ACCOUNT_ID)
    page = service.list_statements({"unit_id": unit.id}, user).data
    return [item["id"] for item in page.items]


def test_reconcile_once(service, unit, users):
    gerente = users["gerente"]
    [statement_id] = imported_ids(service, unit, gerente, [line("2024-03-05", "PIX Recebido", 150)])

    reconciled = service.reconcile(statement_id, gerente)
    assert reconciled.data["reconciled"] is True
    assert reconciled.data["status"] == "reconciled"
    assert reconciled.data["reconciled_by"] == gerente.id

    twice = service.reconcile(statement_id, gerente)
    assert twice.error.code == ErrorCode.VALIDATION_ERROR
    assert twice.error.message == "Extrato já está conciliado"


def test_update_and_delete_statement(service, unit, users):
    gerente = users["gerente"]
    [statement_id] = imported_ids(service, unit, gerente, [line("2024-03-05", "PIX Recebido", 150)])

    updated = service.update_statement(statement_id, {"observations": "Cliente João"}, gerente)
    assert updated.data["observations"] == "Cliente João"

    assert service.delete_statement(statement_id, gerente).ok
    assert service.get_statement(statement_id, gerente).error.code == ErrorCode.NOT_FOUND


def test_deleted_statement_still_blocks_reimport(service, unit, users):
    gerente = users["gerente"]
    rows = [line("2024-03-05", "PIX Recebido", 150)]
    [statement_id] = imported_ids(service, unit, gerente, rows)
    service.delete_statement(statement_id, gerente)

    again = service.import_statements(unit.id, rows, gerente, bank_account_id=ACCOUNT_ID)
    assert again.data["duplicates"] == 1


def test_period_summary(service, unit, users):
    gerente = users["gerente"]
    rows = [
        line("2024-03-05", "PIX Recebido", 150),
        line("2024-03-06", "Tarifa", -12.5),
        line("2024-04-01", "PIX Recebido", 80),
    ]
    service.import_statements(unit.id, rows, gerente, bank_account_id=ACCOUNT_ID)

    summary = service.get_period_summary(unit.id, "2024-03-01", "2024-03-31", gerente).data
    assert summary["total_credits"] == 150.0
    assert summary["total_debits"] == 12.5
    assert summary["balance"] == 137.5

    listing = service.list_statements({"unit_id": unit.id, "type": "Debit"}, gerente).data
    assert [item["signed_amount"] for item in listing.items] == [-12.5]
