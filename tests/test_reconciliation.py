import datetime as dt
import uuid

import pytest

from barber_analytics.domain.reconciliation import matcher
from barber_analytics.domain.reconciliation.dtos import ConfirmMatchDTO, reconciliation_status
from barber_analytics.domain.reconciliation.service import ReconciliationService
from barber_analytics.models import AuditLog, BankStatement, Expense, Notification, Reconciliation
from barber_analytics.shared.errors import ErrorCode

ACCOUNT_ID = "6f1c2d3e-4b5a-4c7d-8e9f-0a1b2c3d4e5f"
MARCH_5 = dt.date(2024, 3, 5)


def any_id():
    return str(uuid.uuid4())


def notifications(db, user):
    return [n.message for n in db.query(Notification).filter(Notification.user_id == user.id).all()]


# ============================================================================
# MATCHER
# ============================================================================


def test_string_similarity():
    assert matcher.string_similarity("Aluguel", "aluguel!") == 1.0
    assert matcher.string_similarity("ab", "abc") == 0.0
    assert matcher.string_similarity("Energia", "Pagamento Energia") == 0.8
    assert matcher.string_similarity("kitten", "sitting") == pytest.approx(4 / 7)
    assert matcher.string_similarity(None, "Aluguel") == 0.0


def test_amount_score():
    assert matcher.amount_score(100, 100) == (1.0, 0.0)
    assert matcher.amount_score(-100, 100) == (1.0, 0.0)
    assert matcher.amount_score(100, 98) == (0.7, 2)
    score, difference = matcher.amount_score(100, 99.5)
    assert score == pytest.approx(1 - 0.5 / 4.9875)
    assert difference == 0.5
    assert matcher.amount_score(100, 50) == (pytest.approx(0.1), 50)
    assert matcher.amount_score(0, 10) == (0.0, None)


def test_date_score():
    assert matcher.date_score(MARCH_5, MARCH_5) == (1.0, 0)
    assert matcher.date_score(MARCH_5, dt.date(2024, 3, 4)) == (0.7, 1)
    assert matcher.date_score(MARCH_5, dt.date(2024, 3, 7)) == (0.7, 2)
    assert matcher.date_score(MARCH_5, dt.date(2024, 3, 15)) == (pytest.approx(0.2), 10)
    assert matcher.date_score(MARCH_5, dt.date(2024, 4, 5)) == (0.0, 31)
    assert matcher.date_score(None, MARCH_5) == (0.0, None)


def test_party_weight_is_spread_when_statement_has_no_party():
    weights = matcher.NO_PARTY_WEIGHTS

    assert weights["party"] == 0.0
    assert sum(weights.values()) == pytest.approx(1.0)
    assert weights["description"] == pytest.approx(0.25 / 0.65)


def statement(description, amount, day, **extra):
    return {"id": any_id(), "description": description, "amount": amount, "type": "Debit", "date": day, **extra}


def entry(description, value, day, **extra):
    return {"id": any_id(), "kind": "Expense", "description": description, "value": value, "date": day, **extra}


def test_perfect_match_without_party_reaches_full_confidence():
    match = matcher.score_pair(statement("ALUGUEL", 1500, MARCH_5), entry("Aluguel", 1500, MARCH_5))

    assert match["confidence"] == 1.0
    assert match["confidence_level"] == "high"
    assert match["explanation"] == "Descrição 100% similar, Valor exato, Mesma data"


def test_party_counts_when_the_statement_has_one():
    same = matcher.score_pair(
        statement("ALUGUEL", 1500, MARCH_5, party_id="p1"), entry("Aluguel", 1500, MARCH_5, party_id="p1")
    )
    other = matcher.score_pair(
        statement("ALUGUEL", 1500, MARCH_5, party_id="p1"), entry("Aluguel", 1500, MARCH_5, party_id="p2")
    )

    assert same["confidence"] == 1.0
    assert same["explanation"].startswith("Mesmo favorecido")
    assert other["confidence"] == 0.65
    assert other["confidence_level"] == "medium"


def test_find_matches_groups_and_auto_matches():
    rent_line = statement("ALUGUEL", 1500, MARCH_5)
    power_line = statement("ENERGIA", 230.40, dt.date(2024, 3, 13))
    credit_line = {**statement("ALUGUEL", 1500, MARCH_5), "type": "Credit"}
    rent = entry("Aluguel", 1500, MARCH_5)
    power = entry("Conta de energia", 230.40, dt.date(2024, 3, 8))

    result = matcher.find_matches([rent_line, power_line, credit_line], [rent, power])

    groups = {group["statement_id"]: group for group in result["matches"]}
    assert set(groups) == {rent_line["id"], power_line["id"]}
    assert groups[rent_line["id"]]["auto_matched"] is True
    assert [m["entry_id"] for m in groups[rent_line["id"]]["matches"]] == [rent["id"]]
    # rent was claimed by the first line and is not offered again
    assert [m["entry_id"] for m in groups[power_line["id"]]["matches"]] == [power["id"]]
    assert groups[power_line["id"]]["best_match"]["confidence"] == 0.75
    assert groups[power_line["id"]]["auto_matched"] is False

    stats = result["statistics"]
    assert stats["total_statements"] == 3
    assert stats["total_entries"] == 2
    assert stats["auto_matches"] == 1
    assert stats["confidence_distribution"] == {"high": 1, "medium": 1, "low": 0}
    assert stats["match_rate"] == 0.67
    assert stats["auto_match_rate"] == 0.33


def test_find_matches_keeps_the_best_five():
    line = statement("ALUGUEL", 1500, MARCH_5)
    entries = [entry("Aluguel", 1500, MARCH_5) for _ in range(7)]

    [group] = matcher.find_matches([line], entries)["matches"]

    assert len(group["matches"]) == matcher.MAX_MATCHES
    assert group["best_match"]["entry_id"] == entries[0]["id"]


def test_confirm_dto_and_status():
    assert ConfirmMatchDTO({}).validate().errors == [
        "statement_id inválido ou ausente",
        "expense_id inválido ou ausente",
    ]
    assert ConfirmMatchDTO({"statement_id": any_id(), "expense_id": any_id(), "adjustment": "abc"}).validate().errors == [
        "Ajuste inválido: abc"
    ]
    assert ConfirmMatchDTO({"statement_id": any_id(), "expense_id": any_id()}).adjustment == 0.0
    assert reconciliation_status(0.01) == "Reconciled"
    assert reconciliation_status(-0.02) == "Divergent"


# ============================================================================
# SERVICE
# ============================================================================


@pytest.fixture
def service(db):
    return ReconciliationService(db)


@pytest.fixture
def make_statement(db, unit):
    def factory(description, amount, day=MARCH_5, kind="Debit", unit_id=None):
        line = BankStatement(
            bank_account_id=ACCOUNT_ID,
            unit_id=unit_id or unit.id,
            transaction_date=day,
            description=description,
            amount=amount,
            type=kind,
            hash_unique=uuid.uuid4().hex,
        )
        db.add(line)
        db.commit()
        db.refresh(line)
        return line

    return factory


@pytest.fixture
def make_expense(db, unit):
    def factory(description, value, day=MARCH_5, status="Pending", unit_id=None):
        expense = Expense(unit_id=unit_id or unit.id, description=description, value=value, date=day, status=status)
        db.add(expense)
        db.commit()
        db.refresh(expense)
        return expense

    return factory


def test_suggestions_skip_credits_and_cancelled_expenses(service, unit, users, make_statement, make_expense):
    rent_line = make_statement("ALUGUEL", 1500)
    make_statement("ALUGUEL", 1500, kind="Credit")
    rent = make_expense("Aluguel", 1500)
    make_expense("Aluguel", 1500, status="Cancelled")

    result = service.suggest_matches(unit.id, users["gerente"]).data

    [group] = result["matches"]
    assert group["statement_id"] == rent_line.id
    assert [m["entry_id"] for m in group["matches"]] == [rent.id]
    assert result["statistics"]["total_statements"] == 2
    assert result["statistics"]["total_entries"] == 1


def test_confirm_settles_the_expense(db, service, unit, users, make_statement, make_expense):
    gerente = users["gerente"]
    line = make_statement("ALUGUEL", 1500)
    rent = make_expense("Aluguel", 1500, day=dt.date(2024, 3, 1))

    link = service.confirm_match({"statement_id": line.id, "expense_id": rent.id, "notes": "Março"}, gerente)

    assert link.data["status"] == "Reconciled"
    assert link.data["difference"] == 0.0
    assert link.data["is_auto"] is False
    assert link.data["notes"] == "Março"
    db.refresh(rent)
    db.refresh(line)
    assert rent.status == "Paid"
    assert rent.actual_payment_date == MARCH_5
    assert line.reconciled is True
    assert line.status == "reconciled"
    assert line.reconciled_by == gerente.id
    assert notifications(db, gerente) == ["Extrato conciliado"]
    [entry] = db.query(AuditLog).filter(AuditLog.resource == "reconciliations").all()
    assert (entry.action, entry.status, entry.resource_id) == ("confirm", "success", link.data["id"])


def test_divergent_link_leaves_the_expense_open(db, service, unit, users, make_statement, make_expense):
    gerente = users["gerente"]
    line = make_statement("TARIFA FORNECEDOR", 102.5)
    fee = make_expense("Tarifa fornecedor", 100)

    divergent = service.confirm_match({"statement_id": line.id, "expense_id": fee.id}, gerente)
    assert divergent.data["status"] == "Divergent"
    assert divergent.data["difference"] == 2.5
    db.refresh(fee)
    assert fee.status == "Pending"
    assert fee.actual_payment_date is None

    assert service.undo_reconciliation(divergent.data["id"], gerente).data == {
        "id": divergent.data["id"],
        "deleted": True,
    }
    adjusted = service.confirm_match(
        {"statement_id": line.id, "expense_id": fee.id, "adjustment": "2.5"}, gerente
    )
    assert adjusted.data["status"] == "Reconciled"
    db.refresh(fee)
    assert fee.status == "Paid"


def test_confirm_rules(db, service, unit, other_unit, users, make_statement, make_expense):
    gerente = users["gerente"]
    line = make_statement("ALUGUEL", 1500)
    second_line = make_statement("ALUGUEL ABRIL", 1500, day=dt.date(2024, 4, 5))
    credit = make_statement("PIX RECEBIDO", 80, kind="Credit")
    rent = make_expense("Aluguel", 1500)
    elsewhere = make_expense("Aluguel", 1500, unit_id=other_unit.id)
    cancelled = make_expense("Aluguel", 1500, status="Cancelled")

    def confirm(statement_id, expense_id):
        return service.confirm_match({"statement_id": statement_id, "expense_id": expense_id}, gerente)

    assert confirm(credit.id, rent.id).error.message == "Apenas débitos podem ser conciliados com despesas"
    assert confirm(line.id, elsewhere.id).error.message == "Despesa não pertence à unidade do extrato"
    assert confirm(line.id, cancelled.id).error.message == "Despesa cancelada não pode ser conciliada"

    assert confirm(line.id, rent.id).ok
    again = confirm(line.id, rent.id)
    assert again.error.code == ErrorCode.VALIDATION_ERROR
    assert again.error.message == "Extrato já está conciliado"
    assert confirm(second_line.id, rent.id).error.message == "Despesa já está conciliada"

    failures = db.query(AuditLog).filter(AuditLog.resource == "reconciliations", AuditLog.status == "error").count()
    assert failures == 5
    assert db.query(Reconciliation).count() == 1


def test_confirm_rejects_invalid_payload(db, service, users):
    result = service.confirm_match({"statement_id": "x"}, users["gerente"])

    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.errors == ["statement_id inválido ou ausente", "expense_id inválido ou ausente"]


@pytest.mark.parametrize(
    "operation",
    [
        lambda service, line, user, missing: service.confirm_match(
            {"statement_id": missing, "expense_id": any_id()}, user
        ),
        lambda service, line, user, missing: service.confirm_match(
            {"statement_id": line.id, "expense_id": missing}, user
        ),
        lambda service, line, user, missing: service.undo_reconciliation(missing, user),
    ],
    ids=["confirm-statement", "confirm-expense", "undo"],
)
def test_missing_target_is_notified_and_audited(db, users, make_statement, operation):
    gerente = users["gerente"]
    line = make_statement("ALUGUEL", 1500)
    missing = any_id()

    result = operation(ReconciliationService(db), line, gerente, missing)

    assert result.error.code == ErrorCode.NOT_FOUND
    assert notifications(db, gerente) == [result.error.message]
    [entry] = db.query(AuditLog).filter(AuditLog.status == "error").all()
    assert entry.resource == "reconciliations"
    assert entry.resource_id == missing


def test_permissions(service, unit, users):
    assert service.suggest_matches(unit.id, users["barbeiro"]).error.code == ErrorCode.PERMISSION_DENIED
    assert service.suggest_matches(unit.id, users["outsider"]).error.code == ErrorCode.PERMISSION_DENIED
    assert service.auto_reconcile(unit.id, users["recepcionista"]).error.code == ErrorCode.PERMISSION_DENIED
    assert service.suggest_matches("", users["gerente"]).error.errors == ["unit_id é obrigatório"]
    assert service.suggest_matches(unit.id, users["gerente"], {"start_date": "05/03/2024"}).error.errors == [
        "start_date inválida (use YYYY-MM-DD)"
    ]


def test_auto_reconcile_links_only_high_confidence(db, service, unit, users, make_statement, make_expense):
    gerente = users["gerente"]
    make_statement("ALUGUEL", 1500)
    make_statement("ENERGIA", 230.40, day=dt.date(2024, 3, 13))
    rent = make_expense("Aluguel", 1500)
    power = make_expense("Conta de energia", 230.40, day=dt.date(2024, 3, 8))

    summary = service.auto_reconcile(unit.id, gerente).data

    assert (summary["reconciled"], summary["pending"], summary["errors"]) == (1, 1, [])
    [link] = summary["reconciliations"]
    assert (link["reference_id"], link["is_auto"], link["confidence"]) == (rent.id, True, 1.0)
    db.refresh(rent)
    db.refresh(power)
    assert rent.status == "Paid"
    assert power.status == "Pending"
    assert "1 extrato(s) conciliado(s) automaticamente" in notifications(db, gerente)

    assert service.auto_reconcile(unit.id, gerente).data["reconciled"] == 0


def test_undo_puts_the_statement_back(db, service, unit, users, make_statement, make_expense):
    gerente = users["gerente"]
    line = make_statement("ALUGUEL", 1500)
    rent = make_expense("Aluguel", 1500)
    link = service.confirm_match({"statement_id": line.id, "expense_id": rent.id}, gerente).data

    service.undo_reconciliation(link["id"], gerente)

    db.refresh(line)
    db.refresh(rent)
    assert (line.reconciled, line.status, line.reconciled_by) == (False, "pending", None)
    assert rent.status == "Paid"
    assert db.query(Reconciliation).count() == 0
    [group] = service.suggest_matches(unit.id, gerente).data["matches"]
    assert group["statement_id"] == line.id


def test_statistics_and_listing(service, unit, users, make_statement, make_expense):
    gerente = users["gerente"]
    rent_line = make_statement("ALUGUEL", 1500)
    make_statement("ENERGIA", 230.40)
    fee_line = make_statement("TARIFA FORNECEDOR", 102.5)
    service.confirm_match({"statement_id": rent_line.id, "expense_id": make_expense("Aluguel", 1500).id}, gerente)
    service.confirm_match({"statement_id": fee_line.id, "expense_id": make_expense("Tarifa", 100).id}, gerente)

    stats = service.get_statistics(unit.id, gerente).data
    assert stats == {
        "total_statements": 3,
        "total_reconciled": 2,
        "total_pending": 1,
        "reconciliation_percentage": 67,
        "total_amount": 1832.9,
        "reconciled_amount": 1602.5,
        "pending_amount": 230.4,
        "divergent_count": 1,
        "divergent_amount": 2.5,
    }

    assert service.list_reconciliations(unit.id, {}, gerente).data.total == 2
    divergent = service.list_reconciliations(unit.id, {"status": "Divergent"}, gerente).data
    assert [item["bank_statement_id"] for item in divergent.items] == [fee_line.id]
    assert service.list_reconciliations(unit.id, {"status": "X"}, gerente).error.errors == ["Status inválido: X"]


# ============================================================================
# API
# ============================================================================


def test_reconciliation_api_flow(client, auth, unit, users, make_statement, make_expense):
    headers = auth(users["gerente"])
    line = make_statement("ALUGUEL", 1500)
    rent = make_expense("Aluguel", 1500)

    suggestions = client.get("/api/reconciliation/suggestions", params={"unit_id": unit.id}, headers=headers)
    assert suggestions.status_code == 200
    [group] = suggestions.json()["data"]["matches"]
    assert group["best_match"]["entry_id"] == rent.id

    confirmed = client.post(
        "/api/reconciliation/confirm", json={"statement_id": line.id, "expense_id": rent.id}, headers=headers
    )
    assert confirmed.status_code == 201
    link_id = confirmed.json()["data"]["id"]
    assert confirmed.json()["data"]["status_label"] == "Conciliado"

    stats = client.get("/api/reconciliation/statistics", params={"unit_id": unit.id}, headers=headers)
    assert stats.json()["data"]["total_reconciled"] == 1

    listed = client.get("/api/reconciliation", params={"unit_id": unit.id}, headers=headers)
    assert listed.json()["pagination"]["total"] == 1

    undone = client.delete(f"/api/reconciliation/{link_id}", headers=headers)
    assert undone.json()["data"] == {"id": link_id, "deleted": True}

    auto = client.post("/api/reconciliation/auto", params={"unit_id": unit.id}, headers=headers)
    assert auto.json()["data"]["reconciled"] == 1


def test_reconciliation_api_errors(client, auth, unit, users):
    missing = client.delete(f"/api/reconciliation/{any_id()}", headers=auth(users["gerente"]))
    assert missing.status_code == 404

    denied = client.get(
        "/api/reconciliation/suggestions", params={"unit_id": unit.id}, headers=auth(users["barbeiro"])
    )
    assert denied.status_code == 400
    assert denied.json()["detail"]["code"] == "PERMISSION_DENIED"
