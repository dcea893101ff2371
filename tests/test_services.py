import uuid

import pytest

from barber_analytics.domain.bank_statements.service import BankStatementService
from barber_analytics.domain.expenses.service import ExpenseService
from barber_analytics.domain.products.service import ProductService
from barber_analytics.domain.stock.service import StockMovementService
from barber_analytics.domain.suppliers.service import SupplierService
from barber_analytics.models import AuditLog, Notification, StockMovement
from barber_analytics.shared.errors import MSG_INSUFFICIENT_STOCK, ErrorCode


def audit_entries(db, user, status):
    return db.query(AuditLog).filter(AuditLog.user_id == user.id, AuditLog.status == status).all()


def notifications(db, user):
    return [n.message for n in db.query(Notification).filter(Notification.user_id == user.id).all()]


def product_payload(unit, **overrides):
    data = {"unit_id": unit.id, "name": "Pomada Matte", "sku": "PM-01", "cost_price": 20, "selling_price": 45}
    data.update(overrides)
    return data


def any_id():
    return str(uuid.uuid4())


# ============================================================================
# DENIED ROLES NEVER REACH THE REPOSITORY
# ============================================================================


def create_product(db, spy, unit, user):
    return ProductService(db, repository=spy).create_product(product_payload(unit), user)


def update_product(db, spy, unit, user):
    return ProductService(db, repository=spy).update_product(any_id(), {"name": "Nova Pomada"}, user)


def delete_product(db, spy, unit, user):
    return ProductService(db, repository=spy).delete_product(any_id(), user)


def record_entry(db, spy, unit, user):
    payload = {"unit_id": unit.id, "product_id": any_id(), "reason": "COMPRA", "quantity": 1, "unit_cost": 1}
    return StockMovementService(db, repository=spy, products=spy).record_entry(payload, user)


def adjust_stock(db, spy, unit, user):
    payload = {"unit_id": unit.id, "product_id": any_id(), "quantity": -1, "notes": "Quebra"}
    return StockMovementService(db, repository=spy, products=spy).adjust_stock(payload, user)


def revert_movement(db, spy, unit, user):
    return StockMovementService(db, repository=spy, products=spy).revert_movement(any_id(), user)


def create_supplier(db, spy, unit, user):
    return SupplierService(db, repository=spy).create_supplier({"unit_id": unit.id, "name": "Alfa"}, user)


def create_expense(db, spy, unit, user):
    return ExpenseService(db, repository=spy).create_expense({"unit_id": unit.id}, user)


def import_statements(db, spy, unit, user):
    return BankStatementService(db, repository=spy).import_statements(unit.id, [{}], user)


@pytest.mark.parametrize(
    "role, operation",
    [
        ("barbeiro", create_product),
        ("recepcionista", create_product),
        ("barbeiro", update_product),
        ("recepcionista", delete_product),
        ("recepcionista", record_entry),
        ("barbeiro", adjust_stock),
        ("barbeiro", revert_movement),
        ("barbeiro", create_supplier),
        ("recepcionista", create_supplier),
        ("barbeiro", create_expense),
        ("recepcionista", import_statements),
    ],
)
def test_denied_role_is_audited_and_stops_before_the_repository(db, unit, users, spy, role, operation):
    user = users[role]

    result = operation(db, spy, unit, user)

    assert result.data is None
    assert result.error.code == ErrorCode.PERMISSION_DENIED
    assert spy.calls == []
    assert len(audit_entries(db, user, "error")) == 1
    assert notifications(db, user) == [result.error.message]


def test_manager_of_another_unit_is_denied(db, unit, users, spy):
    result = create_product(db, spy, unit, users["outsider"])

    assert result.error.code == ErrorCode.PERMISSION_DENIED
    assert result.error.message == "Sem permissão para gerenciar produtos desta unidade"
    assert spy.calls == []


# ============================================================================
# PRODUCTS
# ============================================================================


def test_create_product_notifies_and_audits(db, unit, users):
    gerente = users["gerente"]

    result = ProductService(db).create_product(product_payload(unit, sku="pm-01"), gerente)

    assert result.ok
    assert result.data["sku"] == "PM-01"
    assert result.data["created_by"] == gerente.id
    assert result.data["stock_status"] == "CRITICAL"
    assert notifications(db, gerente) == ["Produto criado com sucesso"]
    [entry] = audit_entries(db, gerente, "success")
    assert entry.action == "create"
    assert entry.resource == "products"
    assert entry.resource_id == result.data["id"]


def test_create_product_rejects_invalid_payload(db, unit, users):
    result = ProductService(db).create_product({"unit_id": unit.id, "name": "ab"}, users["gerente"])

    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.errors == ["Nome deve ter pelo menos 3 caracteres"]
    assert len(audit_entries(db, users["gerente"], "error")) == 1


def test_create_product_with_taken_sku(db, unit, users, make_product):
    make_product(sku="PM-01")

    result = ProductService(db).create_product(product_payload(unit), users["gerente"])

    assert result.error.code == ErrorCode.CONSTRAINT_VIOLATION
    assert result.error.message == 'SKU "PM-01" já está em uso nesta unidade'


def test_admin_manages_any_unit(db, other_unit, users):
    result = ProductService(db).create_product(product_payload(other_unit), users["admin"])
    assert result.ok


def test_update_and_adjust_product(db, users, make_product):
    product = make_product(current_stock=4)
    service = ProductService(db)
    gerente = users["gerente"]

    updated = service.update_product(product.id, {"selling_price": "50", "notes": "Linha premium"}, gerente)
    assert updated.data["selling_price"] == 50.0
    assert updated.data["notes"] == "Linha premium"

    assert service.adjust_stock(product.id, 6, "add", gerente).data["current_stock"] == 10
    assert service.adjust_stock(product.id, -1, "SET", gerente).error.errors == ["Quantidade não pode ser negativa"]
    assert service.adjust_stock(product.id, 11, "SUBTRACT", gerente).error.message == MSG_INSUFFICIENT_STOCK


def test_product_queries(db, unit, users, make_product):
    make_product(name="Cera Matte", current_stock=0)
    make_product(name="Gel Fixador", current_stock=2)
    make_product(name="Shampoo", current_stock=20)
    service = ProductService(db)
    barbeiro = users["barbeiro"]

    page = service.get_products({"unit_id": unit.id, "page_size": 2}, barbeiro).data
    assert page.total == 3
    assert [p["name"] for p in page.items] == ["Cera Matte", "Gel Fixador"]

    # below the minimum, the empty ones included
    assert [p["name"] for p in service.get_low_stock_products(unit.id, barbeiro).data] == ["Cera Matte", "Gel Fixador"]
    assert [p["name"] for p in service.get_out_of_stock_products(unit.id, barbeiro).data] == ["Cera Matte"]
    assert service.get_products({}, barbeiro).error.errors == ["unit_id é obrigatório"]


def test_missing_product_is_not_found(db, users):
    result = ProductService(db).get_product_by_id(any_id(), users["gerente"])
    assert result.error.code == ErrorCode.NOT_FOUND


MISSING_TARGET_OPERATIONS = {
    "update_product": lambda db, unit, user, missing: ProductService(db).update_product(missing, {"name": "Gel"}, user),
    "adjust_product_stock": lambda db, unit, user, missing: ProductService(db).adjust_stock(missing, 1, "add", user),
    "delete_product": lambda db, unit, user, missing: ProductService(db).delete_product(missing, user),
    "record_exit": lambda db, unit, user, missing: StockMovementService(db).record_exit(
        {"unit_id": unit.id, "product_id": missing, "reason": "VENDA", "quantity": 1}, user
    ),
    "adjust_stock": lambda db, unit, user, missing: StockMovementService(db).adjust_stock(
        {"unit_id": unit.id, "product_id": missing, "quantity": -1, "notes": "Quebra"}, user
    ),
    "update_notes": lambda db, unit, user, missing: StockMovementService(db).update_notes(missing, "Conferido", user),
    "revert_movement": lambda db, unit, user, missing: StockMovementService(db).revert_movement(missing, user),
    "update_supplier": lambda db, unit, user, missing: SupplierService(db).update_supplier(missing, {"name": "Alfa"}, user),
    "delete_supplier_contact": lambda db, unit, user, missing: SupplierService(db).delete_contact(missing, user),
    "delete_expense": lambda db, unit, user, missing: ExpenseService(db).delete_expense(missing, user),
    "reconcile_statement": lambda db, unit, user, missing: BankStatementService(db).reconcile(missing, user),
}


@pytest.mark.parametrize("operation", list(MISSING_TARGET_OPERATIONS.values()), ids=list(MISSING_TARGET_OPERATIONS))
def test_missing_target_is_notified_and_audited(db, unit, users, operation):
    gerente = users["gerente"]
    missing = any_id()

    result = operation(db, unit, gerente, missing)

    assert result.error.code == ErrorCode.NOT_FOUND
    assert notifications(db, gerente) == [result.error.message]
    [entry] = audit_entries(db, gerente, "error")
    assert entry.resource_id == missing
    assert entry.details == {"error": result.error.message}


# ============================================================================
# STOCK MOVEMENTS
# ============================================================================


def stock_of(db, product):
    db.refresh(product)
    return product.current_stock


def test_entries_and_exits_track_stock(db, unit, users, make_product):
    product = make_product()
    service = StockMovementService(db)
    barbeiro = users["barbeiro"]

    entry = service.record_entry(
        {"unit_id": unit.id, "product_id": product.id, "reason": "COMPRA", "quantity": 10, "unit_cost": 12.5}, barbeiro
    )
    assert entry.ok
    assert entry.data["total_cost"] == 125.0
    assert entry.data["performed_by"] == barbeiro.id
    assert stock_of(db, product) == 10

    exit_ = service.record_exit({"unit_id": unit.id, "product_id": product.id, "reason": "VENDA", "quantity": 3}, barbeiro)
    assert exit_.data["movement_type"] == "SAIDA"
    assert stock_of(db, product) == 7

    too_much = service.record_exit(
        {"unit_id": unit.id, "product_id": product.id, "reason": "VENDA", "quantity": 8}, barbeiro
    )
    assert too_much.error.code == ErrorCode.VALIDATION_ERROR
    assert too_much.error.message == "Estoque insuficiente. Disponível: 7, Solicitado: 8"
    assert stock_of(db, product) == 7


def test_adjustment_needs_notes(db, unit, users, make_product):
    product = make_product(current_stock=5)
    service = StockMovementService(db)
    gerente = users["gerente"]

    missing = service.adjust_stock({"unit_id": unit.id, "product_id": product.id, "quantity": -2}, gerente)
    assert missing.error.errors == ["Observações são obrigatórias para ajustes de estoque"]

    adjusted = service.adjust_stock(
        {"unit_id": unit.id, "product_id": product.id, "quantity": -2, "notes": "Contagem física"}, gerente
    )
    assert adjusted.data["movement_type"] == "SAIDA"
    assert adjusted.data["reason"] == "AJUSTE"
    assert adjusted.data["quantity"] == 2
    assert adjusted.data["notes"] == "[AJUSTE] Contagem física"
    assert stock_of(db, product) == 3


def test_revert_restores_stock_and_soft_delete_keeps_it(db, unit, users, make_product):
    product = make_product()
    service = StockMovementService(db)
    gerente = users["gerente"]
    base = {"unit_id": unit.id, "product_id": product.id}

    entry = service.record_entry({**base, "reason": "COMPRA", "quantity": 10, "unit_cost": 1}, gerente).data
    exit_ = service.record_exit({**base, "reason": "CONSUMO_INTERNO", "quantity": 4}, gerente).data
    assert stock_of(db, product) == 6

    assert service.revert_movement(exit_["id"], gerente).ok
    assert stock_of(db, product) == 10
    assert db.get(StockMovement, exit_["id"]) is None

    assert service.delete_movement(entry["id"], gerente).ok
    assert stock_of(db, product) == 10
    assert db.get(StockMovement, entry["id"]).is_active is False


def test_revert_cannot_leave_negative_stock(db, unit, users, make_product):
    product = make_product()
    service = StockMovementService(db)
    gerente = users["gerente"]
    base = {"unit_id": unit.id, "product_id": product.id}

    entry = service.record_entry({**base, "reason": "COMPRA", "quantity": 10, "unit_cost": 1}, gerente).data
    service.record_exit({**base, "reason": "VENDA", "quantity": 8}, gerente)

    result = service.revert_movement(entry["id"], gerente)
    assert result.error.message == MSG_INSUFFICIENT_STOCK
    assert stock_of(db, product) == 2


def test_barber_updates_movement_notes(db, unit, users, make_product):
    product = make_product()
    service = StockMovementService(db)
    barbeiro = users["barbeiro"]
    movement = service.record_entry(
        {"unit_id": unit.id, "product_id": product.id, "reason": "COMPRA", "quantity": 1, "unit_cost": 3}, barbeiro
    ).data

    result = service.update_notes(movement["id"], "Nota fiscal 123", barbeiro)
    assert result.data["notes"] == "Nota fiscal 123"
    assert service.update_notes(any_id(), "x", barbeiro).error.code == ErrorCode.NOT_FOUND


def test_stock_history_and_summary(db, unit, users, make_product):
    product = make_product()
    service = StockMovementService(db)
    gerente = users["gerente"]
    base = {"unit_id": unit.id, "product_id": product.id}
    service.record_entry({**base, "reason": "COMPRA", "quantity": 5, "unit_cost": 2}, gerente)
    service.record_exit({**base, "reason": "VENDA", "quantity": 1}, gerente)

    history = service.get_stock_history({"unit_id": unit.id, "movement_type": "ENTRADA"}, users["recepcionista"])
    assert history.data.total == 1
    assert history.data.items[0]["product_name"] == product.name

    assert len(service.get_product_history(product.id, gerente).data) == 2
    assert service.get_summary_by_period(unit.id, None, "2024-01-31", gerente).error.code == ErrorCode.VALIDATION_ERROR


# ============================================================================
# SUPPLIERS
# ============================================================================


def test_supplier_document_is_unique_per_unit(db, unit, other_unit, users):
    service = SupplierService(db)
    payload = {"unit_id": unit.id, "name": "Distribuidora Alfa", "cnpj_cpf": "11.222.333/0001-81"}

    created = service.create_supplier(payload, users["gerente"])
    assert created.ok
    assert created.data["cnpj_cpf"] == "11222333000181"

    duplicate = service.create_supplier({**payload, "name": "Alfa Filial"}, users["gerente"])
    assert duplicate.error.code == ErrorCode.CONSTRAINT_VIOLATION
    assert duplicate.error.message == "Fornecedor já existe com este CNPJ/CPF: Distribuidora Alfa"

    assert service.create_supplier({**payload, "unit_id": other_unit.id}, users["admin"]).ok


def test_supplier_contacts(db, unit, users):
    service = SupplierService(db)
    gerente = users["gerente"]
    supplier = service.create_supplier({"unit_id": unit.id, "name": "Distribuidora Beta"}, gerente).data

    contact = service.add_contact(supplier["id"], {"name": "Carla Souza", "role": "Vendedora"}, gerente)
    assert contact.ok
    assert service.update_contact(contact.data["id"], {"phone": "(31) 98888-7777"}, gerente).data["phone"] == "31988887777"
    assert service.delete_contact(contact.data["id"], gerente).ok

    assert service.get_supplier(supplier["id"], users["barbeiro"]).ok


def test_supplier_status_change(db, unit, users):
    service = SupplierService(db)
    gerente = users["gerente"]
    supplier = service.create_supplier({"unit_id": unit.id, "name": "Distribuidora Gama"}, gerente).data

    assert service.change_status(supplier["id"], "bloqueado", gerente).data["status"] == "BLOQUEADO"
    assert service.change_status(supplier["id"], "sumido", gerente).error.code == ErrorCode.VALIDATION_ERROR
