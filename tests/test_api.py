import uuid

from barber_analytics.auth import create_access_token
from barber_analytics.domain.products.router import get_product_service
from barber_analytics.main import app
from barber_analytics.shared.errors import MSG_UNKNOWN, ErrorCode
from barber_analytics.shared.result import Result


def test_root_and_health(client):
    assert client.get("/").json() == {"message": "Barber Analytics Pro API is running"}

    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "connected"}


def test_security_headers_skip_health(client):
    headers = client.get("/").headers
    assert headers["X-Frame-Options"] == "DENY"
    assert headers["X-Content-Type-Options"] == "nosniff"
    assert headers["Cache-Control"] == "no-store, no-cache, must-revalidate"

    assert "X-Frame-Options" not in client.get("/health").headers


# ============================================================================
# AUTHENTICATION
# ============================================================================


def test_missing_token_is_401(client, unit):
    response = client.get("/api/products", params={"unit_id": unit.id})
    assert response.status_code == 401


def test_malformed_token_is_401(client, unit):
    response = client.get("/api/products", headers={"Authorization": "Bearer abc"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token format. Expected a valid JWT token."


def test_badly_signed_token_is_401(client):
    response = client.get("/api/products", headers={"Authorization": "Bearer a.b.c"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Sessão expirada. Faça login novamente."


def test_token_for_unknown_user_is_401(client):
    token = create_access_token(str(uuid.uuid4()), "gerente")
    response = client.get("/api/products", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


# ============================================================================
# PRODUCTS
# ============================================================================


def test_create_product(client, auth, unit, users):
    payload = {"unit_id": unit.id, "name": "Pomada Matte", "sku": "pm-01", "cost_price": "20", "selling_price": 45}

    response = client.post("/api/products", json=payload, headers=auth(users["gerente"]))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["sku"] == "PM-01"
    assert data["unit_id"] == unit.id
    assert data["stock_status"] == "CRITICAL"


def test_create_product_validation_error(client, auth, unit, users):
    response = client.post("/api/products", json={"unit_id": unit.id}, headers=auth(users["gerente"]))

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == ErrorCode.VALIDATION_ERROR.value
    assert detail["message"] == detail["errors"][0]


def test_create_product_without_permission(client, auth, unit, users):
    payload = {"unit_id": unit.id, "name": "Pomada Matte"}

    response = client.post("/api/products", json=payload, headers=auth(users["barbeiro"]))

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == ErrorCode.PERMISSION_DENIED.value


def test_duplicate_sku_is_400(client, auth, unit, users, make_product):
    make_product(sku="PM-01")
    payload = {"unit_id": unit.id, "name": "Outra Pomada", "sku": "PM-01"}

    response = client.post("/api/products", json=payload, headers=auth(users["gerente"]))

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == ErrorCode.CONSTRAINT_VIOLATION.value
    assert detail["message"] == 'SKU "PM-01" já está em uso nesta unidade'


def test_unknown_product_is_404(client, auth, users):
    response = client.get(f"/api/products/{uuid.uuid4()}", headers=auth(users["gerente"]))

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == ErrorCode.NOT_FOUND.value


def test_list_products_paginates(client, auth, unit, users, make_product):
    for name in ("Cera", "Gel", "Pomada"):
        make_product(name=name)

    response = client.get(
        "/api/products", params={"unit_id": unit.id, "page_size": 2}, headers=auth(users["recepcionista"])
    )

    assert response.status_code == 200
    body = response.json()
    assert [item["name"] for item in body["data"]] == ["Cera", "Gel"]
    assert body["pagination"] == {"page": 1, "page_size": 2, "total": 3, "total_pages": 2}


def test_list_products_needs_a_unit(client, auth, users):
    response = client.get("/api/products", headers=auth(users["gerente"]))

    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "unit_id é obrigatório"


def test_product_statistics(client, auth, unit, users, make_product):
    make_product(current_stock=0)
    make_product(current_stock=10)

    response = client.get("/api/products-stats", params={"unit_id": unit.id}, headers=auth(users["gerente"]))

    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["total_products"] == 2
    assert stats["out_of_stock"] == 1


def test_product_lifecycle(client, auth, users, make_product):
    product = make_product(current_stock=2)
    headers = auth(users["gerente"])

    updated = client.patch(f"/api/products/{product.id}", json={"name": "Pomada Forte"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["data"]["name"] == "Pomada Forte"

    stocked = client.post(f"/api/products/{product.id}/stock", json={"quantity": 5, "operation": "add"}, headers=headers)
    assert stocked.json()["data"]["current_stock"] == 7

    deleted = client.delete(f"/api/products/{product.id}", headers=headers)
    assert deleted.json()["data"]["is_active"] is False

    restored = client.post(f"/api/products/{product.id}/restore", headers=headers)
    assert restored.json()["data"]["is_active"] is True


def test_malformed_body_is_400(client, auth, users, make_product):
    product = make_product()

    response = client.post(f"/api/products/{product.id}/stock", json={"operation": "ADD"}, headers=auth(users["gerente"]))

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == ErrorCode.VALIDATION_ERROR.value
    assert detail["errors"][0].startswith("quantity: ")


class BrokenProductService:
    def create_product(self, data, user):
        return Result.fail(ErrorCode.UNKNOWN_ERROR, MSG_UNKNOWN, details="connection reset")


def test_unknown_error_is_500(client, auth, unit, users):
    app.dependency_overrides[get_product_service] = BrokenProductService

    response = client.post("/api/products", json={"unit_id": unit.id, "name": "Gel"}, headers=auth(users["gerente"]))

    assert response.status_code == 500
    assert response.json()["detail"]["code"] == ErrorCode.UNKNOWN_ERROR.value


# ============================================================================
# OTHER DOMAINS
# ============================================================================


def test_record_stock_entry(client, auth, unit, users, make_product):
    product = make_product(current_stock=1)
    payload = {"unit_id": unit.id, "product_id": product.id, "reason": "COMPRA", "quantity": 4, "unit_cost": 10}

    response = client.post("/api/stock-movements/entries", json=payload, headers=auth(users["barbeiro"]))

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["movement_type"] == "ENTRADA"
    assert data["total_cost"] == 40.0
    assert data["performed_by"] == users["barbeiro"].id


def test_stock_exit_with_non_finite_quantity_is_400(client, auth, unit, users, make_product):
    product = make_product(current_stock=5)
    headers = auth(users["barbeiro"])

    for quantity in ("nan", "inf", "1e400"):
        payload = {"unit_id": unit.id, "product_id": product.id, "reason": "VENDA", "quantity": quantity}
        response = client.post("/api/stock-movements/exits", json=payload, headers=headers)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == ErrorCode.VALIDATION_ERROR.value
        assert detail["errors"] == ["quantity deve ser maior que 0"]

    entry = {"unit_id": unit.id, "product_id": product.id, "reason": "COMPRA", "quantity": 1, "unit_cost": "nan"}
    response = client.post("/api/stock-movements/entries", json=entry, headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"]["errors"] == ["unit_cost deve ser maior ou igual a 0"]


def test_create_supplier(client, auth, unit, users):
    payload = {"unit_id": unit.id, "name": "Distribuidora Alfa", "cnpj_cpf": "11.222.333/0001-81"}

    response = client.post("/api/suppliers", json=payload, headers=auth(users["gerente"]))

    assert response.status_code == 201
    assert response.json()["data"]["cnpj_cpf"] == "11222333000181"


def test_create_expense(client, auth, unit, users):
    payload = {
        "unit_id": unit.id,
        "value": 320,
        "date": "2024-03-10",
        "status": "Pending",
        "description": "Conta de energia",
        "type": "utilities",
    }

    response = client.post("/api/expenses", json=payload, headers=auth(users["gerente"]))

    assert response.status_code == 201
    assert response.json()["data"]["value_formatted"] == "R$ 320,00"

    response = client.post("/api/expenses", json={**payload, "value": "nan"}, headers=auth(users["gerente"]))
    assert response.status_code == 400
    assert response.json()["detail"]["errors"] == ["value: Valor deve ser um número"]


def test_import_bank_statements(client, auth, unit, users):
    payload = {
        "unit_id": unit.id,
        "bank_account_id": str(uuid.uuid4()),
        "statements": [
            {"transaction_date": "2024-03-05", "description": "PIX Recebido", "amount": 150},
            {"transaction_date": "2024-03-05", "description": "PIX Recebido", "amount": 150},
        ],
    }

    response = client.post("/api/bank-statements/import", json=payload, headers=auth(users["gerente"]))

    assert response.status_code == 201
    assert response.json()["data"] == {"imported": 1, "duplicates": 1, "invalid": 0, "errors": []}


# ============================================================================
# NOTIFICATIONS AND AUDIT
# ============================================================================


def test_notifications_follow_operations(client, auth, unit, users):
    headers = auth(users["gerente"])
    client.post("/api/products", json={"unit_id": unit.id, "name": "Pomada Matte"}, headers=headers)

    listing = client.get("/api/notifications", headers=headers).json()
    assert listing["unread_count"] == 1
    [notification] = listing["data"]
    assert notification["message"] == "Produto criado com sucesso"
    assert notification["type"] == "success"

    read = client.post(f"/api/notifications/{notification['id']}/read", headers=headers)
    assert read.json()["data"]["is_read"] is True
    assert client.get("/api/notifications", headers=headers).json()["unread_count"] == 0

    missing = client.post(f"/api/notifications/{uuid.uuid4()}/read", headers=headers)
    assert missing.status_code == 404


def test_audit_logs_are_restricted(client, auth, unit, users):
    client.post("/api/products", json={"unit_id": unit.id, "name": "Pomada Matte"}, headers=auth(users["gerente"]))

    allowed = client.get("/api/audit-logs", params={"unit_id": unit.id}, headers=auth(users["gerente"]))
    assert allowed.status_code == 200
    [entry] = allowed.json()["data"]
    assert entry["action"] == "create"
    assert entry["resource"] == "products"
    assert entry["status"] == "success"

    denied = client.get("/api/audit-logs", headers=auth(users["barbeiro"]))
    assert denied.status_code == 400
    assert denied.json()["detail"]["code"] == ErrorCode.PERMISSION_DENIED.value
