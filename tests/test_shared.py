import pytest
from sqlalchemy.exc import NoResultFound, OperationalError, ProgrammingError, SQLAlchemyError

from barber_analytics.domain.products.repository import ProductRepository
from barber_analytics.shared.errors import ErrorCode, ServiceError, normalize_db_error
from barber_analytics.shared.formatters import (
    format_cep,
    format_currency,
    format_date,
    format_document,
    format_percent,
    format_phone,
    truncate,
)
from barber_analytics.shared.permissions import Permission, Role, can_access_unit, has_permission
from barber_analytics.shared.repository import repository_operation
from barber_analytics.shared.result import Page, Result
from barber_analytics.shared.sanitization import clean_code, clean_email, clean_name, clean_text
from barber_analytics.shared.validators import (
    is_in_range,
    is_valid_cnpj,
    is_valid_cpf,
    is_valid_date,
    is_valid_email,
    is_valid_phone,
    is_valid_uuid,
    to_int,
    to_number,
)


def test_document_validators():
    assert is_valid_cpf("529.982.247-25")
    assert not is_valid_cpf("111.111.111-11")
    assert not is_valid_cpf("529.982.247-26")
    assert is_valid_cnpj("11.222.333/0001-81")
    assert not is_valid_cnpj("11.222.333/0001-82")
    assert not is_valid_cnpj("11111111111111")


def test_scalar_validators():
    assert is_valid_uuid("3f2b8c1e-9d4a-4c6b-8e2f-1a2b3c4d5e6f")
    assert not is_valid_uuid("3f2b8c1e-9d4a-1c6b-8e2f-1a2b3c4d5e6f")
    assert not is_valid_uuid(None)
    assert is_valid_email("joao@barber.com")
    assert not is_valid_email("joao@barber")
    assert is_valid_phone("(11) 98765-4321")
    assert not is_valid_phone("(01) 98765-4321")
    assert is_valid_date("2024-02-29")
    assert not is_valid_date("2023-02-29")
    assert not is_valid_date("29/02/2024")
    assert is_in_range(5, 1, 10)
    assert not is_in_range(True, 0, 10)


def test_number_coercion():
    assert to_number("12.5") == 12.5
    assert to_number("abc") is None
    assert to_number("", 0.0) == 0.0
    assert to_number(True) is None
    assert to_int("7.9") == 7
    assert to_int(None, 1) == 1


@pytest.mark.parametrize("value", ["nan", "inf", "-inf", "1e400", float("nan"), float("inf")])
def test_non_finite_numbers_are_not_numbers(value):
    assert to_number(value) is None
    assert to_number(value, 0.0) == 0.0
    assert to_int(value) is None
    assert to_int(value, 1) == 1


def test_formatters():
    assert format_currency(1234.56) == "R$ 1.234,56"
    assert format_currency(-10) == "-R$ 10,00"
    assert format_currency(None) == "R$ 0,00"
    assert format_percent(55.555, 1) == "55,6%"
    assert format_document("52998224725") == "529.982.247-25"
    assert format_document("11222333000181") == "11.222.333/0001-81"
    assert format_phone("11987654321") == "(11) 98765-4321"
    assert format_phone("1133334444") == "(11) 3333-4444"
    assert format_cep("30130000") == "30130-000"
    assert format_date("2024-03-05") == "05/03/2024"
    assert truncate("a" * 60, 10) == "a" * 10 + "..."


def test_sanitization():
    assert clean_text("  Compra P&G <caixa> ") == "Compra P&G <caixa>"
    assert clean_text("   ") is None
    assert clean_name("  João   da  Silva ") == "João da Silva"
    assert clean_email(" Joao@Barber.COM ") == "joao@barber.com"
    assert clean_code(" mg ") == "MG"


def test_result_never_holds_data_and_error():
    error = ServiceError(code=ErrorCode.UNKNOWN_ERROR, message="x")
    with pytest.raises(ValueError):
        Result(data={"id": 1}, error=error)

    ok = Result.success({"id": 1})
    assert ok.ok and ok.error is None

    failed = Result.validation_failed(["primeiro", "segundo"])
    assert failed.data is None
    assert failed.error.code == ErrorCode.VALIDATION_ERROR
    assert failed.error.message == "primeiro"
    assert failed.error.to_dict() == {"code": "VALIDATION_ERROR", "message": "primeiro", "errors": ["primeiro", "segundo"]}


def test_page_pagination():
    page = Page(items=[1, 2], total=41, page=2, page_size=20)
    assert page.total_pages == 3
    assert page.pagination() == {"page": 2, "page_size": 20, "total": 41, "total_pages": 3}


@pytest.mark.parametrize(
    "exc, code",
    [
        (NoResultFound(), ErrorCode.NOT_FOUND),
        (OperationalError("SELECT 1", {}, Exception("server closed the connection")), ErrorCode.NETWORK_ERROR),
        (ProgrammingError("SELECT 1", {}, Exception("permission denied for table products")), ErrorCode.PERMISSION_DENIED),
        (ProgrammingError("INSERT", {}, Exception("UNIQUE constraint failed: products.sku")), ErrorCode.CONSTRAINT_VIOLATION),
        (ProgrammingError("INSERT", {}, Exception("FOREIGN KEY constraint failed")), ErrorCode.CONSTRAINT_VIOLATION),
        (ProgrammingError("INSERT", {}, Exception("CHECK constraint failed: quantity")), ErrorCode.VALIDATION_ERROR),
        (SQLAlchemyError("something odd"), ErrorCode.UNKNOWN_ERROR),
    ],
)
def test_normalize_db_error(exc, code):
    assert normalize_db_error(exc).code == code


def test_normalize_unique_violation_uses_column_message():
    exc = ProgrammingError("INSERT", {}, Exception("UNIQUE constraint failed: products.unit_id, products.sku"))
    error = normalize_db_error(exc, unique_messages={"sku": "SKU já existe para esta unidade"})
    assert error.message == "SKU já existe para esta unidade"


class BrokenSession:
    def __init__(self):
        self.rolled_back = False

    def query(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("could not connect to server"))

    def rollback(self):
        self.rolled_back = True


def test_repository_turns_connection_errors_into_results():
    session = BrokenSession()
    result = ProductRepository.find_by_id(session, "any")
    assert result.data is None
    assert result.error.code == ErrorCode.NETWORK_ERROR
    assert session.rolled_back


def test_repository_operation_lets_programming_errors_through():
    @repository_operation("Exploding")
    def explode(db):
        raise KeyError("missing")

    with pytest.raises(KeyError):
        explode(BrokenSession())


def test_role_permissions():
    assert has_permission("admin", Permission.MANAGE_FINANCE)
    assert has_permission("Gerente", Permission.SUPERVISE_STOCK)
    assert has_permission("manager", Permission.MANAGE_PRODUCTS)
    assert has_permission("barbeiro", Permission.RECORD_STOCK)
    assert not has_permission("barbeiro", Permission.MANAGE_PRODUCTS)
    assert not has_permission("recepcionista", Permission.RECORD_STOCK)
    assert not has_permission("cliente", Permission.VIEW_INVENTORY)
    assert not has_permission(None, Permission.VIEW_INVENTORY)
    assert Role.parse("Administrador") == Role.ADMIN


def test_unit_access(db, unit, other_unit, users):
    assert can_access_unit(db, users["admin"], other_unit.id)
    assert can_access_unit(db, users["barbeiro"], unit.id)
    assert not can_access_unit(db, users["barbeiro"], other_unit.id)
    assert not can_access_unit(db, users["outsider"], unit.id)
    assert not can_access_unit(db, users["gerente"], None)
