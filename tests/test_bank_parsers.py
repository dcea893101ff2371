import pytest

from barber_analytics.domain.bank_statements.parsers import (
    BankFileError,
    detect_bank,
    detect_format,
    parse_amount,
    parse_bank_file,
    parse_date,
    parse_ofx_date,
    split_csv_line,
)
from barber_analytics.domain.bank_statements.service import BankStatementService
from barber_analytics.models import BankStatement
from barber_analytics.shared.errors import ErrorCode

ACCOUNT_ID = "6f1c2d3e-4b5a-4c7d-8e9f-0a1b2c3d4e5f"

OFX_WITH_CLOSING_TAGS = """OFXHEADER:100
DATA:OFXSGML
<OFX><BANKMSGSRSV1><STMTTRNRS><STMTRS><BANKTRANLIST>
<STMTTRN>
<TRNTYPE>DEBIT</TRNTYPE>
<DTPOSTED>20240305120000[-3:BRT]</DTPOSTED>
<TRNAMT>-1500.00</TRNAMT>
<FITID>A1</FITID>
<CHECKNUM>900</CHECKNUM>
<MEMO>ALUGUEL MARCO</MEMO>
</STMTTRN>
<STMTTRN>
<TRNTYPE>CREDIT</TRNTYPE>
<DTPOSTED>20240306</DTPOSTED>
<TRNAMT>250.50</TRNAMT>
<FITID>A2</FITID>
<NAME>PIX RECEBIDO</NAME>
</STMTTRN>
</BANKTRANLIST></STMTRS></STMTTRNRS></BANKMSGSRSV1></OFX>
"""

OFX_SGML = """OFXHEADER:100
<OFX>
<BANKMSGSRSV1>
<STMTTRN>
<TRNTYPE>DEBIT
<DTPOSTED>20240307
<TRNAMT>-89,90
<FITID>B1
<MEMO>CONTA DE LUZ
</STMTTRN>
<STMTTRN>
<DTPOSTED>2024
<TRNAMT>10.00
<MEMO>SEM DATA
</STMTTRN>
</OFX>
"""

ITAU_CSV = (
    "Data,Descrição,Valor,Documento,Saldo\n"
    '05/03/2024,PIX RECEBIDO JOAO,"150,00",123,"1.150,00"\n'
    '06/03/2024,PAGAMENTO ALUGUEL,"-1.500,00",124,"-350,00"\n'
)

BRADESCO_CSV = (
    "Data;Histórico;Valor R$;Documento;Saldo R$\n"
    "05/03/24;CREDITO PIX;200,00;555;1.200,00\n"
    "06/03/24;DEBITO TARIFA;12,50;556;1.187,50\n"
    "linha sem data;;;\n"
)


# ============================================================================
# VALUE PARSING
# ============================================================================


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1.234,56", 1234.56),
        ("-50,00", -50.0),
        ("R$ 10.5", 10.5),
        ("1,234", 1234.0),
        ("+1.500,00", 1500.0),
        ("", None),
        ("abc", None),
        (None, None),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("05/03/2024", "2024-03-05"),
        ("05-03-2024", "2024-03-05"),
        ("2024-03-05", "2024-03-05"),
        ("2024/03/05", "2024-03-05"),
        ("05/03/24", "2024-03-05"),
        ("31/02/2024", None),
        ("março", None),
        ("", None),
    ],
)
def test_parse_date(text, expected):
    assert parse_date(text) == expected


def test_parse_ofx_date():
    assert parse_ofx_date("20240305120000[-3:BRT]") == "2024-03-05"
    assert parse_ofx_date("20241305") is None
    assert parse_ofx_date("2024") is None


def test_split_csv_line_keeps_quoted_delimiters():
    assert split_csv_line('05/03/2024,"PIX, JOAO","1.150,00"', ",") == ["05/03/2024", "PIX, JOAO", "1.150,00"]


# ============================================================================
# DETECTION
# ============================================================================


def test_detect_bank_from_filename_then_content():
    assert detect_bank("", "extrato_itau_marco.csv") == ("itau", 0.8)
    assert detect_bank("Banco Bradesco S.A\nAg.: 1234 Conta: 5678", "extrato.csv") == ("bradesco", 1.0)
    assert detect_bank("Data;Valor", "extrato.csv") == (None, 0.0)


def test_detect_format():
    assert detect_format("", "extrato.OFX") == "ofx"
    assert detect_format(OFX_SGML) == "ofx"
    assert detect_format(BRADESCO_CSV) == "csv"
    assert detect_format("05/03/2024 PIX 10.00") == "txt"


# ============================================================================
# FILE PARSING
# ============================================================================


def test_ofx_with_closing_tags():
    parsed = parse_bank_file(OFX_WITH_CLOSING_TAGS, filename="extrato.ofx")

    assert parsed.bank is None
    assert parsed.file_format == "ofx"
    assert parsed.transactions == [
        {
            "transaction_date": "2024-03-05",
            "description": "ALUGUEL MARCO",
            "amount": 1500.0,
            "type": "Debit",
            "fitid": "A1",
            "document": "900",
        },
        {
            "transaction_date": "2024-03-06",
            "description": "PIX RECEBIDO",
            "amount": 250.5,
            "type": "Credit",
            "fitid": "A2",
        },
    ]


def test_sgml_ofx_skips_unreadable_transactions():
    parsed = parse_bank_file(OFX_SGML)

    assert parsed.transactions == [
        {
            "transaction_date": "2024-03-07",
            "description": "CONTA DE LUZ",
            "amount": 89.9,
            "type": "Debit",
            "fitid": "B1",
        }
    ]


def test_itau_csv():
    parsed = parse_bank_file(ITAU_CSV, filename="itau.csv")

    assert (parsed.bank, parsed.bank_name, parsed.confidence) == ("itau", "Itaú Unibanco", 0.8)
    assert parsed.transactions == [
        {
            "transaction_date": "2024-03-05",
            "description": "PIX RECEBIDO JOAO",
            "amount": 150.0,
            "type": "Credit",
            "document": "123",
            "balance_after": 1150.0,
        },
        {
            "transaction_date": "2024-03-06",
            "description": "PAGAMENTO ALUGUEL",
            "amount": 1500.0,
            "type": "Debit",
            "document": "124",
            "balance_after": -350.0,
        },
    ]


def test_bank_wording_wins_over_sign():
    parsed = parse_bank_file(BRADESCO_CSV, bank="Bradesco", file_format="csv")

    assert parsed.confidence == 1.0
    assert [(t["description"], t["amount"], t["type"]) for t in parsed.transactions] == [
        ("CREDITO PIX", 200.0, "Credit"),
        ("DEBITO TARIFA", 12.5, "Debit"),
    ]
    summary = parsed.summary()
    assert summary["total_transactions"] == 2
    assert summary["total_credits"] == 200.0
    assert summary["total_debits"] == 12.5
    assert (summary["start_date"], summary["end_date"]) == ("2024-03-05", "2024-03-06")


def test_plain_text_lines():
    content = "05/03/2024 PAGAMENTO FORNECEDOR -320,00\nsaldo anterior\n06/03/2024 PIX 45,00\n"

    parsed = parse_bank_file(content, bank="santander", file_format="txt")

    assert [(t["transaction_date"], t["description"], t["type"]) for t in parsed.transactions] == [
        ("2024-03-05", "PAGAMENTO FORNECEDOR", "Debit"),
        ("2024-03-06", "PIX", "Credit"),
    ]


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"content": "x", "file_format": "pdf"}, "Formato pdf não suportado."),
        ({"content": ITAU_CSV, "bank": "nubank"}, "Banco nubank não suportado."),
        (
            {"content": "Data;Valor\n05/03/2024;10,00", "filename": "extrato.csv"},
            "Não foi possível detectar o banco. Especifique manualmente.",
        ),
        ({"content": "<OFX></OFX>", "filename": "x.ofx"}, "Nenhuma transação encontrada no arquivo OFX."),
        ({"content": "", "bank": "itau", "file_format": "csv"}, "Arquivo CSV vazio."),
    ],
    ids=["format", "bank", "undetected", "empty-ofx", "empty-csv"],
)
def test_unreadable_files(kwargs, message):
    with pytest.raises(BankFileError) as exc:
        parse_bank_file(**kwargs)
    assert str(exc.value) == message


# ============================================================================
# IMPORT FROM FILE
# ============================================================================


def test_import_file_stores_parsed_rows(db, unit, users):
    result = BankStatementService(db).import_file(unit.id, ACCOUNT_ID, ITAU_CSV, users["gerente"], filename="itau.csv")

    assert result.data["imported"] == 2
    assert result.data["file"]["bank"] == "itau"
    assert result.data["file"]["debits_count"] == 1
    stored = db.query(BankStatement).filter(BankStatement.unit_id == unit.id).order_by(BankStatement.transaction_date)
    assert [(s.amount, s.type, s.balance_after) for s in stored] == [(150.0, "Credit", 1150.0), (1500.0, "Debit", -350.0)]


def test_import_file_errors(db, unit, users):
    service = BankStatementService(db)

    unreadable = service.import_file(unit.id, ACCOUNT_ID, "<OFX></OFX>", users["gerente"], filename="x.ofx")
    assert unreadable.error.code == ErrorCode.VALIDATION_ERROR
    assert unreadable.error.errors == ["Nenhuma transação encontrada no arquivo OFX."]

    no_account = service.import_file(unit.id, None, ITAU_CSV, users["gerente"], filename="itau.csv")
    assert no_account.error.errors == ["bank_account_id é obrigatório"]

    denied = service.import_file(unit.id, ACCOUNT_ID, ITAU_CSV, users["barbeiro"], filename="itau.csv")
    assert denied.error.code == ErrorCode.PERMISSION_DENIED


def test_upload_latin1_csv(client, auth, unit, users):
    response = client.post(
        "/api/bank-statements/import-file",
        files={"file": ("itau.csv", ITAU_CSV.encode("latin-1"), "text/csv")},
        data={"unit_id": unit.id, "bank_account_id": ACCOUNT_ID},
        headers=auth(users["gerente"]),
    )

    assert response.status_code == 201
    body = response.json()["data"]
    assert body["imported"] == 2
    assert body["file"]["bank_name"] == "Itaú Unibanco"


def test_upload_with_unknown_bank_is_400(client, auth, unit, users):
    response = client.post(
        "/api/bank-statements/import-file",
        files={"file": ("extrato.csv", ITAU_CSV.encode("utf-8"), "text/csv")},
        data={"unit_id": unit.id, "bank_account_id": ACCOUNT_ID, "bank": "nubank"},
        headers=auth(users["gerente"]),
    )

    assert response.status_code == 400
    assert response.json()["detail"]["errors"] == ["Banco nubank não suportado."]
