"""Bank file parsers - turn OFX, CSV and plain-text bank exports into statement rows"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from ...shared.validators import to_number

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024
SUPPORTED_FORMATS = ("csv", "ofx", "txt")


class BankFileError(ValueError):
    """The file cannot be read as a bank statement; the message is shown to the user"""


@dataclass(frozen=True)
class BankProfile:
    name: str
    code: str
    delimiter: str
    columns: dict
    credit_pattern: re.Pattern
    debit_pattern: re.Pattern
    signatures: tuple = ()
    filename_hints: tuple = ()


BANK_PROFILES = {
    "itau": BankProfile(
        name="Itaú Unibanco",
        code="341",
        delimiter=",",
        columns={
            "date": "Data",
            "description": "Descrição",
            "amount": "Valor",
            "document": "Documento",
            "balance": "Saldo",
        },
        credit_pattern=re.compile(r"^(DEPOSITO|CREDITO|TED RECEBIDA|PIX RECEBIDO|TRANSFERENCIA RECEBIDA)"),
        debit_pattern=re.compile(r"^(DEBITO|SAQUE|TED ENVIADA|PIX ENVIADO|TRANSFERENCIA ENVIADA|PAGAMENTO)"),
        signatures=("itau unibanco", "banco itau", "ag:", "conta corrente:"),
        filename_hints=("itau", "itaú"),
    ),
    "bradesco": BankProfile(
        name="Bradesco",
        code="237",
        delimiter=";",
        columns={
            "date": "Data",
            "description": "Histórico",
            "amount": "Valor R$",
            "document": "Documento",
            "balance": "Saldo R$",
        },
        credit_pattern=re.compile(r"^(CREDITO|DEPOSITO|RECEBIMENTO|TED REC|PIX REC)"),
        debit_pattern=re.compile(r"^(DEBITO|SAQUE|PAGAMENTO|TED ENV|PIX ENV)"),
        signatures=("banco bradesco", "bradesco s.a", "ag.:", "conta:"),
        filename_hints=("bradesco",),
    ),
    "bb": BankProfile(
        name="Banco do Brasil",
        code="001",
        delimiter=";",
        columns={
            "date": "Data",
            "description": "Descrição",
            "amount": "Valor",
            "document": "Nr documento",
            "balance": "Saldo",
        },
        credit_pattern=re.compile(r"^(CREDITO|DEPOSITO|TED CREDITO|PIX ENTRADA|RECEBIMENTO)"),
        debit_pattern=re.compile(r"^(DEBITO|SAQUE|TED DEBITO|PIX SAIDA|PAGAMENTO)"),
        signatures=("banco do brasil", "bb.com.br", "agencia:", "conta corrente:"),
        filename_hints=("bancobrasil", "bb"),
    ),
    "santander": BankProfile(
        name="Santander",
        code="033",
        delimiter=";",
        columns={
            "date": "Data Mov.",
            "description": "Descrição",
            "amount": "Valor",
            "document": "Documento",
            "balance": "Saldo",
        },
        credit_pattern=re.compile(r"^(CREDITO|DEPOSITO|TED ENTRADA|PIX RECEBIDO|RECEBIMENTO)"),
        debit_pattern=re.compile(r"^(DEBITO|SAQUE|TED SAIDA|PIX ENVIADO|PAGAMENTO)"),
        signatures=("santander", "banco santander", "ag.:", "c/c:"),
        filename_hints=("santander",),
    ),
}

DEFAULT_COLUMN_ORDER = {"date": 0, "description": 1, "amount": 2, "document": 3, "balance": 4}

DATE_PATTERNS = (
    (re.compile(r"^(\d{2})/(\d{2})/(\d{4})$"), ("day", "month", "year")),
    (re.compile(r"^(\d{2})-(\d{2})-(\d{4})$"), ("day", "month", "year")),
    (re.compile(r"^(\d{4})-(\d{2})-(\d{2})$"), ("year", "month", "day")),
    (re.compile(r"^(\d{4})/(\d{2})/(\d{2})$"), ("year", "month", "day")),
    (re.compile(r"^(\d{2})/(\d{2})/(\d{2})$"), ("day", "month", "year")),
    (re.compile(r"^(\d{2})-(\d{2})-(\d{2})$"), ("day", "month", "year")),
)

# OFX 1.x is SGML: closing tags are optional, so a value runs to the next tag or line end
OFX_TRANSACTION = re.compile(r"<STMTTRN>(.*?)</STMTTRN>", re.IGNORECASE | re.DOTALL)


@dataclass
class ParsedBankFile:
    bank: Optional[str]
    bank_name: Optional[str]
    file_format: str
    confidence: float
    transactions: list[dict] = field(default_factory=list)

    def summary(self) -> dict:
        credits = [t["amount"] for t in self.transactions if t["type"] == "Credit"]
        debits = [t["amount"] for t in self.transactions if t["type"] == "Debit"]
        days = sorted(t["transaction_date"] for t in self.transactions)
        return {
            "bank": self.bank,
            "bank_name": self.bank_name,
            "format": self.file_format,
            "confidence": self.confidence,
            "total_transactions": len(self.transactions),
            "credits_count": len(credits),
            "debits_count": len(debits),
            "total_credits": round(sum(credits), 2),
            "total_debits": round(sum(debits), 2),
            "start_date": days[0] if days else None,
            "end_date": days[-1] if days else None,
        }


def detect_bank(content: str, filename: str = "") -> tuple[Optional[str], float]:
    """Guess the bank from the file name first, then from signature strings in the content"""
    lowered_name = (filename or "").lower()
    for bank, profile in BANK_PROFILES.items():
        if any(hint in lowered_name for hint in profile.filename_hints):
            return bank, 0.8

    lowered = content.lower()
    for bank, profile in BANK_PROFILES.items():
        hits = sum(1 for signature in profile.signatures if signature in lowered)
        if hits >= 2:
            return bank, round(0.6 + hits * 0.1, 2)
    return None, 0.0


def detect_format(content: str, filename: str = "") -> str:
    extension = filename.rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""
    if extension in SUPPORTED_FORMATS:
        return extension

    upper = content.strip().upper()
    if upper.startswith(("<OFX>", "OFXHEADER")) or "<BANKMSGSRSV1>" in upper:
        return "ofx"

    head = [line for line in content.splitlines()[:5] if line.strip()]
    for delimiter in (",", ";", "\t"):
        if head and all(len(line.split(delimiter)) > 1 for line in head):
            return "csv"
    return "txt"


def parse_amount(text) -> Optional[float]:
    """
    Parse a Brazilian or plain amount: "1.234,56", "-50,00", "R$ 10.5".

    A single comma followed by at most two digits is the decimal separator;
    otherwise commas are thousand separators.
    """
    if text is None:
        return None
    cleaned = re.sub(r"[^\d,.\-+]", "", str(text))
    if not cleaned:
        return None

    if "," in cleaned and "." in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".", 1)
    elif "," in cleaned:
        decimals = cleaned[cleaned.rfind(",") + 1:]
        cleaned = cleaned.replace(",", ".", 1) if len(decimals) <= 2 else cleaned.replace(",", "")
    return to_number(cleaned)


def parse_date(text) -> Optional[str]:
    """Parse DD/MM/YYYY, DD-MM-YYYY, YYYY-MM-DD, YYYY/MM/DD, DD/MM/YY or DD-MM-YY into YYYY-MM-DD"""
    if not text:
        return None
    cleaned = re.sub(r"[^\d/\-]", "", str(text))
    for pattern, order in DATE_PATTERNS:
        match = pattern.match(cleaned)
        if not match:
            continue
        parts = dict(zip(order, match.groups()))
        year = parts["year"] if len(parts["year"]) == 4 else f"20{parts['year']}"
        try:
            return date(int(year), int(parts["month"]), int(parts["day"])).isoformat()
        except ValueError:
            return None
    return None


def parse_ofx_date(text) -> Optional[str]:
    """YYYYMMDD[HHMMSS[.XXX][TZ]] -> YYYY-MM-DD"""
    digits = re.sub(r"\D", "", str(text or ""))
    if len(digits) < 8:
        return None
    try:
        return date(int(digits[:4]), int(digits[4:6]), int(digits[6:8])).isoformat()
    except ValueError:
        return None


def transaction_type(description: str, amount: float, profile: Optional[BankProfile]) -> str:
    """Bank wording wins over the sign of the amount"""
    if description and profile is not None:
        normalized = description.upper()
        if profile.credit_pattern.match(normalized):
            return "Credit"
        if profile.debit_pattern.match(normalized):
            return "Debit"
    return "Credit" if amount >= 0 else "Debit"


def _row(day: str, description: str, amount: float, kind: str, **extra) -> dict:
    row = {"transaction_date": day, "description": description, "amount": abs(amount), "type": kind}
    row.update({key: value for key, value in extra.items() if value is not None})
    return row


def _ofx_tag(block: str, tag: str) -> Optional[str]:
    match = re.search(rf"<{tag}>([^<\r\n]*)", block, re.IGNORECASE)
    if not match:
        return None
    return match.group(1).strip() or None


def parse_ofx(content: str) -> list[dict]:
    blocks = OFX_TRANSACTION.findall(content)
    if not blocks:
        raise BankFileError("Nenhuma transação encontrada no arquivo OFX.")

    rows = []
    for block in blocks:
        day = parse_ofx_date(_ofx_tag(block, "DTPOSTED"))
        amount = parse_amount(_ofx_tag(block, "TRNAMT"))
        description = _ofx_tag(block, "MEMO") or _ofx_tag(block, "NAME")
        if day is None or amount is None or not description:
            logger.warning(f"⚠️ Skipping unreadable OFX transaction: {block[:80]!r}")
            continue
        rows.append(
            _row(
                day,
                description,
                amount,
                "Credit" if amount >= 0 else "Debit",
                fitid=_ofx_tag(block, "FITID"),
                document=_ofx_tag(block, "CHECKNUM"),
            )
        )
    return rows


def split_csv_line(line: str, delimiter: str) -> list[str]:
    """Split on the delimiter outside double quotes"""
    columns, current, quoted = [], [], False
    for char in line:
        if char == '"':
            quoted = not quoted
        elif char == delimiter and not quoted:
            columns.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    columns.append("".join(current).strip())
    return columns


def detect_delimiter(line: str) -> str:
    return max((";", ",", "\t", "|"), key=lambda delimiter: len(line.split(delimiter)))


def _column_mapping(headers: list[str], profile: BankProfile) -> dict:
    mapping = {}
    for key, expected in profile.columns.items():
        expected = expected.lower()
        for index, header in enumerate(headers):
            header = header.lower()
            if header and (expected in header or header in expected):
                mapping[key] = index
                break
    return mapping


def parse_csv(content: str, profile: BankProfile) -> list[dict]:
    lines = [line for line in content.splitlines() if line.strip()]
    if not lines:
        raise BankFileError("Arquivo CSV vazio.")

    delimiter = profile.delimiter if profile.delimiter in lines[0] else detect_delimiter(lines[0])
    mapping = _column_mapping(split_csv_line(lines[0], delimiter), profile)
    if not {"date", "description", "amount"} <= set(mapping):
        mapping = DEFAULT_COLUMN_ORDER

    def cell(columns: list[str], key: str) -> Optional[str]:
        index = mapping.get(key)
        if index is None or index >= len(columns):
            return None
        return columns[index] or None

    rows = []
    for line in lines[1:]:
        columns = split_csv_line(line.strip(), delimiter)
        day = parse_date(cell(columns, "date"))
        description = cell(columns, "description")
        amount = parse_amount(cell(columns, "amount"))
        if day is None or not description or amount is None:
            continue
        rows.append(
            _row(
                day,
                description,
                amount,
                transaction_type(description, amount, profile),
                document=cell(columns, "document"),
                balance_after=parse_amount(cell(columns, "balance")),
            )
        )
    return rows


def parse_txt(content: str, profile: BankProfile) -> list[dict]:
    """One transaction per line: date, description words, amount last"""
    rows = []
    for line in content.splitlines():
        parts = line.split()
        if len(parts) < 3:
            continue
        day = parse_date(parts[0])
        description = " ".join(parts[1:-1])
        amount = parse_amount(parts[-1])
        if day is None or amount is None:
            continue
        rows.append(_row(day, description, amount, transaction_type(description, amount, profile)))
    return rows


def parse_bank_file(
    content: str, filename: str = "", bank: Optional[str] = None, file_format: Optional[str] = None
) -> ParsedBankFile:
    """
    Parse an exported bank file into rows accepted by the statement import.

    OFX is self-describing; CSV and TXT layouts need a known bank, either
    given or detected from the file name and content.
    """
    if len(content) > MAX_FILE_SIZE:
        raise BankFileError("Arquivo muito grande. Máximo 10MB permitido.")

    file_format = (file_format or detect_format(content, filename)).lower()
    if file_format not in SUPPORTED_FORMATS:
        raise BankFileError(f"Formato {file_format} não suportado.")

    if bank:
        bank, confidence = bank.lower(), 1.0
    else:
        bank, confidence = detect_bank(content, filename)
    if bank is not None and bank not in BANK_PROFILES:
        raise BankFileError(f"Banco {bank} não suportado.")
    profile = BANK_PROFILES.get(bank)

    if file_format == "ofx":
        rows = parse_ofx(content)
    elif profile is None:
        raise BankFileError("Não foi possível detectar o banco. Especifique manualmente.")
    elif file_format == "csv":
        rows = parse_csv(content, profile)
    else:
        rows = parse_txt(content, profile)

    logger.info(f"🏦 Parsed {len(rows)} transactions from {filename or 'upload'} ({file_format}, bank={bank})")
    return ParsedBankFile(
        bank=bank,
        bank_name=profile.name if profile else None,
        file_format=file_format,
        confidence=confidence,
        transactions=rows,
    )
