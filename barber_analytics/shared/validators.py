"""Shared validation utilities"""

import math
import re
from datetime import datetime
from typing import Any, Optional
from urllib.parse import urlparse

UUID_V4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE
)
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Brazilian states (UF)
VALID_STATES = {
    "AC", "AL", "AP", "AM", "BA", "CE", "DF", "ES", "GO", "MA", "MT", "MS", "MG", "PA",
    "PB", "PR", "PE", "PI", "RJ", "RN", "RS", "RO", "RR", "SC", "SP", "SE", "TO",
}


def only_digits(value: Optional[Any]) -> str:
    """Strip every non-digit character"""
    if value is None:
        return ""
    return re.sub(r"\D", "", str(value))


def is_valid_uuid(value: Any) -> bool:
    """Validate UUID v4 format"""
    if not value or not isinstance(value, str):
        return False
    return bool(UUID_V4_PATTERN.match(value))


def is_valid_email(email: Any) -> bool:
    if not email or not isinstance(email, str):
        return False
    return bool(EMAIL_PATTERN.match(email))


def _cpf_check_digit(digits: str, weight_start: int) -> int:
    total = sum(int(d) * w for d, w in zip(digits, range(weight_start, 1, -1)))
    remainder = (total * 10) % 11
    return 0 if remainder == 10 else remainder


def is_valid_cpf(cpf: Any) -> bool:
    """
    Validate a CPF (individual taxpayer number).

    Accepts formatted ("529.982.247-25") or raw input. Rejects repeated-digit
    sequences such as 111.111.111-11 which pass the checksum.
    """
    if not cpf or not isinstance(cpf, str):
        return False

    digits = only_digits(cpf)
    if len(digits) != 11 or digits == digits[0] * 11:
        return False

    if _cpf_check_digit(digits[:9], 10) != int(digits[9]):
        return False
    return _cpf_check_digit(digits[:10], 11) == int(digits[10])


def _cnpj_check_digit(digits: str) -> int:
    weights = list(range(len(digits) - 7, 1, -1)) + list(range(9, 1, -1))
    total = sum(int(d) * w for d, w in zip(digits, weights))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def is_valid_cnpj(cnpj: Any) -> bool:
    """
    Validate a CNPJ (company registration number).

    Accepts formatted ("11.222.333/0001-81") or raw input.
    """
    if not cnpj or not isinstance(cnpj, str):
        return False

    digits = only_digits(cnpj)
    if len(digits) != 14 or digits == digits[0] * 14:
        return False

    if _cnpj_check_digit(digits[:12]) != int(digits[12]):
        return False
    return _cnpj_check_digit(digits[:13]) == int(digits[13])


def is_valid_phone(phone: Any) -> bool:
    """Validate a Brazilian phone: 10 digits (landline) or 11 (mobile), DDD between 11 and 99"""
    if not phone or not isinstance(phone, str):
        return False

    digits = only_digits(phone)
    if len(digits) not in (10, 11):
        return False

    return 11 <= int(digits[:2]) <= 99


def is_valid_url(url: Any) -> bool:
    if not url or not isinstance(url, str):
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_in_range(value: Any, min_value: float, max_value: float) -> bool:
    """Check a numeric value is within [min_value, max_value]"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return min_value <= value <= max_value


def is_valid_date(value: Any) -> bool:
    """Validate a YYYY-MM-DD string that is also a real calendar date"""
    if not value or not isinstance(value, str) or not DATE_PATTERN.match(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
        return True
    except ValueError:
        return False


def is_valid_state(state: Any) -> bool:
    return isinstance(state, str) and state.upper() in VALID_STATES


def to_number(value: Any, default: Optional[float] = None) -> Optional[float]:
    """
    Coerce form input into a float.

    Returns default when the value is missing or not numeric, so DTOs can
    report a validation error instead of raising. NaN and infinities count
    as not numeric.
    """
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    number = to_number(value)
    if number is None:
        return default
    return int(number)
