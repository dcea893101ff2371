"""Display formatters for Brazilian currency, documents and phones"""

import math
from typing import Any, Optional

from .validators import only_digits


def _is_number(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return not math.isnan(float(value))
    except (TypeError, ValueError):
        return False


def format_number(value: Any, decimals: int = 2) -> str:
    """Format a number with pt-BR separators: 1234.5 -> '1.234,50'"""
    if not _is_number(value):
        return "0"

    number = round(float(value), decimals)
    formatted = f"{abs(number):,.{decimals}f}"
    # Swap en-US separators for pt-BR ones
    formatted = formatted.replace(",", "_").replace(".", ",").replace("_", ".")
    sign = "-" if number < 0 else ""
    return f"{sign}{formatted}"


def format_currency(value: Any) -> str:
    """Format a value as BRL: 1234.56 -> 'R$ 1.234,56'"""
    if not _is_number(value):
        return "R$ 0,00"

    formatted = format_number(value, 2)
    if formatted.startswith("-"):
        return f"-R$ {formatted[1:]}"
    return f"R$ {formatted}"


def format_percent(value: Any, decimals: int = 1) -> str:
    if not _is_number(value):
        return "0%"
    return f"{format_number(value, decimals)}%"


def format_cpf(cpf: Optional[str]) -> str:
    if not cpf:
        return ""
    digits = only_digits(cpf)
    if len(digits) != 11:
        return cpf
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"


def format_cnpj(cnpj: Optional[str]) -> str:
    if not cnpj:
        return ""
    digits = only_digits(cnpj)
    if len(digits) != 14:
        return cnpj
    return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"


def format_document(document: Optional[str]) -> str:
    """Format a CPF or CNPJ depending on its length"""
    if not document:
        return ""
    digits = only_digits(document)
    if len(digits) == 11:
        return format_cpf(digits)
    if len(digits) == 14:
        return format_cnpj(digits)
    return document


def format_phone(phone: Optional[str]) -> str:
    """Format mobile (11 digits) or landline (10 digits) numbers"""
    if not phone:
        return ""
    digits = only_digits(phone)
    if len(digits) == 11:
        return f"({digits[:2]}) {digits[2:7]}-{digits[7:]}"
    if len(digits) == 10:
        return f"({digits[:2]}) {digits[2:6]}-{digits[6:]}"
    return phone


def format_cep(cep: Optional[str]) -> str:
    if not cep:
        return ""
    digits = only_digits(cep)
    if len(digits) != 8:
        return cep
    return f"{digits[:5]}-{digits[5:]}"


def truncate(text: Optional[str], max_length: int = 50, suffix: str = "...") -> str:
    if not text or len(text) <= max_length:
        return text or ""
    return text[:max_length] + suffix


def capitalize(text: Optional[str]) -> str:
    if not text:
        return ""
    return text[0].upper() + text[1:].lower()


def title_case(text: Optional[str]) -> str:
    if not text:
        return ""
    return " ".join(capitalize(word) for word in text.lower().split(" "))


def format_date(value: Any) -> str:
    """Format a date or YYYY-MM-DD string as dd/mm/yyyy"""
    if not value:
        return ""
    if isinstance(value, str):
        parts = value[:10].split("-")
        if len(parts) != 3:
            return value
        return f"{parts[2]}/{parts[1]}/{parts[0]}"
    return value.strftime("%d/%m/%Y")
