from typing import Optional


def clean_text(value) -> Optional[str]:
    """
    Trim a free-text value. Content is stored as typed; escaping belongs
    to whatever renders it.
    Empty strings become None so DTOs treat them as absent.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    if not value:
        return None
    return value


def clean_name(value) -> Optional[str]:
    """Trim and collapse internal whitespace without escaping"""
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    collapsed = " ".join(value.split())
    return collapsed or None


def clean_email(value) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip().lower() or None


def clean_code(value) -> Optional[str]:
    """Upper-cased identifier such as a UF, SKU or status"""
    if value is None:
        return None
    return str(value).strip().upper() or None
