"""Roles and permission checks"""

import logging
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ADMIN = "admin"
    GERENTE = "gerente"
    BARBEIRO = "barbeiro"
    RECEPCIONISTA = "recepcionista"

    @classmethod
    def parse(cls, value) -> Optional["Role"]:
        """Parse a stored role string; unknown roles return None and are denied everywhere"""
        if isinstance(value, Role):
            return value
        if not value or not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        normalized = ROLE_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return None


ROLE_ALIASES = {
    "administrador": "admin",
    "manager": "gerente",
}


class Permission(str, Enum):
    VIEW_INVENTORY = "view_inventory"
    MANAGE_PRODUCTS = "manage_products"
    RECORD_STOCK = "record_stock"
    SUPERVISE_STOCK = "supervise_stock"
    MANAGE_SUPPLIERS = "manage_suppliers"
    MANAGE_FINANCE = "manage_finance"
    VIEW_AUDIT_LOG = "view_audit_log"
    REQUEST_PURCHASE = "request_purchase"
    APPROVE_PURCHASE = "approve_purchase"


ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.ADMIN: frozenset(Permission),
    Role.GERENTE: frozenset(Permission),
    Role.BARBEIRO: frozenset({Permission.VIEW_INVENTORY, Permission.RECORD_STOCK, Permission.REQUEST_PURCHASE}),
    Role.RECEPCIONISTA: frozenset({Permission.VIEW_INVENTORY}),
}

# Every role must be mapped explicitly
assert set(ROLE_PERMISSIONS) == set(Role)


def has_permission(role, permission: Permission) -> bool:
    parsed = Role.parse(role)
    if parsed is None:
        return False
    return permission in ROLE_PERMISSIONS[parsed]


def is_admin(user) -> bool:
    return Role.parse(getattr(user, "role", None)) == Role.ADMIN


def can_access_unit(db: Session, user, unit_id: Optional[str]) -> bool:
    """
    Check the user works at the unit.

    Admins reach every unit; everyone else needs an active professional
    record linking them to it.
    """
    from ..models import Professional

    if user is None or not unit_id:
        return False
    if is_admin(user):
        return True
    if Role.parse(getattr(user, "role", None)) is None:
        return False

    professional = (
        db.query(Professional)
        .filter(
            Professional.user_id == user.id,
            Professional.unit_id == unit_id,
            Professional.is_active.is_(True),
        )
        .first()
    )
    if professional is None:
        logger.warning(f"⚠️ User {user.id} has no active link to unit {unit_id}")
        return False
    return True
