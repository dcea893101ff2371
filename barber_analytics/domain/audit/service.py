"""Audit service - Records who did what to which resource"""

import logging
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from ...models import AuditLog, Professional, User
from ...shared.errors import ErrorCode
from ...shared.permissions import Permission, has_permission, is_admin
from ...shared.result import Result
from .repository import AuditRepository

logger = logging.getLogger(__name__)


class AuditService:
    """
    Service for the audit trail.

    Writing an entry never fails the caller: database errors are logged and
    the operation that triggered the entry keeps its own outcome.
    """

    def __init__(self, db: Session, repository: Optional[AuditRepository] = None):
        self.db = db
        self.repo = repository or AuditRepository()

    def log_action(
        self,
        user: Optional[User],
        action: str,
        resource: str,
        resource_id: Optional[str] = None,
        unit_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        status: str = "success",
    ) -> Optional[AuditLog]:
        result = self.repo.create(
            self.db,
            user_id=getattr(user, "id", None),
            action=action,
            resource=resource,
            resource_id=resource_id,
            unit_id=unit_id,
            status=status,
            details=jsonable_encoder(details) if details else None,
        )
        if result.error:
            logger.warning(f"⚠️ Audit entry not stored ({action} {resource}): {result.error.message}")
            return None
        return result.data

    def log_create(self, user, resource: str, resource_id: str, unit_id=None, data=None):
        return self.log_action(user, "create", resource, resource_id, unit_id, {"data": data})

    def log_update(self, user, resource: str, resource_id: str, unit_id=None, changes=None):
        return self.log_action(user, "update", resource, resource_id, unit_id, {"changes": changes})

    def log_delete(self, user, resource: str, resource_id: str, unit_id=None, data=None):
        return self.log_action(user, "delete", resource, resource_id, unit_id, {"data": data})

    def log_failure(self, user, action: str, resource: str, error_message: str, resource_id=None, unit_id=None):
        return self.log_action(
            user, action, resource, resource_id, unit_id, {"error": error_message}, status="error"
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _visible_units(self, user: User) -> Optional[list[str]]:
        if is_admin(user):
            return None
        rows = (
            self.db.query(Professional.unit_id)
            .filter(Professional.user_id == user.id, Professional.is_active.is_(True))
            .all()
        )
        return [row[0] for row in rows]

    def get_logs(self, user: User, page: int = 1, page_size: int = 50, **filters) -> Result:
        if not has_permission(user.role, Permission.VIEW_AUDIT_LOG):
            return Result.fail(ErrorCode.PERMISSION_DENIED, "Sem permissão para visualizar a auditoria")

        unit_ids = self._visible_units(user)
        if filters.get("unit_id"):
            requested = filters.pop("unit_id")
            if unit_ids is not None and requested not in unit_ids:
                return Result.fail(ErrorCode.PERMISSION_DENIED, "Sem permissão para visualizar a auditoria")
            unit_ids = [requested]
        else:
            filters.pop("unit_id", None)

        return self.repo.find_all(self.db, unit_ids=unit_ids, page=page, page_size=page_size, **filters)

    def get_stats(self, user: User) -> Result:
        if not has_permission(user.role, Permission.VIEW_AUDIT_LOG):
            return Result.fail(ErrorCode.PERMISSION_DENIED, "Sem permissão para visualizar a auditoria")
        return self.repo.count_by_action(self.db, unit_ids=self._visible_units(user))
