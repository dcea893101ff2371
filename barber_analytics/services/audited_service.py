"""Common plumbing for domain services: notify the user and audit every outcome"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..domain.audit.service import AuditService
from ..models import User
from ..shared.errors import ErrorCode
from ..shared.result import Result
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


class AuditedService:
    """Base for services whose mutations emit a notification and an audit entry"""

    resource = ""

    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationService] = None,
        audit: Optional[AuditService] = None,
    ):
        self.db = db
        self.notifier = notifier or NotificationService(db)
        self.audit = audit or AuditService(db)

    def deny(self, user: Optional[User], action: str, message: str, unit_id: Optional[str] = None) -> Result:
        """PERMISSION_DENIED outcome; the repository is never reached"""
        logger.warning(
            f"⚠️ {self.resource}.{action} denied for user {getattr(user, 'id', None)} "
            f"(role={getattr(user, 'role', None)}, unit={unit_id})"
        )
        self.notifier.error(user, message)
        self.audit.log_failure(user, action, self.resource, message, unit_id=unit_id)
        return Result.fail(ErrorCode.PERMISSION_DENIED, message)

    def reject(self, user: Optional[User], action: str, errors: list[str], unit_id: Optional[str] = None) -> Result:
        """VALIDATION_ERROR outcome for DTO errors"""
        result = Result.validation_failed(errors)
        self.notifier.error(user, result.error.message)
        self.audit.log_failure(user, action, self.resource, "; ".join(errors), unit_id=unit_id)
        return result

    def fail(
        self,
        user: Optional[User],
        action: str,
        code: ErrorCode,
        message: str,
        resource_id: Optional[str] = None,
        unit_id: Optional[str] = None,
    ) -> Result:
        self.notifier.error(user, message)
        self.audit.log_failure(user, action, self.resource, message, resource_id=resource_id, unit_id=unit_id)
        return Result.fail(code, message)

    def complete(
        self,
        user: Optional[User],
        action: str,
        result: Result,
        success_message: str,
        resource_id: Optional[str] = None,
        unit_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> Result:
        """Notify and audit a repository outcome, then hand it back unchanged"""
        if result.error:
            self.notifier.error(user, result.error.message)
            self.audit.log_failure(
                user, action, self.resource, result.error.message, resource_id=resource_id, unit_id=unit_id
            )
            return result

        if resource_id is None:
            resource_id = getattr(result.data, "id", None)
        self.notifier.success(user, success_message)
        self.audit.log_action(user, action, self.resource, resource_id, unit_id, details)
        return result

    def abort(
        self,
        user: Optional[User],
        action: str,
        result: Result,
        resource_id: Optional[str] = None,
        unit_id: Optional[str] = None,
    ) -> Result:
        """Report a failed lookup that stops a mutation before it reaches the repository"""
        logger.warning(f"⚠️ {self.resource}.{action} aborted: {result.error.message}")
        self.notifier.error(user, result.error.message)
        self.audit.log_failure(
            user, action, self.resource, result.error.message, resource_id=resource_id, unit_id=unit_id
        )
        return result
