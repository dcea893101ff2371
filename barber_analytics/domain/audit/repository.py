"""Audit repository - Database operations for audit log entries"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import AuditLog
from ...shared.repository import repository_operation
from ...shared.result import Page, Result


class AuditRepository:
    """Repository for audit log database operations"""

    @staticmethod
    @repository_operation("Creating audit log")
    def create(db: Session, **log_data) -> Result:
        entry = AuditLog(**log_data)
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return Result.success(entry)

    @staticmethod
    @repository_operation("Listing audit logs")
    def find_all(
        db: Session,
        unit_ids: Optional[list[str]] = None,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        resource: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Result:
        """Newest first; unit_ids=None means every unit"""
        query = db.query(AuditLog)
        if unit_ids is not None:
            query = query.filter(AuditLog.unit_id.in_(unit_ids))
        if user_id:
            query = query.filter(AuditLog.user_id == user_id)
        if action:
            query = query.filter(AuditLog.action == action)
        if resource:
            query = query.filter(AuditLog.resource.ilike(f"%{resource}%"))
        if start_date:
            query = query.filter(AuditLog.created_at >= start_date)
        if end_date:
            query = query.filter(AuditLog.created_at <= end_date)

        total = query.count()
        items = (
            query.order_by(AuditLog.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return Result.success(Page(items=items, total=total, page=page, page_size=page_size))

    @staticmethod
    @repository_operation("Counting audit logs by action")
    def count_by_action(db: Session, unit_ids: Optional[list[str]] = None) -> Result:
        query = db.query(AuditLog.action, func.count(AuditLog.id))
        if unit_ids is not None:
            query = query.filter(AuditLog.unit_id.in_(unit_ids))
        rows = query.group_by(AuditLog.action).all()
        return Result.success({action: count for action, count in rows})
