"""
User notification service
Persists the success/error messages shown to the user after each operation
so the frontend can render them as toasts.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Notification, User

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ("success", "error", "warning", "info")


class NotificationService:
    """Stores user-facing notifications; never raises into the caller"""

    def __init__(self, db: Session):
        self.db = db

    def notify(self, user: Optional[User], message: str, notification_type: str = "info") -> Optional[Notification]:
        if user is None or not getattr(user, "id", None):
            logger.debug(f"⚠️ Notification without user dropped: {message}")
            return None
        if notification_type not in NOTIFICATION_TYPES:
            notification_type = "info"

        try:
            notification = Notification(user_id=user.id, type=notification_type, message=message[:500])
            self.db.add(notification)
            self.db.commit()
            logger.info(f"🔔 [{notification_type}] user={user.id}: {message}")
            return notification
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to store notification for user {user.id}: {e}")
            return None

    def success(self, user: Optional[User], message: str) -> Optional[Notification]:
        return self.notify(user, message, "success")

    def error(self, user: Optional[User], message: str) -> Optional[Notification]:
        return self.notify(user, message, "error")

    def warning(self, user: Optional[User], message: str) -> Optional[Notification]:
        return self.notify(user, message, "warning")

    def list_for_user(self, user: User, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        """Unread first, newest first"""
        query = self.db.query(Notification).filter(Notification.user_id == user.id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return (
            query.order_by(Notification.is_read.asc(), Notification.created_at.desc())
            .limit(limit)
            .all()
        )

    def mark_as_read(self, user: User, notification_id: str) -> Optional[Notification]:
        notification = (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user.id)
            .first()
        )
        if not notification:
            return None
        notification.is_read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification
