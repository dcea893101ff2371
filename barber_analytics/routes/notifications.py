from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    message: str
    is_read: bool
    created_at: Optional[datetime] = None


class NotificationListResponse(BaseModel):
    data: list[NotificationResponse]
    unread_count: int


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Notifications of the current user, unread first"""
    notifications = NotificationService(db).list_for_user(current_user, unread_only=unread_only, limit=limit)
    unread = sum(1 for n in notifications if not n.is_read)
    return {"data": notifications, "unread_count": unread}


@router.post("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = NotificationService(db).mark_as_read(current_user, notification_id)
    if not notification:
        raise HTTPException(
            status_code=404,
            detail={"code": "NOT_FOUND", "message": "Notificação não encontrada", "errors": []},
        )
    return {"data": NotificationResponse.model_validate(notification)}
