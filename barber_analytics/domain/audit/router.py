"""Audit router - Read access to the audit trail"""

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...shared.http import unwrap
from ...shared.schemas import Pagination
from .service import AuditService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audit-logs", tags=["Audit"])


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: Optional[str] = None
    action: str
    resource: str
    resource_id: Optional[str] = None
    unit_id: Optional[str] = None
    status: str
    details: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None


class AuditLogPageEnvelope(BaseModel):
    data: list[AuditLogResponse]
    pagination: Pagination


def get_audit_service(db: Session = Depends(get_db)) -> AuditService:
    """Dependency injection for AuditService"""
    return AuditService(db)


@router.get("", response_model=AuditLogPageEnvelope)
async def list_audit_logs(
    unit_id: Optional[str] = Query(None),
    resource: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: AuditService = Depends(get_audit_service),
):
    """Audit entries of the units the user can see, newest first"""
    result = unwrap(
        service.get_logs(
            current_user,
            page=page,
            page_size=page_size,
            unit_id=unit_id,
            resource=resource,
            action=action,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
        )
    )
    return {"data": result.items, "pagination": result.pagination()}


@router.get("/stats")
async def get_audit_stats(
    current_user: User = Depends(get_current_user),
    service: AuditService = Depends(get_audit_service),
):
    """Entry count per action"""
    return {"data": unwrap(service.get_stats(current_user))}
