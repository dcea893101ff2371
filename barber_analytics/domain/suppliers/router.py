"""Supplier router - FastAPI endpoints for suppliers and contacts"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import api_rate_limiter
from ...shared.http import unwrap
from .schemas import (
    ContactEnvelope,
    ContactPayload,
    SupplierCreate,
    SupplierEnvelope,
    SupplierListEnvelope,
    SupplierPageEnvelope,
    SupplierStatusChange,
    SupplierUpdate,
)
from .service import SupplierService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/suppliers", tags=["Suppliers"], dependencies=[Depends(api_rate_limiter("suppliers"))])


def get_supplier_service(db: Session = Depends(get_db)) -> SupplierService:
    """Dependency injection for SupplierService"""
    return SupplierService(db)


# ============================================================================
# SUPPLIERS
# ============================================================================


@router.get("", response_model=SupplierPageEnvelope)
async def list_suppliers(
    unit_id: str = Query(...),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    page: int = Query(1),
    page_size: int = Query(50),
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    """List a unit's suppliers"""
    filters = {"status": status_filter, "search": search, "page": page, "page_size": page_size}
    result = unwrap(service.list_suppliers(unit_id, filters, current_user))
    return {"data": result.items, "pagination": result.pagination()}


@router.get("/active", response_model=SupplierListEnvelope)
async def list_active_suppliers(
    unit_id: str = Query(...),
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    """Suppliers with status ATIVO"""
    return {"data": unwrap(service.get_active_suppliers(unit_id, current_user))}


@router.post("", response_model=SupplierEnvelope, status_code=status.HTTP_201_CREATED)
async def create_supplier(
    data: SupplierCreate,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return {"data": unwrap(service.create_supplier(data.model_dump(exclude_unset=True), current_user))}


@router.get("/{supplier_id}", response_model=SupplierEnvelope)
async def get_supplier(
    supplier_id: str,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return {"data": unwrap(service.get_supplier(supplier_id, current_user))}


@router.patch("/{supplier_id}", response_model=SupplierEnvelope)
async def update_supplier(
    supplier_id: str,
    data: SupplierUpdate,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return {"data": unwrap(service.update_supplier(supplier_id, data.model_dump(exclude_unset=True), current_user))}


@router.post("/{supplier_id}/status", response_model=SupplierEnvelope)
async def change_supplier_status(
    supplier_id: str,
    data: SupplierStatusChange,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    """Move a supplier between ATIVO, INATIVO and BLOQUEADO"""
    return {"data": unwrap(service.change_status(supplier_id, data.status, current_user))}


@router.delete("/{supplier_id}")
async def delete_supplier(
    supplier_id: str,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return {"data": unwrap(service.delete_supplier(supplier_id, current_user))}


# ============================================================================
# CONTACTS
# ============================================================================


@router.post("/{supplier_id}/contacts", response_model=ContactEnvelope, status_code=status.HTTP_201_CREATED)
async def add_supplier_contact(
    supplier_id: str,
    data: ContactPayload,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return {"data": unwrap(service.add_contact(supplier_id, data.model_dump(exclude_unset=True), current_user))}


@router.patch("/contacts/{contact_id}", response_model=ContactEnvelope)
async def update_supplier_contact(
    contact_id: str,
    data: ContactPayload,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return {"data": unwrap(service.update_contact(contact_id, data.model_dump(exclude_unset=True), current_user))}


@router.delete("/contacts/{contact_id}", response_model=ContactEnvelope)
async def delete_supplier_contact(
    contact_id: str,
    current_user: User = Depends(get_current_user),
    service: SupplierService = Depends(get_supplier_service),
):
    return {"data": unwrap(service.delete_contact(contact_id, current_user))}
