"""Supplier domain schemas - Pydantic models for request and response bodies"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ...shared.schemas import Pagination


class SupplierCreate(BaseModel):
    unit_id: Optional[str] = None
    name: Optional[str] = None
    cnpj_cpf: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    payment_terms: Optional[str] = None
    observations: Optional[str] = None
    status: Optional[str] = None


class SupplierUpdate(BaseModel):
    name: Optional[str] = None
    cnpj_cpf: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    payment_terms: Optional[str] = None
    observations: Optional[str] = None
    status: Optional[str] = None


class SupplierStatusChange(BaseModel):
    status: str


class ContactPayload(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class ContactResponse(BaseModel):
    id: str
    supplier_id: Optional[str] = None
    name: str
    role: Optional[str] = None
    phone: Optional[str] = None
    phone_formatted: Optional[str] = None
    email: Optional[str] = None
    is_active: bool = True


class SupplierResponse(BaseModel):
    """Schema for supplier response"""

    id: str
    unit_id: str
    name: str
    cnpj_cpf: Optional[str] = None
    cnpj_cpf_formatted: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    phone_formatted: str = ""
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    full_address: str = ""
    payment_terms: Optional[str] = None
    observations: Optional[str] = None
    status: str
    status_label: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    contacts: list[ContactResponse] = []


class SupplierEnvelope(BaseModel):
    data: SupplierResponse


class SupplierListEnvelope(BaseModel):
    data: list[SupplierResponse]


class SupplierPageEnvelope(BaseModel):
    data: list[SupplierResponse]
    pagination: Pagination


class ContactEnvelope(BaseModel):
    data: ContactResponse
