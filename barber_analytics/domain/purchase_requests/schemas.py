"""Purchase request schemas - Pydantic models for request and response bodies"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel

from ...shared.schemas import Pagination

# Numbers arrive as JSON numbers or strings; the DTO does the conversion
Number = Union[float, str]


class RequestItemPayload(BaseModel):
    product_id: Optional[str] = None
    quantity: Optional[Number] = None
    unit_measurement: Optional[str] = None
    estimated_unit_cost: Optional[Number] = None
    notes: Optional[str] = None


class PurchaseRequestCreate(BaseModel):
    unit_id: Optional[str] = None
    justification: Optional[str] = None
    notes: Optional[str] = None
    priority: Optional[str] = None
    items: Optional[list[RequestItemPayload]] = None


class PurchaseRequestUpdate(BaseModel):
    justification: Optional[str] = None
    notes: Optional[str] = None
    priority: Optional[str] = None


class RejectPayload(BaseModel):
    reason: Optional[str] = None


class QuoteItemPayload(BaseModel):
    product_id: Optional[str] = None
    quantity: Optional[Number] = None
    unit_cost: Optional[Number] = None


class QuoteCreate(BaseModel):
    supplier_id: Optional[str] = None
    delivery_days: Optional[Number] = None
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    attachment_url: Optional[str] = None
    items: Optional[list[QuoteItemPayload]] = None


class QuoteSelection(BaseModel):
    reason: Optional[str] = None


class RequestItemResponse(BaseModel):
    id: str
    product_id: str
    product_name: Optional[str] = None
    quantity: int
    unit_measurement: str
    estimated_unit_cost: Optional[float] = None
    notes: Optional[str] = None


class PurchaseRequestResponse(BaseModel):
    id: str
    request_number: str
    unit_id: str
    requested_by: str
    requester_name: Optional[str] = None
    approved_by: Optional[str] = None
    rejected_by: Optional[str] = None
    status: str
    status_label: str
    status_color: str
    priority: str
    priority_label: str
    priority_color: str
    total_estimated: float
    total_formatted: str
    justification: Optional[str] = None
    notes: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    items: list[RequestItemResponse] = []
    items_count: int = 0
    can_edit: bool
    can_submit: bool
    can_approve: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QuoteItemResponse(BaseModel):
    id: str
    product_id: str
    quantity: int
    unit_cost: float
    line_total: float


class QuoteResponse(BaseModel):
    id: str
    quote_number: str
    request_id: str
    supplier_id: str
    supplier_name: Optional[str] = None
    quoted_by: str
    total_price: float
    total_formatted: str
    delivery_days: int
    delivery_label: str
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    attachment_url: Optional[str] = None
    is_selected: bool
    selected_at: Optional[datetime] = None
    selected_by: Optional[str] = None
    selection_reason: Optional[str] = None
    items: list[QuoteItemResponse] = []
    items_count: int = 0
    can_select: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QuoteComparison(BaseModel):
    quote_id: str
    quote_number: str
    supplier_id: str
    supplier_name: Optional[str] = None
    total_price: float
    total_formatted: str
    delivery_days: int
    delivery_label: str
    payment_terms: Optional[str] = None
    difference_from_lowest: float
    is_lowest: bool
    is_selected: bool


class PurchaseRequestEnvelope(BaseModel):
    data: PurchaseRequestResponse


class PurchaseRequestListEnvelope(BaseModel):
    data: list[PurchaseRequestResponse]


class PurchaseRequestPageEnvelope(BaseModel):
    data: list[PurchaseRequestResponse]
    pagination: Pagination


class QuoteEnvelope(BaseModel):
    data: QuoteResponse


class QuoteListEnvelope(BaseModel):
    data: list[QuoteResponse]


class QuoteComparisonEnvelope(BaseModel):
    data: list[QuoteComparison]
