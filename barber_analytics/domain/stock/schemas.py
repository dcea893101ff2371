"""Stock movement schemas - Pydantic models for request and response bodies"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel

from ...shared.schemas import Pagination

Number = Union[float, str]


class StockEntryCreate(BaseModel):
    """Body for entries and exits; movement_type comes from the endpoint"""

    unit_id: Optional[str] = None
    product_id: Optional[str] = None
    reason: Optional[str] = None
    quantity: Optional[Number] = None
    unit_cost: Optional[Number] = None
    performed_by: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    notes: Optional[str] = None


class StockAdjustmentCreate(BaseModel):
    unit_id: Optional[str] = None
    product_id: Optional[str] = None
    quantity: Optional[Number] = None
    performed_by: Optional[str] = None
    notes: Optional[str] = None


class StockNotesUpdate(BaseModel):
    notes: Optional[str] = None


class StockMovementResponse(BaseModel):
    id: str
    unit_id: str
    product_id: str
    product_name: Optional[str] = None
    movement_type: str
    movement_type_label: str
    reason: str
    reason_label: str
    quantity: int
    unit_cost: float
    unit_cost_formatted: str
    total_cost: float
    total_cost_formatted: str
    performed_by: str
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StockMovementEnvelope(BaseModel):
    data: StockMovementResponse


class StockMovementListEnvelope(BaseModel):
    data: list[StockMovementResponse]


class StockMovementPageEnvelope(BaseModel):
    data: list[StockMovementResponse]
    pagination: Pagination


class StockSummary(BaseModel):
    total_entries: int
    total_exits: int
    entries_quantity: int
    exits_quantity: int
    entries_value: float
    exits_value: float
    net_quantity: int


class StockSummaryEnvelope(BaseModel):
    data: StockSummary
