"""Product domain schemas - Pydantic models for request and response bodies"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from ...shared.schemas import Pagination

Number = Union[float, str]


class ProductCreate(BaseModel):
    """Schema for creating a new product (business rules live in CreateProductDTO)"""

    unit_id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    category: Optional[str] = None
    category_id: Optional[str] = None
    brand: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    supplier_id: Optional[str] = None
    unit_of_measure: Optional[str] = None
    cost_price: Optional[Number] = None
    selling_price: Optional[Number] = None
    current_stock: Optional[Number] = None
    min_stock: Optional[Number] = None
    max_stock: Optional[Number] = None


class ProductUpdate(BaseModel):
    """Schema for a partial product update"""

    name: Optional[str] = None
    description: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    category: Optional[str] = None
    category_id: Optional[str] = None
    brand: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    supplier_id: Optional[str] = None
    unit_of_measure: Optional[str] = None
    cost_price: Optional[Number] = None
    selling_price: Optional[Number] = None
    current_stock: Optional[Number] = None
    min_stock: Optional[Number] = None
    max_stock: Optional[Number] = None
    is_active: Optional[bool] = None


class StockAdjust(BaseModel):
    """Direct stock change: SET, ADD or SUBTRACT"""

    quantity: Number
    operation: str = "SET"


class ProductResponse(BaseModel):
    """Schema for product response"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    unit_id: str
    name: str
    description: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    category: Optional[str] = None
    category_id: Optional[str] = None
    brand: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    supplier_id: Optional[str] = None
    unit_of_measure: str
    unit_of_measure_label: str
    cost_price: float
    selling_price: float
    current_stock: int
    min_stock: int
    max_stock: int
    is_active: bool
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    cost_price_formatted: str
    selling_price_formatted: str
    total_stock_value: float
    total_stock_value_formatted: str
    total_stock_value_selling: float
    total_stock_value_selling_formatted: str
    profit_margin: float
    profit_margin_formatted: str
    stock_status: str
    stock_status_label: str
    stock_status_color: str
    is_out_of_stock: bool
    is_low_stock: bool
    is_excess_stock: bool


class ProductEnvelope(BaseModel):
    data: ProductResponse


class ProductListEnvelope(BaseModel):
    data: list[ProductResponse]


class ProductPageEnvelope(BaseModel):
    data: list[ProductResponse]
    pagination: Pagination


class ProductStatistics(BaseModel):
    total_products: int
    out_of_stock: int
    low_stock: int
    excess_stock: int
    total_stock_value: float
    total_stock_value_selling: float


class ProductStatisticsEnvelope(BaseModel):
    data: ProductStatistics
