"""Product router - FastAPI endpoints for product operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import api_rate_limiter
from ...shared.http import require_data, unwrap
from .schemas import (
    ProductCreate,
    ProductEnvelope,
    ProductListEnvelope,
    ProductPageEnvelope,
    ProductStatisticsEnvelope,
    ProductUpdate,
    StockAdjust,
)
from .service import ProductService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"], dependencies=[Depends(api_rate_limiter("products"))])
stats_router = APIRouter(
    prefix="/products-stats", tags=["Products"], dependencies=[Depends(api_rate_limiter("products"))]
)


def get_product_service(db: Session = Depends(get_db)) -> ProductService:
    """Dependency injection for ProductService"""
    return ProductService(db)


# ============================================================================
# LISTINGS
# ============================================================================


@router.get("", response_model=ProductPageEnvelope)
async def list_products(
    unit_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    category_id: Optional[str] = Query(None),
    brand: Optional[str] = Query(None),
    supplier_id: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    stock_status: Optional[str] = Query(None),
    low_stock: bool = Query(False),
    is_active: Optional[bool] = Query(None),
    min_price: Optional[float] = Query(None),
    max_price: Optional[float] = Query(None),
    page: int = Query(1),
    page_size: int = Query(20),
    order_by: str = Query("name"),
    order_direction: str = Query("ASC"),
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    """List products of a unit with filters and pagination"""
    filters = {
        "unit_id": unit_id,
        "search": search,
        "category": category,
        "category_id": category_id,
        "brand": brand,
        "supplier_id": supplier_id,
        "location": location,
        "stock_status": stock_status,
        "low_stock": low_stock,
        "is_active": is_active,
        "min_price": min_price,
        "max_price": max_price,
        "page": page,
        "page_size": page_size,
        "order_by": order_by,
        "order_direction": order_direction,
    }
    result = unwrap(service.get_products(filters, current_user))
    return {"data": result.items, "pagination": result.pagination()}


@router.get("/low-stock", response_model=ProductListEnvelope)
async def list_low_stock_products(
    unit_id: str = Query(...),
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    """Active products below their minimum stock"""
    return {"data": unwrap(service.get_low_stock_products(unit_id, current_user))}


@router.get("/out-of-stock", response_model=ProductListEnvelope)
async def list_out_of_stock_products(
    unit_id: str = Query(...),
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    return {"data": unwrap(service.get_out_of_stock_products(unit_id, current_user))}


@stats_router.get("", response_model=ProductStatisticsEnvelope)
async def get_product_statistics(
    unit_id: str = Query(...),
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    """Stock counters and inventory value for a unit"""
    return {"data": unwrap(service.get_product_statistics(unit_id, current_user))}


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.post("", response_model=ProductEnvelope, status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    """Create a new product"""
    logger.info(f"📥 POST /api/products by user {current_user.id}")
    return {"data": unwrap(service.create_product(data.model_dump(exclude_unset=True), current_user))}


@router.get("/{product_id}", response_model=ProductEnvelope)
async def get_product(
    product_id: str,
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    """Get a specific product"""
    return {"data": require_data(service.get_product_by_id(product_id, current_user), "Produto não encontrado")}


@router.patch("/{product_id}", response_model=ProductEnvelope)
async def update_product(
    product_id: str,
    data: ProductUpdate,
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    """Update a product (only the fields sent)"""
    return {"data": unwrap(service.update_product(product_id, data.model_dump(exclude_unset=True), current_user))}


@router.delete("/{product_id}", response_model=ProductEnvelope)
async def delete_product(
    product_id: str,
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    """Soft delete a product"""
    return {"data": unwrap(service.delete_product(product_id, current_user))}


@router.post("/{product_id}/restore", response_model=ProductEnvelope)
async def restore_product(
    product_id: str,
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    return {"data": unwrap(service.restore_product(product_id, current_user))}


@router.post("/{product_id}/stock", response_model=ProductEnvelope)
async def adjust_product_stock(
    product_id: str,
    data: StockAdjust,
    current_user: User = Depends(get_current_user),
    service: ProductService = Depends(get_product_service),
):
    """Set, add to or subtract from the product's stock"""
    return {"data": unwrap(service.adjust_stock(product_id, data.quantity, data.operation, current_user))}
