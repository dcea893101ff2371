"""Product repository - Database operations for products"""

import logging
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import Product
from ...shared.errors import MSG_INSUFFICIENT_STOCK, ErrorCode
from ...shared.repository import apply_updates, repository_operation
from ...shared.result import Page, Result
from .dtos import STOCK_STATUS_CRITICAL, STOCK_STATUS_EXCESS, STOCK_STATUS_LOW, STOCK_STATUS_OK

logger = logging.getLogger(__name__)

PRODUCT_NOT_FOUND = "Produto não encontrado"

UNIQUE_MESSAGES = {
    "sku": "SKU já existe para esta unidade",
    "barcode": "Código de barras já existe",
}

STOCK_OPERATIONS = ("SET", "ADD", "SUBTRACT")


class ProductRepository:
    """Repository for product database operations"""

    @staticmethod
    @repository_operation("Creating product", unique_messages=UNIQUE_MESSAGES)
    def create(db: Session, data: dict) -> Result:
        """Insert a product from CreateProductDTO.to_object()"""
        product = Product(**data)
        db.add(product)
        db.commit()
        db.refresh(product)
        logger.info(f"✅ Product created: {product.id}")
        return Result.success(product)

    @staticmethod
    @repository_operation("Finding product")
    def find_by_id(db: Session, product_id: str) -> Result:
        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            return Result.fail(ErrorCode.NOT_FOUND, PRODUCT_NOT_FOUND)
        return Result.success(product)

    @staticmethod
    @repository_operation("Finding product by SKU")
    def find_by_sku(db: Session, sku: str, unit_id: str) -> Result:
        """Active product with this SKU in the unit, or data=None"""
        product = (
            db.query(Product)
            .filter(
                Product.sku == sku.upper(),
                Product.unit_id == unit_id,
                Product.is_active.is_(True),
            )
            .first()
        )
        return Result.success(product)

    @staticmethod
    @repository_operation("Finding product by barcode")
    def find_by_barcode(db: Session, barcode: str) -> Result:
        product = (
            db.query(Product)
            .filter(Product.barcode == barcode, Product.is_active.is_(True))
            .first()
        )
        return Result.success(product)

    @staticmethod
    @repository_operation("Listing products")
    def find_all(db: Session, filters: dict) -> Result:
        """Filtered, ordered page of products (filters from ProductFiltersDTO.to_object())"""
        query = db.query(Product)

        if filters.get("unit_id"):
            query = query.filter(Product.unit_id == filters["unit_id"])
        if filters.get("search"):
            pattern = f"%{filters['search']}%"
            query = query.filter(
                or_(
                    Product.name.ilike(pattern),
                    Product.sku.ilike(pattern),
                    Product.description.ilike(pattern),
                )
            )
        for field in ("category", "category_id", "brand", "supplier_id", "location"):
            if filters.get(field):
                query = query.filter(getattr(Product, field) == filters[field])
        if filters.get("is_active") is not None:
            query = query.filter(Product.is_active.is_(filters["is_active"]))
        if filters.get("min_price") is not None:
            query = query.filter(Product.selling_price >= filters["min_price"])
        if filters.get("max_price") is not None:
            query = query.filter(Product.selling_price <= filters["max_price"])

        if filters.get("low_stock"):
            query = query.filter(Product.min_stock > 0, Product.current_stock < Product.min_stock)

        stock_status = filters.get("stock_status")
        if stock_status == STOCK_STATUS_CRITICAL:
            query = query.filter(Product.current_stock == 0)
        elif stock_status == STOCK_STATUS_LOW:
            query = query.filter(
                Product.min_stock > 0,
                Product.current_stock > 0,
                Product.current_stock < Product.min_stock,
            )
        elif stock_status == STOCK_STATUS_EXCESS:
            query = query.filter(Product.max_stock > 0, Product.current_stock > Product.max_stock)
        elif stock_status == STOCK_STATUS_OK:
            query = query.filter(
                Product.current_stock > 0,
                or_(Product.min_stock == 0, Product.current_stock >= Product.min_stock),
                or_(Product.max_stock == 0, Product.current_stock <= Product.max_stock),
            )

        total = query.count()

        order_column = getattr(Product, filters.get("order_by") or "name")
        if filters.get("order_direction") == "DESC":
            order_column = order_column.desc()
        else:
            order_column = order_column.asc()

        page = filters.get("page", 1)
        page_size = filters.get("page_size", 20)
        items = query.order_by(order_column).offset((page - 1) * page_size).limit(page_size).all()
        return Result.success(Page(items=items, total=total, page=page, page_size=page_size))

    @staticmethod
    @repository_operation("Listing low stock products")
    def find_low_stock(db: Session, unit_id: str) -> Result:
        products = (
            db.query(Product)
            .filter(
                Product.unit_id == unit_id,
                Product.is_active.is_(True),
                Product.min_stock > 0,
                Product.current_stock < Product.min_stock,
            )
            .order_by(Product.current_stock.asc())
            .all()
        )
        return Result.success(products)

    @staticmethod
    @repository_operation("Listing out of stock products")
    def find_out_of_stock(db: Session, unit_id: str) -> Result:
        products = (
            db.query(Product)
            .filter(
                Product.unit_id == unit_id,
                Product.is_active.is_(True),
                Product.current_stock == 0,
            )
            .order_by(Product.name.asc())
            .all()
        )
        return Result.success(products)

    @staticmethod
    @repository_operation("Updating product", unique_messages=UNIQUE_MESSAGES)
    def update(db: Session, product_id: str, updates: dict) -> Result:
        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            return Result.fail(ErrorCode.NOT_FOUND, PRODUCT_NOT_FOUND)

        apply_updates(product, updates)
        db.commit()
        db.refresh(product)
        logger.info(f"✅ Product updated: {product_id}")
        return Result.success(product)

    @staticmethod
    @repository_operation("Updating product stock")
    def update_stock(db: Session, product_id: str, quantity: int, operation: str = "SET") -> Result:
        """
        Change current_stock.

        Args:
            quantity: New value for SET, delta for ADD and SUBTRACT
            operation: 'SET', 'ADD' or 'SUBTRACT'
        """
        if operation not in STOCK_OPERATIONS:
            return Result.fail(ErrorCode.VALIDATION_ERROR, "Operação de estoque inválida")

        product = db.query(Product).filter(Product.id == product_id).with_for_update().first()
        if not product:
            return Result.fail(ErrorCode.NOT_FOUND, PRODUCT_NOT_FOUND)

        if operation == "SET":
            new_stock = quantity
        elif operation == "ADD":
            new_stock = product.current_stock + quantity
        else:
            new_stock = product.current_stock - quantity

        if new_stock < 0:
            db.rollback()
            return Result.fail(ErrorCode.VALIDATION_ERROR, MSG_INSUFFICIENT_STOCK)

        product.current_stock = new_stock
        db.commit()
        db.refresh(product)
        logger.info(f"📦 Product {product_id} stock {operation} {quantity} -> {new_stock}")
        return Result.success(product)

    @staticmethod
    def _set_active(db: Session, product_id: str, is_active: bool) -> Result:
        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            return Result.fail(ErrorCode.NOT_FOUND, PRODUCT_NOT_FOUND)
        product.is_active = is_active
        db.commit()
        db.refresh(product)
        return Result.success(product)

    @staticmethod
    @repository_operation("Soft deleting product")
    def soft_delete(db: Session, product_id: str) -> Result:
        return ProductRepository._set_active(db, product_id, False)

    @staticmethod
    @repository_operation("Restoring product")
    def restore(db: Session, product_id: str) -> Result:
        return ProductRepository._set_active(db, product_id, True)

    @staticmethod
    @repository_operation("Computing product statistics")
    def get_statistics(db: Session, unit_id: str) -> Result:
        """Counters and stock value for the unit's active products"""
        active = (Product.unit_id == unit_id, Product.is_active.is_(True))

        totals = db.query(
            func.count(Product.id),
            func.coalesce(func.sum(Product.current_stock * Product.cost_price), 0.0),
            func.coalesce(func.sum(Product.current_stock * Product.selling_price), 0.0),
        ).filter(*active).one()

        out_of_stock = db.query(func.count(Product.id)).filter(*active, Product.current_stock == 0).scalar()
        low_stock = (
            db.query(func.count(Product.id))
            .filter(
                *active,
                Product.min_stock > 0,
                Product.current_stock > 0,
                Product.current_stock < Product.min_stock,
            )
            .scalar()
        )
        excess_stock = (
            db.query(func.count(Product.id))
            .filter(*active, Product.max_stock > 0, Product.current_stock > Product.max_stock)
            .scalar()
        )

        return Result.success(
            {
                "total_products": totals[0],
                "out_of_stock": out_of_stock or 0,
                "low_stock": low_stock or 0,
                "excess_stock": excess_stock or 0,
                "total_stock_value": float(totals[1] or 0),
                "total_stock_value_selling": float(totals[2] or 0),
            }
        )
