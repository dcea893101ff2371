"""Stock movement repository - Database operations for inventory movements"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Product, StockMovement
from ...shared.errors import MSG_INSUFFICIENT_STOCK, ErrorCode
from ...shared.repository import repository_operation
from ...shared.result import Page, Result

logger = logging.getLogger(__name__)

MOVEMENT_NOT_FOUND = "Movimentação não encontrada"


def _stock_delta(movement_type: str, quantity: int) -> int:
    return quantity if movement_type == "ENTRADA" else -quantity


class StockMovementRepository:
    """Repository for stock movement database operations"""

    @staticmethod
    @repository_operation("Creating stock movement")
    def create(db: Session, data: dict) -> Result:
        """
        Insert a movement and apply it to the product stock in one transaction.

        total_cost is always quantity * unit_cost; a SAIDA larger than the
        current stock is rejected and nothing is written.
        """
        product = (
            db.query(Product)
            .filter(
                Product.id == data["product_id"],
                Product.unit_id == data["unit_id"],
                Product.is_active.is_(True),
            )
            .with_for_update()
            .first()
        )
        if not product:
            return Result.fail(ErrorCode.NOT_FOUND, "Produto não encontrado")

        new_stock = product.current_stock + _stock_delta(data["movement_type"], data["quantity"])
        if new_stock < 0:
            db.rollback()
            return Result.fail(ErrorCode.VALIDATION_ERROR, MSG_INSUFFICIENT_STOCK)

        movement = StockMovement(**data)
        movement.total_cost = data["quantity"] * data.get("unit_cost", 0)
        product.current_stock = new_stock
        db.add(movement)
        db.commit()
        db.refresh(movement)
        logger.info(
            f"📦 Stock movement {movement.movement_type} {movement.quantity} for product "
            f"{movement.product_id} (stock now {new_stock})"
        )
        return Result.success(movement)

    @staticmethod
    @repository_operation("Finding stock movement")
    def find_by_id(db: Session, movement_id: str) -> Result:
        movement = (
            db.query(StockMovement)
            .options(joinedload(StockMovement.product))
            .filter(StockMovement.id == movement_id)
            .first()
        )
        if not movement:
            return Result.fail(ErrorCode.NOT_FOUND, MOVEMENT_NOT_FOUND)
        return Result.success(movement)

    @staticmethod
    @repository_operation("Listing stock movements")
    def find_by_unit(db: Session, unit_id: str, filters: dict) -> Result:
        """Newest first, paginated, with the total count"""
        query = db.query(StockMovement).filter(StockMovement.unit_id == unit_id)

        for field in ("product_id", "movement_type", "reason", "performed_by"):
            if filters.get(field):
                query = query.filter(getattr(StockMovement, field) == filters[field])
        if filters.get("start_date"):
            query = query.filter(StockMovement.created_at >= filters["start_date"])
        if filters.get("end_date"):
            query = query.filter(StockMovement.created_at <= filters["end_date"])
        if filters.get("is_active") is not None:
            query = query.filter(StockMovement.is_active.is_(filters["is_active"]))

        total = query.count()
        page = filters.get("page", 1)
        page_size = filters.get("page_size", 20)
        items = (
            query.options(joinedload(StockMovement.product))
            .order_by(StockMovement.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return Result.success(Page(items=items, total=total, page=page, page_size=page_size))

    @staticmethod
    @repository_operation("Listing product stock movements")
    def find_by_product_and_date(
        db: Session,
        product_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Result:
        query = db.query(StockMovement).filter(
            StockMovement.product_id == product_id,
            StockMovement.is_active.is_(True),
        )
        if start_date:
            query = query.filter(StockMovement.created_at >= start_date)
        if end_date:
            query = query.filter(StockMovement.created_at <= end_date)
        return Result.success(query.order_by(StockMovement.created_at.desc()).all())

    @staticmethod
    @repository_operation("Updating stock movement")
    def update(db: Session, movement_id: str, updates: dict) -> Result:
        """Only notes are mutable; quantities are fixed once recorded"""
        movement = db.query(StockMovement).filter(StockMovement.id == movement_id).first()
        if not movement:
            return Result.fail(ErrorCode.NOT_FOUND, MOVEMENT_NOT_FOUND)

        if "notes" in updates:
            movement.notes = updates["notes"]
        db.commit()
        db.refresh(movement)
        return Result.success(movement)

    @staticmethod
    @repository_operation("Deleting stock movement")
    def delete(db: Session, movement_id: str) -> Result:
        """Soft delete: hides the movement from history, stock is untouched"""
        movement = db.query(StockMovement).filter(StockMovement.id == movement_id).first()
        if not movement:
            return Result.fail(ErrorCode.NOT_FOUND, MOVEMENT_NOT_FOUND)

        movement.is_active = False
        db.commit()
        return Result.success(True)

    @staticmethod
    @repository_operation("Reverting stock movement")
    def revert(db: Session, movement_id: str) -> Result:
        """Hard delete that undoes the movement's effect on the product stock"""
        movement = db.query(StockMovement).filter(StockMovement.id == movement_id).first()
        if not movement:
            return Result.fail(ErrorCode.NOT_FOUND, MOVEMENT_NOT_FOUND)

        product = db.query(Product).filter(Product.id == movement.product_id).with_for_update().first()
        new_stock = product.current_stock - _stock_delta(movement.movement_type, movement.quantity)
        if new_stock < 0:
            db.rollback()
            return Result.fail(ErrorCode.VALIDATION_ERROR, MSG_INSUFFICIENT_STOCK)

        product.current_stock = new_stock
        db.delete(movement)
        db.commit()
        logger.info(f"↩️ Stock movement {movement_id} reverted (product {product.id} stock now {new_stock})")
        return Result.success(True)

    @staticmethod
    @repository_operation("Summarizing stock movements")
    def get_summary_by_period(db: Session, unit_id: str, start_date: datetime, end_date: datetime) -> Result:
        movements = (
            db.query(StockMovement)
            .filter(
                StockMovement.unit_id == unit_id,
                StockMovement.is_active.is_(True),
                StockMovement.created_at >= start_date,
                StockMovement.created_at <= end_date,
            )
            .all()
        )

        summary = {
            "total_entries": 0,
            "total_exits": 0,
            "entries_quantity": 0,
            "exits_quantity": 0,
            "entries_value": 0.0,
            "exits_value": 0.0,
        }
        for m in movements:
            if m.movement_type == "ENTRADA":
                summary["total_entries"] += 1
                summary["entries_quantity"] += m.quantity
                summary["entries_value"] += float(m.total_cost or 0)
            else:
                summary["total_exits"] += 1
                summary["exits_quantity"] += m.quantity
                summary["exits_value"] += float(m.total_cost or 0)

        summary["net_quantity"] = summary["entries_quantity"] - summary["exits_quantity"]
        return Result.success(summary)
