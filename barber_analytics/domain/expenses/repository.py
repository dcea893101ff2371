"""Expense repository - Database operations for expenses and recurring expenses"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Expense, RecurringExpense
from ...shared.errors import ErrorCode
from ...shared.repository import apply_updates, repository_operation
from ...shared.result import Page, Result
from .dtos import installment_due_date

logger = logging.getLogger(__name__)

EXPENSE_NOT_FOUND = "Despesa não encontrada"
RECURRING_NOT_FOUND = "Despesa recorrente não encontrada"

FILTER_FIELDS = ("unit_id", "status", "type", "account_id", "category_id", "party_id", "recurring_expense_id")


def _filtered(db: Session, filters: dict):
    query = db.query(Expense).filter(Expense.is_active.is_(True))
    for field in FILTER_FIELDS:
        if filters.get(field):
            query = query.filter(getattr(Expense, field) == filters[field])
    if filters.get("start_date"):
        query = query.filter(Expense.date >= filters["start_date"])
    if filters.get("end_date"):
        query = query.filter(Expense.date <= filters["end_date"])
    return query


class ExpenseRepository:
    """Repository for expense database operations"""

    @staticmethod
    @repository_operation("Creating expense")
    def create(db: Session, data: dict) -> Result:
        expense = Expense(**data)
        db.add(expense)
        db.commit()
        db.refresh(expense)
        logger.info(f"✅ Expense created: {expense.id} ({expense.value})")
        return Result.success(expense)

    @staticmethod
    @repository_operation("Finding expense")
    def find_by_id(db: Session, expense_id: str) -> Result:
        expense = db.query(Expense).filter(Expense.id == expense_id, Expense.is_active.is_(True)).first()
        if not expense:
            return Result.fail(ErrorCode.NOT_FOUND, EXPENSE_NOT_FOUND)
        return Result.success(expense)

    @staticmethod
    @repository_operation("Listing expenses")
    def find_all(db: Session, filters: dict) -> Result:
        """Newest first, paginated"""
        query = _filtered(db, filters)
        total = query.count()
        page = filters.get("page", 1)
        page_size = filters.get("page_size", 20)
        items = (
            query.order_by(Expense.date.desc(), Expense.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return Result.success(Page(items=items, total=total, page=page, page_size=page_size))

    @staticmethod
    @repository_operation("Counting expenses")
    def count(db: Session, filters: Optional[dict] = None) -> Result:
        return Result.success(_filtered(db, filters or {}).count())

    @staticmethod
    @repository_operation("Updating expense")
    def update(db: Session, expense_id: str, updates: dict) -> Result:
        expense = db.query(Expense).filter(Expense.id == expense_id, Expense.is_active.is_(True)).first()
        if not expense:
            return Result.fail(ErrorCode.NOT_FOUND, EXPENSE_NOT_FOUND)

        apply_updates(expense, updates)
        db.commit()
        db.refresh(expense)
        logger.info(f"✅ Expense updated: {expense_id}")
        return Result.success(expense)

    @staticmethod
    @repository_operation("Deleting expense")
    def soft_delete(db: Session, expense_id: str) -> Result:
        expense = db.query(Expense).filter(Expense.id == expense_id, Expense.is_active.is_(True)).first()
        if not expense:
            return Result.fail(ErrorCode.NOT_FOUND, EXPENSE_NOT_FOUND)

        expense.is_active = False
        db.commit()
        logger.info(f"🗑️ Expense soft-deleted: {expense_id}")
        return Result.success(True)

    @staticmethod
    @repository_operation("Removing expense")
    def hard_delete(db: Session, expense_id: str) -> Result:
        expense = db.query(Expense).filter(Expense.id == expense_id).first()
        if not expense:
            return Result.fail(ErrorCode.NOT_FOUND, EXPENSE_NOT_FOUND)

        db.delete(expense)
        db.commit()
        logger.info(f"🗑️ Expense removed: {expense_id}")
        return Result.success(True)

    @staticmethod
    @repository_operation("Summarizing expenses")
    def get_by_period(db: Session, unit_id: str, start_date: date, end_date: date) -> Result:
        """Totals of the active expenses in [start_date, end_date], grouped by status and type"""
        expenses = _filtered(db, {"unit_id": unit_id, "start_date": start_date, "end_date": end_date}).all()

        by_status: dict = {}
        by_type: dict = {}
        total = 0.0
        for expense in expenses:
            value = float(expense.value or 0)
            total += value
            for bucket, key in ((by_status, expense.status or "Unknown"), (by_type, expense.type or "other")):
                entry = bucket.setdefault(key, {"count": 0, "total": 0.0})
                entry["count"] += 1
                entry["total"] += value

        logger.info(f"📊 {len(expenses)} expenses in period for unit {unit_id} (total {total:.2f})")
        return Result.success(
            {"count": len(expenses), "total": round(total, 2), "by_status": by_status, "by_type": by_type}
        )


class RecurringExpenseRepository:
    """Repository for recurring expense series"""

    @staticmethod
    @repository_operation("Creating recurring expense")
    def create(db: Session, data: dict, first_installment: dict) -> Result:
        """
        Store the series and its first installment in one transaction.

        The installment is linked to the series as number 1 and the series
        starts with parcelas_geradas = 1.
        """
        recurring = RecurringExpense(**data)
        recurring.parcelas_geradas = 1
        db.add(recurring)
        db.flush()

        expense = Expense(**first_installment)
        expense.recurring_expense_id = recurring.id
        expense.installment_number = 1
        db.add(expense)
        db.flush()

        recurring.expense_id = expense.id
        if recurring.total_parcelas <= 1:
            recurring.status = "finalizado"
            recurring.data_fim = expense.date
        db.commit()
        db.refresh(recurring)
        logger.info(f"🔁 Recurring expense created: {recurring.id} ({recurring.total_parcelas} installments)")
        return Result.success(recurring)

    @staticmethod
    @repository_operation("Finding recurring expense")
    def find_by_id(db: Session, recurring_id: str) -> Result:
        recurring = db.query(RecurringExpense).filter(RecurringExpense.id == recurring_id).first()
        if not recurring:
            return Result.fail(ErrorCode.NOT_FOUND, RECURRING_NOT_FOUND)
        return Result.success(recurring)

    @staticmethod
    @repository_operation("Listing recurring expenses")
    def find_by_unit(db: Session, unit_id: str, status: Optional[str] = None) -> Result:
        query = db.query(RecurringExpense).filter(RecurringExpense.unit_id == unit_id)
        if status:
            query = query.filter(RecurringExpense.status == status)
        return Result.success(query.order_by(RecurringExpense.created_at.desc()).all())

    @staticmethod
    @repository_operation("Listing pending recurring expenses")
    def find_generatable(db: Session, unit_id: Optional[str] = None) -> Result:
        """Active series that still have installments to generate"""
        query = db.query(RecurringExpense).filter(
            RecurringExpense.status == "ativo",
            RecurringExpense.parcelas_geradas < RecurringExpense.total_parcelas,
        )
        if unit_id:
            query = query.filter(RecurringExpense.unit_id == unit_id)
        return Result.success(query.all())

    @staticmethod
    @repository_operation("Updating recurring expense")
    def update(db: Session, recurring_id: str, updates: dict) -> Result:
        recurring = db.query(RecurringExpense).filter(RecurringExpense.id == recurring_id).first()
        if not recurring:
            return Result.fail(ErrorCode.NOT_FOUND, RECURRING_NOT_FOUND)

        apply_updates(recurring, updates)
        db.commit()
        db.refresh(recurring)
        return Result.success(recurring)

    @staticmethod
    @repository_operation("Generating recurring installments")
    def generate_installments(db: Session, recurring_id: str, up_to: date) -> Result:
        """
        Create every missing installment due on or before up_to.

        Installments copy the series template, start as Pending and are
        numbered sequentially. The series is finished once all exist.
        """
        recurring = (
            db.query(RecurringExpense).filter(RecurringExpense.id == recurring_id).with_for_update().first()
        )
        if not recurring:
            return Result.fail(ErrorCode.NOT_FOUND, RECURRING_NOT_FOUND)

        created = []
        template = dict(recurring.template or {})
        while recurring.status == "ativo" and recurring.parcelas_geradas < recurring.total_parcelas:
            number = recurring.parcelas_geradas + 1
            due = installment_due_date(recurring.data_inicio, recurring.cobrar_sempre_no, number)
            if due > up_to:
                break

            expense = Expense(
                **template,
                unit_id=recurring.unit_id,
                value=recurring.monthly_value,
                date=due,
                expected_payment_date=due,
                status="Pending",
                description=f"{recurring.description} ({number}/{recurring.total_parcelas})",
                recurring_expense_id=recurring.id,
                installment_number=number,
            )
            db.add(expense)
            created.append(expense)
            recurring.parcelas_geradas = number

            if number == recurring.total_parcelas:
                recurring.status = "finalizado"
                recurring.data_fim = due

        db.commit()
        for expense in created:
            db.refresh(expense)
        if created:
            logger.info(f"🔁 {len(created)} installment(s) generated for recurring expense {recurring_id}")
        return Result.success(created)

    @staticmethod
    @repository_operation("Cancelling recurring series")
    def cancel_series(db: Session, recurring_id: str, from_date: date) -> Result:
        """Finish the series and soft-delete its pending installments after from_date"""
        recurring = db.query(RecurringExpense).filter(RecurringExpense.id == recurring_id).first()
        if not recurring:
            return Result.fail(ErrorCode.NOT_FOUND, RECURRING_NOT_FOUND)

        pending = (
            db.query(Expense)
            .filter(
                Expense.recurring_expense_id == recurring_id,
                Expense.is_active.is_(True),
                Expense.status == "Pending",
                Expense.date > from_date,
            )
            .all()
        )
        for expense in pending:
            expense.is_active = False

        recurring.status = "finalizado"
        recurring.data_fim = from_date
        db.commit()
        logger.info(f"🛑 Recurring expense {recurring_id} cancelled, {len(pending)} pending installment(s) removed")
        return Result.success(len(pending))
