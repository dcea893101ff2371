"""Reconciliation repository - links between bank statement lines and expenses"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ...models import BankStatement, Expense, Reconciliation
from ...shared.errors import ErrorCode
from ...shared.repository import repository_operation
from ...shared.result import Page, Result

logger = logging.getLogger(__name__)

RECONCILIATION_NOT_FOUND = "Conciliação não encontrada"
STATEMENT_NOT_FOUND = "Extrato não encontrado"
ALREADY_RECONCILED = "Extrato já está conciliado"

UNIQUE_MESSAGES = {"bank_statement_id": ALREADY_RECONCILED}


def _statements(db: Session, unit_id: str, filters: dict):
    query = db.query(BankStatement).filter(BankStatement.unit_id == unit_id, BankStatement.is_active.is_(True))
    if filters.get("bank_account_id"):
        query = query.filter(BankStatement.bank_account_id == filters["bank_account_id"])
    if filters.get("start_date"):
        query = query.filter(BankStatement.transaction_date >= filters["start_date"])
    if filters.get("end_date"):
        query = query.filter(BankStatement.transaction_date <= filters["end_date"])
    return query


def _linked_expense_ids():
    return select(Reconciliation.reference_id).where(Reconciliation.reference_type == "Expense")


class ReconciliationRepository:
    """Repository for reconciliation database operations"""

    @staticmethod
    @repository_operation("Listing unreconciled statements")
    def find_unreconciled_statements(db: Session, unit_id: str, filters: Optional[dict] = None) -> Result:
        """Pending lines, oldest first so earlier debits claim expenses first"""
        statements = (
            _statements(db, unit_id, filters or {})
            .filter(BankStatement.reconciled.is_(False), BankStatement.status != "ignored")
            .order_by(BankStatement.transaction_date.asc(), BankStatement.created_at.asc())
            .all()
        )
        return Result.success(statements)

    @staticmethod
    @repository_operation("Listing open expenses")
    def find_open_expenses(db: Session, unit_id: str) -> Result:
        """Active, non-cancelled expenses of the unit that no statement line settles yet"""
        expenses = (
            db.query(Expense)
            .filter(
                Expense.unit_id == unit_id,
                Expense.is_active.is_(True),
                Expense.status != "Cancelled",
                Expense.id.notin_(_linked_expense_ids()),
            )
            .order_by(Expense.date.asc())
            .all()
        )
        return Result.success(expenses)

    @staticmethod
    @repository_operation("Checking expense link")
    def is_expense_linked(db: Session, expense_id: str) -> Result:
        linked = (
            db.query(Reconciliation.id)
            .filter(Reconciliation.reference_type == "Expense", Reconciliation.reference_id == expense_id)
            .first()
        )
        return Result.success(linked is not None)

    @staticmethod
    @repository_operation("Reconciling statement", unique_messages=UNIQUE_MESSAGES)
    def create_link(db: Session, data: dict, expense_updates: Optional[dict] = None) -> Result:
        """
        Insert the link, flag the statement and settle the expense in one transaction.

        The statement row is locked so two concurrent confirmations cannot both
        see it as pending.
        """
        statement = (
            db.query(BankStatement)
            .filter(BankStatement.id == data["bank_statement_id"], BankStatement.is_active.is_(True))
            .with_for_update()
            .first()
        )
        if not statement:
            return Result.fail(ErrorCode.NOT_FOUND, STATEMENT_NOT_FOUND)
        if statement.reconciled:
            return Result.fail(ErrorCode.VALIDATION_ERROR, ALREADY_RECONCILED)

        reconciliation = Reconciliation(**data)
        db.add(reconciliation)

        statement.reconciled = True
        statement.status = "reconciled"
        statement.reconciled_at = datetime.now(timezone.utc)
        statement.reconciled_by = data.get("reconciled_by")

        if expense_updates:
            expense = db.query(Expense).filter(Expense.id == data["reference_id"]).first()
            if expense:
                for key, value in expense_updates.items():
                    setattr(expense, key, value)

        db.commit()
        db.refresh(reconciliation)
        logger.info(
            f"🔗 Statement {statement.id} linked to expense {data['reference_id']} "
            f"({reconciliation.status}, auto={reconciliation.is_auto})"
        )
        return Result.success(reconciliation)

    @staticmethod
    @repository_operation("Finding reconciliation")
    def find_by_id(db: Session, reconciliation_id: str) -> Result:
        reconciliation = (
            db.query(Reconciliation)
            .options(selectinload(Reconciliation.statement))
            .filter(Reconciliation.id == reconciliation_id)
            .first()
        )
        if not reconciliation:
            return Result.fail(ErrorCode.NOT_FOUND, RECONCILIATION_NOT_FOUND)
        return Result.success(reconciliation)

    @staticmethod
    @repository_operation("Listing reconciliations")
    def find_by_unit(db: Session, unit_id: str, filters: dict) -> Result:
        query = db.query(Reconciliation).filter(Reconciliation.unit_id == unit_id)
        if filters.get("status"):
            query = query.filter(Reconciliation.status == filters["status"])
        total = query.count()
        page = filters.get("page", 1)
        page_size = filters.get("page_size", 20)
        items = (
            query.options(selectinload(Reconciliation.statement))
            .order_by(Reconciliation.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return Result.success(Page(items=items, total=total, page=page, page_size=page_size))

    @staticmethod
    @repository_operation("Undoing reconciliation")
    def delete_link(db: Session, reconciliation_id: str) -> Result:
        """Remove the link and put the statement back to pending; the expense keeps its status"""
        reconciliation = db.query(Reconciliation).filter(Reconciliation.id == reconciliation_id).first()
        if not reconciliation:
            return Result.fail(ErrorCode.NOT_FOUND, RECONCILIATION_NOT_FOUND)

        statement = db.query(BankStatement).filter(BankStatement.id == reconciliation.bank_statement_id).first()
        if statement:
            statement.reconciled = False
            statement.status = "pending"
            statement.reconciled_at = None
            statement.reconciled_by = None

        db.delete(reconciliation)
        db.commit()
        logger.info(f"↩️ Reconciliation {reconciliation_id} undone")
        return Result.success(True)

    @staticmethod
    @repository_operation("Summarizing reconciliations")
    def get_statistics(
        db: Session, unit_id: str, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> Result:
        statements = _statements(db, unit_id, {"start_date": start_date, "end_date": end_date}).all()

        total_amount = 0.0
        reconciled_amount = 0.0
        reconciled = 0
        for statement in statements:
            amount = float(statement.amount or 0)
            total_amount += amount
            if statement.reconciled:
                reconciled += 1
                reconciled_amount += amount

        ids = [s.id for s in statements]
        divergent = []
        if ids:
            divergent = (
                db.query(Reconciliation.difference)
                .filter(Reconciliation.bank_statement_id.in_(ids), Reconciliation.status == "Divergent")
                .all()
            )
        divergent_amount = sum(abs(float(row[0] or 0)) for row in divergent)

        total = len(statements)
        return Result.success(
            {
                "total_statements": total,
                "total_reconciled": reconciled,
                "total_pending": total - reconciled,
                "reconciliation_percentage": round(reconciled / total * 100) if total else 0,
                "total_amount": round(total_amount, 2),
                "reconciled_amount": round(reconciled_amount, 2),
                "pending_amount": round(total_amount - reconciled_amount, 2),
                "divergent_count": len(divergent),
                "divergent_amount": round(divergent_amount, 2),
            }
        )
