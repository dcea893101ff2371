"""Bank statement repository - Database operations for imported statement lines"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ...models import BankStatement
from ...shared.errors import ErrorCode
from ...shared.repository import apply_updates, repository_operation
from ...shared.result import Page, Result

logger = logging.getLogger(__name__)

STATEMENT_NOT_FOUND = "Extrato não encontrado"

UNIQUE_MESSAGES = {"hash_unique": "Já existe um registro com essas informações (duplicata)."}


def _filtered(db: Session, filters: dict):
    query = db.query(BankStatement).filter(BankStatement.is_active.is_(True))
    for field in ("unit_id", "bank_account_id", "type", "status"):
        if filters.get(field):
            query = query.filter(getattr(BankStatement, field) == filters[field])
    if filters.get("reconciled") is not None:
        query = query.filter(BankStatement.reconciled.is_(bool(filters["reconciled"])))
    if filters.get("start_date"):
        query = query.filter(BankStatement.transaction_date >= filters["start_date"])
    if filters.get("end_date"):
        query = query.filter(BankStatement.transaction_date <= filters["end_date"])
    return query


def _active(db: Session, statement_id: str) -> Optional[BankStatement]:
    return (
        db.query(BankStatement)
        .filter(BankStatement.id == statement_id, BankStatement.is_active.is_(True))
        .first()
    )


class BankStatementRepository:
    """Repository for bank statement database operations"""

    @staticmethod
    @repository_operation("Listing bank statements")
    def find_all(db: Session, filters: dict) -> Result:
        """Active statements, most recent transaction first"""
        query = _filtered(db, filters)
        total = query.count()
        page = filters.get("page", 1)
        page_size = filters.get("page_size", 50)
        items = (
            query.order_by(BankStatement.transaction_date.desc(), BankStatement.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return Result.success(Page(items=items, total=total, page=page, page_size=page_size))

    @staticmethod
    @repository_operation("Finding bank statement")
    def find_by_id(db: Session, statement_id: str) -> Result:
        statement = _active(db, statement_id)
        if not statement:
            return Result.fail(ErrorCode.NOT_FOUND, STATEMENT_NOT_FOUND)
        return Result.success(statement)

    @staticmethod
    @repository_operation("Checking statement hashes")
    def find_by_hashes(db: Session, hashes: list[str]) -> Result:
        """
        Hashes that are already stored.

        Soft-deleted rows count too, since hash_unique is unique across the table.
        """
        if not hashes:
            return Result.success(set())
        rows = db.query(BankStatement.hash_unique).filter(BankStatement.hash_unique.in_(hashes)).all()
        return Result.success({row[0] for row in rows})

    @staticmethod
    @repository_operation("Importing bank statements", unique_messages=UNIQUE_MESSAGES)
    def bulk_insert(db: Session, rows: list[dict]) -> Result:
        """Insert all rows in one transaction; any failure inserts nothing"""
        statements = [BankStatement(**row) for row in rows]
        db.add_all(statements)
        db.commit()
        for statement in statements:
            db.refresh(statement)
        logger.info(f"🏦 {len(statements)} bank statement(s) imported")
        return Result.success(statements)

    @staticmethod
    @repository_operation("Updating bank statement")
    def update(db: Session, statement_id: str, updates: dict) -> Result:
        statement = _active(db, statement_id)
        if not statement:
            return Result.fail(ErrorCode.NOT_FOUND, STATEMENT_NOT_FOUND)

        apply_updates(statement, updates)
        db.commit()
        db.refresh(statement)
        return Result.success(statement)

    @staticmethod
    @repository_operation("Reconciling bank statement")
    def mark_as_reconciled(db: Session, statement_id: str, user_id: str) -> Result:
        statement = _active(db, statement_id)
        if not statement:
            return Result.fail(ErrorCode.NOT_FOUND, STATEMENT_NOT_FOUND)

        statement.reconciled = True
        statement.status = "reconciled"
        statement.reconciled_at = datetime.now(timezone.utc)
        statement.reconciled_by = user_id
        db.commit()
        db.refresh(statement)
        logger.info(f"✅ Bank statement {statement_id} reconciled by {user_id}")
        return Result.success(statement)

    @staticmethod
    @repository_operation("Deleting bank statement")
    def soft_delete(db: Session, statement_id: str) -> Result:
        statement = _active(db, statement_id)
        if not statement:
            return Result.fail(ErrorCode.NOT_FOUND, STATEMENT_NOT_FOUND)

        statement.is_active = False
        db.commit()
        logger.info(f"🗑️ Bank statement soft-deleted: {statement_id}")
        return Result.success(True)

    @staticmethod
    @repository_operation("Counting bank statements")
    def count(db: Session, filters: Optional[dict] = None) -> Result:
        return Result.success(_filtered(db, filters or {}).count())

    @staticmethod
    @repository_operation("Summarizing bank statements")
    def get_by_period(
        db: Session, unit_id: str, start_date: date, end_date: date, bank_account_id: Optional[str] = None
    ) -> Result:
        statements = _filtered(
            db,
            {"unit_id": unit_id, "bank_account_id": bank_account_id, "start_date": start_date, "end_date": end_date},
        ).all()

        total_credits = 0.0
        total_debits = 0.0
        by_type = {"Credit": {"count": 0, "total": 0.0}, "Debit": {"count": 0, "total": 0.0}}
        by_reconciliation = {"reconciled": 0, "pending": 0}
        for statement in statements:
            amount = float(statement.amount or 0)
            if statement.type == "Debit":
                total_debits += amount
            else:
                total_credits += amount
            bucket = by_type.setdefault(statement.type, {"count": 0, "total": 0.0})
            bucket["count"] += 1
            bucket["total"] += amount
            by_reconciliation["reconciled" if statement.reconciled else "pending"] += 1

        return Result.success(
            {
                "count": len(statements),
                "total_credits": round(total_credits, 2),
                "total_debits": round(total_debits, 2),
                "balance": round(total_credits - total_debits, 2),
                "by_type": by_type,
                "by_reconciliation": by_reconciliation,
            }
        )
