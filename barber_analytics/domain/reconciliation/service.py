"""Reconciliation service - suggest, confirm and undo statement/expense links"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...domain.audit.service import AuditService
from ...models import User
from ...services.audited_service import AuditedService
from ...services.notification_service import NotificationService
from ...shared.errors import ErrorCode
from ...shared.permissions import Permission, can_access_unit, has_permission
from ...shared.result import Page, Result
from ..bank_statements.repository import BankStatementRepository
from ..expenses.repository import ExpenseRepository
from . import matcher
from .dtos import (
    ConfirmMatchDTO,
    MatchFiltersDTO,
    ReconciliationFiltersDTO,
    ReconciliationResponseDTO,
    expense_to_match,
    reconciliation_status,
    statement_to_match,
)
from .repository import ReconciliationRepository

logger = logging.getLogger(__name__)

NO_PERMISSION = "Sem permissão para conciliar extratos bancários"
UNIT_REQUIRED = "unit_id é obrigatório"


def present(reconciliation) -> dict:
    return ReconciliationResponseDTO(reconciliation).to_object()


class ReconciliationService(AuditedService):
    """Service layer for bank reconciliation"""

    resource = "reconciliations"

    def __init__(
        self,
        db: Session,
        repository: Optional[ReconciliationRepository] = None,
        statements: Optional[BankStatementRepository] = None,
        expenses: Optional[ExpenseRepository] = None,
        notifier: Optional[NotificationService] = None,
        audit: Optional[AuditService] = None,
    ):
        super().__init__(db, notifier=notifier, audit=audit)
        self.repo = repository or ReconciliationRepository()
        self.statements = statements or BankStatementRepository()
        self.expenses = expenses or ExpenseRepository()

    def _guard_unit(self, unit_id: Optional[str], user: User, action: str) -> Optional[Result]:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, action, NO_PERMISSION, unit_id)
        if not unit_id:
            return Result.validation_failed([UNIT_REQUIRED])
        if not can_access_unit(self.db, user, unit_id):
            return self.deny(user, action, NO_PERMISSION, unit_id)
        return None

    def _refuse(self, user: User, message: str, resource_id: str, unit_id: str) -> Result:
        return self.fail(
            user, "confirm", ErrorCode.VALIDATION_ERROR, message, resource_id=resource_id, unit_id=unit_id
        )

    def _candidates(self, unit_id: str, filters: dict) -> Result:
        statements = self.repo.find_unreconciled_statements(self.db, unit_id, filters)
        if statements.error:
            return statements
        expenses = self.repo.find_open_expenses(self.db, unit_id)
        if expenses.error:
            return expenses
        return Result.success((statements.data, expenses.data))

    def _link(
        self,
        statement,
        expense,
        user: User,
        adjustment: float = 0.0,
        notes: Optional[str] = None,
        is_auto: bool = False,
        confidence: Optional[float] = None,
    ) -> Result:
        """
        Persist one link.

        difference = |statement| - |expense| - adjustment. A clean link also
        marks the expense Paid on the statement date when it has no payment
        date yet; a divergent one leaves the expense untouched.
        """
        difference = round(abs(float(statement.amount or 0)) - abs(float(expense.value or 0)) - adjustment, 2)
        status = reconciliation_status(difference)

        expense_updates = None
        if status == "Reconciled":
            expense_updates = {"status": "Paid"}
            if not expense.actual_payment_date:
                expense_updates["actual_payment_date"] = statement.transaction_date

        data = {
            "unit_id": statement.unit_id,
            "bank_statement_id": statement.id,
            "reference_type": "Expense",
            "reference_id": expense.id,
            "status": status,
            "difference": difference,
            "confidence": confidence,
            "is_auto": is_auto,
            "notes": notes,
            "reconciled_by": user.id,
        }
        return self.repo.create_link(self.db, data, expense_updates)

    def suggest_matches(self, unit_id: str, user: User, filters: Optional[dict] = None) -> Result:
        """Ranked candidates per pending statement line; nothing is written"""
        denied = self._guard_unit(unit_id, user, "suggest")
        if denied:
            return denied

        dto = MatchFiltersDTO(filters)
        validation = dto.validate()
        if not validation.is_valid:
            return Result.validation_failed(validation.errors)

        candidates = self._candidates(unit_id, dto.to_object())
        if candidates.error:
            return candidates
        statements, expenses = candidates.data

        result = matcher.find_matches(
            [statement_to_match(s) for s in statements], [expense_to_match(e) for e in expenses]
        )
        logger.info(
            f"🔎 Reconciliation suggestions for unit {unit_id}: "
            f"{result['statistics']['total_matches']} match(es) over {len(statements)} statement(s)"
        )
        return Result.success(result)

    def confirm_match(self, data: dict, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "confirm", NO_PERMISSION)

        dto = ConfirmMatchDTO(data)
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "confirm", validation.errors)

        statement = self.statements.find_by_id(self.db, dto.statement_id)
        if statement.error:
            return self.abort(user, "confirm", statement, resource_id=dto.statement_id)
        statement = statement.data
        unit_id = statement.unit_id
        if not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "confirm", NO_PERMISSION, unit_id)
        if statement.reconciled:
            return self._refuse(user, "Extrato já está conciliado", statement.id, unit_id)
        if statement.type != "Debit":
            return self._refuse(user, "Apenas débitos podem ser conciliados com despesas", statement.id, unit_id)

        expense = self.expenses.find_by_id(self.db, dto.expense_id)
        if expense.error:
            return self.abort(user, "confirm", expense, resource_id=dto.expense_id, unit_id=unit_id)
        expense = expense.data
        if expense.unit_id != unit_id:
            return self._refuse(user, "Despesa não pertence à unidade do extrato", statement.id, unit_id)
        if expense.status == "Cancelled":
            return self._refuse(user, "Despesa cancelada não pode ser conciliada", expense.id, unit_id)

        linked = self.repo.is_expense_linked(self.db, expense.id)
        if linked.error:
            return linked
        if linked.data:
            return self._refuse(user, "Despesa já está conciliada", expense.id, unit_id)

        confidence = matcher.score_pair(statement_to_match(statement), expense_to_match(expense))["confidence"]
        result = self._link(
            statement, expense, user, adjustment=dto.adjustment or 0.0, notes=dto.notes, confidence=confidence
        )
        message = "Extrato conciliado"
        if result.ok and result.data.status == "Divergent":
            message = "Extrato conciliado com divergência"
        self.complete(
            user,
            "confirm",
            result,
            message,
            unit_id=unit_id,
            details={"statement_id": statement.id, "expense_id": expense.id},
        )
        return Result.success(present(result.data)) if result.ok else result

    def auto_reconcile(self, unit_id: str, user: User, filters: Optional[dict] = None) -> Result:
        """Link every statement whose best candidate reached high confidence"""
        denied = self._guard_unit(unit_id, user, "auto_reconcile")
        if denied:
            return denied

        dto = MatchFiltersDTO(filters)
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "auto_reconcile", validation.errors, unit_id)

        candidates = self._candidates(unit_id, dto.to_object())
        if candidates.error:
            return candidates
        statements, expenses = candidates.data
        statements_by_id = {s.id: s for s in statements}
        expenses_by_id = {e.id: e for e in expenses}

        suggestions = matcher.find_matches(
            [statement_to_match(s) for s in statements], [expense_to_match(e) for e in expenses]
        )

        linked: list[dict] = []
        errors: list[str] = []
        for group in suggestions["matches"]:
            best = group["best_match"]
            if not group["auto_matched"] or not best:
                continue
            result = self._link(
                statements_by_id[best["statement_id"]],
                expenses_by_id[best["entry_id"]],
                user,
                is_auto=True,
                confidence=best["confidence"],
            )
            if result.error:
                errors.append(f"Extrato {best['statement_id']}: {result.error.message}")
                continue
            linked.append(present(result.data))

        summary = {
            "reconciled": len(linked),
            "pending": len(statements) - len(linked),
            "reconciliations": linked,
            "errors": errors,
        }
        logger.info(f"🤖 Auto reconciliation for unit {unit_id}: linked={len(linked)} errors={len(errors)}")
        if linked:
            self.notifier.success(user, f"{len(linked)} extrato(s) conciliado(s) automaticamente")
        if errors:
            self.notifier.warning(user, f"{len(errors)} conciliação(ões) automática(s) falharam")
        self.audit.log_action(
            user,
            "auto_reconcile",
            self.resource,
            unit_id=unit_id,
            details={"reconciled": len(linked), "errors": len(errors)},
        )
        return Result.success(summary)

    def undo_reconciliation(self, reconciliation_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "undo", NO_PERMISSION)

        current = self.repo.find_by_id(self.db, reconciliation_id)
        if current.error:
            return self.abort(user, "undo", current, resource_id=reconciliation_id)
        unit_id = current.data.unit_id
        if not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "undo", NO_PERMISSION, unit_id)

        result = self.repo.delete_link(self.db, reconciliation_id)
        self.complete(
            user,
            "undo",
            result,
            "Conciliação desfeita",
            resource_id=reconciliation_id,
            unit_id=unit_id,
            details={"statement_id": current.data.bank_statement_id, "expense_id": current.data.reference_id},
        )
        return Result.success({"id": reconciliation_id, "deleted": True}) if result.ok else result

    def list_reconciliations(self, unit_id: str, filters: Optional[dict], user: User) -> Result:
        denied = self._guard_unit(unit_id, user, "list")
        if denied:
            return denied

        dto = ReconciliationFiltersDTO(filters)
        validation = dto.validate()
        if not validation.is_valid:
            return Result.validation_failed(validation.errors)

        result = self.repo.find_by_unit(self.db, unit_id, dto.to_object())
        if result.error:
            return result
        page = result.data
        return Result.success(
            Page(items=[present(r) for r in page.items], total=page.total, page=page.page, page_size=page.page_size)
        )

    def get_statistics(self, unit_id: str, user: User, filters: Optional[dict] = None) -> Result:
        denied = self._guard_unit(unit_id, user, "statistics")
        if denied:
            return denied

        dto = MatchFiltersDTO(filters)
        validation = dto.validate()
        if not validation.is_valid:
            return Result.validation_failed(validation.errors)

        window = dto.to_object()
        return self.repo.get_statistics(self.db, unit_id, window["start_date"], window["end_date"])
