"""Expense service - Business logic for expenses and recurring expense series"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...domain.audit.service import AuditService
from ...models import User
from ...services.audited_service import AuditedService
from ...services.notification_service import NotificationService
from ...shared.errors import ErrorCode
from ...shared.permissions import Permission, can_access_unit, has_permission, is_admin
from ...shared.result import Page, Result
from .dtos import (
    CreateExpenseDTO,
    CreateRecurringExpenseDTO,
    ExpenseFiltersDTO,
    ExpenseResponseDTO,
    RecurringExpenseResponseDTO,
    UpdateExpenseDTO,
    UpdateRecurringExpenseDTO,
    parse_date,
)
from .repository import ExpenseRepository, RecurringExpenseRepository

logger = logging.getLogger(__name__)

NO_PERMISSION = "Sem permissão para gerenciar despesas"

# Per-installment values come from the series itself
TEMPLATE_EXCLUDED = (
    "unit_id",
    "value",
    "date",
    "status",
    "description",
    "expected_payment_date",
    "actual_payment_date",
)


def present(expense) -> dict:
    return ExpenseResponseDTO(expense).to_object()


def present_recurring(recurring) -> dict:
    return RecurringExpenseResponseDTO(recurring).to_object()


class ExpenseService(AuditedService):
    """Service layer for expenses"""

    resource = "expenses"

    def __init__(
        self,
        db: Session,
        repository: Optional[ExpenseRepository] = None,
        notifier: Optional[NotificationService] = None,
        audit: Optional[AuditService] = None,
    ):
        super().__init__(db, notifier=notifier, audit=audit)
        self.repo = repository or ExpenseRepository()

    def _load(self, expense_id: str, user: User, action: str) -> Result:
        current = self.repo.find_by_id(self.db, expense_id)
        if current.error:
            return self.abort(user, action, current, resource_id=expense_id)
        if not can_access_unit(self.db, user, current.data.unit_id):
            return self.deny(user, action, NO_PERMISSION, current.data.unit_id)
        return current

    def create_expense(self, data: dict, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "create", NO_PERMISSION, data.get("unit_id"))

        dto = CreateExpenseDTO(data)
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "create", validation.errors, data.get("unit_id"))
        if not can_access_unit(self.db, user, dto.model.unit_id):
            return self.deny(user, "create", NO_PERMISSION, dto.model.unit_id)

        payload = dto.to_object()
        payload.setdefault("user_id", user.id)
        result = self.repo.create(self.db, payload)
        self.complete(
            user,
            "create",
            result,
            "Despesa cadastrada com sucesso",
            unit_id=dto.model.unit_id,
            details={"value": dto.model.value, "description": dto.model.description},
        )
        return Result.success(present(result.data)) if result.ok else result

    def get_expense(self, expense_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "view", NO_PERMISSION)
        current = self._load(expense_id, user, "view")
        if current.error:
            return current
        return Result.success(present(current.data))

    def list_expenses(self, filters: dict, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "list", NO_PERMISSION, filters.get("unit_id"))

        dto = ExpenseFiltersDTO(filters)
        validation = dto.validate()
        if not validation.is_valid:
            return Result.validation_failed(validation.errors)
        query = dto.to_object()
        if not query["unit_id"]:
            return Result.validation_failed(["unit_id é obrigatório"])
        if not can_access_unit(self.db, user, query["unit_id"]):
            return self.deny(user, "list", NO_PERMISSION, query["unit_id"])

        result = self.repo.find_all(self.db, query)
        if result.error:
            return result
        page = result.data
        return Result.success(
            Page(items=[present(e) for e in page.items], total=page.total, page=page.page, page_size=page.page_size)
        )

    def update_expense(self, expense_id: str, data: dict, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "update", NO_PERMISSION)

        dto = UpdateExpenseDTO(data)
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "update", validation.errors)

        current = self._load(expense_id, user, "update")
        if current.error:
            return current

        updates = dto.to_object()
        result = self.repo.update(self.db, expense_id, updates)
        self.complete(
            user,
            "update",
            result,
            "Despesa atualizada com sucesso",
            resource_id=expense_id,
            unit_id=current.data.unit_id,
            details={"changes": updates},
        )
        return Result.success(present(result.data)) if result.ok else result

    def mark_as_paid(self, expense_id: str, user: User, payment_date=None) -> Result:
        """Set status Paid and the actual payment date (today by default)"""
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "mark_as_paid", NO_PERMISSION)

        paid_on = date.today() if payment_date in (None, "") else parse_date(payment_date)
        if paid_on is None:
            return self.reject(user, "mark_as_paid", ["Data de pagamento deve estar no formato YYYY-MM-DD"])

        current = self._load(expense_id, user, "mark_as_paid")
        if current.error:
            return current
        expense = current.data
        if expense.status == "Cancelled":
            return self.fail(
                user,
                "mark_as_paid",
                ErrorCode.VALIDATION_ERROR,
                "Despesa cancelada não pode ser marcada como paga",
                resource_id=expense_id,
                unit_id=expense.unit_id,
            )
        if expense.status == "Paid":
            return self.fail(
                user,
                "mark_as_paid",
                ErrorCode.VALIDATION_ERROR,
                "Despesa já está paga",
                resource_id=expense_id,
                unit_id=expense.unit_id,
            )

        result = self.repo.update(self.db, expense_id, {"status": "Paid", "actual_payment_date": paid_on})
        self.complete(
            user, "mark_as_paid", result, "Despesa marcada como paga", resource_id=expense_id, unit_id=expense.unit_id
        )
        return Result.success(present(result.data)) if result.ok else result

    def delete_expense(self, expense_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "delete", NO_PERMISSION)

        current = self._load(expense_id, user, "delete")
        if current.error:
            return current

        result = self.repo.soft_delete(self.db, expense_id)
        self.complete(
            user, "delete", result, "Despesa excluída com sucesso", resource_id=expense_id, unit_id=current.data.unit_id
        )
        return Result.success({"id": expense_id, "deleted": True}) if result.ok else result

    def get_period_summary(self, unit_id: str, start_date, end_date, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "summary", NO_PERMISSION, unit_id)

        start = parse_date(start_date)
        end = parse_date(end_date)
        if not unit_id or start is None or end is None:
            return Result.validation_failed(["unit_id, start_date e end_date são obrigatórios"])
        if start > end:
            return Result.validation_failed(["start_date deve ser anterior a end_date"])
        if not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "summary", NO_PERMISSION, unit_id)

        return self.repo.get_by_period(self.db, unit_id, start, end)


class RecurringExpenseService(AuditedService):
    """Service layer for recurring expense series and their installments"""

    resource = "recurring_expenses"

    def __init__(
        self,
        db: Session,
        repository: Optional[RecurringExpenseRepository] = None,
        notifier: Optional[NotificationService] = None,
        audit: Optional[AuditService] = None,
    ):
        super().__init__(db, notifier=notifier, audit=audit)
        self.repo = repository or RecurringExpenseRepository()

    def _load(self, recurring_id: str, user: User, action: str) -> Result:
        current = self.repo.find_by_id(self.db, recurring_id)
        if current.error:
            return self.abort(user, action, current, resource_id=recurring_id)
        if not can_access_unit(self.db, user, current.data.unit_id):
            return self.deny(user, action, NO_PERMISSION, current.data.unit_id)
        return current

    def create_recurring(self, data: dict, user: User) -> Result:
        """Create the series together with its first installment"""
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "create", NO_PERMISSION, data.get("unit_id"))

        expense_data = data.get("expense")
        if isinstance(expense_data, dict) and not expense_data.get("unit_id"):
            data = {**data, "expense": {**expense_data, "unit_id": data.get("unit_id")}}

        dto = CreateRecurringExpenseDTO(data)
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "create", validation.errors, data.get("unit_id"))

        request = dto.model
        if not can_access_unit(self.db, user, request.unit_id):
            return self.deny(user, "create", NO_PERMISSION, request.unit_id)

        expense = request.expense
        first_installment = expense.model_dump(exclude_none=True)
        first_installment["unit_id"] = request.unit_id
        first_installment.setdefault("user_id", user.id)
        template = {
            key: value
            for key, value in expense.model_dump(mode="json", exclude_none=True).items()
            if key not in TEMPLATE_EXCLUDED
        }
        template.setdefault("user_id", user.id)

        total = dto.total_installments()
        series = {
            "unit_id": request.unit_id,
            "description": expense.description,
            "monthly_value": expense.value,
            "configuracao": request.configuracao,
            "cobrar_sempre_no": request.cobrar_sempre_no,
            "duracao_personalizada": request.duracao_personalizada,
            "total_parcelas": total,
            "status": "ativo",
            "data_inicio": request.data_inicio,
            "template": template,
            "created_by": user.id,
        }
        result = self.repo.create(self.db, series, first_installment)
        self.complete(
            user,
            "create",
            result,
            f"Despesa recorrente criada ({total} parcelas)",
            unit_id=request.unit_id,
            details={"configuracao": request.configuracao, "total_parcelas": total},
        )
        return Result.success(present_recurring(result.data)) if result.ok else result

    def get_recurring(self, recurring_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "view", NO_PERMISSION)
        current = self._load(recurring_id, user, "view")
        if current.error:
            return current
        return Result.success(present_recurring(current.data))

    def list_recurring(self, unit_id: str, user: User, status: Optional[str] = None) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "list", NO_PERMISSION, unit_id)
        if not unit_id:
            return Result.validation_failed(["unit_id é obrigatório"])
        if not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "list", NO_PERMISSION, unit_id)

        result = self.repo.find_by_unit(self.db, unit_id, status)
        if result.error:
            return result
        return Result.success([present_recurring(r) for r in result.data])

    def generate_due_installments(self, user: User, unit_id: Optional[str] = None, up_to=None) -> Result:
        """
        Generate every installment due up to a date (today by default).

        Admins may run it for all units; anyone else must name a unit. A
        failing series is reported and does not stop the others.
        """
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "generate", NO_PERMISSION, unit_id)
        if not unit_id and not is_admin(user):
            return Result.validation_failed(["unit_id é obrigatório"])
        if unit_id and not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "generate", NO_PERMISSION, unit_id)

        limit = date.today() if up_to in (None, "") else parse_date(up_to)
        if limit is None:
            return Result.validation_failed(["Data limite deve estar no formato YYYY-MM-DD"])

        series = self.repo.find_generatable(self.db, unit_id)
        if series.error:
            return series

        summary = {"processed": 0, "generated": 0, "errors": []}
        for recurring in series.data:
            summary["processed"] += 1
            result = self.repo.generate_installments(self.db, recurring.id, limit)
            if result.error:
                logger.error(f"❌ Installments for recurring expense {recurring.id} failed: {result.error.message}")
                summary["errors"].append({"id": recurring.id, "error": result.error.message})
                continue
            summary["generated"] += len(result.data)

        logger.info(
            f"🔁 Recurring generation up to {limit}: processed={summary['processed']} "
            f"generated={summary['generated']} errors={len(summary['errors'])}"
        )
        if summary["generated"]:
            self.notifier.success(user, f"{summary['generated']} parcela(s) de despesas recorrentes gerada(s)")
        if summary["errors"]:
            self.notifier.warning(user, f"{len(summary['errors'])} recorrência(s) com erro na geração de parcelas")
        self.audit.log_action(user, "generate", self.resource, unit_id=unit_id, details=summary)
        return Result.success(summary)

    def _set_status(self, recurring_id: str, user: User, action: str, status: str, allowed_from: str, message: str):
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, action, NO_PERMISSION)

        dto = UpdateRecurringExpenseDTO({"status": status})
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, action, validation.errors)

        current = self._load(recurring_id, user, action)
        if current.error:
            return current
        recurring = current.data
        if recurring.status != allowed_from:
            return self.fail(
                user,
                action,
                ErrorCode.VALIDATION_ERROR,
                f"Recorrência está {recurring.status} e não pode ser alterada para {status}",
                resource_id=recurring_id,
                unit_id=recurring.unit_id,
            )

        result = self.repo.update(self.db, recurring_id, dto.to_object())
        self.complete(user, action, result, message, resource_id=recurring_id, unit_id=recurring.unit_id)
        return Result.success(present_recurring(result.data)) if result.ok else result

    def pause_recurring(self, recurring_id: str, user: User) -> Result:
        return self._set_status(recurring_id, user, "pause", "pausado", "ativo", "Recorrência pausada")

    def resume_recurring(self, recurring_id: str, user: User) -> Result:
        return self._set_status(recurring_id, user, "resume", "ativo", "pausado", "Recorrência retomada")

    def cancel_recurring_series(self, recurring_id: str, user: User) -> Result:
        """Finish the series and drop its future pending installments"""
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "cancel", NO_PERMISSION)

        current = self._load(recurring_id, user, "cancel")
        if current.error:
            return current
        if current.data.status == "finalizado":
            return self.fail(
                user,
                "cancel",
                ErrorCode.VALIDATION_ERROR,
                "Recorrência já está finalizada",
                resource_id=recurring_id,
                unit_id=current.data.unit_id,
            )

        result = self.repo.cancel_series(self.db, recurring_id, date.today())
        self.complete(
            user,
            "cancel",
            result,
            "Recorrência cancelada",
            resource_id=recurring_id,
            unit_id=current.data.unit_id,
            details={"removed_installments": result.data},
        )
        if result.error:
            return result
        return Result.success({"id": recurring_id, "cancelled": True, "removed_installments": result.data})
