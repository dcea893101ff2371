"""Bank statement service - Import with dedupe, reconciliation and period totals"""

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
from ...shared.validators import is_valid_date
from .dtos import (
    BankStatementFiltersDTO,
    BankStatementResponseDTO,
    CreateBankStatementDTO,
    UpdateBankStatementDTO,
)
from .parsers import BankFileError, parse_bank_file
from .repository import BankStatementRepository

logger = logging.getLogger(__name__)

NO_PERMISSION = "Sem permissão para gerenciar extratos bancários"
MAX_IMPORT_ROWS = 1000


def present(statement) -> dict:
    return BankStatementResponseDTO(statement).to_object()


class BankStatementService(AuditedService):
    """Service layer for bank statements"""

    resource = "bank_statements"

    def __init__(
        self,
        db: Session,
        repository: Optional[BankStatementRepository] = None,
        notifier: Optional[NotificationService] = None,
        audit: Optional[AuditService] = None,
    ):
        super().__init__(db, notifier=notifier, audit=audit)
        self.repo = repository or BankStatementRepository()

    def _load(self, statement_id: str, user: User, action: str) -> Result:
        current = self.repo.find_by_id(self.db, statement_id)
        if current.error:
            return self.abort(user, action, current, resource_id=statement_id)
        if not can_access_unit(self.db, user, current.data.unit_id):
            return self.deny(user, action, NO_PERMISSION, current.data.unit_id)
        return current

    def import_statements(self, unit_id: str, statements: list, user: User, bank_account_id: Optional[str] = None):
        """
        Import a batch of statement lines.

        Invalid rows are reported with an "Extrato N: " prefix and skipped.
        Rows whose hash repeats inside the batch or is already stored are
        counted as duplicates. Everything else is inserted in one transaction.
        """
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "import", NO_PERMISSION, unit_id)
        if not unit_id:
            return Result.validation_failed(["unit_id é obrigatório"])
        if not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "import", NO_PERMISSION, unit_id)
        if not statements:
            return self.reject(user, "import", ["Nenhum extrato para importar"], unit_id)
        if len(statements) > MAX_IMPORT_ROWS:
            return self.reject(user, "import", [f"Máximo de {MAX_IMPORT_ROWS} extratos por importação"], unit_id)

        errors: list[str] = []
        invalid = 0
        duplicates = 0
        candidates: dict[str, dict] = {}

        for index, row in enumerate(statements, start=1):
            row = dict(row or {})
            row["unit_id"] = unit_id
            if bank_account_id and not row.get("bank_account_id"):
                row["bank_account_id"] = bank_account_id

            dto = CreateBankStatementDTO(row)
            validation = dto.validate()
            if not validation.is_valid:
                invalid += 1
                errors.extend(f"Extrato {index}: {error}" for error in validation.errors)
                continue

            statement_hash = dto.hash()
            if statement_hash in candidates:
                duplicates += 1
                continue
            candidates[statement_hash] = {**dto.to_object(), "hash_unique": statement_hash}

        existing = self.repo.find_by_hashes(self.db, list(candidates))
        if existing.error:
            return existing
        duplicates += len(existing.data)
        rows = [row for statement_hash, row in candidates.items() if statement_hash not in existing.data]

        imported = 0
        if rows:
            result = self.repo.bulk_insert(self.db, rows)
            if result.error:
                return self.fail(user, "import", result.error.code, result.error.message, unit_id=unit_id)
            imported = len(result.data)

        summary = {"imported": imported, "duplicates": duplicates, "invalid": invalid, "errors": errors}
        logger.info(
            f"🏦 Statement import for unit {unit_id}: imported={imported} duplicates={duplicates} invalid={invalid}"
        )
        if imported:
            self.notifier.success(user, f"{imported} extrato(s) importado(s)")
        if invalid:
            self.notifier.warning(user, f"{invalid} extrato(s) inválido(s) ignorado(s)")
        self.audit.log_action(
            user,
            "import",
            self.resource,
            unit_id=unit_id,
            details={"imported": imported, "duplicates": duplicates, "invalid": invalid},
        )
        return Result.success(summary)

    def import_file(
        self,
        unit_id: str,
        bank_account_id: Optional[str],
        content: str,
        user: User,
        filename: str = "",
        bank: Optional[str] = None,
        file_format: Optional[str] = None,
    ) -> Result:
        """Parse an exported OFX/CSV/TXT file and import its lines like a JSON batch"""
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "import", NO_PERMISSION, unit_id)
        if not bank_account_id:
            return self.reject(user, "import", ["bank_account_id é obrigatório"], unit_id)

        try:
            parsed = parse_bank_file(content, filename=filename, bank=bank, file_format=file_format)
        except BankFileError as e:
            return self.reject(user, "import", [str(e)], unit_id)

        result = self.import_statements(unit_id, parsed.transactions, user, bank_account_id=bank_account_id)
        if result.error:
            return result
        return Result.success({**result.data, "file": parsed.summary()})

    def list_statements(self, filters: dict, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "list", NO_PERMISSION, filters.get("unit_id"))

        dto = BankStatementFiltersDTO(filters)
        validation = dto.validate()
        if not validation.is_valid:
            return Result.validation_failed(validation.errors)
        if not dto.unit_id:
            return Result.validation_failed(["unit_id é obrigatório"])
        if not can_access_unit(self.db, user, dto.unit_id):
            return self.deny(user, "list", NO_PERMISSION, dto.unit_id)

        result = self.repo.find_all(self.db, dto.to_object())
        if result.error:
            return result
        page = result.data
        return Result.success(
            Page(items=[present(s) for s in page.items], total=page.total, page=page.page, page_size=page.page_size)
        )

    def get_statement(self, statement_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "view", NO_PERMISSION)
        current = self._load(statement_id, user, "view")
        if current.error:
            return current
        return Result.success(present(current.data))

    def update_statement(self, statement_id: str, data: dict, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "update", NO_PERMISSION)

        dto = UpdateBankStatementDTO(data)
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "update", validation.errors)

        current = self._load(statement_id, user, "update")
        if current.error:
            return current

        result = self.repo.update(self.db, statement_id, dto.to_object())
        self.complete(
            user,
            "update",
            result,
            "Extrato atualizado",
            resource_id=statement_id,
            unit_id=current.data.unit_id,
            details={"changes": dto.to_object()},
        )
        return Result.success(present(result.data)) if result.ok else result

    def reconcile(self, statement_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "reconcile", NO_PERMISSION)

        current = self._load(statement_id, user, "reconcile")
        if current.error:
            return current
        if current.data.reconciled:
            return self.fail(
                user,
                "reconcile",
                ErrorCode.VALIDATION_ERROR,
                "Extrato já está conciliado",
                resource_id=statement_id,
                unit_id=current.data.unit_id,
            )

        result = self.repo.mark_as_reconciled(self.db, statement_id, user.id)
        self.complete(
            user, "reconcile", result, "Extrato conciliado", resource_id=statement_id, unit_id=current.data.unit_id
        )
        return Result.success(present(result.data)) if result.ok else result

    def delete_statement(self, statement_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "delete", NO_PERMISSION)

        current = self._load(statement_id, user, "delete")
        if current.error:
            return current

        result = self.repo.soft_delete(self.db, statement_id)
        self.complete(
            user, "delete", result, "Extrato removido", resource_id=statement_id, unit_id=current.data.unit_id
        )
        return Result.success({"id": statement_id, "deleted": True}) if result.ok else result

    def get_period_summary(
        self, unit_id: str, start_date: str, end_date: str, user: User, bank_account_id: Optional[str] = None
    ) -> Result:
        if not has_permission(user.role, Permission.MANAGE_FINANCE):
            return self.deny(user, "summary", NO_PERMISSION, unit_id)
        if not unit_id or not is_valid_date(start_date) or not is_valid_date(end_date):
            return Result.validation_failed(["unit_id, start_date e end_date são obrigatórios"])
        if not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "summary", NO_PERMISSION, unit_id)

        filters = BankStatementFiltersDTO({"start_date": start_date, "end_date": end_date}).to_object()
        return self.repo.get_by_period(
            self.db, unit_id, filters["start_date"], filters["end_date"], bank_account_id=bank_account_id
        )
