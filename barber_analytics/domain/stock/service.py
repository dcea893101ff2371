"""Stock movement service - Business logic for inventory entries, exits and adjustments"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...domain.audit.service import AuditService
from ...domain.products.repository import ProductRepository
from ...models import User
from ...services.audited_service import AuditedService
from ...services.notification_service import NotificationService
from ...shared.errors import ErrorCode
from ...shared.permissions import Permission, can_access_unit, has_permission
from ...shared.result import Page, Result
from ...shared.validators import to_int
from .dtos import (
    CreateStockMovementDTO,
    StockMovementFiltersDTO,
    StockMovementResponseDTO,
    UpdateStockMovementDTO,
    parse_day,
)
from .repository import StockMovementRepository

logger = logging.getLogger(__name__)

NO_PERMISSION = "Sem permissão para gerenciar estoque"
NO_VIEW_PERMISSION = "Sem permissão para visualizar estoque"
SUPERVISORS_ONLY_ADJUST = "Apenas gerentes e administradores podem ajustar estoque"
SUPERVISORS_ONLY_REVERT = "Apenas gerentes e administradores podem reverter movimentações"


def present(movement) -> dict:
    return StockMovementResponseDTO(movement).to_object()


class StockMovementService(AuditedService):
    """Service layer for stock movements"""

    resource = "stock_movements"

    def __init__(
        self,
        db: Session,
        repository: Optional[StockMovementRepository] = None,
        products: Optional[ProductRepository] = None,
        notifier: Optional[NotificationService] = None,
        audit: Optional[AuditService] = None,
    ):
        super().__init__(db, notifier=notifier, audit=audit)
        self.repo = repository or StockMovementRepository()
        self.products = products or ProductRepository()

    def _record(self, user: User, action: str, payload: dict, success_message: str) -> Result:
        dto = CreateStockMovementDTO(payload)
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, action, validation.errors, payload.get("unit_id"))

        result = self.repo.create(self.db, dto.to_object())
        self.complete(
            user,
            action,
            result,
            success_message,
            unit_id=dto.unit_id,
            details={
                "product_id": dto.product_id,
                "movement_type": dto.movement_type,
                "reason": dto.reason,
                "quantity": dto.quantity,
            },
        )
        return Result.success(present(result.data)) if result.ok else result

    def _available_stock(self, product_id: str) -> Result:
        product = self.products.find_by_id(self.db, product_id)
        if product.error:
            return product
        return Result.success(product.data.current_stock)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def record_entry(self, data: dict, user: User) -> Result:
        """ENTRADA (purchase, return, ...) that raises the product stock"""
        unit_id = data.get("unit_id")
        if not has_permission(user.role, Permission.RECORD_STOCK) or not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "record_entry", NO_PERMISSION, unit_id)

        payload = {**data, "movement_type": "ENTRADA", "performed_by": data.get("performed_by") or user.id}
        return self._record(user, "record_entry", payload, "Entrada de estoque registrada")

    def record_exit(self, data: dict, user: User) -> Result:
        """SAIDA (sale, internal use, ...) checked against the available stock"""
        unit_id = data.get("unit_id")
        if not has_permission(user.role, Permission.RECORD_STOCK) or not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "record_exit", NO_PERMISSION, unit_id)

        quantity = to_int(data.get("quantity"))
        if data.get("product_id") and quantity and quantity > 0:
            available = self._available_stock(data["product_id"])
            if available.error:
                return self.abort(user, "record_exit", available, resource_id=data["product_id"], unit_id=unit_id)
            if available.data < quantity:
                return self.fail(
                    user,
                    "record_exit",
                    ErrorCode.VALIDATION_ERROR,
                    f"Estoque insuficiente. Disponível: {available.data}, Solicitado: {quantity}",
                    unit_id=unit_id,
                )

        payload = {
            **data,
            "movement_type": "SAIDA",
            "unit_cost": data.get("unit_cost") or 0,
            "performed_by": data.get("performed_by") or user.id,
        }
        return self._record(user, "record_exit", payload, "Saída de estoque registrada")

    def adjust_stock(self, data: dict, user: User) -> Result:
        """
        Inventory correction (reason AJUSTE)

        A positive quantity becomes an ENTRADA, a negative one a SAIDA.
        Notes are mandatory and stored with an [AJUSTE] prefix.
        """
        unit_id = data.get("unit_id")
        if not has_permission(user.role, Permission.SUPERVISE_STOCK) or not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "adjust_stock", SUPERVISORS_ONLY_ADJUST, unit_id)

        notes = (data.get("notes") or "").strip()
        if not notes:
            return self.reject(user, "adjust_stock", ["Observações são obrigatórias para ajustes de estoque"], unit_id)

        quantity = to_int(data.get("quantity"))
        if quantity is None:
            return self.reject(user, "adjust_stock", ["quantity deve ser maior que 0"], unit_id)

        movement_type = "ENTRADA" if quantity > 0 else "SAIDA"
        absolute = abs(quantity)

        if movement_type == "SAIDA" and absolute > 0 and data.get("product_id"):
            available = self._available_stock(data["product_id"])
            if available.error:
                return self.abort(user, "adjust_stock", available, resource_id=data["product_id"], unit_id=unit_id)
            if available.data < absolute:
                return self.fail(
                    user,
                    "adjust_stock",
                    ErrorCode.VALIDATION_ERROR,
                    f"Estoque insuficiente para ajuste. Disponível: {available.data}",
                    unit_id=unit_id,
                )

        payload = {
            "unit_id": unit_id,
            "product_id": data.get("product_id"),
            "movement_type": movement_type,
            "reason": "AJUSTE",
            "quantity": absolute,
            "unit_cost": 0,
            "performed_by": data.get("performed_by") or user.id,
            "notes": f"[AJUSTE] {notes}",
        }
        return self._record(user, "adjust_stock", payload, "Estoque ajustado com sucesso")

    def update_notes(self, movement_id: str, notes, user: User) -> Result:
        if not has_permission(user.role, Permission.RECORD_STOCK):
            return self.deny(user, "update_notes", "Sem permissão para editar movimentações")

        dto = UpdateStockMovementDTO({"notes": notes})
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "update_notes", validation.errors)

        current = self.repo.find_by_id(self.db, movement_id)
        if current.error:
            return self.abort(user, "update_notes", current, resource_id=movement_id)
        if not can_access_unit(self.db, user, current.data.unit_id):
            return self.deny(user, "update_notes", "Sem permissão para editar movimentações", current.data.unit_id)

        result = self.repo.update(self.db, movement_id, dto.to_object())
        self.complete(
            user, "update_notes", result, "Observações atualizadas", resource_id=movement_id, unit_id=current.data.unit_id
        )
        return Result.success(present(result.data)) if result.ok else result

    def _supervised_removal(self, movement_id: str, user: User, action: str, denied: str, repo_call, message: str):
        if not has_permission(user.role, Permission.SUPERVISE_STOCK):
            return self.deny(user, action, denied)

        current = self.repo.find_by_id(self.db, movement_id)
        if current.error:
            return self.abort(user, action, current, resource_id=movement_id)
        movement = current.data
        if not can_access_unit(self.db, user, movement.unit_id):
            return self.deny(user, action, denied, movement.unit_id)

        details = {
            "product_id": movement.product_id,
            "movement_type": movement.movement_type,
            "quantity": movement.quantity,
        }
        result = repo_call(self.db, movement_id)
        self.complete(user, action, result, message, resource_id=movement_id, unit_id=movement.unit_id, details=details)
        return result

    def revert_movement(self, movement_id: str, user: User) -> Result:
        """Hard delete that gives the stock back"""
        return self._supervised_removal(
            movement_id, user, "revert", SUPERVISORS_ONLY_REVERT, self.repo.revert, "Movimentação revertida"
        )

    def delete_movement(self, movement_id: str, user: User) -> Result:
        return self._supervised_removal(
            movement_id,
            user,
            "delete",
            "Sem permissão para deletar movimentações",
            self.repo.delete,
            "Movimentação removida do histórico",
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_stock_history(self, filters: dict, user: User) -> Result:
        if not has_permission(user.role, Permission.VIEW_INVENTORY):
            return self.deny(user, "history", NO_VIEW_PERMISSION)

        dto = StockMovementFiltersDTO(filters)
        validation = dto.validate()
        if not validation.is_valid:
            return Result.validation_failed(validation.errors)
        if not dto.unit_id:
            return Result.validation_failed(["unit_id é obrigatório"])
        if not can_access_unit(self.db, user, dto.unit_id):
            return self.deny(user, "history", NO_VIEW_PERMISSION, dto.unit_id)

        result = self.repo.find_by_unit(self.db, dto.unit_id, dto.to_object())
        if result.error:
            return result
        page = result.data
        return Result.success(
            Page(items=[present(m) for m in page.items], total=page.total, page=page.page, page_size=page.page_size)
        )

    def get_product_history(self, product_id: str, user: User, start_date=None, end_date=None) -> Result:
        if not has_permission(user.role, Permission.VIEW_INVENTORY):
            return self.deny(user, "history", NO_VIEW_PERMISSION)
        if not product_id:
            return Result.validation_failed(["product_id é obrigatório"])

        product = self.products.find_by_id(self.db, product_id)
        if product.error:
            return product
        if not can_access_unit(self.db, user, product.data.unit_id):
            return self.deny(user, "history", NO_VIEW_PERMISSION, product.data.unit_id)

        result = self.repo.find_by_product_and_date(
            self.db, product_id, parse_day(start_date), parse_day(end_date, end_of_day=True)
        )
        if result.error:
            return result
        return Result.success([present(m) for m in result.data])

    def get_summary_by_period(self, unit_id: str, start_date, end_date, user: User) -> Result:
        if not has_permission(user.role, Permission.VIEW_INVENTORY):
            return self.deny(user, "summary", "Sem permissão para visualizar resumo", unit_id)

        start = parse_day(start_date)
        end = parse_day(end_date, end_of_day=True)
        if not unit_id or start is None or end is None:
            return Result.validation_failed(["unit_id, start_date e end_date são obrigatórios"])
        if not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "summary", "Sem permissão para visualizar resumo", unit_id)

        return self.repo.get_summary_by_period(self.db, unit_id, start, end)
