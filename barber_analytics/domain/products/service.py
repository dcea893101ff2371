"""Product service - Business logic for product operations"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...domain.audit.service import AuditService
from ...models import User
from ...services.audited_service import AuditedService
from ...services.notification_service import NotificationService
from ...shared.errors import ErrorCode
from ...shared.permissions import Permission, can_access_unit, has_permission, is_admin
from ...shared.result import Page, Result
from ...shared.validators import to_number
from .dtos import CreateProductDTO, ProductFiltersDTO, ProductResponseDTO, UpdateProductDTO
from .repository import STOCK_OPERATIONS, ProductRepository

logger = logging.getLogger(__name__)

NO_PERMISSION_MANAGE = "Sem permissão para gerenciar produtos desta unidade"


def present(product) -> dict:
    return ProductResponseDTO(product).to_object()


def present_result(result: Result) -> Result:
    """Replace a product model in a successful Result with its response dict"""
    if result.error or result.data is None:
        return result
    if isinstance(result.data, Page):
        page = result.data
        return Result.success(
            Page(items=[present(p) for p in page.items], total=page.total, page=page.page, page_size=page.page_size)
        )
    if isinstance(result.data, list):
        return Result.success([present(p) for p in result.data])
    return Result.success(present(result.data))


class ProductService(AuditedService):
    """Service layer for product business logic"""

    resource = "products"

    def __init__(
        self,
        db: Session,
        repository: Optional[ProductRepository] = None,
        notifier: Optional[NotificationService] = None,
        audit: Optional[AuditService] = None,
    ):
        super().__init__(db, notifier=notifier, audit=audit)
        self.repo = repository or ProductRepository()

    def _check_unique(self, unit_id: str, sku: Optional[str], barcode: Optional[str], exclude_id=None) -> Optional[Result]:
        """Result.fail when the SKU or barcode already belongs to another active product"""
        if sku:
            found = self.repo.find_by_sku(self.db, sku, unit_id)
            if found.error:
                return found
            if found.data is not None and found.data.id != exclude_id:
                return Result.fail(ErrorCode.CONSTRAINT_VIOLATION, f'SKU "{sku}" já está em uso nesta unidade')
        if barcode:
            found = self.repo.find_by_barcode(self.db, barcode)
            if found.error:
                return found
            if found.data is not None and found.data.id != exclude_id:
                return Result.fail(ErrorCode.CONSTRAINT_VIOLATION, f'Código de barras "{barcode}" já está em uso')
        return None

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_product(self, data: dict, user: User) -> Result:
        """Validate, authorize and insert a product"""
        logger.info(f"📥 Creating product for unit {data.get('unit_id')} by user {user.id}")
        dto = CreateProductDTO({**data, "created_by": data.get("created_by") or user.id})
        unit_id = dto.unit_id

        if not has_permission(user.role, Permission.MANAGE_PRODUCTS):
            return self.deny(user, "create", NO_PERMISSION_MANAGE, unit_id)

        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "create", validation.errors, unit_id)

        if not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "create", NO_PERMISSION_MANAGE, unit_id)

        duplicate = self._check_unique(unit_id, dto.sku, dto.barcode)
        if duplicate:
            return self.complete(user, "create", duplicate, "", unit_id=unit_id)

        result = self.repo.create(self.db, dto.to_object())
        self.complete(user, "create", result, "Produto criado com sucesso", unit_id=unit_id, details={"name": dto.name})
        return present_result(result)

    def update_product(self, product_id: str, updates: dict, user: User) -> Result:
        if not has_permission(user.role, Permission.MANAGE_PRODUCTS):
            return self.deny(user, "update", "Sem permissão para atualizar este produto")

        current = self.repo.find_by_id(self.db, product_id)
        if current.error:
            return self.abort(user, "update", current, resource_id=product_id)
        product = current.data

        if not can_access_unit(self.db, user, product.unit_id):
            return self.deny(user, "update", "Sem permissão para atualizar este produto", product.unit_id)

        dto = UpdateProductDTO(updates)
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "update", validation.errors, product.unit_id)

        changes = dto.to_object()
        duplicate = self._check_unique(
            product.unit_id,
            changes.get("sku") if changes.get("sku") != product.sku else None,
            changes.get("barcode") if changes.get("barcode") != product.barcode else None,
            exclude_id=product.id,
        )
        if duplicate:
            return self.complete(user, "update", duplicate, "", resource_id=product.id, unit_id=product.unit_id)

        result = self.repo.update(self.db, product_id, changes)
        self.complete(
            user,
            "update",
            result,
            "Produto atualizado com sucesso",
            resource_id=product_id,
            unit_id=product.unit_id,
            details={"changes": changes},
        )
        return present_result(result)

    def adjust_stock(self, product_id: str, quantity, operation: str, user: User) -> Result:
        """Set, add to or subtract from current stock directly"""
        if not has_permission(user.role, Permission.MANAGE_PRODUCTS):
            return self.deny(user, "adjust_stock", "Sem permissão para ajustar estoque deste produto")

        current = self.repo.find_by_id(self.db, product_id)
        if current.error:
            return self.abort(user, "adjust_stock", current, resource_id=product_id)
        product = current.data

        if not can_access_unit(self.db, user, product.unit_id):
            return self.deny(user, "adjust_stock", "Sem permissão para ajustar estoque deste produto", product.unit_id)

        operation = (operation or "").upper()
        if operation not in STOCK_OPERATIONS:
            return self.reject(user, "adjust_stock", ["Operação inválida"], product.unit_id)

        amount = to_number(quantity)
        if amount is None or amount < 0:
            return self.reject(user, "adjust_stock", ["Quantidade não pode ser negativa"], product.unit_id)

        result = self.repo.update_stock(self.db, product_id, int(amount), operation)
        self.complete(
            user,
            "adjust_stock",
            result,
            "Estoque atualizado com sucesso",
            resource_id=product_id,
            unit_id=product.unit_id,
            details={"operation": operation, "quantity": int(amount), "previous_stock": product.current_stock},
        )
        return present_result(result)

    def _toggle(self, product_id: str, user: User, action: str, denied: str, success: str, repo_call) -> Result:
        if not has_permission(user.role, Permission.MANAGE_PRODUCTS):
            return self.deny(user, action, denied)

        current = self.repo.find_by_id(self.db, product_id)
        if current.error:
            return self.abort(user, action, current, resource_id=product_id)
        product = current.data

        if not can_access_unit(self.db, user, product.unit_id):
            return self.deny(user, action, denied, product.unit_id)

        result = repo_call(self.db, product_id)
        self.complete(user, action, result, success, resource_id=product_id, unit_id=product.unit_id)
        return present_result(result)

    def delete_product(self, product_id: str, user: User) -> Result:
        """Soft delete (is_active = False)"""
        return self._toggle(
            product_id,
            user,
            "delete",
            "Sem permissão para excluir este produto",
            "Produto excluído com sucesso",
            self.repo.soft_delete,
        )

    def restore_product(self, product_id: str, user: User) -> Result:
        return self._toggle(
            product_id,
            user,
            "restore",
            "Sem permissão para restaurar este produto",
            "Produto restaurado com sucesso",
            self.repo.restore,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_product_by_id(self, product_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.VIEW_INVENTORY):
            return self.deny(user, "view", "Sem permissão para visualizar este produto")

        result = self.repo.find_by_id(self.db, product_id)
        if result.error:
            return result
        if not can_access_unit(self.db, user, result.data.unit_id):
            return self.deny(user, "view", "Sem permissão para visualizar este produto", result.data.unit_id)
        return present_result(result)

    def get_products(self, filters: dict, user: User) -> Result:
        """Paginated listing; non-admins must name the unit"""
        if not has_permission(user.role, Permission.VIEW_INVENTORY):
            return self.deny(user, "list", "Sem permissão para visualizar produtos desta unidade")

        dto = ProductFiltersDTO(filters)
        validation = dto.validate()
        if not validation.is_valid:
            return Result.validation_failed(validation.errors)

        if not dto.unit_id and not is_admin(user):
            return Result.validation_failed(["unit_id é obrigatório"])
        if dto.unit_id and not can_access_unit(self.db, user, dto.unit_id):
            return self.deny(user, "list", "Sem permissão para visualizar produtos desta unidade", dto.unit_id)

        return present_result(self.repo.find_all(self.db, dto.to_object()))

    def _unit_query(self, unit_id: str, user: User, denied: str, repo_call) -> Result:
        if not has_permission(user.role, Permission.VIEW_INVENTORY):
            return self.deny(user, "view", denied, unit_id)
        if not unit_id:
            return Result.validation_failed(["unit_id é obrigatório"])
        if not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "view", denied, unit_id)
        return repo_call(self.db, unit_id)

    def get_low_stock_products(self, unit_id: str, user: User) -> Result:
        return present_result(
            self._unit_query(unit_id, user, "Sem permissão para visualizar produtos desta unidade", self.repo.find_low_stock)
        )

    def get_out_of_stock_products(self, unit_id: str, user: User) -> Result:
        return present_result(
            self._unit_query(
                unit_id, user, "Sem permissão para visualizar produtos desta unidade", self.repo.find_out_of_stock
            )
        )

    def get_product_statistics(self, unit_id: str, user: User) -> Result:
        return self._unit_query(
            unit_id, user, "Sem permissão para visualizar estatísticas desta unidade", self.repo.get_statistics
        )
