"""Supplier service - Business logic for suppliers and their contacts"""

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
from ...shared.sanitization import clean_code
from .dtos import (
    SUPPLIER_STATUSES,
    CreateSupplierDTO,
    SupplierContactDTO,
    SupplierFiltersDTO,
    SupplierResponseDTO,
    UpdateSupplierDTO,
    validate_document,
)
from .repository import SupplierRepository

logger = logging.getLogger(__name__)

NO_PERMISSION = "Sem permissão para gerenciar fornecedores"
NO_VIEW_PERMISSION = "Sem permissão para visualizar fornecedores desta unidade"


def present(supplier) -> dict:
    return SupplierResponseDTO(supplier).to_object()


def contact_to_dict(contact) -> dict:
    return {
        "id": contact.id,
        "supplier_id": contact.supplier_id,
        "name": contact.name,
        "role": contact.role,
        "phone": contact.phone,
        "email": contact.email,
        "is_active": contact.is_active,
    }


class SupplierService(AuditedService):
    """Service layer for supplier business logic"""

    resource = "suppliers"

    def __init__(
        self,
        db: Session,
        repository: Optional[SupplierRepository] = None,
        notifier: Optional[NotificationService] = None,
        audit: Optional[AuditService] = None,
    ):
        super().__init__(db, notifier=notifier, audit=audit)
        self.repo = repository or SupplierRepository()

    def _can_manage_role(self, user: User) -> bool:
        return has_permission(user.role, Permission.MANAGE_SUPPLIERS)

    def _load_managed(self, supplier_id: str, user: User, action: str) -> Result:
        """Fetch a supplier the user may manage (role already checked)"""
        current = self.repo.find_by_id(self.db, supplier_id)
        if current.error:
            return self.abort(user, action, current, resource_id=supplier_id)
        if not can_access_unit(self.db, user, current.data.unit_id):
            return self.deny(user, action, NO_PERMISSION, current.data.unit_id)
        return current

    def _check_document(self, document: Optional[str], unit_id: str, exclude_id=None) -> Optional[Result]:
        """Check digits first, then uniqueness inside the unit"""
        if not document:
            return None
        document_error = validate_document(document)
        if document_error:
            return Result.validation_failed([document_error])

        existing = self.repo.find_by_cnpj(self.db, document, unit_id)
        if existing.error:
            return existing
        if existing.data is not None and existing.data.id != exclude_id:
            return Result.fail(
                ErrorCode.CONSTRAINT_VIOLATION,
                f"Fornecedor já existe com este CNPJ/CPF: {existing.data.name}",
            )
        return None

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    def create_supplier(self, data: dict, user: User) -> Result:
        dto = CreateSupplierDTO({**data, "created_by": user.id})
        unit_id = dto.unit_id

        if not self._can_manage_role(user):
            return self.deny(user, "create", NO_PERMISSION, unit_id)

        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "create", validation.errors, unit_id)

        if not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "create", NO_PERMISSION, unit_id)

        problem = self._check_document(dto.cnpj_cpf, unit_id)
        if problem:
            return self.complete(user, "create", problem, "", unit_id=unit_id)

        result = self.repo.create(self.db, dto.to_object())
        self.complete(user, "create", result, "Fornecedor cadastrado com sucesso", unit_id=unit_id)
        return Result.success(present(result.data)) if result.ok else result

    def get_supplier(self, supplier_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.VIEW_INVENTORY):
            return self.deny(user, "view", NO_VIEW_PERMISSION)

        result = self.repo.find_by_id(self.db, supplier_id)
        if result.error:
            return result
        if not can_access_unit(self.db, user, result.data.unit_id):
            return self.deny(user, "view", NO_VIEW_PERMISSION, result.data.unit_id)
        return Result.success(present(result.data))

    def list_suppliers(self, unit_id: str, filters: dict, user: User) -> Result:
        if not has_permission(user.role, Permission.VIEW_INVENTORY):
            return self.deny(user, "list", NO_VIEW_PERMISSION, unit_id)
        if not unit_id:
            return Result.validation_failed(["unit_id é obrigatório"])

        dto = SupplierFiltersDTO(filters)
        validation = dto.validate()
        if not validation.is_valid:
            return Result.validation_failed(validation.errors)

        if not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "list", NO_VIEW_PERMISSION, unit_id)

        result = self.repo.find_by_unit(self.db, unit_id, dto.to_object())
        if result.error:
            return result
        page = result.data
        return Result.success(
            Page(items=[present(s) for s in page.items], total=page.total, page=page.page, page_size=page.page_size)
        )

    def get_active_suppliers(self, unit_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.VIEW_INVENTORY) or not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "list", NO_VIEW_PERMISSION, unit_id)

        result = self.repo.find_active_by_unit(self.db, unit_id)
        if result.error:
            return result
        return Result.success([present(s) for s in result.data])

    def update_supplier(self, supplier_id: str, data: dict, user: User) -> Result:
        if not self._can_manage_role(user):
            return self.deny(user, "update", NO_PERMISSION)

        current = self._load_managed(supplier_id, user, "update")
        if current.error:
            return current
        supplier = current.data

        dto = UpdateSupplierDTO(data)
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "update", validation.errors, supplier.unit_id)

        changes = dto.to_object()
        if changes.get("cnpj_cpf") and changes["cnpj_cpf"] != supplier.cnpj_cpf:
            problem = self._check_document(changes["cnpj_cpf"], supplier.unit_id, exclude_id=supplier.id)
            if problem:
                return self.complete(
                    user, "update", problem, "", resource_id=supplier.id, unit_id=supplier.unit_id
                )

        result = self.repo.update(self.db, supplier_id, changes)
        self.complete(
            user,
            "update",
            result,
            "Fornecedor atualizado com sucesso",
            resource_id=supplier_id,
            unit_id=supplier.unit_id,
            details={"changes": changes},
        )
        return Result.success(present(result.data)) if result.ok else result

    def change_status(self, supplier_id: str, new_status: str, user: User) -> Result:
        if not self._can_manage_role(user):
            return self.deny(user, "change_status", NO_PERMISSION)

        new_status = clean_code(new_status)
        if new_status not in SUPPLIER_STATUSES:
            return self.reject(user, "change_status", ["Status inválido"])

        current = self._load_managed(supplier_id, user, "change_status")
        if current.error:
            return current
        supplier = current.data

        if supplier.status == new_status:
            return Result.success(present(supplier))

        previous = supplier.status
        result = self.repo.update(self.db, supplier_id, {"status": new_status})
        self.complete(
            user,
            "change_status",
            result,
            "Status do fornecedor atualizado",
            resource_id=supplier_id,
            unit_id=supplier.unit_id,
            details={"from": previous, "to": new_status},
        )
        return Result.success(present(result.data)) if result.ok else result

    def delete_supplier(self, supplier_id: str, user: User) -> Result:
        if not self._can_manage_role(user):
            return self.deny(user, "delete", NO_PERMISSION)

        current = self._load_managed(supplier_id, user, "delete")
        if current.error:
            return current

        unit_id = current.data.unit_id
        result = self.repo.delete(self.db, supplier_id)
        self.complete(user, "delete", result, "Fornecedor excluído com sucesso", resource_id=supplier_id, unit_id=unit_id)
        return Result.success({"id": supplier_id, "deleted": True}) if result.ok else result

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    def add_contact(self, supplier_id: str, data: dict, user: User) -> Result:
        if not self._can_manage_role(user):
            return self.deny(user, "add_contact", NO_PERMISSION)

        dto = SupplierContactDTO(data)
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "add_contact", validation.errors)

        current = self._load_managed(supplier_id, user, "add_contact")
        if current.error:
            return current

        result = self.repo.add_contact(self.db, supplier_id, dto.to_object())
        self.complete(
            user,
            "add_contact",
            result,
            "Contato adicionado com sucesso",
            unit_id=current.data.unit_id,
            details={"supplier_id": supplier_id},
        )
        return Result.success(contact_to_dict(result.data)) if result.ok else result

    def _load_managed_contact(self, contact_id: str, user: User, action: str) -> Result:
        contact = self.repo.find_contact(self.db, contact_id)
        if contact.error:
            return self.abort(user, action, contact, resource_id=contact_id)
        supplier = self._load_managed(contact.data.supplier_id, user, action)
        if supplier.error:
            return supplier
        return Result.success((contact.data, supplier.data))

    def update_contact(self, contact_id: str, data: dict, user: User) -> Result:
        if not self._can_manage_role(user):
            return self.deny(user, "update_contact", NO_PERMISSION)

        dto = SupplierContactDTO(data, partial=True)
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "update_contact", validation.errors)

        loaded = self._load_managed_contact(contact_id, user, "update_contact")
        if loaded.error:
            return loaded
        _, supplier = loaded.data

        result = self.repo.update_contact(self.db, contact_id, dto.to_object())
        self.complete(
            user, "update_contact", result, "Contato atualizado com sucesso", unit_id=supplier.unit_id
        )
        return Result.success(contact_to_dict(result.data)) if result.ok else result

    def delete_contact(self, contact_id: str, user: User) -> Result:
        if not self._can_manage_role(user):
            return self.deny(user, "delete_contact", NO_PERMISSION)

        loaded = self._load_managed_contact(contact_id, user, "delete_contact")
        if loaded.error:
            return loaded
        _, supplier = loaded.data

        result = self.repo.delete_contact(self.db, contact_id)
        self.complete(user, "delete_contact", result, "Contato removido com sucesso", unit_id=supplier.unit_id)
        return Result.success(contact_to_dict(result.data)) if result.ok else result
