"""Purchase request service - Business logic for purchase requests, approvals and supplier quotes"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...domain.audit.service import AuditService
from ...domain.suppliers.repository import SupplierRepository
from ...models import User
from ...services.audited_service import AuditedService
from ...services.notification_service import NotificationService
from ...shared.errors import ErrorCode
from ...shared.permissions import Permission, can_access_unit, has_permission
from ...shared.result import Page, Result
from ...shared.sanitization import clean_text
from .dtos import (
    REASON_MIN_LENGTH,
    CreatePurchaseQuoteDTO,
    CreatePurchaseRequestDTO,
    PurchaseQuoteResponseDTO,
    PurchaseRequestFiltersDTO,
    PurchaseRequestResponseDTO,
    UpdatePurchaseRequestDTO,
    compare_quotes,
)
from .repository import PurchaseRequestRepository

logger = logging.getLogger(__name__)

NO_PERMISSION = "Sem permissão para solicitar compras"
NO_VIEW_PERMISSION = "Sem permissão para visualizar solicitações de compra"
NOT_OWNER = "Você só pode alterar suas próprias solicitações"
ONLY_DRAFT_EDIT = "Apenas solicitações em rascunho podem ser editadas"
ONLY_DRAFT_DELETE = "Apenas solicitações em rascunho podem ser excluídas"
APPROVERS_ONLY = "Apenas gerentes e administradores podem aprovar solicitações"
APPROVERS_ONLY_REJECT = "Apenas gerentes e administradores podem rejeitar solicitações"
QUOTERS_ONLY = "Apenas gerentes e administradores podem registrar cotações"
QUOTERS_ONLY_SELECT = "Apenas gerentes e administradores podem selecionar cotações"
CLOSED_FOR_QUOTES = "Não é possível cotar solicitações rejeitadas ou canceladas"


def present(request) -> dict:
    return PurchaseRequestResponseDTO(request).to_object()


def present_quote(quote) -> dict:
    return PurchaseQuoteResponseDTO(quote).to_object()


class PurchaseRequestService(AuditedService):
    """Service layer for the purchase request workflow (DRAFT -> SUBMITTED -> APPROVED/REJECTED)"""

    resource = "purchase_requests"

    def __init__(
        self,
        db: Session,
        repository: Optional[PurchaseRequestRepository] = None,
        suppliers: Optional[SupplierRepository] = None,
        notifier: Optional[NotificationService] = None,
        audit: Optional[AuditService] = None,
    ):
        super().__init__(db, notifier=notifier, audit=audit)
        self.repo = repository or PurchaseRequestRepository()
        self.suppliers = suppliers or SupplierRepository()

    def _load(self, request_id: str, user: User, action: str, denied: str) -> Result:
        current = self.repo.find_by_id(self.db, request_id)
        if current.error:
            return self.abort(user, action, current, resource_id=request_id)
        if not can_access_unit(self.db, user, current.data.unit_id):
            return self.deny(user, action, denied, current.data.unit_id)
        return current

    def _load_own_draft(self, request_id: str, user: User, action: str, not_draft: str) -> Result:
        """A DRAFT request the user may change: their own, or any one for approvers"""
        current = self._load(request_id, user, action, NO_PERMISSION)
        if current.error:
            return current
        request = current.data
        if request.requested_by != user.id and not has_permission(user.role, Permission.APPROVE_PURCHASE):
            return self.deny(user, action, NOT_OWNER, request.unit_id)
        if request.status != "DRAFT":
            return self.fail(
                user, action, ErrorCode.VALIDATION_ERROR, not_draft, resource_id=request_id, unit_id=request.unit_id
            )
        return current

    def _check_products(self, unit_id: str, items: list[dict]) -> Optional[list[str]]:
        found = self.repo.find_unit_products(self.db, unit_id, [item["product_id"] for item in items])
        if found.error:
            return [found.error.message]
        errors = [
            f"Item {position}: Produto não encontrado ou inativo nesta unidade"
            for position, item in enumerate(items, start=1)
            if item["product_id"] not in found.data
        ]
        return errors or None

    def _notify_requester(self, request, approver: User, message: str, notification_type: str) -> None:
        requester = request.requester
        if requester is None or requester.id == approver.id:
            return
        self.notifier.notify(requester, message, notification_type)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def create_request(self, data: dict, user: User) -> Result:
        dto = CreatePurchaseRequestDTO({**data, "requested_by": data.get("requested_by") or user.id})
        unit_id = dto.unit_id

        if not has_permission(user.role, Permission.REQUEST_PURCHASE):
            return self.deny(user, "create", NO_PERMISSION, unit_id)

        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "create", validation.errors, unit_id)

        if not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "create", NO_PERMISSION, unit_id)

        items = dto.get_items()
        product_errors = self._check_products(unit_id, items)
        if product_errors:
            return self.reject(user, "create", product_errors, unit_id)

        result = self.repo.create(self.db, dto.to_object(), items)
        self.complete(
            user,
            "create",
            result,
            "Solicitação de compra criada",
            unit_id=unit_id,
            details={"items": len(items), "total_estimated": dto.total_estimated()},
        )
        return Result.success(present(result.data)) if result.ok else result

    def get_request(self, request_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.VIEW_INVENTORY):
            return self.deny(user, "view", NO_VIEW_PERMISSION)

        result = self.repo.find_by_id(self.db, request_id)
        if result.error:
            return result
        if not can_access_unit(self.db, user, result.data.unit_id):
            return self.deny(user, "view", NO_VIEW_PERMISSION, result.data.unit_id)
        return Result.success(present(result.data))

    def list_requests(self, unit_id: str, filters: dict, user: User) -> Result:
        if not has_permission(user.role, Permission.VIEW_INVENTORY):
            return self.deny(user, "list", NO_VIEW_PERMISSION, unit_id)
        if not unit_id:
            return Result.validation_failed(["unit_id é obrigatório"])

        dto = PurchaseRequestFiltersDTO(filters)
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
            Page(items=[present(r) for r in page.items], total=page.total, page=page.page, page_size=page.page_size)
        )

    def update_request(self, request_id: str, data: dict, user: User) -> Result:
        if not has_permission(user.role, Permission.REQUEST_PURCHASE):
            return self.deny(user, "update", NO_PERMISSION)

        dto = UpdatePurchaseRequestDTO(data)
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "update", validation.errors)

        current = self._load_own_draft(request_id, user, "update", ONLY_DRAFT_EDIT)
        if current.error:
            return current

        changes = dto.to_object()
        result = self.repo.update(self.db, request_id, changes)
        self.complete(
            user,
            "update",
            result,
            "Solicitação atualizada",
            resource_id=request_id,
            unit_id=current.data.unit_id,
            details={"changes": changes},
        )
        return Result.success(present(result.data)) if result.ok else result

    def submit_for_approval(self, request_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.REQUEST_PURCHASE):
            return self.deny(user, "submit", NO_PERMISSION)

        current = self._load_own_draft(
            request_id, user, "submit", "Apenas solicitações em rascunho podem ser enviadas para aprovação"
        )
        if current.error:
            return current
        request = current.data
        if not request.items:
            return self.fail(
                user,
                "submit",
                ErrorCode.VALIDATION_ERROR,
                "Solicitação deve ter pelo menos um item",
                resource_id=request_id,
                unit_id=request.unit_id,
            )

        result = self.repo.submit(self.db, request_id)
        self.complete(
            user, "submit", result, "Solicitação enviada para aprovação", resource_id=request_id, unit_id=request.unit_id
        )
        return Result.success(present(result.data)) if result.ok else result

    def approve_request(self, request_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.APPROVE_PURCHASE):
            return self.deny(user, "approve", APPROVERS_ONLY)

        current = self._load(request_id, user, "approve", APPROVERS_ONLY)
        if current.error:
            return current
        unit_id = current.data.unit_id

        result = self.repo.approve(self.db, request_id, user.id)
        self.complete(
            user, "approve", result, "Solicitação aprovada", resource_id=request_id, unit_id=unit_id
        )
        if result.error:
            return result

        request = result.data
        self._notify_requester(request, user, f"Sua solicitação {request.request_number} foi aprovada", "success")
        logger.info(f"✅ Purchase request {request.request_number} approved by {user.id}")
        return Result.success(present(request))

    def reject_request(self, request_id: str, reason, user: User) -> Result:
        if not has_permission(user.role, Permission.APPROVE_PURCHASE):
            return self.deny(user, "reject", APPROVERS_ONLY_REJECT)

        reason = clean_text(reason)
        if not reason or len(reason) < REASON_MIN_LENGTH:
            return self.reject(user, "reject", ["Motivo da rejeição deve ter pelo menos 10 caracteres"])

        current = self._load(request_id, user, "reject", APPROVERS_ONLY_REJECT)
        if current.error:
            return current
        unit_id = current.data.unit_id

        result = self.repo.reject(self.db, request_id, user.id, reason)
        self.complete(
            user,
            "reject",
            result,
            "Solicitação rejeitada",
            resource_id=request_id,
            unit_id=unit_id,
            details={"reason": reason},
        )
        if result.error:
            return result

        request = result.data
        self._notify_requester(
            request, user, f"Sua solicitação {request.request_number} foi rejeitada: {reason}", "warning"
        )
        return Result.success(present(request))

    def get_pending_approvals(self, unit_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.APPROVE_PURCHASE) or not can_access_unit(self.db, user, unit_id):
            return self.deny(user, "pending", APPROVERS_ONLY, unit_id)

        result = self.repo.get_pending_approvals(self.db, unit_id)
        if result.error:
            return result
        return Result.success([present(r) for r in result.data])

    def delete_request(self, request_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.REQUEST_PURCHASE):
            return self.deny(user, "delete", NO_PERMISSION)

        current = self._load_own_draft(request_id, user, "delete", ONLY_DRAFT_DELETE)
        if current.error:
            return current

        unit_id = current.data.unit_id
        result = self.repo.delete(self.db, request_id)
        self.complete(user, "delete", result, "Solicitação excluída", resource_id=request_id, unit_id=unit_id)
        return Result.success({"id": request_id, "deleted": True}) if result.ok else result

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    def record_quote(self, request_id: str, data: dict, user: User) -> Result:
        if not has_permission(user.role, Permission.APPROVE_PURCHASE):
            return self.deny(user, "record_quote", QUOTERS_ONLY)

        dto = CreatePurchaseQuoteDTO({**data, "request_id": request_id, "quoted_by": data.get("quoted_by") or user.id})
        validation = dto.validate()
        if not validation.is_valid:
            return self.reject(user, "record_quote", validation.errors)

        current = self._load(request_id, user, "record_quote", QUOTERS_ONLY)
        if current.error:
            return current
        request = current.data
        if request.status in ("REJECTED", "CANCELLED"):
            return self.fail(
                user,
                "record_quote",
                ErrorCode.VALIDATION_ERROR,
                CLOSED_FOR_QUOTES,
                resource_id=request_id,
                unit_id=request.unit_id,
            )

        supplier = self.suppliers.find_by_id(self.db, dto.supplier_id)
        if supplier.error:
            return self.abort(user, "record_quote", supplier, resource_id=dto.supplier_id, unit_id=request.unit_id)
        if supplier.data.unit_id != request.unit_id:
            return self.fail(
                user,
                "record_quote",
                ErrorCode.VALIDATION_ERROR,
                "Fornecedor não pertence à unidade da solicitação",
                resource_id=request_id,
                unit_id=request.unit_id,
            )

        items = dto.get_items()
        product_errors = self._check_products(request.unit_id, items)
        if product_errors:
            return self.reject(user, "record_quote", product_errors, request.unit_id)

        result = self.repo.create_quote(self.db, request.unit_id, dto.to_object(), items)
        self.complete(
            user,
            "record_quote",
            result,
            "Cotação registrada",
            unit_id=request.unit_id,
            details={"request_id": request_id, "supplier_id": dto.supplier_id, "total_price": dto.total_price()},
        )
        if result.error:
            return result
        quote = self.repo.find_quote(self.db, result.data.id)
        return Result.success(present_quote(quote.data)) if quote.ok else quote

    def _request_quotes(self, request_id: str, user: User) -> Result:
        if not has_permission(user.role, Permission.VIEW_INVENTORY):
            return self.deny(user, "quotes", NO_VIEW_PERMISSION)

        request = self.repo.find_by_id(self.db, request_id)
        if request.error:
            return request
        if not can_access_unit(self.db, user, request.data.unit_id):
            return self.deny(user, "quotes", NO_VIEW_PERMISSION, request.data.unit_id)
        return self.repo.get_quotes_by_request(self.db, request_id)

    def get_quotes(self, request_id: str, user: User) -> Result:
        result = self._request_quotes(request_id, user)
        if result.error:
            return result
        return Result.success([present_quote(q) for q in result.data])

    def compare_quotes(self, request_id: str, user: User) -> Result:
        """Quotes ordered by price with the gap to the cheapest one"""
        result = self._request_quotes(request_id, user)
        if result.error:
            return result
        return Result.success(compare_quotes(result.data))

    def select_quote(self, quote_id: str, reason, user: User) -> Result:
        if not has_permission(user.role, Permission.APPROVE_PURCHASE):
            return self.deny(user, "select_quote", QUOTERS_ONLY_SELECT)

        reason = clean_text(reason)
        if not reason or len(reason) < REASON_MIN_LENGTH:
            return self.reject(user, "select_quote", ["Justificativa da seleção deve ter pelo menos 10 caracteres"])

        quote = self.repo.find_quote(self.db, quote_id)
        if quote.error:
            return self.abort(user, "select_quote", quote, resource_id=quote_id)

        current = self._load(quote.data.request_id, user, "select_quote", QUOTERS_ONLY_SELECT)
        if current.error:
            return current
        unit_id = current.data.unit_id

        result = self.repo.select_quote(self.db, quote_id, user.id, reason)
        self.complete(
            user,
            "select_quote",
            result,
            "Cotação selecionada",
            resource_id=quote_id,
            unit_id=unit_id,
            details={"request_id": quote.data.request_id, "reason": reason},
        )
        if result.error:
            return result
        selected = self.repo.find_quote(self.db, quote_id)
        return Result.success(present_quote(selected.data)) if selected.ok else selected
