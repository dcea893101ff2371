"""Purchase request repository - Database operations for purchase requests, their items and quotes"""

import logging
from datetime import datetime, timezone

from sqlalchemy import extract, or_
from sqlalchemy.orm import Session, selectinload

from ...models import Product, PurchaseQuote, PurchaseQuoteItem, PurchaseRequest, PurchaseRequestItem
from ...shared.errors import ErrorCode
from ...shared.repository import apply_updates, repository_operation
from ...shared.result import Page, Result
from ..stock.dtos import parse_day
from .dtos import PRIORITY_RANK

logger = logging.getLogger(__name__)

REQUEST_NOT_FOUND = "Solicitação de compra não encontrada"
QUOTE_NOT_FOUND = "Cotação não encontrada"

UNIQUE_MESSAGES = {"request_number": "Número de solicitação já utilizado nesta unidade"}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _active_request(db: Session, request_id: str):
    return (
        db.query(PurchaseRequest)
        .options(selectinload(PurchaseRequest.items).selectinload(PurchaseRequestItem.product))
        .filter(PurchaseRequest.id == request_id, PurchaseRequest.is_active.is_(True))
        .first()
    )


def _next_request_number(db: Session, unit_id: str, year: int) -> str:
    count = (
        db.query(PurchaseRequest)
        .filter(PurchaseRequest.unit_id == unit_id, extract("year", PurchaseRequest.created_at) == year)
        .count()
    )
    return f"SOL-{year}-{count + 1:04d}"


def _next_quote_number(db: Session, unit_id: str, year: int) -> str:
    count = (
        db.query(PurchaseQuote)
        .join(PurchaseRequest, PurchaseQuote.request_id == PurchaseRequest.id)
        .filter(PurchaseRequest.unit_id == unit_id, extract("year", PurchaseQuote.created_at) == year)
        .count()
    )
    return f"COT-{year}-{count + 1:03d}"


class PurchaseRequestRepository:
    """Repository for purchase request database operations"""

    @staticmethod
    @repository_operation("Creating purchase request", unique_messages=UNIQUE_MESSAGES)
    def create(db: Session, data: dict, items: list[dict]) -> Result:
        """Insert the request and its items in one transaction"""
        request = PurchaseRequest(**data)
        request.request_number = _next_request_number(db, data["unit_id"], _now().year)
        db.add(request)
        db.flush()

        for item in items:
            db.add(PurchaseRequestItem(request_id=request.id, **item))
        db.commit()

        logger.info(f"✅ Purchase request created: {request.request_number} ({len(items)} items)")
        return Result.success(_active_request(db, request.id))

    @staticmethod
    @repository_operation("Finding purchase request")
    def find_by_id(db: Session, request_id: str) -> Result:
        request = _active_request(db, request_id)
        if not request:
            return Result.fail(ErrorCode.NOT_FOUND, REQUEST_NOT_FOUND)
        return Result.success(request)

    @staticmethod
    @repository_operation("Listing purchase requests")
    def find_by_unit(db: Session, unit_id: str, filters: dict) -> Result:
        """Newest first, filtered by status, priority, requester, creation day and number/justification search"""
        query = db.query(PurchaseRequest).filter(
            PurchaseRequest.unit_id == unit_id, PurchaseRequest.is_active.is_(True)
        )

        if filters.get("status"):
            query = query.filter(PurchaseRequest.status == filters["status"])
        if filters.get("priority"):
            query = query.filter(PurchaseRequest.priority == filters["priority"])
        if filters.get("requested_by"):
            query = query.filter(PurchaseRequest.requested_by == filters["requested_by"])
        start = parse_day(filters.get("start_date"))
        if start:
            query = query.filter(PurchaseRequest.created_at >= start)
        end = parse_day(filters.get("end_date"), end_of_day=True)
        if end:
            query = query.filter(PurchaseRequest.created_at <= end)
        if filters.get("search"):
            pattern = f"%{filters['search']}%"
            query = query.filter(
                or_(PurchaseRequest.request_number.ilike(pattern), PurchaseRequest.justification.ilike(pattern))
            )

        total = query.count()
        page = filters.get("page", 1)
        page_size = filters.get("page_size", 20)
        items = (
            query.options(selectinload(PurchaseRequest.items).selectinload(PurchaseRequestItem.product))
            .order_by(PurchaseRequest.created_at.desc(), PurchaseRequest.request_number.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return Result.success(Page(items=items, total=total, page=page, page_size=page_size))

    @staticmethod
    @repository_operation("Listing unit products")
    def find_unit_products(db: Session, unit_id: str, product_ids: list[str]) -> Result:
        """Ids of the given products that are active in the unit"""
        rows = (
            db.query(Product.id)
            .filter(Product.id.in_(product_ids), Product.unit_id == unit_id, Product.is_active.is_(True))
            .all()
        )
        return Result.success({row[0] for row in rows})

    @staticmethod
    @repository_operation("Updating purchase request")
    def update(db: Session, request_id: str, updates: dict) -> Result:
        request = _active_request(db, request_id)
        if not request:
            return Result.fail(ErrorCode.NOT_FOUND, REQUEST_NOT_FOUND)

        apply_updates(request, updates)
        db.commit()
        db.refresh(request)
        logger.info(f"✅ Purchase request updated: {request_id}")
        return Result.success(request)

    @staticmethod
    @repository_operation("Deleting purchase request")
    def delete(db: Session, request_id: str) -> Result:
        """Soft delete (is_active = False)"""
        request = _active_request(db, request_id)
        if not request:
            return Result.fail(ErrorCode.NOT_FOUND, REQUEST_NOT_FOUND)

        request.is_active = False
        db.commit()
        db.refresh(request)
        logger.info(f"🗑️ Purchase request soft deleted: {request_id}")
        return Result.success(request)

    @staticmethod
    def _transition(db: Session, request_id: str, expected: str, changes: dict, wrong_status: str) -> Result:
        """Apply a status change only when the request is still in the expected status"""
        request = (
            db.query(PurchaseRequest)
            .filter(PurchaseRequest.id == request_id, PurchaseRequest.is_active.is_(True))
            .with_for_update()
            .first()
        )
        if not request:
            return Result.fail(ErrorCode.NOT_FOUND, REQUEST_NOT_FOUND)
        if request.status != expected:
            return Result.fail(ErrorCode.VALIDATION_ERROR, wrong_status)

        apply_updates(request, changes)
        db.commit()
        logger.info(f"🔄 Purchase request {request_id}: {expected} -> {changes['status']}")
        return Result.success(_active_request(db, request_id))

    @staticmethod
    @repository_operation("Submitting purchase request")
    def submit(db: Session, request_id: str) -> Result:
        return PurchaseRequestRepository._transition(
            db,
            request_id,
            "DRAFT",
            {"status": "SUBMITTED"},
            "Apenas solicitações em rascunho podem ser enviadas para aprovação",
        )

    @staticmethod
    @repository_operation("Approving purchase request")
    def approve(db: Session, request_id: str, approved_by: str) -> Result:
        return PurchaseRequestRepository._transition(
            db,
            request_id,
            "SUBMITTED",
            {"status": "APPROVED", "approved_by": approved_by, "approved_at": _now()},
            "Apenas solicitações aguardando aprovação podem ser aprovadas",
        )

    @staticmethod
    @repository_operation("Rejecting purchase request")
    def reject(db: Session, request_id: str, rejected_by: str, reason: str) -> Result:
        return PurchaseRequestRepository._transition(
            db,
            request_id,
            "SUBMITTED",
            {"status": "REJECTED", "rejected_by": rejected_by, "rejected_at": _now(), "rejection_reason": reason},
            "Apenas solicitações aguardando aprovação podem ser rejeitadas",
        )

    @staticmethod
    @repository_operation("Listing pending approvals")
    def get_pending_approvals(db: Session, unit_id: str) -> Result:
        """SUBMITTED requests, most urgent first, then oldest first"""
        requests = (
            db.query(PurchaseRequest)
            .options(selectinload(PurchaseRequest.items).selectinload(PurchaseRequestItem.product))
            .filter(
                PurchaseRequest.unit_id == unit_id,
                PurchaseRequest.status == "SUBMITTED",
                PurchaseRequest.is_active.is_(True),
            )
            .order_by(PurchaseRequest.created_at.asc())
            .all()
        )
        requests.sort(key=lambda r: PRIORITY_RANK.get(r.priority, len(PRIORITY_RANK)))
        return Result.success(requests)

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    @staticmethod
    @repository_operation("Creating purchase quote")
    def create_quote(db: Session, unit_id: str, data: dict, items: list[dict]) -> Result:
        quote = PurchaseQuote(**data)
        quote.quote_number = _next_quote_number(db, unit_id, _now().year)
        db.add(quote)
        db.flush()

        for item in items:
            db.add(PurchaseQuoteItem(quote_id=quote.id, **item))
        db.commit()
        db.refresh(quote)

        logger.info(f"✅ Purchase quote created: {quote.quote_number} for request {quote.request_id}")
        return Result.success(quote)

    @staticmethod
    @repository_operation("Finding purchase quote")
    def find_quote(db: Session, quote_id: str) -> Result:
        quote = (
            db.query(PurchaseQuote)
            .options(selectinload(PurchaseQuote.items), selectinload(PurchaseQuote.supplier))
            .filter(PurchaseQuote.id == quote_id, PurchaseQuote.is_active.is_(True))
            .first()
        )
        if not quote:
            return Result.fail(ErrorCode.NOT_FOUND, QUOTE_NOT_FOUND)
        return Result.success(quote)

    @staticmethod
    @repository_operation("Listing purchase quotes")
    def get_quotes_by_request(db: Session, request_id: str) -> Result:
        quotes = (
            db.query(PurchaseQuote)
            .options(selectinload(PurchaseQuote.items), selectinload(PurchaseQuote.supplier))
            .filter(PurchaseQuote.request_id == request_id, PurchaseQuote.is_active.is_(True))
            .order_by(PurchaseQuote.created_at.desc(), PurchaseQuote.quote_number.desc())
            .all()
        )
        return Result.success(quotes)

    @staticmethod
    @repository_operation("Selecting purchase quote")
    def select_quote(db: Session, quote_id: str, selected_by: str, reason: str) -> Result:
        """Mark one quote as selected and clear the selection of its siblings"""
        quote = db.query(PurchaseQuote).filter(PurchaseQuote.id == quote_id, PurchaseQuote.is_active.is_(True)).first()
        if not quote:
            return Result.fail(ErrorCode.NOT_FOUND, QUOTE_NOT_FOUND)

        siblings = (
            db.query(PurchaseQuote)
            .filter(
                PurchaseQuote.request_id == quote.request_id,
                PurchaseQuote.id != quote_id,
                PurchaseQuote.is_selected.is_(True),
            )
            .all()
        )
        for sibling in siblings:
            sibling.is_selected = False
            sibling.selected_by = None
            sibling.selected_at = None
            sibling.selection_reason = None

        quote.is_selected = True
        quote.selected_by = selected_by
        quote.selected_at = _now()
        quote.selection_reason = reason
        db.commit()
        db.refresh(quote)
        logger.info(f"✅ Purchase quote selected: {quote.quote_number} (request {quote.request_id})")
        return Result.success(quote)
