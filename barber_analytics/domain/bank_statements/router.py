"""Bank statement router - FastAPI endpoints for statement import and reconciliation"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import api_rate_limiter
from ...shared.http import unwrap
from .schemas import (
    BankStatementEnvelope,
    BankStatementPageEnvelope,
    FileImportSummaryEnvelope,
    ImportSummaryEnvelope,
    StatementImport,
    StatementSummaryEnvelope,
    StatementUpdate,
)
from .service import BankStatementService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/bank-statements", tags=["Bank Statements"], dependencies=[Depends(api_rate_limiter("bank_statements"))]
)


def get_statement_service(db: Session = Depends(get_db)) -> BankStatementService:
    """Dependency injection for BankStatementService"""
    return BankStatementService(db)


@router.get("", response_model=BankStatementPageEnvelope)
async def list_statements(
    unit_id: Optional[str] = Query(None),
    bank_account_id: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    statement_type: Optional[str] = Query(None, alias="type"),
    statement_status: Optional[str] = Query(None, alias="status"),
    reconciled: Optional[bool] = Query(None),
    page: int = Query(1),
    page_size: int = Query(50),
    current_user: User = Depends(get_current_user),
    service: BankStatementService = Depends(get_statement_service),
):
    filters = {
        "unit_id": unit_id,
        "bank_account_id": bank_account_id,
        "start_date": start_date,
        "end_date": end_date,
        "type": statement_type,
        "status": statement_status,
        "reconciled": reconciled,
        "page": page,
        "page_size": page_size,
    }
    result = unwrap(service.list_statements(filters, current_user))
    return {"data": result.items, "pagination": result.pagination()}


@router.get("/summary", response_model=StatementSummaryEnvelope)
async def get_period_summary(
    unit_id: str = Query(...),
    start_date: str = Query(...),
    end_date: str = Query(...),
    bank_account_id: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: BankStatementService = Depends(get_statement_service),
):
    result = service.get_period_summary(unit_id, start_date, end_date, current_user, bank_account_id=bank_account_id)
    return {"data": unwrap(result)}


@router.post("/import", response_model=ImportSummaryEnvelope, status_code=status.HTTP_201_CREATED)
async def import_statements(
    data: StatementImport,
    current_user: User = Depends(get_current_user),
    service: BankStatementService = Depends(get_statement_service),
):
    """Import a batch; invalid rows and duplicates are reported, not fatal"""
    result = service.import_statements(
        data.unit_id, data.statements, current_user, bank_account_id=data.bank_account_id
    )
    return {"data": unwrap(result)}


def decode_upload(raw: bytes) -> str:
    """UTF-8 (with or without BOM) first; Brazilian bank exports are often Latin-1"""
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


@router.post("/import-file", response_model=FileImportSummaryEnvelope, status_code=status.HTTP_201_CREATED)
async def import_statement_file(
    file: UploadFile = File(...),
    unit_id: str = Form(...),
    bank_account_id: str = Form(...),
    bank: Optional[str] = Form(None),
    file_format: Optional[str] = Form(None, alias="format"),
    current_user: User = Depends(get_current_user),
    service: BankStatementService = Depends(get_statement_service),
):
    """Upload an OFX, CSV or TXT export; the bank is detected from the file name or content when omitted"""
    content = decode_upload(await file.read())
    result = service.import_file(
        unit_id,
        bank_account_id,
        content,
        current_user,
        filename=file.filename or "",
        bank=bank,
        file_format=file_format,
    )
    return {"data": unwrap(result)}


@router.get("/{statement_id}", response_model=BankStatementEnvelope)
async def get_statement(
    statement_id: str,
    current_user: User = Depends(get_current_user),
    service: BankStatementService = Depends(get_statement_service),
):
    return {"data": unwrap(service.get_statement(statement_id, current_user))}


@router.patch("/{statement_id}", response_model=BankStatementEnvelope)
async def update_statement(
    statement_id: str,
    data: StatementUpdate,
    current_user: User = Depends(get_current_user),
    service: BankStatementService = Depends(get_statement_service),
):
    return {"data": unwrap(service.update_statement(statement_id, data.model_dump(exclude_unset=True), current_user))}


@router.post("/{statement_id}/reconcile", response_model=BankStatementEnvelope)
async def reconcile_statement(
    statement_id: str,
    current_user: User = Depends(get_current_user),
    service: BankStatementService = Depends(get_statement_service),
):
    return {"data": unwrap(service.reconcile(statement_id, current_user))}


@router.delete("/{statement_id}")
async def delete_statement(
    statement_id: str,
    current_user: User = Depends(get_current_user),
    service: BankStatementService = Depends(get_statement_service),
):
    return {"data": unwrap(service.delete_statement(statement_id, current_user))}
