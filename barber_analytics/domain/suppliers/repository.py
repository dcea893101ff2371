"""Supplier repository - Database operations for suppliers and their contacts"""

import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from ...models import Supplier, SupplierContact
from ...shared.errors import ErrorCode
from ...shared.repository import apply_updates, repository_operation
from ...shared.result import Page, Result

logger = logging.getLogger(__name__)

SUPPLIER_NOT_FOUND = "Fornecedor não encontrado"
CONTACT_NOT_FOUND = "Contato não encontrado"

UNIQUE_MESSAGES = {"cnpj_cpf": "CNPJ/CPF já cadastrado para esta unidade"}


class SupplierRepository:
    """Repository for supplier database operations"""

    @staticmethod
    @repository_operation("Creating supplier", unique_messages=UNIQUE_MESSAGES)
    def create(db: Session, data: dict) -> Result:
        supplier = Supplier(**data)
        db.add(supplier)
        db.commit()
        db.refresh(supplier)
        logger.info(f"✅ Supplier created: {supplier.id}")
        return Result.success(supplier)

    @staticmethod
    @repository_operation("Finding supplier")
    def find_by_id(db: Session, supplier_id: str) -> Result:
        """Active supplier with its active contacts loaded"""
        supplier = (
            db.query(Supplier)
            .options(selectinload(Supplier.contacts))
            .filter(Supplier.id == supplier_id, Supplier.is_active.is_(True))
            .first()
        )
        if not supplier:
            return Result.fail(ErrorCode.NOT_FOUND, SUPPLIER_NOT_FOUND)
        return Result.success(supplier)

    @staticmethod
    @repository_operation("Listing suppliers")
    def find_by_unit(db: Session, unit_id: str, filters: dict) -> Result:
        """Page of active suppliers, filtered by status and name/document/email search"""
        query = db.query(Supplier).filter(Supplier.unit_id == unit_id, Supplier.is_active.is_(True))

        if filters.get("status"):
            query = query.filter(Supplier.status == filters["status"])
        if filters.get("search"):
            pattern = f"%{filters['search']}%"
            query = query.filter(
                or_(
                    Supplier.name.ilike(pattern),
                    Supplier.cnpj_cpf.ilike(pattern),
                    Supplier.email.ilike(pattern),
                )
            )

        total = query.count()
        page = filters.get("page", 1)
        page_size = filters.get("page_size", 50)
        items = (
            query.options(selectinload(Supplier.contacts))
            .order_by(Supplier.name.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return Result.success(Page(items=items, total=total, page=page, page_size=page_size))

    @staticmethod
    @repository_operation("Finding supplier by CNPJ/CPF")
    def find_by_cnpj(db: Session, cnpj_cpf: str, unit_id: str) -> Result:
        """Active supplier with this document in the unit, or data=None"""
        supplier = (
            db.query(Supplier)
            .filter(
                Supplier.cnpj_cpf == cnpj_cpf,
                Supplier.unit_id == unit_id,
                Supplier.is_active.is_(True),
            )
            .first()
        )
        return Result.success(supplier)

    @staticmethod
    @repository_operation("Listing active suppliers")
    def find_active_by_unit(db: Session, unit_id: str) -> Result:
        """Suppliers with status ATIVO, for selects"""
        suppliers = (
            db.query(Supplier)
            .options(selectinload(Supplier.contacts))
            .filter(
                Supplier.unit_id == unit_id,
                Supplier.is_active.is_(True),
                Supplier.status == "ATIVO",
            )
            .order_by(Supplier.name.asc())
            .all()
        )
        return Result.success(suppliers)

    @staticmethod
    @repository_operation("Updating supplier", unique_messages=UNIQUE_MESSAGES)
    def update(db: Session, supplier_id: str, updates: dict) -> Result:
        supplier = db.query(Supplier).filter(Supplier.id == supplier_id, Supplier.is_active.is_(True)).first()
        if not supplier:
            return Result.fail(ErrorCode.NOT_FOUND, SUPPLIER_NOT_FOUND)

        apply_updates(supplier, updates)
        db.commit()
        db.refresh(supplier)
        logger.info(f"✅ Supplier updated: {supplier_id}")
        return Result.success(supplier)

    @staticmethod
    @repository_operation("Deleting supplier")
    def delete(db: Session, supplier_id: str) -> Result:
        """Soft delete (is_active = False)"""
        supplier = db.query(Supplier).filter(Supplier.id == supplier_id, Supplier.is_active.is_(True)).first()
        if not supplier:
            return Result.fail(ErrorCode.NOT_FOUND, SUPPLIER_NOT_FOUND)

        supplier.is_active = False
        db.commit()
        db.refresh(supplier)
        logger.info(f"🗑️ Supplier soft deleted: {supplier_id}")
        return Result.success(supplier)

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    @staticmethod
    @repository_operation("Adding supplier contact")
    def add_contact(db: Session, supplier_id: str, data: dict) -> Result:
        contact = SupplierContact(supplier_id=supplier_id, **data)
        db.add(contact)
        db.commit()
        db.refresh(contact)
        return Result.success(contact)

    @staticmethod
    @repository_operation("Finding supplier contact")
    def find_contact(db: Session, contact_id: str) -> Result:
        contact = (
            db.query(SupplierContact)
            .filter(SupplierContact.id == contact_id, SupplierContact.is_active.is_(True))
            .first()
        )
        if not contact:
            return Result.fail(ErrorCode.NOT_FOUND, CONTACT_NOT_FOUND)
        return Result.success(contact)

    @staticmethod
    @repository_operation("Updating supplier contact")
    def update_contact(db: Session, contact_id: str, updates: dict) -> Result:
        contact = (
            db.query(SupplierContact)
            .filter(SupplierContact.id == contact_id, SupplierContact.is_active.is_(True))
            .first()
        )
        if not contact:
            return Result.fail(ErrorCode.NOT_FOUND, CONTACT_NOT_FOUND)

        apply_updates(contact, updates)
        db.commit()
        db.refresh(contact)
        return Result.success(contact)

    @staticmethod
    @repository_operation("Deleting supplier contact")
    def delete_contact(db: Session, contact_id: str) -> Result:
        contact = (
            db.query(SupplierContact)
            .filter(SupplierContact.id == contact_id, SupplierContact.is_active.is_(True))
            .first()
        )
        if not contact:
            return Result.fail(ErrorCode.NOT_FOUND, CONTACT_NOT_FOUND)

        contact.is_active = False
        db.commit()
        db.refresh(contact)
        return Result.success(contact)
