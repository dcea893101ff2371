import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_uuid():
    """Primary keys are UUID v4 strings"""
    return str(uuid.uuid4())


class Unit(Base):
    __tablename__ = "units"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    role = Column(String(50), nullable=False, default="barbeiro")  # admin, gerente, barbeiro, recepcionista
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    professionals = relationship("Professional", back_populates="user")


class Professional(Base):
    """Links a user to the units they work at"""

    __tablename__ = "professionals"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_id = Column(String(36), ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    role = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="professionals")
    unit = relationship("Unit")


class Supplier(Base):
    __tablename__ = "suppliers"
    __table_args__ = (UniqueConstraint("unit_id", "cnpj_cpf", name="uq_suppliers_unit_cnpj_cpf"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    unit_id = Column(String(36), ForeignKey("units.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    cnpj_cpf = Column(String(14), nullable=True)  # digits only
    email = Column(String(255), nullable=True)
    phone = Column(String(11), nullable=True)  # digits only
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(2), nullable=True)
    zip_code = Column(String(8), nullable=True)
    payment_terms = Column(String(255), nullable=True)
    observations = Column(Text, nullable=True)
    status = Column(String(20), default="ATIVO", nullable=False)  # ATIVO, INATIVO, BLOQUEADO
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Active contacts only; contacts are written through the repository
    contacts = relationship(
        "SupplierContact",
        primaryjoin="and_(Supplier.id == SupplierContact.supplier_id, SupplierContact.is_active == True)",
        order_by="SupplierContact.created_at",
        viewonly=True,
    )


class SupplierContact(Base):
    __tablename__ = "supplier_contacts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    supplier_id = Column(String(36), ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    role = Column(String(100), nullable=True)
    phone = Column(String(11), nullable=True)
    email = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("unit_id", "sku", name="uq_products_unit_sku"),
        CheckConstraint("current_stock >= 0", name="ck_products_stock_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    unit_id = Column(String(36), ForeignKey("units.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    sku = Column(String(50), nullable=True)
    barcode = Column(String(100), unique=True, nullable=True)
    category = Column(String(100), nullable=True)
    brand = Column(String(100), nullable=True)
    category_id = Column(String(36), nullable=True)
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=True)
    unit_of_measure = Column(String(5), default="UN", nullable=False)
    cost_price = Column(Float, default=0.0, nullable=False)
    selling_price = Column(Float, default=0.0, nullable=False)
    current_stock = Column(Integer, default=0, nullable=False)
    min_stock = Column(Integer, default=0, nullable=False)
    max_stock = Column(Integer, default=0, nullable=False)
    location = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    supplier = relationship("Supplier")


class StockMovement(Base):
    __tablename__ = "stock_movements"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        CheckConstraint("unit_cost >= 0", name="ck_stock_movements_unit_cost_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    unit_id = Column(String(36), ForeignKey("units.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    movement_type = Column(String(10), nullable=False)  # ENTRADA, SAIDA
    reason = Column(String(30), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_cost = Column(Float, default=0.0, nullable=False)
    total_cost = Column(Float, default=0.0, nullable=False)  # quantity * unit_cost
    performed_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    reference_id = Column(String(36), nullable=True)
    reference_type = Column(String(20), nullable=True)  # PURCHASE, REVENUE, SERVICE
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product = relationship("Product")


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    unit_id = Column(String(36), ForeignKey("units.id"), nullable=False, index=True)
    value = Column(Float, nullable=False)
    date = Column(Date, nullable=False, index=True)
    status = Column(String(20), default="Pending", nullable=False)  # Pending, Paid, Cancelled, Overdue
    description = Column(String(500), nullable=False)
    type = Column(String(20), nullable=True)  # rent, salary, supplies, utilities, other
    account_id = Column(String(36), nullable=True)
    category_id = Column(String(36), nullable=True)
    party_id = Column(String(36), nullable=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    expected_payment_date = Column(Date, nullable=True)
    actual_payment_date = Column(Date, nullable=True)
    observations = Column(Text, nullable=True)
    recurring_expense_id = Column(String(36), ForeignKey("recurring_expenses.id"), nullable=True, index=True)
    installment_number = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class RecurringExpense(Base):
    __tablename__ = "recurring_expenses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    unit_id = Column(String(36), ForeignKey("units.id"), nullable=False, index=True)
    expense_id = Column(String(36), nullable=True)  # first installment
    description = Column(String(500), nullable=False)
    monthly_value = Column(Float, nullable=False)
    configuracao = Column(String(20), nullable=False)  # mensal-12x, mensal-36x, mensal-8x, personalizar
    cobrar_sempre_no = Column(Integer, nullable=False)  # day of month, 1-31
    duracao_personalizada = Column(Integer, nullable=True)
    total_parcelas = Column(Integer, nullable=False)
    parcelas_geradas = Column(Integer, default=0, nullable=False)
    status = Column(String(20), default="ativo", nullable=False)  # ativo, pausado, finalizado
    data_inicio = Column(Date, nullable=False)
    data_fim = Column(Date, nullable=True)
    template = Column(JSON, nullable=True)  # expense fields copied into each installment
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class BankStatement(Base):
    __tablename__ = "bank_statements"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    bank_account_id = Column(String(36), nullable=False, index=True)
    unit_id = Column(String(36), ForeignKey("units.id"), nullable=False, index=True)
    transaction_date = Column(Date, nullable=False, index=True)
    description = Column(String(500), nullable=False)
    amount = Column(Float, nullable=False)
    type = Column(String(10), nullable=False)  # Credit, Debit
    status = Column(String(20), default="pending", nullable=False)  # pending, reconciled, ignored
    reconciled = Column(Boolean, default=False, nullable=False)
    reconciled_at = Column(DateTime(timezone=True), nullable=True)
    reconciled_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    hash_unique = Column(String(64), unique=True, nullable=False)
    fitid = Column(String(255), nullable=True)  # OFX transaction id
    observations = Column(Text, nullable=True)
    balance_after = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Reconciliation(Base):
    """Link between one bank statement line and the expense it settles"""

    __tablename__ = "reconciliations"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    unit_id = Column(String(36), ForeignKey("units.id"), nullable=False, index=True)
    bank_statement_id = Column(String(36), ForeignKey("bank_statements.id"), unique=True, nullable=False)
    reference_type = Column(String(20), default="Expense", nullable=False)
    reference_id = Column(String(36), nullable=False, index=True)  # expenses.id
    status = Column(String(20), default="Reconciled", nullable=False)  # Reconciled, Divergent
    difference = Column(Float, default=0.0, nullable=False)
    confidence = Column(Float, nullable=True)  # matcher score, null for manual links
    is_auto = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)
    reconciled_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    statement = relationship("BankStatement")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), nullable=True, index=True)
    action = Column(String(50), nullable=False)  # create, update, delete, ...
    resource = Column(String(50), nullable=False, index=True)  # products, suppliers, ...
    resource_id = Column(String(36), nullable=True)
    unit_id = Column(String(36), nullable=True, index=True)
    status = Column(String(20), default="success", nullable=False)  # success, error
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), default="info", nullable=False)  # success, error, warning, info
    message = Column(String(500), nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PurchaseRequest(Base):
    __tablename__ = "purchase_requests"
    __table_args__ = (UniqueConstraint("unit_id", "request_number", name="uq_purchase_requests_unit_number"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    unit_id = Column(String(36), ForeignKey("units.id"), nullable=False, index=True)
    request_number = Column(String(20), nullable=False)  # SOL-2025-0001
    requested_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    status = Column(String(20), default="DRAFT", nullable=False)  # DRAFT, SUBMITTED, APPROVED, REJECTED, CANCELLED
    priority = Column(String(10), default="NORMAL", nullable=False)  # LOW, NORMAL, HIGH, URGENT
    total_estimated = Column(Float, default=0.0, nullable=False)
    justification = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    approved_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship(
        "PurchaseRequestItem",
        primaryjoin="and_(PurchaseRequest.id == PurchaseRequestItem.request_id, PurchaseRequestItem.is_active == True)",
        order_by="PurchaseRequestItem.created_at",
        viewonly=True,
    )
    requester = relationship("User", foreign_keys=[requested_by])


class PurchaseRequestItem(Base):
    __tablename__ = "purchase_request_items"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_purchase_request_items_quantity_positive"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    request_id = Column(String(36), ForeignKey("purchase_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_measurement = Column(String(5), nullable=False)
    estimated_unit_cost = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product")


class PurchaseQuote(Base):
    """A supplier's price for a purchase request; at most one per request is selected"""

    __tablename__ = "purchase_quotes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    request_id = Column(String(36), ForeignKey("purchase_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    quote_number = Column(String(20), nullable=False)  # COT-2025-001
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=False)
    quoted_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    total_price = Column(Float, default=0.0, nullable=False)  # sum of line totals
    delivery_days = Column(Integer, default=0, nullable=False)
    payment_terms = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    attachment_url = Column(String(500), nullable=True)
    is_selected = Column(Boolean, default=False, nullable=False)
    selected_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    selected_at = Column(DateTime(timezone=True), nullable=True)
    selection_reason = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship("PurchaseQuoteItem", order_by="PurchaseQuoteItem.created_at", viewonly=True)
    supplier = relationship("Supplier")


class PurchaseQuoteItem(Base):
    __tablename__ = "purchase_quote_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_purchase_quote_items_quantity_positive"),
        CheckConstraint("unit_cost >= 0", name="ck_purchase_quote_items_unit_cost_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    quote_id = Column(String(36), ForeignKey("purchase_quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_cost = Column(Float, nullable=False)
    line_total = Column(Float, nullable=False)  # quantity * unit_cost
    created_at = Column(DateTime(timezone=True), server_default=func.now())
