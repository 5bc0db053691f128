from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import CITEXT, INET
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class UserRole(str, Enum):
    ADMIN = 'admin'
    STAFF = 'staff'


class InvoiceStatus(str, Enum):
    UNPAID = 'unpaid'
    PAID = 'paid'
    OVERDUE = 'overdue'


class ShipmentStatus(str, Enum):
    SCHEDULED = 'Scheduled'
    ON_TRANSIT = 'On Transit'
    ARRIVED = 'Arrived'
    COMPLETED = 'Completed'


class StockCategory(str, Enum):
    OFFICE_SUPPLIES = 'office_supplies'
    EQUIPMENT = 'equipment'
    CONSUMABLES = 'consumables'


class StockStatus(str, Enum):
    OUT_OF_STOCK = 'out_of_stock'
    LOW_STOCK = 'low_stock'
    NORMAL = 'normal'


class StockMovementType(str, Enum):
    IN = 'in'
    OUT = 'out'
    SET = 'set'


class DocumentCategory(str, Enum):
    CONTRACT = 'contract'
    COMPANY_DOC = 'company_doc'
    REPORT = 'report'
    OTHER = 'other'


class User(Base):
    __tablename__ = 'users'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    email: Mapped[str] = mapped_column(CITEXT(), nullable=False, unique=True)
    full_name: Mapped[str | None] = mapped_column(Text)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name='user_role', values_callable=_enum_values),
        nullable=False,
        default=UserRole.STAFF,
        server_default='staff',
    )
    department: Mapped[str | None] = mapped_column(Text)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class Invoice(Base):
    __tablename__ = 'invoices'
    __table_args__ = (
        UniqueConstraint('invoice_number', name='invoices_invoice_number_key'),
        CheckConstraint('tax_percent >= 0 AND tax_percent <= 100', name='invoices_tax_percent_ck'),
        CheckConstraint('extra_fee >= 0', name='invoices_extra_fee_ck'),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    invoice_number: Mapped[str] = mapped_column(String(32), nullable=False)
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_email: Mapped[str | None] = mapped_column(Text)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list, server_default='[]')
    subtotal: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal('0'))
    tax_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal('0'))
    extra_fee: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal('0'))
    total: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal('0'))
    status: Mapped[InvoiceStatus] = mapped_column(
        SQLEnum(InvoiceStatus, name='invoice_status', values_callable=_enum_values),
        nullable=False,
        default=InvoiceStatus.UNPAID,
        server_default='unpaid',
    )
    created_by: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('users.id'))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default='1')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __mapper_args__ = {'version_id_col': version}


class Shipment(Base):
    __tablename__ = 'shipments'
    __table_args__ = (
        UniqueConstraint('shipment_code', name='shipments_shipment_code_key'),
        CheckConstraint('quantity > 0', name='shipments_quantity_positive_ck'),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    shipment_code: Mapped[str] = mapped_column(String(32), nullable=False)
    invoice_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('invoices.id', ondelete='SET NULL'))
    vessel_name: Mapped[str] = mapped_column(Text, nullable=False)
    departure_port: Mapped[str] = mapped_column(Text, nullable=False)
    arrival_port: Mapped[str] = mapped_column(Text, nullable=False)
    departure_date: Mapped[date] = mapped_column(Date, nullable=False)
    arrival_date: Mapped[date | None] = mapped_column(Date)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    status: Mapped[ShipmentStatus] = mapped_column(
        SQLEnum(ShipmentStatus, name='shipment_status', values_callable=_enum_values),
        nullable=False,
        default=ShipmentStatus.SCHEDULED,
        server_default='Scheduled',
    )
    documents: Mapped[list] = mapped_column(JSON, nullable=False, default=list, server_default='[]')
    created_by: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('users.id'))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default='1')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __mapper_args__ = {'version_id_col': version}


class StockOffice(Base):
    __tablename__ = 'stock_office'
    __table_args__ = (
        CheckConstraint('current_stock >= 0', name='stock_office_current_non_negative_ck'),
        CheckConstraint('min_stock >= 0', name='stock_office_min_non_negative_ck'),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    item_name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[StockCategory] = mapped_column(
        SQLEnum(StockCategory, name='stock_category', values_callable=_enum_values), nullable=False
    )
    current_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    min_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    unit: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    last_updated_by: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('users.id'))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default='1')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __mapper_args__ = {'version_id_col': version}


class StockMovement(Base):
    __tablename__ = 'stock_movements'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    stock_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('stock_office.id', ondelete='CASCADE'), nullable=False)
    movement_type: Mapped[StockMovementType] = mapped_column(
        SQLEnum(StockMovementType, name='stock_movement_type', values_callable=_enum_values), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    new_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    performed_by: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('users.id'))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Document(Base):
    __tablename__ = 'documents'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default='0')
    file_type: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[DocumentCategory] = mapped_column(
        SQLEnum(DocumentCategory, name='document_category', values_callable=_enum_values),
        nullable=False,
        default=DocumentCategory.OTHER,
        server_default='other',
    )
    uploaded_by: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('users.id'))
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list, server_default='[]')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class AuthEvent(Base):
    __tablename__ = 'auth_events'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    attempted_email: Mapped[str] = mapped_column(CITEXT(), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(Text)
    user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('users.id'))
    ip: Mapped[str | None] = mapped_column(INET)
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    actor_user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('users.id'))
    action: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str | None] = mapped_column(Text)
    entity_id: Mapped[int | None] = mapped_column(BigInteger)
    ip: Mapped[str | None] = mapped_column(INET)
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict, server_default='{}')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class WebSession(Base):
    __tablename__ = 'web_sessions'
    __table_args__ = (
        UniqueConstraint('session_token', name='web_sessions_session_token_key'),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    session_token: Mapped[str] = mapped_column(String(128), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('users.id'), nullable=False)
    ip: Mapped[str | None] = mapped_column(INET)
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
