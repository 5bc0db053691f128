"""
Form schemas.

Every mutating route validates its input against one of these models before
calling a service, so field-level problems come back as per-field messages
and the services only ever see well-formed values.
"""
from __future__ import annotations

import re
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from trade_portal.models import DocumentCategory, InvoiceStatus, ShipmentStatus, StockCategory, UserRole

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

# Shown inline next to the field, whatever constraint it broke.
FIELD_MESSAGES = {
    'customer_name': 'Customer name is required',
    'issue_date': 'Issue date is required',
    'due_date': 'Due date is required',
    'items': 'At least one item is required',
    'description': 'Description is required',
    'quantity': 'Quantity must be greater than 0',
    'unit_price': 'Unit price must be 0 or greater',
    'tax_percent': 'Tax percent must be between 0 and 100',
    'extra_fee': 'Extra fee must be 0 or greater',
    'vessel_name': 'Vessel name is required',
    'departure_port': 'Departure port is required',
    'arrival_port': 'Arrival port is required',
    'departure_date': 'Departure date is required',
    'item_name': 'Item name is required',
    'current_stock': 'Current stock must be 0 or greater',
    'min_stock': 'Minimum stock must be 0 or greater',
    'new_quantity': 'Quantity must be 0 or greater',
    'unit': 'Unit is required',
    'location': 'Location is required',
    'reason': 'Reason is required',
    'email': 'Email is required',
    'password': 'Password must be at least 8 characters',
}


class FormModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra='ignore')


class InvoiceItemForm(FormModel):
    description: str = Field(min_length=1)
    quantity: Decimal = Field(gt=0)
    unit_price: Decimal = Field(ge=0)


def _check_email(value: str | None) -> str | None:
    if value and not EMAIL_RE.match(value):
        raise ValueError('Valid email is required')
    return value or None


class InvoiceForm(FormModel):
    customer_name: str = Field(min_length=1)
    customer_email: str | None = None
    issue_date: date
    due_date: date
    items: list[InvoiceItemForm] = Field(min_length=1)
    tax_percent: Decimal = Field(default=Decimal('0'), ge=0, le=100)
    extra_fee: Decimal = Field(default=Decimal('0'), ge=0)

    @field_validator('customer_email')
    @classmethod
    def check_customer_email(cls, value: str | None) -> str | None:
        return _check_email(value)


class InvoiceUpdateForm(FormModel):
    customer_name: str | None = Field(default=None, min_length=1)
    customer_email: str | None = None
    issue_date: date | None = None
    due_date: date | None = None
    items: list[InvoiceItemForm] | None = Field(default=None, min_length=1)
    tax_percent: Decimal | None = Field(default=None, ge=0, le=100)
    extra_fee: Decimal | None = Field(default=None, ge=0)

    @field_validator('customer_email')
    @classmethod
    def check_customer_email(cls, value: str | None) -> str | None:
        return _check_email(value)


class InvoiceStatusForm(FormModel):
    status: InvoiceStatus


class ShipmentForm(FormModel):
    invoice_id: int | None = None
    vessel_name: str = Field(min_length=1)
    departure_port: str = Field(min_length=1)
    arrival_port: str = Field(min_length=1)
    departure_date: date
    arrival_date: date | None = None
    quantity: Decimal = Field(gt=0)


class ShipmentUpdateForm(FormModel):
    invoice_id: int | None = None
    vessel_name: str | None = Field(default=None, min_length=1)
    departure_port: str | None = Field(default=None, min_length=1)
    arrival_port: str | None = Field(default=None, min_length=1)
    departure_date: date | None = None
    arrival_date: date | None = None
    quantity: Decimal | None = Field(default=None, gt=0)


class ShipmentStatusForm(FormModel):
    status: ShipmentStatus


class StockForm(FormModel):
    item_name: str = Field(min_length=1)
    category: StockCategory
    current_stock: int = Field(ge=0)
    min_stock: int = Field(ge=0)
    unit: str = Field(min_length=1)
    location: str = Field(min_length=1)
    notes: str | None = None


class StockUpdateForm(FormModel):
    item_name: str | None = Field(default=None, min_length=1)
    category: StockCategory | None = None
    min_stock: int | None = Field(default=None, ge=0)
    unit: str | None = Field(default=None, min_length=1)
    location: str | None = Field(default=None, min_length=1)
    notes: str | None = None


class StockAdjustForm(FormModel):
    adjustment: int
    reason: str = Field(min_length=1)


class StockSetQuantityForm(FormModel):
    new_quantity: int = Field(ge=0)
    reason: str = Field(min_length=1)


class UserCreateForm(FormModel):
    email: str
    password: str = Field(min_length=8)
    full_name: str | None = None
    role: UserRole = UserRole.STAFF
    department: str | None = None

    @field_validator('email')
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check_email(value)


class ProfileForm(FormModel):
    full_name: str | None = None
    department: str | None = None


class DocumentForm(FormModel):
    title: str = ''
    description: str | None = None
    category: DocumentCategory = DocumentCategory.OTHER
    is_public: bool = False
    tags: str | None = None


def _message_for(error: dict) -> str:
    if error['type'] == 'value_error' and 'error' in error.get('ctx', {}):
        return str(error['ctx']['error'])
    field_names = [part for part in error['loc'] if isinstance(part, str)]
    if field_names and field_names[-1] in FIELD_MESSAGES:
        return FIELD_MESSAGES[field_names[-1]]
    return error['msg']


def validation_messages(exc: ValidationError) -> dict[str, str]:
    messages: dict[str, str] = {}
    for error in exc.errors():
        key = '.'.join(str(part) for part in error['loc']) or '__root__'
        messages.setdefault(key, _message_for(error))
    return messages
