from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from trade_portal.models import Invoice, InvoiceStatus
from trade_portal.services.concurrency import run_with_retry
from trade_portal.services.errors import NotFoundError
from trade_portal.services.money_service import (
    LineItem,
    build_invoice_items,
    compute_invoice_totals,
    to_decimal,
)
from trade_portal.services.numbering_service import INVOICE_PREFIX, current_year, next_sequence_number, year_prefix
from trade_portal.services.repositories import InvoiceFilters, InvoiceRepository

LINKABLE_STATUSES = (InvoiceStatus.UNPAID, InvoiceStatus.PAID)
TOTAL_FIELDS = {'items', 'tax_percent', 'extra_fee'}
PATCHABLE_FIELDS = {'customer_name', 'customer_email', 'issue_date', 'due_date', *TOTAL_FIELDS}


@dataclass(frozen=True)
class InvoiceDraft:
    customer_name: str
    issue_date: date
    due_date: date
    items: list[LineItem] = field(default_factory=list)
    customer_email: str | None = None
    tax_percent: Decimal = Decimal('0')
    extra_fee: Decimal = Decimal('0')


@dataclass(frozen=True)
class InvoiceStats:
    total: int
    paid: int
    unpaid: int
    overdue: int
    total_amount: Decimal


def parse_invoice_status(raw: str) -> InvoiceStatus:
    try:
        return InvoiceStatus(raw)
    except ValueError as exc:
        raise ValueError(f'Unknown invoice status: {raw}') from exc


def generate_invoice_number(repo: InvoiceRepository, *, year: int | None = None) -> str:
    year = year or current_year()
    latest = repo.latest_number(year_prefix(INVOICE_PREFIX, year))
    return next_sequence_number(INVOICE_PREFIX, latest, year)


def _total_values(items, tax_percent, extra_fee) -> dict:
    lines = build_invoice_items(items)
    if not lines:
        raise ValueError('At least one item is required')
    for position, line in enumerate(lines, start=1):
        if not line.is_complete:
            raise ValueError(
                f'Item {position} needs a description, a quantity above 0 and a unit price of at least 0'
            )
    totals = compute_invoice_totals(lines, tax_percent, extra_fee)
    return {
        'items': [line.as_dict() for line in lines],
        'tax_percent': to_decimal(tax_percent, field='tax percent'),
        'extra_fee': to_decimal(extra_fee, field='extra fee'),
        'subtotal': totals.subtotal,
        'total': totals.total,
    }


def create_invoice(
    repo: InvoiceRepository,
    *,
    data: InvoiceDraft,
    created_by: int | None,
    year: int | None = None,
) -> Invoice:
    if not data.customer_name.strip():
        raise ValueError('Customer name is required')
    if not data.items:
        raise ValueError('At least one item is required')

    values = {
        'customer_name': data.customer_name.strip(),
        'customer_email': data.customer_email or None,
        'issue_date': data.issue_date,
        'due_date': data.due_date,
        'status': InvoiceStatus.UNPAID,
        'created_by': created_by,
        **_total_values(data.items, data.tax_percent, data.extra_fee),
    }

    def _insert() -> Invoice:
        number = generate_invoice_number(repo, year=year)
        return repo.insert({**values, 'invoice_number': number})

    return run_with_retry(_insert, label='Invoice numbering')


def _require_invoice(repo: InvoiceRepository, invoice_id: int) -> Invoice:
    invoice = repo.get(invoice_id)
    if invoice is None:
        raise NotFoundError('Invoice not found')
    return invoice


def get_invoice(repo: InvoiceRepository, *, invoice_id: int) -> Invoice:
    return _require_invoice(repo, invoice_id)


def update_invoice(repo: InvoiceRepository, *, invoice_id: int, changes: dict) -> Invoice:
    unknown = set(changes) - PATCHABLE_FIELDS
    if unknown:
        raise ValueError(f'Cannot update invoice fields: {", ".join(sorted(unknown))}')

    def _apply() -> Invoice:
        invoice = _require_invoice(repo, invoice_id)
        values = dict(changes)
        if TOTAL_FIELDS & set(changes):
            values.update(
                _total_values(
                    changes.get('items', invoice.items),
                    changes.get('tax_percent', invoice.tax_percent),
                    changes.get('extra_fee', invoice.extra_fee),
                )
            )
        return repo.update(invoice_id, values, expected_version=invoice.version)

    return run_with_retry(_apply, label='Invoice update')


def set_invoice_status(repo: InvoiceRepository, *, invoice_id: int, status: InvoiceStatus) -> Invoice:
    status = InvoiceStatus(status)
    return repo.update(invoice_id, {'status': status})


def delete_invoice(repo: InvoiceRepository, *, invoice_id: int) -> None:
    repo.delete(invoice_id)


def list_invoices(repo: InvoiceRepository, *, filters: InvoiceFilters | None = None) -> list[Invoice]:
    return repo.list(filters or InvoiceFilters())


def list_linkable_invoices(repo: InvoiceRepository) -> list[Invoice]:
    return repo.list(InvoiceFilters(statuses=LINKABLE_STATUSES))


def invoice_stats(invoices: list[Invoice]) -> InvoiceStats:
    counts = {status: 0 for status in InvoiceStatus}
    for invoice in invoices:
        match invoice.status:
            case InvoiceStatus.UNPAID | InvoiceStatus.PAID | InvoiceStatus.OVERDUE:
                counts[invoice.status] += 1
            case _:
                raise ValueError(f'Unknown invoice status: {invoice.status}')
    return InvoiceStats(
        total=len(invoices),
        paid=counts[InvoiceStatus.PAID],
        unpaid=counts[InvoiceStatus.UNPAID],
        overdue=counts[InvoiceStatus.OVERDUE],
        total_amount=sum((to_decimal(invoice.total) for invoice in invoices), Decimal('0')),
    )


def serialize_invoice(invoice: Invoice) -> dict:
    return {
        'id': invoice.id,
        'invoice_number': invoice.invoice_number,
        'customer_name': invoice.customer_name,
        'customer_email': invoice.customer_email,
        'issue_date': invoice.issue_date.isoformat() if invoice.issue_date else None,
        'due_date': invoice.due_date.isoformat() if invoice.due_date else None,
        'items': list(invoice.items or []),
        'subtotal': str(invoice.subtotal),
        'tax_percent': str(invoice.tax_percent),
        'extra_fee': str(invoice.extra_fee),
        'total': str(invoice.total),
        'status': invoice.status.value,
        'created_by': invoice.created_by,
    }
