from __future__ import annotations

import re

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from trade_portal.auth import Feature, Principal, require_feature
from trade_portal.db import get_db
from trade_portal.dependencies import (
    form_values,
    get_client_ip,
    query_date,
    require_confirmation,
    service_errors,
    validate_form,
)
from trade_portal.models import InvoiceStatus
from trade_portal.schemas import InvoiceForm, InvoiceStatusForm, InvoiceUpdateForm
from trade_portal.security.csrf import verify_csrf
from trade_portal.services.audit_service import log_audit
from trade_portal.services.invoice_service import (
    InvoiceDraft,
    create_invoice,
    delete_invoice,
    get_invoice,
    invoice_stats,
    list_invoices,
    list_linkable_invoices,
    serialize_invoice,
    set_invoice_status,
    update_invoice,
)
from trade_portal.services.money_service import format_currency
from trade_portal.services.repositories import InvoiceFilters
from trade_portal.services.sql_repositories import SqlInvoiceRepository

router = APIRouter(prefix='/invoices', tags=['invoices'])
invoice_access = require_feature(Feature.INVOICES)

INVOICE_FIELDS = ('customer_name', 'customer_email', 'issue_date', 'due_date', 'tax_percent', 'extra_fee')
ITEM_FIELD_RE = re.compile(r'^items-(\d+)-(description|quantity|unit_price)$')


def collect_items(form) -> list[dict]:
    """Group `items-<n>-<field>` form fields into line item dicts, dropping fully blank rows."""
    rows: dict[int, dict] = {}
    for key in form.keys():
        match = ITEM_FIELD_RE.match(key)
        if not match:
            continue
        value = str(form.get(key, '')).strip()
        rows.setdefault(int(match.group(1)), {})[match.group(2)] = value
    return [row for _, row in sorted(rows.items()) if any(row.values())]


def _invoice_form_data(form) -> dict:
    data = form_values(form, INVOICE_FIELDS)
    items = collect_items(form)
    if items:
        data['items'] = items
    return data


@router.get('')
def invoices_index(
    request: Request,
    _: Principal = Depends(invoice_access),
    db: Session = Depends(get_db),
):
    status_raw = request.query_params.get('status', '').strip()
    try:
        status = InvoiceStatus(status_raw) if status_raw else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail='Invalid status filter') from exc
    filters = InvoiceFilters(
        status=status,
        customer=request.query_params.get('customer', '').strip() or None,
        date_from=query_date(request, 'from'),
        date_to=query_date(request, 'to'),
    )
    with service_errors('load invoices'):
        invoices = list_invoices(SqlInvoiceRepository(db), filters=filters)
    stats = invoice_stats(invoices)
    return {
        'invoices': [serialize_invoice(invoice) for invoice in invoices],
        'stats': {
            'total': stats.total,
            'paid': stats.paid,
            'unpaid': stats.unpaid,
            'overdue': stats.overdue,
            'total_amount': format_currency(stats.total_amount),
        },
    }


@router.get('/linkable')
def linkable_invoices(
    _: Principal = Depends(require_feature(Feature.SHIPMENTS)),
    db: Session = Depends(get_db),
):
    with service_errors('load invoices'):
        invoices = list_linkable_invoices(SqlInvoiceRepository(db))
    return {
        'invoices': [
            {'id': invoice.id, 'invoice_number': invoice.invoice_number, 'customer_name': invoice.customer_name}
            for invoice in invoices
        ]
    }


@router.get('/{invoice_id}')
def invoice_detail(
    invoice_id: int,
    _: Principal = Depends(invoice_access),
    db: Session = Depends(get_db),
):
    with service_errors('load invoice'):
        invoice = get_invoice(SqlInvoiceRepository(db), invoice_id=invoice_id)
    return {'invoice': serialize_invoice(invoice), 'total_display': format_currency(invoice.total)}


@router.post('/create', status_code=201)
async def invoice_create(
    request: Request,
    principal: Principal = Depends(invoice_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    payload = validate_form(InvoiceForm, _invoice_form_data(form))
    draft = InvoiceDraft(
        customer_name=payload.customer_name,
        customer_email=payload.customer_email,
        issue_date=payload.issue_date,
        due_date=payload.due_date,
        items=[item.model_dump() for item in payload.items],
        tax_percent=payload.tax_percent,
        extra_fee=payload.extra_fee,
    )
    with service_errors('create invoice'):
        invoice = create_invoice(SqlInvoiceRepository(db), data=draft, created_by=principal.id)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='INVOICE_CREATED',
            entity_type='invoice',
            entity_id=invoice.id,
            ip=get_client_ip(request),
            metadata={'invoice_number': invoice.invoice_number, 'total': str(invoice.total)},
        )
        db.commit()
    return {'invoice': serialize_invoice(invoice)}


@router.post('/{invoice_id}/update')
async def invoice_update(
    invoice_id: int,
    request: Request,
    principal: Principal = Depends(invoice_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    payload = validate_form(InvoiceUpdateForm, _invoice_form_data(form))
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail='No changes submitted')
    with service_errors('update invoice'):
        invoice = update_invoice(SqlInvoiceRepository(db), invoice_id=invoice_id, changes=changes)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='INVOICE_UPDATED',
            entity_type='invoice',
            entity_id=invoice.id,
            ip=get_client_ip(request),
            metadata={'fields': sorted(changes)},
        )
        db.commit()
    return {'invoice': serialize_invoice(invoice)}


@router.post('/{invoice_id}/status')
async def invoice_status(
    invoice_id: int,
    request: Request,
    principal: Principal = Depends(invoice_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    payload = validate_form(InvoiceStatusForm, form_values(form, ('status',)))
    with service_errors('update invoice status'):
        invoice = set_invoice_status(SqlInvoiceRepository(db), invoice_id=invoice_id, status=payload.status)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='INVOICE_STATUS_UPDATED',
            entity_type='invoice',
            entity_id=invoice.id,
            ip=get_client_ip(request),
            metadata={'status': invoice.status.value},
        )
        db.commit()
    return {'invoice': serialize_invoice(invoice)}


@router.post('/{invoice_id}/delete')
async def invoice_delete(
    invoice_id: int,
    request: Request,
    principal: Principal = Depends(invoice_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    require_confirmation(form)
    with service_errors('delete invoice'):
        delete_invoice(SqlInvoiceRepository(db), invoice_id=invoice_id)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='INVOICE_DELETED',
            entity_type='invoice',
            entity_id=invoice_id,
            ip=get_client_ip(request),
        )
        db.commit()
    return {'deleted': invoice_id}
