from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from trade_portal.auth import Feature, Principal, require_feature, require_role
from trade_portal.db import get_db
from trade_portal.dependencies import (
    form_values,
    get_client_ip,
    get_storage,
    query_date,
    require_confirmation,
    result_payload,
    service_errors,
    validate_form,
)
from trade_portal.models import ShipmentStatus, UserRole
from trade_portal.schemas import ShipmentForm, ShipmentStatusForm, ShipmentUpdateForm
from trade_portal.security.csrf import verify_csrf
from trade_portal.services.audit_service import log_audit
from trade_portal.services.object_storage import ObjectStorage, UploadedFile
from trade_portal.services.repositories import ShipmentFilters
from trade_portal.services.shipment_service import (
    ShipmentDraft,
    advance_shipment,
    create_shipment,
    delete_shipment,
    get_shipment,
    list_shipments,
    remove_document,
    serialize_shipment,
    set_shipment_status,
    shipment_stats,
    update_shipment,
    upload_documents,
)
from trade_portal.services.sql_repositories import SqlInvoiceRepository, SqlShipmentRepository

router = APIRouter(prefix='/shipments', tags=['shipments'])
shipment_access = require_feature(Feature.SHIPMENTS)
admin_access = require_role(UserRole.ADMIN)

SHIPMENT_FIELDS = (
    'invoice_id',
    'vessel_name',
    'departure_port',
    'arrival_port',
    'departure_date',
    'arrival_date',
    'quantity',
)


async def _read_uploads(form) -> list[UploadedFile]:
    uploads = []
    for entry in form.getlist('files'):
        if not isinstance(entry, UploadFile) or not entry.filename:
            continue
        uploads.append(
            UploadedFile(
                filename=entry.filename,
                content=await entry.read(),
                content_type=entry.content_type or 'application/octet-stream',
            )
        )
    return uploads


@router.get('')
def shipments_index(
    request: Request,
    _: Principal = Depends(shipment_access),
    db: Session = Depends(get_db),
):
    status_raw = request.query_params.get('status', '').strip()
    try:
        status = ShipmentStatus(status_raw) if status_raw else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail='Invalid status filter') from exc
    invoice_raw = request.query_params.get('invoice_id', '').strip()
    filters = ShipmentFilters(
        status=status,
        vessel=request.query_params.get('vessel', '').strip() or None,
        date_from=query_date(request, 'from'),
        date_to=query_date(request, 'to'),
        invoice_id=int(invoice_raw) if invoice_raw.isdigit() else None,
    )
    with service_errors('load shipments'):
        shipments = list_shipments(SqlShipmentRepository(db), filters=filters)
    stats = shipment_stats(shipments)
    return {
        'shipments': [serialize_shipment(shipment) for shipment in shipments],
        'stats': {
            'total': stats.total,
            'scheduled': stats.scheduled,
            'on_transit': stats.on_transit,
            'arrived': stats.arrived,
            'completed': stats.completed,
            'total_quantity': str(stats.total_quantity),
        },
    }


@router.get('/{shipment_id}')
def shipment_detail(
    shipment_id: int,
    _: Principal = Depends(shipment_access),
    db: Session = Depends(get_db),
):
    with service_errors('load shipment'):
        shipment = get_shipment(SqlShipmentRepository(db), shipment_id=shipment_id)
    return {'shipment': serialize_shipment(shipment)}


@router.post('/create', status_code=201)
async def shipment_create(
    request: Request,
    principal: Principal = Depends(shipment_access),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    payload = validate_form(ShipmentForm, form_values(form, SHIPMENT_FIELDS))
    draft = ShipmentDraft(**payload.model_dump())
    uploads = await _read_uploads(form)
    repo = SqlShipmentRepository(db)
    with service_errors('create shipment'):
        shipment = create_shipment(repo, data=draft, created_by=principal.id)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='SHIPMENT_CREATED',
            entity_type='shipment',
            entity_id=shipment.id,
            ip=get_client_ip(request),
            metadata={'shipment_code': shipment.shipment_code, 'invoice_id': shipment.invoice_id},
        )
        db.commit()
    # Documents are attached after the shipment row is committed.
    with service_errors('upload shipment documents'):
        result = upload_documents(repo, storage, shipment_id=shipment.id, uploads=uploads)
        db.commit()
    return result_payload('shipment', serialize_shipment(result.value), result)


@router.post('/{shipment_id}/update')
async def shipment_update(
    shipment_id: int,
    request: Request,
    principal: Principal = Depends(shipment_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    payload = validate_form(ShipmentUpdateForm, form_values(form, SHIPMENT_FIELDS))
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail='No changes submitted')
    with service_errors('update shipment'):
        shipment = update_shipment(SqlShipmentRepository(db), shipment_id=shipment_id, changes=changes)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='SHIPMENT_UPDATED',
            entity_type='shipment',
            entity_id=shipment.id,
            ip=get_client_ip(request),
            metadata={'fields': sorted(changes)},
        )
        db.commit()
    return {'shipment': serialize_shipment(shipment)}


def _status_audit(db: Session, request: Request, principal: Principal, result) -> None:
    shipment = result.value
    log_audit(
        db,
        actor_user_id=principal.id,
        action='SHIPMENT_STATUS_UPDATED',
        entity_type='shipment',
        entity_id=shipment.id,
        ip=get_client_ip(request),
        metadata={'status': shipment.status.value, 'warnings': list(result.warnings)},
    )


@router.post('/{shipment_id}/status')
async def shipment_status(
    shipment_id: int,
    request: Request,
    principal: Principal = Depends(shipment_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    payload = validate_form(ShipmentStatusForm, form_values(form, ('status',)))
    with service_errors('update shipment status'):
        result = set_shipment_status(
            SqlShipmentRepository(db),
            SqlInvoiceRepository(db),
            shipment_id=shipment_id,
            status=payload.status,
        )
        _status_audit(db, request, principal, result)
        db.commit()
    return result_payload('shipment', serialize_shipment(result.value), result)


@router.post('/{shipment_id}/advance')
async def shipment_advance(
    shipment_id: int,
    request: Request,
    principal: Principal = Depends(shipment_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    with service_errors('update shipment status'):
        result = advance_shipment(SqlShipmentRepository(db), SqlInvoiceRepository(db), shipment_id=shipment_id)
        _status_audit(db, request, principal, result)
        db.commit()
    return result_payload('shipment', serialize_shipment(result.value), result)


@router.post('/{shipment_id}/documents')
async def shipment_documents_upload(
    shipment_id: int,
    request: Request,
    principal: Principal = Depends(shipment_access),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    uploads = await _read_uploads(form)
    if not uploads:
        raise HTTPException(status_code=400, detail='No files selected')
    with service_errors('upload shipment documents'):
        result = upload_documents(SqlShipmentRepository(db), storage, shipment_id=shipment_id, uploads=uploads)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='SHIPMENT_DOCUMENTS_UPLOADED',
            entity_type='shipment',
            entity_id=shipment_id,
            ip=get_client_ip(request),
            metadata={'files': [upload.filename for upload in uploads], 'warnings': list(result.warnings)},
        )
        db.commit()
    return result_payload('shipment', serialize_shipment(result.value), result)


@router.post('/{shipment_id}/documents/remove')
async def shipment_document_remove(
    shipment_id: int,
    request: Request,
    principal: Principal = Depends(shipment_access),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    require_confirmation(form)
    url = str(form.get('url', '')).strip()
    if not url:
        raise HTTPException(status_code=400, detail='Document URL is required')
    with service_errors('remove shipment document'):
        result = remove_document(SqlShipmentRepository(db), storage, shipment_id=shipment_id, url=url)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='SHIPMENT_DOCUMENT_REMOVED',
            entity_type='shipment',
            entity_id=shipment_id,
            ip=get_client_ip(request),
            metadata={'url': url, 'warnings': list(result.warnings)},
        )
        db.commit()
    return result_payload('shipment', serialize_shipment(result.value), result)


@router.post('/{shipment_id}/delete')
async def shipment_delete(
    shipment_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    require_confirmation(form)
    with service_errors('delete shipment'):
        delete_shipment(SqlShipmentRepository(db), shipment_id=shipment_id)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='SHIPMENT_DELETED',
            entity_type='shipment',
            entity_id=shipment_id,
            ip=get_client_ip(request),
        )
        db.commit()
    return {'deleted': shipment_id}
