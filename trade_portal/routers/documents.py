from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from trade_portal.auth import Feature, Principal, is_admin_role, require_feature
from trade_portal.db import get_db
from trade_portal.dependencies import (
    form_values,
    get_client_ip,
    get_storage,
    require_confirmation,
    result_payload,
    service_errors,
    validate_form,
)
from trade_portal.models import DocumentCategory
from trade_portal.schemas import DocumentForm
from trade_portal.security.csrf import verify_csrf
from trade_portal.services.audit_service import log_audit
from trade_portal.services.document_service import (
    delete_document,
    list_documents,
    serialize_document,
    split_tags,
    upload_company_document,
)
from trade_portal.services.object_storage import ObjectStorage, UploadedFile

router = APIRouter(prefix='/documents', tags=['documents'])
document_access = require_feature(Feature.DOCUMENTS)

BOOLEAN_TRUE = {'1', 'true', 'yes', 'on'}


@router.get('')
def documents_index(
    request: Request,
    principal: Principal = Depends(document_access),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    category_raw = request.query_params.get('category', '').strip()
    try:
        category = DocumentCategory(category_raw) if category_raw else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail='Invalid category filter') from exc
    with service_errors('load documents'):
        documents = list_documents(
            db,
            viewer_id=principal.id,
            is_admin=is_admin_role(principal.role),
            category=category,
            search=request.query_params.get('search', '').strip() or None,
        )
    return {'documents': [serialize_document(document, storage) for document in documents]}


@router.post('/upload', status_code=201)
async def document_upload(
    request: Request,
    principal: Principal = Depends(document_access),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    data = form_values(form, ('title', 'description', 'category', 'tags'))
    data['is_public'] = str(form.get('is_public', '')).strip().lower() in BOOLEAN_TRUE
    payload = validate_form(DocumentForm, data)

    entry = form.get('file')
    if not isinstance(entry, UploadFile) or not entry.filename:
        raise HTTPException(status_code=400, detail='No file selected')
    upload = UploadedFile(
        filename=entry.filename,
        content=await entry.read(),
        content_type=entry.content_type or 'application/octet-stream',
    )

    with service_errors('upload document'):
        document = upload_company_document(
            db,
            storage,
            title=payload.title,
            description=payload.description,
            category=payload.category,
            is_public=payload.is_public,
            tags=split_tags(payload.tags),
            upload=upload,
            uploaded_by=principal.id,
        )
        log_audit(
            db,
            actor_user_id=principal.id,
            action='DOCUMENT_UPLOADED',
            entity_type='document',
            entity_id=document.id,
            ip=get_client_ip(request),
            metadata={'title': document.title, 'file_size': document.file_size},
        )
        db.commit()
    return {'document': serialize_document(document, storage)}


@router.post('/{document_id}/delete')
async def document_delete(
    document_id: int,
    request: Request,
    principal: Principal = Depends(document_access),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    require_confirmation(form)
    with service_errors('delete document'):
        result = delete_document(
            db,
            storage,
            document_id=document_id,
            actor_id=principal.id,
            is_admin=is_admin_role(principal.role),
        )
        log_audit(
            db,
            actor_user_id=principal.id,
            action='DOCUMENT_DELETED',
            entity_type='document',
            entity_id=document_id,
            ip=get_client_ip(request),
            metadata={'warnings': list(result.warnings)},
        )
        db.commit()
    return result_payload('deleted', {'id': document_id}, result)
