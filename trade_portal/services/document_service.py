from __future__ import annotations

import logging
import secrets
import time
from pathlib import PurePosixPath

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from trade_portal.config import settings
from trade_portal.models import Document, DocumentCategory
from trade_portal.services.errors import NotFoundError, StorageError
from trade_portal.services.object_storage import ObjectStorage, UploadedFile
from trade_portal.services.results import OperationResult

logger = logging.getLogger(__name__)

MAX_FILE_BYTES = 25 * 1024 * 1024


def parse_document_category(raw: str) -> DocumentCategory:
    try:
        return DocumentCategory(raw)
    except ValueError as exc:
        raise ValueError(f'Unknown document category: {raw}') from exc


def _object_path(uploaded_by: int, filename: str) -> str:
    suffix = PurePosixPath(filename).suffix.lstrip('.') or 'bin'
    return f'{uploaded_by}/{int(time.time() * 1000)}-{secrets.token_hex(6)}.{suffix}'


def split_tags(raw: str | None) -> list[str]:
    if not raw:
        return []
    seen: list[str] = []
    for token in raw.split(','):
        tag = token.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def upload_company_document(
    db: Session,
    storage: ObjectStorage,
    *,
    title: str,
    description: str | None,
    category: DocumentCategory,
    is_public: bool,
    tags: list[str],
    upload: UploadedFile,
    uploaded_by: int,
) -> Document:
    clean_title = title.strip() or upload.filename
    if not upload.content:
        raise ValueError('File is empty')
    if len(upload.content) > MAX_FILE_BYTES:
        raise ValueError('File is larger than 25 MB')

    bucket = settings.company_documents_bucket
    path = storage.upload(
        bucket=bucket,
        path=_object_path(uploaded_by, upload.filename),
        content=upload.content,
        content_type=upload.content_type,
    )
    document = Document(
        title=clean_title,
        description=description.strip() if description and description.strip() else None,
        file_path=path,
        file_size=len(upload.content),
        file_type=upload.content_type or 'application/octet-stream',
        category=DocumentCategory(category),
        uploaded_by=uploaded_by,
        is_public=is_public,
        tags=tags,
    )
    db.add(document)
    try:
        db.flush()
    except SQLAlchemyError:
        try:
            storage.remove(bucket=bucket, paths=[path])
        except StorageError as exc:
            logger.warning('Orphaned object %s/%s could not be removed: %s', bucket, path, exc)
        raise
    return document


def list_documents(
    db: Session,
    *,
    viewer_id: int,
    is_admin: bool,
    category: DocumentCategory | None = None,
    search: str | None = None,
) -> list[Document]:
    conditions = []
    if not is_admin:
        conditions.append(or_(Document.is_public.is_(True), Document.uploaded_by == viewer_id))
    if category is not None:
        conditions.append(Document.category == category)
    if search:
        pattern = f'%{search.strip()}%'
        conditions.append(or_(Document.title.ilike(pattern), Document.description.ilike(pattern)))

    query = select(Document).order_by(Document.created_at.desc(), Document.id.desc())
    if conditions:
        query = query.where(and_(*conditions))
    return db.execute(query).scalars().all()


def document_counts(db: Session) -> dict[DocumentCategory, int]:
    counts = {category: 0 for category in DocumentCategory}
    rows = db.execute(select(Document.category, func.count(Document.id)).group_by(Document.category)).all()
    for category, count in rows:
        counts[DocumentCategory(category)] = count
    return counts


def delete_document(
    db: Session,
    storage: ObjectStorage,
    *,
    document_id: int,
    actor_id: int,
    is_admin: bool,
) -> OperationResult[Document]:
    document = db.execute(select(Document).where(Document.id == document_id)).scalar_one_or_none()
    if not document:
        raise NotFoundError('Document not found')
    if not is_admin and document.uploaded_by != actor_id:
        raise PermissionError('Only the uploader or an admin can delete this document')

    db.delete(document)
    db.flush()

    result: OperationResult[Document] = OperationResult(value=document)
    try:
        storage.remove(bucket=settings.company_documents_bucket, paths=[document.file_path])
    except Exception as exc:
        logger.warning('Stored object %s for document %s was not deleted: %s', document.file_path, document_id, exc)
        result = result.with_warning(f'Stored file could not be deleted: {exc}')
    return result


def serialize_document(document: Document, storage: ObjectStorage) -> dict:
    return {
        'id': document.id,
        'title': document.title,
        'description': document.description,
        'category': DocumentCategory(document.category).value,
        'file_type': document.file_type,
        'file_size': document.file_size,
        'is_public': document.is_public,
        'tags': list(document.tags or []),
        'uploaded_by': document.uploaded_by,
        'url': storage.public_url(bucket=settings.company_documents_bucket, path=document.file_path),
        'created_at': document.created_at.isoformat() if document.created_at else None,
    }
