from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import PurePosixPath

from sqlalchemy.exc import SQLAlchemyError

from trade_portal.config import settings
from trade_portal.models import InvoiceStatus, Shipment, ShipmentStatus
from trade_portal.services.concurrency import run_with_retry
from trade_portal.services.errors import ConcurrencyConflict, NotFoundError, StorageError, TransitionError
from trade_portal.services.invoice_service import set_invoice_status
from trade_portal.services.numbering_service import SHIPMENT_PREFIX, current_year, next_sequence_number, year_prefix
from trade_portal.services.object_storage import ObjectStorage, UploadedFile, path_from_public_url
from trade_portal.services.repositories import InvoiceRepository, ShipmentFilters, ShipmentRepository
from trade_portal.services.results import OperationResult

logger = logging.getLogger(__name__)

PATCHABLE_FIELDS = {
    'invoice_id',
    'vessel_name',
    'departure_port',
    'arrival_port',
    'departure_date',
    'arrival_date',
    'quantity',
}


@dataclass(frozen=True)
class ShipmentDraft:
    vessel_name: str
    departure_port: str
    arrival_port: str
    departure_date: date
    quantity: Decimal
    invoice_id: int | None = None
    arrival_date: date | None = None


@dataclass(frozen=True)
class ShipmentStats:
    total: int
    scheduled: int
    on_transit: int
    arrived: int
    completed: int
    total_quantity: Decimal


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def parse_shipment_status(raw: str) -> ShipmentStatus:
    try:
        return ShipmentStatus(raw)
    except ValueError as exc:
        raise ValueError(f'Unknown shipment status: {raw}') from exc


def next_status(status: ShipmentStatus) -> ShipmentStatus | None:
    match status:
        case ShipmentStatus.SCHEDULED:
            return ShipmentStatus.ON_TRANSIT
        case ShipmentStatus.ON_TRANSIT:
            return ShipmentStatus.ARRIVED
        case ShipmentStatus.ARRIVED:
            return ShipmentStatus.COMPLETED
        case ShipmentStatus.COMPLETED:
            return None
        case _:
            raise ValueError(f'Unknown shipment status: {status}')


def can_advance(status: ShipmentStatus) -> bool:
    return next_status(status) is not None


def advance_status(shipment: Shipment) -> ShipmentStatus:
    successor = next_status(shipment.status)
    if successor is None:
        raise TransitionError(f'Shipment {shipment.shipment_code} is already {shipment.status.value}')
    return successor


def stamps_arrival(status: ShipmentStatus) -> bool:
    match status:
        case ShipmentStatus.ARRIVED | ShipmentStatus.COMPLETED:
            return True
        case ShipmentStatus.SCHEDULED | ShipmentStatus.ON_TRANSIT:
            return False
        case _:
            raise ValueError(f'Unknown shipment status: {status}')


def generate_shipment_code(repo: ShipmentRepository, *, year: int | None = None) -> str:
    year = year or current_year()
    latest = repo.latest_code(year_prefix(SHIPMENT_PREFIX, year))
    return next_sequence_number(SHIPMENT_PREFIX, latest, year)


def _validate_draft(data: ShipmentDraft) -> None:
    for field_name, label in (
        ('vessel_name', 'Vessel name'),
        ('departure_port', 'Departure port'),
        ('arrival_port', 'Arrival port'),
    ):
        if not str(getattr(data, field_name) or '').strip():
            raise ValueError(f'{label} is required')
    if Decimal(data.quantity) <= 0:
        raise ValueError('Quantity must be greater than 0')


def create_shipment(
    repo: ShipmentRepository,
    *,
    data: ShipmentDraft,
    created_by: int | None,
    year: int | None = None,
) -> Shipment:
    _validate_draft(data)
    values = {
        'invoice_id': data.invoice_id,
        'vessel_name': data.vessel_name.strip(),
        'departure_port': data.departure_port.strip(),
        'arrival_port': data.arrival_port.strip(),
        'departure_date': data.departure_date,
        'arrival_date': data.arrival_date,
        'quantity': Decimal(data.quantity),
        'status': ShipmentStatus.SCHEDULED,
        'documents': [],
        'created_by': created_by,
    }

    def _insert() -> Shipment:
        code = generate_shipment_code(repo, year=year)
        return repo.insert({**values, 'shipment_code': code})

    return run_with_retry(_insert, label='Shipment numbering')


def _require_shipment(repo: ShipmentRepository, shipment_id: int) -> Shipment:
    shipment = repo.get(shipment_id)
    if shipment is None:
        raise NotFoundError('Shipment not found')
    return shipment


def get_shipment(repo: ShipmentRepository, *, shipment_id: int) -> Shipment:
    return _require_shipment(repo, shipment_id)


def update_shipment(repo: ShipmentRepository, *, shipment_id: int, changes: dict) -> Shipment:
    unknown = set(changes) - PATCHABLE_FIELDS
    if unknown:
        raise ValueError(f'Cannot update shipment fields: {", ".join(sorted(unknown))}')
    if 'quantity' in changes and Decimal(changes['quantity']) <= 0:
        raise ValueError('Quantity must be greater than 0')
    return repo.update(shipment_id, dict(changes))


def set_shipment_status(
    shipments: ShipmentRepository,
    invoices: InvoiceRepository,
    *,
    shipment_id: int,
    status: ShipmentStatus,
    today: date | None = None,
) -> OperationResult[Shipment]:
    """
    Move a shipment one step along Scheduled -> On Transit -> Arrived -> Completed.

    Arrived and Completed stamp the arrival date when none is recorded.
    Completing a shipment marks its linked invoice paid; if that write
    fails the shipment stays Completed and the failure comes back as a
    warning on the result.
    """
    status = ShipmentStatus(status)
    today = today or date.today()

    def _apply() -> Shipment:
        shipment = _require_shipment(shipments, shipment_id)
        expected = next_status(shipment.status)
        if expected is None:
            raise TransitionError(f'Shipment {shipment.shipment_code} is already {shipment.status.value}')
        if status != expected:
            raise TransitionError(
                f'Shipment {shipment.shipment_code} can only move from {shipment.status.value} to {expected.value}'
            )
        values: dict = {'status': status}
        if stamps_arrival(status) and shipment.arrival_date is None:
            values['arrival_date'] = today
        return shipments.update(shipment_id, values, expected_version=shipment.version)

    updated = run_with_retry(_apply, label='Shipment status update')
    result: OperationResult[Shipment] = OperationResult(value=updated)

    if status == ShipmentStatus.COMPLETED and updated.invoice_id is not None:
        try:
            set_invoice_status(invoices, invoice_id=updated.invoice_id, status=InvoiceStatus.PAID)
        except Exception as exc:
            logger.warning(
                'Shipment %s completed but invoice %s could not be marked paid: %s',
                updated.shipment_code,
                updated.invoice_id,
                exc,
            )
            result = result.with_warning(f'Linked invoice could not be marked paid: {exc}')
    return result


def advance_shipment(
    shipments: ShipmentRepository,
    invoices: InvoiceRepository,
    *,
    shipment_id: int,
    today: date | None = None,
) -> OperationResult[Shipment]:
    shipment = _require_shipment(shipments, shipment_id)
    return set_shipment_status(
        shipments,
        invoices,
        shipment_id=shipment_id,
        status=advance_status(shipment),
        today=today,
    )


def add_document(
    repo: ShipmentRepository,
    *,
    shipment_id: int,
    name: str,
    url: str,
    content_type: str,
) -> Shipment:
    if not name.strip() or not url.strip():
        raise ValueError('Document name and URL are required')
    entry = {
        'name': name.strip(),
        'url': url.strip(),
        'type': content_type,
        'uploaded_at': _now().isoformat(),
    }

    def _append() -> Shipment:
        shipment = _require_shipment(repo, shipment_id)
        documents = [*(shipment.documents or []), entry]
        return repo.update(shipment_id, {'documents': documents}, expected_version=shipment.version)

    return run_with_retry(_append, label='Shipment document add')


def document_object_path(shipment_id: int, filename: str) -> str:
    suffix = PurePosixPath(filename).suffix.lstrip('.') or 'bin'
    return f'{shipment_id}/{int(time.time() * 1000)}-{secrets.token_hex(6)}.{suffix}'


def upload_document(
    repo: ShipmentRepository,
    storage: ObjectStorage,
    *,
    shipment_id: int,
    upload: UploadedFile,
) -> Shipment:
    _require_shipment(repo, shipment_id)
    bucket = settings.shipment_documents_bucket
    path = storage.upload(
        bucket=bucket,
        path=document_object_path(shipment_id, upload.filename),
        content=upload.content,
        content_type=upload.content_type,
    )
    try:
        return add_document(
            repo,
            shipment_id=shipment_id,
            name=upload.filename,
            url=storage.public_url(bucket=bucket, path=path),
            content_type=upload.content_type,
        )
    except (ValueError, ConcurrencyConflict, SQLAlchemyError):
        _discard_object(storage, bucket=bucket, path=path)
        raise


def _discard_object(storage: ObjectStorage, *, bucket: str, path: str) -> None:
    try:
        storage.remove(bucket=bucket, paths=[path])
    except StorageError as exc:
        logger.warning('Orphaned object %s/%s could not be removed: %s', bucket, path, exc)


def upload_documents(
    repo: ShipmentRepository,
    storage: ObjectStorage,
    *,
    shipment_id: int,
    uploads: list[UploadedFile],
) -> OperationResult[Shipment]:
    """Upload files one at a time; a failed file is reported and the rest still go through."""
    shipment = _require_shipment(repo, shipment_id)
    warnings: list[str] = []
    for upload in uploads:
        try:
            shipment = upload_document(repo, storage, shipment_id=shipment_id, upload=upload)
        except (StorageError, ValueError, ConcurrencyConflict, SQLAlchemyError) as exc:
            logger.warning('Upload of %s to shipment %s failed: %s', upload.filename, shipment_id, exc)
            warnings.append(f'{upload.filename}: {exc}')
    return OperationResult(value=shipment, warnings=tuple(warnings))


def remove_document(
    repo: ShipmentRepository,
    storage: ObjectStorage,
    *,
    shipment_id: int,
    url: str,
) -> OperationResult[Shipment]:
    def _filter() -> Shipment:
        shipment = _require_shipment(repo, shipment_id)
        documents = list(shipment.documents or [])
        remaining = [doc for doc in documents if doc.get('url') != url]
        if len(remaining) == len(documents):
            raise NotFoundError('Document not found on shipment')
        return repo.update(shipment_id, {'documents': remaining}, expected_version=shipment.version)

    updated = run_with_retry(_filter, label='Shipment document removal')
    result: OperationResult[Shipment] = OperationResult(value=updated)

    bucket = settings.shipment_documents_bucket
    object_path = path_from_public_url(url, bucket=bucket)
    if object_path is None:
        return result.with_warning('Document URL does not point into storage; nothing was deleted')
    try:
        storage.remove(bucket=bucket, paths=[object_path])
    except Exception as exc:
        logger.warning('Stored object %s for shipment %s was not deleted: %s', object_path, shipment_id, exc)
        result = result.with_warning(f'Stored file could not be deleted: {exc}')
    return result


def delete_shipment(repo: ShipmentRepository, *, shipment_id: int) -> None:
    repo.delete(shipment_id)


def list_shipments(repo: ShipmentRepository, *, filters: ShipmentFilters | None = None) -> list[Shipment]:
    return repo.list(filters or ShipmentFilters())


def shipment_stats(shipments: list[Shipment]) -> ShipmentStats:
    counts = {status: 0 for status in ShipmentStatus}
    for shipment in shipments:
        match shipment.status:
            case ShipmentStatus.SCHEDULED | ShipmentStatus.ON_TRANSIT | ShipmentStatus.ARRIVED | ShipmentStatus.COMPLETED:
                counts[shipment.status] += 1
            case _:
                raise ValueError(f'Unknown shipment status: {shipment.status}')
    return ShipmentStats(
        total=len(shipments),
        scheduled=counts[ShipmentStatus.SCHEDULED],
        on_transit=counts[ShipmentStatus.ON_TRANSIT],
        arrived=counts[ShipmentStatus.ARRIVED],
        completed=counts[ShipmentStatus.COMPLETED],
        total_quantity=sum((Decimal(shipment.quantity or 0) for shipment in shipments), Decimal('0')),
    )


def serialize_shipment(shipment: Shipment) -> dict:
    return {
        'id': shipment.id,
        'shipment_code': shipment.shipment_code,
        'invoice_id': shipment.invoice_id,
        'vessel_name': shipment.vessel_name,
        'departure_port': shipment.departure_port,
        'arrival_port': shipment.arrival_port,
        'departure_date': shipment.departure_date.isoformat() if shipment.departure_date else None,
        'arrival_date': shipment.arrival_date.isoformat() if shipment.arrival_date else None,
        'quantity': str(shipment.quantity),
        'status': shipment.status.value,
        'can_advance': can_advance(shipment.status),
        'documents': list(shipment.documents or []),
        'created_by': shipment.created_by,
    }
