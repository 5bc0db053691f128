from __future__ import annotations

import unittest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from tests.fakes import FakeInvoiceRepository, FakeShipmentRepository, MemoryObjectStorage, UnavailableInvoiceRepository
from trade_portal.config import settings
from trade_portal.models import InvoiceStatus, ShipmentStatus
from trade_portal.services.errors import ConcurrencyConflict, NotFoundError, TransitionError
from trade_portal.services.invoice_service import InvoiceDraft, create_invoice
from trade_portal.services.object_storage import UploadedFile
from trade_portal.services.shipment_service import (
    ShipmentDraft,
    add_document,
    advance_shipment,
    advance_status,
    can_advance,
    create_shipment,
    generate_shipment_code,
    remove_document,
    set_shipment_status,
    shipment_stats,
    update_shipment,
    upload_documents,
)

BUCKET = settings.shipment_documents_bucket


class ContendedShipmentRepository(FakeShipmentRepository):
    """Loses the compare-and-swap on the next few document writes."""

    def __init__(self, conflicts: int) -> None:
        super().__init__()
        self.conflicts = conflicts

    def update(self, row_id: int, values: dict, *, expected_version: int | None = None):
        if 'documents' in values and self.conflicts > 0:
            self.conflicts -= 1
            raise ConcurrencyConflict(f'Shipment {row_id} changed since it was read')
        return super().update(row_id, values, expected_version=expected_version)


def _draft(**overrides) -> ShipmentDraft:
    values = {
        'vessel_name': 'MV Nusantara',
        'departure_port': 'Kendari',
        'arrival_port': 'Surabaya',
        'departure_date': date(2025, 4, 2),
        'quantity': Decimal('7500'),
    }
    values.update(overrides)
    return ShipmentDraft(**values)


def _invoice(repo: FakeInvoiceRepository):
    return create_invoice(
        repo,
        data=InvoiceDraft(
            customer_name='PT Sumber Mineral',
            issue_date=date(2025, 4, 1),
            due_date=date(2025, 4, 30),
            items=[{'description': 'Nickel ore', 'quantity': '1', 'unit_price': '100'}],
        ),
        created_by=1,
        year=2025,
    )


class ShipmentStatusRuleTests(unittest.TestCase):
    def test_advance_walks_the_sequence_and_stops_at_completed(self) -> None:
        shipment = SimpleNamespace(shipment_code='SHIP-2025-0001', status=ShipmentStatus.SCHEDULED)
        seen = []
        for _ in range(3):
            shipment.status = advance_status(shipment)
            seen.append(shipment.status)

        self.assertEqual(seen, [ShipmentStatus.ON_TRANSIT, ShipmentStatus.ARRIVED, ShipmentStatus.COMPLETED])
        self.assertFalse(can_advance(shipment.status))
        with self.assertRaises(TransitionError):
            advance_status(shipment)


class ShipmentLifecycleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.shipments = FakeShipmentRepository()
        self.invoices = FakeInvoiceRepository()

    def test_create_assigns_code_scheduled_and_empty_documents(self) -> None:
        shipment = create_shipment(self.shipments, data=_draft(), created_by=3, year=2025)

        self.assertEqual(shipment.shipment_code, 'SHIP-2025-0001')
        self.assertEqual(shipment.status, ShipmentStatus.SCHEDULED)
        self.assertEqual(shipment.documents, [])
        self.assertEqual(generate_shipment_code(self.shipments, year=2025), 'SHIP-2025-0002')

    def test_create_rejects_non_positive_quantity(self) -> None:
        with self.assertRaises(ValueError):
            create_shipment(self.shipments, data=_draft(quantity=Decimal('0')), created_by=1, year=2025)

    def test_update_rejects_non_positive_quantity(self) -> None:
        shipment = create_shipment(self.shipments, data=_draft(), created_by=1, year=2025)

        with self.assertRaises(ValueError):
            update_shipment(self.shipments, shipment_id=shipment.id, changes={'quantity': Decimal('-1')})

    def test_arrival_date_is_stamped_once(self) -> None:
        shipment = create_shipment(self.shipments, data=_draft(), created_by=1, year=2025)
        advance_shipment(self.shipments, self.invoices, shipment_id=shipment.id, today=date(2025, 4, 5))

        advance_shipment(self.shipments, self.invoices, shipment_id=shipment.id, today=date(2025, 4, 9))
        result = advance_shipment(self.shipments, self.invoices, shipment_id=shipment.id, today=date(2025, 4, 12))

        self.assertEqual(result.value.status, ShipmentStatus.COMPLETED)
        self.assertEqual(result.value.arrival_date, date(2025, 4, 9))

    def test_recorded_arrival_date_is_kept(self) -> None:
        shipment = create_shipment(
            self.shipments, data=_draft(arrival_date=date(2025, 4, 8)), created_by=1, year=2025
        )
        self.shipments.update(shipment.id, {'status': ShipmentStatus.ON_TRANSIT})

        result = set_shipment_status(
            self.shipments,
            self.invoices,
            shipment_id=shipment.id,
            status=ShipmentStatus.ARRIVED,
            today=date(2025, 4, 10),
        )

        self.assertEqual(result.value.arrival_date, date(2025, 4, 8))

    def test_status_cannot_skip_or_go_backwards(self) -> None:
        shipment = create_shipment(self.shipments, data=_draft(), created_by=1, year=2025)

        with self.assertRaises(TransitionError):
            set_shipment_status(
                self.shipments, self.invoices, shipment_id=shipment.id, status=ShipmentStatus.COMPLETED
            )
        with self.assertRaises(TransitionError):
            set_shipment_status(
                self.shipments, self.invoices, shipment_id=shipment.id, status=ShipmentStatus.SCHEDULED
            )
        self.assertEqual(self.shipments.get(shipment.id).status, ShipmentStatus.SCHEDULED)

    def test_completing_marks_linked_invoice_paid(self) -> None:
        invoice = _invoice(self.invoices)
        shipment = create_shipment(self.shipments, data=_draft(invoice_id=invoice.id), created_by=1, year=2025)
        self.shipments.update(shipment.id, {'status': ShipmentStatus.ARRIVED})

        result = advance_shipment(self.shipments, self.invoices, shipment_id=shipment.id)

        self.assertTrue(result.clean)
        self.assertEqual(result.value.status, ShipmentStatus.COMPLETED)
        self.assertEqual(self.invoices.get(invoice.id).status, InvoiceStatus.PAID)

    def test_completion_survives_invoice_update_failure(self) -> None:
        invoices = UnavailableInvoiceRepository()
        invoice = _invoice(invoices)
        shipment = create_shipment(self.shipments, data=_draft(invoice_id=invoice.id), created_by=1, year=2025)
        self.shipments.update(shipment.id, {'status': ShipmentStatus.ARRIVED})

        with self.assertLogs('trade_portal.services.shipment_service', level='WARNING'):
            result = advance_shipment(self.shipments, invoices, shipment_id=shipment.id)

        self.assertEqual(self.shipments.get(shipment.id).status, ShipmentStatus.COMPLETED)
        self.assertEqual(invoices.get(invoice.id).status, InvoiceStatus.UNPAID)
        self.assertEqual(len(result.warnings), 1)
        self.assertIn('invoice store unavailable', result.warnings[0])

    def test_completion_without_invoice_has_no_side_effect(self) -> None:
        shipment = create_shipment(self.shipments, data=_draft(), created_by=1, year=2025)
        self.shipments.update(shipment.id, {'status': ShipmentStatus.ARRIVED})

        result = advance_shipment(self.shipments, self.invoices, shipment_id=shipment.id)

        self.assertTrue(result.clean)

    def test_stats_count_each_status(self) -> None:
        for _ in range(2):
            create_shipment(self.shipments, data=_draft(), created_by=1, year=2025)
        done = create_shipment(self.shipments, data=_draft(quantity=Decimal('500')), created_by=1, year=2025)
        self.shipments.update(done.id, {'status': ShipmentStatus.COMPLETED})

        stats = shipment_stats(list(self.shipments.rows.values()))

        self.assertEqual((stats.total, stats.scheduled, stats.completed), (3, 2, 1))
        self.assertEqual(stats.total_quantity, Decimal('15500'))


class ShipmentDocumentTests(unittest.TestCase):
    def setUp(self) -> None:
        self.repo = FakeShipmentRepository()
        self.storage = MemoryObjectStorage(rejected_content={b'corrupt'})
        self.shipment = create_shipment(self.repo, data=_draft(), created_by=1, year=2025)

    def test_add_document_appends_entry_with_timestamp(self) -> None:
        updated = add_document(
            self.repo,
            shipment_id=self.shipment.id,
            name='bill-of-lading.pdf',
            url='https://files.example.test/bl.pdf',
            content_type='application/pdf',
        )

        self.assertEqual(len(updated.documents), 1)
        entry = updated.documents[0]
        self.assertEqual(entry['name'], 'bill-of-lading.pdf')
        self.assertEqual(entry['type'], 'application/pdf')
        self.assertIn('uploaded_at', entry)

    def test_concurrent_appends_are_both_kept(self) -> None:
        add_document(self.repo, shipment_id=self.shipment.id, name='a.pdf', url='https://x/a.pdf', content_type='application/pdf')

        def concurrent_append(row) -> None:
            row.documents = [*row.documents, {'name': 'b.pdf', 'url': 'https://x/b.pdf', 'type': 'application/pdf'}]
            row.version += 1

        self.repo.before_update = concurrent_append
        updated = add_document(
            self.repo, shipment_id=self.shipment.id, name='c.pdf', url='https://x/c.pdf', content_type='application/pdf'
        )

        self.assertEqual([doc['name'] for doc in updated.documents], ['a.pdf', 'b.pdf', 'c.pdf'])

    def test_failed_upload_does_not_stop_the_rest(self) -> None:
        uploads = [
            UploadedFile(filename='invoice.pdf', content=b'%PDF-1', content_type='application/pdf'),
            UploadedFile(filename='broken.pdf', content=b'corrupt', content_type='application/pdf'),
            UploadedFile(filename='photo.jpg', content=b'jpeg', content_type='image/jpeg'),
        ]

        with self.assertLogs('trade_portal.services.shipment_service', level='WARNING'):
            result = upload_documents(self.repo, self.storage, shipment_id=self.shipment.id, uploads=uploads)

        self.assertEqual([doc['name'] for doc in result.value.documents], ['invoice.pdf', 'photo.jpg'])
        self.assertEqual(len(result.warnings), 1)
        self.assertTrue(result.warnings[0].startswith('broken.pdf'))
        self.assertEqual(len(self.storage.objects), 2)

    def test_document_write_conflict_skips_one_file_and_discards_its_object(self) -> None:
        repo = ContendedShipmentRepository(conflicts=3)
        shipment = create_shipment(repo, data=_draft(), created_by=1, year=2025)
        uploads = [
            UploadedFile(filename='contended.pdf', content=b'%PDF-1', content_type='application/pdf'),
            UploadedFile(filename='manifest.pdf', content=b'%PDF-2', content_type='application/pdf'),
        ]

        with self.assertLogs('trade_portal.services.shipment_service', level='WARNING'):
            result = upload_documents(repo, self.storage, shipment_id=shipment.id, uploads=uploads)

        self.assertEqual([doc['name'] for doc in result.value.documents], ['manifest.pdf'])
        self.assertEqual(len(result.warnings), 1)
        self.assertTrue(result.warnings[0].startswith('contended.pdf'))
        self.assertEqual(list(self.storage.objects.values()), [b'%PDF-2'])
        self.assertEqual(len(self.storage.removed), 1)

    def test_remove_document_deletes_entry_and_object(self) -> None:
        result = upload_documents(
            self.repo,
            self.storage,
            shipment_id=self.shipment.id,
            uploads=[UploadedFile(filename='bl.pdf', content=b'%PDF', content_type='application/pdf')],
        )
        url = result.value.documents[0]['url']

        removed = remove_document(self.repo, self.storage, shipment_id=self.shipment.id, url=url)

        self.assertTrue(removed.clean)
        self.assertEqual(removed.value.documents, [])
        self.assertEqual(self.storage.objects, {})
        self.assertEqual(self.storage.removed[0][0], BUCKET)

    def test_remove_document_survives_storage_failure(self) -> None:
        result = upload_documents(
            self.repo,
            self.storage,
            shipment_id=self.shipment.id,
            uploads=[UploadedFile(filename='bl.pdf', content=b'%PDF', content_type='application/pdf')],
        )
        url = result.value.documents[0]['url']
        self.storage.fail_remove = True

        with self.assertLogs('trade_portal.services.shipment_service', level='WARNING'):
            removed = remove_document(self.repo, self.storage, shipment_id=self.shipment.id, url=url)

        self.assertEqual(removed.value.documents, [])
        self.assertEqual(len(removed.warnings), 1)

    def test_remove_external_link_only_drops_the_entry(self) -> None:
        add_document(
            self.repo, shipment_id=self.shipment.id, name='link', url='https://elsewhere.test/file', content_type='text/html'
        )

        removed = remove_document(self.repo, self.storage, shipment_id=self.shipment.id, url='https://elsewhere.test/file')

        self.assertEqual(removed.value.documents, [])
        self.assertEqual(len(removed.warnings), 1)
        self.assertEqual(self.storage.removed, [])

    def test_remove_unknown_url_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            remove_document(self.repo, self.storage, shipment_id=self.shipment.id, url='https://x/missing.pdf')


if __name__ == '__main__':
    unittest.main()
