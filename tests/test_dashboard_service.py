from __future__ import annotations

import unittest
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

from trade_portal.models import DocumentCategory, InvoiceStatus, ShipmentStatus, StockCategory
from trade_portal.services.dashboard_service import build_dashboard, months_back, serialize_dashboard


def _at(year: int, month: int, day: int = 10) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


class DashboardServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.today = date(2025, 2, 14)
        invoices = [
            SimpleNamespace(status=InvoiceStatus.PAID, total=Decimal('220000'), created_at=_at(2025, 2)),
            SimpleNamespace(status=InvoiceStatus.OVERDUE, total=Decimal('50000'), created_at=_at(2025, 2)),
            SimpleNamespace(status=InvoiceStatus.UNPAID, total=Decimal('999999'), created_at=_at(2025, 1)),
        ]
        shipments = [
            SimpleNamespace(status=ShipmentStatus.SCHEDULED, quantity=Decimal('100'), created_at=_at(2025, 2)),
            SimpleNamespace(status=ShipmentStatus.COMPLETED, quantity=Decimal('250'), created_at=_at(2025, 2)),
            SimpleNamespace(status=ShipmentStatus.ARRIVED, quantity=Decimal('80'), created_at=_at(2024, 12)),
            SimpleNamespace(status=ShipmentStatus.ARRIVED, quantity=Decimal('80'), created_at=_at(2024, 6)),
        ]
        stock_items = [
            SimpleNamespace(id=1, category=StockCategory.EQUIPMENT, current_stock=0, min_stock=1),
            SimpleNamespace(id=2, category=StockCategory.CONSUMABLES, current_stock=30, min_stock=5),
        ]
        documents = {category: 0 for category in DocumentCategory}
        documents[DocumentCategory.CONTRACT] = 2
        self.data = build_dashboard(
            invoices=invoices,
            shipments=shipments,
            stock_items=stock_items,
            documents=documents,
            today=self.today,
        )

    def test_months_back_crosses_year_boundary(self) -> None:
        self.assertEqual(
            months_back(date(2025, 2, 1), 4),
            [(2024, 11), (2024, 12), (2025, 1), (2025, 2)],
        )

    def test_current_month_aggregates(self) -> None:
        self.assertEqual(self.data.invoices_this_month.total, 2)
        self.assertEqual(self.data.invoices_this_month.total_amount, Decimal('270000'))
        self.assertEqual(self.data.shipments_this_month.total, 2)
        self.assertEqual(self.data.shipments_this_month.total_quantity, Decimal('350'))
        self.assertEqual(self.data.stock.out_of_stock, 1)

    def test_trend_covers_six_months_ending_today(self) -> None:
        self.assertEqual([point.month for point in self.data.shipment_trend], ['Sep', 'Oct', 'Nov', 'Dec', 'Jan', 'Feb'])
        self.assertEqual([point.shipments for point in self.data.shipment_trend], [0, 0, 0, 1, 0, 2])

    def test_staff_payload_hides_invoices_and_stock(self) -> None:
        staff = serialize_dashboard(self.data, include_admin=False)
        admin = serialize_dashboard(self.data, include_admin=True)

        self.assertNotIn('invoices', staff)
        self.assertNotIn('stock', staff)
        self.assertEqual(staff['documents']['contract'], 2)
        self.assertEqual(admin['invoices']['total_amount'], 'Rp 270.000')
        self.assertEqual(admin['stock']['categories']['equipment'], 1)


if __name__ == '__main__':
    unittest.main()
