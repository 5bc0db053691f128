from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.orm import Session

from trade_portal.models import DocumentCategory, Invoice, Shipment, StockOffice
from trade_portal.services.document_service import document_counts
from trade_portal.services.invoice_service import InvoiceStats, invoice_stats
from trade_portal.services.money_service import format_currency
from trade_portal.services.repositories import InvoiceFilters, ShipmentFilters, StockFilters
from trade_portal.services.shipment_service import ShipmentStats, shipment_stats
from trade_portal.services.sql_repositories import SqlInvoiceRepository, SqlShipmentRepository, SqlStockRepository
from trade_portal.services.stock_service import StockStats, stock_stats

TREND_MONTHS = 6
MONTH_LABELS = ('Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec')


@dataclass(frozen=True)
class TrendPoint:
    month: str
    shipments: int


@dataclass(frozen=True)
class DashboardData:
    invoices_this_month: InvoiceStats
    shipments_this_month: ShipmentStats
    stock: StockStats
    documents: dict[DocumentCategory, int]
    shipment_trend: list[TrendPoint]


def _month_key(value: datetime | date | None) -> tuple[int, int] | None:
    if value is None:
        return None
    return (value.year, value.month)


def months_back(today: date, count: int) -> list[tuple[int, int]]:
    """(year, month) pairs for the last `count` months, oldest first, ending with today's month."""
    keys: list[tuple[int, int]] = []
    year, month = today.year, today.month
    for _ in range(count):
        keys.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def build_dashboard(
    *,
    invoices: list[Invoice],
    shipments: list[Shipment],
    stock_items: list[StockOffice],
    documents: dict[DocumentCategory, int],
    today: date,
) -> DashboardData:
    current = (today.year, today.month)
    trend_keys = months_back(today, TREND_MONTHS)
    per_month = {key: 0 for key in trend_keys}
    for shipment in shipments:
        key = _month_key(shipment.created_at)
        if key in per_month:
            per_month[key] += 1

    return DashboardData(
        invoices_this_month=invoice_stats([inv for inv in invoices if _month_key(inv.created_at) == current]),
        shipments_this_month=shipment_stats([shp for shp in shipments if _month_key(shp.created_at) == current]),
        stock=stock_stats(stock_items),
        documents=documents,
        shipment_trend=[
            TrendPoint(month=MONTH_LABELS[month - 1], shipments=per_month[(year, month)]) for year, month in trend_keys
        ],
    )


def load_dashboard(db: Session, *, today: date | None = None) -> DashboardData:
    return build_dashboard(
        invoices=SqlInvoiceRepository(db).list(InvoiceFilters()),
        shipments=SqlShipmentRepository(db).list(ShipmentFilters()),
        stock_items=SqlStockRepository(db).list(StockFilters()),
        documents=document_counts(db),
        today=today or date.today(),
    )


def serialize_dashboard(data: DashboardData, *, include_admin: bool) -> dict:
    payload = {
        'shipments': {
            'total_this_month': data.shipments_this_month.total,
            'scheduled': data.shipments_this_month.scheduled,
            'on_transit': data.shipments_this_month.on_transit,
            'arrived': data.shipments_this_month.arrived,
            'completed': data.shipments_this_month.completed,
            'total_quantity': str(data.shipments_this_month.total_quantity),
        },
        'documents': {category.value: count for category, count in data.documents.items()},
        'shipment_trend': [{'month': point.month, 'shipments': point.shipments} for point in data.shipment_trend],
    }
    if include_admin:
        payload['invoices'] = {
            'total_this_month': data.invoices_this_month.total,
            'total_amount': format_currency(data.invoices_this_month.total_amount),
            'paid': data.invoices_this_month.paid,
            'unpaid': data.invoices_this_month.unpaid,
            'overdue': data.invoices_this_month.overdue,
        }
        payload['stock'] = {
            'total_items': data.stock.total_items,
            'low_stock': data.stock.low_stock,
            'out_of_stock': data.stock.out_of_stock,
            'categories': {category.value: count for category, count in data.stock.by_category.items()},
        }
    return payload
