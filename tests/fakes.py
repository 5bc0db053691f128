from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from trade_portal.models import Invoice, Shipment, StockMovement, StockOffice
from trade_portal.services.errors import ConcurrencyConflict, DuplicateNumberError, NotFoundError, StorageError
from trade_portal.services.numbering_service import number_sort_key
from trade_portal.services.repositories import InvoiceFilters, ShipmentFilters, StockFilters


class _FakeRepository:
    model: type
    label: str
    number_field: str | None = None

    def __init__(self) -> None:
        self.rows: dict[int, object] = {}
        self._next_id = 1
        # Runs once just before the next update, to simulate a concurrent writer.
        self.before_update: Callable[[object], None] | None = None

    def get(self, row_id: int):
        return self.rows.get(row_id)

    def insert(self, values: dict):
        if self.number_field:
            number = values[self.number_field]
            if any(getattr(row, self.number_field) == number for row in self.rows.values()):
                raise DuplicateNumberError(f'{number} is already taken')
        row = self.model(**values)
        row.id = self._next_id
        row.version = 1
        if getattr(row, 'created_at', None) is None:
            row.created_at = datetime.now(tz=timezone.utc)
        self._next_id += 1
        self.rows[row.id] = row
        return row

    def update(self, row_id: int, values: dict, *, expected_version: int | None = None):
        row = self.rows.get(row_id)
        if row is None:
            raise NotFoundError(f'{self.label} not found')
        if self.before_update is not None:
            hook, self.before_update = self.before_update, None
            hook(row)
        if expected_version is not None and row.version != expected_version:
            raise ConcurrencyConflict(f'{self.label} {row_id} changed since it was read')
        for key, value in values.items():
            setattr(row, key, value)
        row.version += 1
        return row

    def delete(self, row_id: int) -> None:
        if self.rows.pop(row_id, None) is None:
            raise NotFoundError(f'{self.label} not found')

    def _latest(self, prefix: str) -> str | None:
        numbers = [getattr(row, self.number_field) for row in self.rows.values()]
        matching = [number for number in numbers if number.startswith(prefix)]
        return max(matching, key=number_sort_key) if matching else None


class FakeInvoiceRepository(_FakeRepository):
    model = Invoice
    label = 'Invoice'
    number_field = 'invoice_number'

    def latest_number(self, prefix: str) -> str | None:
        return self._latest(prefix)

    def list(self, filters: InvoiceFilters) -> list[Invoice]:
        rows = list(self.rows.values())
        if filters.status is not None:
            rows = [row for row in rows if row.status == filters.status]
        if filters.statuses:
            rows = [row for row in rows if row.status in filters.statuses]
        if filters.customer:
            rows = [row for row in rows if filters.customer.lower() in row.customer_name.lower()]
        if filters.date_from:
            rows = [row for row in rows if row.issue_date >= filters.date_from]
        if filters.date_to:
            rows = [row for row in rows if row.issue_date <= filters.date_to]
        return sorted(rows, key=lambda row: row.id, reverse=True)


class UnavailableInvoiceRepository(FakeInvoiceRepository):
    """Invoice store whose writes always fail."""

    def update(self, row_id: int, values: dict, *, expected_version: int | None = None):
        raise RuntimeError('invoice store unavailable')


class FakeShipmentRepository(_FakeRepository):
    model = Shipment
    label = 'Shipment'
    number_field = 'shipment_code'

    def latest_code(self, prefix: str) -> str | None:
        return self._latest(prefix)

    def list(self, filters: ShipmentFilters) -> list[Shipment]:
        rows = list(self.rows.values())
        if filters.status is not None:
            rows = [row for row in rows if row.status == filters.status]
        if filters.vessel:
            rows = [row for row in rows if filters.vessel.lower() in row.vessel_name.lower()]
        if filters.invoice_id is not None:
            rows = [row for row in rows if row.invoice_id == filters.invoice_id]
        return sorted(rows, key=lambda row: row.id, reverse=True)


class FakeStockRepository(_FakeRepository):
    model = StockOffice
    label = 'Stock item'

    def __init__(self) -> None:
        super().__init__()
        self.movements: list[StockMovement] = []

    def list(self, filters: StockFilters) -> list[StockOffice]:
        rows = list(self.rows.values())
        if filters.category is not None:
            rows = [row for row in rows if row.category == filters.category]
        if filters.location:
            rows = [row for row in rows if row.location == filters.location]
        if filters.low_stock:
            rows = [row for row in rows if row.current_stock <= row.min_stock]
        return sorted(rows, key=lambda row: row.item_name)

    def locations(self) -> list[str]:
        return sorted({row.location for row in self.rows.values() if row.location})

    def add_movement(self, values: dict) -> StockMovement:
        movement = StockMovement(**values)
        self.movements.append(movement)
        return movement


class MemoryObjectStorage:
    base_url = 'https://files.example.test/storage/v1/object/public'

    def __init__(self, *, rejected_content: set[bytes] | None = None, fail_remove: bool = False) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.rejected_content = rejected_content or set()
        self.fail_remove = fail_remove
        self.removed: list[tuple[str, str]] = []

    def upload(self, *, bucket: str, path: str, content: bytes, content_type: str) -> str:
        if content in self.rejected_content:
            raise StorageError(f'upload rejected for {path}')
        self.objects[(bucket, path)] = content
        return path

    def public_url(self, *, bucket: str, path: str) -> str:
        return f'{self.base_url}/{bucket}/{path}'

    def remove(self, *, bucket: str, paths: list[str]) -> None:
        if self.fail_remove:
            raise StorageError('storage unavailable')
        for path in paths:
            self.objects.pop((bucket, path), None)
            self.removed.append((bucket, path))

    def list(self, *, bucket: str, prefix: str = '', limit: int = 100) -> list[str]:
        names = sorted(path for stored_bucket, path in self.objects if stored_bucket == bucket and path.startswith(prefix))
        return names[:limit]
