from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Protocol

from trade_portal.models import (
    Invoice,
    InvoiceStatus,
    Shipment,
    ShipmentStatus,
    StockCategory,
    StockMovement,
    StockOffice,
)


@dataclass(frozen=True)
class InvoiceFilters:
    status: InvoiceStatus | None = None
    statuses: tuple[InvoiceStatus, ...] = ()
    customer: str | None = None
    date_from: date | None = None
    date_to: date | None = None


@dataclass(frozen=True)
class ShipmentFilters:
    status: ShipmentStatus | None = None
    vessel: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    invoice_id: int | None = None


@dataclass(frozen=True)
class StockFilters:
    category: StockCategory | None = None
    location: str | None = None
    low_stock: bool = False
    search: str | None = None


class InvoiceRepository(Protocol):
    def latest_number(self, prefix: str) -> str | None: ...

    def get(self, invoice_id: int) -> Invoice | None: ...

    def insert(self, values: dict) -> Invoice: ...

    def update(self, invoice_id: int, values: dict, *, expected_version: int | None = None) -> Invoice: ...

    def delete(self, invoice_id: int) -> None: ...

    def list(self, filters: InvoiceFilters) -> list[Invoice]: ...


class ShipmentRepository(Protocol):
    def latest_code(self, prefix: str) -> str | None: ...

    def get(self, shipment_id: int) -> Shipment | None: ...

    def insert(self, values: dict) -> Shipment: ...

    def update(self, shipment_id: int, values: dict, *, expected_version: int | None = None) -> Shipment: ...

    def delete(self, shipment_id: int) -> None: ...

    def list(self, filters: ShipmentFilters) -> list[Shipment]: ...


class StockRepository(Protocol):
    def get(self, stock_id: int) -> StockOffice | None: ...

    def insert(self, values: dict) -> StockOffice: ...

    def update(self, stock_id: int, values: dict, *, expected_version: int | None = None) -> StockOffice: ...

    def delete(self, stock_id: int) -> None: ...

    def list(self, filters: StockFilters) -> list[StockOffice]: ...

    def locations(self) -> list[str]: ...

    def add_movement(self, values: dict) -> StockMovement: ...
