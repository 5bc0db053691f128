from __future__ import annotations

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from trade_portal.models import Invoice, Shipment, StockMovement, StockOffice
from trade_portal.services.errors import ConcurrencyConflict, DuplicateNumberError, NotFoundError
from trade_portal.services.repositories import InvoiceFilters, ShipmentFilters, StockFilters


class _SqlRepository:
    model: type
    label: str
    number_column: str | None = None

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, row_id: int):
        return self.db.get(self.model, row_id, populate_existing=True)

    def _require(self, row_id: int):
        row = self.get(row_id)
        if row is None:
            raise NotFoundError(f'{self.label} not found')
        return row

    def insert(self, values: dict):
        row = self.model(**values)
        try:
            with self.db.begin_nested():
                self.db.add(row)
                self.db.flush()
        except IntegrityError as exc:
            if self.number_column and self.number_column in str(exc.orig):
                raise DuplicateNumberError(f'{values.get(self.number_column)} is already taken') from exc
            raise
        return row

    def update(self, row_id: int, values: dict, *, expected_version: int | None = None):
        # Read and write share one savepoint.
        try:
            with self.db.begin_nested():
                row = self._require(row_id)
                if expected_version is not None and row.version != expected_version:
                    raise ConcurrencyConflict(f'{self.label} {row_id} changed since it was read')
                for key, value in values.items():
                    setattr(row, key, value)
                self.db.flush()
        except StaleDataError as exc:
            raise ConcurrencyConflict(f'{self.label} {row_id} changed since it was read') from exc
        return row

    def delete(self, row_id: int) -> None:
        with self.db.begin_nested():
            row = self._require(row_id)
            self.db.delete(row)
            self.db.flush()

    def _latest(self, column, prefix: str) -> str | None:
        return self.db.execute(
            select(column)
            .where(column.like(f'{prefix}%'))
            .order_by(func.length(column).desc(), column.desc())
            .limit(1)
        ).scalar_one_or_none()


class SqlInvoiceRepository(_SqlRepository):
    model = Invoice
    label = 'Invoice'
    number_column = 'invoice_number'

    def latest_number(self, prefix: str) -> str | None:
        return self._latest(Invoice.invoice_number, prefix)

    def list(self, filters: InvoiceFilters) -> list[Invoice]:
        conditions = []
        if filters.status is not None:
            conditions.append(Invoice.status == filters.status)
        if filters.statuses:
            conditions.append(Invoice.status.in_(filters.statuses))
        if filters.customer:
            conditions.append(Invoice.customer_name.ilike(f'%{filters.customer}%'))
        if filters.date_from:
            conditions.append(Invoice.issue_date >= filters.date_from)
        if filters.date_to:
            conditions.append(Invoice.issue_date <= filters.date_to)

        query: Select = select(Invoice).order_by(Invoice.created_at.desc(), Invoice.id.desc())
        if conditions:
            query = query.where(and_(*conditions))
        return self.db.execute(query).scalars().all()


class SqlShipmentRepository(_SqlRepository):
    model = Shipment
    label = 'Shipment'
    number_column = 'shipment_code'

    def latest_code(self, prefix: str) -> str | None:
        return self._latest(Shipment.shipment_code, prefix)

    def list(self, filters: ShipmentFilters) -> list[Shipment]:
        conditions = []
        if filters.status is not None:
            conditions.append(Shipment.status == filters.status)
        if filters.vessel:
            conditions.append(Shipment.vessel_name.ilike(f'%{filters.vessel}%'))
        if filters.date_from:
            conditions.append(Shipment.departure_date >= filters.date_from)
        if filters.date_to:
            conditions.append(Shipment.departure_date <= filters.date_to)
        if filters.invoice_id is not None:
            conditions.append(Shipment.invoice_id == filters.invoice_id)

        query: Select = select(Shipment).order_by(Shipment.created_at.desc(), Shipment.id.desc())
        if conditions:
            query = query.where(and_(*conditions))
        return self.db.execute(query).scalars().all()


class SqlStockRepository(_SqlRepository):
    model = StockOffice
    label = 'Stock item'

    def list(self, filters: StockFilters) -> list[StockOffice]:
        conditions = []
        if filters.category is not None:
            conditions.append(StockOffice.category == filters.category)
        if filters.location:
            conditions.append(StockOffice.location == filters.location)
        if filters.search:
            pattern = f'%{filters.search}%'
            conditions.append(or_(StockOffice.item_name.ilike(pattern), StockOffice.notes.ilike(pattern)))
        if filters.low_stock:
            conditions.append(StockOffice.current_stock <= StockOffice.min_stock)

        query: Select = select(StockOffice).order_by(StockOffice.item_name.asc())
        if conditions:
            query = query.where(and_(*conditions))
        return self.db.execute(query).scalars().all()

    def locations(self) -> list[str]:
        rows = self.db.execute(
            select(StockOffice.location)
            .where(StockOffice.location.is_not(None), StockOffice.location != '')
            .distinct()
            .order_by(StockOffice.location.asc())
        ).all()
        return [row[0] for row in rows]

    def add_movement(self, values: dict) -> StockMovement:
        movement = StockMovement(**values)
        self.db.add(movement)
        self.db.flush()
        return movement
