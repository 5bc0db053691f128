from __future__ import annotations

from dataclasses import dataclass

from trade_portal.models import StockCategory, StockMovementType, StockOffice, StockStatus
from trade_portal.services.concurrency import run_with_retry
from trade_portal.services.errors import NotFoundError
from trade_portal.services.repositories import StockFilters, StockRepository
from trade_portal.services.results import OperationResult

DEFAULT_ADJUST_REASON = 'Manual adjustment'
DETAIL_FIELDS = {'item_name', 'category', 'min_stock', 'unit', 'location', 'notes'}

CATEGORY_LABELS = {
    StockCategory.OFFICE_SUPPLIES: 'Office Supplies',
    StockCategory.EQUIPMENT: 'Equipment',
    StockCategory.CONSUMABLES: 'Consumables',
}

COMMON_UNITS = ['pcs', 'box', 'pack', 'bottle', 'kg', 'liter', 'meter', 'roll', 'set', 'unit']

COMMON_LOCATIONS = [
    'Storage Room',
    'Office Floor 1',
    'Office Floor 2',
    'IT Room',
    'Supply Cabinet',
    'Reception Desk',
    'Meeting Room',
    'Kitchen',
]


@dataclass(frozen=True)
class StockDraft:
    item_name: str
    category: StockCategory
    current_stock: int
    min_stock: int
    unit: str
    location: str
    notes: str | None = None


@dataclass(frozen=True)
class StockStats:
    total_items: int
    low_stock: int
    out_of_stock: int
    by_category: dict[StockCategory, int]
    total_units: int


def parse_category(raw: str) -> StockCategory:
    try:
        return StockCategory(raw)
    except ValueError as exc:
        raise ValueError(f'Unknown stock category: {raw}') from exc


def category_label(category: StockCategory) -> str:
    match category:
        case StockCategory.OFFICE_SUPPLIES | StockCategory.EQUIPMENT | StockCategory.CONSUMABLES:
            return CATEGORY_LABELS[category]
        case _:
            raise ValueError(f'Unknown stock category: {category}')


def classify_stock(current: int, minimum: int) -> StockStatus:
    if current == 0:
        return StockStatus.OUT_OF_STOCK
    if current <= minimum:
        return StockStatus.LOW_STOCK
    return StockStatus.NORMAL


def stock_status(item: StockOffice) -> StockStatus:
    return classify_stock(item.current_stock, item.min_stock)


def status_label(status: StockStatus) -> str:
    match status:
        case StockStatus.OUT_OF_STOCK:
            return 'Out of Stock'
        case StockStatus.LOW_STOCK:
            return 'Low Stock'
        case StockStatus.NORMAL:
            return 'In Stock'
        case _:
            raise ValueError(f'Unknown stock status: {status}')


def _non_negative(value: int, *, field: str) -> int:
    value = int(value)
    if value < 0:
        raise ValueError(f'{field} must be 0 or greater')
    return value


def _require_item(repo: StockRepository, stock_id: int) -> StockOffice:
    item = repo.get(stock_id)
    if item is None:
        raise NotFoundError('Stock item not found')
    return item


def get_stock_item(repo: StockRepository, *, stock_id: int) -> StockOffice:
    return _require_item(repo, stock_id)


def create_stock_item(repo: StockRepository, *, data: StockDraft, user_id: int | None) -> StockOffice:
    for field_name, label in (('item_name', 'Item name'), ('unit', 'Unit'), ('location', 'Location')):
        if not str(getattr(data, field_name) or '').strip():
            raise ValueError(f'{label} is required')
    return repo.insert(
        {
            'item_name': data.item_name.strip(),
            'category': StockCategory(data.category),
            'current_stock': _non_negative(data.current_stock, field='Current stock'),
            'min_stock': _non_negative(data.min_stock, field='Minimum stock'),
            'unit': data.unit.strip(),
            'location': data.location.strip(),
            'notes': data.notes.strip() if data.notes and data.notes.strip() else None,
            'last_updated_by': user_id,
        }
    )


def update_stock_item(repo: StockRepository, *, stock_id: int, changes: dict, user_id: int | None) -> StockOffice:
    unknown = set(changes) - DETAIL_FIELDS
    if unknown:
        raise ValueError(f'Cannot update stock fields: {", ".join(sorted(unknown))}')
    values = dict(changes)
    if 'min_stock' in values:
        values['min_stock'] = _non_negative(values['min_stock'], field='Minimum stock')
    if 'category' in values:
        values['category'] = StockCategory(values['category'])
    values['last_updated_by'] = user_id
    return repo.update(stock_id, values)


def _record_movement(
    repo: StockRepository,
    *,
    item: StockOffice,
    movement_type: StockMovementType,
    previous: int,
    reason: str,
    user_id: int | None,
) -> None:
    repo.add_movement(
        {
            'stock_id': item.id,
            'movement_type': movement_type,
            'quantity': abs(item.current_stock - previous),
            'previous_stock': previous,
            'new_stock': item.current_stock,
            'reason': reason,
            'performed_by': user_id,
        }
    )


def set_quantity(
    repo: StockRepository,
    *,
    stock_id: int,
    new_quantity: int,
    user_id: int | None,
    reason: str = DEFAULT_ADJUST_REASON,
) -> StockOffice:
    new_quantity = _non_negative(new_quantity, field='Quantity')

    def _write() -> tuple[StockOffice, int]:
        item = _require_item(repo, stock_id)
        previous = item.current_stock
        updated = repo.update(
            stock_id,
            {'current_stock': new_quantity, 'last_updated_by': user_id},
            expected_version=item.version,
        )
        return updated, previous

    updated, previous = run_with_retry(_write, label='Stock quantity set')
    _record_movement(
        repo,
        item=updated,
        movement_type=StockMovementType.SET,
        previous=previous,
        reason=reason,
        user_id=user_id,
    )
    return updated


def adjust_quantity(
    repo: StockRepository,
    *,
    stock_id: int,
    delta: int,
    user_id: int | None,
    reason: str = DEFAULT_ADJUST_REASON,
) -> OperationResult[StockOffice]:
    """Add delta to the current stock, flooring at zero; a floored result carries a warning."""
    delta = int(delta)

    def _write() -> tuple[StockOffice, int]:
        item = _require_item(repo, stock_id)
        previous = item.current_stock
        updated = repo.update(
            stock_id,
            {'current_stock': max(0, previous + delta), 'last_updated_by': user_id},
            expected_version=item.version,
        )
        return updated, previous

    updated, previous = run_with_retry(_write, label='Stock adjustment')
    _record_movement(
        repo,
        item=updated,
        movement_type=StockMovementType.IN if delta >= 0 else StockMovementType.OUT,
        previous=previous,
        reason=reason,
        user_id=user_id,
    )

    result: OperationResult[StockOffice] = OperationResult(value=updated)
    if previous + delta < 0:
        result = result.with_warning(
            f'Requested {delta} but only {previous} {updated.unit} were on hand; stock set to 0'
        )
    return result


def delete_stock_item(repo: StockRepository, *, stock_id: int) -> None:
    repo.delete(stock_id)


def list_stock_items(repo: StockRepository, *, filters: StockFilters | None = None) -> list[StockOffice]:
    return repo.list(filters or StockFilters())


def list_low_stock(repo: StockRepository) -> list[StockOffice]:
    items = repo.list(StockFilters(low_stock=True))
    return sorted(items, key=lambda item: item.current_stock)


def list_locations(repo: StockRepository) -> list[str]:
    return repo.locations()


def stock_stats(items: list[StockOffice]) -> StockStats:
    by_category = {category: 0 for category in StockCategory}
    low = 0
    out = 0
    for item in items:
        by_category[StockCategory(item.category)] += 1
        match stock_status(item):
            case StockStatus.OUT_OF_STOCK:
                out += 1
            case StockStatus.LOW_STOCK:
                low += 1
            case StockStatus.NORMAL:
                pass
            case _:
                raise ValueError(f'Unknown stock status for item {item.id}')
    return StockStats(
        total_items=len(items),
        low_stock=low,
        out_of_stock=out,
        by_category=by_category,
        total_units=sum(item.current_stock for item in items),
    )


def serialize_stock_item(item: StockOffice) -> dict:
    status = stock_status(item)
    return {
        'id': item.id,
        'item_name': item.item_name,
        'category': item.category.value,
        'category_label': category_label(item.category),
        'current_stock': item.current_stock,
        'min_stock': item.min_stock,
        'unit': item.unit,
        'location': item.location,
        'notes': item.notes,
        'status': status.value,
        'status_label': status_label(status),
        'last_updated_by': item.last_updated_by,
    }
