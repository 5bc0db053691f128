from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal('0')
HUNDRED = Decimal('100')
CURRENCY_SYMBOL = 'Rp'


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: Decimal
    unit_price: Decimal
    total: Decimal

    @property
    def is_complete(self) -> bool:
        return bool(self.description.strip()) and self.quantity > 0 and self.unit_price >= 0

    def as_dict(self) -> dict:
        return {
            'description': self.description,
            'quantity': str(self.quantity),
            'unit_price': str(self.unit_price),
            'total': str(self.total),
        }


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def to_decimal(value: Decimal | int | float | str | None, *, field: str = 'amount') -> Decimal:
    if value is None or value == '':
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        # str() keeps float inputs from dragging binary noise into the result
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f'Invalid {field}') from exc


def compute_line_total(quantity: Decimal | int | float | str, unit_price: Decimal | int | float | str) -> Decimal:
    return to_decimal(quantity, field='quantity') * to_decimal(unit_price, field='unit price')


def parse_line_item(raw: LineItem | Mapping) -> LineItem:
    if isinstance(raw, LineItem):
        return raw
    quantity = to_decimal(raw.get('quantity'), field='quantity')
    unit_price = to_decimal(raw.get('unit_price'), field='unit price')
    return LineItem(
        description=str(raw.get('description') or '').strip(),
        quantity=quantity,
        unit_price=unit_price,
        total=quantity * unit_price,
    )


def build_invoice_items(raw_items: Iterable[LineItem | Mapping]) -> list[LineItem]:
    """Normalise items and restamp every line total from quantity and unit price."""
    return [parse_line_item(raw) for raw in raw_items]


def compute_invoice_totals(
    items: Iterable[LineItem | Mapping],
    tax_percent: Decimal | int | float | str = 0,
    extra_fee: Decimal | int | float | str = 0,
) -> InvoiceTotals:
    complete = [item for item in build_invoice_items(items) if item.is_complete]
    subtotal = sum((item.quantity * item.unit_price for item in complete), ZERO)
    tax_amount = subtotal * to_decimal(tax_percent, field='tax percent') / HUNDRED
    total = subtotal + tax_amount + to_decimal(extra_fee, field='extra fee')
    return InvoiceTotals(subtotal=subtotal, tax_amount=tax_amount, total=total)


def format_currency(amount: Decimal | int | float | str) -> str:
    value = to_decimal(amount).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    sign = '-' if value < 0 else ''
    digits = f'{abs(int(value)):,}'.replace(',', '.')
    return f'{sign}{CURRENCY_SYMBOL} {digits}'
