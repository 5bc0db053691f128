from __future__ import annotations

from datetime import date

INVOICE_PREFIX = 'INV'
SHIPMENT_PREFIX = 'SHIP'
SEQUENCE_WIDTH = 4


def year_prefix(prefix: str, year: int) -> str:
    return f'{prefix}-{year}-'


def parse_sequence(number: str, *, prefix: str, year: int) -> int:
    head = year_prefix(prefix, year)
    if not number.startswith(head):
        raise ValueError(f'{number} does not belong to {head}*')
    tail = number[len(head) :]
    if not tail.isdigit():
        raise ValueError(f'Malformed sequence in {number}')
    return int(tail)


def next_sequence_number(prefix: str, latest: str | None, year: int) -> str:
    if latest is None:
        sequence = 1
    else:
        sequence = parse_sequence(latest, prefix=prefix, year=year) + 1
    return f'{year_prefix(prefix, year)}{sequence:0{SEQUENCE_WIDTH}d}'


def number_sort_key(number: str) -> tuple[int, str]:
    # Longer sequences sort later so numbering keeps climbing past 9999.
    return (len(number), number)


def current_year(today: date | None = None) -> int:
    return (today or date.today()).year
