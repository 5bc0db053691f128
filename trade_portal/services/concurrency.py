from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from trade_portal.services.errors import ConcurrencyConflict, DuplicateNumberError

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_ATTEMPTS = 3


def run_with_retry(func: Callable[[], T], *, attempts: int = DEFAULT_ATTEMPTS, label: str = 'operation') -> T:
    """
    Re-run a read-modify-write closure when another writer got there first.

    The closure must re-read the row on every call. Compare-and-swap misses
    (ConcurrencyConflict) and unique-number collisions (DuplicateNumberError)
    are retried; after the last attempt ConcurrencyConflict is raised.
    """
    if attempts < 1:
        raise ValueError('attempts must be at least 1')

    last_exc: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except (ConcurrencyConflict, DuplicateNumberError) as exc:
            last_exc = exc
            logger.info('%s lost a concurrent write (attempt %d of %d): %s', label, attempt, attempts, exc)
    raise ConcurrencyConflict(f'{label} failed after {attempts} attempts') from last_exc
