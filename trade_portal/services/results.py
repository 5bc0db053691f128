from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar('T')


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of a primary write plus any secondary effects that failed without undoing it."""

    value: T
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def clean(self) -> bool:
        return not self.warnings

    def with_warning(self, message: str) -> OperationResult[T]:
        return OperationResult(value=self.value, warnings=(*self.warnings, message))
