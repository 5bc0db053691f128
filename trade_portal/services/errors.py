from __future__ import annotations


class NotFoundError(ValueError):
    pass


class TransitionError(ValueError):
    pass


class DuplicateNumberError(ValueError):
    pass


class ConcurrencyConflict(RuntimeError):
    pass


class StorageError(RuntimeError):
    pass
