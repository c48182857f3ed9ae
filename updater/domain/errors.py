"""Error kinds raised by the update-status persistence layer."""
from __future__ import annotations


class UpdaterRepositoryError(RuntimeError):
    pass


class StorageError(UpdaterRepositoryError):
    """Connection, statement, commit/rollback or row reconstruction failure."""


class InvariantViolationError(UpdaterRepositoryError):
    """The single-row table was found (or left) holding an unexpected number of rows."""

    def __init__(self, table: str, found: int, operation: str, expected: str = "at most 1"):
        self.table = table
        self.found = found
        self.operation = operation
        self.expected = expected
        super().__init__(
            f"'{table}' table is inconsistent during {operation}: "
            f"expected {expected} row(s), found {found}"
        )


class ReconstructionError(ValueError):
    """Raw row could not be turned back into a Transaction."""
