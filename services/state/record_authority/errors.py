"""Record Authority Service error codes and store-level exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from services.state.record_authority.domain import EntityKind, Record

SHAPE_MISMATCH = "SHAPE_MISMATCH"


class RecordValidationError(ValueError):
    """Raised when a request is well-formed but not valid for the target kind."""

    def __init__(self, message: str, *, field: str = "") -> None:
        super().__init__(message)
        self.field = field


class RecordNotFoundError(LookupError):
    """Raised when a referenced record does not exist."""

    def __init__(self, *, kind: "EntityKind", record_id: str) -> None:
        super().__init__(f"{kind} not found")
        self.kind = kind
        self.record_id = record_id


class ConcurrencyConflictError(RuntimeError):
    """Raised when an optimistic write loses a race; carries the current row."""

    def __init__(self, *, current: "Record", expected_version: int) -> None:
        super().__init__(
            f"{current.kind} changed concurrently: expected version "
            f"{expected_version}, found {current.version}"
        )
        self.current = current
        self.expected_version = expected_version


class DuplicateRecordError(RuntimeError):
    """Raised when a write violates a unique column."""

    def __init__(self, *, kind: "EntityKind", field: str) -> None:
        super().__init__(f"{kind} with this {field} already exists")
        self.kind = kind
        self.field = field
