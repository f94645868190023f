"""Pure partial-update operations for document fields.

Each operation takes the current field value and returns a ``PatchOutcome``
holding a new value plus whether anything changed. The input is never
mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeAlias

from .value import (
    DocumentKind,
    DocumentValue,
    kind_of,
    normalize_document,
    scalar_equal,
)


class ShapeMismatchError(ValueError):
    """Raised when an operation does not fit the field's top-level shape."""

    def __init__(
        self,
        message: str,
        *,
        expected: DocumentKind | str,
        actual: DocumentKind | str,
    ) -> None:
        super().__init__(message)
        self.expected = str(expected)
        self.actual = str(actual)


@dataclass(frozen=True)
class Replace:
    """Replace the whole field value."""

    value: Any


@dataclass(frozen=True)
class AppendArrayElement:
    """Append one element to the end of an array field."""

    element: Any


@dataclass(frozen=True)
class InsertUniqueScalar:
    """Append a scalar to a scalar array unless an equal one exists."""

    value: Any


@dataclass(frozen=True)
class RemoveScalar:
    """Remove the first structurally equal scalar from a scalar array."""

    value: Any


PatchOperation: TypeAlias = Replace | AppendArrayElement | InsertUniqueScalar | RemoveScalar


@dataclass(frozen=True)
class PatchOutcome:
    """Result of applying one operation."""

    value: DocumentValue
    changed: bool


def apply_operation(
    current: DocumentValue,
    operation: PatchOperation,
    *,
    shape: DocumentKind,
) -> PatchOutcome:
    """Apply ``operation`` to ``current`` for a field declared as ``shape``."""
    if isinstance(operation, Replace):
        replacement = normalize_document(operation.value)
        actual = kind_of(replacement)
        if actual is not shape:
            raise ShapeMismatchError(
                f"replacement must be {shape}, got {actual}",
                expected=shape,
                actual=actual,
            )
        return PatchOutcome(value=replacement, changed=True)

    if isinstance(operation, AppendArrayElement):
        items = _require_array(current)
        return PatchOutcome(
            value=[*items, normalize_document(operation.element)],
            changed=True,
        )

    if isinstance(operation, InsertUniqueScalar):
        items = _require_scalar_array(current)
        candidate = _require_scalar_operand(operation.value)
        if any(scalar_equal(item, candidate) for item in items):
            return PatchOutcome(value=items, changed=False)
        return PatchOutcome(value=[*items, candidate], changed=True)

    if isinstance(operation, RemoveScalar):
        items = _require_scalar_array(current)
        candidate = _require_scalar_operand(operation.value)
        for index, item in enumerate(items):
            if scalar_equal(item, candidate):
                return PatchOutcome(value=items[:index] + items[index + 1 :], changed=True)
        return PatchOutcome(value=items, changed=False)

    raise TypeError(f"unsupported patch operation: {type(operation).__name__}")


def _require_array(current: DocumentValue) -> list[DocumentValue]:
    """Return a fresh copy of an array value or raise a shape mismatch."""
    actual = kind_of(current)
    if actual is not DocumentKind.ARRAY:
        raise ShapeMismatchError(
            f"operation requires an array field, got {actual}",
            expected=DocumentKind.ARRAY,
            actual=actual,
        )
    copied = normalize_document(current)
    assert isinstance(copied, list)
    return copied


def _require_scalar_array(current: DocumentValue) -> list[DocumentValue]:
    items = _require_array(current)
    for item in items:
        actual = kind_of(item)
        if actual in {DocumentKind.ARRAY, DocumentKind.OBJECT}:
            raise ShapeMismatchError(
                f"operation requires an array of scalars, found {actual} element",
                expected="array of scalars",
                actual=f"array containing {actual}",
            )
    return items


def _require_scalar_operand(value: Any) -> DocumentValue:
    candidate = normalize_document(value)
    actual = kind_of(candidate)
    if actual in {DocumentKind.ARRAY, DocumentKind.OBJECT}:
        raise ShapeMismatchError(
            f"operand must be a scalar, got {actual}",
            expected="scalar",
            actual=actual,
        )
    return candidate
