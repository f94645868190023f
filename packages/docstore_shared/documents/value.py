"""In-memory representation of semi-structured document values.

A document value is any JSON-compatible Python value: ``None``, ``bool``,
numbers (``int``, ``float``, ``Decimal``), ``str``, ``list`` and ``dict`` with
string keys. Every engine operation classifies values through ``kind_of`` so
the set of handled kinds stays closed.
"""

from __future__ import annotations

import math
from decimal import Decimal
from enum import StrEnum
from typing import Any, Mapping, TypeAlias

DocumentScalar: TypeAlias = None | bool | int | float | Decimal | str
DocumentValue: TypeAlias = (
    None
    | bool
    | int
    | float
    | Decimal
    | str
    | list["DocumentValue"]
    | dict[str, "DocumentValue"]
)


class DocumentKind(StrEnum):
    """Closed set of top-level document value kinds."""

    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


SCALAR_KINDS = frozenset(
    {DocumentKind.NULL, DocumentKind.BOOLEAN, DocumentKind.NUMBER, DocumentKind.STRING}
)


class DocumentTypeError(TypeError):
    """Raised when a Python value has no document representation."""


def kind_of(value: object) -> DocumentKind:
    """Classify one value, raising ``DocumentTypeError`` when unsupported."""
    if value is None:
        return DocumentKind.NULL
    # bool subclasses int and must be checked first.
    if isinstance(value, bool):
        return DocumentKind.BOOLEAN
    if isinstance(value, (int, float, Decimal)):
        if not _is_finite(value):
            raise DocumentTypeError(f"non-finite number is not a document value: {value!r}")
        return DocumentKind.NUMBER
    if isinstance(value, str):
        return DocumentKind.STRING
    if isinstance(value, list):
        return DocumentKind.ARRAY
    if isinstance(value, dict):
        return DocumentKind.OBJECT
    raise DocumentTypeError(f"unsupported document value type: {type(value).__name__}")


def is_scalar(value: object) -> bool:
    """Return whether ``value`` is a scalar document value."""
    return kind_of(value) in SCALAR_KINDS


def normalize_document(value: Any) -> DocumentValue:
    """Return a fresh, fully validated copy of ``value`` as a document value.

    Tuples become lists and arbitrary mappings become plain dicts. Object keys
    must already be strings. Containers in the result never alias the input.
    """
    if isinstance(value, tuple):
        value = list(value)
    elif isinstance(value, Mapping) and not isinstance(value, dict):
        value = dict(value)

    kind = kind_of(value)
    if kind is DocumentKind.ARRAY:
        return [normalize_document(item) for item in value]
    if kind is DocumentKind.OBJECT:
        output: dict[str, DocumentValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise DocumentTypeError(
                    f"document object keys must be strings, got {type(key).__name__}"
                )
            output[key] = normalize_document(item)
        return output
    return value


def as_decimal(value: int | float | Decimal) -> Decimal:
    """Convert a NUMBER value into a ``Decimal`` for value comparison."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def scalar_equal(left: object, right: object) -> bool:
    """Return structural equality for two scalar values.

    Numbers compare by numeric value; strings compare exactly; booleans never
    equal numbers.
    """
    left_kind = kind_of(left)
    right_kind = kind_of(right)
    if left_kind is not right_kind:
        return False
    if left_kind is DocumentKind.NUMBER:
        return as_decimal(left) == as_decimal(right)  # type: ignore[arg-type]
    return left == right


def documents_equal(left: object, right: object) -> bool:
    """Return deep structural equality; object key order is irrelevant."""
    left_kind = kind_of(left)
    right_kind = kind_of(right)
    if left_kind is not right_kind:
        return False
    if left_kind is DocumentKind.OBJECT:
        assert isinstance(left, dict) and isinstance(right, dict)
        if left.keys() != right.keys():
            return False
        return all(documents_equal(left[key], right[key]) for key in left)
    if left_kind is DocumentKind.ARRAY:
        assert isinstance(left, list) and isinstance(right, list)
        if len(left) != len(right):
            return False
        return all(documents_equal(a, b) for a, b in zip(left, right))
    return scalar_equal(left, right)


def _is_finite(value: int | float | Decimal) -> bool:
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, Decimal):
        return value.is_finite()
    return True
