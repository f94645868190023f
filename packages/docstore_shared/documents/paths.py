"""Scalar extraction at nested key paths.

Extraction never raises for a missing or mistyped path; those cases are
reported as absent (``None``) so range filters can skip the row.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from .value import DocumentKind, DocumentScalar, DocumentValue, as_decimal, kind_of


def split_path(path: str | Sequence[str]) -> tuple[str, ...]:
    """Normalize a dotted string or key sequence into path segments."""
    segments = tuple(path.split(".")) if isinstance(path, str) else tuple(path)
    if not segments:
        raise ValueError("path must contain at least one key")
    for segment in segments:
        if not isinstance(segment, str) or not segment.strip():
            raise ValueError("path segments must be non-empty strings")
    return segments


def extract(doc: DocumentValue, path: str | Sequence[str]) -> DocumentScalar:
    """Return the scalar at ``path``, or ``None`` when absent.

    A JSON null, an array, or an object at the terminal segment is also
    reported as absent.
    """
    cursor: DocumentValue = doc
    for segment in split_path(path):
        if kind_of(cursor) is not DocumentKind.OBJECT:
            return None
        assert isinstance(cursor, dict)
        if segment not in cursor:
            return None
        cursor = cursor[segment]

    if kind_of(cursor) in {DocumentKind.ARRAY, DocumentKind.OBJECT}:
        return None
    return cursor  # type: ignore[return-value]


def extract_number(doc: DocumentValue, path: str | Sequence[str]) -> Decimal | None:
    """Return the NUMBER at ``path`` as a ``Decimal``, or ``None``.

    Strings are not parsed; a numeric-looking string is treated as absent.
    """
    value = extract(doc, path)
    if value is None or kind_of(value) is not DocumentKind.NUMBER:
        return None
    return as_decimal(value)  # type: ignore[arg-type]


def extract_string(doc: DocumentValue, path: str | Sequence[str]) -> str | None:
    """Return the STRING at ``path``, or ``None``."""
    value = extract(doc, path)
    return value if isinstance(value, str) else None
