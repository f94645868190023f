"""JSON text encoding for document values."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

from .value import DocumentValue


def dumps_document(value: Any) -> str:
    """Serialize a document value to compact JSON text.

    ``Decimal`` numbers are written as JSON numbers with their exact digits;
    integral values are written as integers.
    """
    return "".join(_encode(value))


def loads_document(text: str) -> DocumentValue:
    """Parse JSON text into a document value.

    Fractional numbers come back as ``Decimal`` so no digits are lost.
    """
    return json.loads(text, parse_float=Decimal)


def _encode(value: Any):
    if isinstance(value, dict):
        yield "{"
        for index, (key, item) in enumerate(value.items()):
            if not isinstance(key, str):
                raise TypeError(f"keys must be str, not {type(key).__name__}")
            if index:
                yield ","
            yield json.dumps(key)
            yield ":"
            yield from _encode(item)
        yield "}"
    elif isinstance(value, (list, tuple)):
        yield "["
        for index, item in enumerate(value):
            if index:
                yield ","
            yield from _encode(item)
        yield "]"
    elif isinstance(value, Decimal):
        yield _encode_decimal(value)
    elif value is None or isinstance(value, (str, bool, int, float)):
        yield json.dumps(value, allow_nan=False)
    else:
        raise TypeError(
            f"Object of type {type(value).__name__} is not JSON serializable"
        )


def _encode_decimal(value: Decimal) -> str:
    if not value.is_finite():
        raise ValueError(f"Out of range decimal value is not JSON compliant: {value}")
    if value == value.to_integral_value():
        return str(int(value))
    return str(value)
