"""Structured logging context carried in a ``ContextVar``.

Bound fields are attached to every record emitted in the same context, so a
service call can bind ``trace_id`` or ``entity_kind`` once instead of passing
them to each log call. Values are stored as strings and ``None`` is skipped.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Mapping

_FIELDS: ContextVar[dict[str, str]] = ContextVar("docstore_log_context", default={})


def _with_values(base: Mapping[str, str], values: Mapping[str, object]) -> dict[str, str]:
    merged = dict(base)
    merged.update(
        {str(key): str(value) for key, value in values.items() if value is not None}
    )
    return merged


def get_context() -> dict[str, str]:
    """Return a copy of the fields bound in the current context."""
    return dict(_FIELDS.get())


def bind_context(**values: object) -> None:
    """Bind fields until they are cleared or the context is reset."""
    if values:
        _FIELDS.set(_with_values(_FIELDS.get(), values))


def clear_context(*keys: str) -> None:
    """Drop the named fields, or every field when no names are given."""
    if keys:
        _FIELDS.set({k: v for k, v in _FIELDS.get().items() if k not in keys})
    else:
        _FIELDS.set({})


@contextmanager
def log_context(values: Mapping[str, object]) -> Iterator[None]:
    """Bind ``values`` for the duration of the block only."""
    token = _FIELDS.set(_with_values(_FIELDS.get(), values))
    try:
        yield
    finally:
        _FIELDS.reset(token)
