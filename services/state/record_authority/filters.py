"""In-process evaluation of relational predicates and orderings.

These helpers mirror the SQL the Postgres store emits so that the in-memory
store and the range fallback order and filter rows the same way.
"""

from __future__ import annotations

from typing import Any, Sequence, TypeVar

from services.state.record_authority.domain import (
    RelationalOp,
    RelationalPredicate,
    SortOrder,
)

TRecord = TypeVar("TRecord")


def relational_matches(value: Any, predicate: RelationalPredicate) -> bool:
    """Return whether one column value satisfies ``predicate``."""
    if value is None:
        return False
    op = predicate.op
    if op == RelationalOp.EQ:
        return value == predicate.value
    if op == RelationalOp.BETWEEN:
        return predicate.value <= value <= predicate.upper
    if op == RelationalOp.GTE:
        return value >= predicate.value
    if op == RelationalOp.LTE:
        return value <= predicate.value
    if op == RelationalOp.LT:
        return value < predicate.value
    if op == RelationalOp.CONTAINS_TEXT:
        return isinstance(value, str) and predicate.value in value
    raise ValueError(f"unsupported relational operator: {op}")


def sort_records(records: Sequence[TRecord], order: SortOrder | None) -> list[TRecord]:
    """Return records ordered by one field, ties broken by id."""
    if order is None:
        return list(records)
    return sorted(
        records,
        key=lambda record: (getattr(record, order.field), getattr(record, "id")),
        reverse=order.descending,
    )


def page(records: Sequence[TRecord], *, limit: int | None, offset: int = 0) -> list[TRecord]:
    """Slice one page out of an already ordered sequence."""
    if limit is None:
        return list(records[offset:])
    return list(records[offset : offset + limit])
