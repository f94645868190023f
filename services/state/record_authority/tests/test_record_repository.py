"""Unit tests for Postgres RecordStore SQL construction and row mapping."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from packages.docstore_shared.ids import new_record_id, record_id_to_bytes
from services.state.record_authority.data.repository import (
    RECORD_TABLES,
    _order_by,
    _relational_clause,
    _row_dt,
    _to_record,
)
from services.state.record_authority.data.schema import metadata, orders, users
from services.state.record_authority.domain import (
    EntityKind,
    OrderRecord,
    RelationalOp,
    RelationalPredicate,
    SortOrder,
)


def _compile(statement: object) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))  # type: ignore[attr-defined]


def test_every_kind_has_a_table() -> None:
    """Each entity kind should map onto one table in RAS metadata."""
    assert set(RECORD_TABLES) == set(EntityKind)
    assert {table.name for table in RECORD_TABLES.values()} == set(metadata.tables)


def test_containment_compiles_to_jsonb_contains_operator() -> None:
    """Containment lookups should use the GIN-indexable ``@>`` operator."""
    statement = select(users).where(users.c.profile.contains({"age": 30}))

    assert "users.profile @> " in _compile(statement)


def test_document_columns_have_gin_indexes() -> None:
    """Containment-searched document columns should carry GIN indexes."""
    gin_columns = {
        (table.name, column.name)
        for table in metadata.tables.values()
        for index in table.indexes
        if index.dialect_options["postgresql"].get("using") == "gin"
        for column in index.columns
    }

    assert gin_columns == {
        ("users", "profile"),
        ("products", "specifications"),
        ("products", "tags"),
        ("orders", "items"),
        ("log_entries", "data"),
    }


def test_relational_clause_converts_ulid_references() -> None:
    """Id-typed columns should compare against 16-byte binary values."""
    user_id = new_record_id()

    clause = _relational_clause(
        EntityKind.ORDER,
        orders,
        "user_id",
        RelationalPredicate(op=RelationalOp.EQ, value=user_id),
    )
    compiled = clause.compile(dialect=postgresql.dialect())

    assert list(compiled.params.values()) == [record_id_to_bytes(user_id)]


def test_relational_clause_text_search_escapes_wildcards() -> None:
    """Substring search should escape LIKE wildcards in the operand."""
    clause = _relational_clause(
        EntityKind.LOG_ENTRY,
        RECORD_TABLES[EntityKind.LOG_ENTRY],
        "message",
        RelationalPredicate(op=RelationalOp.CONTAINS_TEXT, value="100%"),
    )
    compiled = clause.compile(dialect=postgresql.dialect())

    assert "LIKE" in str(compiled)
    assert "100/%" in list(compiled.params.values())


def test_between_clause_is_inclusive() -> None:
    """Between should compile to SQL BETWEEN with both bounds."""
    clause = _relational_clause(
        EntityKind.ORDER,
        orders,
        "total_amount",
        RelationalPredicate(
            op=RelationalOp.BETWEEN, value=Decimal("10"), upper=Decimal("20")
        ),
    )

    assert "BETWEEN" in _compile(clause)


def test_order_by_breaks_ties_on_id() -> None:
    """Ordering should append id in the same direction as the sort field."""
    terms = _order_by(orders, SortOrder(field="created_at", descending=True))

    assert [_compile(term) for term in terms] == [
        "orders.created_at DESC",
        "orders.id DESC",
    ]


def test_to_record_maps_binary_ids_and_timestamps() -> None:
    """SQL rows should map into strict domain records with string ids."""
    order_id = new_record_id()
    user_id = new_record_id()
    created = datetime(2026, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))

    record = _to_record(
        EntityKind.ORDER,
        {
            "id": record_id_to_bytes(order_id),
            "user_id": memoryview(record_id_to_bytes(user_id)),
            "total_amount": Decimal("10.00"),
            "status": "pending",
            "items": [],
            "shipping_address": {},
            "payment_info": {},
            "order_history": [],
            "created_at": created,
            "updated_at": created,
            "version": 1,
        },
    )

    assert isinstance(record, OrderRecord)
    assert record.id == order_id
    assert record.user_id == user_id
    assert record.created_at == datetime(2026, 1, 1, 10, 0, tzinfo=UTC)


def test_row_dt_normalizes_naive_and_rejects_missing() -> None:
    """Row datetimes should be UTC-aware; missing values are errors."""
    naive = datetime(2026, 1, 1, 8, 30)

    assert _row_dt({"created_at": naive}, "created_at").tzinfo == UTC
    with pytest.raises(ValueError):
        _row_dt({}, "created_at")
