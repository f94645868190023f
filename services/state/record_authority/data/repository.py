"""Authoritative Postgres RecordStore for Record Authority Service state."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Mapping

from sqlalchemy import ColumnElement, Table, delete, insert, select, update
from sqlalchemy.exc import IntegrityError

from packages.docstore_shared.documents import DocumentValue
from packages.docstore_shared.ids import (
    new_record_id,
    record_id_from_bytes,
    record_id_to_bytes,
)
from resources.substrates.postgres import ServiceSchemaSessionProvider, is_unique_violation
from services.state.record_authority.domain import (
    DOCUMENT_FIELDS,
    RECORD_MODELS,
    EntityKind,
    Record,
    RelationalOp,
    RelationalPredicate,
    SortOrder,
)
from services.state.record_authority.errors import (
    ConcurrencyConflictError,
    DuplicateRecordError,
    RecordNotFoundError,
)
from services.state.record_authority.interfaces import RecordStore

from .schema import log_entries, orders, products, users

RECORD_TABLES: dict[EntityKind, Table] = {
    EntityKind.USER: users,
    EntityKind.PRODUCT: products,
    EntityKind.ORDER: orders,
    EntityKind.LOG_ENTRY: log_entries,
}

_ID_COLUMNS: dict[EntityKind, frozenset[str]] = {
    EntityKind.USER: frozenset({"id"}),
    EntityKind.PRODUCT: frozenset({"id"}),
    EntityKind.ORDER: frozenset({"id", "user_id"}),
    EntityKind.LOG_ENTRY: frozenset({"id"}),
}

_DATETIME_COLUMNS = ("created_at", "updated_at", "timestamp")

_UNIQUE_FIELDS: dict[EntityKind, str] = {EntityKind.USER: "email"}


class PostgresRecordStore(RecordStore):
    """SQL RecordStore over RAS-owned schema tables.

    Containment lookups compile to ``column @> :probe`` so GIN indexes on the
    document columns apply.
    """

    def __init__(self, sessions: ServiceSchemaSessionProvider) -> None:
        self._sessions = sessions

    def get(self, *, kind: EntityKind, record_id: str) -> Record | None:
        """Read one record by id."""
        table = RECORD_TABLES[kind]
        with self._sessions.session() as session:
            row = (
                session.execute(
                    select(table).where(table.c.id == record_id_to_bytes(record_id))
                )
                .mappings()
                .one_or_none()
            )
            return None if row is None else _to_record(kind, row)

    def insert(self, *, kind: EntityKind, values: Mapping[str, Any]) -> Record:
        """Insert one row with a generated ULID id at version 1."""
        table = RECORD_TABLES[kind]
        row_values = _to_row(kind, {**values, "id": new_record_id(), "version": 1})
        try:
            with self._sessions.session() as session:
                row = (
                    session.execute(insert(table).values(**row_values).returning(table))
                    .mappings()
                    .one()
                )
                return _to_record(kind, row)
        except IntegrityError as exc:
            field = _UNIQUE_FIELDS.get(kind)
            if field is not None and is_unique_violation(exc):
                raise DuplicateRecordError(kind=kind, field=field) from exc
            raise

    def update(
        self,
        *,
        kind: EntityKind,
        record_id: str,
        changes: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> Record:
        """Apply changes in one conditional ``UPDATE ... RETURNING``."""
        table = RECORD_TABLES[kind]
        key = record_id_to_bytes(record_id)
        stmt = update(table).where(table.c.id == key)
        if expected_version is not None:
            stmt = stmt.where(table.c.version == expected_version)
        stmt = stmt.values(**_to_row(kind, changes), version=table.c.version + 1)

        try:
            with self._sessions.session() as session:
                row = session.execute(stmt.returning(table)).mappings().one_or_none()
                if row is not None:
                    return _to_record(kind, row)

                current = (
                    session.execute(select(table).where(table.c.id == key))
                    .mappings()
                    .one_or_none()
                )
                if current is None:
                    raise RecordNotFoundError(kind=kind, record_id=record_id)
                raise ConcurrencyConflictError(
                    current=_to_record(kind, current),
                    expected_version=int(expected_version or 0),
                )
        except IntegrityError as exc:
            field = _UNIQUE_FIELDS.get(kind)
            if field is not None and is_unique_violation(exc):
                raise DuplicateRecordError(kind=kind, field=field) from exc
            raise

    def delete(self, *, kind: EntityKind, record_id: str) -> bool:
        """Delete one row by id and return whether it existed."""
        table = RECORD_TABLES[kind]
        with self._sessions.session() as session:
            result = session.execute(
                delete(table).where(table.c.id == record_id_to_bytes(record_id))
            )
            return int(result.rowcount or 0) > 0

    def delete_by_relational_filter(
        self, *, kind: EntityKind, field: str, predicate: RelationalPredicate
    ) -> int:
        """Delete rows matching one relational predicate."""
        table = RECORD_TABLES[kind]
        with self._sessions.session() as session:
            result = session.execute(
                delete(table).where(_relational_clause(kind, table, field, predicate))
            )
            return int(result.rowcount or 0)

    def delete_all(self, *, kind: EntityKind) -> int:
        """Delete every row of one kind."""
        with self._sessions.session() as session:
            result = session.execute(delete(RECORD_TABLES[kind]))
            return int(result.rowcount or 0)

    def list_page(
        self,
        *,
        kind: EntityKind,
        order: SortOrder,
        limit: int,
        offset: int = 0,
    ) -> list[Record]:
        """Read one ordered page of rows."""
        table = RECORD_TABLES[kind]
        stmt = select(table).order_by(*_order_by(table, order)).limit(limit).offset(offset)
        return self._fetch(kind, stmt)

    def scan_all(self, *, kind: EntityKind) -> list[Record]:
        """Read every row of one kind."""
        return self._fetch(kind, select(RECORD_TABLES[kind]))

    def find_by_containment(
        self,
        *,
        kind: EntityKind,
        field: str,
        probe: DocumentValue,
        order: SortOrder | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Record]:
        """Return rows where ``field @> probe``."""
        if field not in DOCUMENT_FIELDS[kind]:
            raise ValueError(f"{field} is not a document field of {kind}")
        table = RECORD_TABLES[kind]
        stmt = select(table).where(table.c[field].contains(probe))
        return self._fetch(kind, _paged(table, stmt, order, limit, offset))

    def find_by_relational_filter(
        self,
        *,
        kind: EntityKind,
        field: str,
        predicate: RelationalPredicate,
        order: SortOrder | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Record]:
        """Return rows whose relational column satisfies ``predicate``."""
        table = RECORD_TABLES[kind]
        stmt = select(table).where(_relational_clause(kind, table, field, predicate))
        return self._fetch(kind, _paged(table, stmt, order, limit, offset))

    def _fetch(self, kind: EntityKind, stmt: Any) -> list[Record]:
        with self._sessions.session() as session:
            rows = session.execute(stmt).mappings().all()
            return [_to_record(kind, row) for row in rows]


def _paged(
    table: Table,
    stmt: Any,
    order: SortOrder | None,
    limit: int | None,
    offset: int,
) -> Any:
    """Apply optional ordering and paging to one select."""
    if order is not None:
        stmt = stmt.order_by(*_order_by(table, order))
    if limit is not None:
        stmt = stmt.limit(limit)
    if offset:
        stmt = stmt.offset(offset)
    return stmt


def _order_by(table: Table, order: SortOrder) -> list[Any]:
    """Return ORDER BY terms with id as the tie-breaker."""
    column = table.c[order.field]
    if order.descending:
        return [column.desc(), table.c.id.desc()]
    return [column.asc(), table.c.id.asc()]


def _relational_clause(
    kind: EntityKind,
    table: Table,
    field: str,
    predicate: RelationalPredicate,
) -> ColumnElement[bool]:
    """Compile one relational predicate into a SQL boolean clause."""
    column = table.c[field]
    value = _to_column_value(kind, field, predicate.value)
    op = predicate.op
    if op == RelationalOp.EQ:
        return column == value
    if op == RelationalOp.BETWEEN:
        return column.between(value, _to_column_value(kind, field, predicate.upper))
    if op == RelationalOp.GTE:
        return column >= value
    if op == RelationalOp.LTE:
        return column <= value
    if op == RelationalOp.LT:
        return column < value
    if op == RelationalOp.CONTAINS_TEXT:
        return column.contains(value, autoescape=True)
    raise ValueError(f"unsupported relational operator: {op}")


def _to_column_value(kind: EntityKind, field: str, value: Any) -> Any:
    """Convert one domain value into its column representation."""
    if field in _ID_COLUMNS[kind] and isinstance(value, str):
        return record_id_to_bytes(value)
    return value


def _to_row(kind: EntityKind, values: Mapping[str, Any]) -> dict[str, Any]:
    """Map domain field values onto table column values."""
    return {field: _to_column_value(kind, field, value) for field, value in values.items()}


def _to_record(kind: EntityKind, row: Mapping[str, Any]) -> Record:
    """Map one SQL row to a strict domain record."""
    values = dict(row)
    for column in _ID_COLUMNS[kind]:
        values[column] = record_id_from_bytes(bytes(values[column]))
    for column in _DATETIME_COLUMNS:
        if column in values:
            values[column] = _row_dt(values, column)
    return RECORD_MODELS[kind].model_validate(values)  # type: ignore[return-value]


def _row_dt(row: Mapping[str, Any], column: str) -> datetime:
    """Read and normalize one timezone-aware datetime field from SQL row."""
    value = row.get(column)
    if not isinstance(value, datetime):
        raise ValueError(f"expected datetime column for {column}")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)

