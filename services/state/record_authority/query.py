"""Read-side orchestration: containment, range fallback, and relational search."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from packages.docstore_shared.documents import (
    DocumentKind,
    extract_number,
    extract_string,
    kind_of,
    normalize_document,
)
from packages.docstore_shared.logging import fields, get_logger, log_context
from services.state.record_authority.domain import (
    DEFAULT_ORDERS,
    DOCUMENT_FIELDS,
    RECORD_MODELS,
    RELATIONAL_FIELDS,
    ContainmentProbe,
    EntityKind,
    ErrorAnalytics,
    ErrorHourBucket,
    LogEntryRecord,
    PathRangeProbe,
    Record,
    RecentError,
    RelationalOp,
    RelationalPredicate,
    RelationalProbe,
    SearchPredicate,
    SortOrder,
)
from services.state.record_authority.errors import RecordValidationError
from services.state.record_authority.filters import page, sort_records
from services.state.record_authority.interfaces import RecordStore

_LOGGER = get_logger(__name__)

ERROR_LEVEL = "error"


class QueryService:
    """Translate search predicates into store lookups.

    Containment probes go to the store's indexed lookup. Path-range probes
    have no index: every row of the kind is scanned and filtered in process,
    which is O(rows).
    """

    def __init__(self, *, store: RecordStore) -> None:
        self._store = store

    def get(self, *, kind: EntityKind, record_id: str) -> Record | None:
        """Read one record by id."""
        return self._store.get(kind=kind, record_id=record_id)

    def list_page(
        self, *, kind: EntityKind, limit: int, offset: int = 0
    ) -> list[Record]:
        """Read one page using the kind's natural ordering."""
        return self._store.list_page(
            kind=kind, order=DEFAULT_ORDERS[kind], limit=limit, offset=offset
        )

    def search(
        self,
        *,
        kind: EntityKind,
        predicate: SearchPredicate,
        order: SortOrder | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Record]:
        """Return records of ``kind`` matching ``predicate``."""
        resolved_order = self._resolve_order(kind, order)

        if isinstance(predicate, ContainmentProbe):
            probe = self._containment_probe(kind, predicate)
            return self._store.find_by_containment(
                kind=kind,
                field=predicate.field,
                probe=probe,
                order=resolved_order,
                limit=limit,
                offset=offset,
            )

        if isinstance(predicate, PathRangeProbe):
            matches = self._range_scan(kind, predicate)
            return page(sort_records(matches, resolved_order), limit=limit, offset=offset)

        if isinstance(predicate, RelationalProbe):
            return self._store.find_by_relational_filter(
                kind=kind,
                field=predicate.field,
                predicate=coerce_relational_predicate(
                    kind, predicate.field, predicate.predicate
                ),
                order=resolved_order,
                limit=limit,
                offset=offset,
            )

        raise RecordValidationError(
            f"unsupported search predicate: {type(predicate).__name__}"
        )

    def error_analytics(self, *, recent_limit: int) -> ErrorAnalytics:
        """Summarize error-level log entries by hour with the newest few."""
        errors = self._store.find_by_relational_filter(
            kind=EntityKind.LOG_ENTRY,
            field="level",
            predicate=RelationalPredicate(op=RelationalOp.EQ, value=ERROR_LEVEL),
            order=DEFAULT_ORDERS[EntityKind.LOG_ENTRY],
        )
        entries = [item for item in errors if isinstance(item, LogEntryRecord)]
        buckets = Counter(
            (entry.timestamp.date(), entry.timestamp.hour) for entry in entries
        )
        return ErrorAnalytics(
            total_errors=len(entries),
            by_hour=[
                ErrorHourBucket(day=day, hour=hour, count=count)
                for (day, hour), count in sorted(buckets.items())
            ],
            recent=[
                RecentError(id=entry.id, message=entry.message, timestamp=entry.timestamp)
                for entry in entries[:recent_limit]
            ],
        )

    def _containment_probe(self, kind: EntityKind, predicate: ContainmentProbe) -> Any:
        """Validate the probe against the field's declared shape."""
        shape = _document_shape(kind, predicate.field)
        probe = normalize_document(predicate.probe)
        actual = kind_of(probe)
        if actual is not shape:
            raise RecordValidationError(
                f"probe for {predicate.field} must be {shape}, got {actual}",
                field=predicate.field,
            )
        return probe

    def _range_scan(self, kind: EntityKind, predicate: PathRangeProbe) -> list[Record]:
        """Filter a full scan by the value extracted at the probe path."""
        _document_shape(kind, predicate.field)
        rows = self._store.scan_all(kind=kind)
        matches = [
            record
            for record in rows
            if _within_bounds(getattr(record, predicate.field), predicate)
        ]
        with log_context(
            {
                fields.ENTITY_KIND: str(kind),
                fields.ROWS_SCANNED: len(rows),
                fields.RESULT_COUNT: len(matches),
            }
        ):
            _LOGGER.debug(
                "path range scan on %s.%s: rows_scanned=%d matched=%d",
                predicate.field,
                ".".join(predicate.path),
                len(rows),
                len(matches),
            )
        return matches

    def _resolve_order(self, kind: EntityKind, order: SortOrder | None) -> SortOrder | None:
        """Validate the requested order; log entries default to newest-first."""
        if order is None:
            return DEFAULT_ORDERS[EntityKind.LOG_ENTRY] if kind == EntityKind.LOG_ENTRY else None
        if order.field not in RELATIONAL_FIELDS[kind]:
            raise RecordValidationError(
                f"cannot order {kind} by {order.field}", field="order.field"
            )
        return order


def coerce_relational_predicate(
    kind: EntityKind, field: str, predicate: RelationalPredicate
) -> RelationalPredicate:
    """Validate ``field`` and convert operands to the column's Python type."""
    if field not in RELATIONAL_FIELDS[kind]:
        raise RecordValidationError(f"{field} is not a relational field of {kind}", field=field)

    annotation = RECORD_MODELS[kind].model_fields[field].annotation
    if predicate.op == RelationalOp.CONTAINS_TEXT and annotation is not str:
        raise RecordValidationError(f"contains_text requires a text field, got {field}", field=field)

    adapter: TypeAdapter[Any] = TypeAdapter(annotation)
    try:
        value = adapter.validate_python(predicate.value)
        upper = None if predicate.upper is None else adapter.validate_python(predicate.upper)
    except PydanticValidationError as exc:
        raise RecordValidationError(
            f"invalid operand for {field}: {exc.errors()[0]['msg']}", field=field
        ) from exc
    if isinstance(value, datetime) and value.tzinfo is None:
        raise RecordValidationError(f"{field} operands must be timezone-aware", field=field)
    return RelationalPredicate(op=predicate.op, value=value, upper=upper)


def _document_shape(kind: EntityKind, field: str) -> DocumentKind:
    shape = DOCUMENT_FIELDS[kind].get(field)
    if shape is None:
        raise RecordValidationError(f"{field} is not a document field of {kind}", field=field)
    return shape


def _within_bounds(document: Any, predicate: PathRangeProbe) -> bool:
    """Return whether the extracted leaf lies inside the inclusive bounds.

    Numeric bounds only match NUMBER leaves and string bounds only STRING
    leaves; absent or differently typed leaves never match.
    """
    value: Decimal | str | None
    if predicate.numeric:
        value = extract_number(document, predicate.path)
    else:
        value = extract_string(document, predicate.path)
    if value is None:
        return False
    if predicate.minimum is not None and value < predicate.minimum:  # type: ignore[operator]
        return False
    if predicate.maximum is not None and value > predicate.maximum:  # type: ignore[operator]
        return False
    return True
