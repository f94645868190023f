"""In-process RecordStore used for tests and embedded use."""

from __future__ import annotations

import threading
from typing import Any, Mapping

from packages.docstore_shared.documents import (
    DocumentValue,
    contains,
    documents_equal,
    normalize_document,
)
from packages.docstore_shared.ids import new_record_id
from services.state.record_authority.domain import (
    DOCUMENT_FIELDS,
    RECORD_MODELS,
    EntityKind,
    Record,
    RelationalPredicate,
    SortOrder,
)
from services.state.record_authority.errors import (
    ConcurrencyConflictError,
    DuplicateRecordError,
    RecordNotFoundError,
)
from services.state.record_authority.filters import page, relational_matches, sort_records
from services.state.record_authority.interfaces import RecordStore

UNIQUE_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.USER: ("email",),
}


class InMemoryRecordStore(RecordStore):
    """Dictionary-backed store that evaluates containment in process.

    A single lock serializes writes so the version check and the write are one
    atomic step, matching ``UPDATE ... WHERE version = :expected`` in SQL.
    """

    def __init__(self) -> None:
        self._rows: dict[EntityKind, dict[str, Record]] = {kind: {} for kind in EntityKind}
        self._lock = threading.Lock()

    def get(self, *, kind: EntityKind, record_id: str) -> Record | None:
        """Read one record by id."""
        record = self._rows[kind].get(record_id)
        return None if record is None else _detached(record)

    def insert(self, *, kind: EntityKind, values: Mapping[str, Any]) -> Record:
        """Insert one record with a generated id at version 1."""
        with self._lock:
            record = _build(kind, {**values, "id": new_record_id(), "version": 1})
            self._check_unique(kind, record)
            self._rows[kind][record.id] = record
            return _detached(record)

    def update(
        self,
        *,
        kind: EntityKind,
        record_id: str,
        changes: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> Record:
        """Apply changes when the stored version still matches."""
        with self._lock:
            current = self._rows[kind].get(record_id)
            if current is None:
                raise RecordNotFoundError(kind=kind, record_id=record_id)
            if expected_version is not None and current.version != expected_version:
                raise ConcurrencyConflictError(
                    current=_detached(current), expected_version=expected_version
                )
            merged = current.model_dump(mode="python")
            merged.update(changes)
            merged["version"] = current.version + 1
            updated = _build(kind, merged)
            self._check_unique(kind, updated)
            self._rows[kind][record_id] = updated
            return _detached(updated)

    def delete(self, *, kind: EntityKind, record_id: str) -> bool:
        """Delete one record and return whether it existed."""
        with self._lock:
            return self._rows[kind].pop(record_id, None) is not None

    def delete_by_relational_filter(
        self, *, kind: EntityKind, field: str, predicate: RelationalPredicate
    ) -> int:
        """Delete every record whose ``field`` satisfies ``predicate``."""
        with self._lock:
            doomed = [
                record_id
                for record_id, record in self._rows[kind].items()
                if relational_matches(getattr(record, field), predicate)
            ]
            for record_id in doomed:
                del self._rows[kind][record_id]
            return len(doomed)

    def delete_all(self, *, kind: EntityKind) -> int:
        """Delete every record of one kind."""
        with self._lock:
            count = len(self._rows[kind])
            self._rows[kind].clear()
            return count

    def list_page(
        self,
        *,
        kind: EntityKind,
        order: SortOrder,
        limit: int,
        offset: int = 0,
    ) -> list[Record]:
        """Read one ordered page."""
        return page(sort_records(self.scan_all(kind=kind), order), limit=limit, offset=offset)

    def scan_all(self, *, kind: EntityKind) -> list[Record]:
        """Return a snapshot of every record of one kind."""
        with self._lock:
            return [_detached(record) for record in self._rows[kind].values()]

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
        """Return records whose document field contains ``probe``."""
        if field not in DOCUMENT_FIELDS[kind]:
            raise ValueError(f"{field} is not a document field of {kind}")
        matches = [
            record
            for record in self.scan_all(kind=kind)
            if contains(getattr(record, field), probe)
        ]
        return page(sort_records(matches, order), limit=limit, offset=offset)

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
        """Return records whose relational field satisfies ``predicate``."""
        matches = [
            record
            for record in self.scan_all(kind=kind)
            if relational_matches(getattr(record, field), predicate)
        ]
        return page(sort_records(matches, order), limit=limit, offset=offset)

    def _check_unique(self, kind: EntityKind, candidate: Record) -> None:
        for field in UNIQUE_FIELDS.get(kind, ()):
            value = getattr(candidate, field)
            for existing in self._rows[kind].values():
                if existing.id == candidate.id:
                    continue
                if documents_equal(getattr(existing, field), value):
                    raise DuplicateRecordError(kind=kind, field=field)


def _build(kind: EntityKind, values: Mapping[str, Any]) -> Record:
    """Validate values into a record, copying document fields so rows never alias."""
    copied = dict(values)
    for field in DOCUMENT_FIELDS[kind]:
        if field in copied:
            copied[field] = normalize_document(copied[field])
    return RECORD_MODELS[kind].model_validate(copied)  # type: ignore[return-value]


def _detached(record: Record) -> Record:
    """Deep copy handed to callers; mutating it never reaches the stored row."""
    return record.model_copy(deep=True)
