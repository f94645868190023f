"""Transport-neutral protocol interfaces used by Record Authority Service."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from packages.docstore_shared.documents import DocumentValue
from services.state.record_authority.domain import (
    EntityKind,
    Record,
    RelationalPredicate,
    SortOrder,
)


class RecordStore(Protocol):
    """Row-level persistence for every record kind.

    Implementations generate ids and manage ``version``: inserts start at 1
    and every successful update increments it by one.
    """

    def get(self, *, kind: EntityKind, record_id: str) -> Record | None:
        """Read one record by id."""

    def insert(self, *, kind: EntityKind, values: Mapping[str, Any]) -> Record:
        """Insert one record, raising ``DuplicateRecordError`` on unique clashes."""

    def update(
        self,
        *,
        kind: EntityKind,
        record_id: str,
        changes: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> Record:
        """Apply column changes atomically.

        Raises ``RecordNotFoundError`` when the row is absent and
        ``ConcurrencyConflictError`` when ``expected_version`` is stale.
        """

    def delete(self, *, kind: EntityKind, record_id: str) -> bool:
        """Delete one record and return whether it existed."""

    def delete_by_relational_filter(
        self, *, kind: EntityKind, field: str, predicate: RelationalPredicate
    ) -> int:
        """Delete every record matching one relational predicate."""

    def delete_all(self, *, kind: EntityKind) -> int:
        """Delete every record of one kind and return the count."""

    def list_page(
        self,
        *,
        kind: EntityKind,
        order: SortOrder,
        limit: int,
        offset: int = 0,
    ) -> list[Record]:
        """Read one ordered page of records."""

    def scan_all(self, *, kind: EntityKind) -> list[Record]:
        """Read every record of one kind; used only by range fallbacks."""

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
        """Return records whose document ``field`` contains ``probe``."""

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
        """Return records whose relational ``field`` satisfies ``predicate``."""
