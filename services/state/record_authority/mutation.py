"""Write-side orchestration: creation, document patches, and status history."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Mapping

from packages.docstore_shared.documents import (
    AppendArrayElement,
    InsertUniqueScalar,
    PatchOperation,
    RemoveScalar,
    Replace,
    ShapeMismatchError,
    apply_operation,
    documents_equal,
)
from packages.docstore_shared.logging import get_logger
from services.state.record_authority.domain import (
    DOCUMENT_FIELDS,
    IMMUTABLE_KINDS,
    UPDATABLE_FIELDS,
    EntityKind,
    OrderRecord,
    Record,
    RelationalOp,
    RelationalPredicate,
)
from services.state.record_authority.errors import (
    RecordNotFoundError,
    RecordValidationError,
)
from services.state.record_authority.interfaces import RecordStore

_LOGGER = get_logger(__name__)

HISTORY_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
TAG_MAX_LENGTH = 100


class MutationService:
    """Load-modify-write orchestration over one RecordStore.

    Every write passes the loaded ``version`` as ``expected_version`` so a
    concurrent change surfaces as ``ConcurrencyConflictError`` instead of
    being overwritten. Nothing is retried here.
    """

    def __init__(self, *, store: RecordStore, clock: Callable[[], datetime]) -> None:
        self._store = store
        self._clock = clock

    def create(self, *, kind: EntityKind, values: Mapping[str, Any]) -> Record:
        """Insert one record, stamping creation timestamps from the clock."""
        now = self._now()
        stamped = dict(values)
        if kind == EntityKind.LOG_ENTRY:
            stamped["timestamp"] = now
        else:
            stamped["created_at"] = now
            stamped["updated_at"] = now

        if kind == EntityKind.ORDER:
            user_id = str(stamped["user_id"])
            if self._store.get(kind=EntityKind.USER, record_id=user_id) is None:
                raise RecordNotFoundError(kind=EntityKind.USER, record_id=user_id)
            stamped.setdefault("order_history", [])

        return self._store.insert(kind=kind, values=stamped)

    def apply_patch(
        self,
        *,
        kind: EntityKind,
        record_id: str,
        field: str,
        operation: PatchOperation,
    ) -> Record:
        """Apply one document operation; no-op operations never write."""
        self._require_mutable(kind)
        shape = DOCUMENT_FIELDS[kind].get(field)
        if shape is None:
            raise RecordValidationError(
                f"{field} is not a document field of {kind}", field=field
            )

        if kind == EntityKind.PRODUCT and field == "tags":
            operation = _tag_set_operation(operation)

        record = self._load(kind, record_id)
        outcome = apply_operation(getattr(record, field), operation, shape=shape)
        if not outcome.changed:
            return record

        return self._store.update(
            kind=kind,
            record_id=record_id,
            changes={field: outcome.value, "updated_at": self._now()},
            expected_version=record.version,
        )

    def update_fields(
        self,
        *,
        kind: EntityKind,
        record_id: str,
        changes: Mapping[str, Any],
    ) -> Record:
        """Update relational columns; unchanged values are not rewritten."""
        self._require_mutable(kind)
        allowed = UPDATABLE_FIELDS[kind]
        unknown = sorted(set(changes) - allowed)
        if unknown:
            raise RecordValidationError(
                f"fields not updatable on {kind}: {', '.join(unknown)}",
                field=unknown[0],
            )
        if not changes:
            raise RecordValidationError("at least one field change is required")

        record = self._load(kind, record_id)
        effective = {
            name: value
            for name, value in changes.items()
            if not documents_equal(getattr(record, name), value)
        }
        if not effective:
            return record

        return self._store.update(
            kind=kind,
            record_id=record_id,
            changes={**effective, "updated_at": self._now()},
            expected_version=record.version,
        )

    def set_order_status(self, *, order_id: str, status: str) -> Record:
        """Set order status and append the transition to ``order_history``.

        Status and history are written in one row update, so either both are
        persisted or neither is.
        """
        record = self._load(EntityKind.ORDER, order_id)
        assert isinstance(record, OrderRecord)
        now = self._now()
        entry = {
            "timestamp": now.strftime(HISTORY_TIMESTAMP_FORMAT),
            "from": record.status,
            "to": status,
        }
        history = apply_operation(
            record.order_history,
            AppendArrayElement(entry),
            shape=DOCUMENT_FIELDS[EntityKind.ORDER]["order_history"],
        )
        updated = self._store.update(
            kind=EntityKind.ORDER,
            record_id=order_id,
            changes={
                "status": status,
                "order_history": history.value,
                "updated_at": now,
            },
            expected_version=record.version,
        )
        _LOGGER.info(
            "order status changed: order_id=%s from=%s to=%s",
            order_id,
            record.status,
            status,
        )
        return updated

    def add_tag(self, *, product_id: str, tag: str) -> Record:
        """Insert one tag unless already present."""
        return self.apply_patch(
            kind=EntityKind.PRODUCT,
            record_id=product_id,
            field="tags",
            operation=InsertUniqueScalar(tag),
        )

    def remove_tag(self, *, product_id: str, tag: str) -> Record:
        """Remove one tag when present."""
        return self.apply_patch(
            kind=EntityKind.PRODUCT,
            record_id=product_id,
            field="tags",
            operation=RemoveScalar(tag),
        )

    def delete(self, *, kind: EntityKind, record_id: str) -> None:
        """Delete one record; missing rows raise ``RecordNotFoundError``."""
        if not self._store.delete(kind=kind, record_id=record_id):
            raise RecordNotFoundError(kind=kind, record_id=record_id)

    def cleanup_logs(self, *, days_old: int) -> int:
        """Delete log entries older than ``days_old`` days and return the count."""
        cutoff = self._now() - timedelta(days=days_old)
        deleted = self._store.delete_by_relational_filter(
            kind=EntityKind.LOG_ENTRY,
            field="timestamp",
            predicate=RelationalPredicate(op=RelationalOp.LT, value=cutoff),
        )
        _LOGGER.info("log cleanup: cutoff=%s deleted=%d", cutoff.isoformat(), deleted)
        return deleted

    def purge(self, *, kind: EntityKind) -> int:
        """Delete every record of one kind."""
        return self._store.delete_all(kind=kind)

    def _load(self, kind: EntityKind, record_id: str) -> Record:
        record = self._store.get(kind=kind, record_id=record_id)
        if record is None:
            raise RecordNotFoundError(kind=kind, record_id=record_id)
        return record

    def _require_mutable(self, kind: EntityKind) -> None:
        if kind in IMMUTABLE_KINDS:
            raise RecordValidationError(f"{kind} records are immutable")

    def _now(self) -> datetime:
        value = self._clock()
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)



def _tag_set_operation(operation: PatchOperation) -> PatchOperation:
    """Rewrite an operation on product ``tags`` so the field stays a set.

    Tags are trimmed non-empty strings. Appends become unique inserts and
    replacements drop repeats, keeping first occurrence order.
    """
    if isinstance(operation, Replace):
        if not isinstance(operation.value, (list, tuple)):
            return operation
        tags: list[str] = []
        for item in operation.value:
            tag = _normalize_tag(item)
            if tag not in tags:
                tags.append(tag)
        return Replace(tags)
    if isinstance(operation, AppendArrayElement):
        return InsertUniqueScalar(_normalize_tag(operation.element))
    if isinstance(operation, InsertUniqueScalar):
        return InsertUniqueScalar(_normalize_tag(operation.value))
    if isinstance(operation, RemoveScalar):
        return RemoveScalar(_normalize_tag(operation.value))
    return operation


def _normalize_tag(value: object) -> str:
    if not isinstance(value, str):
        raise ShapeMismatchError(
            "tags must be an array of strings",
            expected="string",
            actual=type(value).__name__,
        )
    tag = value.strip()
    if not tag:
        raise RecordValidationError("tags must not be blank", field="tags")
    if len(tag) > TAG_MAX_LENGTH:
        raise RecordValidationError(
            f"tags must be at most {TAG_MAX_LENGTH} characters", field="tags"
        )
    return tag
