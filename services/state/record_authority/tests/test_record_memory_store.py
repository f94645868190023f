"""Unit tests for the in-memory RecordStore."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from packages.docstore_shared.ids import is_record_id, new_record_id
from services.state.record_authority.data import InMemoryRecordStore
from services.state.record_authority.domain import (
    EntityKind,
    RelationalOp,
    RelationalPredicate,
    SortOrder,
)
from services.state.record_authority.errors import (
    ConcurrencyConflictError,
    DuplicateRecordError,
    RecordNotFoundError,
)

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _user_values(email: str, **extra: Any) -> dict[str, Any]:
    values: dict[str, Any] = {
        "email": email,
        "name": email.split("@")[0],
        "created_at": _NOW,
        "updated_at": _NOW,
    }
    values.update(extra)
    return values


def test_insert_assigns_ulid_and_initial_version() -> None:
    """Inserted rows should carry a generated id at version 1."""
    store = InMemoryRecordStore()

    record = store.insert(kind=EntityKind.USER, values=_user_values("a@example.com"))

    assert is_record_id(record.id)
    assert record.version == 1
    assert store.get(kind=EntityKind.USER, record_id=record.id) == record


def test_stored_documents_do_not_alias_caller_values() -> None:
    """Mutating the caller's dict after insert must not change the row."""
    store = InMemoryRecordStore()
    profile = {"age": 30, "interests": ["reading"]}

    record = store.insert(
        kind=EntityKind.USER, values=_user_values("a@example.com", profile=profile)
    )
    profile["interests"].append("gaming")

    stored = store.get(kind=EntityKind.USER, record_id=record.id)
    assert stored is not None
    assert stored.profile == {"age": 30, "interests": ["reading"]}


def test_returned_records_do_not_alias_stored_rows() -> None:
    """Mutating a record handed out by any read or write must not change the row."""
    store = InMemoryRecordStore()
    profile = {"age": 30, "interests": ["reading"]}
    inserted = store.insert(
        kind=EntityKind.USER, values=_user_values("a@example.com", profile=profile)
    )

    inserted.profile["interests"].append("from-insert")
    fetched = store.get(kind=EntityKind.USER, record_id=inserted.id)
    assert fetched is not None
    fetched.profile["interests"].append("from-get")
    store.scan_all(kind=EntityKind.USER)[0].profile["age"] = 99
    store.find_by_containment(
        kind=EntityKind.USER, field="profile", probe={"age": 30}
    )[0].profile["interests"].clear()
    updated = store.update(
        kind=EntityKind.USER, record_id=inserted.id, changes={"name": "alice"}
    )
    updated.profile["interests"].append("from-update")
    with pytest.raises(ConcurrencyConflictError) as conflict:
        store.update(
            kind=EntityKind.USER,
            record_id=inserted.id,
            changes={"name": "bob"},
            expected_version=1,
        )
    conflict.value.current.profile["interests"].append("from-conflict")

    stored = store.get(kind=EntityKind.USER, record_id=inserted.id)
    assert stored is not None
    assert stored.profile == {"age": 30, "interests": ["reading"]}
    assert stored.name == "alice"
    assert stored.version == 2


def test_update_increments_version_and_checks_expected_version() -> None:
    """Stale expected versions should raise with the current row attached."""
    store = InMemoryRecordStore()
    record = store.insert(kind=EntityKind.USER, values=_user_values("a@example.com"))

    updated = store.update(
        kind=EntityKind.USER,
        record_id=record.id,
        changes={"name": "renamed"},
        expected_version=1,
    )
    assert updated.version == 2

    with pytest.raises(ConcurrencyConflictError) as excinfo:
        store.update(
            kind=EntityKind.USER,
            record_id=record.id,
            changes={"name": "stale"},
            expected_version=1,
        )
    assert excinfo.value.current.version == 2
    assert excinfo.value.current.name == "renamed"


def test_update_missing_record_raises_not_found() -> None:
    """Updating an unknown id should raise RecordNotFoundError."""
    store = InMemoryRecordStore()

    with pytest.raises(RecordNotFoundError):
        store.update(
            kind=EntityKind.PRODUCT,
            record_id=new_record_id(),
            changes={"name": "x"},
        )


def test_unique_email_is_enforced_on_insert_and_update() -> None:
    """Emails should stay unique across users."""
    store = InMemoryRecordStore()
    store.insert(kind=EntityKind.USER, values=_user_values("a@example.com"))
    other = store.insert(kind=EntityKind.USER, values=_user_values("b@example.com"))

    with pytest.raises(DuplicateRecordError):
        store.insert(kind=EntityKind.USER, values=_user_values("a@example.com"))
    with pytest.raises(DuplicateRecordError):
        store.update(
            kind=EntityKind.USER,
            record_id=other.id,
            changes={"email": "a@example.com"},
        )


def test_containment_lookup_filters_and_orders() -> None:
    """Containment lookups should match nested subsets and honor ordering."""
    store = InMemoryRecordStore()
    first = store.insert(
        kind=EntityKind.USER,
        values=_user_values("a@example.com", address={"city": "Oslo", "zip": "0150"}),
    )
    second = store.insert(
        kind=EntityKind.USER,
        values=_user_values(
            "b@example.com",
            address={"city": "Oslo"},
            created_at=_NOW + timedelta(minutes=1),
        ),
    )
    store.insert(
        kind=EntityKind.USER,
        values=_user_values("c@example.com", address={"city": "Bergen"}),
    )

    matches = store.find_by_containment(
        kind=EntityKind.USER,
        field="address",
        probe={"city": "Oslo"},
        order=SortOrder(field="created_at", descending=True),
    )

    assert [item.id for item in matches] == [second.id, first.id]


def test_containment_lookup_rejects_relational_field() -> None:
    """Only document fields accept containment probes."""
    store = InMemoryRecordStore()

    with pytest.raises(ValueError):
        store.find_by_containment(kind=EntityKind.USER, field="email", probe={})


def test_delete_by_relational_filter_returns_count() -> None:
    """Filtered deletes should remove only matching rows."""
    store = InMemoryRecordStore()
    for offset_days, message in ((40, "old"), (10, "new")):
        store.insert(
            kind=EntityKind.LOG_ENTRY,
            values={
                "level": "info",
                "message": message,
                "timestamp": _NOW - timedelta(days=offset_days),
            },
        )

    deleted = store.delete_by_relational_filter(
        kind=EntityKind.LOG_ENTRY,
        field="timestamp",
        predicate=RelationalPredicate(op=RelationalOp.LT, value=_NOW - timedelta(days=30)),
    )

    assert deleted == 1
    assert [item.message for item in store.scan_all(kind=EntityKind.LOG_ENTRY)] == ["new"]


def test_delete_and_delete_all() -> None:
    """Deletes should report existence and purge counts."""
    store = InMemoryRecordStore()
    record = store.insert(kind=EntityKind.USER, values=_user_values("a@example.com"))
    store.insert(kind=EntityKind.USER, values=_user_values("b@example.com"))

    assert store.delete(kind=EntityKind.USER, record_id=record.id) is True
    assert store.delete(kind=EntityKind.USER, record_id=record.id) is False
    assert store.delete_all(kind=EntityKind.USER) == 1
    assert store.scan_all(kind=EntityKind.USER) == []
