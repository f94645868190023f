"""SQLAlchemy column helpers for ULID-keyed record tables."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column
from sqlalchemy.dialects.postgresql import BYTEA

ULID_BYTES_LENGTH = 16


def record_id_column(name: str = "id", *, table: str) -> Column[bytes]:
    """Return a BYTEA primary key constrained to 16-byte ULIDs."""
    return Column(
        name,
        BYTEA,
        _length_check(name, f"ck_{table}_{name}_ulid_16"),
        primary_key=True,
        nullable=False,
    )


def record_reference_column(name: str, *, table: str) -> Column[bytes]:
    """Return a non-null ULID column referencing another record by id.

    No foreign key is declared; referential checks belong to the owning
    service so that deletes never cascade.
    """
    return Column(
        name,
        BYTEA,
        _length_check(name, f"ck_{table}_{name}_ulid_16"),
        nullable=False,
    )


def _length_check(column_name: str, constraint_name: str) -> CheckConstraint:
    return CheckConstraint(
        f"octet_length({column_name}) = {ULID_BYTES_LENGTH}",
        name=constraint_name,
    )
