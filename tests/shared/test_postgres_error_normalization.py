"""Tests for Postgres exception normalization into shared error taxonomy."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError, OperationalError

from packages.docstore_shared.errors import codes
from resources.substrates.postgres.errors import (
    is_postgres_error,
    is_unique_violation,
    normalize_postgres_error,
)


def test_normalize_unique_violation_maps_to_conflict() -> None:
    """Unique key failures should map to conflict/already-exists semantics."""

    class UniqueViolation(Exception):
        """Synthetic unique-violation exception."""

    error = normalize_postgres_error(
        UniqueViolation("duplicate key value violates unique constraint")
    )
    assert error.category.value == "conflict"
    assert error.code == codes.ALREADY_EXISTS


def test_unique_violation_detected_through_wrapped_driver_error() -> None:
    """SQLAlchemy wrappers should expose the driver's unique violation."""

    class UniqueViolation(Exception):
        """Synthetic driver exception."""

    wrapped = IntegrityError("INSERT ...", {}, UniqueViolation("uq_users_email"))

    assert is_unique_violation(wrapped) is True
    assert is_postgres_error(wrapped) is True


def test_normalize_operational_errors_map_to_retryable_dependency() -> None:
    """Operational/timeout failures should be retryable dependency errors."""
    error = normalize_postgres_error(
        OperationalError("SELECT 1", {}, Exception("connection refused"))
    )
    assert error.category.value == "dependency"
    assert error.code == codes.DEPENDENCY_UNAVAILABLE
    assert error.retryable is True
    assert error.metadata == {"exception_type": "OperationalError"}


def test_normalize_programming_errors_map_to_non_retryable_dependency() -> None:
    """Interface/programming failures should be non-retryable dependency errors."""

    class ProgrammingError(Exception):
        """Synthetic programming exception."""

    error = normalize_postgres_error(ProgrammingError("bad SQL"))
    assert error.category.value == "dependency"
    assert error.retryable is False


def test_normalize_unknown_exception_maps_to_internal() -> None:
    """Unexpected failures should map to internal/unexpected semantics."""
    error = normalize_postgres_error(RuntimeError("boom"))
    assert error.category.value == "internal"
    assert error.code == codes.UNEXPECTED_EXCEPTION
    assert is_postgres_error(RuntimeError("boom")) is False
