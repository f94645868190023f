"""Tests for shared error factories and exception normalization."""

from __future__ import annotations

from packages.docstore_shared.errors import (
    ErrorCategory,
    codes,
    conflict_error,
    exception_to_error,
    validation_error,
)


def test_factories_stringify_metadata_values() -> None:
    """Metadata values are normalized to strings for transport."""
    error = validation_error("bad", metadata={"field": "price", "limit": 5})  # type: ignore[dict-item]

    assert error.category is ErrorCategory.VALIDATION
    assert error.code == codes.VALIDATION_ERROR
    assert error.metadata == {"field": "price", "limit": "5"}


def test_conflict_errors_can_be_retryable() -> None:
    """Optimistic-concurrency conflicts are marked retryable by the caller."""
    error = conflict_error("stale", code=codes.CONCURRENCY_CONFLICT, retryable=True)

    assert error.category is ErrorCategory.CONFLICT
    assert error.retryable is True


def test_exception_to_error_maps_builtin_exception_families() -> None:
    """Generic Python exceptions map onto the shared taxonomy."""
    assert exception_to_error(ValueError("x")).code == codes.INVALID_ARGUMENT
    assert exception_to_error(KeyError("x")).category is ErrorCategory.NOT_FOUND
    timeout = exception_to_error(TimeoutError())
    assert timeout.code == codes.DEPENDENCY_TIMEOUT
    assert timeout.retryable is True
    assert timeout.message == "dependency timeout"
    assert exception_to_error(ConnectionError()).code == codes.DEPENDENCY_UNAVAILABLE


def test_exception_to_error_falls_back_to_internal() -> None:
    """Unknown exceptions become non-retryable internal errors."""
    error = exception_to_error(RuntimeError("boom"))

    assert error.category is ErrorCategory.INTERNAL
    assert error.code == codes.UNEXPECTED_EXCEPTION
    assert error.retryable is False
    assert error.metadata == {"exception_type": "RuntimeError"}
