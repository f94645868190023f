"""Tests for Postgres substrate readiness probes and schema helpers."""

from __future__ import annotations

import pytest

from resources.substrates.postgres.bootstrap import ensure_service_schema
from resources.substrates.postgres.health import ping, probe
from resources.substrates.postgres.schema_session import validate_schema_name


class _FakeConnection:
    """Minimal context-managed connection double capturing execute calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, object] | None]] = []

    def __enter__(self) -> "_FakeConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb

    def execute(self, statement, params=None) -> None:
        self.calls.append((str(statement), params))


class _FakeEngine:
    """Minimal engine double exposing ``connect`` and ``begin``."""

    def __init__(self, conn: _FakeConnection) -> None:
        self._conn = conn

    def connect(self) -> _FakeConnection:
        return self._conn

    def begin(self) -> _FakeConnection:
        return self._conn


def test_ping_applies_statement_timeout_via_set_config() -> None:
    """Ping should set statement timeout with set_config then run SELECT 1."""
    conn = _FakeConnection()
    engine = _FakeEngine(conn)

    assert ping(engine, timeout_seconds=1.2) is True
    assert conn.calls[0] == (
        "SELECT set_config('statement_timeout', :timeout_value, false)",
        {"timeout_value": "1200ms"},
    )
    assert conn.calls[1] == ("SELECT 1", None)


def test_probe_reports_exception_type_when_query_fails() -> None:
    """Probe should degrade cleanly and name the failure type."""

    class _FailingConnection(_FakeConnection):
        def execute(self, statement, params=None) -> None:
            del statement, params
            raise RuntimeError("boom")

    engine = _FakeEngine(_FailingConnection())

    result = probe(engine, timeout_seconds=1.0)

    assert result.ready is False
    assert result.detail == "postgres ping failed: RuntimeError"
    assert ping(engine) is False


def test_ensure_service_schema_creates_schema_idempotently() -> None:
    """Schema provisioning should issue CREATE SCHEMA IF NOT EXISTS."""
    conn = _FakeConnection()

    ensure_service_schema(_FakeEngine(conn), "service_record_authority")

    assert conn.calls == [
        ("CREATE SCHEMA IF NOT EXISTS service_record_authority", None)
    ]


@pytest.mark.parametrize("schema", ["", "bad-name", "x; DROP TABLE users"])
def test_validate_schema_name_rejects_unsafe_names(schema: str) -> None:
    """Only alphanumeric/underscore schema names may reach search_path."""
    with pytest.raises(ValueError):
        validate_schema_name(schema)
