"""Health-check utilities for the Postgres shared substrate."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine, text


@dataclass(frozen=True)
class PostgresProbe:
    """Outcome of one bounded readiness probe."""

    ready: bool
    detail: str


def probe(engine: Engine, *, timeout_seconds: float = 1.0) -> PostgresProbe:
    """Run ``SELECT 1`` under a local statement timeout and report readiness."""
    timeout_ms = max(1, int(timeout_seconds * 1000))
    try:
        with engine.connect() as conn:
            conn.execute(
                text("SELECT set_config('statement_timeout', :timeout_value, false)"),
                {"timeout_value": f"{timeout_ms}ms"},
            )
            conn.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        return PostgresProbe(
            ready=False,
            detail=f"postgres ping failed: {type(exc).__name__}",
        )
    return PostgresProbe(ready=True, detail="ok")


def ping(engine: Engine, *, timeout_seconds: float = 1.0) -> bool:
    """Return True when the database can answer a trivial query quickly."""
    return probe(engine, timeout_seconds=timeout_seconds).ready
