"""Schema provisioning and Alembic upgrade for RAS-owned tables."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import Engine

from packages.docstore_shared.config import DocstoreSettings
from packages.docstore_shared.logging import get_logger
from resources.substrates.postgres import (
    create_postgres_engine,
    ensure_service_schema,
    resolve_postgres_settings,
)
from services.state.record_authority.data.runtime import record_postgres_schema

_LOGGER = get_logger(__name__)

ALEMBIC_CONFIG_PATH = Path(__file__).resolve().parents[1] / "migrations" / "alembic.ini"


class MigrationExecutionError(RuntimeError):
    """Raised when RAS migration execution fails."""


@dataclass(frozen=True, slots=True)
class MigrationRunResult:
    """Summary of one RAS migration pass."""

    schema: str
    alembic_config: str
    revision: str


def run_record_migrations(
    *,
    settings: DocstoreSettings,
    revision: str = "head",
    engine_factory: Callable[[DocstoreSettings], Engine] | None = None,
    upgrade_fn: Callable[[Config, str], None] = command.upgrade,
    config_path: Path = ALEMBIC_CONFIG_PATH,
) -> MigrationRunResult:
    """Provision the RAS schema and upgrade it to ``revision``."""
    schema = record_postgres_schema()
    engine = (
        engine_factory(settings)
        if engine_factory is not None
        else create_postgres_engine(resolve_postgres_settings(settings))
    )
    try:
        ensure_service_schema(engine, schema)
    finally:
        engine.dispose()

    try:
        upgrade_fn(Config(str(config_path)), revision)
    except Exception as exc:
        raise MigrationExecutionError(
            f"record migration failed for config '{config_path}'"
        ) from exc

    _LOGGER.info("record schema %s upgraded to %s", schema, revision)
    return MigrationRunResult(
        schema=schema,
        alembic_config=str(config_path),
        revision=revision,
    )
