"""Shared Postgres substrate primitives for docstore services."""

from resources.substrates.postgres.bootstrap import ensure_service_schema
from resources.substrates.postgres.component import RESOURCE_COMPONENT_ID
from resources.substrates.postgres.config import (
    PostgresSettings,
    resolve_postgres_settings,
)
from resources.substrates.postgres.engine import create_postgres_engine
from resources.substrates.postgres.errors import (
    is_postgres_error,
    is_unique_violation,
    normalize_postgres_error,
)
from resources.substrates.postgres.health import PostgresProbe, ping, probe
from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from resources.substrates.postgres.session import (
    create_session_factory,
    transactional_session,
)

__all__ = [
    "RESOURCE_COMPONENT_ID",
    "PostgresProbe",
    "PostgresSettings",
    "ServiceSchemaSessionProvider",
    "create_postgres_engine",
    "create_session_factory",
    "ensure_service_schema",
    "is_postgres_error",
    "is_unique_violation",
    "normalize_postgres_error",
    "ping",
    "probe",
    "resolve_postgres_settings",
    "transactional_session",
]
