"""RAS-owned Postgres runtime wiring."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from packages.docstore_shared.config import DocstoreSettings
from resources.substrates.postgres import (
    PostgresProbe,
    ServiceSchemaSessionProvider,
    create_postgres_engine,
    create_session_factory,
    probe,
    resolve_postgres_settings,
)
from services.state.record_authority.component import SERVICE_COMPONENT_ID


@dataclass(frozen=True)
class RecordPostgresRuntime:
    """Concrete RAS-owned handle for schema-scoped Postgres access."""

    engine: Engine
    session_factory: sessionmaker[Session]
    schema_sessions: ServiceSchemaSessionProvider
    health_timeout_seconds: float = 1.0

    @classmethod
    def from_settings(cls, settings: DocstoreSettings) -> "RecordPostgresRuntime":
        """Build RAS DB runtime from typed application settings."""
        postgres_settings = resolve_postgres_settings(settings)
        engine = create_postgres_engine(postgres_settings)
        session_factory = create_session_factory(engine)
        return cls(
            engine=engine,
            session_factory=session_factory,
            schema_sessions=ServiceSchemaSessionProvider(
                session_factory=session_factory,
                schema=record_postgres_schema(),
            ),
            health_timeout_seconds=postgres_settings.health_timeout_seconds,
        )

    def probe(self) -> PostgresProbe:
        """Return bounded readiness of the backing Postgres connection."""
        return probe(self.engine, timeout_seconds=self.health_timeout_seconds)


def record_postgres_schema() -> str:
    """Resolve canonical RAS schema name from component identity."""
    return SERVICE_COMPONENT_ID
