"""Session lifecycle helpers for shared Postgres substrate access."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a non-expiring session factory bound to ``engine``."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def transactional_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Yield a session inside one transaction.

    The transaction commits when the block exits normally and rolls back when
    it raises; the exception always propagates.
    """
    with session_factory() as session, session.begin():
        yield session
