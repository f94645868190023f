"""Ephemeral Postgres fixtures for integration tests."""

from __future__ import annotations

import os
import socket
import subprocess
import time
from collections.abc import Iterator
from dataclasses import dataclass

import pytest
from sqlalchemy import create_engine, text

from packages.docstore_shared.config import DocstoreSettings
from services.state.record_authority.data.migrations import run_record_migrations
from tests.integration.helpers import real_provider_tests_enabled

_POSTGRES_IMAGE = "postgres:16"
_URL_ENV = "DOCSTORE_COMPONENTS__SUBSTRATE__POSTGRES__URL"


@dataclass(frozen=True, slots=True)
class RunningContainer:
    """Lightweight handle for a running temporary Docker container."""

    container_id: str
    host: str
    port: int


def _run_command(*args: str) -> subprocess.CompletedProcess[str]:
    """Execute one command and return captured stdout/stderr."""
    return subprocess.run(args, check=True, capture_output=True, text=True)


def _docker_available() -> bool:
    """Return True when docker CLI is callable in the current environment."""
    try:
        _run_command("docker", "version")
    except (FileNotFoundError, subprocess.CalledProcessError):
        return False
    return True


def _parse_published_port(port_output: str) -> tuple[str, int]:
    """Parse ``docker port`` output into host and integer port."""
    line = port_output.strip().splitlines()[0].strip()
    host, port = line.rsplit(":", maxsplit=1)
    return host, int(port)


def _wait_for_tcp(host: str, port: int, *, timeout_seconds: float = 30.0) -> None:
    """Wait until one TCP endpoint accepts a connection or time out."""
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        try:
            with socket.create_connection((host, port), timeout=0.5):
                return
        except OSError:
            time.sleep(0.2)
    raise TimeoutError(f"timed out waiting for TCP endpoint {host}:{port}")


def _wait_for_sql(dsn: str, *, timeout_seconds: float = 60.0) -> None:
    """Wait until Postgres answers ``SELECT 1`` from the host side."""
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        engine = create_engine(dsn, pool_pre_ping=True)
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return
        except Exception:  # noqa: BLE001
            time.sleep(0.2)
        finally:
            engine.dispose()
    raise TimeoutError("timed out waiting for Postgres readiness")


def _start_postgres() -> RunningContainer:
    """Start one detached Postgres container and return its mapped endpoint."""
    run_result = _run_command(
        "docker",
        "run",
        "--detach",
        "--rm",
        "--publish",
        "127.0.0.1::5432",
        "--env",
        "POSTGRES_USER=docstore",
        "--env",
        "POSTGRES_PASSWORD=docstore",
        "--env",
        "POSTGRES_DB=docstore",
        _POSTGRES_IMAGE,
    )
    container_id = run_result.stdout.strip()
    port_result = _run_command("docker", "port", container_id, "5432/tcp")
    host, port = _parse_published_port(port_result.stdout)
    _wait_for_tcp(host, port)
    return RunningContainer(container_id=container_id, host=host, port=port)


def _stop_container(container_id: str) -> None:
    """Stop one running container and ignore teardown-time failures."""
    subprocess.run(
        ("docker", "stop", container_id),
        check=False,
        capture_output=True,
        text=True,
    )


@pytest.fixture(scope="session")
def postgres_dsn() -> Iterator[str]:
    """Yield a Postgres DSN: an explicit env URL, else a temporary container."""
    if not real_provider_tests_enabled():
        pytest.skip("real-provider integration tests disabled")

    explicit = os.environ.get(_URL_ENV, "").strip()
    if explicit:
        _wait_for_sql(explicit, timeout_seconds=5.0)
        yield explicit
        return

    if not _docker_available():
        pytest.skip("docker unavailable for integration tests")
    container = _start_postgres()
    dsn = (
        "postgresql+psycopg://docstore:docstore"
        f"@{container.host}:{container.port}/docstore"
    )
    try:
        _wait_for_sql(dsn)
        yield dsn
    finally:
        _stop_container(container.container_id)


@pytest.fixture(scope="session")
def integration_settings(postgres_dsn: str) -> DocstoreSettings:
    """Return settings bound to the integration Postgres instance."""
    return DocstoreSettings(
        components={"substrate": {"postgres": {"url": postgres_dsn}}}  # type: ignore[arg-type]
    )


@pytest.fixture(scope="session")
def migrated_integration_settings(
    integration_settings: DocstoreSettings, postgres_dsn: str
) -> DocstoreSettings:
    """Run RAS migrations against integration Postgres and return settings."""
    previous = os.environ.get(_URL_ENV)
    os.environ[_URL_ENV] = postgres_dsn
    try:
        run_record_migrations(settings=integration_settings)
    finally:
        if previous is None:
            os.environ.pop(_URL_ENV, None)
        else:
            os.environ[_URL_ENV] = previous
    return integration_settings
