"""Tests for stdout logging configuration and context propagation."""

from __future__ import annotations

import json
import logging

import pytest

from packages.docstore_shared.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_context,
    log_context,
)
from packages.docstore_shared.logging.config import JsonFormatter, PlainFormatter


@pytest.fixture(autouse=True)
def _restore_logging():
    """Keep root handlers and bound context isolated per test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    clear_context()
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    clear_context()


def _record(message: str) -> logging.LogRecord:
    record = logging.LogRecord("docstore.test", logging.INFO, __file__, 1, message, (), None)
    record.context = get_context()
    return record


def test_configure_logging_installs_single_stdout_handler() -> None:
    """Repeated configuration should never duplicate handlers."""
    configure_logging(level="debug", service="docstore", environment="test")
    configure_logging(level="debug", service="docstore", environment="test")

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.level == logging.DEBUG
    assert get_context() == {"service": "docstore", "environment": "test"}


def test_json_formatter_merges_bound_context() -> None:
    """JSON logs carry core fields plus bound context keys."""
    bind_context(trace_id="trace-1", skipped=None)

    payload = json.loads(JsonFormatter().format(_record("hello")))

    assert payload["message"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "docstore.test"
    assert payload["trace_id"] == "trace-1"
    assert "skipped" not in payload


def test_plain_formatter_appends_sorted_context() -> None:
    """Plain logs append ``key=value`` pairs in key order."""
    with log_context({"b": 2, "a": 1}):
        line = PlainFormatter().format(_record("hello"))

    assert line.endswith("hello a=1 b=2")
    assert get_context() == {}


def test_clear_context_removes_selected_keys() -> None:
    """clear_context with keys should leave other keys bound."""
    bind_context(a="1", b="2")

    clear_context("a")

    assert get_context() == {"b": "2"}
