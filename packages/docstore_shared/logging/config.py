"""Stdout logging configuration for docstore services.

Logs always go to stdout, either as newline-delimited JSON or as a plain line
with the bound context appended as ``key=value`` pairs.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

from . import fields
from .context import bind_context, get_context

_PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_PLAIN_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


class ContextFilter(logging.Filter):
    """Snapshot the bound context onto ``record.context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = get_context()
        return True


def _record_context(record: logging.LogRecord) -> dict[str, str]:
    context = getattr(record, "context", None)
    return context if isinstance(context, dict) else {}


class JsonFormatter(logging.Formatter):
    """One JSON object per line; context keys sit beside the core fields."""

    def format(self, record: logging.LogRecord) -> str:
        document: dict[str, object] = {
            fields.TIMESTAMP: datetime.fromtimestamp(record.created, UTC).isoformat(),
            fields.LEVEL: record.levelname,
            fields.LOGGER: record.name,
            fields.MESSAGE: record.getMessage(),
            **_record_context(record),
        }
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        return json.dumps(document, default=str, separators=(",", ":"))


class PlainFormatter(logging.Formatter):
    """Readable single line with context appended in key order."""

    def __init__(self) -> None:
        super().__init__(fmt=_PLAIN_FORMAT, datefmt=_PLAIN_DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        pairs = [f"{key}={context[key]}" for key in sorted(context)]
        return " ".join([line, *pairs])


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = True,
    service: str | None = None,
    environment: str | None = None,
) -> None:
    """Install a single stdout handler on the root logger.

    Calling it again replaces the handler rather than adding a second one.
    ``service`` and ``environment`` are bound into the logging context.
    """
    resolved_level = level.upper()
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(resolved_level)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter() if json_output else PlainFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(resolved_level)

    bind_context(
        **{fields.SERVICE: service or None, fields.ENVIRONMENT: environment or None}
    )


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a standard-library logger."""
    return logging.getLogger(name)
