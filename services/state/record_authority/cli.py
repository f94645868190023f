"""Operator commands for the Record Authority Service."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Callable, Sequence
from typing import Any

from packages.docstore_shared.config import DocstoreSettings, load_settings
from packages.docstore_shared.envelope import Envelope, EnvelopeKind, new_meta
from packages.docstore_shared.logging import configure_logging, get_logger
from services.state.record_authority.service import (
    RecordAuthorityService,
    build_record_authority_service,
)

_LOGGER = get_logger(__name__)

ServiceFactory = Callable[[DocstoreSettings], RecordAuthorityService]


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    """Parse CLI arguments for record administration."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override logging.level from settings.",
    )
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("migrate", help="Create the schema and run migrations.")
    commands.add_parser("health", help="Report service and Postgres readiness.")
    commands.add_parser("seed-demo", help="Populate the demo dataset.")
    commands.add_parser("clear-demo", help="Delete every record of every kind.")
    cleanup = commands.add_parser("cleanup-logs", help="Delete old log entries.")
    cleanup.add_argument("--days-old", type=int, default=None)
    return parser.parse_args(argv)


def main(
    argv: Sequence[str] | None = None,
    *,
    service_factory: ServiceFactory | None = None,
) -> int:
    """Run one operator command and print its JSON result."""
    args = _parse_args(argv)
    cli_params: dict[str, Any] = {}
    if args.log_level is not None:
        cli_params["logging"] = {"level": args.log_level}
    settings = load_settings(cli_params=cli_params)
    configure_logging(
        level=settings.logging.level,
        json_output=settings.logging.json_output,
        service=settings.logging.service,
        environment=settings.logging.environment,
    )
    _LOGGER.info("running record admin command: %s", args.command)

    if args.command == "migrate":
        from services.state.record_authority.data.migrations import (
            run_record_migrations,
        )

        result = run_record_migrations(settings=settings)
        print(json.dumps({"schema": result.schema, "revision": result.revision}))
        return 0

    factory = service_factory or (
        lambda resolved: build_record_authority_service(settings=resolved)
    )
    service = factory(settings)
    meta = new_meta(kind=EnvelopeKind.COMMAND, source="cli", principal="operator")

    if args.command == "health":
        return _emit(service.health(meta=meta))
    if args.command == "cleanup-logs":
        return _emit(service.cleanup_logs(meta=meta, days_old=args.days_old))

    from services.state.record_authority.demo import clear_demo_data, seed_demo_data

    if args.command == "seed-demo":
        return _emit(seed_demo_data(service, meta=meta))
    return _emit(clear_demo_data(service, meta=meta))


def _emit(result: Envelope[Any]) -> int:
    """Print one envelope outcome and map it to a process exit code."""
    if not result.ok:
        for error in result.errors:
            print(f"ERROR: {error.code}: {error.message}", file=sys.stderr)
        return 1
    value = result.payload.value if result.payload is not None else None
    if hasattr(value, "model_dump"):
        value = value.model_dump(mode="json")
    print(json.dumps(value, sort_keys=True, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
