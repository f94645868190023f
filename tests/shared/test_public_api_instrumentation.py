"""Tests for public API instrumentation decorator and concerns."""

from __future__ import annotations

import ast
import logging
from pathlib import Path

import pytest

from packages.docstore_shared.envelope import EnvelopeKind, failure, new_meta, success
from packages.docstore_shared.errors import codes, not_found_error
from packages.docstore_shared.logging import get_context, public_api_instrumented
from packages.docstore_shared.logging.public_api import (
    CompletionContext,
    InvocationContext,
    PublicApiMetricsConcern,
    PublicApiTracingConcern,
)

_REPO_ROOT = Path(__file__).resolve().parents[2]


class _RecordingConcern:
    """Concern double capturing every hook call."""

    def __init__(self) -> None:
        self.invocations: list[InvocationContext] = []
        self.completions: list[CompletionContext] = []

    def on_invocation(self, context: InvocationContext) -> None:
        self.invocations.append(context)

    def on_completion(self, context: CompletionContext) -> None:
        self.completions.append(context)


class _ExplodingConcern:
    """Concern double whose hooks always fail."""

    def on_invocation(self, context: InvocationContext) -> None:
        raise RuntimeError("invocation hook broke")

    def on_completion(self, context: CompletionContext) -> None:
        raise RuntimeError("completion hook broke")


class _FakeCounter:
    def __init__(self) -> None:
        self.calls: list[tuple[int | float, dict[str, str]]] = []

    def add(self, amount: int | float, attributes: dict[str, str]) -> None:
        self.calls.append((amount, dict(attributes)))


class _FakeHistogram:
    def __init__(self) -> None:
        self.samples: list[tuple[float, dict[str, str]]] = []

    def record(self, amount: float, attributes: dict[str, str]) -> None:
        self.samples.append((amount, dict(attributes)))


class _FakeSpan:
    def __init__(self) -> None:
        self.attributes: dict[str, object] = {}

    def set_attribute(self, key: str, value: object) -> None:
        self.attributes[key] = value

    def record_exception(self, exception: Exception) -> None:
        self.attributes["exception"] = str(exception)

    def set_status(self, status: object) -> None:
        self.attributes["status"] = status


class _FakeSpanManager:
    def __init__(self, span: _FakeSpan) -> None:
        self.span = span
        self.exited = False

    def __enter__(self) -> _FakeSpan:
        return self.span

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.exited = True


class _FakeTracer:
    def __init__(self) -> None:
        self.names: list[str] = []
        self.managers: list[_FakeSpanManager] = []

    def start_as_current_span(self, name: str) -> _FakeSpanManager:
        self.names.append(name)
        manager = _FakeSpanManager(_FakeSpan())
        self.managers.append(manager)
        return manager


def _meta() -> object:
    return new_meta(
        kind=EnvelopeKind.QUERY,
        source="test",
        principal="operator",
        trace_id="trace-1",
        envelope_id="env-1",
    )


def _invocation() -> InvocationContext:
    return InvocationContext(
        component_id="service_record_authority",
        api_name="get_record",
        trace_id="trace-1",
        envelope_id="env-1",
        principal="operator",
        references={"kind": "user"},
    )


def test_decorator_reports_references_and_envelope_outcome() -> None:
    """Decorated calls should surface ids, trace fields, and error summaries."""
    concern = _RecordingConcern()

    class _Service:
        @public_api_instrumented(
            component_id="service_record_authority",
            id_fields=("kind", "record_id"),
            concerns=(concern,),
        )
        def get_record(self, *, meta, kind: str, record_id: str):
            return failure(
                meta=meta,
                errors=[not_found_error("user not found", code=codes.RESOURCE_NOT_FOUND)],
            )

    result = _Service().get_record(meta=_meta(), kind="user", record_id="01ABC")

    assert result.ok is False
    invocation = concern.invocations[0]
    assert invocation.api_name == "get_record"
    assert invocation.trace_id == "trace-1"
    assert invocation.references == {"kind": "user", "record_id": "01ABC"}
    completion = concern.completions[0]
    assert completion.success is False
    assert completion.errors == ["RESOURCE_NOT_FOUND: user not found"]
    assert completion.error_categories == ["not_found"]


def test_decorator_reports_raised_exceptions_and_reraises() -> None:
    """Exceptions escaping the method are recorded then propagated."""
    concern = _RecordingConcern()

    @public_api_instrumented(component_id="service_record_authority", concerns=(concern,))
    def explode(*, meta) -> None:
        raise KeyError("missing")

    with pytest.raises(KeyError):
        explode(meta=_meta())

    assert concern.completions[0].success is False
    assert concern.completions[0].error_categories == ["internal"]


def test_concern_failures_are_isolated_and_logged(caplog) -> None:
    """A broken concern must not break the call or other concerns."""
    caplog.set_level(logging.WARNING, logger="tests.instrumentation")
    recording = _RecordingConcern()
    logger = logging.getLogger("tests.instrumentation")

    @public_api_instrumented(
        component_id="service_record_authority",
        concerns=(_ExplodingConcern(), recording),
        logger=logger,
    )
    def health(*, meta):
        return success(meta=meta, payload=True)

    result = health(meta=_meta())

    assert result.ok is True
    assert len(recording.completions) == 1
    failures = [
        record.getMessage()
        for record in caplog.records
        if record.levelno == logging.WARNING
    ]
    assert failures.count("Public API instrumentation concern failed") == 2


def test_logging_concern_binds_context_only_while_logging(caplog) -> None:
    """Structured fields are scoped to the log call and then cleared."""
    caplog.set_level(logging.INFO, logger="tests.instrumentation.logging")
    logger = logging.getLogger("tests.instrumentation.logging")

    @public_api_instrumented(component_id="service_record_authority", logger=logger)
    def list_records(*, meta, kind: str):
        return success(meta=meta, payload=[])

    list_records(meta=_meta(), kind="user")

    messages = [record.getMessage() for record in caplog.records]
    assert messages[:2] == ["Public API invocation", "Public API completion"]
    assert get_context() == {}


def test_decorator_counts_list_payload_results() -> None:
    """List payloads report their length; scalar payloads report nothing."""
    concern = _RecordingConcern()

    @public_api_instrumented(component_id="service_record_authority", concerns=(concern,))
    def search(*, meta):
        return success(meta=meta, payload=["a", "b"])

    @public_api_instrumented(component_id="service_record_authority", concerns=(concern,))
    def health(*, meta):
        return success(meta=meta, payload=True)

    search(meta=_meta())
    health(meta=_meta())

    assert [item.result_count for item in concern.completions] == [2, None]


def test_metrics_concern_emits_error_series_per_category() -> None:
    """Failed completions should count one error per category."""
    calls = _FakeCounter()
    durations = _FakeHistogram()
    errors = _FakeCounter()
    concern = PublicApiMetricsConcern(
        public_api_calls_total=calls,
        public_api_duration_ms=durations,
        public_api_errors_total=errors,
    )

    concern.on_completion(
        CompletionContext(
            invocation=_invocation(),
            success=False,
            duration_ms=4.0,
            errors=["CONCURRENCY_CONFLICT: stale"],
            error_categories=["conflict"],
        )
    )

    assert calls.calls == [
        (
            1,
            {
                "component_id": "service_record_authority",
                "api_name": "get_record",
                "entity_kind": "user",
                "outcome": "failure",
            },
        )
    ]
    assert durations.samples[0][0] == 4.0
    assert errors.calls == [
        (
            1,
            {
                "component_id": "service_record_authority",
                "api_name": "get_record",
                "entity_kind": "user",
                "error_category": "conflict",
            },
        )
    ]


def test_tracing_concern_opens_and_closes_one_span_per_call() -> None:
    """Spans are named per component/method and closed on completion."""
    tracer = _FakeTracer()
    concern = PublicApiTracingConcern(tracer=tracer)

    concern.on_invocation(_invocation())
    concern.on_completion(
        CompletionContext(
            invocation=_invocation(),
            success=True,
            duration_ms=1.5,
            errors=[],
            error_categories=[],
        )
    )

    assert tracer.names == ["public_api.service_record_authority.get_record"]
    manager = tracer.managers[0]
    assert manager.exited is True
    assert manager.span.attributes["reference.kind"] == "user"
    assert manager.span.attributes["outcome"] == "success"


def test_record_service_public_methods_are_instrumented() -> None:
    """Every abstract RecordAuthorityService method needs instrumentation."""
    package = _REPO_ROOT / "services" / "state" / "record_authority"
    contract = _public_methods(package / "service.py", "RecordAuthorityService")
    decorated = _public_methods(
        package / "implementation.py",
        "DefaultRecordAuthorityService",
        require_decorator="public_api_instrumented",
    )

    assert contract
    assert sorted(contract - decorated) == []


def _public_methods(
    path: Path, class_name: str, *, require_decorator: str | None = None
) -> set[str]:
    module = ast.parse(path.read_text(encoding="utf-8"))
    for node in module.body:
        if isinstance(node, ast.ClassDef) and node.name == class_name:
            break
    else:
        raise AssertionError(f"class not found: {class_name} in {path}")

    names: set[str] = set()
    for child in node.body:
        if not isinstance(child, ast.FunctionDef) or child.name.startswith("_"):
            continue
        if require_decorator is None or any(
            _decorator_name(item) == require_decorator for item in child.decorator_list
        ):
            names.add(child.name)
    return names


def _decorator_name(node: ast.expr) -> str | None:
    if isinstance(node, ast.Call):
        node = node.func
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None
