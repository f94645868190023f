"""Instrumentation for record-service public API methods.

``public_api_instrumented`` wraps a service method and reports each call to a
set of concerns. A concern receives one ``InvocationContext`` before the call
and one ``CompletionContext`` after it. Logging is attached when a logger is
given; tracing and metrics are attached when ``opentelemetry`` is importable.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, field
from functools import lru_cache, wraps
from time import perf_counter
from typing import Any, Callable, Mapping, Protocol, Sequence

from . import fields
from .context import log_context

INSTRUMENTATION_SCOPE = "docstore.public_api"
METRIC_CALLS = "docstore_public_api_calls_total"
METRIC_DURATION = "docstore_public_api_duration_ms"
METRIC_ERRORS = "docstore_public_api_errors_total"

# Reference keys that are safe to use as metric dimensions.
_METRIC_REFERENCE_KEYS = {"kind": fields.ENTITY_KIND}


@dataclass(frozen=True)
class InvocationContext:
    """One call to a public API method, captured before it runs."""

    component_id: str
    api_name: str
    trace_id: str | None
    envelope_id: str | None
    principal: str | None
    references: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def capture(
        cls,
        *,
        component_id: str,
        api_name: str,
        kwargs: Mapping[str, Any],
        id_fields: Sequence[str],
    ) -> "InvocationContext":
        meta = kwargs.get("meta")
        references: dict[str, str] = {}
        for name in id_fields:
            value = kwargs.get(name)
            if value is None or value == "":
                continue
            # Enum arguments such as RecordKind are reported by value.
            references[name] = str(getattr(value, "value", value))
        return cls(
            component_id=component_id,
            api_name=api_name,
            trace_id=_meta_field(meta, "trace_id"),
            envelope_id=_meta_field(meta, "envelope_id"),
            principal=_meta_field(meta, "principal"),
            references=references,
        )

    def log_fields(self) -> dict[str, object]:
        return {
            fields.EVENT: fields.PUBLIC_API_INVOCATION_EVENT,
            fields.COMPONENT_ID: self.component_id,
            fields.API_NAME: self.api_name,
            fields.TRACE_ID: self.trace_id,
            fields.ENVELOPE_ID: self.envelope_id,
            fields.PRINCIPAL: self.principal,
            **self.references,
        }

    def metric_dimensions(self) -> dict[str, str]:
        """Low-cardinality attributes; record ids are never included."""
        dimensions = {
            fields.COMPONENT_ID: self.component_id,
            fields.API_NAME: self.api_name,
        }
        for key, dimension in _METRIC_REFERENCE_KEYS.items():
            if key in self.references:
                dimensions[dimension] = self.references[key]
        return dimensions


@dataclass(frozen=True)
class CompletionContext:
    """Outcome of one public API call."""

    invocation: InvocationContext
    success: bool
    duration_ms: float
    errors: list[str]
    error_categories: list[str]
    result_count: int | None = None

    @property
    def outcome(self) -> str:
        return "success" if self.success else "failure"

    @classmethod
    def from_result(
        cls, invocation: InvocationContext, result: object, *, started: float
    ) -> "CompletionContext":
        """Summarize an envelope-like return value.

        Anything exposing ``ok``, ``errors`` and ``payload.value`` is accepted.
        """
        raw_errors = getattr(result, "errors", None)
        error_items = raw_errors if isinstance(raw_errors, list) else []
        summaries = [
            summary for summary in map(_error_summary, error_items) if summary
        ]
        categories = [
            category for category in map(_error_category, error_items) if category
        ]
        ok = getattr(result, "ok", None)
        value = getattr(getattr(result, "payload", None), "value", None)
        return cls(
            invocation=invocation,
            success=ok if isinstance(ok, bool) else not summaries,
            duration_ms=_elapsed_ms(started),
            errors=summaries,
            error_categories=categories,
            result_count=len(value) if isinstance(value, list) else None,
        )

    @classmethod
    def from_exception(
        cls, invocation: InvocationContext, exc: BaseException, *, started: float
    ) -> "CompletionContext":
        return cls(
            invocation=invocation,
            success=False,
            duration_ms=_elapsed_ms(started),
            errors=[f"{type(exc).__name__}: {exc}"],
            error_categories=["internal"],
        )


class PublicApiInstrumentationConcern(Protocol):
    """Hooks invoked around each public API call."""

    def on_invocation(self, context: InvocationContext) -> None: ...

    def on_completion(self, context: CompletionContext) -> None: ...


class PublicApiLoggingConcern:
    """Writes one structured log line per call start and per call end."""

    def __init__(self, *, logger: Any) -> None:
        self._logger = logger

    def on_invocation(self, context: InvocationContext) -> None:
        with log_context(context.log_fields()):
            self._logger.info("Public API invocation")

    def on_completion(self, context: CompletionContext) -> None:
        payload = context.invocation.log_fields()
        payload[fields.EVENT] = fields.PUBLIC_API_COMPLETION_EVENT
        payload[fields.SUCCESS] = context.success
        payload[fields.DURATION_MS] = context.duration_ms
        payload[fields.ERRORS] = context.errors
        if context.result_count is not None:
            payload[fields.RESULT_COUNT] = context.result_count
        level_method = self._logger.info if context.success else self._logger.warning
        with log_context(payload):
            level_method("Public API completion")


class PublicApiTracingConcern:
    """Opens one span per call and closes it on completion.

    ``tracer`` needs only ``start_as_current_span(name)`` returning a context
    manager that yields a span.
    """

    def __init__(self, *, tracer: Any) -> None:
        self._tracer = tracer
        self._open_spans: ContextVar[tuple[tuple[Any, Any], ...]] = ContextVar(
            "public_api_open_spans", default=()
        )

    def on_invocation(self, context: InvocationContext) -> None:
        manager = self._tracer.start_as_current_span(
            f"public_api.{context.component_id}.{context.api_name}"
        )
        span = manager.__enter__()
        attributes: dict[str, object] = {
            fields.COMPONENT_ID: context.component_id,
            fields.API_NAME: context.api_name,
            fields.TRACE_ID: context.trace_id,
            fields.ENVELOPE_ID: context.envelope_id,
            fields.PRINCIPAL: context.principal,
        }
        attributes.update(
            {f"reference.{key}": value for key, value in context.references.items()}
        )
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)
        self._open_spans.set((*self._open_spans.get(), (manager, span)))

    def on_completion(self, context: CompletionContext) -> None:
        open_spans = self._open_spans.get()
        if not open_spans:
            return
        manager, span = open_spans[-1]
        self._open_spans.set(open_spans[:-1])

        span.set_attribute(fields.SUCCESS, context.success)
        span.set_attribute(fields.DURATION_MS, context.duration_ms)
        span.set_attribute(fields.OUTCOME, context.outcome)
        span.set_attribute("errors.count", len(context.errors))
        if context.result_count is not None:
            span.set_attribute(fields.RESULT_COUNT, context.result_count)
        if not context.success:
            from opentelemetry.trace.status import Status, StatusCode

            span.set_status(Status(StatusCode.ERROR))
            if context.errors:
                span.record_exception(RuntimeError("; ".join(context.errors[:3])))
        manager.__exit__(None, None, None)


class PublicApiMetricsConcern:
    """Counts calls, durations and per-category failures."""

    def __init__(
        self,
        *,
        public_api_calls_total: Any,
        public_api_duration_ms: Any,
        public_api_errors_total: Any,
    ) -> None:
        self._calls = public_api_calls_total
        self._duration = public_api_duration_ms
        self._errors = public_api_errors_total

    def on_invocation(self, context: InvocationContext) -> None:
        del context

    def on_completion(self, context: CompletionContext) -> None:
        dimensions = context.invocation.metric_dimensions()
        call_attributes = {**dimensions, fields.OUTCOME: context.outcome}
        self._calls.add(1, attributes=call_attributes)
        self._duration.record(context.duration_ms, attributes=call_attributes)
        if context.success:
            return
        for category in context.error_categories or ["unknown"]:
            self._errors.add(
                1, attributes={**dimensions, fields.ERROR_CATEGORY: category}
            )


def public_api_instrumented(
    *,
    component_id: str,
    api_name: str | None = None,
    id_fields: tuple[str, ...] = (),
    concerns: Sequence[PublicApiInstrumentationConcern] | None = None,
    logger: Any | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Wrap one public API method with instrumentation concerns.

    ``id_fields`` names keyword arguments reported as references, for example
    ``("kind", "record_id")``. Concern failures are logged and never reach the
    caller; exceptions raised by the method itself are reported and re-raised.
    """
    attached: list[PublicApiInstrumentationConcern] = []
    if logger is not None:
        attached.append(PublicApiLoggingConcern(logger=logger))
    attached.extend(concerns or ())
    attached.extend(_default_otel_concerns())
    if not attached:
        raise ValueError("public_api_instrumented requires at least one concern")
    resolved = tuple(attached)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        name = api_name or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            invocation = InvocationContext.capture(
                component_id=component_id,
                api_name=name,
                kwargs=kwargs,
                id_fields=id_fields,
            )
            _dispatch(resolved, "invocation", invocation, invocation, logger)
            started = perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                completion = CompletionContext.from_exception(
                    invocation, exc, started=started
                )
                _dispatch(resolved, "completion", completion, invocation, logger)
                raise
            completion = CompletionContext.from_result(
                invocation, result, started=started
            )
            _dispatch(resolved, "completion", completion, invocation, logger)
            return result

        return wrapper

    return decorator


def _dispatch(
    concerns: Sequence[PublicApiInstrumentationConcern],
    stage: str,
    context: InvocationContext | CompletionContext,
    invocation: InvocationContext,
    logger: Any | None,
) -> None:
    for concern in concerns:
        hook = getattr(concern, f"on_{stage}")
        try:
            hook(context)
        except Exception as exc:  # noqa: BLE001
            if logger is None:
                continue
            with log_context(
                {
                    fields.EVENT: fields.PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT,
                    fields.COMPONENT_ID: invocation.component_id,
                    fields.API_NAME: invocation.api_name,
                    fields.STAGE: stage,
                    fields.CONCERN: type(concern).__name__,
                    fields.ERRORS: [f"{type(exc).__name__}: {exc}"],
                }
            ):
                logger.warning("Public API instrumentation concern failed")


def _meta_field(meta: object | None, name: str) -> str | None:
    value = getattr(meta, name, None) if meta is not None else None
    if value is None or value == "":
        return None
    return str(value)


def _error_summary(item: object) -> str | None:
    message = getattr(item, "message", None)
    if not message:
        return None
    code = getattr(item, "code", None)
    return f"{code}: {message}" if code else str(message)


def _error_category(item: object) -> str | None:
    raw = getattr(item, "category", None)
    category = getattr(raw, "value", raw)
    return str(category) if category else None


def _elapsed_ms(started: float) -> float:
    return round((perf_counter() - started) * 1000.0, 3)


@lru_cache(maxsize=1)
def _default_otel_concerns() -> tuple[PublicApiInstrumentationConcern, ...]:
    """Build tracing and metrics concerns backed by the global OTel providers."""
    try:
        from opentelemetry import metrics as otel_metrics
        from opentelemetry import trace as otel_trace
    except ImportError:
        return ()

    meter = otel_metrics.get_meter(INSTRUMENTATION_SCOPE)
    return (
        PublicApiTracingConcern(tracer=otel_trace.get_tracer(INSTRUMENTATION_SCOPE)),
        PublicApiMetricsConcern(
            public_api_calls_total=meter.create_counter(
                name=METRIC_CALLS,
                description="Public API calls by component, method, kind and outcome.",
                unit="1",
            ),
            public_api_duration_ms=meter.create_histogram(
                name=METRIC_DURATION,
                description="Public API call latency.",
                unit="ms",
            ),
            public_api_errors_total=meter.create_counter(
                name=METRIC_ERRORS,
                description="Public API failures by error category.",
                unit="1",
            ),
        ),
    )
