"""Concrete Record Authority Service implementation."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Mapping

from pydantic import BaseModel, ValidationError

from packages.docstore_shared.documents import (
    AppendArrayElement,
    DocumentTypeError,
    InsertUniqueScalar,
    PatchOperation,
    RemoveScalar,
    Replace,
    ShapeMismatchError,
)
from packages.docstore_shared.envelope import (
    Envelope,
    EnvelopeMeta,
    failure,
    success,
    utc_now,
    validate_meta,
)
from packages.docstore_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    dependency_error,
    not_found_error,
    validation_error,
)
from packages.docstore_shared.logging import get_logger, public_api_instrumented
from resources.substrates.postgres import (
    PostgresProbe,
    is_postgres_error,
    normalize_postgres_error,
)
from services.state.record_authority.component import SERVICE_COMPONENT_ID
from services.state.record_authority.config import RecordAuthoritySettings
from services.state.record_authority.domain import (
    EntityKind,
    ErrorAnalytics,
    HealthStatus,
    OrderRecord,
    Record,
    SearchPredicate,
    SortOrder,
)
from services.state.record_authority.errors import (
    SHAPE_MISMATCH,
    ConcurrencyConflictError,
    DuplicateRecordError,
    RecordNotFoundError,
    RecordValidationError,
)
from services.state.record_authority.interfaces import RecordStore
from services.state.record_authority.mutation import MutationService
from services.state.record_authority.query import QueryService
from services.state.record_authority.service import RecordAuthorityService
from services.state.record_authority.validation import (
    FIELD_CHANGE_MODELS,
    CleanupLogsRequest,
    CreateLogEntryRequest,
    CreateOrderRequest,
    CreateProductRequest,
    CreateUserRequest,
    ListRecordsRequest,
    OrderStatusRequest,
    RecordRefRequest,
    SearchRequest,
    TagRequest,
)

_LOGGER = get_logger(__name__)

_PATCH_TYPES = (Replace, AppendArrayElement, InsertUniqueScalar, RemoveScalar)


class DefaultRecordAuthorityService(RecordAuthorityService):
    """Default RAS implementation over one ``RecordStore``.

    Request validation happens here; query and mutation orchestration is
    delegated to ``QueryService`` and ``MutationService``. Store exceptions
    are mapped into envelope errors at this boundary.
    """

    def __init__(
        self,
        *,
        settings: RecordAuthoritySettings,
        store: RecordStore,
        readiness: Callable[[], PostgresProbe] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._readiness = readiness
        self._query = QueryService(store=store)
        self._mutation = MutationService(store=store, clock=clock or utc_now)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return RAS readiness based on owned store availability."""
        errors = validate_meta(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        if self._readiness is not None:
            status = self._readiness()
            return success(
                meta=meta,
                payload=HealthStatus(
                    service_ready=True,
                    substrate_ready=status.ready,
                    detail=status.detail,
                ),
            )
        try:
            self._query.list_page(kind=EntityKind.USER, limit=1)
        except Exception as exc:  # noqa: BLE001
            return self._store_failure(meta=meta, operation="health", exc=exc)
        return success(
            meta=meta,
            payload=HealthStatus(service_ready=True, substrate_ready=True, detail="ok"),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    def create_user(
        self,
        *,
        meta: EnvelopeMeta,
        email: str,
        name: str,
        profile: Mapping[str, Any] | None = None,
        preferences: Mapping[str, Any] | None = None,
        address: Mapping[str, Any] | None = None,
    ) -> Envelope[Record]:
        """Create one user with a unique email."""
        return self._create(
            meta=meta,
            kind=EntityKind.USER,
            model=CreateUserRequest,
            payload=_present(
                email=email,
                name=name,
                profile=profile,
                preferences=preferences,
                address=address,
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    def create_product(
        self,
        *,
        meta: EnvelopeMeta,
        name: str,
        price: Decimal | int | float | str,
        specifications: Mapping[str, Any] | None = None,
        metadata: Mapping[str, Any] | None = None,
        tags: list[str] | None = None,
    ) -> Envelope[Record]:
        """Create one product; tags are deduplicated."""
        return self._create(
            meta=meta,
            kind=EntityKind.PRODUCT,
            model=CreateProductRequest,
            payload=_present(
                name=name,
                price=price,
                specifications=specifications,
                metadata=metadata,
                tags=tags,
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    def create_order(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        total_amount: Decimal | int | float | str,
        status: str | None = None,
        items: list[Mapping[str, Any]] | None = None,
        shipping_address: Mapping[str, Any] | None = None,
        payment_info: Mapping[str, Any] | None = None,
    ) -> Envelope[Record]:
        """Create one order for an existing user."""
        return self._create(
            meta=meta,
            kind=EntityKind.ORDER,
            model=CreateOrderRequest,
            payload=_present(
                user_id=user_id,
                total_amount=total_amount,
                status=status,
                items=items,
                shipping_address=shipping_address,
                payment_info=payment_info,
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    def create_log_entry(
        self,
        *,
        meta: EnvelopeMeta,
        message: str,
        level: str = "info",
        data: Mapping[str, Any] | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> Envelope[Record]:
        """Append one immutable log entry."""
        return self._create(
            meta=meta,
            kind=EntityKind.LOG_ENTRY,
            model=CreateLogEntryRequest,
            payload=_present(message=message, level=level, data=data, context=context),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("kind", "record_id"),
    )
    def get_record(
        self, *, meta: EnvelopeMeta, kind: EntityKind, record_id: str
    ) -> Envelope[Record]:
        """Read one record by kind and id."""
        request, errors = self._validate_request(
            meta=meta,
            model=RecordRefRequest,
            payload={"kind": kind, "record_id": record_id},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, RecordRefRequest)

        try:
            record = self._query.get(kind=request.kind, record_id=request.record_id)
        except Exception as exc:  # noqa: BLE001
            return self._store_failure(meta=meta, operation="get_record", exc=exc)
        if record is None:
            return self._not_found(
                meta=meta, kind=request.kind, record_id=request.record_id
            )
        return success(meta=meta, payload=record)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("kind",),
    )
    def list_records(
        self,
        *,
        meta: EnvelopeMeta,
        kind: EntityKind,
        limit: int | None = None,
        offset: int = 0,
    ) -> Envelope[list[Record]]:
        """List one page of records in the kind's natural order."""
        request, errors = self._validate_request(
            meta=meta,
            model=ListRecordsRequest,
            payload={
                "kind": kind,
                "limit": self._settings.default_page_size if limit is None else limit,
                "offset": offset,
            },
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, ListRecordsRequest)
        page_error = self._page_size_error(request.limit)
        if page_error is not None:
            return failure(meta=meta, errors=[page_error])

        try:
            records = self._query.list_page(
                kind=request.kind, limit=request.limit, offset=request.offset
            )
        except Exception as exc:  # noqa: BLE001
            return self._store_failure(meta=meta, operation="list_records", exc=exc)
        return success(meta=meta, payload=records)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("kind", "record_id"),
    )
    def delete_record(
        self, *, meta: EnvelopeMeta, kind: EntityKind, record_id: str
    ) -> Envelope[bool]:
        """Delete one record; missing records are reported as not found."""
        request, errors = self._validate_request(
            meta=meta,
            model=RecordRefRequest,
            payload={"kind": kind, "record_id": record_id},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, RecordRefRequest)

        return self._execute(
            meta=meta,
            operation="delete_record",
            call=lambda: self._deleted(request),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("kind",),
    )
    def purge_records(self, *, meta: EnvelopeMeta, kind: EntityKind) -> Envelope[int]:
        """Delete every record of one kind and return the count."""
        errors = validate_meta(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            resolved = EntityKind(kind)
        except ValueError:
            return failure(meta=meta, errors=[_invalid_kind(kind)])
        return self._execute(
            meta=meta,
            operation="purge_records",
            call=lambda: self._mutation.purge(kind=resolved),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("kind",),
    )
    def search_records(
        self,
        *,
        meta: EnvelopeMeta,
        kind: EntityKind,
        predicate: SearchPredicate,
        order: SortOrder | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> Envelope[list[Record]]:
        """Search by containment, nested path range, or relational filter."""
        request, errors = self._validate_request(
            meta=meta,
            model=SearchRequest,
            payload={"kind": kind, "limit": limit, "offset": offset},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, SearchRequest)
        if request.limit is not None:
            page_error = self._page_size_error(request.limit)
            if page_error is not None:
                return failure(meta=meta, errors=[page_error])

        return self._execute(
            meta=meta,
            operation="search_records",
            call=lambda: self._query.search(
                kind=request.kind,
                predicate=predicate,
                order=order,
                limit=request.limit,
                offset=request.offset,
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("kind", "record_id", "field"),
    )
    def apply_patch(
        self,
        *,
        meta: EnvelopeMeta,
        kind: EntityKind,
        record_id: str,
        field: str,
        operation: PatchOperation,
    ) -> Envelope[Record]:
        """Apply one partial-update operation to one document field."""
        request, errors = self._validate_request(
            meta=meta,
            model=RecordRefRequest,
            payload={"kind": kind, "record_id": record_id},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, RecordRefRequest)
        if not isinstance(operation, _PATCH_TYPES):
            return failure(
                meta=meta,
                errors=[
                    validation_error(
                        f"unsupported patch operation: {type(operation).__name__}",
                        code=codes.INVALID_ARGUMENT,
                        metadata={"field": "operation"},
                    )
                ],
            )

        return self._execute(
            meta=meta,
            operation="apply_patch",
            call=lambda: self._mutation.apply_patch(
                kind=request.kind,
                record_id=request.record_id,
                field=field,
                operation=operation,
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("kind", "record_id"),
    )
    def update_fields(
        self,
        *,
        meta: EnvelopeMeta,
        kind: EntityKind,
        record_id: str,
        changes: Mapping[str, Any],
    ) -> Envelope[Record]:
        """Update writable relational columns of one record."""
        request, errors = self._validate_request(
            meta=meta,
            model=RecordRefRequest,
            payload={"kind": kind, "record_id": record_id},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, RecordRefRequest)

        change_model = FIELD_CHANGE_MODELS.get(request.kind)
        if change_model is None:
            return failure(
                meta=meta,
                errors=[
                    validation_error(
                        f"{request.kind} records are immutable",
                        code=codes.INVALID_ARGUMENT,
                        metadata={"field": "kind"},
                    )
                ],
            )
        validated, errors = self._validate_request(
            meta=meta, model=change_model, payload=dict(changes)
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert validated is not None

        return self._execute(
            meta=meta,
            operation="update_fields",
            call=lambda: self._mutation.update_fields(
                kind=request.kind,
                record_id=request.record_id,
                changes=validated.model_dump(exclude_unset=True),
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("order_id", "status"),
    )
    def set_order_status(
        self, *, meta: EnvelopeMeta, order_id: str, status: str
    ) -> Envelope[Record]:
        """Change order status and record the transition in its history."""
        request, errors = self._validate_request(
            meta=meta,
            model=OrderStatusRequest,
            payload={"order_id": order_id, "status": status},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, OrderStatusRequest)

        return self._execute(
            meta=meta,
            operation="set_order_status",
            call=lambda: self._mutation.set_order_status(
                order_id=request.order_id, status=request.status
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("product_id", "tag"),
    )
    def add_tag(
        self, *, meta: EnvelopeMeta, product_id: str, tag: str
    ) -> Envelope[Record]:
        """Add one tag to a product unless already present."""
        request, errors = self._validate_request(
            meta=meta,
            model=TagRequest,
            payload={"product_id": product_id, "tag": tag},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, TagRequest)

        return self._execute(
            meta=meta,
            operation="add_tag",
            call=lambda: self._mutation.add_tag(
                product_id=request.product_id, tag=request.tag
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("product_id", "tag"),
    )
    def remove_tag(
        self, *, meta: EnvelopeMeta, product_id: str, tag: str
    ) -> Envelope[Record]:
        """Remove one tag from a product when present."""
        request, errors = self._validate_request(
            meta=meta,
            model=TagRequest,
            payload={"product_id": product_id, "tag": tag},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, TagRequest)

        return self._execute(
            meta=meta,
            operation="remove_tag",
            call=lambda: self._mutation.remove_tag(
                product_id=request.product_id, tag=request.tag
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("order_id",),
    )
    def get_order_history(
        self, *, meta: EnvelopeMeta, order_id: str
    ) -> Envelope[list[Any]]:
        """Read the status history of one order."""
        request, errors = self._validate_request(
            meta=meta,
            model=RecordRefRequest,
            payload={"kind": EntityKind.ORDER, "record_id": order_id},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, RecordRefRequest)

        try:
            record = self._query.get(kind=EntityKind.ORDER, record_id=request.record_id)
        except Exception as exc:  # noqa: BLE001
            return self._store_failure(meta=meta, operation="get_order_history", exc=exc)
        if not isinstance(record, OrderRecord):
            return self._not_found(
                meta=meta, kind=EntityKind.ORDER, record_id=request.record_id
            )
        return success(meta=meta, payload=list(record.order_history))

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    def error_analytics(self, *, meta: EnvelopeMeta) -> Envelope[ErrorAnalytics]:
        """Summarize error-level log entries."""
        errors = validate_meta(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._execute(
            meta=meta,
            operation="error_analytics",
            call=lambda: self._query.error_analytics(
                recent_limit=self._settings.recent_error_limit
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    def cleanup_logs(
        self, *, meta: EnvelopeMeta, days_old: int | None = None
    ) -> Envelope[int]:
        """Delete log entries older than ``days_old`` days."""
        request, errors = self._validate_request(
            meta=meta,
            model=CleanupLogsRequest,
            payload={
                "days_old": (
                    self._settings.log_retention_days if days_old is None else days_old
                )
            },
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, CleanupLogsRequest)

        return self._execute(
            meta=meta,
            operation="cleanup_logs",
            call=lambda: self._mutation.cleanup_logs(days_old=request.days_old),
        )

    def _create(
        self,
        *,
        meta: EnvelopeMeta,
        kind: EntityKind,
        model: type[BaseModel],
        payload: dict[str, Any],
    ) -> Envelope[Record]:
        """Validate one create request and insert it."""
        request, errors = self._validate_request(meta=meta, model=model, payload=payload)
        if errors:
            return failure(meta=meta, errors=errors)
        assert request is not None

        return self._execute(
            meta=meta,
            operation=f"create_{kind}",
            call=lambda: self._mutation.create(kind=kind, values=request.model_dump()),
        )

    def _deleted(self, request: RecordRefRequest) -> bool:
        self._mutation.delete(kind=request.kind, record_id=request.record_id)
        return True

    def _execute(
        self,
        *,
        meta: EnvelopeMeta,
        operation: str,
        call: Callable[[], Any],
    ) -> Envelope[Any]:
        """Run one orchestration call and map domain exceptions to errors."""
        try:
            return success(meta=meta, payload=call())
        except ShapeMismatchError as exc:
            return failure(
                meta=meta,
                errors=[
                    validation_error(
                        str(exc),
                        code=SHAPE_MISMATCH,
                        metadata={"expected": exc.expected, "actual": exc.actual},
                    )
                ],
            )
        except (RecordValidationError, DocumentTypeError) as exc:
            return failure(
                meta=meta,
                errors=[
                    validation_error(
                        str(exc),
                        code=codes.INVALID_ARGUMENT,
                        metadata={"field": getattr(exc, "field", "")},
                    )
                ],
            )
        except RecordNotFoundError as exc:
            return self._not_found(meta=meta, kind=exc.kind, record_id=exc.record_id)
        except ConcurrencyConflictError as exc:
            _LOGGER.info(
                "%s lost optimistic write: kind=%s record_id=%s expected_version=%d",
                operation,
                exc.current.kind,
                exc.current.id,
                exc.expected_version,
            )
            return failure(
                meta=meta,
                errors=[
                    conflict_error(
                        str(exc),
                        code=codes.CONCURRENCY_CONFLICT,
                        retryable=True,
                        metadata={
                            "record_id": exc.current.id,
                            "expected_version": str(exc.expected_version),
                            "current_version": str(exc.current.version),
                        },
                    )
                ],
                payload=exc.current,
            )
        except DuplicateRecordError as exc:
            return failure(
                meta=meta,
                errors=[
                    conflict_error(
                        str(exc),
                        code=codes.ALREADY_EXISTS,
                        metadata={"kind": str(exc.kind), "field": exc.field},
                    )
                ],
            )
        except Exception as exc:  # noqa: BLE001
            return self._store_failure(meta=meta, operation=operation, exc=exc)

    def _validate_request(
        self,
        *,
        meta: EnvelopeMeta,
        model: type[BaseModel],
        payload: dict[str, Any] | None,
    ) -> tuple[BaseModel | None, list[ErrorDetail]]:
        """Validate envelope metadata and request payload model."""
        errors = validate_meta(meta)
        if errors:
            return None, errors

        data = payload or {}
        try:
            request = model.model_validate(data)
        except ValidationError as exc:
            return None, [
                validation_error(
                    f"request validation failed: {err['msg']}",
                    code=codes.INVALID_ARGUMENT,
                    metadata={"field": ".".join(str(p) for p in err["loc"])},
                )
                for err in exc.errors()
            ]

        return request, []

    def _page_size_error(self, limit: int) -> ErrorDetail | None:
        """Reject page sizes above the configured maximum."""
        if limit <= self._settings.max_page_size:
            return None
        return validation_error(
            f"limit must be <= {self._settings.max_page_size}",
            code=codes.INVALID_ARGUMENT,
            metadata={"field": "limit"},
        )

    def _not_found(
        self, *, meta: EnvelopeMeta, kind: EntityKind, record_id: str
    ) -> Envelope[Any]:
        """Return canonical not-found envelope for record lookups."""
        return failure(
            meta=meta,
            errors=[
                not_found_error(
                    f"{kind} not found",
                    code=codes.RESOURCE_NOT_FOUND,
                    metadata={"kind": str(kind), "record_id": record_id},
                )
            ],
        )

    def _store_failure(
        self,
        *,
        meta: EnvelopeMeta,
        operation: str,
        exc: Exception,
    ) -> Envelope[Any]:
        """Map one store exception into a Postgres or dependency error."""
        if is_postgres_error(exc):
            _LOGGER.warning(
                "%s failed in postgres: exception_type=%s",
                operation,
                type(exc).__name__,
                exc_info=exc,
            )
            return failure(meta=meta, errors=[normalize_postgres_error(exc)])
        return self._dependency_failure(meta=meta, operation=operation, exc=exc)

    def _dependency_failure(
        self,
        *,
        meta: EnvelopeMeta,
        operation: str,
        exc: Exception,
    ) -> Envelope[Any]:
        """Map one dependency/runtime exception into structured envelope errors."""
        _LOGGER.warning(
            "%s failed due to dependency error: exception_type=%s",
            operation,
            type(exc).__name__,
            exc_info=exc,
        )
        return failure(
            meta=meta,
            errors=[
                dependency_error(
                    f"{operation} failed",
                    code=codes.DEPENDENCY_FAILURE,
                    metadata={"exception_type": type(exc).__name__},
                )
            ],
        )


def _present(**values: Any) -> dict[str, Any]:
    """Drop ``None`` arguments so request models apply their defaults."""
    return {name: value for name, value in values.items() if value is not None}


def _invalid_kind(kind: object) -> ErrorDetail:
    return validation_error(
        f"unknown record kind: {kind}",
        code=codes.INVALID_ARGUMENT,
        metadata={"field": "kind"},
    )

