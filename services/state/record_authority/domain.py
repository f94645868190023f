"""Domain contracts for Record Authority Service records and queries."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any, ClassVar, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from packages.docstore_shared.documents import DocumentKind, split_path


class EntityKind(StrEnum):
    """Record kinds owned by the Record Authority Service."""

    USER = "user"
    PRODUCT = "product"
    ORDER = "order"
    LOG_ENTRY = "log_entry"


LOG_LEVELS = ("debug", "info", "warning", "error", "critical")
DEFAULT_ORDER_STATUS = "pending"


class _RecordModel(BaseModel):
    """Base record shape shared by every entity kind."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ClassVar[EntityKind]

    id: str
    version: int = Field(ge=1)


class UserRecord(_RecordModel):
    """Registered user with profile, preference, and address documents."""

    kind: ClassVar[EntityKind] = EntityKind.USER

    email: str
    name: str
    profile: dict[str, Any] = Field(default_factory=dict)
    preferences: dict[str, Any] = Field(default_factory=dict)
    address: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class ProductRecord(_RecordModel):
    """Catalog product with free-form specifications and a tag set."""

    kind: ClassVar[EntityKind] = EntityKind.PRODUCT

    name: str
    price: Decimal
    specifications: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class OrderRecord(_RecordModel):
    """Customer order with line items and an append-only status history."""

    kind: ClassVar[EntityKind] = EntityKind.ORDER

    user_id: str
    total_amount: Decimal
    status: str
    items: list[Any] = Field(default_factory=list)
    shipping_address: dict[str, Any] = Field(default_factory=dict)
    payment_info: dict[str, Any] = Field(default_factory=dict)
    order_history: list[Any] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class LogEntryRecord(_RecordModel):
    """Immutable application log entry with structured data and context."""

    kind: ClassVar[EntityKind] = EntityKind.LOG_ENTRY

    level: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    context: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


Record: TypeAlias = UserRecord | ProductRecord | OrderRecord | LogEntryRecord

RECORD_MODELS: dict[EntityKind, type[_RecordModel]] = {
    EntityKind.USER: UserRecord,
    EntityKind.PRODUCT: ProductRecord,
    EntityKind.ORDER: OrderRecord,
    EntityKind.LOG_ENTRY: LogEntryRecord,
}

DOCUMENT_FIELDS: dict[EntityKind, dict[str, DocumentKind]] = {
    EntityKind.USER: {
        "profile": DocumentKind.OBJECT,
        "preferences": DocumentKind.OBJECT,
        "address": DocumentKind.OBJECT,
    },
    EntityKind.PRODUCT: {
        "specifications": DocumentKind.OBJECT,
        "metadata": DocumentKind.OBJECT,
        "tags": DocumentKind.ARRAY,
    },
    EntityKind.ORDER: {
        "items": DocumentKind.ARRAY,
        "shipping_address": DocumentKind.OBJECT,
        "payment_info": DocumentKind.OBJECT,
        "order_history": DocumentKind.ARRAY,
    },
    EntityKind.LOG_ENTRY: {
        "data": DocumentKind.OBJECT,
        "context": DocumentKind.OBJECT,
    },
}

RELATIONAL_FIELDS: dict[EntityKind, frozenset[str]] = {
    EntityKind.USER: frozenset({"id", "email", "name", "created_at", "updated_at"}),
    EntityKind.PRODUCT: frozenset({"id", "name", "price", "created_at", "updated_at"}),
    EntityKind.ORDER: frozenset(
        {"id", "user_id", "total_amount", "status", "created_at", "updated_at"}
    ),
    EntityKind.LOG_ENTRY: frozenset({"id", "level", "message", "timestamp"}),
}

# Fields writable through ``update_fields``; order status has its own operation.
UPDATABLE_FIELDS: dict[EntityKind, frozenset[str]] = {
    EntityKind.USER: frozenset({"email", "name"}),
    EntityKind.PRODUCT: frozenset({"name", "price"}),
    EntityKind.ORDER: frozenset({"total_amount"}),
    EntityKind.LOG_ENTRY: frozenset(),
}

IMMUTABLE_KINDS = frozenset({EntityKind.LOG_ENTRY})


class SortOrder(BaseModel):
    """Result ordering over one relational field."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    field: str
    descending: bool = False


DEFAULT_ORDERS: dict[EntityKind, SortOrder] = {
    EntityKind.USER: SortOrder(field="created_at"),
    EntityKind.PRODUCT: SortOrder(field="created_at"),
    EntityKind.ORDER: SortOrder(field="created_at"),
    EntityKind.LOG_ENTRY: SortOrder(field="timestamp", descending=True),
}


class RelationalOp(StrEnum):
    """Comparison operators supported on relational columns."""

    EQ = "eq"
    BETWEEN = "between"
    GTE = "gte"
    LTE = "lte"
    LT = "lt"
    CONTAINS_TEXT = "contains_text"


class RelationalPredicate(BaseModel):
    """One comparison against a relational column value.

    ``upper`` is only used by ``between``, whose bounds are both inclusive.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    op: RelationalOp
    value: Any
    upper: Any = None

    @model_validator(mode="after")
    def _validate_operands(self) -> "RelationalPredicate":
        """Require operands that fit the chosen operator."""
        if self.value is None:
            raise ValueError("predicate value is required")
        if self.op == RelationalOp.BETWEEN and self.upper is None:
            raise ValueError("between requires an upper bound")
        if self.op != RelationalOp.BETWEEN and self.upper is not None:
            raise ValueError("upper is only valid for between")
        if self.op == RelationalOp.CONTAINS_TEXT and not isinstance(self.value, str):
            raise ValueError("contains_text requires a string value")
        return self


class ContainmentProbe(BaseModel):
    """Partial document matched against one document field (indexed path)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    field: str
    probe: Any


class PathRangeProbe(BaseModel):
    """Inclusive range over a nested scalar inside one document field.

    Evaluated by scanning every row of the kind; never index-assisted.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    field: str
    path: tuple[str, ...]
    minimum: Decimal | str | None = None
    maximum: Decimal | str | None = None

    @field_validator("path", mode="before")
    @classmethod
    def _split_path(cls, value: object) -> object:
        """Accept dotted strings as well as key sequences."""
        if isinstance(value, (str, list, tuple)):
            return split_path(value)
        return value

    @model_validator(mode="after")
    def _validate_bounds(self) -> "PathRangeProbe":
        """Require at least one bound and consistent bound types."""
        bounds = [item for item in (self.minimum, self.maximum) if item is not None]
        if not bounds:
            raise ValueError("at least one of minimum or maximum is required")
        if len({isinstance(item, str) for item in bounds}) > 1:
            raise ValueError("minimum and maximum must both be numbers or both strings")
        if len(bounds) == 2 and self.minimum > self.maximum:  # type: ignore[operator]
            raise ValueError("minimum must be <= maximum")
        return self

    @property
    def numeric(self) -> bool:
        """Return whether bounds compare against NUMBER leaves."""
        bound = self.minimum if self.minimum is not None else self.maximum
        return not isinstance(bound, str)


class RelationalProbe(BaseModel):
    """Filter on a plain relational column, delegated to the store."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    field: str
    predicate: RelationalPredicate


SearchPredicate: TypeAlias = ContainmentProbe | PathRangeProbe | RelationalProbe


class ErrorHourBucket(BaseModel):
    """Error-level log count for one UTC hour."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    day: date
    hour: int
    count: int


class RecentError(BaseModel):
    """Summary of one recent error-level log entry."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    message: str
    timestamp: datetime


class ErrorAnalytics(BaseModel):
    """Aggregate view over error-level log entries."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    total_errors: int
    by_hour: list[ErrorHourBucket]
    recent: list[RecentError]


class HealthStatus(BaseModel):
    """RAS and owned dependency readiness status payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    substrate_ready: bool
    detail: str
