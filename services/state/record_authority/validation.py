"""Pydantic request-validation models for Record Authority Service API."""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from packages.docstore_shared.documents import DocumentTypeError, normalize_document
from packages.docstore_shared.ids import is_record_id
from services.state.record_authority.domain import (
    DEFAULT_ORDER_STATUS,
    LOG_LEVELS,
    EntityKind,
)

Money = Annotated[Decimal, Field(ge=0, max_digits=18, decimal_places=2)]


class _ValidationModel(BaseModel):
    """Base request model with strict shape semantics."""

    model_config = ConfigDict(frozen=True, extra="forbid")


def _required_text(value: str, info: ValidationInfo, *, max_length: int) -> str:
    normalized = value.strip()
    if normalized == "":
        raise ValueError(f"{info.field_name} is required")
    if len(normalized) > max_length:
        raise ValueError(f"{info.field_name} must be at most {max_length} characters")
    return normalized


def _email(value: str, info: ValidationInfo) -> str:
    normalized = _required_text(value, info, max_length=255)
    if "@" not in normalized:
        raise ValueError("email must contain '@'")
    return normalized


def _record_id(value: str, info: ValidationInfo) -> str:
    normalized = value.strip().upper()
    if not is_record_id(normalized):
        raise ValueError(f"{info.field_name} must be a 26-character ULID")
    return normalized


def _document(value: Any, info: ValidationInfo) -> Any:
    try:
        return normalize_document(value)
    except DocumentTypeError as exc:
        raise ValueError(f"{info.field_name} is not a valid document: {exc}") from exc


class RecordRefRequest(_ValidationModel):
    """Validated request shape for operations keyed by kind and id."""

    kind: EntityKind
    record_id: str

    @field_validator("record_id")
    @classmethod
    def _validate_record_id(cls, value: str, info: ValidationInfo) -> str:
        """Require a canonical ULID."""
        return _record_id(value, info)


class ListRecordsRequest(_ValidationModel):
    """Validated paging request."""

    kind: EntityKind
    limit: int = Field(gt=0)
    offset: int = Field(default=0, ge=0)


class SearchRequest(_ValidationModel):
    """Validated paging bounds for searches."""

    kind: EntityKind
    limit: int | None = Field(default=None, gt=0)
    offset: int = Field(default=0, ge=0)


class CreateUserRequest(_ValidationModel):
    """Validated create-user request shape."""

    email: str
    name: str
    profile: dict[str, Any] = Field(default_factory=dict)
    preferences: dict[str, Any] = Field(default_factory=dict)
    address: dict[str, Any] = Field(default_factory=dict)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str, info: ValidationInfo) -> str:
        """Require a trimmed address containing ``@``."""
        return _email(value, info)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str, info: ValidationInfo) -> str:
        """Require a non-empty name."""
        return _required_text(value, info, max_length=200)

    @field_validator("profile", "preferences", "address")
    @classmethod
    def _validate_documents(cls, value: Any, info: ValidationInfo) -> Any:
        """Require JSON-compatible document values."""
        return _document(value, info)


class CreateProductRequest(_ValidationModel):
    """Validated create-product request shape."""

    name: str
    price: Money
    specifications: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str, info: ValidationInfo) -> str:
        """Require a non-empty product name."""
        return _required_text(value, info, max_length=200)

    @field_validator("specifications", "metadata")
    @classmethod
    def _validate_documents(cls, value: Any, info: ValidationInfo) -> Any:
        """Require JSON-compatible document values."""
        return _document(value, info)

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[str], info: ValidationInfo) -> list[str]:
        """Trim tags and drop repeats, keeping first occurrence order."""
        seen: list[str] = []
        for tag in value:
            normalized = _required_text(tag, info, max_length=100)
            if normalized not in seen:
                seen.append(normalized)
        return seen


class CreateOrderRequest(_ValidationModel):
    """Validated create-order request shape."""

    user_id: str
    total_amount: Money
    status: str = DEFAULT_ORDER_STATUS
    items: list[dict[str, Any]] = Field(default_factory=list)
    shipping_address: dict[str, Any] = Field(default_factory=dict)
    payment_info: dict[str, Any] = Field(default_factory=dict)

    @field_validator("user_id")
    @classmethod
    def _validate_user_id(cls, value: str, info: ValidationInfo) -> str:
        """Require a canonical ULID user reference."""
        return _record_id(value, info)

    @field_validator("status")
    @classmethod
    def _validate_status(cls, value: str, info: ValidationInfo) -> str:
        """Require a non-empty status label."""
        return _required_text(value, info, max_length=50)

    @field_validator("items", "shipping_address", "payment_info")
    @classmethod
    def _validate_documents(cls, value: Any, info: ValidationInfo) -> Any:
        """Require JSON-compatible document values."""
        return _document(value, info)


class CreateLogEntryRequest(_ValidationModel):
    """Validated create-log-entry request shape."""

    level: str = "info"
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    context: dict[str, Any] = Field(default_factory=dict)

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        """Restrict levels to the canonical lowercase set."""
        normalized = value.strip().lower()
        if normalized not in LOG_LEVELS:
            raise ValueError(f"level must be one of: {', '.join(LOG_LEVELS)}")
        return normalized

    @field_validator("message")
    @classmethod
    def _validate_message(cls, value: str, info: ValidationInfo) -> str:
        """Require a bounded non-empty message."""
        return _required_text(value, info, max_length=1000)

    @field_validator("data", "context")
    @classmethod
    def _validate_documents(cls, value: Any, info: ValidationInfo) -> Any:
        """Require JSON-compatible document values."""
        return _document(value, info)


class UserFieldChanges(_ValidationModel):
    """Relational user columns writable after creation."""

    email: str | None = None
    name: str | None = None

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str | None, info: ValidationInfo) -> str | None:
        """Apply create-time email rules to replacements."""
        if value is None:
            raise ValueError("email cannot be null")
        return _email(value, info)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str | None, info: ValidationInfo) -> str | None:
        """Apply create-time name rules to replacements."""
        if value is None:
            raise ValueError("name cannot be null")
        return _required_text(value, info, max_length=200)


class ProductFieldChanges(_ValidationModel):
    """Relational product columns writable after creation."""

    name: str | None = None
    price: Money | None = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str | None, info: ValidationInfo) -> str | None:
        """Apply create-time name rules to replacements."""
        if value is None:
            raise ValueError("name cannot be null")
        return _required_text(value, info, max_length=200)


class OrderFieldChanges(_ValidationModel):
    """Relational order columns writable after creation."""

    total_amount: Money | None = None


FIELD_CHANGE_MODELS: dict[EntityKind, type[_ValidationModel]] = {
    EntityKind.USER: UserFieldChanges,
    EntityKind.PRODUCT: ProductFieldChanges,
    EntityKind.ORDER: OrderFieldChanges,
}


class OrderStatusRequest(_ValidationModel):
    """Validated order status transition request."""

    order_id: str
    status: str

    @field_validator("order_id")
    @classmethod
    def _validate_order_id(cls, value: str, info: ValidationInfo) -> str:
        """Require a canonical ULID."""
        return _record_id(value, info)

    @field_validator("status")
    @classmethod
    def _validate_status(cls, value: str, info: ValidationInfo) -> str:
        """Require a non-empty status label."""
        return _required_text(value, info, max_length=50)


class TagRequest(_ValidationModel):
    """Validated product tag request."""

    product_id: str
    tag: str

    @field_validator("product_id")
    @classmethod
    def _validate_product_id(cls, value: str, info: ValidationInfo) -> str:
        """Require a canonical ULID."""
        return _record_id(value, info)

    @field_validator("tag")
    @classmethod
    def _validate_tag(cls, value: str, info: ValidationInfo) -> str:
        """Require a trimmed non-empty tag."""
        return _required_text(value, info, max_length=100)


class CleanupLogsRequest(_ValidationModel):
    """Validated log retention request."""

    days_old: int = Field(gt=0)
