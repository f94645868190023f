"""Validation helpers for envelope metadata."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from packages.docstore_shared.errors import ErrorDetail, codes, validation_error

from .meta import EnvelopeKind, EnvelopeMeta


class _ValidatedEnvelopeMeta(BaseModel):
    """Validation-only envelope metadata model used by ``validate_meta``."""

    model_config = ConfigDict(extra="forbid")

    envelope_id: str = Field(min_length=1)
    trace_id: str = Field(min_length=1)
    parent_id: str
    timestamp: datetime
    kind: EnvelopeKind
    source: str = Field(min_length=1)
    principal: str = Field(min_length=1)

    @model_validator(mode="after")
    def _enforce_kind(self) -> "_ValidatedEnvelopeMeta":
        """Reject unspecified envelope kinds."""
        if self.kind == EnvelopeKind.UNSPECIFIED:
            raise ValueError("metadata.kind must be specified")
        return self


def validate_meta(meta: EnvelopeMeta) -> list[ErrorDetail]:
    """Validate required envelope metadata fields.

    Returns an empty list for valid metadata, otherwise one validation error
    per failing field.
    """
    try:
        _ValidatedEnvelopeMeta.model_validate(
            {
                "envelope_id": meta.envelope_id,
                "trace_id": meta.trace_id,
                "parent_id": meta.parent_id,
                "timestamp": meta.timestamp,
                "kind": meta.kind,
                "source": meta.source,
                "principal": meta.principal,
            }
        )
    except ValidationError as exc:
        return [
            validation_error(
                _map_meta_validation_error(item),
                code=codes.INVALID_ARGUMENT,
                metadata={"field": f"metadata.{_location(item)}"},
            )
            for item in exc.errors()
        ]
    return []


def utc_now() -> datetime:
    """Return current UTC timestamp."""
    return datetime.now(UTC)


def _location(error: dict[str, object]) -> str:
    """Return the first location segment of one pydantic error entry."""
    location = error.get("loc", ())
    if not location:
        return ""
    return str(location[0])  # type: ignore[index]


def _map_meta_validation_error(error: dict[str, object]) -> str:
    """Map Pydantic metadata validation failures to stable public messages."""
    field_name = _location(error)
    if field_name in {"envelope_id", "trace_id", "timestamp", "source", "principal"}:
        return f"metadata.{field_name} is required"
    if field_name in {"kind", ""}:
        return "metadata.kind must be specified"
    return str(error.get("msg", "invalid metadata"))
