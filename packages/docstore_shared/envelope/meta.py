"""Envelope metadata attached to every record-service call and result."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum

from packages.docstore_shared.ids import new_record_id


class EnvelopeKind(str, Enum):
    """What the caller intends: a write, a read, or a reported result."""

    UNSPECIFIED = "unspecified"
    COMMAND = "command"
    QUERY = "query"
    RESULT = "result"


@dataclass(frozen=True)
class EnvelopeMeta:
    """Correlation metadata for one call.

    Ids are ULIDs, so envelopes sort by creation time. ``parent_id`` links a
    call made on behalf of another call, for example each write issued while
    seeding demo data.
    """

    envelope_id: str
    trace_id: str
    parent_id: str
    timestamp: datetime
    kind: EnvelopeKind
    source: str
    principal: str

    def child(self, *, kind: EnvelopeKind | None = None) -> "EnvelopeMeta":
        """Return metadata for a nested call sharing this trace."""
        return replace(
            self,
            envelope_id=new_record_id(),
            parent_id=self.envelope_id,
            timestamp=datetime.now(UTC),
            kind=self.kind if kind is None else kind,
        )


def new_meta(
    *,
    kind: EnvelopeKind,
    source: str,
    principal: str,
    trace_id: str | None = None,
    parent_id: str = "",
    envelope_id: str | None = None,
    timestamp: datetime | None = None,
) -> EnvelopeMeta:
    """Build ``EnvelopeMeta``; missing ids are generated, timestamps made UTC."""
    if timestamp is None:
        timestamp = datetime.now(UTC)
    elif timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    else:
        timestamp = timestamp.astimezone(UTC)
    return EnvelopeMeta(
        envelope_id=envelope_id or new_record_id(),
        trace_id=trace_id or new_record_id(),
        parent_id=parent_id,
        timestamp=timestamp,
        kind=kind,
        source=source,
        principal=principal,
    )
