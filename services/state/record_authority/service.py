"""Authoritative in-process Python API for Record Authority Service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Mapping

from packages.docstore_shared.config import DocstoreSettings
from packages.docstore_shared.documents import PatchOperation
from packages.docstore_shared.envelope import Envelope, EnvelopeMeta
from services.state.record_authority.domain import (
    EntityKind,
    ErrorAnalytics,
    HealthStatus,
    Record,
    SearchPredicate,
    SortOrder,
)


class RecordAuthorityService(ABC):
    """Public API for records with embedded document fields.

    Every method returns an ``Envelope``; expected failures are reported as
    structured errors, never raised.
    """

    @abstractmethod
    def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return RAS and owned store readiness status."""

    @abstractmethod
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

    @abstractmethod
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

    @abstractmethod
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

    @abstractmethod
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

    @abstractmethod
    def get_record(
        self, *, meta: EnvelopeMeta, kind: EntityKind, record_id: str
    ) -> Envelope[Record]:
        """Read one record by kind and id."""

    @abstractmethod
    def list_records(
        self,
        *,
        meta: EnvelopeMeta,
        kind: EntityKind,
        limit: int | None = None,
        offset: int = 0,
    ) -> Envelope[list[Record]]:
        """List one page of records in the kind's natural order."""

    @abstractmethod
    def delete_record(
        self, *, meta: EnvelopeMeta, kind: EntityKind, record_id: str
    ) -> Envelope[bool]:
        """Delete one record; missing records are reported as not found."""

    @abstractmethod
    def purge_records(self, *, meta: EnvelopeMeta, kind: EntityKind) -> Envelope[int]:
        """Delete every record of one kind and return the count."""

    @abstractmethod
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

    @abstractmethod
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

    @abstractmethod
    def update_fields(
        self,
        *,
        meta: EnvelopeMeta,
        kind: EntityKind,
        record_id: str,
        changes: Mapping[str, Any],
    ) -> Envelope[Record]:
        """Update writable relational columns of one record."""

    @abstractmethod
    def set_order_status(
        self, *, meta: EnvelopeMeta, order_id: str, status: str
    ) -> Envelope[Record]:
        """Change order status and record the transition in its history."""

    @abstractmethod
    def add_tag(
        self, *, meta: EnvelopeMeta, product_id: str, tag: str
    ) -> Envelope[Record]:
        """Add one tag to a product unless already present."""

    @abstractmethod
    def remove_tag(
        self, *, meta: EnvelopeMeta, product_id: str, tag: str
    ) -> Envelope[Record]:
        """Remove one tag from a product when present."""

    @abstractmethod
    def get_order_history(
        self, *, meta: EnvelopeMeta, order_id: str
    ) -> Envelope[list[Any]]:
        """Read the status history of one order."""

    @abstractmethod
    def error_analytics(self, *, meta: EnvelopeMeta) -> Envelope[ErrorAnalytics]:
        """Summarize error-level log entries."""

    @abstractmethod
    def cleanup_logs(
        self, *, meta: EnvelopeMeta, days_old: int | None = None
    ) -> Envelope[int]:
        """Delete log entries older than ``days_old`` days."""


def build_record_authority_service(
    *,
    settings: DocstoreSettings,
    clock: Callable[[], datetime] | None = None,
) -> RecordAuthorityService:
    """Build default Record Authority implementation backed by Postgres."""
    from services.state.record_authority.config import (
        resolve_record_authority_settings,
    )
    from services.state.record_authority.data import (
        PostgresRecordStore,
        RecordPostgresRuntime,
    )
    from services.state.record_authority.implementation import (
        DefaultRecordAuthorityService,
    )

    runtime = RecordPostgresRuntime.from_settings(settings)
    return DefaultRecordAuthorityService(
        settings=resolve_record_authority_settings(settings),
        store=PostgresRecordStore(runtime.schema_sessions),
        readiness=runtime.probe,
        clock=clock,
    )
