"""Record Authority Service native package exports."""

from packages.docstore_shared.envelope import Envelope, EnvelopeKind, EnvelopeMeta
from packages.docstore_shared.errors import ErrorCategory, ErrorDetail
from services.state.record_authority.component import SERVICE_COMPONENT_ID
from services.state.record_authority.config import RecordAuthoritySettings
from services.state.record_authority.domain import (
    ContainmentProbe,
    EntityKind,
    LogEntryRecord,
    OrderRecord,
    PathRangeProbe,
    ProductRecord,
    Record,
    RelationalOp,
    RelationalPredicate,
    RelationalProbe,
    SortOrder,
    UserRecord,
)
from services.state.record_authority.implementation import (
    DefaultRecordAuthorityService,
)
from services.state.record_authority.service import (
    RecordAuthorityService,
    build_record_authority_service,
)

__all__ = [
    "SERVICE_COMPONENT_ID",
    "RecordAuthorityService",
    "RecordAuthoritySettings",
    "DefaultRecordAuthorityService",
    "build_record_authority_service",
    "EntityKind",
    "Record",
    "UserRecord",
    "ProductRecord",
    "OrderRecord",
    "LogEntryRecord",
    "ContainmentProbe",
    "PathRangeProbe",
    "RelationalProbe",
    "RelationalPredicate",
    "RelationalOp",
    "SortOrder",
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "ErrorCategory",
    "ErrorDetail",
]
