"""Shared ULID record identifier primitives."""

from packages.docstore_shared.ids.sqlalchemy import (
    ULID_BYTES_LENGTH,
    record_id_column,
    record_reference_column,
)
from packages.docstore_shared.ids.ulid import (
    is_record_id,
    new_record_id,
    record_id_from_bytes,
    record_id_to_bytes,
)

__all__ = [
    "ULID_BYTES_LENGTH",
    "is_record_id",
    "new_record_id",
    "record_id_column",
    "record_id_from_bytes",
    "record_id_to_bytes",
    "record_reference_column",
]
