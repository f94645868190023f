"""Data-layer exports for Record Authority Service."""

from services.state.record_authority.data.memory import InMemoryRecordStore
from services.state.record_authority.data.repository import PostgresRecordStore
from services.state.record_authority.data.runtime import RecordPostgresRuntime

__all__ = ["InMemoryRecordStore", "PostgresRecordStore", "RecordPostgresRuntime"]
