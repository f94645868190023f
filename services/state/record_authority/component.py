"""Component identity for the Record Authority Service."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_record_authority"
