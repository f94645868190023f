"""Pydantic settings for Record Authority Service behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from packages.docstore_shared.config import DocstoreSettings, resolve_component_settings
from services.state.record_authority.component import SERVICE_COMPONENT_ID


class RecordAuthoritySettings(BaseModel):
    """Record Authority Service runtime behavior settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    default_page_size: int = Field(default=50, gt=0)
    max_page_size: int = Field(default=500, gt=0)
    log_retention_days: int = Field(default=30, gt=0)
    recent_error_limit: int = Field(default=10, gt=0)

    @model_validator(mode="after")
    def _validate_page_sizes(self) -> "RecordAuthoritySettings":
        """Require the default page to fit inside the maximum page."""
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size must be <= max_page_size")
        return self


def resolve_record_authority_settings(
    settings: DocstoreSettings,
) -> RecordAuthoritySettings:
    """Resolve RAS settings from ``components.service.record_authority``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=RecordAuthoritySettings,
    )
