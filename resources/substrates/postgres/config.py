"""Configuration model for shared Postgres substrate access."""

from __future__ import annotations

from typing import Literal
from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from packages.docstore_shared.config import DocstoreSettings, resolve_component_settings
from resources.substrates.postgres.component import RESOURCE_COMPONENT_ID

SslMode = Literal["disable", "allow", "prefer", "require", "verify-ca", "verify-full"]


class PostgresSettings(BaseModel):
    """Runtime settings for constructing Postgres engines and pools.

    ``url`` wins when set; otherwise a psycopg URL is assembled from the split
    host/port/database/user/password fields.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str = ""
    host: str = "postgres"
    port: int = Field(default=5432, gt=0)
    database: str = "docstore"
    user: str = "docstore"
    password: str = "docstore"
    pool_size: int = Field(default=5, gt=0)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout_seconds: float = Field(default=30.0, gt=0)
    pool_pre_ping: bool = True
    connect_timeout_seconds: float = Field(default=10.0, gt=0)
    health_timeout_seconds: float = Field(default=1.0, gt=0)
    sslmode: SslMode = "prefer"

    @field_validator("pool_pre_ping", mode="before")
    @classmethod
    def _coerce_pool_pre_ping(cls, value: object) -> object:
        """Normalize boolean-like strings from env and YAML sources."""
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in {"true", "1", "yes", "on"}:
                return True
            if lowered in {"false", "0", "no", "off"}:
                return False
        return value

    @model_validator(mode="before")
    @classmethod
    def _assemble_url(cls, data: object) -> object:
        """Fill ``url`` from split parts when it was not given directly."""
        if not isinstance(data, dict):
            return data
        url = str(data.get("url") or "").strip()
        if url:
            return {**data, "url": url}

        parts = {
            name: str(data.get(name, cls.model_fields[name].default)).strip()
            for name in ("host", "port", "database", "user", "password")
        }
        for required in ("host", "database", "user"):
            if not parts[required]:
                raise ValueError(
                    f"postgres.{required} is required when postgres.url is unset"
                )
        return {
            **data,
            "url": "postgresql+psycopg://"
            f"{quote_plus(parts['user'])}:{quote_plus(parts['password'])}"
            f"@{parts['host']}:{parts['port']}/{quote_plus(parts['database'])}",
        }


def resolve_postgres_settings(settings: DocstoreSettings) -> PostgresSettings:
    """Resolve substrate settings from ``components.substrate.postgres``."""
    return resolve_component_settings(
        settings=settings,
        component_id=RESOURCE_COMPONENT_ID,
        model=PostgresSettings,
    )
