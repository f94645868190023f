"""Typed settings shared by every docstore process."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "docstore" / "docstore.yaml"
COMPONENT_KINDS = ("service", "substrate")


class LoggingSettings(BaseModel):
    """Arguments for ``configure_logging``."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = True
    service: str = "docstore"
    environment: str = "dev"


class ComponentNamespaceSettings(BaseModel):
    """Untyped settings for every component of one kind, keyed by name.

    Each component validates its own entry with ``resolve_component_settings``.
    """

    model_config = ConfigDict(extra="allow")


class ComponentsSettings(BaseModel):
    """The ``components`` tree: ``components.<kind>.<name>``."""

    model_config = ConfigDict(extra="allow")

    service: ComponentNamespaceSettings = Field(
        default_factory=ComponentNamespaceSettings
    )
    substrate: ComponentNamespaceSettings = Field(
        default_factory=ComponentNamespaceSettings
    )

    @model_validator(mode="before")
    @classmethod
    def _require_kind_namespaces(cls, value: Any) -> Any:
        # components.substrate_postgres is a common mistake for
        # components.substrate.postgres; fail loudly instead of ignoring it.
        if isinstance(value, dict):
            for key in value:
                kind, sep, name = str(key).partition("_")
                if sep and kind in COMPONENT_KINDS:
                    raise ValueError(
                        f"components.{key} is invalid; use components.{kind}.{name} instead"
                    )
        return value


class DocstoreSettings(BaseSettings):
    """Root settings. ``load_settings`` is the supported way to build one."""

    model_config = SettingsConfigDict(
        env_prefix="DOCSTORE_",
        env_nested_delimiter="__",
        extra="ignore",
        nested_model_default_partial_update=True,
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    components: ComponentsSettings = Field(default_factory=ComponentsSettings)


TComponentSettings = TypeVar("TComponentSettings", bound=BaseModel)


def resolve_component_settings(
    *,
    settings: DocstoreSettings,
    component_id: str,
    model: type[TComponentSettings],
) -> TComponentSettings:
    """Validate ``components.<kind>.<name>`` for ``<kind>_<name>`` as ``model``.

    A component with no configured entry gets the model defaults.
    """
    kind, sep, name = component_id.partition("_")
    if not sep or kind not in COMPONENT_KINDS:
        raise ValueError(f"component id must be prefixed by kind: {component_id}")

    namespace = getattr(settings.components, kind).model_dump(mode="python")
    entry = namespace.get(name, {})
    if not isinstance(entry, dict):
        raise TypeError(f"components.{kind}.{name} must resolve to an object mapping")
    return model.model_validate(entry)
