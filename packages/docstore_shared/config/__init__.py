"""Public API for shared docstore configuration utilities."""

from .loader import load_settings
from .models import (
    DEFAULT_CONFIG_PATH,
    ComponentsSettings,
    DocstoreSettings,
    LoggingSettings,
    resolve_component_settings,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ComponentsSettings",
    "DocstoreSettings",
    "LoggingSettings",
    "load_settings",
    "resolve_component_settings",
]
