"""Layered settings loading for docstore processes.

Sources, highest precedence first:

1. ``cli_params`` passed by the caller
2. ``DOCSTORE_``-prefixed environment variables, ``__`` separating levels
   (``DOCSTORE_COMPONENTS__SUBSTRATE__POSTGRES__POOL_SIZE=9``)
3. the YAML file, ``~/.config/docstore/docstore.yaml`` by default
4. model defaults

Environment values are handed to pydantic as strings so field types decide the
coercion; values that look like JSON objects or arrays are decoded first.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .models import DEFAULT_CONFIG_PATH, DocstoreSettings

ENV_PREFIX = "DOCSTORE_"
ENV_NESTING = "__"


def load_settings(
    *,
    cli_params: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    config_path: str | Path | None = None,
) -> DocstoreSettings:
    """Merge every source and validate the result as ``DocstoreSettings``."""
    layers = (
        _read_yaml(Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH),
        _read_environment(os.environ if environ is None else environ),
        dict(cli_params or {}),
    )
    merged: dict[str, Any] = {}
    for layer in layers:
        merged = _deep_merge(merged, layer)
    return DocstoreSettings.model_validate(merged)


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle)
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config file must contain a top-level mapping: {path}")
    return loaded


def _read_environment(environ: Mapping[str, str]) -> dict[str, Any]:
    tree: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        keys = [
            part.strip().lower()
            for part in name[len(ENV_PREFIX) :].split(ENV_NESTING)
            if part.strip()
        ]
        if not keys:
            continue
        node = tree
        for key in keys[:-1]:
            existing = node.get(key)
            if not isinstance(existing, dict):
                existing = node[key] = {}
            node = existing
        node[keys[-1]] = _decode_env_value(raw)
    return tree


def _decode_env_value(raw: str) -> Any:
    text = raw.strip()
    if text[:1] in ("{", "["):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return raw
    return raw


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``override`` applied; nested mappings merge key by key."""
    merged = {str(key): value for key, value in base.items()}
    for key, value in override.items():
        current = merged.get(str(key))
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[str(key)] = _deep_merge(current, value)
        else:
            merged[str(key)] = value
    return merged
