"""Canonical shared error types for docstore services.

This module defines a transport-agnostic error taxonomy and shape used by every
service public API so callers can branch on ``code``/``category`` instead of
matching message text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping


class ErrorCategory(str, Enum):
    """High-level error categories shared across service boundaries."""

    UNSPECIFIED = "unspecified"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    DEPENDENCY = "dependency"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ErrorDetail:
    """Structured error object used in envelope responses."""

    code: str
    message: str
    category: ErrorCategory
    retryable: bool = False
    metadata: Mapping[str, str] = field(default_factory=dict)
