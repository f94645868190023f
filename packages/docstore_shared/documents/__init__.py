"""Document value engine: representation, containment, paths, and patches."""

from .codec import dumps_document, loads_document
from .containment import contains
from .paths import extract, extract_number, extract_string, split_path
from .patches import (
    AppendArrayElement,
    InsertUniqueScalar,
    PatchOperation,
    PatchOutcome,
    RemoveScalar,
    Replace,
    ShapeMismatchError,
    apply_operation,
)
from .value import (
    DocumentKind,
    DocumentScalar,
    DocumentTypeError,
    DocumentValue,
    as_decimal,
    documents_equal,
    is_scalar,
    kind_of,
    normalize_document,
    scalar_equal,
)

__all__ = [
    "AppendArrayElement",
    "DocumentKind",
    "DocumentScalar",
    "DocumentTypeError",
    "DocumentValue",
    "InsertUniqueScalar",
    "PatchOperation",
    "PatchOutcome",
    "RemoveScalar",
    "Replace",
    "ShapeMismatchError",
    "apply_operation",
    "as_decimal",
    "contains",
    "documents_equal",
    "dumps_document",
    "extract",
    "extract_number",
    "extract_string",
    "is_scalar",
    "kind_of",
    "loads_document",
    "normalize_document",
    "scalar_equal",
    "split_path",
]
