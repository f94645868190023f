"""Public shared envelope API for docstore services."""

from .builders import failure, success
from .envelope import Envelope
from .meta import EnvelopeKind, EnvelopeMeta, new_meta
from .payload import Payload
from .validate import utc_now, validate_meta

__all__ = [
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "Payload",
    "failure",
    "new_meta",
    "success",
    "utc_now",
    "validate_meta",
]
