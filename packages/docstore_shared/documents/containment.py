"""Structural containment between document values.

``contains`` is the single definition of partial-document matching. The
Postgres store delegates to ``jsonb @>`` and the in-memory store calls this
function directly, so both must agree on every input the service accepts.
"""

from __future__ import annotations

from .value import DocumentKind, DocumentValue, kind_of, scalar_equal


def contains(container: DocumentValue, contained: DocumentValue) -> bool:
    """Return whether ``container`` structurally contains ``contained``.

    Objects match when every probe key is present with a containing value.
    Arrays match when every probe element is contained by at least one
    container element; order and multiplicity are ignored. Scalars match by
    structural equality.
    """
    probe_kind = kind_of(contained)
    container_kind = kind_of(container)

    if probe_kind is DocumentKind.OBJECT:
        if container_kind is not DocumentKind.OBJECT:
            return False
        assert isinstance(container, dict) and isinstance(contained, dict)
        for key, probe_value in contained.items():
            if key not in container:
                return False
            if not contains(container[key], probe_value):
                return False
        return True

    if probe_kind is DocumentKind.ARRAY:
        if container_kind is not DocumentKind.ARRAY:
            return False
        assert isinstance(container, list) and isinstance(contained, list)
        return all(
            any(contains(candidate, element) for candidate in container)
            for element in contained
        )

    return scalar_equal(container, contained)
