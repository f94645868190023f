"""Tests for shared record id conversion and ordering semantics."""

from __future__ import annotations

import pytest

from packages.docstore_shared.ids import (
    is_record_id,
    new_record_id,
    record_id_from_bytes,
    record_id_to_bytes,
)


def test_record_id_round_trip_string_bytes_string() -> None:
    """Record id string/bytes conversion must be lossless."""
    record_id = new_record_id()
    encoded = record_id_to_bytes(record_id)

    assert len(encoded) == 16
    assert record_id_from_bytes(encoded) == record_id


def test_record_id_parsing_is_case_insensitive() -> None:
    """Lowercase input should decode to the same bytes."""
    record_id = new_record_id()

    assert record_id_to_bytes(record_id.lower()) == record_id_to_bytes(record_id)


def test_record_id_lexicographic_order_matches_big_endian_binary() -> None:
    """Sorting canonical strings must match sorting binary big-endian ids."""
    values = [
        record_id_to_bytes(new_record_id(timestamp_ms=1_700_000_000_000))
        for _ in range(300)
    ]

    sorted_by_binary = sorted(values)
    sorted_by_string = sorted(values, key=record_id_from_bytes)

    assert sorted_by_binary == sorted_by_string


def test_record_ids_sort_by_timestamp() -> None:
    """Ids generated at later milliseconds sort after earlier ones."""
    earlier = new_record_id(timestamp_ms=1_700_000_000_000)
    later = new_record_id(timestamp_ms=1_700_000_000_001)

    assert earlier < later


@pytest.mark.parametrize(
    "candidate",
    ["", "short", "0" * 25, "I" * 26, "8" + "0" * 25, 12345, None],
)
def test_is_record_id_rejects_malformed_values(candidate) -> None:
    """Wrong lengths, invalid characters, overflow, and non-strings fail."""
    assert is_record_id(candidate) is False


def test_record_id_from_bytes_requires_sixteen_bytes() -> None:
    """Storage form must be exactly 16 bytes."""
    with pytest.raises(ValueError):
        record_id_from_bytes(b"\x00" * 15)


def test_new_record_id_rejects_out_of_range_timestamps() -> None:
    """Timestamps must fit in 48 bits."""
    with pytest.raises(ValueError):
        new_record_id(timestamp_ms=-1)
    with pytest.raises(ValueError):
        new_record_id(timestamp_ms=1 << 48)
