"""Record identifier helpers built on canonical ULIDs.

Record ids travel through the service boundary as 26-character Crockford
Base32 strings and are stored as 16-byte big-endian binary.
"""

from __future__ import annotations

import secrets
import time

_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_DECODE = {char: index for index, char in enumerate(_ALPHABET)}
_ULID_TEXT_LENGTH = 26
_ULID_BYTES_LENGTH = 16
_MAX_ULID = (1 << 128) - 1


def record_id_to_bytes(record_id: str) -> bytes:
    """Decode a canonical record id string into its 16-byte storage form."""
    candidate = record_id.strip().upper()
    if len(candidate) != _ULID_TEXT_LENGTH:
        raise ValueError("record id must be exactly 26 characters")

    number = 0
    for char in candidate:
        digit = _DECODE.get(char)
        if digit is None:
            raise ValueError(f"invalid record id character: {char!r}")
        number = (number << 5) | digit

    # 26 chars carry 130 bits; only the low 128 are meaningful.
    if number > _MAX_ULID:
        raise ValueError("record id exceeds 128-bit range")
    return number.to_bytes(_ULID_BYTES_LENGTH, byteorder="big", signed=False)


def record_id_from_bytes(value: bytes) -> str:
    """Encode 16-byte storage form into the canonical record id string."""
    if len(value) != _ULID_BYTES_LENGTH:
        raise ValueError("record id bytes must be exactly 16 bytes")

    number = int.from_bytes(value, byteorder="big", signed=False)
    chars: list[str] = []
    for _ in range(_ULID_TEXT_LENGTH):
        number, remainder = divmod(number, 32)
        chars.append(_ALPHABET[remainder])
    return "".join(reversed(chars))


def new_record_id(*, timestamp_ms: int | None = None) -> str:
    """Generate a new time-ordered record id."""
    ts_ms = int(time.time() * 1000) if timestamp_ms is None else int(timestamp_ms)
    if ts_ms < 0 or ts_ms >= (1 << 48):
        raise ValueError("timestamp_ms out of ULID 48-bit range")

    entropy = int.from_bytes(secrets.token_bytes(10), byteorder="big", signed=False)
    number = (ts_ms << 80) | entropy
    return record_id_from_bytes(
        number.to_bytes(_ULID_BYTES_LENGTH, byteorder="big", signed=False)
    )


def is_record_id(value: object) -> bool:
    """Return whether ``value`` is a well-formed record id string."""
    if not isinstance(value, str):
        return False
    try:
        record_id_to_bytes(value)
    except ValueError:
        return False
    return True
