"""
Identifier encoding and validation.

Identifiers are stored as 16 raw bytes and presented as the canonical
8-4-4-4-12 lowercase hex string.
"""

import re
import uuid
from typing import Any

from .errors import MalformedIdentifier

IDENTIFIER_LENGTH = 16

# Reserved "not yet assigned" value; never produced by the generator.
EMPTY_SENTINEL = b"\x00" * IDENTIFIER_LENGTH

_CANONICAL_RE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)


def to_canonical_string(binary: bytes) -> str:
    """
    Convert an identifier's binary form to its canonical string.

    Raises:
        MalformedIdentifier: If the value is not exactly 16 bytes
    """
    if not isinstance(binary, (bytes, bytearray, memoryview)):
        raise MalformedIdentifier(f"Expected bytes, got {type(binary).__name__}")
    raw = bytes(binary)
    if len(raw) != IDENTIFIER_LENGTH:
        raise MalformedIdentifier(f"Expected {IDENTIFIER_LENGTH} bytes, got {len(raw)}")
    return str(uuid.UUID(bytes=raw))


def to_binary(value: str) -> bytes:
    """
    Convert a canonical identifier string to its 16-byte form.

    Raises:
        MalformedIdentifier: If the string is not a canonical identifier
    """
    if not is_valid_string(value):
        raise MalformedIdentifier(f"Not a valid identifier string: {value!r}")
    return uuid.UUID(value).bytes


def is_valid_string(value: Any) -> bool:
    return isinstance(value, str) and _CANONICAL_RE.fullmatch(value) is not None


def is_empty_sentinel(value: Any) -> bool:
    """True for every representation of "no identifier": None, "", b"" and the all-zero value."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if not isinstance(value, (bytes, bytearray, memoryview)):
        return False
    raw = bytes(value)
    return raw == b"" or raw == EMPTY_SENTINEL
