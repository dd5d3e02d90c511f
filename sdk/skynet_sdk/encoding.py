"""
Canonical byte encodings for registry entries.

The layout must match the portal's own verification routine bit for bit:

    data_key_hash (32 bytes)
    len(data) as uint64 little-endian || data
    revision as uint64 little-endian

The blake2b-256 hash of that byte string is what gets signed.

Invariants:
    - Pure functions, no I/O
    - Only malformed lengths or out-of-range numbers raise
"""

from __future__ import annotations

from .crypto import HASH_SIZE, hash_all
from .errors import ValidationError
from .models import RegistryEntry
from .revision import assert_uint64
from .validate import validate_bytes, validate_hex_string, validate_string


def encode_uint64(value: int) -> bytes:
    """Encode a revision or length as 8 little-endian bytes.

    Raises:
        ValidationError: If value is not an int in [0, 2**64 - 1]
    """
    assert_uint64(value)
    return value.to_bytes(8, "little")


def encode_prefixed_bytes(data: bytes) -> bytes:
    """Length-prefix data with its 8-byte little-endian length."""
    return encode_uint64(len(data)) + data


def encode_utf8_string(value: str) -> bytes:
    validate_string("value", value, "parameter")
    return encode_prefixed_bytes(value.encode("utf-8"))


def hash_data_key(data_key: str) -> bytes:
    """Hash a plain data key into the 32-byte registry tweak."""
    return hash_all(encode_utf8_string(data_key))


def data_key_bytes(data_key: str, hashed_data_key_hex: bool = False) -> bytes:
    """Return the 32-byte hashed form of a data key.

    Args:
        data_key: Plain data key, or hex of its hash
        hashed_data_key_hex: Whether data_key is already the hex-encoded hash
    """
    if not hashed_data_key_hex:
        return hash_data_key(data_key)

    validate_hex_string("data_key", data_key, "parameter")
    raw = bytes.fromhex(data_key)
    if len(raw) != HASH_SIZE:
        raise ValidationError(
            f"Expected hashed data key to be {HASH_SIZE} bytes, was {len(raw)} bytes",
            name="data_key",
        )
    return raw


def data_key_hex(data_key: str, hashed_data_key_hex: bool = False) -> str:
    return data_key_bytes(data_key, hashed_data_key_hex).hex()


def encode_registry_entry(entry: RegistryEntry, hashed_data_key_hex: bool = False) -> bytes:
    """Encode an entry into the canonical byte layout used for signing."""
    data = validate_bytes("entry.data", entry.data, "field")
    return (
        data_key_bytes(entry.data_key, hashed_data_key_hex)
        + encode_prefixed_bytes(data)
        + encode_uint64(entry.revision)
    )


def hash_registry_entry(entry: RegistryEntry, hashed_data_key_hex: bool = False) -> bytes:
    """Hash of the canonical encoding; this is the signed message."""
    return hash_all(encode_registry_entry(entry, hashed_data_key_hex))
