"""
Parameter and response validation for the Skynet SDK.

This module provides validation utilities:
- Type and length checks for parameters and response fields
- Option mapping checks against an allow-list
- Public/private key format checks

Invariants:
    - Validation errors are deterministic
    - Error messages name the value, what was expected, and what was found
    - Validation never touches the network
"""

from __future__ import annotations

import re
from difflib import get_close_matches
from typing import Any, Mapping, Optional

from .errors import ValidationError

ED25519_PREFIX = "ed25519:"
PUBLIC_KEY_SIZE = 32
PRIVATE_KEY_SIZE = 64

_HEX_RE = re.compile(r"^[0-9A-Fa-f]*$")


def describe_value(value: Any) -> str:
    """Describe a value for use in an error message."""
    if value is None:
        return "type 'None'"
    return f"type '{type(value).__name__}', value {value!r}"


def validation_error(
    name: str,
    value: Any,
    value_kind: str,
    expected: str,
) -> ValidationError:
    """Build the error for a value that failed validation.

    Args:
        name: Name of the value (e.g. "data_key")
        value: The actual value
        value_kind: Kind of value being checked (e.g. "parameter", "response field")
        expected: What was expected (e.g. "type 'str'")

    Returns:
        ValidationError with a message naming all of the above
    """
    return ValidationError(
        f"Expected {value_kind} '{name}' to be {expected}, was {describe_value(value)}",
        name=name,
    )


def validate_string(name: str, value: Any, value_kind: str) -> str:
    if not isinstance(value, str):
        raise validation_error(name, value, value_kind, "type 'str'")
    return value


def validate_boolean(name: str, value: Any, value_kind: str) -> bool:
    if not isinstance(value, bool):
        raise validation_error(name, value, value_kind, "type 'bool'")
    return value


def validate_integer(name: str, value: Any, value_kind: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise validation_error(name, value, value_kind, "type 'int'")
    return value


def is_hex_string(value: str) -> bool:
    return bool(_HEX_RE.match(value)) and len(value) % 2 == 0


def validate_hex_string(name: str, value: Any, value_kind: str) -> str:
    validate_string(name, value, value_kind)
    if not is_hex_string(value):
        raise validation_error(name, value, value_kind, "a hex-encoded string")
    return value


def validate_bytes(name: str, value: Any, value_kind: str) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise validation_error(name, value, value_kind, "type 'bytes'")
    return bytes(value)


def validate_bytes_len(name: str, value: Any, value_kind: str, length: int) -> bytes:
    data = validate_bytes(name, value, value_kind)
    if len(data) != length:
        raise validation_error(
            name,
            value,
            value_kind,
            f"type 'bytes' of length {length}, was length {len(data)}",
        )
    return data


def validate_object(name: str, value: Any, value_kind: str) -> Mapping[str, Any]:
    """Validate that a value is a JSON-style object (a mapping)."""
    if value is None:
        raise validation_error(name, value, value_kind, "non-null")
    if not isinstance(value, Mapping):
        raise validation_error(name, value, value_kind, "type 'dict'")
    return value


def validate_optional_options(
    name: str,
    value: Optional[Mapping[str, Any]],
    value_kind: str,
    model: Mapping[str, Any],
) -> None:
    """Validate an optional options mapping against an allow-list.

    Args:
        name: Name of the value
        value: The options mapping, or None
        value_kind: Kind of value being checked
        model: Mapping whose keys are the only allowed keys

    Raises:
        ValidationError: If value is not a mapping or has an unknown key
    """
    if not value:
        return

    validate_object(name, value, value_kind)
    for key in value:
        if key not in model:
            message = f"Object {value_kind} '{name}' contains unexpected property '{key}'"
            suggestions = get_close_matches(str(key), list(model), n=3)
            if suggestions:
                message += f". Did you mean: {', '.join(suggestions)}?"
            raise ValidationError(message, name=name, code="UNEXPECTED_OPTION")


def trim_ed25519_prefix(public_key: str) -> str:
    if public_key.startswith(ED25519_PREFIX):
        return public_key[len(ED25519_PREFIX):]
    return public_key


def validate_public_key(name: str, value: Any, value_kind: str) -> str:
    """Validate an Ed25519 public key, optionally prefixed with "ed25519:".

    Returns:
        The bare hex public key, without prefix
    """
    validate_string(name, value, value_kind)
    key = trim_ed25519_prefix(value)
    if not is_hex_string(key) or len(key) != PUBLIC_KEY_SIZE * 2:
        raise validation_error(
            name,
            value,
            value_kind,
            f"a hex-encoded {PUBLIC_KEY_SIZE}-byte key with an optional '{ED25519_PREFIX}' prefix",
        )
    return key.lower()


def validate_private_key(name: str, value: Any, value_kind: str) -> str:
    validate_hex_string(name, value, value_kind)
    if len(value) != PRIVATE_KEY_SIZE * 2:
        raise validation_error(
            name,
            value,
            value_kind,
            f"a hex-encoded {PRIVATE_KEY_SIZE}-byte key",
        )
    return value.lower()
