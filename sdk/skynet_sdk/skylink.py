"""
Skylink parsing, formatting, and binary encoding.

A raw skylink is 34 bytes: a 2-byte little-endian bitfield followed by a
32-byte merkle root. Its text forms are 46 chars of unpadded base64url or
55 chars of unpadded lowercase base32hex. The two low bits of the bitfield
carry the version: version 1 is a direct content link, version 2 is an
entry (resolver) link whose merkle root is derived from a public key and a
data key.

Example:
    >>> link = get_entry_link(public_key, "app.json")
    >>> parse_skylink(link) == trim_uri_prefix(link, URI_SKYNET_PREFIX)
    True
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlsplit

from .crypto import HASH_SIZE, hash_all
from .encoding import data_key_bytes, encode_prefixed_bytes
from .errors import ValidationError
from .validate import (
    validate_bytes_len,
    validate_public_key,
    validate_string,
    validation_error,
)

RAW_SKYLINK_SIZE = 34
BASE64_ENCODED_SKYLINK_SIZE = 46
BASE32_ENCODED_SKYLINK_SIZE = 55

URI_SKYNET_PREFIX = "sia://"

EMPTY_SKYLINK = bytes(RAW_SKYLINK_SIZE)

SPECIFIER_LEN = 16
_ED25519_SPECIFIER = b"ed25519".ljust(SPECIFIER_LEN, b"\x00")

_BASE64_SKYLINK = r"[a-zA-Z0-9_-]{%d}" % BASE64_ENCODED_SKYLINK_SIZE
_BASE32_SKYLINK = r"[a-vA-V0-9]{%d}" % BASE32_ENCODED_SKYLINK_SIZE
_SKYLINK_PATH_RE = re.compile(
    r"^/?(?P<skylink>%s|%s)(?P<path>/.*)?$" % (_BASE64_SKYLINK, _BASE32_SKYLINK)
)
_SKYLINK_SUBDOMAIN_RE = re.compile(r"^(?P<skylink>%s)$" % _BASE32_SKYLINK)


@dataclass(frozen=True)
class SiaSkylink:
    """Decoded skylink.

    Attributes:
        bitfield: 16-bit bitfield, low two bits are (version - 1)
        merkle_root: 32-byte merkle root or registry entry ID
    """

    bitfield: int
    merkle_root: bytes

    @property
    def version(self) -> int:
        return (self.bitfield & 3) + 1

    def to_bytes(self) -> bytes:
        return self.bitfield.to_bytes(2, "little") + self.merkle_root

    def to_string(self) -> str:
        return encode_skylink_base64(self.to_bytes())

    @classmethod
    def from_bytes(cls, data: bytes) -> SiaSkylink:
        raw = validate_bytes_len("data", data, "parameter", RAW_SKYLINK_SIZE)
        return cls(bitfield=int.from_bytes(raw[:2], "little"), merkle_root=raw[2:])

    @classmethod
    def from_string(cls, skylink: str) -> SiaSkylink:
        return cls.from_bytes(decode_skylink_base64(skylink))

    def __str__(self) -> str:
        return self.to_string()


def encode_skylink_base64(raw: bytes) -> str:
    """Encode raw skylink bytes as 46 chars of unpadded base64url."""
    validate_bytes_len("raw", raw, "parameter", RAW_SKYLINK_SIZE)
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_skylink_base64(skylink: str) -> bytes:
    """Decode a 46-char base64 skylink into its 34 raw bytes."""
    validate_string("skylink", skylink, "parameter")
    if len(skylink) != BASE64_ENCODED_SKYLINK_SIZE:
        raise validation_error(
            "skylink",
            skylink,
            "parameter",
            f"type 'str' of length {BASE64_ENCODED_SKYLINK_SIZE}, was length {len(skylink)}",
        )
    try:
        return base64.urlsafe_b64decode(skylink + "==")
    except (binascii.Error, ValueError) as e:
        raise validation_error("skylink", skylink, "parameter", "a base64 skylink") from e


def encode_skylink_base32(raw: bytes) -> str:
    validate_bytes_len("raw", raw, "parameter", RAW_SKYLINK_SIZE)
    return base64.b32hexencode(raw).decode("ascii").rstrip("=").lower()


def decode_skylink_base32(skylink: str) -> bytes:
    validate_string("skylink", skylink, "parameter")
    if len(skylink) != BASE32_ENCODED_SKYLINK_SIZE:
        raise validation_error(
            "skylink",
            skylink,
            "parameter",
            f"type 'str' of length {BASE32_ENCODED_SKYLINK_SIZE}, was length {len(skylink)}",
        )
    try:
        return base64.b32hexdecode(skylink.upper() + "=")
    except (binascii.Error, ValueError) as e:
        raise validation_error("skylink", skylink, "parameter", "a base32 skylink") from e


def convert_skylink_to_base32(skylink: str) -> str:
    return encode_skylink_base32(decode_skylink_base64(skylink))


def convert_skylink_to_base64(skylink: str) -> str:
    return encode_skylink_base64(decode_skylink_base32(skylink))


def trim_uri_prefix(value: str, prefix: str) -> str:
    """Strip a URI prefix such as "sia://" (or its short form "sia:")."""
    short_prefix = prefix.rstrip("/")
    if value.startswith(prefix):
        return value[len(prefix):]
    if value.startswith(short_prefix):
        return value[len(short_prefix):]
    return value


def format_skylink(skylink: str) -> str:
    """Add the "sia://" prefix to a skylink if it is missing."""
    validate_string("skylink", skylink, "parameter")
    if skylink == "":
        return skylink
    if not skylink.startswith(URI_SKYNET_PREFIX.rstrip("/")):
        return f"{URI_SKYNET_PREFIX}{skylink}"
    return skylink


def _to_base64(skylink: str) -> str:
    if len(skylink) == BASE32_ENCODED_SKYLINK_SIZE:
        return convert_skylink_to_base64(skylink.lower())
    return skylink


def parse_skylink(skylink_url: str, *, only_path: bool = False) -> Optional[str]:
    """Extract the base64 skylink (or its path) from a string.

    Accepts bare skylinks, "sia://" skylinks, skylinks followed by a path,
    portal URLs with the skylink in the path, and base32 skylinks either in
    the path or as the first subdomain label.

    Args:
        skylink_url: The string to parse
        only_path: Return the path after the skylink instead of the skylink

    Returns:
        The base64 skylink (or path, possibly ""), or None if none was found
    """
    validate_string("skylink_url", skylink_url, "parameter")

    value = trim_uri_prefix(skylink_url, URI_SKYNET_PREFIX)
    if "://" not in value:
        match = _SKYLINK_PATH_RE.match(value)
    else:
        parts = urlsplit(value)
        match = _SKYLINK_PATH_RE.match(parts.path)
        if match is None and parts.hostname:
            subdomain = parts.hostname.split(".")[0]
            sub_match = _SKYLINK_SUBDOMAIN_RE.match(subdomain)
            if sub_match is not None:
                if only_path:
                    return "" if parts.path == "/" else parts.path
                return _to_base64(sub_match.group("skylink"))

    if match is None:
        return None
    if only_path:
        return match.group("path") or ""
    return _to_base64(match.group("skylink"))


def validate_skylink_string(name: str, value: Any, value_kind: str) -> str:
    """Validate a skylink string and return it parsed to base64 form."""
    validate_string(name, value, value_kind)
    parsed = parse_skylink(value)
    if parsed is None:
        raise validation_error(name, value, value_kind, "a valid skylink of type 'str'")
    return parsed


def is_skylink_v1(skylink: str) -> bool:
    """Whether a base64 skylink is a direct content link."""
    return SiaSkylink.from_string(skylink).version == 1


def is_skylink_v2(skylink: str) -> bool:
    """Whether a base64 skylink is an entry (resolver) link."""
    return SiaSkylink.from_string(skylink).version == 2


def marshal_ed25519_public_key(public_key: bytes) -> bytes:
    """Sia encoding of an Ed25519 public key: specifier || prefixed key."""
    return _ED25519_SPECIFIER + encode_prefixed_bytes(public_key)


def derive_registry_entry_id(public_key: bytes, tweak: bytes) -> bytes:
    if len(tweak) != HASH_SIZE:
        raise ValidationError(f"Expected tweak of {HASH_SIZE} bytes, got {len(tweak)}", name="tweak")
    return hash_all(marshal_ed25519_public_key(public_key), tweak)


def new_entry_link(public_key: bytes, tweak: bytes) -> SiaSkylink:
    """Build the version 2 skylink that resolves through a registry entry."""
    return SiaSkylink(bitfield=1, merkle_root=derive_registry_entry_id(public_key, tweak))


def get_entry_link(public_key: str, data_key: str, *, hashed_data_key_hex: bool = False) -> str:
    """Return the formatted entry link for a public key and data key.

    Args:
        public_key: Hex public key, optionally "ed25519:"-prefixed
        data_key: Data key (hex of its hash if hashed_data_key_hex)
        hashed_data_key_hex: Whether data_key is already hashed and hex-encoded
    """
    key = validate_public_key("public_key", public_key, "parameter")
    validate_string("data_key", data_key, "parameter")
    tweak = data_key_bytes(data_key, hashed_data_key_hex)
    return format_skylink(new_entry_link(bytes.fromhex(key), tweak).to_string())
