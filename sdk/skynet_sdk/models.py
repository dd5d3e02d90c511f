"""
Value objects for the Skynet SDK.

All objects here are immutable. Every registry update builds a new
RegistryEntry with a new revision; nothing is edited in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RegistryEntry:
    """A registry entry owned by a public key.

    Attributes:
        data_key: Application-chosen key (hex of its hash when hashed_data_key_hex)
        data: Opaque payload, usually a 34-byte raw skylink
        revision: Unsigned 64-bit revision number
    """

    data_key: str
    data: bytes
    revision: int


@dataclass(frozen=True)
class SignedRegistryEntry:
    """A registry entry and its signature.

    entry is None when the portal has no entry for the key.
    """

    entry: RegistryEntry | None
    signature: bytes | None


@dataclass(frozen=True)
class JSONResponse:
    """Result of get_json/set_json.

    Attributes:
        data: The JSON object, or None if not found or short-circuited
        data_link: Formatted skylink of the stored JSON, or None if not found
    """

    data: dict[str, Any] | None
    data_link: str | None


@dataclass(frozen=True)
class EntryDataResponse:
    """Result of get_entry_data/set_entry_data."""

    data: bytes | None


@dataclass(frozen=True)
class RawBytesResponse:
    """Result of get_raw_bytes."""

    data: bytes | None
    data_link: str | None


@dataclass(frozen=True)
class UploadResponse:
    """Result of an upload.

    Attributes:
        skylink: Formatted (sia://) skylink of the uploaded file
    """

    skylink: str


@dataclass(frozen=True)
class FileContentResponse:
    """Downloaded file content and the portal's headers.

    Attributes:
        data: Raw response body
        content_type: Value of the content-type header
        portal_url: Value of the skynet-portal-api header
        skylink: Formatted skylink the portal served
    """

    data: bytes
    content_type: str
    portal_url: str
    skylink: str
