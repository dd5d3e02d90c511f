"""
Registry client for the Skynet SDK.

This module reads and writes single signed registry entries:
- get_entry: look up and verify the entry for (public_key, data_key)
- set_entry: sign an entry and submit it
- get_entry_link / get_entry_url: address helpers

Example:
    >>> registry = RegistryClient(transport)
    >>> signed = await registry.get_entry(public_key, "profile")
    >>> if signed.entry is None:
    ...     print("not found")

Invariants:
    - A returned entry always carries a signature that verified
    - "Not found" (404) is a None entry, never an exception
    - No state is kept between calls; keys are never stored
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from . import crypto
from ._transport import PortalTransport, make_url
from .encoding import data_key_hex, hash_registry_entry
from .errors import (
    PortalRejectedError,
    ResponseError,
    SignatureInvalidError,
    ValidationError,
)
from .models import RegistryEntry, SignedRegistryEntry
from .options import GET_ENTRY_OPTIONS, SET_ENTRY_OPTIONS, merge_options
from .revision import assert_uint64
from .skylink import get_entry_link
from .validate import (
    ED25519_PREFIX,
    validate_bytes,
    validate_bytes_len,
    validate_private_key,
    validate_public_key,
    validate_string,
    validation_error,
)

logger = logging.getLogger(__name__)

# Seconds the portal may spend looking up an entry.
DEFAULT_GET_ENTRY_TIMEOUT = 5


class RegistryEntryResponse(BaseModel):
    """Body of a successful registry lookup."""

    data: str
    revision: int
    signature: str
    type: int = 1


def validate_registry_entry(name: str, value: Any, value_kind: str) -> RegistryEntry:
    if not isinstance(value, RegistryEntry):
        raise validation_error(name, value, value_kind, "type 'RegistryEntry'")
    validate_string(f"{name}.data_key", value.data_key, value_kind)
    validate_bytes(f"{name}.data", value.data, value_kind)
    assert_uint64(value.revision)
    return value


def sign_entry(private_key: str, entry: RegistryEntry, hashed_data_key_hex: bool = False) -> bytes:
    """Sign the canonical hash of an entry.

    Args:
        private_key: Hex private key
        entry: Entry to sign
        hashed_data_key_hex: Whether entry.data_key is already hashed and hex-encoded

    Returns:
        64-byte Ed25519 signature
    """
    return crypto.sign(private_key, hash_registry_entry(entry, hashed_data_key_hex))


class RegistryClient:
    """Signed get/set of single registry entries against a portal.

    Example:
        >>> registry = RegistryClient(transport)
        >>> await registry.set_entry(private_key, RegistryEntry("k", data, 0))
    """

    def __init__(
        self,
        transport: PortalTransport,
        *,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Initialize the registry client.

        Args:
            transport: Portal transport used for every request
            custom_options: Client-wide option overrides
        """
        self._transport = transport
        self._custom_options = dict(custom_options or {})

    async def get_entry_url(
        self,
        public_key: str,
        data_key: str,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Return the full lookup URL for an entry."""
        key = validate_public_key("public_key", public_key, "parameter")
        validate_string("data_key", data_key, "parameter")
        opts = merge_options(GET_ENTRY_OPTIONS, self._custom_options, custom_options)

        portal_url = await self._transport.resolve_portal_url()
        query = (
            f"publickey={ED25519_PREFIX}{key}"
            f"&datakey={data_key_hex(data_key, opts['hashed_data_key_hex'])}"
            f"&timeout={DEFAULT_GET_ENTRY_TIMEOUT}"
        )
        return f"{make_url(portal_url, opts['endpoint_get_entry'])}?{query}"

    def get_entry_link(
        self,
        public_key: str,
        data_key: str,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Return the entry link (resolver skylink) for an entry."""
        opts = merge_options(GET_ENTRY_OPTIONS, self._custom_options, custom_options)
        return get_entry_link(
            public_key,
            data_key,
            hashed_data_key_hex=opts["hashed_data_key_hex"],
        )

    async def get_entry(
        self,
        public_key: str,
        data_key: str,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> SignedRegistryEntry:
        """Look up and verify the entry for a public key and data key.

        Args:
            public_key: Hex public key, optionally "ed25519:"-prefixed
            data_key: Data key (hex of its hash if hashed_data_key_hex)
            custom_options: Per-call options (GET_ENTRY_OPTIONS keys)

        Returns:
            The signed entry, or SignedRegistryEntry(None, None) if not found

        Raises:
            ValidationError: If an argument is malformed
            SignatureInvalidError: If the returned entry does not verify
            PortalRejectedError: If the portal returns an unexpected status
            ResponseError: If the response body is malformed
        """
        key = validate_public_key("public_key", public_key, "parameter")
        validate_string("data_key", data_key, "parameter")
        opts = merge_options(GET_ENTRY_OPTIONS, self._custom_options, custom_options)
        hashed = opts["hashed_data_key_hex"]

        response = await self._transport.execute_request(
            "GET",
            opts["endpoint_get_entry"],
            options=opts,
            params={
                "publickey": f"{ED25519_PREFIX}{key}",
                "datakey": data_key_hex(data_key, hashed),
                "timeout": DEFAULT_GET_ENTRY_TIMEOUT,
            },
        )

        if response.status == 404:
            logger.debug("Registry entry not found for data key %r", data_key)
            return SignedRegistryEntry(entry=None, signature=None)
        if response.status != 200:
            raise PortalRejectedError(
                f"Registry lookup failed with unexpected status code {response.status}",
                status=response.status,
                portal_message=response.error_message(),
            )

        try:
            body = RegistryEntryResponse.model_validate(response.json())
            assert_uint64(body.revision)
            entry = RegistryEntry(
                data_key=data_key,
                data=bytes.fromhex(body.data),
                revision=body.revision,
            )
            signature = bytes.fromhex(body.signature)
        except (PydanticValidationError, ValidationError, ValueError) as e:
            raise ResponseError(
                f"Did not get a complete registry response despite a successful request: {e}"
            ) from e

        if not crypto.verify(bytes.fromhex(key), hash_registry_entry(entry, hashed), signature):
            raise SignatureInvalidError(
                "Could not verify signature from retrieved, signed registry entry -- possible corrupted entry",
                public_key=key,
                data_key=data_key,
            )

        return SignedRegistryEntry(entry=entry, signature=signature)

    async def set_entry(
        self,
        private_key: str,
        entry: RegistryEntry,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Sign an entry and submit it to the portal.

        Args:
            private_key: Hex private key of the entry owner
            entry: The entry to write
            custom_options: Per-call options (SET_ENTRY_OPTIONS keys)

        Raises:
            ValidationError: If an argument is malformed
            PortalRejectedError: If the portal rejects the write
        """
        validate_private_key("private_key", private_key, "parameter")
        validate_registry_entry("entry", entry, "parameter")
        opts = merge_options(SET_ENTRY_OPTIONS, self._custom_options, custom_options)

        signature = sign_entry(private_key, entry, opts["hashed_data_key_hex"])
        public_key = crypto.public_key_from_private_key(private_key)
        await self.post_signed_entry(public_key, entry, signature, opts)

    async def post_signed_entry(
        self,
        public_key: str,
        entry: RegistryEntry,
        signature: bytes,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Submit an already signed entry.

        Raises:
            PortalRejectedError: If the portal does not answer 204
        """
        key = validate_public_key("public_key", public_key, "parameter")
        validate_registry_entry("entry", entry, "parameter")
        validate_bytes_len("signature", signature, "parameter", crypto.SIGNATURE_SIZE)
        opts = merge_options(SET_ENTRY_OPTIONS, self._custom_options, custom_options)

        body = {
            "publickey": {
                "algorithm": "ed25519",
                "key": list(bytes.fromhex(key)),
            },
            "datakey": data_key_hex(entry.data_key, opts["hashed_data_key_hex"]),
            "revision": entry.revision,
            "data": list(entry.data),
            "signature": list(signature),
        }
        response = await self._transport.execute_request(
            "POST",
            opts["endpoint_set_entry"],
            options=opts,
            json=body,
        )

        if response.status != 204:
            message = response.error_message()
            raise PortalRejectedError(
                f"Registry update rejected with status code {response.status}: {message}",
                status=response.status,
                portal_message=message,
            )
        logger.info("Updated registry entry %r to revision %d", entry.data_key, entry.revision)
