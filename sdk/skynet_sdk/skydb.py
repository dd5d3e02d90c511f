"""
SkyDB: a mutable key-value layer on top of the registry.

Each (public_key, data_key) pair owns one registry entry whose data is a
raw skylink pointing at immutable content. Writing uploads the new content,
reads the current entry, and writes a new entry at the next revision.
Reading resolves the entry and downloads the content it points to.

Example:
    >>> db = SkyDB(registry, files)
    >>> await db.set_json(private_key, "settings", {"theme": "dark"})
    >>> (await db.get_json(public_key, "settings")).data
    {'theme': 'dark'}

Invariants:
    - Every write uses the fetched revision + 1 (or 0 for a new key)
    - Upload and entry lookup of a write run concurrently and both must succeed
    - Entries holding the deletion sentinel read as not found
    - Nothing is cached; cached_data_link is only a caller hint

Write races:
    Writes are optimistic. Two writers that read the same revision compute
    the same next revision; the portal accepts the first and rejects the
    second with PortalRejectedError. There is no retry here, callers that
    need one must re-read and write again. A portal that does not enforce
    revision ordering can let one write silently replace the other.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Mapping, Optional, Tuple, Union

from . import crypto
from .errors import MalformedEntryDataError, NotJSONError, ValidationError
from .files import FileClient
from .models import (
    EntryDataResponse,
    JSONResponse,
    RawBytesResponse,
    RegistryEntry,
)
from .options import (
    DOWNLOAD_OPTIONS,
    GET_ENTRY_OPTIONS,
    GET_JSON_OPTIONS,
    SET_ENTRY_DATA_OPTIONS,
    SET_ENTRY_OPTIONS,
    SET_JSON_OPTIONS,
    UPLOAD_OPTIONS,
    extract_options,
    merge_options,
)
from .registry import RegistryClient
from .revision import next_revision
from .skylink import (
    BASE64_ENCODED_SKYLINK_SIZE,
    RAW_SKYLINK_SIZE,
    URI_SKYNET_PREFIX,
    decode_skylink_base64,
    encode_skylink_base64,
    format_skylink,
    trim_uri_prefix,
    validate_skylink_string,
)
from .validate import (
    validate_bytes,
    validate_bytes_len,
    validate_object,
    validate_private_key,
    validate_public_key,
    validate_string,
    validation_error,
)

logger = logging.getLogger(__name__)

JSON_RESPONSE_VERSION = 2

# Largest payload accepted by set_entry_data.
MAX_ENTRY_LENGTH = 70

# Entry data that marks an entry as deleted.
DELETION_ENTRY_DATA = bytes(RAW_SKYLINK_SIZE)


@dataclass(frozen=True)
class RawSkylinkData:
    """Entry data holding a 34-byte raw skylink."""

    raw: bytes

    @property
    def skylink(self) -> str:
        return encode_skylink_base64(self.raw)


@dataclass(frozen=True)
class LegacySkylinkText:
    """Entry data holding a 46-char base64 skylink as UTF-8 text."""

    text: str

    @property
    def skylink(self) -> str:
        return self.text


EntryDataLink = Union[RawSkylinkData, LegacySkylinkText]


def decode_entry_data(data: bytes, *, legacy: bool) -> EntryDataLink:
    """Decode entry data into the skylink it stores.

    Args:
        data: Raw entry data
        legacy: Whether the legacy base64-text encoding is accepted

    Raises:
        MalformedEntryDataError: If data is neither encoding
    """
    if legacy and len(data) == BASE64_ENCODED_SKYLINK_SIZE:
        try:
            return LegacySkylinkText(text=data.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise MalformedEntryDataError(
                f"Legacy entry data is not valid UTF-8: {e}", length=len(data)
            ) from e
    if len(data) == RAW_SKYLINK_SIZE:
        return RawSkylinkData(raw=data)
    raise MalformedEntryDataError(
        f"Expected returned entry data 'entry.data' to be length {RAW_SKYLINK_SIZE} bytes, "
        f"was length {len(data)}",
        length=len(data),
    )


def validate_entry_data(data: bytes, allow_deletion_entry_data: bool) -> None:
    """Check entry data before it is written.

    Raises:
        ValidationError: If data is the deletion sentinel (and that is not
            allowed) or longer than MAX_ENTRY_LENGTH
    """
    if not allow_deletion_entry_data and data == DELETION_ENTRY_DATA:
        raise ValidationError(
            "Tried setting entry data with the deletion entry data, "
            "please use 'delete_entry_data' instead",
            name="data",
        )
    if len(data) > MAX_ENTRY_LENGTH:
        raise validation_error(
            "data",
            data,
            "parameter",
            f"type 'bytes' of length <= {MAX_ENTRY_LENGTH}, was length {len(data)}",
        )


def upload_filename(data_key: str, hashed_data_key_hex: bool) -> str:
    """File name used when uploading SkyDB content for a data key."""
    key_hex = data_key if hashed_data_key_hex else data_key.encode("utf-8").hex()
    return f"dk:{key_hex}"


async def fork_join(*aws: Awaitable[Any]) -> Tuple[Any, ...]:
    """Run awaitables concurrently and return all results in order.

    All tasks are started before any is awaited. If one fails, the others
    are cancelled and every task is awaited, then the first failure (in
    argument order) is raised.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        for task in tasks:
            if task.done() and not task.cancelled() and task.exception() is not None:
                raise task.exception()
        return tuple(task.result() for task in tasks)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        # Retrieves every outcome, so a second failure is never left unread.
        await asyncio.gather(*tasks, return_exceptions=True)


class SkyDB:
    """JSON, raw-bytes, and entry-data storage keyed by (public key, data key).

    These methods are prone to write races, see the module docstring.
    """

    def __init__(
        self,
        registry: RegistryClient,
        files: FileClient,
        *,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Initialize SkyDB.

        Args:
            registry: Registry client used for entry reads and writes
            files: File client used for content upload and download
            custom_options: Client-wide option overrides
        """
        self._registry = registry
        self._files = files
        self._custom_options = dict(custom_options or {})

    # ====
    # JSON
    # ====

    async def get_json(
        self,
        public_key: str,
        data_key: str,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> JSONResponse:
        """Get the JSON object stored at a public key and data key.

        Args:
            public_key: Hex public key of the owner
            data_key: Data key
            custom_options: Per-call options (GET_JSON_OPTIONS keys)

        Returns:
            JSONResponse; (None, None) if not found or deleted, and
            (None, data_link) if data_link equals cached_data_link

        Raises:
            SignatureInvalidError: If the entry signature does not verify
            MalformedEntryDataError: If the entry does not hold a skylink
            NotJSONError: If the content is not a JSON object
        """
        validate_public_key("public_key", public_key, "parameter")
        validate_string("data_key", data_key, "parameter")
        opts = merge_options(GET_JSON_OPTIONS, self._custom_options, custom_options)
        cached_data_link = self._validate_cached_data_link(opts)

        entry = await self._get_registry_entry(public_key, data_key, opts)
        if entry is None:
            return JSONResponse(data=None, data_link=None)

        decoded = decode_entry_data(entry.data, legacy=True)
        if isinstance(decoded, LegacySkylinkText):
            logger.warning("Entry at data key %r holds a legacy base64 skylink", data_key)
        data_link = format_skylink(decoded.skylink)
        if cached_data_link is not None and cached_data_link == decoded.skylink:
            return JSONResponse(data=None, data_link=data_link)

        response = await self._files.get_file_content(
            data_link, extract_options(opts, DOWNLOAD_OPTIONS)
        )
        try:
            data = json.loads(response.data.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise NotJSONError(
                f"File data for the entry at data key '{data_key}' is not JSON.",
                data_key=data_key,
            ) from e
        if not isinstance(data, dict):
            raise NotJSONError(
                f"File data for the entry at data key '{data_key}' is not JSON.",
                data_key=data_key,
            )

        if not ("_data" in data and "_v" in data):
            # Written before the envelope existed.
            return JSONResponse(data=data, data_link=data_link)

        actual_data = data["_data"]
        if not isinstance(actual_data, dict):
            raise NotJSONError(
                f"File data '_data' for the entry at data key '{data_key}' is not JSON.",
                data_key=data_key,
            )
        return JSONResponse(data=actual_data, data_link=data_link)

    async def set_json(
        self,
        private_key: str,
        data_key: str,
        json_data: Mapping[str, Any],
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> JSONResponse:
        """Store a JSON object at the private key's public key and a data key.

        Args:
            private_key: Hex private key of the owner
            data_key: Data key
            json_data: JSON object to store
            custom_options: Per-call options (SET_JSON_OPTIONS keys)

        Returns:
            JSONResponse with the stored object and its data link

        Raises:
            ValidationError: If an argument is malformed
            RevisionOverflowError: If the entry cannot be updated any more
            PortalRejectedError: If the portal rejects the upload or the write
        """
        validate_private_key("private_key", private_key, "parameter")
        validate_string("data_key", data_key, "parameter")
        validate_object("json_data", json_data, "parameter")
        opts = merge_options(SET_JSON_OPTIONS, self._custom_options, custom_options)

        public_key = crypto.public_key_from_private_key(private_key)
        entry, data_link = await self._get_or_create_registry_entry(
            public_key, data_key, json_data, opts
        )
        await self._registry.set_entry(
            private_key, entry, extract_options(opts, SET_ENTRY_OPTIONS)
        )
        return JSONResponse(data=dict(json_data), data_link=data_link)

    async def delete_json(
        self,
        private_key: str,
        data_key: str,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Delete the JSON object at a data key.

        get_json returns (None, None) afterwards.
        """
        opts = merge_options(SET_ENTRY_DATA_OPTIONS, self._custom_options, custom_options)
        await self.set_entry_data(
            private_key,
            data_key,
            DELETION_ENTRY_DATA,
            {**extract_options(opts, SET_ENTRY_DATA_OPTIONS), "allow_deletion_entry_data": True},
        )

    # ==========
    # Entry Data
    # ==========

    async def set_data_link(
        self,
        private_key: str,
        data_key: str,
        data_link: str,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Point the entry at a data key to an existing skylink."""
        parsed = validate_skylink_string("data_link", data_link, "parameter")
        await self.set_entry_data(
            private_key, data_key, decode_skylink_base64(parsed), custom_options
        )

    async def get_entry_data(
        self,
        public_key: str,
        data_key: str,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> EntryDataResponse:
        """Get the raw entry data at a public key and data key.

        Returns:
            EntryDataResponse; data is None if not found or deleted
        """
        validate_public_key("public_key", public_key, "parameter")
        validate_string("data_key", data_key, "parameter")
        opts = merge_options(GET_ENTRY_OPTIONS, self._custom_options, custom_options)

        entry = await self._get_registry_entry(public_key, data_key, opts)
        if entry is None:
            return EntryDataResponse(data=None)
        return EntryDataResponse(data=entry.data)

    async def set_entry_data(
        self,
        private_key: str,
        data_key: str,
        data: bytes,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> EntryDataResponse:
        """Set the raw entry data at a data key.

        Args:
            private_key: Hex private key of the owner
            data_key: Data key
            data: Up to MAX_ENTRY_LENGTH bytes
            custom_options: Per-call options (SET_ENTRY_DATA_OPTIONS keys)

        Raises:
            ValidationError: If data is too long or is the deletion sentinel
            RevisionOverflowError: If the entry cannot be updated any more
            PortalRejectedError: If the portal rejects the write
        """
        validate_private_key("private_key", private_key, "parameter")
        validate_string("data_key", data_key, "parameter")
        data = validate_bytes("data", data, "parameter")
        opts = merge_options(SET_ENTRY_DATA_OPTIONS, self._custom_options, custom_options)
        validate_entry_data(data, opts["allow_deletion_entry_data"])

        public_key = crypto.public_key_from_private_key(private_key)
        entry = await self._get_next_registry_entry(
            public_key, data_key, data, extract_options(opts, GET_ENTRY_OPTIONS)
        )
        await self._registry.set_entry(
            private_key, entry, extract_options(opts, SET_ENTRY_OPTIONS)
        )
        return EntryDataResponse(data=entry.data)

    async def delete_entry_data(
        self,
        private_key: str,
        data_key: str,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Delete the entry data at a data key.

        get_entry_data returns None afterwards.
        """
        opts = merge_options(SET_ENTRY_DATA_OPTIONS, self._custom_options, custom_options)
        await self.set_entry_data(
            private_key,
            data_key,
            DELETION_ENTRY_DATA,
            {**extract_options(opts, SET_ENTRY_DATA_OPTIONS), "allow_deletion_entry_data": True},
        )

    # =========
    # Raw Bytes
    # =========

    async def get_raw_bytes(
        self,
        public_key: str,
        data_key: str,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> RawBytesResponse:
        """Get the raw bytes stored at a public key and data key.

        The caller is responsible for any metadata inside the bytes.

        Returns:
            RawBytesResponse; (None, None) if not found or deleted, and
            (None, data_link) if data_link equals cached_data_link
        """
        validate_public_key("public_key", public_key, "parameter")
        validate_string("data_key", data_key, "parameter")
        opts = merge_options(GET_JSON_OPTIONS, self._custom_options, custom_options)
        cached_data_link = self._validate_cached_data_link(opts)

        entry = await self._get_registry_entry(public_key, data_key, opts)
        if entry is None:
            return RawBytesResponse(data=None, data_link=None)

        decoded = decode_entry_data(entry.data, legacy=False)
        data_link = format_skylink(decoded.skylink)
        if cached_data_link is not None and cached_data_link == decoded.skylink:
            return RawBytesResponse(data=None, data_link=data_link)

        response = await self._files.get_file_content(
            data_link, extract_options(opts, DOWNLOAD_OPTIONS)
        )
        return RawBytesResponse(data=response.data, data_link=data_link)

    # =======
    # Helpers
    # =======

    @staticmethod
    def _validate_cached_data_link(opts: Mapping[str, Any]) -> Optional[str]:
        if not opts["cached_data_link"]:
            return None
        return validate_skylink_string("cached_data_link", opts["cached_data_link"], "option")

    async def _get_registry_entry(
        self,
        public_key: str,
        data_key: str,
        opts: Mapping[str, Any],
    ) -> Optional[RegistryEntry]:
        """Get the entry, or None if it is missing or holds the deletion sentinel."""
        signed = await self._registry.get_entry(
            public_key, data_key, extract_options(opts, GET_ENTRY_OPTIONS)
        )
        if signed.entry is None or signed.entry.data == DELETION_ENTRY_DATA:
            return None
        return signed.entry

    async def _get_next_registry_entry(
        self,
        public_key: str,
        data_key: str,
        data: bytes,
        opts: Mapping[str, Any],
    ) -> RegistryEntry:
        """Build the entry that replaces the current one with new data."""
        signed = await self._registry.get_entry(public_key, data_key, opts)
        return RegistryEntry(
            data_key=data_key,
            data=data,
            revision=next_revision(signed.entry),
        )

    async def _get_or_create_registry_entry(
        self,
        public_key: str,
        data_key: str,
        json_data: Mapping[str, Any],
        opts: Mapping[str, Any],
    ) -> Tuple[RegistryEntry, str]:
        """Upload JSON content and build the entry that points at it.

        Returns:
            The new entry and the formatted data link of the upload
        """
        full_data = {"_data": json_data, "_v": JSON_RESPONSE_VERSION}
        try:
            content = json.dumps(full_data).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise validation_error(
                "json_data", json_data, "parameter", "a JSON-serializable object"
            ) from e

        filename = upload_filename(data_key, opts["hashed_data_key_hex"])
        signed, upload = await fork_join(
            self._registry.get_entry(
                public_key, data_key, extract_options(opts, GET_ENTRY_OPTIONS)
            ),
            self._files.upload_file(
                content,
                filename,
                "application/json",
                extract_options(opts, UPLOAD_OPTIONS),
            ),
        )
        revision = next_revision(signed.entry)

        data_link = trim_uri_prefix(upload.skylink, URI_SKYNET_PREFIX)
        raw_data_link = validate_bytes_len(
            "data", decode_skylink_base64(data_link), "skylink byte array", RAW_SKYLINK_SIZE
        )
        entry = RegistryEntry(data_key=data_key, data=raw_data_link, revision=revision)
        return entry, format_skylink(data_link)
