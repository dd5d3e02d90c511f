"""
Integration tests for SkyDB against the in-memory portal.

Tests cover:
- JSON, raw bytes, and entry data round trips through real HTTP
- Deletion and not-found semantics
- Revision ordering and the write race
- Entry link downloads checked against the portal's proof
- Signature checks on tampered portal state
"""

import asyncio
import dataclasses
import json

import pytest

from skynet_sdk import (
    DELETION_ENTRY_DATA,
    MAX_ENTRY_LENGTH,
    MalformedEntryDataError,
    PortalRejectedError,
    ProofInvalidError,
    RegistryEntry,
    SignatureInvalidError,
    ValidationError,
    gen_key_pair_from_seed,
)
from skynet_sdk.encoding import hash_data_key
from skynet_sdk.revision import next_revision
from skynet_sdk.skylink import decode_skylink_base64, trim_uri_prefix


def raw_link(skylink: str) -> bytes:
    return decode_skylink_base64(trim_uri_prefix(skylink, "sia://"))


class TestJSON:
    """Tests for get_json/set_json/delete_json."""

    @pytest.mark.asyncio
    async def test_round_trip(self, client, keys):
        written = await client.db.set_json(keys.private_key, "app.json", {"hello": "world"})
        read = await client.db.get_json(keys.public_key, "app.json")

        assert read.data == {"hello": "world"}
        assert read.data_link == written.data_link
        assert read.data_link.startswith("sia://")

    @pytest.mark.asyncio
    async def test_not_found(self, client, keys):
        result = await client.db.get_json(keys.public_key, "missing")

        assert result.data is None
        assert result.data_link is None

    @pytest.mark.asyncio
    async def test_update(self, client, keys):
        await client.db.set_json(keys.private_key, "app.json", {"version": 1})
        await client.db.set_json(keys.private_key, "app.json", {"version": 2})

        assert (await client.db.get_json(keys.public_key, "app.json")).data == {"version": 2}
        signed = await client.registry.get_entry(keys.public_key, "app.json")
        assert signed.entry.revision == 1

    @pytest.mark.asyncio
    async def test_delete(self, client, keys):
        await client.db.set_json(keys.private_key, "app.json", {"a": 1})

        await client.db.delete_json(keys.private_key, "app.json")

        result = await client.db.get_json(keys.public_key, "app.json")
        assert result.data is None and result.data_link is None
        signed = await client.registry.get_entry(keys.public_key, "app.json")
        assert signed.entry.data == DELETION_ENTRY_DATA
        assert signed.entry.revision == 1

    @pytest.mark.asyncio
    async def test_write_after_delete(self, client, keys):
        await client.db.set_json(keys.private_key, "app.json", {"a": 1})
        await client.db.delete_json(keys.private_key, "app.json")

        await client.db.set_json(keys.private_key, "app.json", {"a": 2})

        assert (await client.db.get_json(keys.public_key, "app.json")).data == {"a": 2}

    @pytest.mark.asyncio
    async def test_keys_are_isolated(self, client, keys):
        other = gen_key_pair_from_seed("another seed")
        await client.db.set_json(keys.private_key, "app.json", {"owner": "first"})
        await client.db.set_json(other.private_key, "app.json", {"owner": "second"})

        assert (await client.db.get_json(keys.public_key, "app.json")).data == {"owner": "first"}
        assert (await client.db.get_json(other.public_key, "app.json")).data == {"owner": "second"}

    @pytest.mark.asyncio
    async def test_cached_data_link(self, client, keys):
        written = await client.db.set_json(keys.private_key, "app.json", {"a": 1})

        result = await client.db.get_json(
            keys.public_key, "app.json", {"cached_data_link": written.data_link}
        )

        assert result.data is None
        assert result.data_link == written.data_link

    @pytest.mark.asyncio
    async def test_legacy_content(self, client, keys):
        """JSON stored without the envelope is returned as-is."""
        upload = await client.files.upload_file(
            json.dumps({"name": "legacy"}).encode(), "legacy.json", "application/json"
        )
        await client.db.set_data_link(keys.private_key, "app.json", upload.skylink)

        result = await client.db.get_json(keys.public_key, "app.json")

        assert result.data == {"name": "legacy"}
        assert result.data_link == upload.skylink

    @pytest.mark.asyncio
    async def test_legacy_entry_data(self, client, keys):
        """Entry data holding a base64 skylink as text still resolves."""
        upload = await client.files.upload_file(
            json.dumps({"_data": {"a": 1}, "_v": 2}).encode(), "old.json", "application/json"
        )
        text = trim_uri_prefix(upload.skylink, "sia://").encode("utf-8")
        await client.db.set_entry_data(keys.private_key, "app.json", text)

        result = await client.db.get_json(keys.public_key, "app.json")

        assert result.data == {"a": 1}

    @pytest.mark.asyncio
    async def test_hashed_data_key(self, client, keys):
        hashed = hash_data_key("app.json").hex()
        await client.db.set_json(
            keys.private_key, hashed, {"a": 1}, {"hashed_data_key_hex": True}
        )

        assert (await client.db.get_json(keys.public_key, "app.json")).data == {"a": 1}


class TestEntryData:
    """Tests for entry data and raw bytes."""

    @pytest.mark.asyncio
    async def test_round_trip(self, client, keys):
        data = bytes(range(MAX_ENTRY_LENGTH))

        await client.db.set_entry_data(keys.private_key, "entry", data)

        assert (await client.db.get_entry_data(keys.public_key, "entry")).data == data

    @pytest.mark.asyncio
    async def test_repeated_reads_change_nothing(self, client, portal, keys):
        await client.db.set_entry_data(keys.private_key, "entry", b"stable")
        key = (bytes.fromhex(keys.public_key), hash_data_key("entry"))
        revision = portal.entries[key].revision

        first = await client.db.get_entry_data(keys.public_key, "entry")
        second = await client.db.get_entry_data(keys.public_key, "entry")

        assert first == second
        assert first.data == b"stable"
        assert portal.entries[key].revision == revision

    @pytest.mark.asyncio
    async def test_too_long(self, client, keys):
        with pytest.raises(ValidationError):
            await client.db.set_entry_data(keys.private_key, "entry", bytes(MAX_ENTRY_LENGTH + 1))

        assert (await client.db.get_entry_data(keys.public_key, "entry")).data is None

    @pytest.mark.asyncio
    async def test_delete(self, client, keys):
        await client.db.set_entry_data(keys.private_key, "entry", b"data")

        await client.db.delete_entry_data(keys.private_key, "entry")

        assert (await client.db.get_entry_data(keys.public_key, "entry")).data is None

    @pytest.mark.asyncio
    async def test_json_read_of_non_skylink_entry(self, client, keys):
        await client.db.set_entry_data(keys.private_key, "entry", b"not a skylink")

        with pytest.raises(MalformedEntryDataError):
            await client.db.get_json(keys.public_key, "entry")

    @pytest.mark.asyncio
    async def test_raw_bytes(self, client, keys):
        upload = await client.files.upload_file(b"\x00\x01binary", "blob.bin")
        await client.db.set_data_link(keys.private_key, "blob", upload.skylink)

        result = await client.db.get_raw_bytes(keys.public_key, "blob")

        assert result.data == b"\x00\x01binary"
        assert result.data_link == upload.skylink

    @pytest.mark.asyncio
    async def test_raw_bytes_not_found(self, client, keys):
        result = await client.db.get_raw_bytes(keys.public_key, "blob")

        assert result.data is None and result.data_link is None


class TestRevisions:
    """Tests for revision ordering at the portal."""

    @pytest.mark.asyncio
    async def test_stale_write_rejected(self, client, keys):
        """Two writers that read the same revision: the second write fails."""
        first = await client.files.upload_file(b"first", "first")
        second = await client.files.upload_file(b"second", "second")
        signed = await client.registry.get_entry(keys.public_key, "race")
        revision = next_revision(signed.entry)

        await client.registry.set_entry(
            keys.private_key, RegistryEntry("race", raw_link(first.skylink), revision)
        )
        with pytest.raises(PortalRejectedError) as exc_info:
            await client.registry.set_entry(
                keys.private_key, RegistryEntry("race", raw_link(second.skylink), revision)
            )

        assert exc_info.value.status == 400
        assert "revision" in exc_info.value.portal_message
        result = await client.db.get_raw_bytes(keys.public_key, "race")
        assert result.data == b"first"

    @pytest.mark.asyncio
    async def test_concurrent_writers(self, client, keys):
        """Concurrent writes either both land in order or one is rejected."""
        results = await asyncio.gather(
            client.db.set_json(keys.private_key, "race.json", {"writer": "a"}),
            client.db.set_json(keys.private_key, "race.json", {"writer": "b"}),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(failures) < 2
        assert all(isinstance(f, PortalRejectedError) for f in failures)
        final = await client.db.get_json(keys.public_key, "race.json")
        assert final.data in ({"writer": "a"}, {"writer": "b"})


class TestDownloads:
    """Tests for entry link downloads and proofs."""

    @pytest.mark.asyncio
    async def test_entry_link_download(self, client, keys):
        written = await client.db.set_json(keys.private_key, "app.json", {"a": 1})
        entry_link = client.registry.get_entry_link(keys.public_key, "app.json")

        response = await client.files.get_file_content(entry_link)

        assert response.skylink == written.data_link
        assert json.loads(response.data) == {"_data": {"a": 1}, "_v": 2}
        assert response.content_type == "application/json"
        assert response.portal_url == "http://portal.test"

    @pytest.mark.asyncio
    async def test_range_download(self, client):
        upload = await client.files.upload_file(b"0123456789", "digits.txt", "text/plain")

        response = await client.files.get_file_content(upload.skylink, {"range": "bytes=2-4"})

        assert response.data == b"234"

    @pytest.mark.asyncio
    async def test_tampered_entry_fails_proof(self, client, portal, keys):
        """The portal serves a repointed entry with the old signature."""
        await client.db.set_json(keys.private_key, "app.json", {"a": 1})
        other = await client.files.upload_file(b"{}", "other.json", "application/json")
        key = (bytes.fromhex(keys.public_key), hash_data_key("app.json"))
        portal.entries[key] = dataclasses.replace(portal.entries[key], data=raw_link(other.skylink))

        with pytest.raises(ProofInvalidError):
            await client.files.get_file_content(
                client.registry.get_entry_link(keys.public_key, "app.json")
            )

    @pytest.mark.asyncio
    async def test_tampered_entry_fails_signature(self, client, portal, keys):
        await client.db.set_json(keys.private_key, "app.json", {"a": 1})
        key = (bytes.fromhex(keys.public_key), hash_data_key("app.json"))
        portal.entries[key] = dataclasses.replace(portal.entries[key], revision=99)

        with pytest.raises(SignatureInvalidError):
            await client.db.get_json(keys.public_key, "app.json")

    @pytest.mark.asyncio
    async def test_deleted_entry_link_not_found(self, client, keys):
        await client.db.set_json(keys.private_key, "app.json", {"a": 1})
        await client.db.delete_json(keys.private_key, "app.json")

        with pytest.raises(PortalRejectedError) as exc_info:
            await client.files.get_file_content(
                client.registry.get_entry_link(keys.public_key, "app.json")
            )

        assert exc_info.value.status == 404
