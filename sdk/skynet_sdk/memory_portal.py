"""
In-memory Skynet portal for testing.

This module provides a FastAPI app that serves the portal endpoints the SDK
uses, backed by dictionaries:
- GET/POST /skynet/registry: signed registry entries
- POST /skynet/skyfile: single-file upload
- GET /{skylink}[/path]: content download, resolving entry links with proofs

Invariants:
    - All data is lost on process exit
    - Registry writes need a valid signature and a strictly greater revision
    - Entry links are served with the proof chain that resolved them

How to change safely:
    - This is test-only code, changes don't affect the client
    - Keep response shapes identical to what the client parses

Example:
    >>> app = create_portal_app()
    >>> http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://portal.test")
    >>> client = SkynetClient(transport=HttpxPortalTransport("http://portal.test", client=http))
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from fastapi import FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from .crypto import verify
from .encoding import hash_registry_entry
from .errors import ValidationError
from .models import RegistryEntry
from .skylink import (
    BASE32_ENCODED_SKYLINK_SIZE,
    RAW_SKYLINK_SIZE,
    SiaSkylink,
    convert_skylink_to_base64,
    encode_skylink_base64,
    new_entry_link,
)
from .validate import ED25519_PREFIX, PUBLIC_KEY_SIZE

logger = logging.getLogger(__name__)

# Largest entry data a portal stores.
REGISTRY_DATA_SIZE = 113

# Entry links resolved before giving up.
MAX_RESOLVE_DEPTH = 7


@dataclass
class StoredEntry:
    """A registry entry as the portal keeps it."""

    public_key: bytes
    data_key: bytes
    data: bytes
    revision: int
    signature: bytes

    def proof_step(self) -> Dict[str, object]:
        return {
            "data": self.data.hex(),
            "revision": self.revision,
            "datakey": self.data_key.hex(),
            "publickey": {
                "algorithm": "ed25519",
                "key": base64.b64encode(self.public_key).decode("ascii"),
            },
            "signature": self.signature.hex(),
            "type": 1,
        }


@dataclass
class StoredFile:
    """An uploaded file."""

    content: bytes
    content_type: str
    filename: str


class PublicKeyBody(BaseModel):
    algorithm: str
    key: List[int]


class RegistryUpdateRequest(BaseModel):
    """Body of a registry write."""

    publickey: PublicKeyBody
    datakey: str = Field(..., description="Hex of the hashed data key")
    revision: int = Field(..., ge=0)
    data: List[int]
    signature: List[int]


class InMemoryPortal:
    """Registry and file storage behind the in-memory portal app.

    Thread safety:
        Uses an asyncio lock around registry writes so revision checks and
        updates are atomic. Safe to use from multiple coroutines.
    """

    def __init__(self, portal_url: str = "http://portal.test") -> None:
        self.portal_url = portal_url
        self.entries: Dict[Tuple[bytes, bytes], StoredEntry] = {}
        self.files: Dict[str, StoredFile] = {}
        self._entry_links: Dict[str, Tuple[bytes, bytes]] = {}
        self._lock = asyncio.Lock()

    def get_entry(self, public_key: bytes, data_key: bytes) -> Optional[StoredEntry]:
        return self.entries.get((public_key, data_key))

    async def set_entry(self, entry: StoredEntry) -> None:
        """Store a signed entry.

        Raises:
            HTTPException: 400 if the entry is invalid or not newer
        """
        if len(entry.public_key) != PUBLIC_KEY_SIZE:
            raise HTTPException(status_code=400, detail="invalid public key length")
        if len(entry.data) > REGISTRY_DATA_SIZE:
            raise HTTPException(status_code=400, detail="registry data too large")

        try:
            message = hash_registry_entry(
                RegistryEntry(data_key=entry.data_key.hex(), data=entry.data, revision=entry.revision),
                hashed_data_key_hex=True,
            )
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=e.message) from e
        if not verify(entry.public_key, message, entry.signature):
            raise HTTPException(status_code=400, detail="invalid signature")

        key = (entry.public_key, entry.data_key)
        async with self._lock:
            existing = self.entries.get(key)
            if existing is not None and entry.revision <= existing.revision:
                raise HTTPException(
                    status_code=400,
                    detail=(
                        "provided revision number is invalid; must be greater than "
                        f"{existing.revision}"
                    ),
                )
            self.entries[key] = entry
            link = new_entry_link(entry.public_key, entry.data_key).to_string()
            self._entry_links[link] = key
        logger.debug("Stored registry entry at revision %d", entry.revision)

    def add_file(self, content: bytes, content_type: str, filename: str) -> str:
        """Store content and return its base64 skylink."""
        merkle_root = hashlib.blake2b(content, digest_size=32).digest()
        skylink = SiaSkylink(bitfield=0, merkle_root=merkle_root).to_string()
        self.files[skylink] = StoredFile(content, content_type, filename)
        return skylink

    def resolve(self, skylink: str) -> Tuple[str, List[Dict[str, object]]]:
        """Follow entry links down to a data link.

        Returns:
            The data link and the proof steps followed

        Raises:
            HTTPException: 404 if a link cannot be resolved
        """
        proof: List[Dict[str, object]] = []
        for _ in range(MAX_RESOLVE_DEPTH + 1):
            if SiaSkylink.from_string(skylink).version == 1:
                return skylink, proof
            key = self._entry_links.get(skylink)
            entry = self.entries.get(key) if key is not None else None
            if entry is None or len(entry.data) != RAW_SKYLINK_SIZE:
                raise HTTPException(status_code=404, detail="failed to resolve skylink")
            if entry.data == bytes(RAW_SKYLINK_SIZE):
                raise HTTPException(status_code=404, detail="skylink has been deleted")
            proof.append(entry.proof_step())
            skylink = encode_skylink_base64(entry.data)
        raise HTTPException(status_code=404, detail="too many entry links to resolve")


def _parse_range(range_header: str, size: int) -> Optional[Tuple[int, int]]:
    """Parse a single "bytes=start-end" range into inclusive bounds."""
    unit, _, ranges = range_header.partition("=")
    if unit.strip() != "bytes" or "," in ranges:
        return None
    start_text, _, end_text = ranges.strip().partition("-")
    try:
        if start_text:
            start = int(start_text)
            end = int(end_text) if end_text else size - 1
        else:
            start = max(size - int(end_text), 0)
            end = size - 1
    except ValueError:
        return None
    if start > end or start >= size:
        return None
    return start, min(end, size - 1)


def create_portal_app(portal: Optional[InMemoryPortal] = None) -> FastAPI:
    """Create the in-memory portal app.

    Args:
        portal: Storage to serve (a fresh InMemoryPortal if omitted)
    """
    portal = portal or InMemoryPortal()

    app = FastAPI(
        title="In-Memory Skynet Portal",
        description="Registry and skyfile endpoints backed by memory, for tests.",
        version="1.0.0",
    )
    app.state.portal = portal

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})

    @app.get("/skynet/registry")
    async def get_registry_entry(
        publickey: str = Query(...),
        datakey: str = Query(...),
        timeout: int = Query(5, ge=1, le=300),
    ):
        if not publickey.startswith(ED25519_PREFIX):
            raise HTTPException(status_code=400, detail="unsupported public key algorithm")
        try:
            public_key = bytes.fromhex(publickey[len(ED25519_PREFIX):])
            data_key = bytes.fromhex(datakey)
        except ValueError:
            raise HTTPException(status_code=400, detail="unable to decode query parameters")

        entry = portal.get_entry(public_key, data_key)
        if entry is None:
            raise HTTPException(status_code=404, detail="registry entry not found")
        return {
            "data": entry.data.hex(),
            "revision": entry.revision,
            "signature": entry.signature.hex(),
            "type": 1,
        }

    @app.post("/skynet/registry", status_code=204)
    async def set_registry_entry(body: RegistryUpdateRequest) -> Response:
        if body.publickey.algorithm != "ed25519":
            raise HTTPException(status_code=400, detail="unsupported public key algorithm")
        try:
            entry = StoredEntry(
                public_key=bytes(body.publickey.key),
                data_key=bytes.fromhex(body.datakey),
                data=bytes(body.data),
                revision=body.revision,
                signature=bytes(body.signature),
            )
        except ValueError:
            raise HTTPException(status_code=400, detail="unable to decode request body")
        await portal.set_entry(entry)
        return Response(status_code=204)

    @app.post("/skynet/skyfile")
    async def upload_skyfile(file: UploadFile = File(...)):
        content = await file.read()
        content_type = file.content_type or "application/octet-stream"
        skylink = portal.add_file(content, content_type, file.filename or "")
        return {
            "skylink": skylink,
            "merkleroot": SiaSkylink.from_string(skylink).merkle_root.hex(),
            "bitfield": 0,
        }

    @app.get("/{skylink}")
    @app.get("/{skylink}/{path:path}")
    async def download(request: Request, skylink: str, path: str = ""):
        try:
            if len(skylink) == BASE32_ENCODED_SKYLINK_SIZE:
                skylink = convert_skylink_to_base64(skylink.lower())
            SiaSkylink.from_string(skylink)
        except ValidationError:
            raise HTTPException(status_code=400, detail="unable to parse skylink")

        data_link, proof = portal.resolve(skylink)
        stored = portal.files.get(data_link)
        if stored is None:
            raise HTTPException(status_code=404, detail="skyfile not found")

        headers = {
            "Skynet-Skylink": data_link,
            "Skynet-Portal-Api": portal.portal_url,
        }
        if proof:
            headers["Skynet-Proof"] = json.dumps(proof)

        content = stored.content
        status_code = 200
        range_header = request.headers.get("range")
        if range_header:
            bounds = _parse_range(range_header, len(content))
            if bounds is None:
                raise HTTPException(status_code=416, detail="invalid range")
            start, end = bounds
            headers["Content-Range"] = f"bytes {start}-{end}/{len(content)}"
            content = content[start:end + 1]
            status_code = 206

        return Response(
            content=content,
            status_code=status_code,
            media_type=stored.content_type,
            headers=headers,
        )

    return app
