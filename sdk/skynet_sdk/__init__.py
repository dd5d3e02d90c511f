"""
Skynet Python SDK - Client library for the Skynet registry and SkyDB.

This SDK provides signed, revisioned key-value storage on a Skynet portal:
- Key generation and entry signing (Ed25519)
- RegistryClient for single signed registry entries
- SkyDB for JSON, raw bytes, and entry data keyed by (public key, data key)
- SkynetClient tying them to one portal connection

Example:
    >>> from skynet_sdk import SkynetClient, gen_key_pair_from_seed
    >>>
    >>> keys = gen_key_pair_from_seed("this seed should be fairly long for security")
    >>>
    >>> async with SkynetClient("https://siasky.net") as client:
    ...     await client.db.set_json(keys.private_key, "app.json", {"hello": "world"})
    ...     result = await client.db.get_json(keys.public_key, "app.json")
    ...     print(result.data, result.data_link)

Invariants:
    - Revisions only grow; a write is rejected unless it is newer
    - Every entry read is signature-checked before it is returned
    - Entry link downloads are checked against the portal's proof

Version: 1.0.0
"""

__version__ = "1.0.0"

from .client import SkynetClient
from .config import DEFAULT_PORTAL_URL, SkynetSettings
from .crypto import (
    KeyPair,
    KeyPairAndSeed,
    gen_key_pair_and_seed,
    gen_key_pair_from_seed,
)
from .encoding import hash_data_key, hash_registry_entry
from .errors import (
    MalformedEntryDataError,
    NotJSONError,
    PortalRejectedError,
    PortalRequestError,
    ProofError,
    ProofInvalidError,
    ProofMismatchError,
    ResponseError,
    RevisionOverflowError,
    SignatureInvalidError,
    SkynetError,
    UnexpectedProofError,
    ValidationError,
)
from .models import (
    EntryDataResponse,
    JSONResponse,
    RawBytesResponse,
    RegistryEntry,
    SignedRegistryEntry,
)
from .registry import RegistryClient
from .revision import MAX_REVISION
from .skydb import DELETION_ENTRY_DATA, MAX_ENTRY_LENGTH, SkyDB
from .skylink import get_entry_link

__all__ = [
    # Version
    "__version__",
    # Client
    "SkynetClient",
    "SkynetSettings",
    "DEFAULT_PORTAL_URL",
    "RegistryClient",
    "SkyDB",
    # Keys
    "KeyPair",
    "KeyPairAndSeed",
    "gen_key_pair_from_seed",
    "gen_key_pair_and_seed",
    # Registry
    "RegistryEntry",
    "SignedRegistryEntry",
    "get_entry_link",
    "hash_data_key",
    "hash_registry_entry",
    "MAX_REVISION",
    # SkyDB
    "JSONResponse",
    "EntryDataResponse",
    "RawBytesResponse",
    "MAX_ENTRY_LENGTH",
    "DELETION_ENTRY_DATA",
    # Errors
    "SkynetError",
    "ValidationError",
    "PortalRequestError",
    "PortalRejectedError",
    "ResponseError",
    "SignatureInvalidError",
    "ProofError",
    "ProofInvalidError",
    "ProofMismatchError",
    "UnexpectedProofError",
    "RevisionOverflowError",
    "MalformedEntryDataError",
    "NotJSONError",
]
