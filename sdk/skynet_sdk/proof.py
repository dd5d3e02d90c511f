"""
Registry proof validation.

When a portal serves content for an entry link it returns the chain of
signed registry entries it followed in the skynet-proof header. Each step
is an entry owned by (publickey, datakey); the entry link derived from that
pair must equal the previous link in the chain, and the step's data is the
next link. The first step starts at the requested entry link and the last
step must end at the data link the portal served.

This guards against a portal substituting unrelated content for an entry
link. Direct content links carry no proof at all.

Invariants:
    - An entry link always needs a non-empty, fully verified chain
    - A direct content link must come back unchanged and without a proof
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import List, Optional, Sequence

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .crypto import verify
from .encoding import hash_registry_entry
from .errors import (
    ProofInvalidError,
    ProofMismatchError,
    UnexpectedProofError,
    ValidationError,
)
from .models import RegistryEntry
from .skylink import (
    URI_SKYNET_PREFIX,
    encode_skylink_base64,
    get_entry_link,
    is_skylink_v1,
    trim_uri_prefix,
)

logger = logging.getLogger(__name__)

REGISTRY_TYPE_WITHOUT_PUBKEY = 1


class ProofPublicKey(BaseModel):
    """Public key of a proof step; key is base64."""

    algorithm: str
    key: str


class RegistryProofEntry(BaseModel):
    """One step of a registry proof, as returned by the portal.

    Attributes:
        data: Hex-encoded entry data (the next skylink)
        revision: Entry revision
        datakey: Hex-encoded hashed data key
        publickey: Owning public key
        signature: Hex-encoded entry signature
        type: Registry entry type
    """

    data: str
    revision: int
    datakey: str
    publickey: ProofPublicKey
    signature: str
    type: int


_PROOF_ADAPTER = TypeAdapter(List[RegistryProofEntry])


def parse_registry_proof(header: Optional[str]) -> List[RegistryProofEntry]:
    """Parse the skynet-proof header.

    The portal omits the header when the proof is empty.

    Raises:
        ProofInvalidError: If the header is not a JSON array of proof steps
    """
    if not header:
        return []
    try:
        return _PROOF_ADAPTER.validate_python(json.loads(header))
    except (json.JSONDecodeError, PydanticValidationError) as e:
        raise ProofInvalidError(f"Could not parse 'skynet-proof' header as JSON: {e}") from e


def _verify_step(step: RegistryProofEntry, previous_link: str) -> str:
    """Verify one proof step and return the link it points to."""
    if step.type != REGISTRY_TYPE_WITHOUT_PUBKEY:
        raise ProofInvalidError(f"Unsupported registry type in proof: '{step.type}'")
    if step.publickey.algorithm != "ed25519":
        raise ProofInvalidError(
            f"Unsupported public key algorithm in proof: '{step.publickey.algorithm}'"
        )

    try:
        public_key = base64.b64decode(step.publickey.key, validate=True)
        data = bytes.fromhex(step.data)
        signature = bytes.fromhex(step.signature)
        entry_link = trim_uri_prefix(
            get_entry_link(public_key.hex(), step.datakey, hashed_data_key_hex=True),
            URI_SKYNET_PREFIX,
        )
        next_link = encode_skylink_base64(data)
    except (binascii.Error, ValueError, ValidationError) as e:
        raise ProofInvalidError(f"Malformed registry proof entry: {e}") from e

    if entry_link != previous_link:
        raise ProofInvalidError("Could not verify registry proof chain")

    entry = RegistryEntry(data_key=step.datakey, data=data, revision=step.revision)
    try:
        message = hash_registry_entry(entry, hashed_data_key_hex=True)
    except ValidationError as e:
        raise ProofInvalidError(f"Malformed registry proof entry: {e}") from e
    if not verify(public_key, message, signature):
        raise ProofInvalidError(
            "Could not verify signature from retrieved, signed registry entry in registry proof"
        )
    return next_link


def validate_registry_proof(
    proof: Sequence[RegistryProofEntry],
    *,
    resolver_skylink: str,
    skylink: str,
) -> None:
    """Verify that proof links resolver_skylink to skylink.

    Args:
        proof: Proof steps in resolution order
        resolver_skylink: Base64 entry link the chain starts at
        skylink: Base64 data link the chain must end at

    Raises:
        ProofInvalidError: If the chain is empty, broken, or badly signed
    """
    if not proof:
        raise ProofInvalidError(
            "Expected registry proof not to be empty",
            input_skylink=resolver_skylink,
            data_link=skylink,
        )

    last_link = resolver_skylink
    for step in proof:
        last_link = _verify_step(step, last_link)

    if last_link != skylink:
        raise ProofInvalidError(
            "Could not verify registry proof chain",
            input_skylink=resolver_skylink,
            data_link=skylink,
        )


def validate_registry_proof_response(
    input_skylink: str,
    data_link: str,
    proof_header: Optional[str],
) -> None:
    """Validate the skylink and proof a portal returned for input_skylink.

    Args:
        input_skylink: Base64 skylink the caller requested
        data_link: Base64 skylink the portal says it served
        proof_header: Raw skynet-proof header, or None

    Raises:
        ProofMismatchError: If data_link is inconsistent with input_skylink
        UnexpectedProofError: If a direct content link came with a proof
        ProofInvalidError: If an entry link's proof does not verify
    """
    proof = parse_registry_proof(proof_header)

    if is_skylink_v1(input_skylink):
        if input_skylink != data_link:
            raise ProofMismatchError(
                "Expected returned skylink to be the same as input data link",
                input_skylink=input_skylink,
                data_link=data_link,
            )
        if proof:
            raise UnexpectedProofError(
                "Expected 'skynet-proof' header to be empty for data link",
                input_skylink=input_skylink,
                data_link=data_link,
            )
        return

    if input_skylink == data_link:
        raise ProofMismatchError(
            "Expected returned skylink to be different from input entry link",
            input_skylink=input_skylink,
            data_link=data_link,
        )

    validate_registry_proof(proof, resolver_skylink=input_skylink, skylink=data_link)
    logger.debug("Verified %d-step registry proof for %s", len(proof), input_skylink)
