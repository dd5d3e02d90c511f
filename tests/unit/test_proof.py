"""
Unit tests for registry proof validation.

Tests cover:
- Valid single-step and two-step proof chains
- Broken chains, bad signatures, unsupported types
- Consistency rules for direct content links vs. entry links
"""

import base64
import json

import pytest

from skynet_sdk.crypto import gen_key_pair_from_seed, sign
from skynet_sdk.encoding import hash_data_key, hash_registry_entry
from skynet_sdk.errors import (
    ProofInvalidError,
    ProofMismatchError,
    UnexpectedProofError,
)
from skynet_sdk.models import RegistryEntry
from skynet_sdk.proof import (
    ProofPublicKey,
    RegistryProofEntry,
    parse_registry_proof,
    validate_registry_proof,
    validate_registry_proof_response,
)
from skynet_sdk.skylink import SiaSkylink, decode_skylink_base64, get_entry_link

DATA_LINK = SiaSkylink(bitfield=0, merkle_root=bytes(range(32))).to_string()
OTHER_DATA_LINK = SiaSkylink(bitfield=0, merkle_root=bytes(range(1, 33))).to_string()


def make_step(keys, data_key: str, target_link: str, revision: int = 3) -> RegistryProofEntry:
    """Build a signed proof step for (keys, data_key) pointing at target_link."""
    data_key_hex = hash_data_key(data_key).hex()
    data = decode_skylink_base64(target_link)
    entry = RegistryEntry(data_key=data_key_hex, data=data, revision=revision)
    signature = sign(keys.private_key, hash_registry_entry(entry, hashed_data_key_hex=True))
    return RegistryProofEntry(
        data=data.hex(),
        revision=revision,
        datakey=data_key_hex,
        publickey=ProofPublicKey(
            algorithm="ed25519",
            key=base64.b64encode(bytes.fromhex(keys.public_key)).decode("ascii"),
        ),
        signature=signature.hex(),
        type=1,
    )


def entry_link(keys, data_key: str) -> str:
    return get_entry_link(keys.public_key, data_key)[len("sia://"):]


def header(*steps: RegistryProofEntry) -> str:
    return json.dumps([step.model_dump() for step in steps])


@pytest.fixture
def keys():
    return gen_key_pair_from_seed("insecure test seed")


class TestParseRegistryProof:
    """Tests for parsing the skynet-proof header."""

    def test_missing_header_is_empty_proof(self):
        assert parse_registry_proof(None) == []
        assert parse_registry_proof("") == []

    def test_parses_steps(self, keys):
        step = make_step(keys, "app", DATA_LINK)
        assert parse_registry_proof(header(step)) == [step]

    @pytest.mark.parametrize("value", ["not json", '{"data": "00"}', '[{"data": "00"}]'])
    def test_malformed_header(self, value):
        with pytest.raises(ProofInvalidError):
            parse_registry_proof(value)


class TestValidateRegistryProof:
    """Tests for chain verification."""

    def test_single_step(self, keys):
        step = make_step(keys, "app", DATA_LINK)
        validate_registry_proof([step], resolver_skylink=entry_link(keys, "app"), skylink=DATA_LINK)

    def test_two_steps(self, keys):
        """Entry link -> entry link -> data link."""
        other_keys = gen_key_pair_from_seed("second seed")
        middle = entry_link(other_keys, "inner")
        steps = [
            make_step(keys, "outer", middle),
            make_step(other_keys, "inner", DATA_LINK),
        ]
        validate_registry_proof(steps, resolver_skylink=entry_link(keys, "outer"), skylink=DATA_LINK)

    def test_empty_proof(self, keys):
        with pytest.raises(ProofInvalidError):
            validate_registry_proof([], resolver_skylink=entry_link(keys, "app"), skylink=DATA_LINK)

    def test_chain_ends_elsewhere(self, keys):
        step = make_step(keys, "app", OTHER_DATA_LINK)
        with pytest.raises(ProofInvalidError):
            validate_registry_proof([step], resolver_skylink=entry_link(keys, "app"), skylink=DATA_LINK)

    def test_chain_starts_elsewhere(self, keys):
        step = make_step(keys, "other-key", DATA_LINK)
        with pytest.raises(ProofInvalidError):
            validate_registry_proof([step], resolver_skylink=entry_link(keys, "app"), skylink=DATA_LINK)

    def test_bad_signature(self, keys):
        step = make_step(keys, "app", DATA_LINK)
        tampered = step.model_copy(update={"revision": step.revision + 1})
        with pytest.raises(ProofInvalidError):
            validate_registry_proof(
                [tampered], resolver_skylink=entry_link(keys, "app"), skylink=DATA_LINK
            )

    def test_unsupported_type(self, keys):
        step = make_step(keys, "app", DATA_LINK).model_copy(update={"type": 2})
        with pytest.raises(ProofInvalidError):
            validate_registry_proof([step], resolver_skylink=entry_link(keys, "app"), skylink=DATA_LINK)

    def test_unsupported_algorithm(self, keys):
        step = make_step(keys, "app", DATA_LINK)
        step = step.model_copy(
            update={"publickey": ProofPublicKey(algorithm="sr25519", key=step.publickey.key)}
        )
        with pytest.raises(ProofInvalidError):
            validate_registry_proof([step], resolver_skylink=entry_link(keys, "app"), skylink=DATA_LINK)

    def test_malformed_step_data(self, keys):
        step = make_step(keys, "app", DATA_LINK).model_copy(update={"data": "abcd"})
        with pytest.raises(ProofInvalidError):
            validate_registry_proof([step], resolver_skylink=entry_link(keys, "app"), skylink=DATA_LINK)


class TestValidateRegistryProofResponse:
    """Tests for checking what a portal served."""

    def test_data_link_without_proof(self):
        validate_registry_proof_response(DATA_LINK, DATA_LINK, None)

    def test_data_link_served_as_other_link(self):
        with pytest.raises(ProofMismatchError) as exc_info:
            validate_registry_proof_response(DATA_LINK, OTHER_DATA_LINK, None)
        assert exc_info.value.code == "PROOF_MISMATCH"

    def test_data_link_with_proof(self, keys):
        with pytest.raises(UnexpectedProofError):
            validate_registry_proof_response(
                DATA_LINK, DATA_LINK, header(make_step(keys, "app", DATA_LINK))
            )

    def test_entry_link_with_valid_proof(self, keys):
        validate_registry_proof_response(
            entry_link(keys, "app"), DATA_LINK, header(make_step(keys, "app", DATA_LINK))
        )

    def test_entry_link_served_unresolved(self, keys):
        link = entry_link(keys, "app")
        with pytest.raises(ProofMismatchError):
            validate_registry_proof_response(link, link, None)

    def test_entry_link_without_proof(self, keys):
        with pytest.raises(ProofInvalidError):
            validate_registry_proof_response(entry_link(keys, "app"), DATA_LINK, None)
