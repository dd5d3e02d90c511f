"""
Unit tests for key derivation, signing, and hashing.

Tests cover:
- Deterministic key pairs from seed phrases
- Random seed generation
- Sign/verify behavior on good and bad input
"""

import hashlib

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from skynet_sdk.crypto import (
    gen_key_pair_and_seed,
    gen_key_pair_from_seed,
    hash_all,
    public_key_from_private_key,
    sign,
    verify,
)
from skynet_sdk.errors import ValidationError

SEED = "insecure test seed"


class TestKeyDerivation:
    """Tests for key pair generation."""

    def test_key_pair_from_seed_uses_pbkdf2(self):
        """Private key seed is PBKDF2-HMAC-SHA256(seed, salt="", 1000 rounds)."""
        derived = hashlib.pbkdf2_hmac("sha256", SEED.encode("utf-8"), b"", 1000, dklen=32)
        public = (
            Ed25519PrivateKey.from_private_bytes(derived)
            .public_key()
            .public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            )
        )

        keys = gen_key_pair_from_seed(SEED)

        assert keys.public_key == public.hex()
        assert keys.private_key == derived.hex() + public.hex()

    def test_key_pair_from_seed_is_deterministic(self):
        assert gen_key_pair_from_seed(SEED) == gen_key_pair_from_seed(SEED)
        assert gen_key_pair_from_seed(SEED) != gen_key_pair_from_seed(SEED + "!")

    def test_key_pair_from_seed_rejects_non_string(self):
        with pytest.raises(ValidationError):
            gen_key_pair_from_seed(b"bytes seed")

    def test_gen_key_pair_and_seed(self):
        """Random seed is hex of the requested byte length."""
        result = gen_key_pair_and_seed()

        assert len(result.seed) == 128
        assert result.key_pair == gen_key_pair_from_seed(result.seed)

    def test_gen_key_pair_and_seed_custom_length(self):
        assert len(gen_key_pair_and_seed(16).seed) == 32

    def test_public_key_from_private_key(self):
        keys = gen_key_pair_from_seed(SEED)
        assert public_key_from_private_key(keys.private_key) == keys.public_key

    def test_private_key_must_be_64_bytes(self):
        keys = gen_key_pair_from_seed(SEED)
        with pytest.raises(ValidationError):
            public_key_from_private_key(keys.public_key)


class TestSignatures:
    """Tests for sign and verify."""

    @pytest.fixture
    def keys(self):
        return gen_key_pair_from_seed(SEED)

    def test_sign_and_verify(self, keys):
        signature = sign(keys.private_key, b"message")

        assert len(signature) == 64
        assert verify(bytes.fromhex(keys.public_key), b"message", signature)

    def test_verify_rejects_other_message(self, keys):
        signature = sign(keys.private_key, b"message")
        assert not verify(bytes.fromhex(keys.public_key), b"other message", signature)

    def test_verify_rejects_other_key(self, keys):
        other = gen_key_pair_from_seed("another seed")
        signature = sign(keys.private_key, b"message")
        assert not verify(bytes.fromhex(other.public_key), b"message", signature)

    def test_verify_rejects_malformed_input(self, keys):
        """Wrong lengths return False instead of raising."""
        signature = sign(keys.private_key, b"message")

        assert not verify(b"short", b"message", signature)
        assert not verify(bytes.fromhex(keys.public_key), b"message", signature[:10])


def test_hash_all_is_blake2b_256_of_concatenation():
    expected = hashlib.blake2b(b"abcdef", digest_size=32).digest()
    assert hash_all(b"abc", b"def") == expected
    assert hash_all(b"abcdef") == expected
