"""
Key handling, signatures, and hashing for the Skynet SDK.

Keys are exchanged as hex strings:
- public key: 32 bytes (64 hex chars)
- private key: 64 bytes, the 32-byte Ed25519 seed followed by the public key

Hashing uses blake2b with a 32-byte digest, the hash the portal uses for
registry entries and entry links.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .validate import (
    PUBLIC_KEY_SIZE,
    validate_integer,
    validate_private_key,
    validate_string,
)

HASH_SIZE = 32
SIGNATURE_SIZE = 64

# PBKDF2 parameters for deriving a key pair from a seed phrase.
_SEED_KDF_ITERATIONS = 1000
_SEED_KDF_SALT = b""


@dataclass(frozen=True)
class KeyPair:
    """Ed25519 key pair as hex strings.

    Attributes:
        public_key: 32-byte public key, hex
        private_key: 64-byte private key (seed || public key), hex
    """

    public_key: str
    private_key: str


@dataclass(frozen=True)
class KeyPairAndSeed:
    """Key pair plus the seed it was derived from."""

    key_pair: KeyPair
    seed: str


def hash_all(*parts: bytes) -> bytes:
    """blake2b-256 of the concatenation of all parts."""
    h = hashlib.blake2b(digest_size=HASH_SIZE)
    for part in parts:
        h.update(part)
    return h.digest()


def _key_pair_from_private_key(private_key: Ed25519PrivateKey) -> KeyPair:
    seed = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return KeyPair(public_key=public.hex(), private_key=(seed + public).hex())


def _load_private_key(private_key: str) -> Ed25519PrivateKey:
    key = validate_private_key("private_key", private_key, "parameter")
    seed = bytes.fromhex(key)[:32]
    return Ed25519PrivateKey.from_private_bytes(seed)


def gen_key_pair_from_seed(seed: str) -> KeyPair:
    """Deterministically derive a key pair from a seed phrase.

    Args:
        seed: Arbitrary seed string

    Returns:
        KeyPair derived via PBKDF2-HMAC-SHA256
    """
    validate_string("seed", seed, "parameter")
    derived = hashlib.pbkdf2_hmac(
        "sha256",
        seed.encode("utf-8"),
        _SEED_KDF_SALT,
        _SEED_KDF_ITERATIONS,
        dklen=32,
    )
    return _key_pair_from_private_key(Ed25519PrivateKey.from_private_bytes(derived))


def gen_key_pair_and_seed(length: int = 64) -> KeyPairAndSeed:
    """Generate a random seed and the key pair derived from it.

    Args:
        length: Number of random bytes in the seed (hex-encoded)
    """
    validate_integer("length", length, "parameter")
    seed = secrets.token_hex(length)
    return KeyPairAndSeed(key_pair=gen_key_pair_from_seed(seed), seed=seed)


def public_key_from_private_key(private_key: str) -> str:
    """Return the hex public key matching a hex private key."""
    return _key_pair_from_private_key(_load_private_key(private_key)).public_key


def sign(private_key: str, message: bytes) -> bytes:
    """Sign a message with a hex private key; returns a 64-byte signature."""
    return _load_private_key(private_key).sign(message)


def verify(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """Verify an Ed25519 signature.

    Returns False on a bad signature or malformed key, never raises for them.
    """
    if len(public_key) != PUBLIC_KEY_SIZE or len(signature) != SIGNATURE_SIZE:
        return False
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(signature, message)
    except (InvalidSignature, ValueError):
        return False
    return True
