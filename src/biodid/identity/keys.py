# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Key material helpers for verification methods.

Public keys in identity documents are carried as multibase strings
(base58btc, ``z`` prefix) over the Ed25519 multicodec prefix ``0xed01``,
the form ``Ed25519VerificationKey2020`` expects.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

# Multibase prefix for base58btc encoding
MULTIBASE_BASE58BTC = "z"

# Multicodec prefix for Ed25519 public key (0xed01)
MULTICODEC_ED25519_PUB = bytes([0xED, 0x01])

ED25519_KEY_LENGTH = 32

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def base58_encode(data: bytes) -> str:
    """Encode bytes to base58 string."""
    num = int.from_bytes(data, "big")
    result = ""
    while num > 0:
        num, remainder = divmod(num, 58)
        result = BASE58_ALPHABET[remainder] + result

    # Leading zero bytes map to leading '1's
    pad = len(data) - len(data.lstrip(b"\x00"))
    return BASE58_ALPHABET[0] * pad + result


def base58_decode(string: str) -> bytes:
    """Decode base58 string to bytes.

    Raises:
        ValueError: If the string contains characters outside the alphabet
    """
    num = 0
    for char in string:
        index = BASE58_ALPHABET.find(char)
        if index < 0:
            raise ValueError(f"Invalid base58 character: {char!r}")
        num = num * 58 + index

    body = num.to_bytes((num.bit_length() + 7) // 8, "big") if num else b""
    pad = len(string) - len(string.lstrip(BASE58_ALPHABET[0]))
    return b"\x00" * pad + body


def multibase_encode(data: bytes) -> str:
    """Encode bytes to multibase (base58btc)."""
    return MULTIBASE_BASE58BTC + base58_encode(data)


def multibase_decode(string: str) -> bytes:
    """Decode multibase string to bytes."""
    if not string.startswith(MULTIBASE_BASE58BTC):
        prefix = string[:1] or "<empty>"
        raise ValueError(f"Unsupported multibase encoding: {prefix}")
    return base58_decode(string[1:])


def public_key_to_multibase(public_key: bytes) -> str:
    """Encode a raw Ed25519 public key as ``publicKeyMultibase``."""
    return multibase_encode(MULTICODEC_ED25519_PUB + public_key)


def public_key_from_multibase(multibase: str) -> bytes:
    """Extract raw public key bytes from multibase-encoded key."""
    decoded = multibase_decode(multibase)
    if decoded[:2] == MULTICODEC_ED25519_PUB:
        return decoded[2:]
    return decoded


def is_ed25519_multibase(value: str) -> bool:
    """Check whether ``value`` decodes to a prefixed 32-byte Ed25519 key."""
    try:
        decoded = multibase_decode(value)
    except ValueError:
        return False
    return decoded[:2] == MULTICODEC_ED25519_PUB and len(decoded) == len(MULTICODEC_ED25519_PUB) + ED25519_KEY_LENGTH


def public_key_jwk(public_key: bytes) -> dict[str, str]:
    """Build the OKP JSON Web Key for a raw Ed25519 public key."""
    x = base64.urlsafe_b64encode(public_key).rstrip(b"=").decode("ascii")
    return {"kty": "OKP", "crv": "Ed25519", "x": x}


@dataclass
class KeyPair:
    """Ed25519 key pair for a verification method."""

    private_key_bytes: bytes
    public_key_bytes: bytes

    @property
    def public_key_multibase(self) -> str:
        """Get public key in multibase format (with multicodec prefix)."""
        return public_key_to_multibase(self.public_key_bytes)

    @property
    def public_key_jwk(self) -> dict[str, str]:
        return public_key_jwk(self.public_key_bytes)

    @property
    def private_key_hex(self) -> str:
        """Get private key as hex string (for secure storage)."""
        return self.private_key_bytes.hex()

    @classmethod
    def from_private_key_hex(cls, hex_string: str) -> KeyPair:
        """Create KeyPair from stored private key hex."""
        private_bytes = bytes.fromhex(hex_string)
        private_key = Ed25519PrivateKey.from_private_bytes(private_bytes)
        public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return cls(private_key_bytes=private_bytes, public_key_bytes=public_bytes)


def generate_keypair() -> KeyPair:
    """Generate a new Ed25519 key pair."""
    private_key = Ed25519PrivateKey.generate()
    private_bytes = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return KeyPair(private_key_bytes=private_bytes, public_key_bytes=public_bytes)
