"""
Externally owned accounts.

An account is an Ed25519 key pair. Its address is the last 20 bytes of
SHA-256 over the raw public key, so a verifier holding only the public
key can check which address produced a signature.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from airdropmarket.protocol.models import PermitSignature

if TYPE_CHECKING:
    from airdropmarket.tokens.payment import PaymentToken


def address_from_public_key(public_key_bytes: bytes) -> str:
    """Derive the account address for a raw Ed25519 public key."""
    return "0x" + hashlib.sha256(public_key_bytes).hexdigest()[-40:]


def verify_signature(public_key_bytes: bytes, signature: bytes, data: bytes) -> bool:
    """Verify an Ed25519 signature. Malformed keys verify as False."""
    try:
        Ed25519PublicKey.from_public_bytes(public_key_bytes).verify(signature, data)
        return True
    except (InvalidSignature, ValueError):
        return False


class Account:
    """
    Signing identity for a principal.

    Usage:
        account = Account.generate()
        sig = account.sign_permit(token, spender, value, deadline)
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        self._public_key_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self._address = address_from_public_key(self._public_key_bytes)

    @property
    def address(self) -> str:
        return self._address

    @property
    def public_key_bytes(self) -> bytes:
        return self._public_key_bytes

    def sign(self, data: bytes) -> bytes:
        """Sign data with Ed25519. Returns 64-byte signature."""
        return self._private_key.sign(data)

    def sign_permit(
        self,
        token: "PaymentToken",
        spender: str,
        value: int,
        deadline: int,
        nonce: Optional[int] = None,
    ) -> PermitSignature:
        """
        Sign a permit granting ``spender`` an allowance of ``value``.

        The nonce defaults to the token's current nonce for this account.
        """
        if nonce is None:
            nonce = token.nonces(self._address)
        digest = token.permit_digest(self._address, spender, value, nonce, deadline)
        return PermitSignature(
            public_key=self._public_key_bytes.hex(),
            signature=self.sign(digest).hex(),
        )

    @classmethod
    def generate(cls) -> "Account":
        """Generate a new key pair (for testing and local devnets)."""
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_bytes(cls, key_bytes: bytes) -> "Account":
        """Create an account from a raw 32-byte private key."""
        return cls(Ed25519PrivateKey.from_private_bytes(key_bytes))

    @classmethod
    def from_pem_file(cls, path: str, password: Optional[bytes] = None) -> "Account":
        """Load an account from a PEM-encoded private key file."""
        with open(path, "rb") as f:
            private_key = serialization.load_pem_private_key(f.read(), password=password)
        if not isinstance(private_key, Ed25519PrivateKey):
            raise TypeError(f"Expected Ed25519 private key, got {type(private_key)}")
        return cls(private_key)

    def __repr__(self) -> str:
        return f"Account({self._address})"
