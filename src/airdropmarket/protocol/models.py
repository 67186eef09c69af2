"""
Shared records for the market, its collaborators and the ledger.

Addresses are ``0x``-prefixed, 40 hex chars, normalized to lowercase.
All records serialize to camelCase dicts.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Union

from .errors import InvalidAddressError, InvalidSignatureError


ZERO_ADDRESS = "0x" + "00" * 20

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def normalize_address(address: str) -> str:
    """Validate an address and return its lowercase form."""
    if not isinstance(address, str) or not _ADDRESS_RE.match(address.strip()):
        raise InvalidAddressError(f"Invalid address: {address!r}")
    return address.strip().lower()


# ===========================================================================
# Listing
# ===========================================================================


@dataclass
class Listing:
    """
    A seller's offer for one asset.

    At most one listing per asset id is active at a time. Sold and
    delisted entries are both just ``active=False``.
    """
    asset_id: int
    seller: str
    price: int
    active: bool

    @classmethod
    def empty(cls, asset_id: int) -> "Listing":
        return cls(asset_id=asset_id, seller=ZERO_ADDRESS, price=0, active=False)

    @property
    def discounted_price(self) -> int:
        return self.price // 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assetId": self.asset_id,
            "seller": self.seller,
            "price": self.price,
            "active": self.active,
        }


# ===========================================================================
# Payment authorization
# ===========================================================================


@dataclass(frozen=True)
class PermitSignature:
    """
    Off-chain signature over a permit digest.

    Attributes:
        public_key: Raw Ed25519 public key, hex
        signature: 64-byte Ed25519 signature, hex
    """
    public_key: str
    signature: str

    def to_dict(self) -> Dict[str, Any]:
        return {"publicKey": self.public_key, "signature": self.signature}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PermitSignature":
        """
        Raises:
            InvalidSignatureError: If either field is missing or not a string
        """
        try:
            public_key, signature = data["publicKey"], data["signature"]
        except (KeyError, TypeError) as exc:
            raise InvalidSignatureError(f"Malformed permit signature payload: {exc!r}") from exc
        if not isinstance(public_key, str) or not isinstance(signature, str):
            raise InvalidSignatureError("Permit signature fields must be hex strings")
        return cls(public_key=public_key, signature=signature)

    @classmethod
    def coerce(cls, value: Union["PermitSignature", Dict[str, Any]]) -> "PermitSignature":
        if isinstance(value, cls):
            return value
        if not isinstance(value, dict):
            raise InvalidSignatureError(
                f"Expected a permit signature, got {type(value).__name__}"
            )
        return cls.from_dict(value)


@dataclass(frozen=True)
class PaymentAuthorization:
    """Latest permit forwarded through the market, kept for observability."""
    owner: str
    spender: str
    value: int
    deadline: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "spender": self.spender,
            "value": self.value,
            "deadline": self.deadline,
        }


# ===========================================================================
# Events
# ===========================================================================


@dataclass(frozen=True)
class Event:
    """A log entry emitted by a contract during a committed transaction."""
    name: str
    emitter: str
    args: Dict[str, Any] = field(default_factory=dict)
    tx_index: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "emitter": self.emitter,
            "args": dict(self.args),
            "txIndex": self.tx_index,
        }
