"""
Payment Token

Fungible balance ledger with a signature-based allowance primitive.

The permit digest is a domain-separated canonical JSON document binding
token name, chain id and token address together with the owner, spender,
value, nonce and deadline. Permits are signed with the owner's Ed25519
account key; the signing public key travels with the signature and must
derive to the owner's address.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Dict, Optional, Tuple, Union

from airdropmarket.core.accounts import address_from_public_key, verify_signature
from airdropmarket.core.chain import Chain
from airdropmarket.core.contract import Contract
from airdropmarket.protocol.enums import EventName
from airdropmarket.protocol.errors import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidSignatureError,
    PermitExpiredError,
    UnauthorizedError,
    ValidationError,
)
from airdropmarket.protocol.models import PermitSignature, normalize_address

logger = logging.getLogger("airdropmarket.tokens.payment")

PERMIT_TYPE = "Permit(address owner,address spender,uint256 value,uint256 nonce,uint256 deadline)"


class PaymentToken(Contract):
    """
    Fungible token with permit.

    ``transfer_from`` spends the allowance granted to ``msg_sender``.
    ``permit`` sets an allowance from an off-chain signature and can be
    submitted by anyone.
    """

    __storage__ = ("_balances", "_allowances", "_nonces", "_total_supply")

    def __init__(
        self,
        chain: Chain,
        minter: str,
        name: str = "Market Token",
        symbol: str = "MKT",
        decimals: int = 18,
    ):
        super().__init__(chain, f"token:{symbol}")
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.minter = normalize_address(minter)

        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._nonces: Dict[str, int] = {}
        self._total_supply = 0

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, owner: str) -> int:
        return self._balances.get(normalize_address(owner), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    def nonces(self, owner: str) -> int:
        return self._nonces.get(normalize_address(owner), 0)

    def domain_separator(self) -> Dict[str, Union[str, int]]:
        return {
            "name": self.name,
            "version": "1",
            "chainId": self._chain.chain_id,
            "verifyingContract": self.address,
        }

    def permit_digest(self, owner: str, spender: str, value: int, nonce: int, deadline: int) -> bytes:
        """Bytes an owner signs to authorize ``spender`` for ``value``."""
        message = {
            "domain": self.domain_separator(),
            "type": PERMIT_TYPE,
            "message": {
                "owner": normalize_address(owner),
                "spender": normalize_address(spender),
                "value": int(value),
                "nonce": int(nonce),
                "deadline": int(deadline),
            },
        }
        canonical = json.dumps(message, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).digest()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def mint(self, to: str, amount: int) -> None:
        if self.msg_sender != self.minter:
            raise UnauthorizedError("Only the minter can mint")
        if amount <= 0:
            raise ValidationError(f"Mint amount must be positive, got {amount}")
        to = normalize_address(to)
        self._sstore(2)
        self._balances[to] = self._balances.get(to, 0) + amount
        self._total_supply += amount
        self._emit(EventName.TRANSFER.value, sender=None, recipient=to, amount=amount)

    def transfer(self, to: str, amount: int) -> bool:
        self._move(self.msg_sender, normalize_address(to), amount)
        return True

    def approve(self, spender: str, amount: int) -> bool:
        self._set_allowance(self.msg_sender, normalize_address(spender), amount)
        return True

    def transfer_from(self, owner: str, to: str, amount: int) -> bool:
        """
        Move ``amount`` from ``owner`` to ``to`` using the caller's allowance.

        Raises:
            InsufficientAllowanceError: If the caller's allowance is too low
            InsufficientBalanceError: If the owner's balance is too low
        """
        owner = normalize_address(owner)
        spender = self.msg_sender
        self._sload()
        current = self._allowances.get((owner, spender), 0)
        if current < amount:
            raise InsufficientAllowanceError(
                f"Allowance {current} < {amount} for spender {spender}",
                details={"owner": owner, "spender": spender, "allowance": current},
            )
        self._move(owner, normalize_address(to), amount)
        self._sstore()
        self._allowances[(owner, spender)] = current - amount
        return True

    def permit(
        self,
        owner: str,
        spender: str,
        value: int,
        deadline: int,
        signature: Union[PermitSignature, Dict[str, str]],
    ) -> None:
        """
        Set ``allowance(owner, spender) = value`` from an owner's signature.

        Consumes the owner's current nonce.

        Raises:
            PermitExpiredError: If the ledger time is past ``deadline``
            InvalidSignatureError: If the key does not belong to ``owner`` or
                the signature does not match the digest
            ValidationError: If value or deadline is not a non-negative integer
        """
        owner = normalize_address(owner)
        spender = normalize_address(spender)
        signature = PermitSignature.coerce(signature)
        for field_name, amount in (("value", value), ("deadline", deadline)):
            if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
                raise ValidationError(f"Permit {field_name} must be a non-negative integer, got {amount!r}")

        if self._chain.timestamp > deadline:
            raise PermitExpiredError(
                f"Permit expired at {deadline} (now {self._chain.timestamp})"
            )

        try:
            public_key = bytes.fromhex(signature.public_key)
            raw_signature = bytes.fromhex(signature.signature)
        except (ValueError, TypeError) as exc:
            raise InvalidSignatureError(f"Malformed permit signature: {exc}") from exc

        if address_from_public_key(public_key) != owner:
            raise InvalidSignatureError("Permit signer is not the owner")

        self._sload()
        nonce = self._nonces.get(owner, 0)
        digest = self.permit_digest(owner, spender, value, nonce, deadline)
        self._chain.charge(self._chain.settings.gas.signature_check)
        if not verify_signature(public_key, raw_signature, digest):
            raise InvalidSignatureError("Permit signature does not match")

        self._sstore()
        self._nonces[owner] = nonce + 1
        self._set_allowance(owner, spender, value)
        logger.debug("Permit: %s allows %s to spend %d (nonce %d)", owner, spender, value, nonce)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _move(self, sender: str, to: str, amount: int) -> None:
        if amount < 0:
            raise ValidationError(f"Transfer amount must be non-negative, got {amount}")
        self._sload()
        balance = self._balances.get(sender, 0)
        if balance < amount:
            raise InsufficientBalanceError(
                f"Balance {balance} < {amount} for {sender}",
                details={"owner": sender, "balance": balance},
            )
        self._sstore(2)
        self._balances[sender] = balance - amount
        self._balances[to] = self._balances.get(to, 0) + amount
        self._emit(EventName.TRANSFER.value, sender=sender, recipient=to, amount=amount)

    def _set_allowance(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise ValidationError(f"Allowance must be non-negative, got {amount}")
        self._sstore()
        self._allowances[(owner, spender)] = amount
        self._emit(EventName.APPROVAL.value, owner=owner, spender=spender, amount=amount)
