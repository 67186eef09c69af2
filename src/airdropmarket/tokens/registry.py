"""
Asset Registry

Ownership ledger for unique assets, with per-asset approvals and
operator approvals.

When an asset is transferred to an address that hosts a contract with an
``on_asset_received`` hook, the registry calls it after the transfer has
been recorded. Receivers can therefore call back into other contracts in
the middle of a sale.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Set, Tuple

from airdropmarket.core.chain import Chain
from airdropmarket.core.contract import Contract
from airdropmarket.protocol.enums import EventName
from airdropmarket.protocol.errors import (
    NonexistentAssetError,
    NotOwnerNorApprovedError,
    UnauthorizedError,
    ValidationError,
)
from airdropmarket.protocol.models import ZERO_ADDRESS, normalize_address

logger = logging.getLogger("airdropmarket.tokens.registry")


class AssetRegistry(Contract):
    __storage__ = ("_owners", "_balances", "_approvals", "_operators")

    def __init__(self, chain: Chain, minter: str, name: str = "Market Assets", symbol: str = "MNFT"):
        super().__init__(chain, f"registry:{symbol}")
        self.name = name
        self.symbol = symbol
        self.minter = normalize_address(minter)

        self._owners: Dict[int, str] = {}
        self._balances: Dict[str, int] = {}
        self._approvals: Dict[int, str] = {}
        self._operators: Set[Tuple[str, str]] = set()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def owner_of(self, asset_id: int) -> str:
        self._sload()
        owner = self._owners.get(asset_id)
        if owner is None:
            raise NonexistentAssetError(f"Asset {asset_id} does not exist")
        return owner

    def balance_of(self, owner: str) -> int:
        return self._balances.get(normalize_address(owner), 0)

    def get_approved(self, asset_id: int) -> str:
        self.owner_of(asset_id)
        return self._approvals.get(asset_id, ZERO_ADDRESS)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        self._sload()
        return (normalize_address(owner), normalize_address(operator)) in self._operators

    def is_approved_or_owner(self, spender: str, asset_id: int) -> bool:
        owner = self.owner_of(asset_id)
        spender = normalize_address(spender)
        return (
            spender == owner
            or self._approvals.get(asset_id) == spender
            or (owner, spender) in self._operators
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def mint(self, to: str, asset_id: int) -> None:
        if self.msg_sender != self.minter:
            raise UnauthorizedError("Only the minter can mint")
        if asset_id in self._owners:
            raise ValidationError(f"Asset {asset_id} already minted")
        to = normalize_address(to)
        self._sstore(2)
        self._owners[asset_id] = to
        self._balances[to] = self._balances.get(to, 0) + 1
        self._emit(EventName.TRANSFER.value, sender=None, recipient=to, asset_id=asset_id)

    def approve(self, to: str, asset_id: int) -> None:
        owner = self.owner_of(asset_id)
        caller = self.msg_sender
        if caller != owner and (owner, caller) not in self._operators:
            raise NotOwnerNorApprovedError(
                f"{caller} cannot approve asset {asset_id}"
            )
        to = normalize_address(to)
        self._sstore()
        self._approvals[asset_id] = to
        self._emit(EventName.APPROVAL.value, owner=owner, approved=to, asset_id=asset_id)

    def set_approval_for_all(self, operator: str, approved: bool) -> None:
        owner = self.msg_sender
        operator = normalize_address(operator)
        self._sstore()
        if approved:
            self._operators.add((owner, operator))
        else:
            self._operators.discard((owner, operator))
        self._emit(
            EventName.APPROVAL_FOR_ALL.value,
            owner=owner,
            operator=operator,
            approved=bool(approved),
        )

    def transfer_from(self, from_: str, to: str, asset_id: int) -> None:
        """
        Move an asset, clearing its per-asset approval.

        Raises:
            NotOwnerNorApprovedError: If the caller may not move the asset or
                ``from_`` is not its owner
        """
        from_ = normalize_address(from_)
        to = normalize_address(to)
        owner = self.owner_of(asset_id)
        if owner != from_:
            raise NotOwnerNorApprovedError(f"Asset {asset_id} is not owned by {from_}")
        caller = self.msg_sender
        if not self.is_approved_or_owner(caller, asset_id):
            raise NotOwnerNorApprovedError(
                f"{caller} is neither owner nor approved for asset {asset_id}"
            )

        self._sstore(4)
        self._approvals.pop(asset_id, None)
        self._owners[asset_id] = to
        self._balances[from_] -= 1
        self._balances[to] = self._balances.get(to, 0) + 1
        self._emit(EventName.TRANSFER.value, sender=from_, recipient=to, asset_id=asset_id)
        logger.debug("Asset %d moved %s -> %s", asset_id, from_, to)

        receiver = self._chain.get_contract(to)
        hook = getattr(receiver, "on_asset_received", None) if receiver is not None else None
        if hook is not None:
            self._call(hook, caller, from_, asset_id)
