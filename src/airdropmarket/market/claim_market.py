"""
Claim Market

Listings for unique assets, a controller-published whitelist root, and a
one-time discounted redemption path for whitelisted principals.

CRITICAL INVARIANTS:
1. At most one active listing per asset id
2. A principal completes the discounted path at most once, for any asset
3. Claim record and listing state are written before any external call
4. Every rejection happens before the first write

Membership (the principal's leaf is under the current root) and
entitlement (the principal has not yet claimed) are separate facts and
are queried separately.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence, Union

from airdropmarket.core.batch import CallBatcher
from airdropmarket.core.chain import Chain
from airdropmarket.core.contract import Contract
from airdropmarket.merkle.proof import (
    ZERO_HASH,
    hash_leaf,
    multi_proof_verify,
    normalize_hash,
    verify,
)
from airdropmarket.protocol.enums import EventName
from airdropmarket.protocol.errors import (
    AlreadyClaimedError,
    AlreadyListedError,
    InsufficientAuthorizationError,
    InvalidPriceError,
    InvalidProofError,
    NotListedError,
    RootVersionMismatchError,
    StaleOwnershipError,
    UnauthorizedError,
)
from airdropmarket.protocol.models import (
    Listing,
    PaymentAuthorization,
    PermitSignature,
    normalize_address,
)
from airdropmarket.tokens.payment import PaymentToken
from airdropmarket.tokens.registry import AssetRegistry

logger = logging.getLogger("airdropmarket.market")


class ClaimMarket(CallBatcher, Contract):
    """
    Orchestrates listings, whitelist claims and full-price sales.

    Whitelisted buyers normally submit ``[authorize_payment, claim_nft]``
    through ``multicall`` so the permit and the claim commit together,
    both executed as the buyer.
    """

    __storage__ = (
        "_controller",
        "_whitelist_root",
        "_root_version",
        "_listings",
        "_claimed",
        "_last_authorization",
    )

    __batchable__ = (
        "set_whitelist_root",
        "transfer_control",
        "list_nft",
        "delist_nft",
        "authorize_payment",
        "claim_nft",
        "buy_nft",
        "verify_whitelist",
        "verify_whitelist_batch",
        "get_listing",
        "get_discounted_price",
        "has_user_claimed",
        "is_entitled",
    )

    def __init__(
        self,
        chain: Chain,
        payment_token: PaymentToken,
        asset_registry: AssetRegistry,
        controller: str,
        whitelist_root: str = ZERO_HASH,
    ):
        super().__init__(chain, "market")
        self._token = payment_token
        self._registry = asset_registry

        self._controller = normalize_address(controller)
        self._whitelist_root = normalize_hash(whitelist_root)
        self._root_version = 0
        self._listings: Dict[int, Listing] = {}
        self._claimed: Dict[str, bool] = {}
        self._last_authorization: Optional[PaymentAuthorization] = None

    # ===========================================================
    # Views
    # ===========================================================

    @property
    def payment_token(self) -> PaymentToken:
        return self._token

    @property
    def asset_registry(self) -> AssetRegistry:
        return self._registry

    @property
    def controller(self) -> str:
        return self._controller

    @property
    def whitelist_root(self) -> str:
        return self._whitelist_root

    @property
    def root_version(self) -> int:
        return self._root_version

    @property
    def last_authorization(self) -> Optional[PaymentAuthorization]:
        return self._last_authorization

    def get_listing(self, asset_id: int) -> Listing:
        """Copy of the listing for ``asset_id``; an inactive blank if never listed."""
        self._sload()
        listing = self._listings.get(asset_id)
        if listing is None:
            return Listing.empty(asset_id)
        return Listing(listing.asset_id, listing.seller, listing.price, listing.active)

    def get_discounted_price(self, asset_id: int) -> int:
        """Amount ``claim_nft`` will pull: half the listed price, rounded down."""
        return self._active_listing(asset_id).discounted_price

    def has_user_claimed(self, principal: str) -> bool:
        self._sload()
        return self._claimed.get(normalize_address(principal), False)

    def is_entitled(self, principal: str) -> bool:
        """True while the principal has not used its discounted claim."""
        return not self.has_user_claimed(principal)

    def verify_whitelist(self, principal: str, proof: Sequence[str]) -> bool:
        """Membership check against the current root. No state change."""
        self._sload()
        self._chain.charge(self._chain.settings.gas.pair_hash * (len(proof) + 1))
        return verify(proof, self._whitelist_root, hash_leaf(principal))

    def verify_whitelist_batch(
        self,
        principals: Sequence[str],
        proof: Sequence[str],
        proof_flags: Sequence[bool],
    ) -> bool:
        """
        Membership check for several principals sharing one multi-proof.

        ``principals`` must be in tree order.
        """
        self._sload()
        leaves = [hash_leaf(p) for p in principals]
        self._chain.charge(self._chain.settings.gas.pair_hash * (len(proof_flags) + len(leaves)))
        return multi_proof_verify(proof, proof_flags, self._whitelist_root, leaves)

    # ===========================================================
    # Controller
    # ===========================================================

    def _only_controller(self) -> None:
        self._sload()
        if self.msg_sender != self._controller:
            raise UnauthorizedError(
                f"{self.msg_sender} is not the controller",
                details={"caller": self.msg_sender},
            )

    def set_whitelist_root(self, new_root: str) -> int:
        """
        Replace the whitelist root. Takes effect for every later check.

        Returns the new root version.
        """
        self._only_controller()
        new_root = normalize_hash(new_root)
        previous = self._whitelist_root

        self._sstore(2)
        self._whitelist_root = new_root
        self._root_version += 1

        self._emit(
            EventName.ROOT_UPDATED.value,
            old_root=previous,
            new_root=new_root,
            version=self._root_version,
        )
        logger.info("Whitelist root set to %s (version %d)", new_root, self._root_version)
        return self._root_version

    def transfer_control(self, new_controller: str) -> None:
        self._only_controller()
        new_controller = normalize_address(new_controller)
        previous = self._controller

        self._sstore()
        self._controller = new_controller
        self._emit(EventName.CONTROL_TRANSFERRED.value, previous=previous, controller=new_controller)

    # ===========================================================
    # Listings
    # ===========================================================

    def _active_listing(self, asset_id: int) -> Listing:
        self._sload()
        listing = self._listings.get(asset_id)
        if listing is None or not listing.active:
            raise NotListedError(f"Asset {asset_id} is not listed", details={"assetId": asset_id})
        return listing

    def _market_can_transfer(self, owner: str, asset_id: int) -> bool:
        return (
            self._call(self._registry.get_approved, asset_id) == self.address
            or self._call(self._registry.is_approved_for_all, owner, self.address)
        )

    def list_nft(self, asset_id: int, price: int) -> None:
        """
        Offer an asset the caller owns at ``price``.

        Raises:
            InvalidPriceError: If price is not positive
            UnauthorizedError: If the caller does not own the asset or the
                market is not approved to move it
            AlreadyListedError: If the asset already has an active listing
        """
        seller = self.msg_sender
        if not isinstance(price, int) or isinstance(price, bool) or price <= 0:
            raise InvalidPriceError(f"Price must be positive, got {price}")

        if self._call(self._registry.owner_of, asset_id) != seller:
            raise UnauthorizedError(f"{seller} does not own asset {asset_id}")
        if not self._market_can_transfer(seller, asset_id):
            raise UnauthorizedError(f"Market is not approved to transfer asset {asset_id}")

        self._sload()
        existing = self._listings.get(asset_id)
        if existing is not None and existing.active:
            raise AlreadyListedError(f"Asset {asset_id} is already listed")

        self._sstore(3)
        self._listings[asset_id] = Listing(asset_id=asset_id, seller=seller, price=price, active=True)
        self._emit(EventName.LISTED.value, asset_id=asset_id, seller=seller, price=price)
        logger.info("Asset %d listed by %s at %d", asset_id, seller, price)

    def delist_nft(self, asset_id: int) -> None:
        listing = self._active_listing(asset_id)
        if listing.seller != self.msg_sender:
            raise UnauthorizedError(f"Only the seller can delist asset {asset_id}")

        self._sstore()
        listing.active = False
        self._emit(EventName.DELISTED.value, asset_id=asset_id, seller=listing.seller)
        logger.info("Asset %d delisted", asset_id)

    # ===========================================================
    # Payment authorization
    # ===========================================================

    def authorize_payment(
        self,
        owner: str,
        spender: str,
        value: int,
        deadline: int,
        signature: Union[PermitSignature, Dict[str, str]],
    ) -> None:
        """
        Forward an off-chain permit to the payment token.

        Signature checks live in the token; its errors propagate unchanged.
        """
        self._call(self._token.permit, owner, spender, value, deadline, signature)

        authorization = PaymentAuthorization(
            owner=normalize_address(owner),
            spender=normalize_address(spender),
            value=value,
            deadline=deadline,
        )
        self._sstore()
        self._last_authorization = authorization
        self._emit(EventName.AUTHORIZATION_RECORDED.value, **authorization.to_dict())

    # ===========================================================
    # Sales
    # ===========================================================

    def _check_sale(self, asset_id: int, buyer: str, amount: int) -> Listing:
        listing = self._active_listing(asset_id)

        if self._call(self._registry.owner_of, asset_id) != listing.seller:
            raise StaleOwnershipError(
                f"Seller {listing.seller} no longer owns asset {asset_id}",
                details={"assetId": asset_id, "seller": listing.seller},
            )
        if not self._market_can_transfer(listing.seller, asset_id):
            raise StaleOwnershipError(
                f"Market lost transfer approval for asset {asset_id}",
                details={"assetId": asset_id, "seller": listing.seller},
            )

        allowance = self._call(self._token.allowance, buyer, self.address)
        if allowance < amount:
            raise InsufficientAuthorizationError(
                f"Allowance {allowance} < required {amount}",
                details={"allowance": allowance, "required": amount},
            )
        return listing

    def _settle(self, listing: Listing, buyer: str, amount: int) -> None:
        self._call(self._token.transfer_from, buyer, listing.seller, amount)
        self._call(self._registry.transfer_from, listing.seller, buyer, listing.asset_id)

    def claim_nft(
        self,
        asset_id: int,
        proof: Sequence[str],
        root_version: Optional[int] = None,
    ) -> int:
        """
        Redeem a listed asset at half price as a whitelisted principal.

        ``root_version`` optionally pins the root the proof was built for.

        Returns the amount paid.

        Raises:
            AlreadyClaimedError: If the caller already used its claim
            RootVersionMismatchError: If a pinned version is not current
            InvalidProofError: If the caller is not under the current root
            NotListedError: If the asset has no active listing
            StaleOwnershipError: If the seller no longer owns the asset or
                the market may no longer move it
            InsufficientAuthorizationError: If the caller's allowance to the
                market is below the discounted price
        """
        buyer = self.msg_sender

        if self.has_user_claimed(buyer):
            raise AlreadyClaimedError(f"{buyer} has already claimed", details={"principal": buyer})

        if root_version is not None and root_version != self._root_version:
            raise RootVersionMismatchError(
                f"Proof built for root version {root_version}, current is {self._root_version}",
                details={"expected": root_version, "current": self._root_version},
            )

        if not self.verify_whitelist(buyer, proof):
            raise InvalidProofError(f"{buyer} is not in the whitelist", details={"principal": buyer})

        listing = self._active_listing(asset_id)
        amount = listing.discounted_price
        self._check_sale(asset_id, buyer, amount)

        self._sstore(2)
        self._claimed[buyer] = True
        listing.active = False

        self._settle(listing, buyer, amount)

        self._emit(EventName.CLAIMED.value, asset_id=asset_id, buyer=buyer, price=amount)
        self._emit(
            EventName.SOLD.value,
            asset_id=asset_id,
            seller=listing.seller,
            buyer=buyer,
            price=amount,
        )
        logger.info("Asset %d claimed by %s for %d", asset_id, buyer, amount)
        return amount

    def buy_nft(self, asset_id: int) -> int:
        """
        Buy a listed asset at full price. Open to any principal.

        Returns the amount paid.
        """
        buyer = self.msg_sender
        listing = self._check_sale(asset_id, buyer, self._active_listing(asset_id).price)
        amount = listing.price

        self._sstore()
        listing.active = False

        self._settle(listing, buyer, amount)

        self._emit(
            EventName.SOLD.value,
            asset_id=asset_id,
            seller=listing.seller,
            buyer=buyer,
            price=amount,
        )
        logger.info("Asset %d bought by %s for %d", asset_id, buyer, amount)
        return amount
