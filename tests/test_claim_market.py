"""
Tests for the claim market: root control, listings, claims and sales.
"""

import pytest

from airdropmarket.core.contract import Contract
from airdropmarket.merkle.proof import ZERO_HASH, hash_leaf
from airdropmarket.merkle.tree import WhitelistTree
from airdropmarket.protocol.enums import EventName
from airdropmarket.protocol.errors import (
    AlreadyClaimedError,
    AlreadyListedError,
    InsufficientAuthorizationError,
    InvalidHashError,
    InvalidPriceError,
    InvalidProofError,
    NotListedError,
    RootVersionMismatchError,
    StaleOwnershipError,
    UnauthorizedError,
)

from conftest import claim_call, permit_call


def _claim(deployment, account, asset_id, proof=(), value=None, **kwargs):
    """Permit the discounted price and claim in one batch."""
    if value is None:
        value = deployment.market.get_discounted_price(asset_id)
    return deployment.chain.transact(
        account.address,
        deployment.market.multicall,
        [permit_call(deployment, account, value), claim_call(asset_id, proof, **kwargs)],
    )


class TestRootControl:
    """Whitelist root management."""

    def test_initial_root(self, market):
        """A fresh market has the zero root at version 0."""
        assert market.whitelist_root == ZERO_HASH
        assert market.root_version == 0

    def test_controller_sets_root(self, chain, market, controller):
        """The controller publishes a root and a RootUpdated event."""
        new_root = "0x" + "11" * 32
        version = chain.transact(controller.address, market.set_whitelist_root, new_root)
        assert version == 1
        assert market.whitelist_root == new_root
        event = chain.get_events(EventName.ROOT_UPDATED.value)[-1]
        assert event.args == {"old_root": ZERO_HASH, "new_root": new_root, "version": 1}

    def test_others_cannot_set_root(self, chain, market, buyer):
        """Only the controller may set the root."""
        with pytest.raises(UnauthorizedError):
            chain.transact(buyer.address, market.set_whitelist_root, "0x" + "11" * 32)
        assert market.root_version == 0

    def test_malformed_root(self, chain, market, controller):
        """A root that is not 32 bytes is rejected with a receipt."""
        with pytest.raises(InvalidHashError):
            chain.transact(controller.address, market.set_whitelist_root, "0x1234")
        assert chain.receipts[-1].error.code.value == "invalid_hash"
        assert market.root_version == 0

    def test_transfer_control(self, chain, market, controller, buyer):
        """Control can be handed to a new controller."""
        chain.transact(controller.address, market.transfer_control, buyer.address)
        assert market.controller == buyer.address
        with pytest.raises(UnauthorizedError):
            chain.transact(controller.address, market.set_whitelist_root, ZERO_HASH)
        chain.transact(buyer.address, market.set_whitelist_root, ZERO_HASH)


class TestListings:
    """Listing lifecycle."""

    def test_list_records_listing(self, listed, seller):
        """Listing records seller and price and emits Listed."""
        listing = listed.market.get_listing(7)
        assert (listing.seller, listing.price, listing.active) == (seller.address, 100, True)
        event = listed.chain.get_events(EventName.LISTED.value)[-1]
        assert event.args == {"asset_id": 7, "seller": seller.address, "price": 100}

    @pytest.mark.parametrize("price", [0, -5, True])
    def test_non_positive_price(self, funded, seller, price):
        """Zero, negative and boolean prices are rejected."""
        with pytest.raises(InvalidPriceError):
            funded.chain.transact(seller.address, funded.market.list_nft, 7, price)

    def test_non_owner_cannot_list(self, funded, buyer):
        """Only the owner may list."""
        with pytest.raises(UnauthorizedError):
            funded.chain.transact(buyer.address, funded.market.list_nft, 7, 100)

    def test_market_must_be_approved(self, funded, seller):
        """Listing needs operator or per-asset approval for the market."""
        chain, registry, market = funded.chain, funded.registry, funded.market
        chain.transact(seller.address, registry.set_approval_for_all, market.address, False)
        with pytest.raises(UnauthorizedError):
            chain.transact(seller.address, market.list_nft, 7, 100)

        chain.transact(seller.address, registry.approve, market.address, 7)
        chain.transact(seller.address, market.list_nft, 7, 100)
        assert market.get_listing(7).active

    def test_double_listing(self, listed, seller):
        """An active listing cannot be replaced."""
        with pytest.raises(AlreadyListedError):
            listed.chain.transact(seller.address, listed.market.list_nft, 7, 200)
        assert listed.market.get_listing(7).price == 100

    def test_delist_and_relist(self, listed, seller):
        """Delisted assets can be listed again."""
        chain, market = listed.chain, listed.market
        chain.transact(seller.address, market.delist_nft, 7)
        assert market.get_listing(7).active is False
        with pytest.raises(NotListedError):
            chain.transact(seller.address, market.delist_nft, 7)

        chain.transact(seller.address, market.list_nft, 7, 300)
        assert market.get_listing(7).price == 300

    def test_only_seller_delists(self, listed, buyer):
        """Only the seller may delist."""
        with pytest.raises(UnauthorizedError):
            listed.chain.transact(buyer.address, listed.market.delist_nft, 7)

    def test_never_listed(self, market):
        """Unknown assets read as an inactive blank listing."""
        listing = market.get_listing(99)
        assert listing.active is False
        assert listing.price == 0
        with pytest.raises(NotListedError):
            market.get_discounted_price(99)

    def test_get_listing_returns_copy(self, listed):
        """Mutating a returned listing does not touch the market."""
        listing = listed.market.get_listing(7)
        listing.active = False
        assert listed.market.get_listing(7).active is True

    def test_discount_rounds_down(self, funded, seller):
        """The discounted price rounds down."""
        funded.chain.transact(seller.address, funded.market.list_nft, 7, 101)
        assert funded.market.get_discounted_price(7) == 50


class TestWhitelist:
    """Membership checks."""

    def test_membership_under_current_root(self, deployment, controller, buyer, outsider):
        """Single and batch proofs verify against the current root."""
        chain, market = deployment.chain, deployment.market
        tree = WhitelistTree([buyer.address, outsider.address, controller.address])
        chain.transact(controller.address, market.set_whitelist_root, tree.root)

        assert market.verify_whitelist(buyer.address, tree.get_proof(buyer.address))
        assert not market.verify_whitelist(buyer.address, tree.get_proof(outsider.address))

        multi = tree.get_multi_proof([buyer.address, controller.address])
        principals = sorted([buyer.address, controller.address], key=tree.addresses.index)
        assert market.verify_whitelist_batch(principals, multi.proof, multi.proof_flags)

    def test_membership_and_entitlement_are_separate(self, whitelisted, buyer):
        """Claiming ends entitlement but not membership."""
        market = whitelisted.market
        _claim(whitelisted, buyer, 7)
        assert market.verify_whitelist(buyer.address, [])
        assert market.has_user_claimed(buyer.address)
        assert not market.is_entitled(buyer.address)

    def test_rotation_invalidates_old_proofs(self, whitelisted, controller, buyer):
        """A new root invalidates proofs for the old one."""
        chain, market = whitelisted.chain, whitelisted.market
        chain.transact(controller.address, market.set_whitelist_root, hash_leaf(controller.address))
        assert not market.verify_whitelist(buyer.address, [])
        with pytest.raises(InvalidProofError):
            _claim(whitelisted, buyer, 7)


class TestClaim:
    """Discounted claims."""

    def test_claim_pays_half(self, whitelisted, buyer, seller):
        """A claim pays half price and moves the asset."""
        chain, token, registry, market = (
            whitelisted.chain, whitelisted.token, whitelisted.registry, whitelisted.market,
        )
        results = _claim(whitelisted, buyer, 7)
        assert results[-1] == 50
        assert registry.owner_of(7) == buyer.address
        assert token.balance_of(buyer.address) == 950
        assert token.balance_of(seller.address) == 50
        assert market.get_listing(7).active is False

        names = [e.name for e in chain.receipts[-1].events if e.emitter == market.address]
        assert names == [
            EventName.AUTHORIZATION_RECORDED.value,
            EventName.CLAIMED.value,
            EventName.SOLD.value,
        ]

    def test_authorization_recorded(self, whitelisted, buyer):
        """The forwarded permit is recorded."""
        market = whitelisted.market
        _claim(whitelisted, buyer, 7)
        record = market.last_authorization
        assert record.owner == buyer.address
        assert record.spender == market.address
        assert record.value == 50

    def test_non_member_rejected(self, whitelisted, outsider):
        """Non-members fail with InvalidProofError."""
        with pytest.raises(InvalidProofError):
            _claim(whitelisted, outsider, 7)
        assert whitelisted.market.get_listing(7).active

    def test_unlisted_asset(self, whitelisted, buyer):
        """Claiming an unlisted asset fails and records nothing."""
        with pytest.raises(NotListedError):
            _claim(whitelisted, buyer, 8, value=50)
        assert not whitelisted.market.has_user_claimed(buyer.address)

    def test_allowance_too_low(self, whitelisted, buyer):
        """An allowance below the discounted price is rejected."""
        with pytest.raises(InsufficientAuthorizationError):
            _claim(whitelisted, buyer, 7, value=49)

    def test_one_claim_per_principal(self, whitelisted, controller, seller, buyer):
        """A second claim fails even for another asset."""
        chain, registry, market = whitelisted.chain, whitelisted.registry, whitelisted.market
        _claim(whitelisted, buyer, 7)

        chain.transact(controller.address, registry.mint, seller.address, 8)
        chain.transact(seller.address, market.list_nft, 8, 100)
        with pytest.raises(AlreadyClaimedError):
            _claim(whitelisted, buyer, 8)
        assert market.get_listing(8).active

    def test_root_version_pin(self, whitelisted, buyer):
        """A pinned root version must be current."""
        with pytest.raises(RootVersionMismatchError):
            _claim(whitelisted, buyer, 7, root_version=0)
        results = _claim(whitelisted, buyer, 7, root_version=1)
        assert results[-1] == 50

    def test_seller_sold_elsewhere(self, whitelisted, seller, outsider, buyer):
        """A seller who no longer owns the asset makes the listing stale."""
        chain, registry = whitelisted.chain, whitelisted.registry
        chain.transact(seller.address, registry.transfer_from, seller.address, outsider.address, 7)
        with pytest.raises(StaleOwnershipError):
            _claim(whitelisted, buyer, 7)

    def test_approval_revoked(self, whitelisted, seller, buyer):
        """A revoked market approval makes the listing stale."""
        chain, registry, market = whitelisted.chain, whitelisted.registry, whitelisted.market
        chain.transact(seller.address, registry.set_approval_for_all, market.address, False)
        with pytest.raises(StaleOwnershipError):
            _claim(whitelisted, buyer, 7)
        assert not market.has_user_claimed(buyer.address)


class TestBuy:
    """Full-price purchases."""

    def test_full_price_sale(self, listed, outsider, seller):
        """Anyone can buy at full price without using a claim."""
        chain, token, registry, market = listed.chain, listed.token, listed.registry, listed.market
        chain.transact(outsider.address, token.approve, market.address, 100)
        assert chain.transact(outsider.address, market.buy_nft, 7) == 100
        assert registry.owner_of(7) == outsider.address
        assert token.balance_of(seller.address) == 100
        assert not market.has_user_claimed(outsider.address)

    def test_needs_full_allowance(self, listed, outsider):
        """Buying needs an allowance for the full price."""
        chain, token, market = listed.chain, listed.token, listed.market
        chain.transact(outsider.address, token.approve, market.address, 99)
        with pytest.raises(InsufficientAuthorizationError):
            chain.transact(outsider.address, market.buy_nft, 7)

    def test_sold_asset_not_for_sale(self, listed, outsider, buyer):
        """A sold asset is no longer listed."""
        chain, token, market = listed.chain, listed.token, listed.market
        chain.transact(outsider.address, token.approve, market.address, 100)
        chain.transact(outsider.address, market.buy_nft, 7)
        chain.transact(buyer.address, token.approve, market.address, 100)
        with pytest.raises(NotListedError):
            chain.transact(buyer.address, market.buy_nft, 7)


class _Receiver(Contract):
    """Contract principal that tries to buy the asset again on receipt."""

    __storage__ = ("attempts",)

    def __init__(self, chain, market):
        super().__init__(chain, "receiver")
        self.market = market
        self.attempts = []

    def on_asset_received(self, operator, from_, asset_id):
        try:
            self._call(self.market.buy_nft, asset_id)
            self.attempts.append("bought")
        except NotListedError:
            self.attempts.append("not_listed")


class TestReentrancy:
    """Callbacks during asset transfer."""

    def test_callback_sees_settled_state(self, listed, controller):
        """A receiver hook finds the listing already closed."""
        chain, token, market = listed.chain, listed.token, listed.market
        receiver = _Receiver(chain, market)
        chain.transact(controller.address, token.mint, receiver.address, 1_000)
        chain.transact(receiver.address, token.approve, market.address, 1_000)
        chain.transact(controller.address, market.set_whitelist_root, hash_leaf(receiver.address))

        assert chain.transact(receiver.address, market.claim_nft, 7, []) == 50
        assert receiver.attempts == ["not_listed"]
        assert token.balance_of(receiver.address) == 950
        assert market.has_user_claimed(receiver.address)
