"""
Tests for the payment token and its signature-based allowances.
"""

import pytest

from airdropmarket.protocol.enums import EventName
from airdropmarket.protocol.errors import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidSignatureError,
    PermitExpiredError,
    UnauthorizedError,
    ValidationError,
)
from airdropmarket.protocol.models import PermitSignature


class TestMintAndTransfer:
    """Minting and transfers."""

    def test_mint_is_minter_only(self, chain, token, buyer):
        """Only the minter may mint."""
        with pytest.raises(UnauthorizedError):
            chain.transact(buyer.address, token.mint, buyer.address, 10)

    def test_balances_after_funding(self, funded, buyer, outsider):
        """Funding credits balances and supply."""
        assert funded.token.balance_of(buyer.address) == 1_000
        assert funded.token.total_supply == 2_000

    def test_transfer_moves_balance(self, funded, buyer, seller):
        """transfer moves balance between holders."""
        chain, token = funded.chain, funded.token
        chain.transact(buyer.address, token.transfer, seller.address, 300)
        assert token.balance_of(buyer.address) == 700
        assert token.balance_of(seller.address) == 300

    def test_transfer_from_spends_allowance(self, funded, buyer, seller, outsider):
        """transfer_from spends the caller's allowance."""
        chain, token = funded.chain, funded.token
        chain.transact(buyer.address, token.approve, outsider.address, 100)
        chain.transact(outsider.address, token.transfer_from, buyer.address, seller.address, 60)
        assert token.allowance(buyer.address, outsider.address) == 40
        assert token.balance_of(seller.address) == 60

    def test_transfer_from_without_allowance(self, funded, buyer, seller, outsider):
        """transfer_from without allowance fails."""
        with pytest.raises(InsufficientAllowanceError):
            funded.chain.transact(
                outsider.address, funded.token.transfer_from, buyer.address, seller.address, 1,
            )

    def test_transfer_from_beyond_balance(self, funded, buyer, seller, outsider):
        """transfer_from beyond balance fails and keeps the allowance."""
        chain, token = funded.chain, funded.token
        chain.transact(buyer.address, token.approve, outsider.address, 5_000)
        with pytest.raises(InsufficientBalanceError):
            chain.transact(outsider.address, token.transfer_from, buyer.address, seller.address, 2_000)
        assert token.allowance(buyer.address, outsider.address) == 5_000


class TestPermit:
    """Signature-based allowances."""

    def _deadline(self, chain):
        return chain.timestamp + 600

    def test_permit_sets_allowance_and_consumes_nonce(self, funded, buyer, outsider):
        """A valid permit sets the allowance and bumps the nonce."""
        chain, token = funded.chain, funded.token
        deadline = self._deadline(chain)
        signature = buyer.sign_permit(token, outsider.address, 500, deadline)

        # Anyone may submit the owner's signature.
        chain.transact(outsider.address, token.permit, buyer.address, outsider.address, 500, deadline, signature)

        assert token.allowance(buyer.address, outsider.address) == 500
        assert token.nonces(buyer.address) == 1
        assert chain.get_events(EventName.APPROVAL.value, token.address)[-1].args["amount"] == 500

    def test_signature_as_dict(self, funded, buyer, outsider):
        """Signatures may be passed as dicts."""
        chain, token = funded.chain, funded.token
        deadline = self._deadline(chain)
        signature = buyer.sign_permit(token, outsider.address, 5, deadline).to_dict()
        chain.transact(buyer.address, token.permit, buyer.address, outsider.address, 5, deadline, signature)
        assert token.allowance(buyer.address, outsider.address) == 5

    def test_deadline_is_inclusive(self, funded, buyer, outsider):
        """A permit is valid at its deadline."""
        chain, token = funded.chain, funded.token
        deadline = chain.timestamp
        signature = buyer.sign_permit(token, outsider.address, 1, deadline)
        chain.transact(buyer.address, token.permit, buyer.address, outsider.address, 1, deadline, signature)
        assert token.allowance(buyer.address, outsider.address) == 1

    def test_expired(self, funded, buyer, outsider):
        """A permit past its deadline fails."""
        chain, token = funded.chain, funded.token
        deadline = chain.timestamp + 10
        signature = buyer.sign_permit(token, outsider.address, 1, deadline)
        chain.advance_time(11)
        with pytest.raises(PermitExpiredError):
            chain.transact(buyer.address, token.permit, buyer.address, outsider.address, 1, deadline, signature)
        assert token.nonces(buyer.address) == 0

    def test_signer_must_be_owner(self, funded, buyer, outsider):
        """Only the owner's key can sign."""
        chain, token = funded.chain, funded.token
        deadline = self._deadline(chain)
        forged = outsider.sign_permit(token, outsider.address, 1, deadline)
        with pytest.raises(InvalidSignatureError):
            chain.transact(outsider.address, token.permit, buyer.address, outsider.address, 1, deadline, forged)

    def test_tampered_value(self, funded, buyer, outsider):
        """Changing the value invalidates the signature."""
        chain, token = funded.chain, funded.token
        deadline = self._deadline(chain)
        signature = buyer.sign_permit(token, outsider.address, 1, deadline)
        with pytest.raises(InvalidSignatureError):
            chain.transact(outsider.address, token.permit, buyer.address, outsider.address, 999, deadline, signature)

    def test_replay_rejected(self, funded, buyer, outsider):
        """A permit cannot be replayed."""
        chain, token = funded.chain, funded.token
        deadline = self._deadline(chain)
        signature = buyer.sign_permit(token, outsider.address, 1, deadline)
        args = (buyer.address, outsider.address, 1, deadline, signature)
        chain.transact(outsider.address, token.permit, *args)
        with pytest.raises(InvalidSignatureError):
            chain.transact(outsider.address, token.permit, *args)

    def test_malformed_signature(self, funded, buyer, outsider):
        """Non-hex key material is an invalid signature."""
        chain, token = funded.chain, funded.token
        junk = PermitSignature(public_key="zz", signature="zz")
        with pytest.raises(InvalidSignatureError):
            chain.transact(outsider.address, token.permit, buyer.address, outsider.address, 1, chain.timestamp, junk)

    def test_signature_fields_must_be_strings(self, funded, buyer, outsider):
        """Non-string key material is an invalid signature, not a crash."""
        chain, token = funded.chain, funded.token
        junk = {"publicKey": 1, "signature": 2}
        with pytest.raises(InvalidSignatureError):
            chain.transact(outsider.address, token.permit, buyer.address, outsider.address, 1, chain.timestamp, junk)

    @pytest.mark.parametrize("value", ["50", True, -1])
    def test_value_must_be_integer(self, funded, buyer, outsider, value):
        """Permit amounts must be plain non-negative integers."""
        chain, token = funded.chain, funded.token
        deadline = self._deadline(chain)
        signature = buyer.sign_permit(token, outsider.address, 50, deadline)
        with pytest.raises(ValidationError):
            chain.transact(outsider.address, token.permit, buyer.address, outsider.address, value, deadline, signature)
