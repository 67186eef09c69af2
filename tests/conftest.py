"""
Shared fixtures: a deployed market with a seller (B), a whitelisted buyer
(A), an outsider (D), asset 7 minted to B and approved for the market.
"""

import pytest

from airdropmarket.core.accounts import Account
from airdropmarket.core.batch import Call
from airdropmarket.core.settings import ChainSettings, MarketSettings
from airdropmarket.market.deployment import deploy
from airdropmarket.merkle.proof import hash_leaf

GENESIS = 1_700_000_000


@pytest.fixture
def settings():
    return MarketSettings(chain=ChainSettings(genesis_timestamp=GENESIS))


@pytest.fixture
def controller():
    return Account.generate()


@pytest.fixture
def seller():
    return Account.generate()


@pytest.fixture
def buyer():
    return Account.generate()


@pytest.fixture
def outsider():
    return Account.generate()


@pytest.fixture
def deployment(settings, controller):
    return deploy(controller.address, settings=settings)


@pytest.fixture
def chain(deployment):
    return deployment.chain


@pytest.fixture
def token(deployment):
    return deployment.token


@pytest.fixture
def registry(deployment):
    return deployment.registry


@pytest.fixture
def market(deployment):
    return deployment.market


@pytest.fixture
def funded(deployment, controller, seller, buyer, outsider):
    """Buyer and outsider hold 1000 units; seller owns asset 7 and approved the market."""
    chain, token, registry, market = (
        deployment.chain, deployment.token, deployment.registry, deployment.market,
    )
    chain.transact(controller.address, token.mint, buyer.address, 1_000)
    chain.transact(controller.address, token.mint, outsider.address, 1_000)
    chain.transact(controller.address, registry.mint, seller.address, 7)
    chain.transact(seller.address, registry.set_approval_for_all, market.address, True)
    return deployment


@pytest.fixture
def listed(funded, seller):
    """Asset 7 listed by the seller at 100."""
    funded.chain.transact(seller.address, funded.market.list_nft, 7, 100)
    return funded


@pytest.fixture
def whitelisted(listed, controller, buyer):
    """Single-leaf whitelist {buyer}: root == leaf, proof is empty."""
    listed.chain.transact(controller.address, listed.market.set_whitelist_root, hash_leaf(buyer.address))
    return listed


def permit_call(deployment, account, value, deadline=None):
    """Call that authorizes the market to pull ``value`` from ``account``."""
    chain, token, market = deployment.chain, deployment.token, deployment.market
    if deadline is None:
        deadline = chain.timestamp + 3600
    signature = account.sign_permit(token, market.address, value, deadline)
    return Call(
        "authorize_payment",
        (account.address, market.address, value, deadline, signature),
    )


def claim_call(asset_id, proof=(), **kwargs):
    return Call("claim_nft", (asset_id, list(proof)), kwargs)
