from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from airdropmarket.core.chain import Chain
from airdropmarket.core.settings import MarketSettings
from airdropmarket.merkle.proof import ZERO_HASH
from airdropmarket.protocol.models import normalize_address
from airdropmarket.tokens.payment import PaymentToken
from airdropmarket.tokens.registry import AssetRegistry

from .claim_market import ClaimMarket


@dataclass
class Deployment:
    """A chain with a payment token, an asset registry and a market wired together."""
    chain: Chain
    token: PaymentToken
    registry: AssetRegistry
    market: ClaimMarket
    controller: str


def deploy(
    controller: str,
    chain: Optional[Chain] = None,
    settings: Optional[MarketSettings] = None,
    whitelist_root: str = ZERO_HASH,
) -> Deployment:
    """
    Deploy the three contracts onto ``chain`` (a fresh one by default).

    ``controller`` controls the market and is the minter of both the
    payment token and the asset registry.
    """
    controller = normalize_address(controller)
    chain = chain or Chain(settings)
    token = PaymentToken(chain, minter=controller)
    registry = AssetRegistry(chain, minter=controller)
    market = ClaimMarket(chain, token, registry, controller, whitelist_root=whitelist_root)
    return Deployment(
        chain=chain,
        token=token,
        registry=registry,
        market=market,
        controller=controller,
    )
