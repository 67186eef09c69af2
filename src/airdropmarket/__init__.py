from .core.accounts import Account
from .core.batch import Call, encode_call
from .core.chain import Chain
from .core.settings import MarketSettings, get_settings
from .market import ClaimMarket, Deployment, deploy
from .merkle import MultiProof, WhitelistTree
from .protocol import ErrorCode, Listing, MarketError
from .tokens import AssetRegistry, PaymentToken

__all__ = [
    "Account",
    "Call",
    "encode_call",
    "Chain",
    "MarketSettings",
    "get_settings",
    "ClaimMarket",
    "Deployment",
    "deploy",
    "MultiProof",
    "WhitelistTree",
    "ErrorCode",
    "Listing",
    "MarketError",
    "AssetRegistry",
    "PaymentToken",
]
