from .accounts import Account, address_from_public_key, verify_signature
from .batch import Call, CallBatcher, encode_call
from .chain import (
    Chain,
    NoActiveCallError,
    TransactionInProgressError,
    TransactionReceipt,
)
from .contract import Contract
from .gas import GasMeter
from .settings import MarketSettings, get_settings

__all__ = [
    "Account",
    "address_from_public_key",
    "verify_signature",
    "Call",
    "CallBatcher",
    "encode_call",
    "Chain",
    "NoActiveCallError",
    "TransactionInProgressError",
    "TransactionReceipt",
    "Contract",
    "GasMeter",
    "MarketSettings",
    "get_settings",
]
