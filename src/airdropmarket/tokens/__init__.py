from .payment import PERMIT_TYPE, PaymentToken
from .registry import AssetRegistry

__all__ = ["PERMIT_TYPE", "PaymentToken", "AssetRegistry"]
