from .enums import BatchMode, ErrorCode, EventName
from .errors import (
    AlreadyClaimedError,
    AlreadyListedError,
    ArrayLengthMismatchError,
    AuthorizationError,
    CallFailedError,
    ExecutionError,
    InsufficientAllowanceError,
    InsufficientAuthorizationError,
    InsufficientBalanceError,
    InvalidAddressError,
    InvalidHashError,
    InvalidCallError,
    InvalidPriceError,
    InvalidProofError,
    InvalidSignatureError,
    MarketError,
    NonexistentAssetError,
    NotListedError,
    NotOwnerNorApprovedError,
    OutOfGasError,
    PermitExpiredError,
    RootVersionMismatchError,
    StaleOwnershipError,
    StateConflictError,
    TokenError,
    UnauthorizedError,
    ValidationError,
)
from .models import (
    ZERO_ADDRESS,
    Event,
    Listing,
    PaymentAuthorization,
    PermitSignature,
    normalize_address,
)

__all__ = [
    "BatchMode",
    "ErrorCode",
    "EventName",
    "MarketError",
    "ValidationError",
    "AuthorizationError",
    "StateConflictError",
    "ExecutionError",
    "TokenError",
    "InvalidProofError",
    "InvalidPriceError",
    "InvalidAddressError",
    "InvalidHashError",
    "ArrayLengthMismatchError",
    "InvalidCallError",
    "UnauthorizedError",
    "InsufficientAuthorizationError",
    "AlreadyClaimedError",
    "NotListedError",
    "AlreadyListedError",
    "StaleOwnershipError",
    "RootVersionMismatchError",
    "OutOfGasError",
    "CallFailedError",
    "InvalidSignatureError",
    "PermitExpiredError",
    "InsufficientBalanceError",
    "InsufficientAllowanceError",
    "NonexistentAssetError",
    "NotOwnerNorApprovedError",
    "ZERO_ADDRESS",
    "Event",
    "Listing",
    "PaymentAuthorization",
    "PermitSignature",
    "normalize_address",
]
