from typing import Any, Dict, Optional

from .enums import ErrorCode


class MarketError(Exception):
    """
    Base class for every rejection raised by the ledger and its contracts.

    ``reason`` is the revert reason handed back to callers. Errors that
    carry no reason (``reason=None``) are the ones a batch cannot decode,
    such as running out of gas.
    """

    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message or "")
        self.reason = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": str(self),
            "details": self.details,
        }


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class ValidationError(MarketError):
    """Raised when call arguments are malformed or inconsistent."""


class AuthorizationError(MarketError):
    """Raised when the caller lacks a permission or an allowance."""


class StateConflictError(MarketError):
    """Raised when the current state forbids the requested transition."""


class ExecutionError(MarketError):
    """Raised by the execution layer itself (batching, gas)."""


class TokenError(MarketError):
    """Raised by the payment token and the asset registry."""


# ---------------------------------------------------------------------------
# Market errors
# ---------------------------------------------------------------------------


class InvalidProofError(ValidationError):
    default_code = ErrorCode.INVALID_PROOF


class InvalidPriceError(ValidationError):
    default_code = ErrorCode.INVALID_PRICE


class InvalidAddressError(ValidationError):
    default_code = ErrorCode.INVALID_ADDRESS


class InvalidHashError(ValidationError):
    default_code = ErrorCode.INVALID_HASH


class ArrayLengthMismatchError(ValidationError):
    default_code = ErrorCode.ARRAY_LENGTH_MISMATCH


class InvalidCallError(ValidationError):
    """Raised when a batched command names no batchable method or cannot bind its arguments."""

    default_code = ErrorCode.INVALID_CALL


class UnauthorizedError(AuthorizationError):
    default_code = ErrorCode.UNAUTHORIZED


class InsufficientAuthorizationError(AuthorizationError):
    default_code = ErrorCode.INSUFFICIENT_AUTHORIZATION


class AlreadyClaimedError(StateConflictError):
    default_code = ErrorCode.ALREADY_CLAIMED


class NotListedError(StateConflictError):
    default_code = ErrorCode.NOT_LISTED


class AlreadyListedError(StateConflictError):
    default_code = ErrorCode.ALREADY_LISTED


class StaleOwnershipError(StateConflictError):
    """Listed seller no longer owns the asset, or the market lost its transfer approval."""

    default_code = ErrorCode.STALE_OWNERSHIP


class RootVersionMismatchError(StateConflictError):
    default_code = ErrorCode.ROOT_VERSION_MISMATCH


# ---------------------------------------------------------------------------
# Execution errors
# ---------------------------------------------------------------------------


class OutOfGasError(ExecutionError):
    """
    Raised when a gas meter is exhausted.

    Carries no revert reason, mirroring an exhausted call frame that
    returns empty data.
    """

    default_code = ErrorCode.OUT_OF_GAS

    def __init__(self, limit: int, requested: int):
        super().__init__(None, details={"limit": limit, "requested": requested})
        self.limit = limit
        self.requested = requested

    def __str__(self) -> str:
        return f"out of gas (limit={self.limit}, requested={self.requested})"


class CallFailedError(ExecutionError):
    """Generic failure for a batched call that reverted without a decodable reason."""

    default_code = ErrorCode.CALL_FAILED

    def __init__(self, index: int, method: str):
        super().__init__(
            f"batched call {index} ({method}) failed without a reason",
            details={"index": index, "method": method},
        )
        self.index = index
        self.method = method


# ---------------------------------------------------------------------------
# Collaborator errors
# ---------------------------------------------------------------------------


class InvalidSignatureError(TokenError):
    default_code = ErrorCode.INVALID_SIGNATURE


class PermitExpiredError(TokenError):
    default_code = ErrorCode.PERMIT_EXPIRED


class InsufficientBalanceError(TokenError):
    default_code = ErrorCode.INSUFFICIENT_BALANCE


class InsufficientAllowanceError(TokenError):
    default_code = ErrorCode.INSUFFICIENT_ALLOWANCE


class NonexistentAssetError(TokenError):
    default_code = ErrorCode.NONEXISTENT_ASSET


class NotOwnerNorApprovedError(TokenError):
    default_code = ErrorCode.NOT_OWNER_NOR_APPROVED
