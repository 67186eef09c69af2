from enum import Enum


class ErrorCode(str, Enum):
    # Validation
    INVALID_PROOF = "invalid_proof"
    INVALID_PRICE = "invalid_price"
    INVALID_ADDRESS = "invalid_address"
    INVALID_HASH = "invalid_hash"
    ARRAY_LENGTH_MISMATCH = "array_length_mismatch"
    INVALID_CALL = "invalid_call"

    # Authorization
    UNAUTHORIZED = "unauthorized"
    INSUFFICIENT_AUTHORIZATION = "insufficient_authorization"

    # State conflict
    ALREADY_CLAIMED = "already_claimed"
    NOT_LISTED = "not_listed"
    ALREADY_LISTED = "already_listed"
    STALE_OWNERSHIP = "stale_ownership"
    ROOT_VERSION_MISMATCH = "root_version_mismatch"

    # Composition / execution
    CALL_FAILED = "call_failed"
    OUT_OF_GAS = "out_of_gas"

    # Collaborators
    INVALID_SIGNATURE = "invalid_signature"
    PERMIT_EXPIRED = "permit_expired"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INSUFFICIENT_ALLOWANCE = "insufficient_allowance"
    NONEXISTENT_ASSET = "nonexistent_asset"
    NOT_OWNER_NOR_APPROVED = "not_owner_nor_approved"

    INTERNAL_ERROR = "internal_error"


class EventName(str, Enum):
    ROOT_UPDATED = "RootUpdated"
    CONTROL_TRANSFERRED = "ControlTransferred"
    LISTED = "Listed"
    DELISTED = "Delisted"
    AUTHORIZATION_RECORDED = "AuthorizationRecorded"
    CLAIMED = "Claimed"
    SOLD = "Sold"

    TRANSFER = "Transfer"
    APPROVAL = "Approval"
    APPROVAL_FOR_ALL = "ApprovalForAll"


class BatchMode(str, Enum):
    ATOMIC = "atomic"
    BEST_EFFORT = "best_effort"
    GAS_CAPPED = "gas_capped"
