"""
Exceptions for the Lockdrop SDK.
"""
from enum import Enum
from typing import Optional


class ClaimErrorCode(str, Enum):
    """
    Rejection codes reported by the destination chain for claim transactions.
    """
    UNKNOWN_UNSPECIFIED = "UNKNOWN_UNSPECIFIED"
    ALREADY_REQUESTED = "ALREADY_REQUESTED"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    NOT_APPROVED = "NOT_APPROVED"
    INVALID_NONCE = "INVALID_NONCE"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class LockdropError(Exception):
    """Base exception for all Lockdrop SDK errors."""
    pass


class InvalidParameterError(LockdropError, ValueError):
    """Raised when a lock parameter is malformed (empty hash, bad key length...)."""
    pass


class SourceUnavailableError(LockdropError):
    """Raised when the source chain cannot be reached or returns garbage."""
    pass


class TransactionError(LockdropError):
    """Raised when a destination chain transaction fails or is rejected."""

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.error_code = error_code or ClaimErrorCode.UNKNOWN_UNSPECIFIED.value
        super().__init__(message)


class AlreadyRequestedError(LockdropError):
    """Raised when a claim request already exists (or is in flight) for an ID."""
    pass


class InvalidAddressError(LockdropError, ValueError):
    """Raised when a recipient address fails SS58 validation."""
    pass


class ClaimRequirementNotMetError(LockdropError):
    """Raised when a claim is submitted before it is eligible."""
    pass


class NonceSearchError(LockdropError):
    """Raised when the proof-of-work nonce search is exhausted or cancelled."""
    pass
