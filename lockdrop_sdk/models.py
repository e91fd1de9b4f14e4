"""
Data models for the Lockdrop SDK.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import InvalidParameterError, LockdropError
from .utils import epoch_to_days, hex_to_bytes

# The default introducer address when none is given by the locker
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class ChainType(int, Enum):
    """Source chain of a lock. The value is the on-chain encoding."""
    BTC = 0
    ETH = 1


class ClaimPhase(str, Enum):
    """Phase of the claim protocol for a single claim ID"""
    NOT_REQUESTED = "not_requested"
    REQUESTED = "requested"
    VOTES_PENDING = "votes_pending"
    ELIGIBLE = "eligible"
    CLAIMING = "claiming"
    CLAIMED = "claimed"
    REJECTED = "rejected"


def _hex_or_bytes(value):
    if isinstance(value, str):
        return hex_to_bytes(value)
    return value


def _decode_hex_fields(data: dict, names) -> dict:
    # Decoded before validation so bad hex surfaces as an SDK error, not a ValidationError
    for name in names:
        value = data.get(name)
        if isinstance(value, str):
            try:
                data[name] = hex_to_bytes(value)
            except ValueError as e:
                raise InvalidParameterError(f"Invalid hex in {name}: {e}") from e
    return data


class LockEvent(BaseModel):
    """A `Locked` event read from the source chain"""
    model_config = ConfigDict(frozen=True)

    amount: int = Field(..., ge=0)
    duration: int
    lock_address: str
    introducer_address: str = ZERO_ADDRESS
    block_number: int
    transaction_hash: str

    @field_validator("introducer_address", mode="before")
    @classmethod
    def default_introducer(cls, value):
        return value or ZERO_ADDRESS

    @property
    def duration_days(self) -> float:
        """Lock duration in days"""
        return epoch_to_days(self.duration)


class LockParam(BaseModel):
    """
    Parameters that identify one lock on the destination chain.

    Byte fields accept raw bytes or hex strings with or without 0x prefix.
    """
    model_config = ConfigDict(frozen=True)

    chain_type: ChainType
    transaction_hash: bytes
    public_key: bytes
    duration: int
    value: int

    def __init__(self, **data):
        super().__init__(**_decode_hex_fields(data, ("transaction_hash", "public_key")))

    @field_validator("transaction_hash", "public_key", mode="before")
    @classmethod
    def decode_hex_bytes(cls, value):
        return _hex_or_bytes(value)


class Claim(BaseModel):
    """Snapshot of an on-chain claim record"""
    model_config = ConfigDict(frozen=True)

    id: bytes
    approve: FrozenSet[str] = frozenset()
    decline: FrozenSet[str] = frozenset()
    complete: bool = False
    amount: int = Field(0, ge=0)

    def __init__(self, **data):
        super().__init__(**_decode_hex_fields(data, ("id",)))

    @field_validator("id", mode="before")
    @classmethod
    def decode_hex_bytes(cls, value):
        return _hex_or_bytes(value)


class VoteRequirement(BaseModel):
    """Chain-wide vote configuration for lockdrop claims"""
    model_config = ConfigDict(frozen=True)

    positive_votes_needed: int = Field(..., ge=0)
    vote_threshold: int = Field(..., ge=0)


class Eligibility(BaseModel):
    """Flags derived from a claim snapshot and the vote requirement"""
    model_config = ConfigDict(frozen=True)

    exists: bool
    has_all_votes: bool
    is_accepted: bool
    can_submit_claim: bool
    is_rejected: bool


class ClaimSnapshot(BaseModel):
    """Committed reconciler state. A missing claim record maps to None."""
    model_config = ConfigDict(frozen=True)

    claims: Dict[bytes, Optional[Claim]] = Field(default_factory=dict)
    vote_requirement: Optional[VoteRequirement] = None
    balance: Optional[int] = None
    tick: int = 0
    updated_at: Optional[datetime] = None


class PollResult(BaseModel):
    """Outcome of one reconciler tick"""
    model_config = ConfigDict(frozen=True)

    tick: int
    claims: Dict[bytes, Optional[Claim]] = Field(default_factory=dict)
    failed_ids: FrozenSet[bytes] = frozenset()
    vote_requirement: Optional[VoteRequirement] = None
    balance: Optional[int] = None
    skipped: bool = False


class SubmissionResult(BaseModel):
    """Result of a claim request or claim submission"""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    claim_id: bytes
    tx_hash: Optional[str] = None
    error: Optional[LockdropError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
