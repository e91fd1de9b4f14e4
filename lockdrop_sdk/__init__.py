"""
Lockdrop SDK - claim lockdrop rewards on a Substrate parachain.
"""
from .version import __version__
from .address_store import RecipientAddressStore
from .claim_id import derive_claim_id, encode_lock_param
from .config import NetworkConfig
from .driver import (
    ClaimProtocolDriver, DelegatedRecipient, DirectRecipient, choose_recipient
)
from .eligibility import (
    can_submit_claim, derive_phase, evaluate, has_all_votes, is_accepted, is_rejected
)
from .exceptions import (
    AlreadyRequestedError, ClaimErrorCode, ClaimRequirementNotMetError,
    InvalidAddressError, InvalidParameterError, LockdropError, NonceSearchError,
    SourceUnavailableError, TransactionError
)
from .models import (
    ChainType, Claim, ClaimPhase, ClaimSnapshot, Eligibility, LockEvent,
    LockParam, PollResult, SubmissionResult, VoteRequirement
)
from .pow import claim_pow_nonce
from .reconciler import ClaimStateReconciler
from .session import ClaimSession
from .signer import LocalClaimSigner
from .source import LockEventSource, Web3LockdropConnector, lock_param_from_event
from .storage import FileKeyValueStore, MemoryKeyValueStore

__all__ = [
    "__version__",
    "ClaimSession",
    "ClaimStateReconciler",
    "ClaimProtocolDriver",
    "RecipientAddressStore",
    "LockEventSource",
    "Web3LockdropConnector",
    "LocalClaimSigner",
    "NetworkConfig",
    "FileKeyValueStore",
    "MemoryKeyValueStore",
    "DirectRecipient",
    "DelegatedRecipient",
    "choose_recipient",
    "derive_claim_id",
    "encode_lock_param",
    "claim_pow_nonce",
    "lock_param_from_event",
    "has_all_votes",
    "is_accepted",
    "is_rejected",
    "can_submit_claim",
    "evaluate",
    "derive_phase",
    "ChainType",
    "Claim",
    "ClaimPhase",
    "ClaimSnapshot",
    "Eligibility",
    "LockEvent",
    "LockParam",
    "PollResult",
    "SubmissionResult",
    "VoteRequirement",
    "LockdropError",
    "InvalidParameterError",
    "SourceUnavailableError",
    "TransactionError",
    "AlreadyRequestedError",
    "InvalidAddressError",
    "ClaimRequirementNotMetError",
    "NonceSearchError",
    "ClaimErrorCode",
]
