"""
ClaimProtocolDriver - drives the two-phase lockdrop claim protocol.

1. request: prove work over the claim ID and submit the claim request
2. claim: once authorities approved the request, pay out the reward,
   either directly or to a delegated address authorized by a signature
"""
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Set, Union

from .claim_id import derive_claim_id
from .connectors import ClaimSigner, DestinationChainConnector
from .eligibility import can_submit_claim, derive_phase
from .exceptions import (
    AlreadyRequestedError, ClaimErrorCode, ClaimRequirementNotMetError,
    InvalidAddressError, InvalidParameterError, LockdropError, TransactionError
)
from .models import ClaimPhase, ClaimSnapshot, LockParam
from .pow import DEFAULT_DIFFICULTY, DEFAULT_MAX_ATTEMPTS, claim_pow_nonce
from .reconciler import ClaimStateReconciler
from .ss58 import PLASM_SS58_FORMAT, check_address, default_address, same_account
from .utils import hex_to_bytes

logger = logging.getLogger(__name__)

SignFunction = Callable[[bytes, str], str]


@dataclass(frozen=True)
class DirectRecipient:
    """Pay the reward to the locker's default address"""


@dataclass(frozen=True)
class DelegatedRecipient:
    """Pay the reward to another address, authorized by the locker's signature"""
    address: str


ClaimRecipient = Union[DirectRecipient, DelegatedRecipient]


def choose_recipient(
    address: Optional[str],
    public_key: Union[str, bytes],
    ss58_format: int = PLASM_SS58_FORMAT
) -> ClaimRecipient:
    """
    Decide once whether a claim is direct or delegated.

    Addresses are compared by decoded account ID, so different spellings of
    the default address still select the direct claim.

    Raises:
        InvalidAddressError: If a non-default address fails validation
    """
    if not address:
        return DirectRecipient()
    if same_account(address, default_address(public_key, ss58_format)):
        return DirectRecipient()
    valid, reason = check_address(address, ss58_format)
    if not valid:
        raise InvalidAddressError(f"Address check error: {reason}")
    return DelegatedRecipient(address)


@dataclass(frozen=True)
class _Marker:
    phase: ClaimPhase
    tick: int


class ClaimProtocolDriver:
    """
    Submits claim requests and claims for tracked locks.

    The driver never waits for confirmation; it marks a claim REQUESTED or
    CLAIMING locally and lets the reconciler's next snapshots move it on.
    """

    def __init__(
        self,
        connector: DestinationChainConnector,
        reconciler: ClaimStateReconciler,
        ss58_format: int = PLASM_SS58_FORMAT,
        pow_difficulty: int = DEFAULT_DIFFICULTY,
        pow_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        pow_timeout: Optional[float] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the driver.

        Args:
            connector: Destination chain connector used for submissions
            reconciler: Source of the latest claim snapshot
            ss58_format: Network prefix of the destination chain
            pow_difficulty: Leading zero bytes required by the request proof-of-work
            pow_max_attempts: Upper bound on nonce search attempts
            pow_timeout: Optional nonce search time limit in seconds
            logger: Optional logger instance
        """
        self.connector = connector
        self.reconciler = reconciler
        self.ss58_format = ss58_format
        self.pow_difficulty = pow_difficulty
        self.pow_max_attempts = pow_max_attempts
        self.pow_timeout = pow_timeout
        self.logger = logger or logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._params: Dict[bytes, LockParam] = {}
        self._markers: Dict[bytes, _Marker] = {}
        self._in_flight: Set[bytes] = set()
        self._cancel = threading.Event()

        self.reconciler.subscribe(self._on_snapshot)

    def track(self, param: LockParam) -> bytes:
        """
        Register lock parameters and return their claim ID.

        Raises:
            InvalidParameterError: If the parameters are malformed
        """
        claim_id = derive_claim_id(param)
        with self._lock:
            self._params[claim_id] = param
        return claim_id

    @property
    def claim_ids(self) -> Set[bytes]:
        with self._lock:
            return set(self._params)

    def param_for(self, claim_id: bytes) -> Optional[LockParam]:
        with self._lock:
            return self._params.get(bytes(claim_id))

    def phase(self, claim_id: bytes) -> ClaimPhase:
        """Current protocol phase of a claim"""
        claim_id = bytes(claim_id)
        snapshot = self.reconciler.snapshot
        claim = snapshot.claims.get(claim_id)
        with self._lock:
            marker = self._markers.get(claim_id)

        derived = derive_phase(claim, snapshot.vote_requirement)
        if marker is None or self._marker_resolved(marker, claim_id, snapshot):
            return derived
        return marker.phase

    @staticmethod
    def _marker_resolved(marker: _Marker, claim_id: bytes, snapshot: ClaimSnapshot) -> bool:
        claim = snapshot.claims.get(claim_id)
        if marker.phase == ClaimPhase.REQUESTED:
            return claim is not None and snapshot.tick > marker.tick
        return claim is not None and claim.complete

    def _on_snapshot(self, snapshot: ClaimSnapshot) -> None:
        with self._lock:
            resolved = [
                claim_id for claim_id, marker in self._markers.items()
                if self._marker_resolved(marker, claim_id, snapshot)
            ]
            for claim_id in resolved:
                del self._markers[claim_id]

    def _begin(self, claim_id: bytes, error_cls) -> None:
        with self._lock:
            if claim_id in self._in_flight:
                raise error_cls(f"A submission for claim 0x{claim_id.hex()} is already in flight")
            self._in_flight.add(claim_id)

    def _end(self, claim_id: bytes) -> None:
        with self._lock:
            self._in_flight.discard(claim_id)

    def _mark(self, claim_id: bytes, phase: ClaimPhase) -> None:
        with self._lock:
            self._markers[claim_id] = _Marker(phase, self.reconciler.snapshot.tick)

    def clear_pending(self, claim_id: bytes) -> None:
        """Drop the local REQUESTED/CLAIMING marker, e.g. after a dropped transaction"""
        with self._lock:
            self._markers.pop(bytes(claim_id), None)

    def submit_request(self, param: LockParam) -> str:
        """
        Request a claim for a lock.

        Args:
            param: Lock parameters

        Returns:
            Transaction hash of the request

        Raises:
            InvalidParameterError: If the parameters are malformed
            AlreadyRequestedError: If the chain already has this request,
                or a submission for the same claim is in flight
            NonceSearchError: If no proof-of-work nonce was found in bounds
            TransactionError: If the request could not be submitted
        """
        claim_id = self.track(param)
        self._begin(claim_id, AlreadyRequestedError)
        try:
            nonce = claim_pow_nonce(
                claim_id,
                difficulty=self.pow_difficulty,
                max_attempts=self.pow_max_attempts,
                timeout=self.pow_timeout,
                cancel=self._cancel,
            )
            try:
                tx_hash = self.connector.submit_request(param, nonce)
            except TransactionError as e:
                if e.error_code == ClaimErrorCode.ALREADY_REQUESTED.value:
                    raise AlreadyRequestedError(
                        f"Claim 0x{claim_id.hex()} was already requested"
                    ) from e
                raise
            except LockdropError:
                raise
            except Exception as e:
                self.logger.error(f"Failed to send claim request: {e}")
                raise TransactionError(f"Failed to send claim request: {str(e)}") from e

            self._mark(claim_id, ClaimPhase.REQUESTED)
            self.logger.info("Claim ID: 0x%s request transaction: %s", claim_id.hex(), tx_hash)
            return tx_hash
        finally:
            self._end(claim_id)

    def submit_claim(
        self,
        claim_id: bytes,
        recipient: Union[str, ClaimRecipient, None],
        sign: Union[ClaimSigner, SignFunction, None] = None
    ) -> str:
        """
        Claim the reward of an approved request.

        Args:
            claim_id: Claim ID to pay out
            recipient: Address string, or a DirectRecipient / DelegatedRecipient
            sign: Signing capability, required for delegated claims

        Returns:
            Transaction hash of the claim

        Raises:
            ClaimRequirementNotMetError: If the latest snapshot does not allow a claim,
                or a claim transaction for it is still unconfirmed
            InvalidParameterError: If the claim is unknown or a signer is missing
            InvalidAddressError: If the delegated address is invalid
            TransactionError: If signing or submission failed
        """
        claim_id = bytes(claim_id)
        snapshot = self.reconciler.snapshot
        claim = snapshot.claims.get(claim_id)
        req = snapshot.vote_requirement
        if req is None or not can_submit_claim(claim, req):
            raise ClaimRequirementNotMetError("Claim requirement was not met")
        with self._lock:
            marker = self._markers.get(claim_id)
        if (marker is not None and marker.phase == ClaimPhase.CLAIMING
                and not self._marker_resolved(marker, claim_id, snapshot)):
            raise ClaimRequirementNotMetError(
                f"Claim 0x{claim_id.hex()} was already sent and is waiting for confirmation"
            )

        if not isinstance(recipient, (DirectRecipient, DelegatedRecipient)):
            param = self.param_for(claim_id)
            if param is None:
                raise InvalidParameterError(
                    f"Unknown claim 0x{claim_id.hex()}, track its lock parameters first"
                )
            recipient = choose_recipient(recipient, param.public_key, self.ss58_format)
        elif isinstance(recipient, DelegatedRecipient):
            valid, reason = check_address(recipient.address, self.ss58_format)
            if not valid:
                raise InvalidAddressError(f"Address check error: {reason}")

        if isinstance(recipient, DelegatedRecipient) and sign is None:
            raise InvalidParameterError("A signer is required to claim to a delegated address")

        self._begin(claim_id, ClaimRequirementNotMetError)
        try:
            try:
                if isinstance(recipient, DelegatedRecipient):
                    self.logger.debug("Using claim_to for claim 0x%s", claim_id.hex())
                    signature = self._sign(sign, claim_id, recipient.address)
                    tx_hash = self.connector.submit_claim_to(claim_id, recipient.address, signature)
                else:
                    self.logger.debug("Using claim for claim 0x%s", claim_id.hex())
                    tx_hash = self.connector.submit_claim(claim_id)
            except LockdropError:
                raise
            except Exception as e:
                self.logger.error(f"Failed to send claim transaction: {e}")
                raise TransactionError(f"Failed to send claim transaction: {str(e)}") from e

            self._mark(claim_id, ClaimPhase.CLAIMING)
            self.logger.info("Claim 0x%s transaction: %s", claim_id.hex(), tx_hash)
            return tx_hash
        finally:
            self._end(claim_id)

    def _sign(self, sign: Union[ClaimSigner, SignFunction], claim_id: bytes, address: str) -> bytes:
        sign_fn = sign.sign if hasattr(sign, "sign") else sign
        try:
            signature = hex_to_bytes(sign_fn(claim_id, address))
        except Exception as e:
            self.logger.error(f"claim_to signing failed: {e}")
            raise TransactionError(f"Failed to sign claim_to authorization: {str(e)}") from e
        if not signature:
            raise TransactionError("Signer returned an empty signature")
        return signature

    def cancel(self) -> None:
        """Abort running nonce searches"""
        self._cancel.set()
