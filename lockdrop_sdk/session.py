"""
ClaimSession - one user's view of their lockdrop claims.

Wires the lock event source, recipient address store, reconciler and
protocol driver together. Recoverable failures are reported through the
`on_error` callback and the returned SubmissionResult instead of raised.
"""
import logging
from typing import Callable, Dict, List, Optional, Set, Union

from .address_store import RecipientAddressStore
from .config import NetworkConfig
from .connectors import ClaimSigner, DestinationChainConnector
from .driver import ClaimProtocolDriver, ClaimRecipient
from .eligibility import evaluate
from .exceptions import (
    AlreadyRequestedError, LockdropError, NonceSearchError,
    SourceUnavailableError, TransactionError
)
from .models import (
    Claim, ClaimPhase, Eligibility, LockEvent, LockParam, PollResult, SubmissionResult
)
from .reconciler import DEFAULT_POLL_INTERVAL, ClaimStateReconciler
from .source import LockEventSource, Web3LockdropConnector, lock_param_from_event
from .ss58 import PLASM_SS58_FORMAT, compress_public_key
from .storage import FileKeyValueStore
from .utils import femto_to_plm

RECOVERABLE_ERRORS = (
    SourceUnavailableError, TransactionError, AlreadyRequestedError, NonceSearchError
)

ErrorCallback = Callable[[LockdropError], None]


class ClaimSession:
    """
    Session for a single locker public key.

    Use as a context manager, or call start() and close() explicitly:

        with ClaimSession(public_key, connector) as session:
            session.load_locks(eth_address)
            ...
    """

    def __init__(
        self,
        public_key: Union[str, bytes],
        destination: DestinationChainConnector,
        source: Optional[LockEventSource] = None,
        address_store: Optional[RecipientAddressStore] = None,
        signer: Optional[ClaimSigner] = None,
        ss58_format: int = PLASM_SS58_FORMAT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        pow_difficulty: int = 1,
        pow_max_attempts: int = 1_000_000,
        pow_timeout: Optional[float] = None,
        token_symbol: str = "PLM",
        on_error: Optional[ErrorCallback] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the session.

        Args:
            public_key: Locker secp256k1 public key (compressed or not)
            destination: Destination chain connector
            source: Optional lock event source for load_locks()
            address_store: Recipient address store (in-memory by default)
            signer: Signing capability for delegated claims
            ss58_format: Destination network prefix
            poll_interval: Seconds between claim polls
            pow_difficulty: Request proof-of-work difficulty
            pow_max_attempts: Upper bound on nonce search attempts
            pow_timeout: Optional nonce search time limit in seconds
            token_symbol: Reward token symbol used in balance_display
            on_error: Called with every recoverable error
            logger: Optional logger instance

        Raises:
            InvalidParameterError: If the public key is malformed
        """
        self.public_key = compress_public_key(public_key)
        self.source = source
        self.signer = signer
        self.ss58_format = ss58_format
        self.token_symbol = token_symbol
        self.on_error = on_error
        self.logger = logger or logging.getLogger(__name__)

        self.address_store = address_store or RecipientAddressStore(ss58_format=ss58_format)
        self.reconciler = ClaimStateReconciler(
            destination,
            address_provider=lambda: self.recipient,
            interval=poll_interval,
            logger=logger,
        )
        self.driver = ClaimProtocolDriver(
            destination,
            self.reconciler,
            ss58_format=ss58_format,
            pow_difficulty=pow_difficulty,
            pow_max_attempts=pow_max_attempts,
            pow_timeout=pow_timeout,
            logger=logger,
        )

    @classmethod
    def from_network(
        cls,
        network: str,
        public_key: Union[str, bytes],
        destination: DestinationChainConnector,
        source_rpc_url: Optional[str] = None,
        lockdrop_contract: Optional[str] = None,
        store_path: Optional[str] = None,
        **kwargs
    ) -> "ClaimSession":
        """
        Create a session from the packaged network configuration.

        A lock event source is set up when both a source RPC URL and a
        lockdrop contract address are known.

        Args:
            network: Network name from networks.json (e.g. "plasm", "dusty")
            public_key: Locker public key
            destination: Destination chain connector
            source_rpc_url: Ethereum RPC endpoint for lock events
            lockdrop_contract: Lockdrop contract override
            store_path: Recipient address store file override
            **kwargs: Passed to the constructor

        Returns:
            Configured ClaimSession
        """
        ss58_format = NetworkConfig.get_ss58_format(network)
        contract = NetworkConfig.get_lockdrop_contract(network, lockdrop_contract)

        source = kwargs.pop("source", None)
        if source is None and contract and source_rpc_url:
            source = LockEventSource(
                Web3LockdropConnector(contract, rpc_url=source_rpc_url),
                from_block=NetworkConfig.get_lockdrop_start_block(network),
            )

        address_store = kwargs.pop("address_store", None) or RecipientAddressStore(
            FileKeyValueStore(store_path), ss58_format=ss58_format
        )

        return cls(
            public_key,
            destination,
            source=source,
            address_store=address_store,
            ss58_format=ss58_format,
            poll_interval=NetworkConfig.get_poll_interval(network),
            pow_difficulty=NetworkConfig.get_pow_difficulty(network),
            pow_max_attempts=NetworkConfig.get_pow_max_attempts(network),
            token_symbol=NetworkConfig.get_token_symbol(network),
            **kwargs
        )

    def __enter__(self) -> "ClaimSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def start(self) -> None:
        """Start polling claim state"""
        self.reconciler.start(lambda: self.claim_ids)

    def close(self) -> None:
        """Stop polling and abort running nonce searches"""
        self.driver.cancel()
        self.reconciler.stop()

    def refresh(self) -> PollResult:
        """Poll once now, unless a poll is already running"""
        return self.reconciler.tick(lambda: self.claim_ids)

    def _report(self, error: LockdropError) -> None:
        self.logger.warning(f"{type(error).__name__}: {error}")
        if self.on_error:
            try:
                self.on_error(error)
            except Exception:
                self.logger.exception("Error callback failed")

    # Recipient address

    @property
    def default_address(self) -> str:
        return self.address_store.default_for(self.public_key)

    @property
    def recipient(self) -> str:
        """Address that receives the rewards: the saved one, else the default"""
        return self.address_store.resolve(self.public_key)

    def set_recipient(self, address: str) -> None:
        """
        Change the reward recipient.

        Raises:
            InvalidAddressError: If the address is invalid; nothing is changed
        """
        self.address_store.save(self.public_key, address)

    @property
    def balance(self) -> Optional[int]:
        """Recipient balance in femto, as of the last poll"""
        return self.reconciler.snapshot.balance

    @property
    def balance_display(self) -> Optional[str]:
        balance = self.balance
        if balance is None:
            return None
        return f"{femto_to_plm(balance):,.3f} {self.token_symbol}"

    # Claims

    def track(self, param: LockParam) -> bytes:
        return self.driver.track(param)

    @property
    def claim_ids(self) -> Set[bytes]:
        return self.driver.claim_ids

    def load_locks(self, account: str) -> List[LockEvent]:
        """
        Fetch the account's locks and track their claims.

        Returns an empty list (and reports SourceUnavailableError) if the
        source chain cannot be read.

        Raises:
            ValueError: If the session has no lock event source
        """
        if self.source is None:
            raise ValueError("Session has no lock event source configured")
        events = self.source.fetch_locks(account)
        if self.source.last_error is not None:
            self._report(self.source.last_error)
            return events
        for event in events:
            self.track(lock_param_from_event(event, self.public_key))
        return events

    @property
    def claims(self) -> Dict[bytes, Optional[Claim]]:
        """Latest known claim record of every tracked claim ID"""
        snapshot = self.reconciler.snapshot
        return {claim_id: snapshot.claims.get(claim_id) for claim_id in self.claim_ids}

    def eligibility(self, claim_id: bytes) -> Optional[Eligibility]:
        """Eligibility flags, or None until the vote requirement is known"""
        snapshot = self.reconciler.snapshot
        if snapshot.vote_requirement is None:
            return None
        return evaluate(snapshot.claims.get(bytes(claim_id)), snapshot.vote_requirement)

    def phase(self, claim_id: bytes) -> ClaimPhase:
        return self.driver.phase(claim_id)

    def submit_request(self, param: LockParam) -> SubmissionResult:
        """
        Request a claim. Recoverable failures are reported, not raised.

        Raises:
            InvalidParameterError: If the lock parameters are malformed
        """
        claim_id = self.track(param)
        try:
            tx_hash = self.driver.submit_request(param)
        except RECOVERABLE_ERRORS as e:
            self._report(e)
            return SubmissionResult(claim_id=claim_id, error=e)
        return SubmissionResult(claim_id=claim_id, tx_hash=tx_hash)

    def submit_claim(
        self,
        claim_id: bytes,
        recipient: Union[str, ClaimRecipient, None] = None
    ) -> SubmissionResult:
        """
        Claim the reward, to `recipient` or the session's recipient address.

        Raises:
            ClaimRequirementNotMetError: If the claim is not eligible yet
            InvalidAddressError: If the recipient address is invalid
        """
        claim_id = bytes(claim_id)
        if recipient is None:
            recipient = self.recipient
        try:
            tx_hash = self.driver.submit_claim(claim_id, recipient, self.signer)
        except RECOVERABLE_ERRORS as e:
            self._report(e)
            return SubmissionResult(claim_id=claim_id, error=e)
        return SubmissionResult(claim_id=claim_id, tx_hash=tx_hash)
