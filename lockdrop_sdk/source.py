"""
Lock events from the source chain.

Lock ownership is decided by the sender of the locking transaction, not by
any event field: anyone may relay a lock on behalf of someone else.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from web3 import Web3

from .connectors import SourceChainConnector
from .exceptions import SourceUnavailableError
from .models import ChainType, LockEvent, LockParam

logger = logging.getLogger(__name__)

LOCKED_EVENT = "Locked"

# ABI for the lockdrop contract events read by the SDK
LOCKDROP_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "uint256", "name": "eth", "type": "uint256"},
            {"indexed": True, "internalType": "uint256", "name": "duration", "type": "uint256"},
            {"indexed": False, "internalType": "address", "name": "lock", "type": "address"},
            {"indexed": False, "internalType": "address", "name": "introducer", "type": "address"}
        ],
        "name": "Locked",
        "type": "event"
    }
]


def _to_hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


def _same_address(address_a: str, address_b: str) -> bool:
    try:
        return Web3.to_checksum_address(address_a) == Web3.to_checksum_address(address_b)
    except (ValueError, TypeError):
        return str(address_a).lower() == str(address_b).lower()


class Web3LockdropConnector:
    """Source chain connector backed by a web3 lockdrop contract"""

    def __init__(
        self,
        contract_address: str,
        rpc_url: Optional[str] = None,
        w3: Optional[Web3] = None
    ):
        """
        Initialize the connector.

        Args:
            contract_address: Lockdrop contract address
            rpc_url: Ethereum RPC endpoint URL (ignored if w3 is given)
            w3: Optional preconfigured Web3 instance

        Raises:
            ValueError: If neither rpc_url nor w3 is provided
        """
        if w3 is None:
            if not rpc_url:
                raise ValueError("Either rpc_url or w3 must be provided")
            w3 = Web3(Web3.HTTPProvider(rpc_url))
        self.w3 = w3
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=LOCKDROP_ABI
        )

    def get_past_events(
        self,
        event_name: str,
        from_block: int = 0,
        to_block: Union[int, str] = "latest"
    ) -> List[Dict[str, Any]]:
        event = getattr(self.contract.events, event_name)()
        logs = event.get_logs(from_block=from_block, to_block=to_block)
        return [
            {
                "returnValues": dict(log["args"]),
                "transactionHash": _to_hex(log["transactionHash"]),
                "blockNumber": log["blockNumber"],
            }
            for log in logs
        ]

    def get_transaction(self, tx_hash: str) -> Dict[str, Any]:
        return dict(self.w3.eth.get_transaction(tx_hash))


class LockEventSource:
    """Fetches and normalizes historical lock events"""

    def __init__(
        self,
        connector: SourceChainConnector,
        from_block: int = 0,
        on_unavailable: Optional[Callable[[SourceUnavailableError], None]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the source.

        Args:
            connector: Source chain connector
            from_block: First block to read events from (contract deployment block)
            on_unavailable: Called with the error whenever a fetch fails
            logger: Optional logger instance
        """
        self.connector = connector
        self.from_block = from_block
        self.on_unavailable = on_unavailable
        self.logger = logger or logging.getLogger(__name__)
        self.last_error: Optional[SourceUnavailableError] = None

    def _read_events(self) -> List[Dict[str, Any]]:
        return self.connector.get_past_events(
            LOCKED_EVENT, from_block=self.from_block, to_block="latest"
        )

    @staticmethod
    def _to_lock_event(event: Dict[str, Any]) -> LockEvent:
        values = event["returnValues"]
        return LockEvent(
            amount=int(values["eth"]),
            duration=int(values["duration"]),
            lock_address=values["lock"],
            introducer_address=values.get("introducer") or "",
            block_number=int(event["blockNumber"]),
            transaction_hash=_to_hex(event["transactionHash"]),
        )

    def _unavailable(self, e: Exception) -> List[LockEvent]:
        error = SourceUnavailableError(f"Failed to fetch lock events: {e}")
        self.last_error = error
        self.logger.warning(str(error))
        if self.on_unavailable:
            self.on_unavailable(error)
        return []

    def fetch_locks(self, account: str) -> List[LockEvent]:
        """
        Return every lock whose transaction was sent by `account`.

        On failure an empty list is returned and `last_error` is set; an
        empty list with `last_error` set means "try again later".

        Args:
            account: Ethereum address of the locker

        Returns:
            Lock events in chain order
        """
        try:
            events = self._read_events()
            senders: Dict[str, str] = {}
            locks = []
            for event in events:
                tx_hash = _to_hex(event["transactionHash"])
                if tx_hash not in senders:
                    senders[tx_hash] = self.connector.get_transaction(tx_hash)["from"]
                if _same_address(senders[tx_hash], account):
                    locks.append(self._to_lock_event(event))
        except Exception as e:
            return self._unavailable(e)

        self.last_error = None
        self.logger.debug("Found %d of %d lock events for %s", len(locks), len(events), account)
        return locks

    def fetch_all_locks(self) -> List[LockEvent]:
        """Return every lock of the contract, regardless of owner"""
        try:
            locks = [self._to_lock_event(event) for event in self._read_events()]
        except Exception as e:
            return self._unavailable(e)

        self.last_error = None
        return locks


def lock_param_from_event(
    event: LockEvent,
    public_key: Union[str, bytes],
    chain_type: ChainType = ChainType.ETH
) -> LockParam:
    """Build the claim parameters of a lock event for the locker's public key"""
    return LockParam(
        chain_type=chain_type,
        transaction_hash=event.transaction_hash,
        public_key=public_key,
        duration=event.duration,
        value=event.amount,
    )
