"""
Contracts for the chain clients and stores the SDK depends on.

The SDK never talks to a node directly on the destination side; callers
inject an object implementing DestinationChainConnector.
"""
from typing import Any, Dict, List, Optional, Protocol, Union

from .models import Claim, LockParam, VoteRequirement


class SourceChainConnector(Protocol):
    """Protocol for reading lock events from the source chain"""

    def get_past_events(
        self,
        event_name: str,
        from_block: int = 0,
        to_block: Union[int, str] = "latest",
    ) -> List[Dict[str, Any]]:
        """
        Return events as dicts with `returnValues`, `transactionHash`
        and `blockNumber` keys
        """
        ...

    def get_transaction(self, tx_hash: str) -> Dict[str, Any]:
        """Return the transaction, which must contain a `from` key"""
        ...


class DestinationChainConnector(Protocol):
    """
    Protocol for the destination chain client.

    Submissions return the transaction hash as a hex string. A rejected
    transaction raises TransactionError with a ClaimErrorCode.
    """

    def get_claim(self, claim_id: bytes) -> Optional[Claim]:
        ...

    def get_vote_requirement(self) -> VoteRequirement:
        ...

    def get_balance(self, address: str) -> int:
        ...

    def submit_request(self, param: LockParam, nonce: bytes) -> str:
        ...

    def submit_claim(self, claim_id: bytes) -> str:
        ...

    def submit_claim_to(self, claim_id: bytes, recipient: str, signature: bytes) -> str:
        ...


class KeyValueStore(Protocol):
    """Protocol for simple string storage"""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class ClaimSigner(Protocol):
    """Protocol for signing a claim_to authorization"""

    def sign(self, claim_id: bytes, recipient: str) -> str:
        """Return a hex signature binding claim_id to recipient"""
        ...
