"""
Local signer for claim_to authorizations.
"""
import logging

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.base import BaseAccount
from eth_keys import keys

from .ss58 import ss58_decode
from .utils import hex_to_bytes

logger = logging.getLogger(__name__)


def claim_to_message(claim_id: bytes, recipient: str) -> bytes:
    """
    Message authorizing payout of a claim to a delegated address.

    It binds the claim ID to the decoded recipient account, so two spellings
    of one address produce the same message.
    """
    _, account_id = ss58_decode(recipient)
    return bytes(claim_id) + account_id


class LocalClaimSigner:
    """Signs claim_to authorizations with a local Ethereum private key"""

    def __init__(self, private_key: str):
        """
        Initialize the signer.

        Args:
            private_key: Ethereum private key (hex, with or without 0x)
        """
        self.account: BaseAccount = Account.from_key(private_key)
        self._public_key = keys.PrivateKey(hex_to_bytes(private_key)).public_key

    @property
    def address(self) -> str:
        """Ethereum address of the locker"""
        return self.account.address

    @property
    def public_key(self) -> bytes:
        """33 byte compressed public key of the locker"""
        return self._public_key.to_compressed_bytes()

    def sign(self, claim_id: bytes, recipient: str) -> str:
        """
        Sign a claim_to authorization.

        Args:
            claim_id: Claim ID being paid out
            recipient: Destination address receiving the reward

        Returns:
            65 byte signature as 0x-prefixed hex
        """
        message = encode_defunct(primitive=claim_to_message(claim_id, recipient))
        signed = self.account.sign_message(message)
        logger.debug("Signed claim_to for claim 0x%s…", bytes(claim_id).hex()[:8])
        return "0x" + bytes(signed.signature).hex()
