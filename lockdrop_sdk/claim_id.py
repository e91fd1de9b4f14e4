"""
Claim ID derivation.

A claim ID is the BLAKE2b-256 hash of the SCALE encoded lock parameters:

    u8 chain type | 32 byte tx hash | 33 byte compressed public key | u64 LE duration | u128 LE value
"""
import logging

from .exceptions import InvalidParameterError
from .models import LockParam
from .ss58 import compress_public_key
from .utils import blake2_256

logger = logging.getLogger(__name__)

CLAIM_ID_LENGTH = 32
TX_HASH_LENGTH = 32

_U64_MAX = 2 ** 64 - 1
_U128_MAX = 2 ** 128 - 1


def encode_lock_param(param: LockParam) -> bytes:
    """
    SCALE encode lock parameters.

    Args:
        param: Lock parameters

    Returns:
        Encoded bytes

    Raises:
        InvalidParameterError: If any field is empty or out of range
    """
    if not param.transaction_hash:
        raise InvalidParameterError("Lock transaction hash is empty")
    if len(param.transaction_hash) != TX_HASH_LENGTH:
        raise InvalidParameterError(
            f"Lock transaction hash must be {TX_HASH_LENGTH} bytes, got {len(param.transaction_hash)}"
        )
    if not param.public_key:
        raise InvalidParameterError("Lock public key is empty")
    if not 0 <= param.duration <= _U64_MAX:
        raise InvalidParameterError(f"Lock duration out of range: {param.duration}")
    if not 0 <= param.value <= _U128_MAX:
        raise InvalidParameterError(f"Lock value out of range: {param.value}")

    return b"".join([
        bytes([param.chain_type.value]),
        param.transaction_hash,
        compress_public_key(param.public_key),
        param.duration.to_bytes(8, "little"),
        param.value.to_bytes(16, "little"),
    ])


def derive_claim_id(param: LockParam) -> bytes:
    """
    Derive the claim ID of a lock.

    The same parameters always produce the same ID. The ID is both the
    on-chain request key and the local reconciliation key.

    Args:
        param: Lock parameters

    Returns:
        32-byte claim ID

    Raises:
        InvalidParameterError: If the parameters are malformed
    """
    return blake2_256(encode_lock_param(param))
