"""
SS58 address encoding for the destination chain.

Plasm and Dusty both use network prefix 5. Account IDs are 32 bytes; a
33 byte compressed ECDSA public key is also accepted as a payload.
"""
import hashlib
import logging
from typing import Tuple, Union

import base58

from .exceptions import InvalidAddressError, InvalidParameterError
from .utils import blake2_256, hex_to_bytes

logger = logging.getLogger(__name__)

PLASM_SS58_FORMAT = 5

_SS58_PREFIX = b"SS58PRE"
_CHECKSUM_LENGTH = 2
_PAYLOAD_LENGTHS = (32, 33)


def _checksum(data: bytes) -> bytes:
    return hashlib.blake2b(_SS58_PREFIX + data, digest_size=64).digest()[:_CHECKSUM_LENGTH]


def _encode_prefix(ss58_format: int) -> bytes:
    if ss58_format < 0 or ss58_format > 16383 or ss58_format in (46, 47):
        raise InvalidParameterError(f"Invalid SS58 format: {ss58_format}")
    if ss58_format < 64:
        return bytes([ss58_format])
    first = ((ss58_format & 0b0000_0000_1111_1100) >> 2) | 0b0100_0000
    second = (ss58_format >> 8) | ((ss58_format & 0b0000_0000_0000_0011) << 6)
    return bytes([first, second])


def ss58_encode(account_id: Union[str, bytes], ss58_format: int = PLASM_SS58_FORMAT) -> str:
    """
    Encode an account ID as an SS58 address.

    Args:
        account_id: 32 byte account ID (or 33 byte public key), bytes or hex
        ss58_format: Network prefix

    Returns:
        SS58 address string

    Raises:
        InvalidParameterError: If the payload length is not supported
    """
    payload = hex_to_bytes(account_id)
    if len(payload) not in _PAYLOAD_LENGTHS:
        raise InvalidParameterError(f"Unsupported account ID length: {len(payload)}")
    data = _encode_prefix(ss58_format) + payload
    return base58.b58encode(data + _checksum(data)).decode("ascii")


def ss58_decode(address: str) -> Tuple[int, bytes]:
    """
    Decode an SS58 address.

    Args:
        address: SS58 address string

    Returns:
        Tuple of (ss58_format, account_id)

    Raises:
        InvalidAddressError: If the address is malformed or the checksum fails
    """
    if not address or not isinstance(address, str):
        raise InvalidAddressError("Empty address")
    try:
        raw = base58.b58decode(address)
    except ValueError as e:
        raise InvalidAddressError(f"Invalid base58 encoding: {e}")

    if len(raw) < 1:
        raise InvalidAddressError("Invalid address length")
    if raw[0] & 0b0100_0000:
        if len(raw) < 2:
            raise InvalidAddressError("Invalid address length")
        prefix_length = 2
        lower = ((raw[0] << 2) | (raw[1] >> 6)) & 0xFF
        upper = raw[1] & 0b0011_1111
        ss58_format = lower | (upper << 8)
    else:
        prefix_length = 1
        ss58_format = raw[0]

    payload_length = len(raw) - prefix_length - _CHECKSUM_LENGTH
    if payload_length not in _PAYLOAD_LENGTHS:
        raise InvalidAddressError("Invalid decoded address length")

    data, checksum = raw[:-_CHECKSUM_LENGTH], raw[-_CHECKSUM_LENGTH:]
    if _checksum(data) != checksum:
        raise InvalidAddressError("Invalid decoded address checksum")

    return ss58_format, data[prefix_length:]


def check_address(address: str, ss58_format: int = PLASM_SS58_FORMAT) -> Tuple[bool, str]:
    """
    Validate an address for the given network.

    Returns:
        Tuple of (is_valid, reason). reason is empty when valid.
    """
    try:
        decoded_format, _ = ss58_decode(address)
    except InvalidAddressError as e:
        return False, str(e)
    if decoded_format != ss58_format:
        return False, f"Prefix mismatch, expected {ss58_format}, found {decoded_format}"
    return True, ""


def is_valid_address(address: str, ss58_format: int = PLASM_SS58_FORMAT) -> bool:
    return check_address(address, ss58_format)[0]


def same_account(address_a: str, address_b: str) -> bool:
    """
    Compare two addresses by decoded account ID.

    Addresses that fail to decode are never equal to anything.
    """
    try:
        return ss58_decode(address_a)[1] == ss58_decode(address_b)[1]
    except InvalidAddressError:
        return False


def compress_public_key(public_key: Union[str, bytes]) -> bytes:
    """
    Return the 33 byte compressed form of a secp256k1 public key.

    Accepts compressed (33 bytes), uncompressed (65 bytes, 0x04 prefix)
    or raw (64 bytes) keys.

    Raises:
        InvalidParameterError: If the key has an unsupported length or prefix
    """
    try:
        key = hex_to_bytes(public_key)
    except ValueError as e:
        raise InvalidParameterError(f"Invalid public key hex: {e}")

    if len(key) == 33 and key[0] in (2, 3):
        return key
    if len(key) == 65 and key[0] == 4:
        key = key[1:]
    if len(key) == 64:
        x, y = key[:32], key[32:]
        return bytes([2 | (y[-1] & 1)]) + x
    raise InvalidParameterError(f"Invalid public key length: {len(key)}")


def default_address(public_key: Union[str, bytes], ss58_format: int = PLASM_SS58_FORMAT) -> str:
    """
    Derive the default destination address of a source chain public key.

    The account ID is BLAKE2b-256 of the compressed ECDSA public key.
    """
    account_id = blake2_256(compress_public_key(public_key))
    return ss58_encode(account_id, ss58_format)
