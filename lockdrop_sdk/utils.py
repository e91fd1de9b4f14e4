"""
Utility functions for the Lockdrop SDK.
"""
import hashlib
from decimal import Decimal
from typing import Union

# 1 PLM = 10^15 femto
FEMTO_PER_PLM = 10 ** 15
SECONDS_PER_DAY = 60 * 60 * 24


def blake2_256(data: bytes) -> bytes:
    """
    BLAKE2b hash with a 32 byte digest, as used by Substrate.

    Args:
        data: Bytes to hash

    Returns:
        32-byte digest
    """
    return hashlib.blake2b(data, digest_size=32).digest()


def hex_to_bytes(value: Union[str, bytes, bytearray]) -> bytes:
    """
    Convert a hex string (with or without 0x prefix) to bytes.

    Bytes input is returned unchanged.

    Raises:
        ValueError: If the string is not valid hex
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if value.startswith(("0x", "0X")):
        value = value[2:]
    return bytes.fromhex(value)


def bytes_to_hex(value: bytes) -> str:
    """Hex encode bytes with a 0x prefix"""
    return "0x" + value.hex()


def femto_to_plm(amount: int) -> Decimal:
    """Convert a femto balance into PLM units"""
    return Decimal(amount) / Decimal(FEMTO_PER_PLM)


def epoch_to_days(seconds: int) -> float:
    return seconds / SECONDS_PER_DAY
