"""
Proof-of-work nonce search for claim requests.

The destination chain accepts a claim request only if
BLAKE2b-256(claim_id || nonce) starts with `difficulty` zero bytes.
"""
import logging
import threading
import time
from typing import Optional

from .exceptions import InvalidParameterError, NonceSearchError
from .utils import blake2_256

logger = logging.getLogger(__name__)

NONCE_LENGTH = 32
DEFAULT_DIFFICULTY = 1
DEFAULT_MAX_ATTEMPTS = 1_000_000

# How often the deadline and cancel flag are checked
_CHECK_EVERY = 1024


def check_pow(claim_id: bytes, nonce: bytes, difficulty: int = DEFAULT_DIFFICULTY) -> bool:
    """Whether a nonce satisfies the difficulty predicate for a claim ID"""
    digest = blake2_256(claim_id + nonce)
    return digest[:difficulty] == bytes(difficulty)


def claim_pow_nonce(
    claim_id: bytes,
    difficulty: int = DEFAULT_DIFFICULTY,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    timeout: Optional[float] = None,
    cancel: Optional[threading.Event] = None,
) -> bytes:
    """
    Search for a nonce that satisfies the proof-of-work predicate.

    The search walks 32 byte little-endian counters from zero, so the result
    is deterministic for a given claim ID and difficulty.

    Args:
        claim_id: Claim ID to prove work for
        difficulty: Number of leading zero bytes required
        max_attempts: Upper bound on hashes computed
        timeout: Optional wall clock limit in seconds
        cancel: Optional event that aborts the search when set

    Returns:
        32-byte nonce

    Raises:
        InvalidParameterError: If the claim ID is empty or the bounds are invalid
        NonceSearchError: If the search is exhausted, times out or is cancelled
    """
    if not claim_id:
        raise InvalidParameterError("Claim ID is empty")
    if difficulty < 0 or difficulty > NONCE_LENGTH:
        raise InvalidParameterError(f"Invalid proof-of-work difficulty: {difficulty}")
    if max_attempts <= 0:
        raise InvalidParameterError(f"max_attempts must be positive, got {max_attempts}")

    start_time = time.monotonic()
    deadline = start_time + timeout if timeout is not None else None

    for attempt in range(max_attempts):
        if attempt % _CHECK_EVERY == 0:
            if cancel is not None and cancel.is_set():
                raise NonceSearchError(f"Nonce search cancelled after {attempt} attempts")
            if deadline is not None and time.monotonic() > deadline:
                raise NonceSearchError(f"Nonce search timed out after {attempt} attempts")

        nonce = attempt.to_bytes(NONCE_LENGTH, "little")
        if check_pow(claim_id, nonce, difficulty):
            elapsed_ms = (time.monotonic() - start_time) * 1000
            logger.debug("Found nonce for claim %s… after %d attempts in %.2f ms",
                         claim_id.hex()[:8], attempt + 1, elapsed_ms)
            return nonce

    raise NonceSearchError(f"No nonce found within {max_attempts} attempts (difficulty {difficulty})")
