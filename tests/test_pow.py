"""
Tests for the proof-of-work nonce search.
"""
import itertools
import threading

import pytest

from lockdrop_sdk import pow as pow_module
from lockdrop_sdk.exceptions import InvalidParameterError, NonceSearchError
from lockdrop_sdk.pow import NONCE_LENGTH, check_pow, claim_pow_nonce
from lockdrop_sdk.utils import blake2_256

CLAIM_ID = blake2_256(b"test claim")


def test_nonce_satisfies_predicate():
    nonce = claim_pow_nonce(CLAIM_ID)

    assert len(nonce) == NONCE_LENGTH
    assert blake2_256(CLAIM_ID + nonce)[0] == 0
    assert check_pow(CLAIM_ID, nonce)


def test_nonce_search_is_deterministic():
    assert claim_pow_nonce(CLAIM_ID) == claim_pow_nonce(CLAIM_ID)


def test_nonce_is_first_counter_that_works():
    nonce = claim_pow_nonce(CLAIM_ID)
    found_at = int.from_bytes(nonce, "little")
    for attempt in range(found_at):
        assert not check_pow(CLAIM_ID, attempt.to_bytes(NONCE_LENGTH, "little"))


def test_zero_difficulty_accepts_first_nonce():
    assert claim_pow_nonce(CLAIM_ID, difficulty=0) == bytes(NONCE_LENGTH)


def test_exhausted_search_raises():
    """Hostile difficulty cannot stall the caller"""
    with pytest.raises(NonceSearchError, match="within 50 attempts"):
        claim_pow_nonce(CLAIM_ID, difficulty=32, max_attempts=50)


def test_cancelled_search_raises():
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(NonceSearchError, match="cancelled"):
        claim_pow_nonce(CLAIM_ID, difficulty=32, cancel=cancel)


def test_timed_out_search_raises(monkeypatch):
    clock = itertools.count(0.0, 10.0)
    monkeypatch.setattr(pow_module.time, "monotonic", lambda: next(clock))
    with pytest.raises(NonceSearchError, match="timed out"):
        claim_pow_nonce(CLAIM_ID, difficulty=32, timeout=5.0)


@pytest.mark.parametrize("kwargs", [
    {"claim_id": b""},
    {"claim_id": CLAIM_ID, "difficulty": -1},
    {"claim_id": CLAIM_ID, "difficulty": 33},
    {"claim_id": CLAIM_ID, "max_attempts": 0},
])
def test_invalid_arguments(kwargs):
    with pytest.raises(InvalidParameterError):
        claim_pow_nonce(**kwargs)
