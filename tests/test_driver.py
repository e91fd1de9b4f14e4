"""
Tests for the claim protocol driver.
"""
import threading

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from lockdrop_sdk.claim_id import derive_claim_id
from lockdrop_sdk.driver import (
    ClaimProtocolDriver, DelegatedRecipient, DirectRecipient, choose_recipient
)
from lockdrop_sdk.exceptions import (
    AlreadyRequestedError, ClaimRequirementNotMetError, InvalidAddressError,
    InvalidParameterError, NonceSearchError, TransactionError
)
from lockdrop_sdk.models import ClaimPhase
from lockdrop_sdk.pow import check_pow
from lockdrop_sdk.signer import claim_to_message
from lockdrop_sdk.ss58 import default_address, ss58_decode, ss58_encode

from tests.test_helpers import TEST_DELEGATE


class RecordingSigner:
    """Signer that records every call and delegates to a real signer"""

    def __init__(self, signer):
        self.signer = signer
        self.calls = []

    def sign(self, claim_id, recipient):
        self.calls.append((claim_id, recipient))
        return self.signer.sign(claim_id, recipient)


@pytest.fixture
def claim_id(lock_param):
    return derive_claim_id(lock_param)


@pytest.fixture
def eligible_claim(driver, destination, reconciler, lock_param, claim_id):
    """A tracked claim approved by enough authorities"""
    driver.track(lock_param)
    destination.set_votes(claim_id, approve=3, decline=1)
    reconciler.poll([claim_id])
    return claim_id


class TestChooseRecipient:
    def test_empty_address_is_direct(self, public_key):
        assert choose_recipient(None, public_key) == DirectRecipient()
        assert choose_recipient("", public_key) == DirectRecipient()

    def test_default_address_is_direct(self, public_key):
        assert choose_recipient(default_address(public_key), public_key) == DirectRecipient()

    def test_default_account_on_other_prefix_is_direct(self, public_key):
        """Equality is by decoded account, not by string"""
        _, account_id = ss58_decode(default_address(public_key))
        other_spelling = ss58_encode(account_id, 42)
        assert choose_recipient(other_spelling, public_key) == DirectRecipient()

    def test_other_address_is_delegated(self, public_key):
        assert choose_recipient(TEST_DELEGATE, public_key) == DelegatedRecipient(TEST_DELEGATE)

    def test_invalid_address(self, public_key):
        with pytest.raises(InvalidAddressError):
            choose_recipient("garbage", public_key)


class TestSubmitRequest:
    def test_request_submits_valid_nonce(self, driver, destination, lock_param, claim_id):
        tx_hash = driver.submit_request(lock_param)

        assert tx_hash == "0x" + "01" * 32
        (param, nonce), = destination.requests
        assert param == lock_param
        assert check_pow(claim_id, nonce)
        assert claim_id in driver.claim_ids

    def test_request_marks_requested_until_observed(self, driver, destination, reconciler,
                                                     lock_param, claim_id):
        assert driver.phase(claim_id) == ClaimPhase.NOT_REQUESTED
        driver.submit_request(lock_param)
        assert driver.phase(claim_id) == ClaimPhase.REQUESTED

        # Chain has not picked it up yet
        reconciler.poll([claim_id])
        assert driver.phase(claim_id) == ClaimPhase.REQUESTED

        destination.set_votes(claim_id, approve=0, decline=0)
        reconciler.poll([claim_id])
        assert driver.phase(claim_id) == ClaimPhase.VOTES_PENDING

    def test_duplicate_request_maps_to_already_requested(self, driver, destination, lock_param, claim_id):
        destination.reject_duplicate_requests()

        with pytest.raises(AlreadyRequestedError):
            driver.submit_request(lock_param)
        assert driver.phase(claim_id) == ClaimPhase.NOT_REQUESTED

    def test_transport_failure_wrapped(self, driver, destination, lock_param, claim_id):
        destination.fail_submissions = ConnectionError("connection refused")

        with pytest.raises(TransactionError, match="connection refused"):
            driver.submit_request(lock_param)
        assert driver.phase(claim_id) == ClaimPhase.NOT_REQUESTED

    def test_retry_after_failure_allowed(self, driver, destination, lock_param):
        destination.fail_submissions = ConnectionError("connection refused")
        with pytest.raises(TransactionError):
            driver.submit_request(lock_param)

        destination.fail_submissions = None
        assert driver.submit_request(lock_param)

    def test_concurrent_duplicate_blocked(self, driver, destination, lock_param):
        release = threading.Event()
        entered = threading.Event()
        original = destination.submit_request

        def slow_submit(param, nonce):
            entered.set()
            release.wait(2)
            return original(param, nonce)

        destination.submit_request = slow_submit
        worker = threading.Thread(target=driver.submit_request, args=(lock_param,))
        worker.start()
        assert entered.wait(2)

        with pytest.raises(AlreadyRequestedError, match="in flight"):
            driver.submit_request(lock_param)
        release.set()
        worker.join(2)

        assert len(destination.requests) == 1

    def test_nonce_search_failure(self, destination, reconciler, lock_param):
        driver = ClaimProtocolDriver(destination, reconciler, pow_difficulty=32, pow_max_attempts=10)

        with pytest.raises(NonceSearchError):
            driver.submit_request(lock_param)
        assert destination.requests == []

    def test_cancelled_driver(self, destination, reconciler, lock_param):
        driver = ClaimProtocolDriver(destination, reconciler, pow_difficulty=32)
        driver.cancel()

        with pytest.raises(NonceSearchError, match="cancelled"):
            driver.submit_request(lock_param)

    def test_malformed_param(self, driver, lock_param):
        with pytest.raises(InvalidParameterError):
            driver.submit_request(lock_param.model_copy(update={"transaction_hash": b""}))


class TestSubmitClaim:
    def test_requires_eligible_claim(self, driver, destination, reconciler, lock_param, claim_id):
        driver.track(lock_param)
        with pytest.raises(ClaimRequirementNotMetError):
            driver.submit_claim(claim_id, None)

        destination.set_votes(claim_id, approve=1, decline=3)
        reconciler.poll([claim_id])
        with pytest.raises(ClaimRequirementNotMetError):
            driver.submit_claim(claim_id, None)

        assert destination.direct_claims == []

    def test_direct_claim_never_signs(self, driver, destination, eligible_claim, signer, public_key):
        recording = RecordingSigner(signer)

        tx_hash = driver.submit_claim(eligible_claim, default_address(public_key), recording)

        assert tx_hash == "0x" + "02" * 32
        assert destination.direct_claims == [eligible_claim]
        assert destination.delegated_claims == []
        assert recording.calls == []
        assert driver.phase(eligible_claim) == ClaimPhase.CLAIMING

    def test_delegated_claim_signs_once(self, driver, destination, eligible_claim, signer):
        recording = RecordingSigner(signer)

        tx_hash = driver.submit_claim(eligible_claim, TEST_DELEGATE, recording)

        assert tx_hash == "0x" + "03" * 32
        assert recording.calls == [(eligible_claim, TEST_DELEGATE)]
        (claim_id, recipient, signature), = destination.delegated_claims
        assert claim_id == eligible_claim
        assert recipient == TEST_DELEGATE
        assert len(signature) == 65

        message = encode_defunct(primitive=claim_to_message(eligible_claim, TEST_DELEGATE))
        assert Account.recover_message(message, signature=signature) == signer.address

    def test_plain_function_signer(self, driver, destination, eligible_claim, signer):
        calls = []

        def sign(claim_id, recipient):
            calls.append((claim_id, recipient))
            return signer.sign(claim_id, recipient)

        driver.submit_claim(eligible_claim, DelegatedRecipient(TEST_DELEGATE), sign)

        assert calls == [(eligible_claim, TEST_DELEGATE)]
        assert len(destination.delegated_claims) == 1

    def test_explicit_direct_recipient(self, driver, destination, eligible_claim):
        driver.submit_claim(eligible_claim, DirectRecipient())
        assert destination.direct_claims == [eligible_claim]

    def test_delegated_without_signer(self, driver, destination, eligible_claim):
        with pytest.raises(InvalidParameterError, match="signer is required"):
            driver.submit_claim(eligible_claim, TEST_DELEGATE)
        assert destination.delegated_claims == []

    def test_invalid_delegated_address(self, driver, eligible_claim, signer):
        wrong_network = ss58_encode(bytes(range(32)), 42)
        with pytest.raises(InvalidAddressError):
            driver.submit_claim(eligible_claim, DelegatedRecipient(wrong_network), signer)

    def test_unknown_claim(self, driver, destination, reconciler):
        unknown = b"\x42" * 32
        destination.set_votes(unknown, approve=4, decline=0)
        reconciler.poll([unknown])

        with pytest.raises(InvalidParameterError, match="Unknown claim"):
            driver.submit_claim(unknown, TEST_DELEGATE)

    def test_signer_failure_wrapped(self, driver, destination, eligible_claim):
        def broken_sign(claim_id, recipient):
            raise RuntimeError("hardware wallet unplugged")

        with pytest.raises(TransactionError, match="hardware wallet unplugged"):
            driver.submit_claim(eligible_claim, TEST_DELEGATE, broken_sign)
        assert destination.delegated_claims == []
        assert driver.phase(eligible_claim) == ClaimPhase.ELIGIBLE

    def test_empty_signature_rejected(self, driver, destination, eligible_claim):
        with pytest.raises(TransactionError, match="empty signature"):
            driver.submit_claim(eligible_claim, TEST_DELEGATE, lambda claim_id, recipient: "0x")
        assert destination.delegated_claims == []

    def test_submission_failure_leaves_phase(self, driver, destination, eligible_claim):
        destination.fail_submissions = ConnectionError("timeout")

        with pytest.raises(TransactionError):
            driver.submit_claim(eligible_claim, None)
        assert driver.phase(eligible_claim) == ClaimPhase.ELIGIBLE

    def test_claiming_clears_when_complete(self, driver, destination, reconciler, eligible_claim):
        driver.submit_claim(eligible_claim, None)
        assert driver.phase(eligible_claim) == ClaimPhase.CLAIMING

        # Still pending on chain
        reconciler.poll([eligible_claim])
        assert driver.phase(eligible_claim) == ClaimPhase.CLAIMING

        destination.set_votes(eligible_claim, approve=3, decline=1, complete=True)
        reconciler.poll([eligible_claim])
        assert driver.phase(eligible_claim) == ClaimPhase.CLAIMED

        with pytest.raises(ClaimRequirementNotMetError):
            driver.submit_claim(eligible_claim, None)

    def test_unconfirmed_claim_not_sent_twice(self, driver, destination, reconciler, eligible_claim):
        """A claim waiting for confirmation is not resubmitted"""
        driver.submit_claim(eligible_claim, None)
        reconciler.poll([eligible_claim])
        assert driver.phase(eligible_claim) == ClaimPhase.CLAIMING

        with pytest.raises(ClaimRequirementNotMetError, match="waiting for confirmation"):
            driver.submit_claim(eligible_claim, None)
        assert destination.direct_claims == [eligible_claim]

    def test_clear_pending_allows_resubmission(self, driver, destination, eligible_claim):
        driver.submit_claim(eligible_claim, None)
        driver.clear_pending(eligible_claim)
        assert driver.phase(eligible_claim) == ClaimPhase.ELIGIBLE

        driver.submit_claim(eligible_claim, None)
        assert destination.direct_claims == [eligible_claim, eligible_claim]
