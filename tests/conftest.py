"""
Pytest fixtures for the Lockdrop SDK tests.
"""
import pytest

from lockdrop_sdk._rate_limited_log import reset_rate_limits
from lockdrop_sdk.address_store import RecipientAddressStore
from lockdrop_sdk.config import NetworkConfig
from lockdrop_sdk.driver import ClaimProtocolDriver
from lockdrop_sdk.models import ChainType, LockParam
from lockdrop_sdk.reconciler import ClaimStateReconciler
from lockdrop_sdk.signer import LocalClaimSigner
from lockdrop_sdk.storage import MemoryKeyValueStore

from tests.test_helpers import FakeDestination, FakeSource, TEST_PRIV_KEY, TEST_TX_HASH


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Rate limits and the network cache are module level"""
    reset_rate_limits()
    NetworkConfig._networks_cache = None
    yield
    reset_rate_limits()
    NetworkConfig._networks_cache = None


@pytest.fixture
def signer():
    """Deterministic local signer"""
    return LocalClaimSigner(TEST_PRIV_KEY)


@pytest.fixture
def public_key(signer):
    """33 byte compressed public key of the test locker"""
    return signer.public_key


@pytest.fixture
def lock_param(public_key):
    """A realistic ETH lock: 1 ETH for 30 days"""
    return LockParam(
        chain_type=ChainType.ETH,
        transaction_hash=TEST_TX_HASH,
        public_key=public_key,
        duration=30 * 24 * 60 * 60,
        value=10 ** 18,
    )


@pytest.fixture
def destination():
    return FakeDestination()


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def address_store():
    return RecipientAddressStore(MemoryKeyValueStore())


@pytest.fixture
def reconciler(destination):
    reconciler = ClaimStateReconciler(destination, interval=0.05)
    yield reconciler
    reconciler.stop(timeout=1)


@pytest.fixture
def driver(destination, reconciler):
    return ClaimProtocolDriver(destination, reconciler)
