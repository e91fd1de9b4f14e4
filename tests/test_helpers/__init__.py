from .fakes import (
    FakeDestination, FakeSource, TEST_CONTRACT, TEST_DELEGATE, TEST_LOCKER,
    TEST_PRIV_KEY, TEST_RELAYER, TEST_TX_HASH
)

__all__ = [
    "FakeDestination",
    "FakeSource",
    "TEST_CONTRACT",
    "TEST_DELEGATE",
    "TEST_LOCKER",
    "TEST_PRIV_KEY",
    "TEST_RELAYER",
    "TEST_TX_HASH",
]
