"""
Recipient address store.

Keeps the destination address that receives lockdrop rewards, keyed by
the locker's public key. Addresses live in a process-lifetime LRU cache in
front of a durable KeyValueStore. Every address is validated on the way in
and on the way out, so a stale or corrupt entry reads as "never set".
"""
import logging
import threading
from typing import Callable, Optional, Union

from cachetools import LRUCache

from .connectors import KeyValueStore
from .exceptions import InvalidAddressError
from .ss58 import PLASM_SS58_FORMAT, check_address, default_address
from .storage import MemoryKeyValueStore
from .utils import bytes_to_hex, hex_to_bytes

logger = logging.getLogger(__name__)

KEY_PREFIX = "claim-addr:"


def store_key(public_key: Union[str, bytes]) -> str:
    """
    Build the storage key for a public key.

    Hex keys are normalized to lowercase with a 0x prefix so that the same
    key always maps to the same entry.
    """
    if isinstance(public_key, (bytes, bytearray)):
        return KEY_PREFIX + bytes_to_hex(bytes(public_key))
    try:
        return KEY_PREFIX + bytes_to_hex(hex_to_bytes(public_key))
    except ValueError:
        return KEY_PREFIX + public_key


class RecipientAddressStore:
    """Validated, cached recipient addresses keyed by public key"""

    def __init__(
        self,
        backend: Optional[KeyValueStore] = None,
        ss58_format: int = PLASM_SS58_FORMAT,
        validator: Optional[Callable[[str], bool]] = None,
        cache_size: int = 128,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the store.

        Args:
            backend: Durable store (defaults to an in-memory store)
            ss58_format: Network prefix used for validation and default derivation
            validator: Optional address validator overriding the SS58 check
            cache_size: Maximum number of cached addresses
            logger: Optional logger instance
        """
        self.backend = backend if backend is not None else MemoryKeyValueStore()
        self.ss58_format = ss58_format
        self.validator = validator or self._check_ss58
        self.logger = logger or logging.getLogger(__name__)
        self._cache: LRUCache = LRUCache(maxsize=cache_size)
        self._lock = threading.RLock()

    def _check_ss58(self, address: str) -> bool:
        return check_address(address, self.ss58_format)[0]

    def _is_valid(self, address: Optional[str]) -> bool:
        if not address or not isinstance(address, str):
            return False
        try:
            return bool(self.validator(address))
        except ValueError:
            return False

    def _load_locked(self, key: str) -> Optional[str]:
        address = self._cache.get(key)
        if address is None:
            address = self.backend.get(key)
        if not self._is_valid(address):
            if address is not None:
                self.logger.debug("Ignoring invalid cached address for %s", key)
            self._cache.pop(key, None)
            return None
        self._cache[key] = address
        return address

    def load(self, public_key: Union[str, bytes]) -> Optional[str]:
        """
        Load the saved recipient address.

        Args:
            public_key: Locker public key (bytes or hex)

        Returns:
            The address if one is saved and still valid, otherwise None
        """
        key = store_key(public_key)
        with self._lock:
            return self._load_locked(key)

    def save(self, public_key: Union[str, bytes], address: str) -> None:
        """
        Validate and persist a recipient address, replacing any previous one.

        Raises:
            InvalidAddressError: If the address fails validation. Nothing is written.
        """
        if not address:
            raise InvalidAddressError("No destination address given")
        if not self._is_valid(address):
            _, reason = check_address(address, self.ss58_format)
            raise InvalidAddressError(f"Address check error: {reason or 'rejected by validator'}")

        key = store_key(public_key)
        with self._lock:
            self.backend.set(key, address)
            self._cache[key] = address
        self.logger.info("Saved recipient address %s… for %s", address[:8], key)

    def default_for(self, public_key: Union[str, bytes]) -> str:
        """Derive the default recipient address of a public key"""
        return default_address(public_key, self.ss58_format)

    def resolve(self, public_key: Union[str, bytes]) -> str:
        """
        Return the saved address, or the default one.

        The default is remembered only when no address was saved while it
        was being computed, so an explicit save always wins.
        """
        key = store_key(public_key)
        with self._lock:
            address = self._load_locked(key)
        if address:
            return address

        default = self.default_for(public_key)
        with self._lock:
            existing = self._load_locked(key)
            if existing:
                return existing
            self.backend.set(key, default)
            self._cache[key] = default
        return default

    def forget(self, public_key: Union[str, bytes]) -> None:
        """Remove the saved address for a public key"""
        key = store_key(public_key)
        with self._lock:
            self.backend.delete(key)
            self._cache.pop(key, None)
