"""
Durable key-value storage for the recipient address cache.
"""
import os
import json
import stat
import logging
import threading
from pathlib import Path
from typing import Dict, Optional

import portalocker

logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = "~/.lockdrop/claim-addr.json"


class FileKeyValueStore:
    """Thread-safe and process-safe JSON file store"""

    def __init__(self, store_path: Optional[str] = None):
        """
        Initialize the store.

        Args:
            store_path: Optional custom path for the store file
        """
        # Use LOCKDROP_ADDR_STORE_PATH env var or default to ~/.lockdrop/claim-addr.json
        if store_path:
            self.store_path = Path(store_path)
        else:
            default_path = os.environ.get(
                "LOCKDROP_ADDR_STORE_PATH",
                os.path.expanduser(DEFAULT_STORE_PATH)
            )
            self.store_path = Path(default_path)

        self._ensure_file()

    def _ensure_file(self):
        """Ensure the store file exists with proper permissions"""
        directory = self.store_path.parent
        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)

        if not self.store_path.exists():
            with open(self.store_path, 'w') as f:
                json.dump({"entries": {}}, f)

        # Owner read/write only (Unix/Linux/Mac only)
        if os.name == 'posix':
            os.chmod(self.store_path, stat.S_IRUSR | stat.S_IWUSR)  # 0600

    def _get_lock_path(self) -> str:
        return str(self.store_path) + '.lock'

    def _read_entries(self) -> Dict[str, str]:
        try:
            with open(self.store_path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, FileNotFoundError):
            # Return empty store if file is empty, corrupt or missing
            return {}
        entries = data.get("entries") if isinstance(data, dict) else None
        if not isinstance(entries, dict):
            logger.warning(f"Ignoring malformed store file {self.store_path}")
            return {}
        return entries

    def _write_entries(self, entries: Dict[str, str]):
        with open(self.store_path, 'w') as f:
            json.dump({"entries": entries}, f, indent=2)

    def get(self, key: str) -> Optional[str]:
        with portalocker.Lock(self._get_lock_path(), timeout=10):
            value = self._read_entries().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with portalocker.Lock(self._get_lock_path(), timeout=10):
            entries = self._read_entries()
            entries[key] = value
            self._write_entries(entries)

    def delete(self, key: str) -> None:
        with portalocker.Lock(self._get_lock_path(), timeout=10):
            entries = self._read_entries()
            if key in entries:
                del entries[key]
                self._write_entries(entries)

    def clear(self):
        """Clear all entries (for testing)"""
        with portalocker.Lock(self._get_lock_path(), timeout=10):
            self._write_entries({})


class MemoryKeyValueStore:
    """In-process store, mainly for tests and short-lived sessions"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._entries: Dict[str, str] = dict(initial or {})
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._entries[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
