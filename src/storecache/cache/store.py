"""Persisted key-value store for cache bookkeeping."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import orjson
from filelock import FileLock, Timeout

from storecache.cache.errors import CacheError, CacheLockError, CachePermissionError
from storecache.utils import Scalar, is_scalar

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Process-wide mapping from string keys to scalar values.

    Keys are prefixed with the namespace (``"<namespace>_<key>"``) and all
    entries live in a single JSON file. Writes re-read the file under a file
    lock and replace it atomically, so concurrent writers of different keys
    never lose each other's updates.

    Examples:
        >>> store = KeyValueStore(Path('/tmp/cache/.defaults.json'), 'storecache')
        >>> store.write('race_Last_Update_Date', '2024-01-15T10:30:00+00:00')
        >>> store.read('race_Last_Update_Date')
        '2024-01-15T10:30:00+00:00'
    """

    def __init__(self, path: Path, namespace: str, lock_timeout: float = 30):
        """Initialize the store.

        Args:
            path: JSON file backing the store (created on first write)
            namespace: Prefix applied to every key
            lock_timeout: Seconds to wait for the file lock
        """
        self.path = Path(path)
        self.namespace = namespace
        self.lock_timeout = lock_timeout
        self._lock = FileLock(str(self.path) + ".lock", timeout=lock_timeout)

    def _namespaced(self, key: str) -> str:
        return f"{self.namespace}_{key}"

    def _load(self) -> Dict[str, Any]:
        """Load all entries, treating a missing or corrupted file as empty."""
        try:
            with open(self.path, "rb") as f:
                data = orjson.loads(f.read())
        except FileNotFoundError:
            return {}
        except (orjson.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable key-value store {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed key-value store {self.path}")
            return {}
        return data

    def _dump(self, data: Dict[str, Any]) -> None:
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(temp_path, "wb") as f:
            f.write(orjson.dumps(data, option=orjson.OPT_INDENT_2))
        os.replace(temp_path, self.path)

    def read(self, key: str) -> Optional[Scalar]:
        """Read a value.

        Never raises; absence (or an unreadable file) yields None.

        Args:
            key: Key without namespace prefix

        Returns:
            Stored scalar or None
        """
        return self._load().get(self._namespaced(key))

    def write(self, key: str, value: Optional[Scalar]) -> None:
        """Write a value, persisting it immediately.

        Args:
            key: Key without namespace prefix
            value: Scalar to store; None removes the key

        Raises:
            TypeError: If value is not a scalar
            CacheLockError: If the file lock cannot be acquired
            CachePermissionError: If the store file cannot be written
            CacheError: For other OS errors while writing
        """
        if value is not None and not is_scalar(value):
            raise TypeError(
                f"Key-value store only accepts scalars, got {type(value).__name__}"
            )

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self._lock:
                data = self._load()
                name = self._namespaced(key)
                if value is None:
                    if name not in data:
                        return
                    del data[name]
                else:
                    data[name] = value
                self._dump(data)
        except Timeout as e:
            raise CacheLockError(
                f"Timeout acquiring lock for {self.path} after {self.lock_timeout} seconds"
            ) from e
        except PermissionError as e:
            raise CachePermissionError(
                f"Cannot write key-value store {self.path}: {e}"
            ) from e
        except OSError as e:
            logger.error(f"OS error writing key-value store: {e}")
            raise CacheError(f"Cannot write key-value store: {e}") from e

    def keys(self) -> list[str]:
        """List keys in this namespace (without prefix)."""
        prefix = self._namespaced("")
        return [k[len(prefix) :] for k in self._load() if k.startswith(prefix)]

    def clear(self) -> None:
        """Remove every key in this namespace."""
        prefix = self._namespaced("")
        try:
            with self._lock:
                data = self._load()
                remaining = {k: v for k, v in data.items() if not k.startswith(prefix)}
                if len(remaining) != len(data):
                    self._dump(remaining)
        except Timeout as e:
            raise CacheLockError(
                f"Timeout acquiring lock for {self.path} after {self.lock_timeout} seconds"
            ) from e
