"""Cache manager deciding when cached collections can be served."""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from filelock import FileLock, Timeout

from storecache.cache.blobs import BlobStore
from storecache.cache.config import CacheConfig
from storecache.cache.errors import (
    CacheError,
    CacheLockError,
    CachePermissionError,
    CacheSerializationError,
)
from storecache.cache.metadata import (
    CACHE_HITS_KEY,
    CACHE_MISSES_KEY,
    LAST_UPDATE_CHECK_KEY,
    LATEST_DATABASE_UPDATE_KEY,
    CacheStatus,
    SetAt,
    Unset,
    UpdateMarker,
    last_write_key,
    marker_from_timestamp,
)
from storecache.cache.store import KeyValueStore
from storecache.cache.validation import (
    format_timestamp,
    get_ttl_remaining,
    is_server_update_newer,
    is_ttl_valid,
    parse_timestamp,
    utc_now,
)
from storecache.utils import Records, Scalar, is_records, sanitize_collection_name

logger = logging.getLogger(__name__)


class CacheManager:
    """Manages the local cache of remote collections.

    A collection is served from cache only while its last local write is
    younger than ``maximum_cache_age`` and, when server update checks are
    enabled, no newer update marker has been asserted by the remote source.
    Payloads live in a BlobStore, timestamps and counters in a KeyValueStore.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        key_value_store: Optional[KeyValueStore] = None,
        blob_store: Optional[BlobStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize cache manager.

        Args:
            config: Cache configuration (defaults if None)
            key_value_store: Store for timestamps and counters
            blob_store: Store for collection payloads
            clock: Callable returning the current UTC time (for tests)
        """
        self.config = config or CacheConfig()
        self.clock = clock or utc_now
        self.store = key_value_store or KeyValueStore(
            self.config.defaults_path,
            self.config.namespace,
            lock_timeout=self.config.lock_timeout,
        )
        self.blobs = blob_store or BlobStore(self.config.blob_dir)
        self.lock_dir = self.config.lock_dir

    def _get_lock_path(self, collection_name: str) -> Path:
        """Get lock file path for a collection."""
        return (
            self.lock_dir
            / f"{self.config.namespace}_{sanitize_collection_name(collection_name)}.lock"
        )

    def _collection_lock(self, collection_name: str) -> FileLock:
        try:
            self.lock_dir.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise CachePermissionError(
                f"Cannot create cache lock directory at {self.lock_dir}: {e}"
            ) from e
        except OSError as e:
            raise CacheError(
                f"Cannot access cache directory at {self.lock_dir}: {e}"
            ) from e
        return FileLock(
            str(self._get_lock_path(collection_name)), timeout=self.config.lock_timeout
        )

    # ------------------------------------------------------------------
    # Key-value access
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[Scalar]:
        """Read a namespaced value; absence yields None."""
        return self.store.read(key)

    def set(self, key: str, value: Optional[Scalar]) -> None:
        """Write a namespaced value; None removes it."""
        self.store.write(key, value)

    def _get_timestamp(self, key: str) -> Optional[datetime]:
        return parse_timestamp(self.get(key))

    def last_written(self, collection_name: str) -> Optional[datetime]:
        """When the collection was last persisted, or None if unknown."""
        return self._get_timestamp(last_write_key(collection_name))

    # ------------------------------------------------------------------
    # Staleness policy
    # ------------------------------------------------------------------

    def should_fetch(self, collection_name: str) -> bool:
        """Decide whether a collection must be fetched from the remote source.

        Args:
            collection_name: Name of the collection

        Returns:
            True if caching is disabled, the collection was never written,
            its TTL expired, or the server asserted a newer update
        """
        if not self.config.enabled:
            return True

        last_written = self.last_written(collection_name)
        if last_written is None:
            return True

        if not is_ttl_valid(last_written, self.config.maximum_cache_age, self.clock()):
            return True

        if self.config.check_server_updates:
            marker = self.get_latest_database_update()
            if isinstance(marker, SetAt) and is_server_update_newer(
                marker.timestamp, last_written, self.config.update_epsilon
            ):
                return True

        return False

    def get_latest_database_update(self) -> UpdateMarker:
        """Get the update marker last asserted by the remote source."""
        timestamp = self._get_timestamp(LATEST_DATABASE_UPDATE_KEY)
        return marker_from_timestamp(timestamp)

    def set_latest_database_update(
        self, timestamp: Union[datetime, UpdateMarker, None]
    ) -> None:
        """Store the update marker asserted by the remote source.

        Args:
            timestamp: A datetime or SetAt to record, or None/UNSET to clear
        """
        if isinstance(timestamp, Unset) or timestamp is None:
            self.set(LATEST_DATABASE_UPDATE_KEY, None)
            return
        if isinstance(timestamp, SetAt):
            timestamp = timestamp.timestamp
        self.set(LATEST_DATABASE_UPDATE_KEY, format_timestamp(timestamp))

    def should_check_for_updates(self) -> bool:
        """Whether the remote update marker is due to be requested again."""
        last_check = self._get_timestamp(LAST_UPDATE_CHECK_KEY)
        if last_check is None:
            return True
        return not is_ttl_valid(
            last_check, self.config.update_check_interval, self.clock()
        )

    async def check_for_updates(
        self, fetch_marker: Callable[[], Awaitable[Optional[datetime]]]
    ) -> UpdateMarker:
        """Refresh the server update marker if the throttle window elapsed.

        Key-value reads and writes run in a worker thread, so a lock held by
        another process never stalls the event loop.

        Args:
            fetch_marker: Coroutine function asking the remote source for its
                latest update time (None if it has none)

        Returns:
            The update marker in effect after the check

        Raises:
            Whatever fetch_marker raises; the stored marker is left untouched
        """
        if not await asyncio.to_thread(self.should_check_for_updates):
            return await asyncio.to_thread(self.get_latest_database_update)

        timestamp = await fetch_marker()
        await asyncio.to_thread(self._store_update_check, timestamp)
        logger.debug(f"Server update marker refreshed: {timestamp}")
        return marker_from_timestamp(timestamp)

    def _store_update_check(self, timestamp: Optional[datetime]) -> None:
        self.set_latest_database_update(timestamp)
        self.set(LAST_UPDATE_CHECK_KEY, format_timestamp(self.clock()))

    # ------------------------------------------------------------------
    # Payload operations
    # ------------------------------------------------------------------

    def cache(self, payload: Records, collection_name: str) -> Path:
        """Persist a collection's records, then stamp the write time.

        The timestamp is only written after the blob has been fully replaced.

        Args:
            payload: List of JSON objects
            collection_name: Name of the collection

        Returns:
            Path to the cached blob

        Raises:
            CacheSerializationError: If payload is not a list of JSON objects
            CacheLockError: If unable to acquire the collection lock
            CacheError: If the blob or timestamp cannot be persisted
        """
        if not is_records(payload):
            raise CacheSerializationError(
                f"Payload for {collection_name} must be a list of JSON objects"
            )

        lock = self._collection_lock(collection_name)
        try:
            with lock:
                path = self.blobs.write(collection_name, payload)
                self.set(last_write_key(collection_name), format_timestamp(self.clock()))
        except Timeout as e:
            raise CacheLockError(
                f"Timeout acquiring lock for {collection_name} after "
                f"{self.config.lock_timeout} seconds"
            ) from e
        except PermissionError as e:
            raise CachePermissionError(
                f"Cannot lock {collection_name} at "
                f"{self._get_lock_path(collection_name)}: {e}"
            ) from e
        except OSError as e:
            logger.error(f"OS error locking {collection_name}: {e}")
            raise CacheError(f"Cannot lock {collection_name}: {e}") from e

        logger.debug(f"Cached {len(payload)} records for {collection_name} at {path}")
        return path

    def fetch(self, collection_name: str) -> Optional[Records]:
        """Get cached records if they are still valid.

        Never raises: a stale entry, a missing file or an unparseable blob all
        count as a cache miss.

        Args:
            collection_name: Name of the collection

        Returns:
            Cached records, or None if the caller must go to the remote source
        """
        if self.should_fetch(collection_name):
            self._record(CACHE_MISSES_KEY)
            return None

        data = self.blobs.read(collection_name)
        if data is None or not is_records(data):
            if data is not None:
                logger.warning(
                    f"Cached blob for {collection_name} is not a list of objects"
                )
            self._record(CACHE_MISSES_KEY)
            return None

        self._record(CACHE_HITS_KEY)
        return data

    def remove_file(self, collection_name: str) -> None:
        """Invalidate a collection by deleting its blob and timestamp.

        Idempotent: removing an absent collection is not an error.
        """
        lock = self._collection_lock(collection_name)
        try:
            with lock:
                removed = self.blobs.delete(collection_name)
                self.set(last_write_key(collection_name), None)
        except Timeout as e:
            raise CacheLockError(
                f"Timeout acquiring lock for {collection_name} after "
                f"{self.config.lock_timeout} seconds"
            ) from e
        except PermissionError as e:
            raise CachePermissionError(
                f"Cannot lock {collection_name} at "
                f"{self._get_lock_path(collection_name)}: {e}"
            ) from e
        except OSError as e:
            logger.error(f"OS error locking {collection_name}: {e}")
            raise CacheError(f"Cannot lock {collection_name}: {e}") from e

        if removed:
            logger.debug(f"Removed cached blob for {collection_name}")

    def _record(self, counter_key: str) -> None:
        """Increment a statistics counter; failures only warn."""
        try:
            count = self.get(counter_key)
            self.set(counter_key, (count if isinstance(count, int) else 0) + 1)
        except CacheError as e:
            logger.warning(f"Could not update cache statistics: {e}")

    # ------------------------------------------------------------------
    # Inspection and maintenance
    # ------------------------------------------------------------------

    def is_cached(self, collection_name: str) -> bool:
        """Check if a collection has both a blob and a write timestamp."""
        return (
            self.blobs.exists(collection_name)
            and self.last_written(collection_name) is not None
        )

    def list_cached(self) -> list[str]:
        """List collections with a blob on disk."""
        return self.blobs.list_collections()

    def get_status(self, collection_name: str) -> Optional[CacheStatus]:
        """Get cache status for a collection.

        Returns:
            Status dict, or None if the collection has no blob on disk
        """
        if not self.blobs.exists(collection_name):
            return None

        last_written = self.last_written(collection_name)
        return {
            "collection": sanitize_collection_name(collection_name),
            "cached": last_written is not None,
            "cache_path": str(self.blobs.path_for(collection_name)),
            "size_bytes": self.blobs.size(collection_name),
            "last_written": format_timestamp(last_written) if last_written else None,
            "ttl_remaining": (
                get_ttl_remaining(
                    last_written, self.config.maximum_cache_age, self.clock()
                )
                if last_written
                else None
            ),
            "stale": self.should_fetch(collection_name),
        }

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Statistics dict
        """
        hits = self.get(CACHE_HITS_KEY) or 0
        misses = self.get(CACHE_MISSES_KEY) or 0
        marker = self.get_latest_database_update()
        collections = self.list_cached()

        total_requests = hits + misses
        return {
            "cache_dir": str(self.config.cache_dir),
            "namespace": self.config.namespace,
            "maximum_cache_age": self.config.maximum_cache_age,
            "total_items": len(collections),
            "total_size_bytes": sum(self.blobs.size(name) for name in collections),
            "cache_hits": hits,
            "cache_misses": misses,
            "cache_hit_rate": hits / total_requests if total_requests > 0 else 0.0,
            "latest_database_update": (
                format_timestamp(marker.timestamp) if marker.is_set else None
            ),
        }

    def clear_all(self) -> None:
        """Remove every cached collection and all bookkeeping keys."""
        for collection_name in self.list_cached():
            self.blobs.delete(collection_name)
        self.store.clear()
