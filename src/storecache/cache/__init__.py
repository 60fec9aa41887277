"""Local caching of remote collections.

This module decides, per collection, whether a persisted local copy can be
served or the remote source must be asked again, based on a time-to-live and
an optional server-asserted update marker.

Key components:
- CacheManager: Staleness policy and cache/fetch/remove operations
- CacheConfig: Configuration management
- KeyValueStore: Persisted scalar bookkeeping (timestamps, counters)
- BlobStore: One JSON file per cached collection
"""

from storecache.cache.blobs import BlobStore
from storecache.cache.config import CacheConfig
from storecache.cache.errors import (
    CacheDiskFullError,
    CacheError,
    CacheLockError,
    CachePermissionError,
    CacheSerializationError,
)
from storecache.cache.manager import CacheManager
from storecache.cache.metadata import UNSET, SetAt, Unset, UpdateMarker
from storecache.cache.store import KeyValueStore

__all__ = [
    "CacheManager",
    "CacheConfig",
    "KeyValueStore",
    "BlobStore",
    "UpdateMarker",
    "Unset",
    "SetAt",
    "UNSET",
    "CacheError",
    "CacheDiskFullError",
    "CachePermissionError",
    "CacheLockError",
    "CacheSerializationError",
]
