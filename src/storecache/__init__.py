"""storecache: Local caching of remote document collections with staleness checks."""

__version__ = "0.1.0"

from storecache.cache import CacheConfig, CacheManager
from storecache.sync import SyncCoordinator, SyncResult

__all__ = ["CacheConfig", "CacheManager", "SyncCoordinator", "SyncResult", "__version__"]
