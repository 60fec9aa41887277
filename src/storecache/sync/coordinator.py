"""Startup synchronization of cached collections."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from typing_extensions import Literal, Protocol

from storecache.cache.errors import CacheError
from storecache.cache.manager import CacheManager
from storecache.reporting import ErrorReporter, LoggingErrorReporter
from storecache.sync.remote import RemoteFetchError, RemoteSource, UpdateMarkerSource
from storecache.utils import Records

logger = logging.getLogger(__name__)


class SyncObserver(Protocol):
    """Receives the outcome of each collection sync."""

    def on_fetched(self, data: Records, collection_name: str) -> None: ...

    def on_error(self, error: Exception) -> None: ...


@dataclass
class SyncResult:
    """Outcome of syncing one collection."""

    collection: str
    records: Optional[Records] = None
    origin: Optional[Literal["cache", "remote"]] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SyncCoordinator:
    """Serves collections from cache, falling back to the remote source.

    For every collection exactly one observer callback fires per ``start()``:
    ``on_fetched`` with cached or freshly fetched records, or ``on_error``
    with a RemoteFetchError when the remote source fails and no valid cache
    exists. Fresh records are written to the cache before delivery.

    Examples:
        >>> coordinator = SyncCoordinator(manager, DirectoryRemoteSource('mirror'), observer)
        >>> results = await coordinator.start(['race', 'weapon'])
    """

    def __init__(
        self,
        cache_manager: CacheManager,
        remote_source: RemoteSource,
        observer: SyncObserver,
        error_reporter: Optional[ErrorReporter] = None,
    ):
        """Initialize coordinator.

        Args:
            cache_manager: Cache consulted before the remote source
            remote_source: Backend used on cache misses
            observer: Receives records and errors
            error_reporter: Sink for failures (logs locally if None)
        """
        self.cache_manager = cache_manager
        self.remote_source = remote_source
        self.observer = observer
        self.error_reporter = error_reporter or LoggingErrorReporter(
            verbose_logging_enabled=cache_manager.config.verbose_logging_enabled
        )

    async def start(self, collections: Iterable[str]) -> list[SyncResult]:
        """Sync every collection concurrently.

        Args:
            collections: Collection names; duplicates are synced once

        Returns:
            One SyncResult per distinct collection, in input order
        """
        names = list(dict.fromkeys(collections))

        if self.cache_manager.config.check_server_updates:
            await self._refresh_update_marker()

        return list(await asyncio.gather(*(self._sync_collection(n) for n in names)))

    async def _refresh_update_marker(self) -> None:
        """Ask the remote source for its update marker when due."""
        if not isinstance(self.remote_source, UpdateMarkerSource):
            return

        try:
            await self.cache_manager.check_for_updates(
                self.remote_source.fetch_update_marker
            )
        except Exception as e:
            self.error_reporter.report(f"Could not check for server updates: {e}")

    async def _sync_collection(self, collection_name: str) -> SyncResult:
        cached = await asyncio.to_thread(self.cache_manager.fetch, collection_name)
        if cached is not None:
            logger.debug(f"Serving {collection_name} from cache")
            self.observer.on_fetched(cached, collection_name)
            return SyncResult(collection_name, records=cached, origin="cache")

        try:
            records = await self.remote_source.fetch_all(collection_name)
        except Exception as e:
            error = e if isinstance(e, RemoteFetchError) else RemoteFetchError(
                collection_name, e
            )
            self.error_reporter.report(str(error))
            self.observer.on_error(error)
            return SyncResult(collection_name, error=error)

        try:
            await asyncio.to_thread(self.cache_manager.cache, records, collection_name)
        except CacheError as e:
            self.error_reporter.report(f"Could not cache {collection_name}: {e}")

        self.observer.on_fetched(records, collection_name)
        return SyncResult(collection_name, records=records, origin="remote")
