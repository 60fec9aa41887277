"""Synchronization of cached collections against a remote source."""

from storecache.sync.coordinator import SyncCoordinator, SyncObserver, SyncResult
from storecache.sync.remote import (
    DirectoryRemoteSource,
    RemoteFetchError,
    RemoteSource,
    UpdateMarkerSource,
)

__all__ = [
    "SyncCoordinator",
    "SyncObserver",
    "SyncResult",
    "RemoteSource",
    "UpdateMarkerSource",
    "DirectoryRemoteSource",
    "RemoteFetchError",
]
