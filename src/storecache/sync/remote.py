"""Remote source interface consumed by the sync coordinator."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import orjson
from typing_extensions import Protocol, runtime_checkable

from storecache.cache.validation import parse_timestamp
from storecache.utils import Records, blob_filename, is_records

UPDATE_MARKER_FILE = "last_update.json"


class RemoteFetchError(Exception):
    """Raised when the remote source cannot supply a collection."""

    def __init__(self, collection_name: str, cause: Optional[BaseException] = None):
        self.collection_name = collection_name
        self.cause = cause
        message = f"Failed to fetch {collection_name}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


@runtime_checkable
class RemoteSource(Protocol):
    """Backend supplying collection records."""

    async def fetch_all(self, collection_name: str) -> Records:
        """Fetch every record of a collection. Raises on failure."""
        ...


@runtime_checkable
class UpdateMarkerSource(Protocol):
    """Backend that publishes when its data last changed."""

    async def fetch_update_marker(self) -> Optional[datetime]:
        """Return the latest upstream update time, or None if unknown."""
        ...


class DirectoryRemoteSource:
    """Remote source backed by a local directory of JSON exports.

    Each collection is read from ``<root>/<collection>.json``; the optional
    update marker from ``<root>/last_update.json`` holding
    ``{"iso_string": "..."}``. Useful for mirrors, fixtures and the CLI.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _read_records(self, collection_name: str) -> Records:
        path = self.root / blob_filename(collection_name)
        try:
            with open(path, "rb") as f:
                data = orjson.loads(f.read())
        except (orjson.JSONDecodeError, OSError) as e:
            raise RemoteFetchError(collection_name, e) from e

        if not is_records(data):
            raise RemoteFetchError(
                collection_name, ValueError(f"{path} is not a list of objects")
            )
        return data

    def _read_marker(self) -> Optional[datetime]:
        path = self.root / UPDATE_MARKER_FILE
        if not path.exists():
            return None
        with open(path, "rb") as f:
            data = orjson.loads(f.read())
        if isinstance(data, dict):
            return parse_timestamp(data.get("iso_string"))
        return parse_timestamp(data)

    async def fetch_all(self, collection_name: str) -> Records:
        return await asyncio.to_thread(self._read_records, collection_name)

    async def fetch_update_marker(self) -> Optional[datetime]:
        return await asyncio.to_thread(self._read_marker)
