"""Directory-backed store of cached collection payloads."""

import errno
import logging
import os
import threading
from pathlib import Path
from typing import Any, Optional

import orjson

from storecache.cache.errors import (
    CacheDiskFullError,
    CacheError,
    CachePermissionError,
    CacheSerializationError,
)
from storecache.utils import BLOB_SUFFIX, blob_filename

logger = logging.getLogger(__name__)


class BlobStore:
    """Maps collection names to JSON documents in a single directory.

    Each collection is stored as ``<directory>/<collection>.json``. Writes go
    to a temporary file that is renamed over the target, so readers never see
    a partially written blob.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, collection_name: str) -> Path:
        """Get the blob path for a collection (sanitized)."""
        return self.directory / blob_filename(collection_name)

    def ensure_directory(self) -> None:
        """Create the blob directory if needed.

        Raises:
            CachePermissionError: If the directory cannot be created
            CacheError: For other OS errors
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise CachePermissionError(
                f"Cannot create cache directory {self.directory}: {e}"
            ) from e
        except OSError as e:
            logger.error(f"OS error creating cache directory: {e}")
            raise CacheError(f"Cannot create cache directory: {e}") from e

    def write(self, collection_name: str, data: Any) -> Path:
        """Serialize data and atomically replace the collection's blob.

        Args:
            collection_name: Collection the data belongs to
            data: JSON-serializable document

        Returns:
            Path of the written blob

        Raises:
            CacheSerializationError: If data is not JSON-serializable
            CachePermissionError: If the blob cannot be written
            CacheDiskFullError: If the disk is full
            CacheError: For other OS errors
        """
        try:
            content = orjson.dumps(data, option=orjson.OPT_INDENT_2)
        except TypeError as e:
            raise CacheSerializationError(
                f"Cannot serialize {collection_name} as JSON: {e}"
            ) from e

        self.ensure_directory()
        path = self.path_for(collection_name)
        # Unique per process and thread so concurrent writers never share a temp file
        temp_path = path.with_name(
            f"{path.name}.{os.getpid()}.{threading.get_ident()}.tmp"
        )

        try:
            try:
                with open(temp_path, "wb") as f:
                    f.write(content)
            except PermissionError as e:
                raise CachePermissionError(
                    f"Cannot write to cache file {temp_path}: {e}"
                ) from e
            except OSError as e:
                if e.errno == errno.ENOSPC:
                    raise CacheDiskFullError(
                        f"Disk full while writing {collection_name} to cache"
                    ) from e
                logger.error(f"OS error writing cache file: {e}")
                raise CacheError(f"Cannot write cache file: {e}") from e

            try:
                os.replace(temp_path, path)
            except OSError as e:
                logger.error(f"Error renaming temp file to cache path: {e}")
                raise CacheError(f"Cannot finalize cache file: {e}") from e
        except CacheError:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError as cleanup_error:
                    logger.warning(
                        f"Failed to clean up temp file {temp_path}: {cleanup_error}"
                    )
            raise

        return path

    def read(self, collection_name: str) -> Optional[Any]:
        """Read and parse a collection's blob.

        A missing file, an unreadable file or invalid JSON all yield None.
        """
        path = self.path_for(collection_name)
        try:
            with open(path, "rb") as f:
                return orjson.loads(f.read())
        except FileNotFoundError:
            return None
        except orjson.JSONDecodeError as e:
            logger.warning(f"Cached blob {path} is not valid JSON: {e}")
            return None
        except OSError as e:
            logger.warning(f"Cannot read cached blob {path}: {e}")
            return None

    def delete(self, collection_name: str) -> bool:
        """Delete a collection's blob.

        Returns:
            True if a file was removed, False if none existed
        """
        path = self.path_for(collection_name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def exists(self, collection_name: str) -> bool:
        return self.path_for(collection_name).exists()

    def size(self, collection_name: str) -> int:
        """Size of a collection's blob in bytes (0 if absent)."""
        try:
            return self.path_for(collection_name).stat().st_size
        except FileNotFoundError:
            return 0

    def list_collections(self) -> list[str]:
        """List the (sanitized) names of all stored blobs."""
        if not self.directory.exists():
            return []
        return sorted(
            p.name[: -len(BLOB_SUFFIX)]
            for p in self.directory.iterdir()
            if p.is_file() and p.name.endswith(BLOB_SUFFIX)
        )
