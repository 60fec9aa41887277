"""Cache bookkeeping keys and the server update marker."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from typing_extensions import TypeAlias, TypedDict

from storecache.cache.validation import ensure_utc
from storecache.utils import sanitize_collection_name

LATEST_DATABASE_UPDATE_KEY = "Latest_Database_Update"
LAST_UPDATE_CHECK_KEY = "Last_Update_Check"
CACHE_HITS_KEY = "Cache_Hits"
CACHE_MISSES_KEY = "Cache_Misses"


def last_write_key(collection_name: str) -> str:
    """Key holding the last local write time of a collection.

    Examples:
        >>> last_write_key('race')
        'race_Last_Update_Date'
    """
    return f"{sanitize_collection_name(collection_name)}_Last_Update_Date"


@dataclass(frozen=True)
class Unset:
    """No update marker has been asserted by the remote source."""

    @property
    def is_set(self) -> bool:
        return False


@dataclass(frozen=True)
class SetAt:
    """The remote source asserted its data changed at ``timestamp``."""

    timestamp: datetime

    def __post_init__(self):
        object.__setattr__(self, "timestamp", ensure_utc(self.timestamp))

    @property
    def is_set(self) -> bool:
        return True


UpdateMarker: TypeAlias = Union[Unset, SetAt]

UNSET = Unset()


def marker_from_timestamp(timestamp: Optional[datetime]) -> UpdateMarker:
    """Wrap an optional timestamp in an UpdateMarker."""
    if timestamp is None:
        return UNSET
    return SetAt(timestamp)


class CacheStatus(TypedDict):
    """Status of a single cached collection."""

    collection: str
    cached: bool
    cache_path: str
    size_bytes: int
    last_written: Optional[str]
    ttl_remaining: Optional[int]
    stale: bool
