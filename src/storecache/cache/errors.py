"""Exceptions raised by the cache layer."""


class CacheError(Exception):
    """A collection could not be persisted, locked or removed."""

    pass


class CacheDiskFullError(CacheError):
    """No space left to write a collection blob."""

    pass


class CachePermissionError(CacheError):
    """The blob, lock or key-value file is not writable."""

    pass


class CacheLockError(CacheError):
    """Another writer held the collection lock past ``lock_timeout``."""

    pass


class CacheSerializationError(CacheError):
    """Raised when a payload cannot be encoded as a JSON array of objects."""

    pass
