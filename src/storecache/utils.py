"""Utility functions and shared types for storecache."""

import hashlib
import re
from typing import Any, Dict, List, Union

from typing_extensions import TypeAlias

# Generic JSON tree exchanged with the remote source. Typed decoding is left
# to callers.
JSONValue: TypeAlias = Union[
    None, bool, int, float, str, List["JSONValue"], Dict[str, "JSONValue"]
]
JSONObject: TypeAlias = Dict[str, JSONValue]
Records: TypeAlias = List[JSONObject]

# Scalars accepted by the key-value store
Scalar: TypeAlias = Union[bool, int, float, str]

BLOB_SUFFIX = ".json"
EMPTY_COLLECTION_NAME = "_empty_"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._~-]")
DIGEST_SEPARATOR = "~"
DIGEST_LENGTH = 8


def name_digest(raw_name: str) -> str:
    """Short stable digest identifying a raw collection name."""
    encoded = raw_name.encode("utf-8", "surrogatepass")
    return hashlib.sha1(encoded).hexdigest()[:DIGEST_LENGTH]


def sanitize_collection_name(collection_name: Any) -> str:
    """Convert a collection name to a filesystem-safe identifier.

    Path separators and any character outside ``[A-Za-z0-9._~-]`` become
    underscores, leading/trailing dots are removed and runs of dots collapse,
    so the result can never escape the blob directory. Whenever this changes
    the name, a digest of the raw name is appended (``a/b`` becomes
    ``a_b~<digest>``), so distinct names never share a cache entry. Applying
    it to its own output is a no-op.

    Args:
        collection_name: Name supplied by the caller

    Returns:
        Safe identifier, never empty

    Examples:
        >>> sanitize_collection_name('race')
        'race'
        >>> sanitize_collection_name('a/b')
        'a_b~3ec69c85'
    """
    raw = "" if collection_name is None else str(collection_name)
    name = _UNSAFE_CHARS.sub("_", raw)
    name = name.strip(".")
    # Collapse traversal leftovers such as "a/../b" -> "a_.._b"
    name = re.sub(r"\.{2,}", "_", name)
    name = name or EMPTY_COLLECTION_NAME
    if name != raw:
        name = f"{name}{DIGEST_SEPARATOR}{name_digest(raw)}"
    return name


def blob_filename(collection_name: Any) -> str:
    """Return the blob filename for a collection.

    Examples:
        >>> blob_filename('widgets')
        'widgets.json'
    """
    return sanitize_collection_name(collection_name) + BLOB_SUFFIX


def is_records(data: Any) -> bool:
    """Check that data is a list of JSON objects."""
    return isinstance(data, list) and all(isinstance(item, dict) for item in data)


def is_scalar(value: Any) -> bool:
    """Check that value can be stored in the key-value store."""
    return isinstance(value, (bool, int, float, str))
