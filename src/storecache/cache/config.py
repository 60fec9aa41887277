"""Cache configuration management."""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_CACHE_DIR = Path.home() / ".storecache"


@dataclass
class CacheConfig:
    """Configuration for the local collection cache.

    Attributes:
        enabled: Whether caching is enabled. When False every collection is
            treated as stale and fetched from the remote source.
        cache_dir: Root directory for cache storage (~/.storecache by default)
        namespace: Subdirectory for cached blobs and prefix for stored keys
        maximum_cache_age: Time-to-live in seconds (24 hours)
        check_server_updates: Honor the server-asserted update marker in
            addition to the TTL
        update_check_interval: Minimum seconds between asking the remote
            source for its update marker (24 hours)
        update_epsilon: Marker differences at or below this many seconds are
            ignored
        verbose_logging_enabled: Forward reported errors to the remote sink
            instead of only logging them locally
        lock_timeout: Seconds to wait for a per-collection file lock
    """

    enabled: bool = True
    cache_dir: Path = DEFAULT_CACHE_DIR
    namespace: str = "storecache"
    maximum_cache_age: float = 86400  # 24 hours
    check_server_updates: bool = False
    update_check_interval: float = 86400  # 24 hours
    update_epsilon: float = 1.0
    verbose_logging_enabled: bool = False
    lock_timeout: float = 30

    def __post_init__(self):
        """Ensure cache_dir is an expanded Path object."""
        if self.cache_dir is None:
            self.cache_dir = DEFAULT_CACHE_DIR
        self.cache_dir = Path(self.cache_dir).expanduser()

    @property
    def blob_dir(self) -> Path:
        """Directory holding one JSON file per cached collection."""
        return self.cache_dir / self.namespace

    @property
    def lock_dir(self) -> Path:
        """Directory holding file locks."""
        return self.cache_dir / ".locks"

    @property
    def defaults_path(self) -> Path:
        """File backing the key-value store."""
        return self.cache_dir / f".{self.namespace}_defaults.json"

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "CacheConfig":
        """Load configuration from file.

        Args:
            config_path: Path to config file. If None, uses default location.

        Returns:
            CacheConfig instance
        """
        if config_path is None:
            config_path = DEFAULT_CACHE_DIR / "config.json"

        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            data = json.load(f)

        if "cache_dir" in data:
            data["cache_dir"] = Path(data["cache_dir"])

        return cls(**data)

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to file.

        Args:
            config_path: Path to config file. If None, uses default location.
        """
        if config_path is None:
            config_path = self.cache_dir / "config.json"

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "enabled": self.enabled,
            "cache_dir": str(self.cache_dir),
            "namespace": self.namespace,
            "maximum_cache_age": self.maximum_cache_age,
            "check_server_updates": self.check_server_updates,
            "update_check_interval": self.update_check_interval,
            "update_epsilon": self.update_epsilon,
            "verbose_logging_enabled": self.verbose_logging_enabled,
            "lock_timeout": self.lock_timeout,
        }

        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Create configuration from environment variables.

        Environment variables:
            STORECACHE_ENABLED: Enable caching (true/false)
            STORECACHE_DIR: Cache directory path
            STORECACHE_NAMESPACE: Blob subdirectory and key prefix
            STORECACHE_MAX_AGE: Maximum cache age in seconds
            STORECACHE_CHECK_SERVER_UPDATES: Honor the server update marker (true/false)
            STORECACHE_UPDATE_CHECK_INTERVAL: Seconds between update marker checks
            STORECACHE_VERBOSE_LOGGING: Forward errors to the remote sink (true/false)

        Returns:
            CacheConfig instance
        """
        config = cls()

        if os.getenv("STORECACHE_ENABLED"):
            config.enabled = os.getenv("STORECACHE_ENABLED", "").lower() == "true"

        if os.getenv("STORECACHE_DIR"):
            config.cache_dir = Path(os.getenv("STORECACHE_DIR")).expanduser()

        if os.getenv("STORECACHE_NAMESPACE"):
            config.namespace = os.getenv("STORECACHE_NAMESPACE")

        if os.getenv("STORECACHE_MAX_AGE"):
            config.maximum_cache_age = float(os.getenv("STORECACHE_MAX_AGE"))

        if os.getenv("STORECACHE_CHECK_SERVER_UPDATES"):
            config.check_server_updates = (
                os.getenv("STORECACHE_CHECK_SERVER_UPDATES", "").lower() == "true"
            )

        if os.getenv("STORECACHE_UPDATE_CHECK_INTERVAL"):
            config.update_check_interval = float(
                os.getenv("STORECACHE_UPDATE_CHECK_INTERVAL")
            )

        if os.getenv("STORECACHE_VERBOSE_LOGGING"):
            config.verbose_logging_enabled = (
                os.getenv("STORECACHE_VERBOSE_LOGGING", "").lower() == "true"
            )

        return config
