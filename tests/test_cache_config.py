"""Tests for cache configuration."""

from pathlib import Path

from storecache.cache.config import DEFAULT_CACHE_DIR, CacheConfig


class TestCacheConfig:
    """Test configuration defaults, persistence and environment loading."""

    def test_defaults(self):
        config = CacheConfig()
        assert config.enabled is True
        assert config.cache_dir == DEFAULT_CACHE_DIR
        assert config.maximum_cache_age == 86400
        assert config.check_server_updates is False
        assert config.update_check_interval == 86400
        assert config.verbose_logging_enabled is False

    def test_string_cache_dir_converted(self, tmp_path):
        config = CacheConfig(cache_dir=str(tmp_path))
        assert isinstance(config.cache_dir, Path)
        assert config.cache_dir == tmp_path

    def test_none_cache_dir_uses_default(self):
        assert CacheConfig(cache_dir=None).cache_dir == DEFAULT_CACHE_DIR

    def test_derived_paths(self, tmp_path):
        config = CacheConfig(cache_dir=tmp_path, namespace="app")
        assert config.blob_dir == tmp_path / "app"
        assert config.lock_dir == tmp_path / ".locks"
        assert config.defaults_path == tmp_path / ".app_defaults.json"

    def test_save_and_load(self, tmp_path):
        """Test that a saved config loads back unchanged."""
        config = CacheConfig(
            cache_dir=tmp_path,
            namespace="npcgen",
            maximum_cache_age=60,
            check_server_updates=True,
            verbose_logging_enabled=True,
        )
        config_path = tmp_path / "config.json"
        config.save(config_path)

        loaded = CacheConfig.load(config_path)
        assert loaded == config

    def test_load_missing_file_returns_defaults(self, tmp_path):
        assert CacheConfig.load(tmp_path / "missing.json") == CacheConfig()

    def test_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STORECACHE_ENABLED", "false")
        monkeypatch.setenv("STORECACHE_DIR", str(tmp_path))
        monkeypatch.setenv("STORECACHE_NAMESPACE", "custom")
        monkeypatch.setenv("STORECACHE_MAX_AGE", "120")
        monkeypatch.setenv("STORECACHE_CHECK_SERVER_UPDATES", "true")
        monkeypatch.setenv("STORECACHE_UPDATE_CHECK_INTERVAL", "30")
        monkeypatch.setenv("STORECACHE_VERBOSE_LOGGING", "TRUE")

        config = CacheConfig.from_env()

        assert config.enabled is False
        assert config.cache_dir == tmp_path
        assert config.namespace == "custom"
        assert config.maximum_cache_age == 120
        assert config.check_server_updates is True
        assert config.update_check_interval == 30
        assert config.verbose_logging_enabled is True
