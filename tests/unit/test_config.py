"""
Unit tests for engine configuration.
"""
import pytest
from pydantic import ValidationError

from safehorizon.shared.config import CacheConfig, EngineConfig, SyncConfig
from safehorizon.shared.exceptions import ConfigurationError


class TestEngineConfig:
    """Test cases for EngineConfig."""

    def test_defaults(self):
        config = EngineConfig()

        assert config.cache.max_memory_entries == 100
        assert config.cache.default_ttl_seconds == 3600
        assert config.cache.cleanup_interval_seconds == 1800
        assert config.connectivity.check_interval_seconds == 10
        assert config.sync.sync_interval_seconds == 120
        assert config.sync.default_max_retries == 3
        assert config.breaker.failure_threshold == 5
        assert config.breaker.retry_delay_seconds == 30
        assert config.health.check_interval_seconds == 120

    def test_log_level_normalized(self):
        assert EngineConfig(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            EngineConfig(log_level="chatty")

    def test_cache_capacity_must_be_positive(self):
        with pytest.raises(ValidationError):
            CacheConfig(max_memory_entries=0)

    def test_blank_storage_key(self):
        with pytest.raises(ValidationError):
            SyncConfig(storage_key="  ")

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SAFEHORIZON_HOME", str(tmp_path))
        monkeypatch.setenv("SAFEHORIZON_CACHE_MAX_ENTRIES", "25")
        monkeypatch.setenv("SAFEHORIZON_CACHE_DEFAULT_TTL", "none")
        monkeypatch.setenv("SAFEHORIZON_SYNC_INTERVAL", "30")
        monkeypatch.setenv("SAFEHORIZON_BREAKER_THRESHOLD", "2")
        monkeypatch.setenv("SAFEHORIZON_LOG_LEVEL", "warning")
        monkeypatch.setenv("SAFEHORIZON_JSON_LOGS", "false")

        config = EngineConfig.from_env()

        assert config.cache.directory == str(tmp_path / "cache")
        assert config.sync.storage_directory == str(tmp_path / "state")
        assert config.cache.max_memory_entries == 25
        assert config.cache.default_ttl_seconds is None
        assert config.sync.sync_interval_seconds == 30
        assert config.breaker.failure_threshold == 2
        assert config.log_level == "WARNING"
        assert config.json_logs is False

    def test_from_env_invalid_value(self, monkeypatch):
        monkeypatch.setenv("SAFEHORIZON_CACHE_MAX_ENTRIES", "lots")

        with pytest.raises(ConfigurationError, match="Invalid engine configuration"):
            EngineConfig.from_env()

    def test_from_env_out_of_range(self, monkeypatch):
        monkeypatch.setenv("SAFEHORIZON_PROBE_PORT", "70000")

        with pytest.raises(ConfigurationError):
            EngineConfig.from_env()
