"""
Configuration models for the SafeHorizon engine.

Every tunable of the cache, connectivity monitor, offline queue, circuit
breakers and health checks lives here as a validated pydantic model.
``EngineConfig.from_env`` builds the full configuration from
``SAFEHORIZON_*`` environment variables.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from safehorizon.shared.exceptions import ConfigurationError


class CacheConfig(BaseModel):
    """Configuration for the two-tier cache."""
    directory: str = ".safehorizon/cache"
    max_memory_entries: int = Field(default=100, ge=1)
    default_ttl_seconds: Optional[float] = Field(default=3600.0, gt=0)
    cleanup_interval_seconds: float = Field(default=1800.0, gt=0)
    eviction_fraction: float = Field(default=0.2, gt=0, le=1)

    @field_validator('directory')
    @classmethod
    def validate_directory(cls, v):
        if not v or not v.strip():
            raise ValueError('Cache directory cannot be empty')
        return v.strip()


class ConnectivityConfig(BaseModel):
    """Configuration for the reachability probe."""
    probe_host: str = "google.com"
    probe_port: int = Field(default=443, ge=1, le=65535)
    check_interval_seconds: float = Field(default=10.0, gt=0)
    probe_timeout_seconds: float = Field(default=5.0, gt=0)


class SyncConfig(BaseModel):
    """Configuration for the offline operation queue."""
    storage_directory: str = ".safehorizon/state"
    storage_key: str = "pending_operations"
    sync_interval_seconds: float = Field(default=120.0, gt=0)
    default_max_retries: int = Field(default=3, ge=1)

    @field_validator('storage_key')
    @classmethod
    def validate_storage_key(cls, v):
        if not v or not v.strip():
            raise ValueError('Storage key cannot be empty')
        return v.strip()


class BreakerSettings(BaseModel):
    """Defaults applied to circuit breakers created through the registry."""
    failure_threshold: int = Field(default=5, ge=1)
    retry_delay_seconds: float = Field(default=30.0, ge=0)
    half_open_max_calls: int = Field(default=1, ge=1)


class HealthConfig(BaseModel):
    """Configuration for periodic health checks."""
    check_interval_seconds: float = Field(default=120.0, gt=0)


class EngineConfig(BaseModel):
    """Top-level engine configuration."""
    cache: CacheConfig = Field(default_factory=CacheConfig)
    connectivity: ConnectivityConfig = Field(default_factory=ConnectivityConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    breaker: BreakerSettings = Field(default_factory=BreakerSettings)
    health: HealthConfig = Field(default_factory=HealthConfig)
    log_level: str = "INFO"
    json_logs: bool = True

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f'Unknown log level: {v}')
        return level

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Build configuration from environment variables.

        Returns:
            Validated engine configuration

        Raises:
            ConfigurationError: If any variable holds an invalid value
        """
        base = os.getenv("SAFEHORIZON_HOME", ".safehorizon")
        default_ttl = os.getenv("SAFEHORIZON_CACHE_DEFAULT_TTL", "3600")

        try:
            return cls(
                cache=CacheConfig(
                    directory=os.getenv("SAFEHORIZON_CACHE_DIR", os.path.join(base, "cache")),
                    max_memory_entries=int(os.getenv("SAFEHORIZON_CACHE_MAX_ENTRIES", "100")),
                    default_ttl_seconds=None if default_ttl.lower() == "none" else float(default_ttl),
                    cleanup_interval_seconds=float(os.getenv("SAFEHORIZON_CACHE_CLEANUP_INTERVAL", "1800")),
                ),
                connectivity=ConnectivityConfig(
                    probe_host=os.getenv("SAFEHORIZON_PROBE_HOST", "google.com"),
                    probe_port=int(os.getenv("SAFEHORIZON_PROBE_PORT", "443")),
                    check_interval_seconds=float(os.getenv("SAFEHORIZON_PROBE_INTERVAL", "10")),
                ),
                sync=SyncConfig(
                    storage_directory=os.getenv("SAFEHORIZON_STATE_DIR", os.path.join(base, "state")),
                    sync_interval_seconds=float(os.getenv("SAFEHORIZON_SYNC_INTERVAL", "120")),
                    default_max_retries=int(os.getenv("SAFEHORIZON_SYNC_MAX_RETRIES", "3")),
                ),
                breaker=BreakerSettings(
                    failure_threshold=int(os.getenv("SAFEHORIZON_BREAKER_THRESHOLD", "5")),
                    retry_delay_seconds=float(os.getenv("SAFEHORIZON_BREAKER_RETRY_DELAY", "30")),
                ),
                log_level=os.getenv("SAFEHORIZON_LOG_LEVEL", "INFO"),
                json_logs=os.getenv("SAFEHORIZON_JSON_LOGS", "true").lower() == "true",
            )
        except (ValueError, ValidationError) as e:
            raise ConfigurationError(f"Invalid engine configuration: {e}")
