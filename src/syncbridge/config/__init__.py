"""Application configuration helpers."""

from __future__ import annotations

from .env import env_bool, env_float, env_int, optional_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .remote import RemoteSystemConfig, get_remote_config
from .storage import (
    DatabaseConfig,
    StorageConfig,
    get_database_config,
    get_http_cache_path,
    get_storage_config,
)
from .sync import SyncConfig, get_sync_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "RemoteSystemConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "SyncConfig",
    "configure_logging",
    "env_bool",
    "env_float",
    "env_int",
    "get_database_config",
    "get_http_cache_path",
    "get_remote_config",
    "get_storage_config",
    "get_sync_config",
    "optional_env",
    "require_env_vars",
]
