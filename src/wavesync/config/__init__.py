"""Application configuration helpers."""

from __future__ import annotations

from .controller import ControllerConfig, get_controller_config
from .env import env_bool, env_float, optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .source import SourceConfig, get_source_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "ControllerConfig",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "SourceConfig",
    "StorageConfig",
    "configure_logging",
    "env_bool",
    "env_float",
    "get_controller_config",
    "get_database_config",
    "get_source_config",
    "get_storage_config",
    "optional_env_var",
    "require_env_vars",
]
