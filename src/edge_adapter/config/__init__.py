"""
Configuration system for edge-adapter.

This package provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable loading (EDGE_ prefix, optional .env file)
- YAML/TOML file loading
"""

from .base import LogFormat, LogLevel
from .fetch import FetchConfig
from .logging import LoggingConfig
from .runtime import ModulesConfig, RoutingConfig, SecretsConfig
from .settings import Settings, configure, get_settings, load_env, reset_settings

__all__ = [
    # Types
    "LogLevel",
    "LogFormat",
    # Sections
    "ModulesConfig",
    "SecretsConfig",
    "RoutingConfig",
    "FetchConfig",
    "LoggingConfig",
    # Master config
    "Settings",
    # Global functions
    "get_settings",
    "configure",
    "reset_settings",
    "load_env",
]
