"""
Settings master configuration and global helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
from dotenv import find_dotenv, load_dotenv

from ..config_schema import CONFIG_SCHEMA
from ..errors import InvalidConfigError
from .fetch import FetchConfig
from .logging import LoggingConfig
from .runtime import ModulesConfig, RoutingConfig, SecretsConfig

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class Settings:
    """
    Master configuration for the adapter.

    Aggregates all configuration sections into a single object that can be
    loaded from environment variables, files, or constructed programmatically.
    """

    modules: ModulesConfig = field(default_factory=ModulesConfig)
    secrets: SecretsConfig = field(default_factory=SecretsConfig)
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, prefix: str = "EDGE_") -> Settings:
        """
        Load settings from environment variables.

        Example:
            EDGE_PACKAGE_NAME=helix-services
            EDGE_FUNCTION_NAME=my-action
            EDGE_MOUNT_SEGMENTS=2
            EDGE_LOG_LEVEL=DEBUG
        """
        settings = cls()

        # Native module names
        for name in list(vars(settings.modules)):
            if value := os.getenv(f"{prefix}MODULE_{name.upper()}"):
                setattr(settings.modules, name, value)

        # Secret stores
        if store := os.getenv(f"{prefix}ACTION_STORE"):
            settings.secrets.action_store = store
        if store := os.getenv(f"{prefix}PACKAGE_STORE"):
            settings.secrets.package_store = store
        if package := os.getenv(f"{prefix}PACKAGE_NAME"):
            settings.secrets.package_name = package
        if function := os.getenv(f"{prefix}FUNCTION_NAME"):
            settings.secrets.function_name = function
        if binding := os.getenv(f"{prefix}PACKAGE_BINDING"):
            settings.secrets.package_binding = binding

        # Routing
        if segments := os.getenv(f"{prefix}MOUNT_SEGMENTS"):
            settings.routing = RoutingConfig(mount_segments=int(segments))

        # Fetch
        if decompress := os.getenv(f"{prefix}FETCH_DECOMPRESS"):
            settings.fetch.default_decompress = decompress.lower() in _TRUE_VALUES
        if timeout := os.getenv(f"{prefix}FETCH_TIMEOUT"):
            settings.fetch = FetchConfig(
                default_decompress=settings.fetch.default_decompress,
                timeout=float(timeout),
            )

        # Logging
        if level := os.getenv(f"{prefix}LOG_LEVEL"):
            settings.logging = LoggingConfig(level=level.upper(), format=settings.logging.format)  # type: ignore[arg-type]
        if log_format := os.getenv(f"{prefix}LOG_FORMAT"):
            settings.logging = LoggingConfig(level=settings.logging.level, format=log_format.lower())  # type: ignore[arg-type]

        return settings

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """
        Load settings from a YAML or TOML file.

        Args:
            path: Path to configuration file (.yaml, .yml, or .toml)

        Returns:
            Settings object with values from file
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            try:
                import yaml  # type: ignore[import-untyped]
            except ImportError as exc:
                raise ImportError("PyYAML is required for YAML config files: pip install pyyaml") from exc
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            try:
                import tomllib
            except ImportError:
                try:
                    import tomli as tomllib
                except ImportError as exc:
                    raise ImportError("tomli is required for TOML config files: pip install tomli") from exc
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {suffix}")

        return cls._from_dict(data)

    @classmethod
    def default(cls) -> Settings:
        return cls()

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Settings:
        """
        Create Settings from a dictionary.

        The dictionary is validated against the configuration schema first.
        """
        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise InvalidConfigError(f"Configuration validation failed: {e.message}", cause=e) from e

        try:
            return cls(
                modules=ModulesConfig(**data.get("modules", {})),
                secrets=SecretsConfig(**data.get("secrets", {})),
                routing=RoutingConfig(**data.get("routing", {})),
                fetch=FetchConfig(**data.get("fetch", {})),
                logging=LoggingConfig(**data.get("logging", {})),
            )
        except (TypeError, ValueError) as e:
            raise InvalidConfigError(f"Configuration validation failed: {e}", cause=e) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary."""
        import dataclasses

        return dataclasses.asdict(self)


# =============================================================================
# Global Settings & Helpers
# =============================================================================

_global_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating from the environment if needed."""
    global _global_settings
    if _global_settings is None:
        _global_settings = Settings.from_env()
    return _global_settings


def configure(settings: Settings | None = None, **kwargs) -> Settings:
    """
    Configure global settings.

    Args:
        settings: Settings object to use globally
        **kwargs: Override specific sections (e.g. ``secrets=SecretsConfig(...)``)

    Returns:
        The configured Settings object
    """
    global _global_settings

    if settings is not None:
        _global_settings = settings
    elif _global_settings is None:
        _global_settings = Settings.from_env()

    for key, value in kwargs.items():
        if not hasattr(_global_settings, key):
            raise InvalidConfigError(f"Unknown settings section: {key}")
        setattr(_global_settings, key, value)

    return _global_settings


def reset_settings() -> None:
    """Drop the global settings so the next access reloads them."""
    global _global_settings
    _global_settings = None


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = ["Settings", "get_settings", "configure", "reset_settings", "load_env"]
