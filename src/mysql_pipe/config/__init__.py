from mysql_pipe.config.loader import load_resource_config, load_yaml, resolve_env_vars
from mysql_pipe.config.models import (
    ConfigurationError,
    ResourceConfig,
    ResourceKind,
    column_key,
)

__all__ = [
    "ConfigurationError",
    "ResourceConfig",
    "ResourceKind",
    "column_key",
    "load_resource_config",
    "load_yaml",
    "resolve_env_vars",
]
