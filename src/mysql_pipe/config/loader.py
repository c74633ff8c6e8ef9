"""YAML + environment variable config loader.

A config file either holds the options of a single resource at top level,
or one mapping per resource name::

    mysql-table:
      connection: ${MYSQL_DSN}
      table: events
      fields: [id, name]
    mysql-filter:
      connection: ${MYSQL_DSN}
      table: events
      fields: [id]

Pass ``section`` to pick one mapping out of the second layout.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import ValidationError

from mysql_pipe.config.models import ConfigurationError, ResourceConfig

# ${VAR} or ${VAR:-default}
_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-((?:[^}\\]|\\.)*))?}")


def _substitute(value: str) -> str:
    def _lookup(match: re.Match[str]) -> str:
        name, fallback = match.group(1), match.group(2)
        if name in os.environ:
            return os.environ[name]
        if fallback is None:
            msg = f"Environment variable '{name}' is not set and no default provided"
            raise ConfigurationError(msg)
        return fallback.replace("\\}", "}")

    return _ENV_PATTERN.sub(_lookup, value)


def resolve_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR} and ${VAR:-default} in parsed YAML data."""
    if isinstance(data, str):
        return _substitute(data)
    if isinstance(data, list):
        return [resolve_env_vars(item) for item in data]
    if isinstance(data, dict):
        return {key: resolve_env_vars(value) for key, value in data.items()}
    return data


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Read a YAML mapping from *path* with environment references expanded."""
    p = Path(path)
    if not p.is_file():
        msg = f"Config file not found: {p}"
        raise FileNotFoundError(msg)
    try:
        data = yaml.safe_load(p.read_text())
    except yaml.YAMLError as exc:
        where = ""
        mark = getattr(exc, "problem_mark", None)
        if mark is not None:
            where = f" at line {mark.line + 1}, column {mark.column + 1}"
        msg = f"Failed to parse YAML in {p}{where}: {exc}"
        raise ConfigurationError(msg) from exc
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping at top level in {p}, got {type(data).__name__}"
        raise ConfigurationError(msg)
    return cast(dict[str, Any], resolve_env_vars(data))


def load_resource_config(
    path: str | Path,
    *,
    section: str | None = None,
) -> ResourceConfig:
    """Load one resource's options and validate them.

    Options left out of the file take the defaults declared on
    :class:`ResourceConfig`.
    """
    data = load_yaml(path)
    if section is not None:
        picked = data.get(section)
        if not isinstance(picked, dict):
            msg = f"No '{section}' mapping in {path}"
            raise ConfigurationError(msg)
        data = picked
    try:
        return ResourceConfig.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid resource config ({path}):\n{exc}"
        raise ConfigurationError(msg) from exc
