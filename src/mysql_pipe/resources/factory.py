"""Resource registry: maps resource names to their classes and roles."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mysql_pipe.config.models import ResourceConfig, ResourceKind
from mysql_pipe.resources.base import Consumer, Transformer
from mysql_pipe.resources.gate import DeduplicationGate
from mysql_pipe.resources.sink import IngestionSink

PLUGIN_NAME = "mysql"


@dataclass(frozen=True)
class ResourceSpec:
    name: str
    kind: ResourceKind
    cls: type


_RESOURCE_REGISTRY: dict[str, ResourceSpec] = {
    "mysql-table": ResourceSpec("mysql-table", ResourceKind.CONSUMER, IngestionSink),
    "mysql-filter": ResourceSpec(
        "mysql-filter", ResourceKind.TRANSFORMER, DeduplicationGate
    ),
}


def resource_names() -> list[str]:
    return sorted(_RESOURCE_REGISTRY)


def resource_kind(name: str) -> ResourceKind:
    return _lookup(name).kind


def _lookup(name: str) -> ResourceSpec:
    spec = _RESOURCE_REGISTRY.get(name)
    if spec is None:
        msg = f"Unknown resource: {name} (expected one of {resource_names()})"
        raise ValueError(msg)
    return spec


def create_resource(name: str, config: ResourceConfig) -> Consumer | Transformer:
    """Create a resource from configuration.

    Adding a resource = one class + one dict entry in ``_RESOURCE_REGISTRY``.
    """
    return _lookup(name).cls(config)  # type: ignore[no-any-return]


def describe_options() -> list[dict[str, Any]]:
    """Options recognized by every resource, as name/required/default/help."""
    options: list[dict[str, Any]] = []
    for field_name, info in ResourceConfig.model_fields.items():
        required = info.is_required()
        options.append(
            {
                "name": info.alias or field_name,
                "required": required,
                "default": None if required else info.default,
                "description": info.description or "",
            }
        )
    return options
