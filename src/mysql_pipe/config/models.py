"""Pydantic configuration models for mysql-pipe resources."""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

# bare name, or a backtick-quoted name where a doubled backtick escapes one
_NAME = r"(?:[a-zA-Z_][\w$]*|`(?:[^`]|``)+`)"
_IDENTIFIER = re.compile(_NAME)
_TABLE = re.compile(rf"{_NAME}(?:\.{_NAME})?")


def column_key(name: str) -> str:
    """Record key for a configured column: *name* with backtick quoting removed."""
    if len(name) > 1 and name.startswith("`") and name.endswith("`"):
        return name[1:-1].replace("``", "`")
    return name


class ConfigurationError(ValueError):
    """Raised when a resource cannot be built from its configuration."""


class ResourceKind(StrEnum):
    """Roles a resource can fill in a pipeline."""

    CONSUMER = "consumer"
    TRANSFORMER = "transformer"


class ResourceConfig(BaseModel):
    """Options shared by the ``mysql-table`` and ``mysql-filter`` resources.

    The table and field names are interpolated verbatim into SQL text, so
    they are restricted to bare or backtick-quoted identifiers here and must only ever come
    from configuration, never from record content.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    connection: SecretStr = Field(
        description=(
            "Connection string to a mysql host configured, "
            "having a database with the target table"
        ),
    )
    table: str = Field(description="Table to stick items onto")
    fields: list[str] = Field(
        min_length=1,
        description="Fields to extract and stick onto the table",
    )
    encoding: str = Field(
        default="JSON",
        description=(
            "Encoding that incoming data will be marshaled with. "
            "For now, only JSON is supported"
        ),
    )
    insert_chunk_size: int = Field(
        default=1,
        ge=1,
        alias="insert-chunk-size",
        description="Number of items to insert at once, with a single query",
    )

    @property
    def record_keys(self) -> list[str]:
        """Keys looked up in each decoded record, one per entry of ``fields``."""
        return [column_key(name) for name in self.fields]

    @field_validator("table")
    @classmethod
    def validate_table(cls, v: str) -> str:
        if not _TABLE.fullmatch(v):
            msg = (
                f"table '{v}' must be an identifier, optionally "
                f"schema-qualified (e.g. 'events' or 'analytics.events')"
            )
            raise ValueError(msg)
        return v

    @field_validator("fields")
    @classmethod
    def validate_fields(cls, v: list[str]) -> list[str]:
        for name in v:
            if not _IDENTIFIER.fullmatch(name):
                msg = f"field '{name}' must be a column identifier"
                raise ValueError(msg)
        if len({column_key(name) for name in v}) != len(v):
            msg = f"fields must not repeat a column: {v}"
            raise ValueError(msg)
        return v
