"""Positional projection of decoded records onto a column list."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from mysql_pipe.codec.decoder import FieldValue

_SCALARS = (str, int, float, bool)


class UnboundValueError(ValueError):
    """Raised when a projected field holds a value no placeholder can bind."""


def project(
    fields: Sequence[str], record: Mapping[str, Any]
) -> tuple[FieldValue, ...]:
    """Return the record's value for each of *fields*, in order.

    Fields missing from the record project to ``None`` so the row is still
    insertable with that column null. Only the projected fields must hold
    scalars; anything else in the record is ignored.
    """
    values = tuple(record.get(name) for name in fields)
    for name, value in zip(fields, values, strict=True):
        if value is not None and not isinstance(value, _SCALARS):
            msg = f"field '{name}' holds a {type(value).__name__}, not a scalar"
            raise UnboundValueError(msg)
    return values
