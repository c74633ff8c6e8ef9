"""Record decoders, selected once per resource by encoding name."""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any, Protocol, TypeAlias, runtime_checkable

from mysql_pipe.config.models import ConfigurationError

FieldValue: TypeAlias = str | int | float | bool | None
DecodedRecord: TypeAlias = dict[str, Any]


class Encoding(StrEnum):
    """Supported record encodings."""

    JSON = "JSON"


class UnsupportedEncodingError(ConfigurationError):
    """Raised at setup when no decoder exists for an encoding name."""


class DecodeError(ValueError):
    """Raised when a record's bytes cannot be decoded."""


@runtime_checkable
class Decoder(Protocol):
    """Turns one serialized record into a field mapping."""

    encoding: Encoding

    def decode(self, data: bytes) -> DecodedRecord: ...


class JsonDecoder:
    """Decodes a JSON object. Nested values are kept as parsed.

    A bare ``null`` document decodes to an empty record.
    """

    encoding = Encoding.JSON

    def decode(self, data: bytes) -> DecodedRecord:
        try:
            parsed = json.loads(data)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            msg = f"malformed JSON record: {exc}"
            raise DecodeError(msg) from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            msg = f"expected a JSON object, got {type(parsed).__name__}"
            raise DecodeError(msg)
        return parsed


_DECODER_REGISTRY: dict[Encoding, type[Decoder]] = {
    Encoding.JSON: JsonDecoder,
}


def decoder_for(name: str) -> Decoder:
    """Resolve the decoder for *name*.

    Adding an encoding = one class + one dict entry in ``_DECODER_REGISTRY``.
    """
    try:
        encoding = Encoding(name)
    except ValueError:
        msg = f"no way to decode {name}"
        raise UnsupportedEncodingError(msg) from None
    return _DECODER_REGISTRY[encoding]()
