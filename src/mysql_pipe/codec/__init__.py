from mysql_pipe.codec.decoder import (
    DecodedRecord,
    DecodeError,
    Decoder,
    Encoding,
    FieldValue,
    UnsupportedEncodingError,
    decoder_for,
)
from mysql_pipe.codec.projector import UnboundValueError, project

__all__ = [
    "DecodeError",
    "DecodedRecord",
    "Decoder",
    "Encoding",
    "FieldValue",
    "UnboundValueError",
    "UnsupportedEncodingError",
    "decoder_for",
    "project",
]
