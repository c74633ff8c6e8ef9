"""Unit tests for record decoders and field projection."""

from __future__ import annotations

import pytest

from mysql_pipe.codec.decoder import (
    DecodeError,
    Decoder,
    Encoding,
    JsonDecoder,
    UnsupportedEncodingError,
    decoder_for,
)
from mysql_pipe.codec.projector import UnboundValueError, project
from mysql_pipe.config.models import ConfigurationError


class TestDecoderFor:
    def test_json_resolves(self):
        decoder = decoder_for("JSON")
        assert isinstance(decoder, JsonDecoder)
        assert isinstance(decoder, Decoder)
        assert decoder.encoding == Encoding.JSON

    def test_unknown_encoding_raises(self):
        with pytest.raises(UnsupportedEncodingError, match="no way to decode XML"):
            decoder_for("XML")

    def test_unsupported_encoding_is_config_error(self):
        with pytest.raises(ConfigurationError):
            decoder_for("json")


class TestJsonDecoder:
    def test_decodes_object(self):
        record = JsonDecoder().decode(b'{"id": 7, "name": "Alice", "vip": true}')
        assert record == {"id": 7, "name": "Alice", "vip": True}

    def test_null_values_kept(self):
        assert JsonDecoder().decode(b'{"id": null}') == {"id": None}

    def test_floats(self):
        assert JsonDecoder().decode(b'{"score": 1.5}') == {"score": 1.5}

    def test_null_document_is_empty_record(self):
        assert JsonDecoder().decode(b"null") == {}

    def test_malformed_raises(self):
        with pytest.raises(DecodeError, match="malformed JSON"):
            JsonDecoder().decode(b'{"id": ')

    def test_invalid_utf8_raises(self):
        with pytest.raises(DecodeError):
            JsonDecoder().decode(b"\xff\xfe\xfa")

    @pytest.mark.parametrize("payload", [b"[1, 2]", b'"text"', b"42", b"true"])
    def test_non_object_raises(self, payload: bytes):
        with pytest.raises(DecodeError, match="expected a JSON object"):
            JsonDecoder().decode(payload)

    def test_nested_values_are_kept(self):
        record = JsonDecoder().decode(b'{"id": 1, "tags": ["a"], "meta": {"src": "web"}}')
        assert record == {"id": 1, "tags": ["a"], "meta": {"src": "web"}}

    def test_decode_error_is_not_config_error(self):
        with pytest.raises(DecodeError) as exc_info:
            JsonDecoder().decode(b"{")
        assert not isinstance(exc_info.value, ConfigurationError)


class TestProject:
    def test_orders_by_fields(self):
        record = {"name": "Bob", "id": 2, "extra": "ignored"}
        assert project(["id", "name"], record) == (2, "Bob")

    def test_missing_fields_become_none(self):
        assert project(["id", "email", "name"], {"id": 3}) == (3, None, None)

    def test_length_matches_fields(self):
        fields = ["a", "b", "c", "d"]
        assert len(project(fields, {})) == len(fields)

    def test_explicit_null_and_false_are_preserved(self):
        assert project(["a", "b"], {"a": None, "b": False}) == (None, False)

    def test_decoded_record_projection(self):
        record = decoder_for("JSON").decode(b'{"id": 9}')
        assert project(["id", "name"], record) == (9, None)

    def test_unprojected_nested_values_are_ignored(self):
        record = {"id": 1, "meta": {"src": "web"}, "tags": ["a", "b"]}
        assert project(["id"], record) == (1,)

    @pytest.mark.parametrize("value", [{"src": "web"}, ["a", "b"]])
    def test_projected_nested_value_raises(self, value: object):
        with pytest.raises(UnboundValueError, match="field 'meta' holds a"):
            project(["id", "meta"], {"id": 1, "meta": value})
