from urllib.parse import parse_qsl

import pytest

from cgibridge.gateway.core.body_resolver import (
    JSON_CONTENT_TYPE,
    body_from_parsed,
    encode_form_fields,
    is_form_content_type,
    resolve_body,
)
from cgibridge.gateway.models.request import (
    FormBody,
    RawBody,
    RequestView,
    StreamBody,
    StructuredBody,
)

FORM = "application/x-www-form-urlencoded"


def _request(body, content_type=None, content_length=None):
    headers = {}
    if content_type:
        headers["content-type"] = content_type
    if content_length:
        headers["content-length"] = content_length
    return RequestView(method="POST", headers=headers, body=body)


class TestRawBody:
    def test_bytes_are_used_verbatim_with_original_headers(self):
        resolved = resolve_body(_request(RawBody(data=b"a=1"), "text/plain", "3"))

        assert resolved.data == b"a=1"
        assert resolved.stream is None
        assert resolved.content_type == "text/plain"
        assert resolved.content_length == "3"

    def test_length_computed_when_header_missing(self):
        resolved = resolve_body(_request(RawBody(data="héllo")))

        assert resolved.data == "héllo".encode("utf-8")
        assert resolved.content_length == "6"
        assert resolved.content_type is None

    def test_empty_body_has_no_length(self):
        resolved = resolve_body(RequestView())

        assert resolved.data == b""
        assert resolved.content_length is None
        assert not resolved.is_stream


class TestFormBody:
    def test_form_fields_round_trip(self):
        fields = [("name", "John Smith"), ("city", "São Paulo"), ("expr", "1+1=2&x"), ("n", "7")]

        resolved = resolve_body(_request(FormBody(fields=fields), FORM + "; charset=UTF-8", "999"))

        text = resolved.data.decode("ascii")
        assert parse_qsl(text, keep_blank_values=True) == fields
        assert resolved.content_length == str(len(resolved.data))
        assert resolved.content_type == FORM + "; charset=UTF-8"

    def test_spaces_are_encoded_as_plus(self):
        data = encode_form_fields([("greeting", "hello big world")])

        assert data == b"greeting=hello+big+world"
        assert b"%20" not in data

    def test_literal_plus_is_escaped(self):
        assert encode_form_fields([("sum", "1+1")]) == b"sum=1%2B1"

    def test_non_string_values_are_stringified(self):
        body = FormBody(fields={"count": 3, "flag": True})

        assert body.fields == [("count", "3"), ("flag", "True")]

    def test_empty_form_keeps_original_headers(self):
        resolved = resolve_body(_request(FormBody(fields=[]), FORM, "0"))

        assert resolved.data == b""
        assert resolved.content_length == "0"


class TestStructuredBody:
    @pytest.mark.parametrize("content_type", [None, "text/plain", FORM, "application/xml"])
    def test_content_type_is_always_json(self, content_type):
        resolved = resolve_body(_request(StructuredBody(value={"a": [1, 2]}), content_type))

        assert resolved.content_type == JSON_CONTENT_TYPE
        assert resolved.data == b'{"a":[1,2]}'
        assert resolved.content_length == "11"

    def test_unicode_is_kept(self):
        resolved = resolve_body(_request(StructuredBody(value=["ü"])))

        assert resolved.data == '["ü"]'.encode("utf-8")
        assert resolved.content_length == str(len(resolved.data))

    def test_empty_structure_sends_nothing(self):
        resolved = resolve_body(_request(StructuredBody(value={}), "application/json", "2"))

        assert resolved.data == b""
        assert resolved.content_type == "application/json"


class TestStreamBody:
    def test_stream_is_not_read(self):
        chunks = iter([b"never", b"read"])

        resolved = resolve_body(_request(StreamBody(source=chunks), "text/plain", "9"))

        assert resolved.is_stream
        assert resolved.data is None
        assert resolved.stream is chunks
        assert next(chunks) == b"never"
        assert resolved.content_length == "9"


class TestBodyFromParsed:
    def test_text_and_bytes_become_raw(self):
        assert body_from_parsed("abc") == RawBody(data=b"abc")
        assert body_from_parsed(b"\x00\x01") == RawBody(data=b"\x00\x01")
        assert body_from_parsed(None) == RawBody()

    def test_mapping_with_form_content_type_becomes_form(self):
        body = body_from_parsed({"a": "1", "b": ["2", "3"]}, FORM)

        assert body == FormBody(fields=[("a", "1"), ("b", "2"), ("b", "3")])

    def test_mapping_with_other_content_type_becomes_structured(self):
        assert body_from_parsed({"a": 1}, "application/json") == StructuredBody(value={"a": 1})
        assert body_from_parsed([1, 2]) == StructuredBody(value=[1, 2])

    def test_form_detection_ignores_parameters_and_case(self):
        assert is_form_content_type("Application/X-WWW-Form-Urlencoded; charset=utf-8")
        assert not is_form_content_type("multipart/form-data")
        assert not is_form_content_type(None)
