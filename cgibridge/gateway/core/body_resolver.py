"""
Request body resolution.

Decides how the interpreter receives the request body and which
CONTENT_TYPE / CONTENT_LENGTH accompany it.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

from ..models.request import (
    FormBody,
    RawBody,
    RequestBody,
    RequestView,
    StreamBody,
    StructuredBody,
)

logger = logging.getLogger("gateway.body_resolver")

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"

# Characters left unescaped by URI component encoding besides alphanumerics and "-_.".
URI_COMPONENT_SAFE = "!~*'()"


@dataclass(frozen=True)
class ResolvedBody:
    """
    Exactly one of `data` and `stream` is set.

    `data` is written to stdin in full before it is closed; `stream` is piped
    into stdin as it arrives.
    """

    data: Optional[bytes] = b""
    stream: Any = None
    content_type: Optional[str] = None
    content_length: Optional[str] = None

    @property
    def is_stream(self) -> bool:
        return self.stream is not None


def is_form_content_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    return content_type.split(";", 1)[0].strip().lower() == FORM_CONTENT_TYPE


def encode_uri_component(value: str) -> str:
    return quote(value, safe=URI_COMPONENT_SAFE)


def encode_form_fields(fields) -> bytes:
    """URL-encode key/value pairs with spaces written as '+'."""
    encoded = "&".join(
        f"{encode_uri_component(key)}={encode_uri_component(value)}" for key, value in fields
    )
    return encoded.replace("%20", "+").encode("utf-8")


def body_from_parsed(value: Any, content_type: Optional[str] = None) -> RequestBody:
    """
    Build a body variant from a body already parsed by upstream middleware.

    Strings and bytes stay raw; a mapping posted as a URL-encoded form becomes
    form fields; anything else is treated as structured JSON data.
    """
    if value is None:
        return RawBody()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return RawBody(data=bytes(value))
    if isinstance(value, str):
        return RawBody(data=value.encode("utf-8"))
    if hasattr(value, "items") and is_form_content_type(content_type):
        fields = []
        for key, item in value.items():
            if isinstance(item, (list, tuple)):
                fields.extend((key, v) for v in item)
            else:
                fields.append((key, item))
        return FormBody(fields=fields)
    return StructuredBody(value=value)


def _is_empty_structure(value: Any) -> bool:
    return value is None or (isinstance(value, (dict, list, tuple)) and not value)


def resolve_body(request: RequestView) -> ResolvedBody:
    """
    Resolve the request body into stdin input and content metadata.
    """
    content_type = request.header("content-type")
    content_length = request.header("content-length")
    body = request.body

    if isinstance(body, StreamBody):
        return ResolvedBody(
            data=None,
            stream=body.source,
            content_type=content_type,
            content_length=content_length,
        )

    if isinstance(body, RawBody):
        if content_length is None and body.data:
            content_length = str(len(body.data))
        return ResolvedBody(
            data=body.data, content_type=content_type, content_length=content_length
        )

    if isinstance(body, FormBody):
        if not body.fields:
            return ResolvedBody(content_type=content_type, content_length=content_length)
        data = encode_form_fields(body.fields)
        return ResolvedBody(
            data=data, content_type=content_type, content_length=str(len(data))
        )

    if isinstance(body, StructuredBody):
        if _is_empty_structure(body.value):
            return ResolvedBody(content_type=content_type, content_length=content_length)
        data = json.dumps(
            body.value, ensure_ascii=False, separators=(",", ":"), default=str
        ).encode("utf-8")
        if content_type and content_type.split(";", 1)[0].strip().lower() != JSON_CONTENT_TYPE:
            logger.debug(
                "Re-serialized structured body as JSON",
                extra={"original_content_type": content_type},
            )
        return ResolvedBody(
            data=data, content_type=JSON_CONTENT_TYPE, content_length=str(len(data))
        )

    raise TypeError(f"Unsupported request body: {type(body).__name__}")
