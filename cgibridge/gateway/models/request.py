"""
Inbound request models.

Decouples the CGI core from the HTTP framework's request object.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RawBody(BaseModel):
    """Body already buffered as bytes (text is encoded as UTF-8)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["raw"] = "raw"
    data: bytes = b""


class FormBody(BaseModel):
    """Buffered structured body whose original content-type is URL-encoded form."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["form"] = "form"
    fields: List[Tuple[str, str]] = Field(default_factory=list)

    @field_validator("fields", mode="before")
    @classmethod
    def _stringify_values(cls, value: Any) -> Any:
        if isinstance(value, dict):
            value = list(value.items())
        return [(str(k), v if isinstance(v, str) else str(v)) for k, v in value]


class StructuredBody(BaseModel):
    """Buffered structured body sent to the interpreter as JSON."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["structured"] = "structured"
    value: Any = None


class StreamBody(BaseModel):
    """
    Body that has not been read yet.

    `source` is an async iterable of bytes, a sync iterable of bytes,
    or a file-like object with a `read()` method.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["stream"] = "stream"
    source: Any


RequestBody = Annotated[
    Union[RawBody, FormBody, StructuredBody, StreamBody], Field(discriminator="kind")
]


class RequestView(BaseModel):
    """
    Read-only snapshot of an inbound HTTP request.

    Header names are stored lower-cased. A header value is a string, or a list
    for structured/multi-valued headers which are not exposed as HTTP_* variables.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    method: str = "GET"
    path: str = "/"
    query_string: Optional[str] = None
    query_params: Optional[List[Tuple[str, str]]] = None
    headers: Dict[str, Union[str, List[str]]] = Field(default_factory=dict)
    remote_addr: Optional[str] = None
    server_addr: Optional[str] = None
    server_port: Optional[int] = None
    http_version: str = "1.1"
    scheme: str = "http"
    body: RequestBody = Field(default_factory=RawBody)

    @field_validator("headers", mode="before")
    @classmethod
    def _normalize_headers(cls, value: Any) -> Any:
        if value is None:
            return {}
        items = value.items() if hasattr(value, "items") else value
        normalized: Dict[str, Any] = {}
        for name, header in items:
            if isinstance(header, (int, float)) and not isinstance(header, bool):
                header = str(header)
            normalized[str(name).lower()] = header
        return normalized

    @field_validator("query_params", mode="before")
    @classmethod
    def _normalize_query_params(cls, value: Any) -> Any:
        if value is None or not hasattr(value, "items"):
            return value
        pairs = []
        for key, item in value.items():
            if isinstance(item, (list, tuple)):
                pairs.extend((str(key), str(v)) for v in item)
            else:
                pairs.append((str(key), str(item)))
        return pairs

    @property
    def is_secure(self) -> bool:
        return self.scheme.lower() == "https"

    def header(self, name: str) -> Optional[str]:
        """Return a scalar header value, or None when missing or structured."""
        value = self.headers.get(name.lower())
        return value if isinstance(value, str) else None
