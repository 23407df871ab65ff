"""
Response dispatch.

Applies a parsed CGI result to an outbound response sink.
"""

import logging
from typing import Dict, List, Optional, Protocol, runtime_checkable

from starlette.responses import Response

from cgibridge.gateway.core.response_parser import STATUS_HEADER
from cgibridge.gateway.models.result import CgiResult

logger = logging.getLogger("gateway.dispatcher")

DEFAULT_STATUS_CODE = 200


@runtime_checkable
class ResponseSink(Protocol):
    """Outbound response the host integration lets the handler write to."""

    status_code: int

    def set_header(self, name: str, values: List[str]) -> None: ...

    def end(self, body: str) -> None: ...


class BufferedResponseSink:
    """
    Sink that collects the response and converts it into a Starlette Response.
    """

    def __init__(self):
        self.status_code: int = DEFAULT_STATUS_CODE
        self.headers: Dict[str, List[str]] = {}
        self.body: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.body is not None

    def set_header(self, name: str, values: List[str]) -> None:
        if self.finished:
            raise RuntimeError("Response already finished")
        self.headers[name] = list(values)

    def end(self, body: str) -> None:
        if self.finished:
            raise RuntimeError("Response already finished")
        self.body = body

    def to_response(self) -> Response:
        if not self.finished:
            raise RuntimeError("Response not finished")
        response = Response(content=self.body, status_code=self.status_code)
        for name, values in self.headers.items():
            # Starlette computes content-length from the encoded body.
            if name.lower() == "content-length":
                continue
            for value in values:
                response.headers.append(name, value)
        return response


def dispatch(result: CgiResult, sink: Optional[ResponseSink] = None) -> CgiResult:
    """
    Write the result onto the sink, if any, and hand the result back.

    The Status pseudo-header sets the status code and is not forwarded.
    """
    if sink is None:
        return result

    sink.status_code = (
        result.status_code if result.status_code is not None else DEFAULT_STATUS_CODE
    )
    for name, values in result.multi_headers.items():
        if name == STATUS_HEADER:
            continue
        sink.set_header(name, values)
    sink.end(result.body)

    logger.debug(
        "Response dispatched",
        extra={"status": sink.status_code, "header_count": len(result.multi_headers)},
    )
    return result
