"""
Starlette request adapter.

Builds the framework-independent RequestView consumed by the CGI handler.
"""

from typing import Dict, Optional

from starlette.requests import Request

from ..models.request import RawBody, RequestView, StreamBody


def collapse_headers(request: Request) -> Dict[str, str]:
    """
    Collapse repeated headers into one value per name.

    Cookies are joined with "; ", everything else with ", ".
    """
    collapsed: Dict[str, str] = {}
    for name in request.headers.keys():
        if name in collapsed:
            continue
        values = request.headers.getlist(name)
        separator = "; " if name == "cookie" else ", "
        collapsed[name] = separator.join(values)
    return collapsed


def request_view_from_starlette(request: Request, body: Optional[bytes] = None) -> RequestView:
    """
    Args:
        request: incoming Starlette/FastAPI request
        body: already-read body; when omitted the request stream is piped

    Returns:
        RequestView snapshot of the request
    """
    server = request.scope.get("server") or (None, None)
    query_string = request.scope.get("query_string", b"").decode("latin-1")

    return RequestView(
        method=request.method,
        path=request.url.path,
        query_string=query_string,
        headers=collapse_headers(request),
        remote_addr=request.client.host if request.client else None,
        server_addr=server[0],
        server_port=server[1],
        http_version=request.scope.get("http_version", "1.1"),
        scheme=request.url.scheme,
        body=RawBody(data=body) if body is not None else StreamBody(source=request.stream()),
    )
