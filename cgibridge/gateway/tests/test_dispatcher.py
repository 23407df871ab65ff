import pytest

from cgibridge.gateway.models.result import CgiResult
from cgibridge.gateway.services.dispatcher import (
    BufferedResponseSink,
    ResponseSink,
    dispatch,
)


def _result(**kwargs) -> CgiResult:
    defaults = dict(
        headers={"Content-Type": "text/html", "Set-Cookie": "b=2"},
        multi_headers={"Content-Type": ["text/html"], "Set-Cookie": ["a=1", "b=2"]},
        body="<h1>hi</h1>",
    )
    defaults.update(kwargs)
    return CgiResult(**defaults)


def test_buffered_sink_satisfies_protocol():
    assert isinstance(BufferedResponseSink(), ResponseSink)


def test_dispatch_without_sink_returns_result():
    result = _result()

    assert dispatch(result) is result


def test_dispatch_writes_headers_and_body():
    sink = BufferedResponseSink()

    dispatch(_result(), sink)

    assert sink.status_code == 200
    assert sink.headers == {"Content-Type": ["text/html"], "Set-Cookie": ["a=1", "b=2"]}
    assert sink.body == "<h1>hi</h1>"
    assert sink.finished


def test_status_pseudo_header_is_not_forwarded():
    result = _result(
        headers={"Status": "302 Found", "Location": "/login"},
        multi_headers={"Status": ["302 Found"], "Location": ["/login"]},
        body="",
        status_code=302,
    )
    sink = BufferedResponseSink()

    dispatch(result, sink)

    assert sink.status_code == 302
    assert sink.headers == {"Location": ["/login"]}


def test_sink_rejects_writes_after_end():
    sink = BufferedResponseSink()
    sink.end("done")

    with pytest.raises(RuntimeError):
        sink.set_header("X-Late", ["1"])
    with pytest.raises(RuntimeError):
        sink.end("again")


def test_to_response_requires_finished_sink():
    with pytest.raises(RuntimeError):
        BufferedResponseSink().to_response()


def test_to_response_keeps_repeated_headers():
    sink = BufferedResponseSink()
    dispatch(_result(multi_headers={"Set-Cookie": ["a=1", "b=2"], "Content-Length": ["999"]}), sink)

    response = sink.to_response()

    assert response.headers.getlist("set-cookie") == ["a=1", "b=2"]
    assert response.headers["content-length"] == str(len("<h1>hi</h1>"))
    assert response.body == b"<h1>hi</h1>"
    assert response.status_code == 200
