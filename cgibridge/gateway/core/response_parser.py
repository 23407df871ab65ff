"""
CGI response parsing.

Turns captured interpreter output into headers, body and status.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..models.result import CgiResult, ProcessOutput
from .exceptions import PARSE_ERROR_HEADER, PARSE_ERROR_VALUE, InterpreterFailure

logger = logging.getLogger("gateway.response_parser")

STATUS_HEADER = "Status"
INTERPRETER_FAILURE_STATUS = 500


def decode_stream(data: bytes) -> str:
    """Decode captured output and normalize line endings."""
    return data.decode("utf-8", errors="replace").replace("\r\n", "\n")


def split_response(raw: str) -> Tuple[Optional[str], str]:
    """
    Split at the first blank line.

    Without a blank line there is no header block (None) and the whole text is body.
    """
    head, sep, body = raw.partition("\n\n")
    if not sep:
        return None, raw
    return head, body


def parse_header_block(head: str) -> Tuple[Dict[str, str], Dict[str, List[str]]]:
    headers: Dict[str, str] = {}
    multi_headers: Dict[str, List[str]] = {}
    # An empty block before the blank line is itself a malformed header line.
    for line in head.split("\n"):
        name, sep, value = line.partition(": ")
        if not sep:
            logger.warning(
                "Malformed CGI header line",
                extra={"snippet": line[:200]},
            )
            name, value = PARSE_ERROR_HEADER, PARSE_ERROR_VALUE
        headers[name] = value
        multi_headers.setdefault(name, []).append(value)
    return headers, multi_headers


def parse_status(value: str) -> Optional[int]:
    token = value.strip().split(" ", 1)[0]
    try:
        return int(token)
    except ValueError:
        logger.warning("Ignoring non-numeric CGI Status header", extra={"status": value})
        return None


def parse_cgi_response(raw: str, err: str = "") -> CgiResult:
    """
    Parse normalized CGI output.

    Args:
        raw: interpreter stdout with "\\n" line endings
        err: interpreter stderr, attached to the result and to failures

    Returns:
        CgiResult with headers, body, raw text and the parsed Status code

    Raises:
        InterpreterFailure: the output carries `Status: 500`
    """
    head, body = split_response(raw)
    headers, multi_headers = parse_header_block(head) if head is not None else ({}, {})

    status_code = None
    if STATUS_HEADER in headers:
        status_code = parse_status(headers[STATUS_HEADER])
        if status_code == INTERPRETER_FAILURE_STATUS:
            raise InterpreterFailure(headers[STATUS_HEADER], err)

    return CgiResult(
        headers=headers,
        multi_headers=multi_headers,
        body=body,
        raw=raw,
        err=err,
        status_code=status_code,
    )


def parse_process_output(output: ProcessOutput) -> CgiResult:
    return parse_cgi_response(decode_stream(output.stdout), decode_stream(output.stderr))
