"""
Invocation result models.

Standardizes the output of the CGI execution pipeline.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ProcessOutput(BaseModel):
    """Raw streams captured from one interpreter process."""

    stdout: bytes = b""
    stderr: bytes = b""
    returncode: Optional[int] = None


class CgiResult(BaseModel):
    """
    Parsed CGI response.

    `headers` keeps the last value of each header name, `multi_headers` keeps
    every value in output order (e.g. several Set-Cookie lines).
    """

    headers: Dict[str, str] = Field(default_factory=dict)
    multi_headers: Dict[str, List[str]] = Field(default_factory=dict)
    body: str = ""
    raw: str = ""
    err: str = ""
    status_code: Optional[int] = None

    @property
    def has_parse_errors(self) -> bool:
        """Returns True if a header line could not be parsed."""
        from ..core.exceptions import PARSE_ERROR_HEADER

        return PARSE_ERROR_HEADER in self.headers
