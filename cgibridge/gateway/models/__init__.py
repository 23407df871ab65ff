"""
Data model definitions package.

Aggregates Pydantic models for use in other modules.
"""

from .options import EnvironmentOverrides, HandlerConfig, HandlerOptions
from .request import (
    FormBody,
    RawBody,
    RequestBody,
    RequestView,
    StreamBody,
    StructuredBody,
)
from .result import CgiResult, ProcessOutput

__all__ = [
    "EnvironmentOverrides",
    "HandlerConfig",
    "HandlerOptions",
    "FormBody",
    "RawBody",
    "RequestBody",
    "RequestView",
    "StreamBody",
    "StructuredBody",
    "CgiResult",
    "ProcessOutput",
]
