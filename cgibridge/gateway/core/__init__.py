"""
Core logic package.

Provides the CGI protocol pieces: environment construction, body
resolution and response parsing.
"""

from .abort import AbortSignal
from .exceptions import (
    CgiGatewayError,
    ConfigurationError,
    ExecutionCancelledError,
    ExecutionTimeoutError,
    InterpreterFailure,
    SpawnError,
)

__all__ = [
    "AbortSignal",
    "CgiGatewayError",
    "ConfigurationError",
    "ExecutionCancelledError",
    "ExecutionTimeoutError",
    "InterpreterFailure",
    "SpawnError",
]
