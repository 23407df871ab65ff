"""
Services package.

Provides process execution, response dispatch and the handler factory.
"""

from .dispatcher import BufferedResponseSink, ResponseSink, dispatch
from .handler import CgiHandler, create_handler
from .runner import SubprocessRunner

__all__ = [
    "BufferedResponseSink",
    "ResponseSink",
    "dispatch",
    "CgiHandler",
    "create_handler",
    "SubprocessRunner",
]
