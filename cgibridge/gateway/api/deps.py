"""
Dependency Injection for Gateway API.

Manage request handler dependencies using FastAPI Depends.
"""

from typing import Annotated

from fastapi import Depends, Request

from ..core.request_adapter import request_view_from_starlette
from ..models.request import RequestView
from ..services.handler import CgiHandler


# ==========================================
# 1. Service Accessors
# ==========================================


def get_cgi_handler(request: Request) -> CgiHandler:
    return request.app.state.cgi_handler


# Service Dependency Type Aliases
CgiHandlerDep = Annotated[CgiHandler, Depends(get_cgi_handler)]


# ==========================================
# 2. Logic Dependencies (Request Translation)
# ==========================================


async def get_request_view(request: Request) -> RequestView:
    """
    Snapshot the incoming request; the body stays a stream piped into the interpreter.
    """
    return request_view_from_starlette(request)


# Logic Dependency Type Aliases
RequestViewDep = Annotated[RequestView, Depends(get_request_view)]
