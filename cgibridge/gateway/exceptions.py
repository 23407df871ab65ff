"""
Where: cgibridge/gateway/exceptions.py
What: Gateway exception handler registration and custom HTTP mappings.
Why: Keep error handling setup isolated from route and lifecycle concerns.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import (
    ExecutionCancelledError,
    ExecutionTimeoutError,
    InterpreterFailure,
    SpawnError,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)


async def interpreter_failure_handler(request: Request, exc: InterpreterFailure):
    return JSONResponse(
        status_code=502,
        content={"message": "Bad Gateway", "detail": str(exc)},
    )


async def spawn_error_handler(request: Request, exc: SpawnError):
    return JSONResponse(
        status_code=502,
        content={"message": "Bad Gateway", "detail": str(exc)},
    )


async def execution_timeout_handler(request: Request, exc: ExecutionTimeoutError):
    return JSONResponse(
        status_code=504,
        content={"message": "Gateway Timeout", "detail": str(exc)},
    )


async def execution_cancelled_handler(request: Request, exc: ExecutionCancelledError):
    return JSONResponse(
        status_code=503,
        content={"message": "Service Unavailable", "detail": str(exc)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(InterpreterFailure, interpreter_failure_handler)
    app.add_exception_handler(SpawnError, spawn_error_handler)
    app.add_exception_handler(ExecutionTimeoutError, execution_timeout_handler)
    app.add_exception_handler(ExecutionCancelledError, execution_cancelled_handler)
