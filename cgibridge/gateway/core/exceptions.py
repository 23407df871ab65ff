"""
Custom exception classes.

Represent errors related to CGI script execution.
"""

import logging
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

# Sentinel header recorded for header lines that do not match "name: value".
PARSE_ERROR_HEADER = "err"
PARSE_ERROR_VALUE = "Parsing failed"


class CgiGatewayError(Exception):
    """Base exception class for CGI execution."""

    pass


class ConfigurationError(CgiGatewayError):
    """Raised at handler construction when the interpreter or script cannot be used."""

    def __init__(self, field: str, detail: str):
        self.field = field
        self.detail = detail
        super().__init__(f"Invalid handler configuration ({field}): {detail}")


class SpawnError(CgiGatewayError):
    """Raised when the interpreter process cannot be started."""

    def __init__(self, interpreter: str, cause: Exception):
        self.interpreter = interpreter
        self.cause = cause
        super().__init__(f"Failed to start interpreter {interpreter}: {cause}")


class InterpreterFailure(CgiGatewayError):
    """Raised when the interpreter reports `Status: 500`."""

    def __init__(self, status_line: str, err: str = ""):
        self.status_line = status_line
        self.err = err
        message = f"Interpreter failed to process script ({status_line})"
        if err.strip():
            message = f"{message}: {err.strip()}"
        super().__init__(message)


class ExecutionTimeoutError(CgiGatewayError, TimeoutError):
    """Raised when the interpreter exceeds the configured timeout."""

    def __init__(self, timeout: Optional[float]):
        self.timeout = timeout
        super().__init__(f"Interpreter did not finish within {timeout}s")


class ExecutionCancelledError(CgiGatewayError):
    """Raised when the abort signal fires before the interpreter finishes."""

    def __init__(self, detail: str = "Execution aborted"):
        super().__init__(detail)


# ===========================================
# Exception Handlers
# ===========================================


async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler for unhandled exceptions.
    """
    error_detail = str(exc)
    logger.error(
        f"Global exception handler caught: {exc}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal Server Error", "detail": error_detail},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handler for HTTPException.
    """
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handler for validation errors.
    """
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"message": "Validation Error", "detail": str(exc.errors())},
    )
