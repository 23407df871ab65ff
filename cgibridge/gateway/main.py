"""
CGI Gateway - serves a CGI script behind FastAPI

Translates every request into a CGI/1.1 invocation of the configured
interpreter and returns the parsed script output.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI

from .api.deps import CgiHandlerDep, RequestViewDep
from .config import config
from .core.logging_config import setup_logging
from .exceptions import register_exception_handlers
from .lifecycle import manage_lifespan
from .middleware import request_context_middleware
from .services.dispatcher import BufferedResponseSink

# Logger setup
setup_logging()
logger = logging.getLogger("gateway.main")

CGI_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with manage_lifespan(app, config):
        yield


app = FastAPI(title="CGI Gateway", version="1.0.0", lifespan=lifespan, root_path=config.root_path)

app.middleware("http")(request_context_middleware)
register_exception_handlers(app)


# ===========================================
# Endpoint definitions.
# ===========================================


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.api_route("/{path:path}", methods=CGI_METHODS)
async def cgi_gateway_handler(path: str, request_view: RequestViewDep, handler: CgiHandlerDep):
    """
    Catch-all route: execute the configured script for the request.

    The request body is piped into the interpreter; execution errors are
    mapped to HTTP responses by the registered exception handlers.
    """
    sink = BufferedResponseSink()
    await handler(request_view, sink)
    return sink.to_response()


if __name__ == "__main__":
    import uvicorn

    host, _, port = config.UVICORN_BIND_ADDR.rpartition(":")
    uvicorn.run(app, host=host or "0.0.0.0", port=int(port))
