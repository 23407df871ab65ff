"""
Where: cgibridge/gateway/lifecycle.py
What: Gateway startup/shutdown orchestration for shared resources.
Why: Keep main.py focused on app assembly while preserving lifecycle behavior.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from .config import GatewayConfig
from .core.abort import AbortSignal
from .core.environment import Cgi11EnvironmentBuilder
from .models.options import HandlerOptions
from .services.handler import create_handler

logger = logging.getLogger("gateway.main")


def build_handler_options(gateway_config: GatewayConfig, abort: AbortSignal) -> HandlerOptions:
    return HandlerOptions(
        file=gateway_config.CGI_SCRIPT_PATH,
        interpreter=gateway_config.CGI_INTERPRETER,
        cwd=gateway_config.CGI_WORKING_DIR,
        abort=abort,
        timeout=gateway_config.CGI_TIMEOUT_MS or None,
        read_mode=gateway_config.CGI_READ_MODE,
    )


@asynccontextmanager
async def manage_lifespan(app: FastAPI, gateway_config: GatewayConfig) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    # Fired on shutdown so in-flight interpreters are killed.
    shutdown_signal = AbortSignal()

    # Raises ConfigurationError, which aborts startup.
    handler = create_handler(
        build_handler_options(gateway_config, shutdown_signal),
        environment_builder=Cgi11EnvironmentBuilder(
            server_software=gateway_config.CGI_SERVER_SOFTWARE,
            redirect_status=gateway_config.CGI_REDIRECT_STATUS,
        ),
    )

    app.state.cgi_handler = handler
    app.state.shutdown_signal = shutdown_signal

    logger.info("Gateway initialized with shared resources.")

    try:
        yield
    finally:
        logger.info("Gateway shutting down, aborting running interpreters.")
        shutdown_signal.abort()
