"""
Gateway configuration definition.

Loads configuration from environment variables and provides a Pydantic model.
Uses pydantic-settings for type safety and defaults.
"""

import sys
from typing import Literal, Optional

from pydantic import Field
from cgibridge.common.core.config import BaseAppConfig


class GatewayConfig(BaseAppConfig):
    """
    Configuration management for the CGI gateway service.
    """

    # Server settings
    UVICORN_BIND_ADDR: str = Field(default="0.0.0.0:8000", description="Listen address")

    # Script execution (required from env)
    CGI_SCRIPT_PATH: str = Field(..., description="Script executed for every request")
    CGI_INTERPRETER: str = Field(default="php-cgi", description="CGI interpreter path or name")
    CGI_WORKING_DIR: Optional[str] = Field(
        default=None, description="Working directory of the interpreter process"
    )
    CGI_TIMEOUT_MS: float = Field(default=0, ge=0, description="Timeout (ms), 0 is unbounded")
    CGI_READ_MODE: Literal["drain", "first_chunk"] = Field(
        default="drain", description="Read stdout to the end or only the first chunk"
    )

    # CGI environment defaults
    CGI_SERVER_SOFTWARE: str = Field(default="Express", description="SERVER_SOFTWARE value")
    CGI_REDIRECT_STATUS: str = Field(default="200", description="REDIRECT_STATUS value")

    # FastAPI settings
    root_path: str = Field(default="", description="API root path (for proxy)")

    # model_config is inherited


# Load config as a singleton.
# pydantic-settings reads environment variables during instantiation.
try:
    config = GatewayConfig()
except Exception as e:
    # Default to failing fast.
    sys.stderr.write(f"Failed to load configuration: {e}\n")
    raise
