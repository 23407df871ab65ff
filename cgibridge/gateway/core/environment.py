import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from ..models.options import EnvironmentOverrides
from ..models.request import RequestView
from .body_resolver import ResolvedBody, encode_uri_component

logger = logging.getLogger("gateway.environment")

DEFAULT_REDIRECT_STATUS = "200"
DEFAULT_GATEWAY_INTERFACE = "CGI/1.1"
DEFAULT_SERVER_SOFTWARE = "Express"

# Trusted CDN header carrying the original client address.
CONNECTING_IP_HEADER = "cf-connecting-ip"

_ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class EnvironmentBuilder(ABC):
    @abstractmethod
    def build(
        self,
        request: RequestView,
        overrides: EnvironmentOverrides,
        script_path: Path,
        body: ResolvedBody,
    ) -> Dict[str, str]:
        """
        Build the CGI environment for one request.
        """
        pass


def header_variable_name(header_name: str) -> str:
    return "HTTP_" + header_name.upper().replace("-", "_")


def build_query_string(request: RequestView) -> str:
    if request.query_string is not None:
        return request.query_string.lstrip("?")
    if "?" in request.path:
        return request.path.split("?", 1)[1]
    if request.query_params:
        return "&".join(
            f"{encode_uri_component(key)}={encode_uri_component(value)}"
            for key, value in request.query_params
        )
    return ""


def _forwarded_client(value: str) -> Optional[str]:
    """First hop of a Forwarded / X-Forwarded-For header."""
    first = value.split(",", 1)[0].strip()
    for part in first.split(";"):
        name, sep, param = part.strip().partition("=")
        if sep and name.lower() == "for":
            return param.strip().strip('"').strip("[]") or None
    return first or None


def resolve_remote_addr(request: RequestView) -> Optional[str]:
    connecting_ip = request.header(CONNECTING_IP_HEADER)
    if connecting_ip:
        return connecting_ip.strip()
    if request.remote_addr:
        return request.remote_addr
    for name in ("forwarded", "x-forwarded-for"):
        value = request.header(name)
        if value:
            return _forwarded_client(value)
    return None


class Cgi11EnvironmentBuilder(EnvironmentBuilder):
    """CGI/1.1 environment builder (php-cgi compatible variable set)."""

    def __init__(
        self,
        server_software: str = DEFAULT_SERVER_SOFTWARE,
        redirect_status: str = DEFAULT_REDIRECT_STATUS,
    ):
        self.server_software = server_software
        self.redirect_status = redirect_status

    def build(
        self,
        request: RequestView,
        overrides: EnvironmentOverrides,
        script_path: Path,
        body: ResolvedBody,
    ) -> Dict[str, str]:
        """
        Precedence: explicit override > computed from the request > protocol default.
        Variables that resolve to None are left out.
        """
        explicit = overrides.explicit()
        script = str(script_path)

        computed = {
            "SCRIPT_FILENAME": script,
            "REDIRECT_STATUS": self.redirect_status,
            "AUTH_TYPE": None,
            "CONTENT_LENGTH": body.content_length,
            "CONTENT_TYPE": body.content_type,
            "GATEWAY_INTERFACE": DEFAULT_GATEWAY_INTERFACE,
            "HTTPS": "On" if request.is_secure else None,
            "PATH_INFO": request.path.split("?", 1)[0],
            "PATH_TRANSLATED": script,
            "QUERY_STRING": build_query_string(request),
            "REMOTE_ADDR": resolve_remote_addr(request),
            "REMOTE_HOST": None,
            "REMOTE_IDENT": None,
            "REMOTE_USER": None,
            "REQUEST_METHOD": request.method.upper(),
            "SERVER_ADDR": request.server_addr,
            "SERVER_NAME": request.header("host"),
            "SERVER_PORT": str(request.server_port) if request.server_port is not None else None,
            "SERVER_PROTOCOL": f"HTTP/{request.http_version}",
            "SERVER_SOFTWARE": self.server_software,
        }

        env: Dict[str, str] = {}
        for name, value in computed.items():
            value = explicit.get(name, value)
            if value is not None:
                self._put(env, name, value)

        for header_name, header_value in request.headers.items():
            if not isinstance(header_value, str):
                continue
            self._put(env, header_variable_name(header_name), header_value)

        # Injected headers are additive: they may add or replace HTTP_* entries.
        for name, value in overrides.http_headers().items():
            self._put(env, name, value)

        return env

    @staticmethod
    def _put(env: Dict[str, str], name: str, value: str) -> None:
        if not _ENV_NAME.match(name) or "\x00" in value:
            logger.debug("Skipping value not representable as CGI variable: %s", name)
            return
        env[name] = value
