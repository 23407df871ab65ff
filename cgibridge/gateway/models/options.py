"""
Handler configuration models.

HandlerOptions is what callers pass to the handler factory.
HandlerConfig is the validated, resolved form shared by every invocation.
"""

from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.abort import AbortSignal

ReadMode = Literal["drain", "first_chunk"]

DEFAULT_INTERPRETER = "php-cgi"


class EnvironmentOverrides(BaseModel):
    """
    Explicit CGI variable values supplied at handler construction.

    Every field is optional; a set field always wins over the value computed
    from the request. Additional `HTTP_*` keys are merged on top of the
    request headers. AUTH_TYPE and the REMOTE_HOST/IDENT/USER fields are
    never computed and only reach the interpreter through here.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    REDIRECT_STATUS: Optional[str] = None
    AUTH_TYPE: Optional[str] = None
    CONTENT_LENGTH: Optional[str] = None
    CONTENT_TYPE: Optional[str] = None
    GATEWAY_INTERFACE: Optional[str] = None
    HTTPS: Optional[str] = None
    PATH_INFO: Optional[str] = None
    PATH_TRANSLATED: Optional[str] = None
    QUERY_STRING: Optional[str] = None
    REMOTE_ADDR: Optional[str] = None
    REMOTE_HOST: Optional[str] = None
    REMOTE_IDENT: Optional[str] = None
    REMOTE_USER: Optional[str] = None
    REQUEST_METHOD: Optional[str] = None
    SCRIPT_FILENAME: Optional[str] = None
    SERVER_ADDR: Optional[str] = None
    SERVER_NAME: Optional[str] = None
    SERVER_PORT: Optional[str] = None
    SERVER_PROTOCOL: Optional[str] = None
    SERVER_SOFTWARE: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_values(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        coerced = {}
        for key, value in data.items():
            if key not in cls.model_fields and not str(key).startswith("HTTP_"):
                raise ValueError(f"Unknown CGI variable override: {key}")
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            coerced[key] = value
        return coerced

    @model_validator(mode="after")
    def _check_header_values(self) -> "EnvironmentOverrides":
        for key, value in (self.model_extra or {}).items():
            if not isinstance(value, str):
                raise ValueError(f"Override {key} must be a string or number")
        return self

    def explicit(self) -> Dict[str, str]:
        """Standard CGI variables that were explicitly set."""
        return {
            name: value
            for name in type(self).model_fields
            if (value := getattr(self, name)) is not None
        }

    def http_headers(self) -> Dict[str, str]:
        """Extra HTTP_* variables, in the order they were supplied."""
        return dict(self.model_extra or {})


class HandlerOptions(BaseModel):
    """Options accepted by `create_handler`."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    file: Path
    interpreter: str = DEFAULT_INTERPRETER
    cwd: Optional[Path] = None
    env: EnvironmentOverrides = Field(default_factory=EnvironmentOverrides)
    abort: Optional[AbortSignal] = None
    timeout: Optional[float] = Field(
        default=None, ge=0, description="Timeout in milliseconds; None or 0 means unbounded"
    )
    read_mode: ReadMode = "drain"

    @field_validator("interpreter", mode="before")
    @classmethod
    def _interpreter_to_str(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_INTERPRETER
        return str(value)


class HandlerConfig(BaseModel):
    """Resolved handler configuration. Immutable after the factory returns."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    script_path: Path
    interpreter: str
    cwd: Optional[Path] = None
    overrides: EnvironmentOverrides = Field(default_factory=EnvironmentOverrides)
    abort: Optional[AbortSignal] = None
    timeout: Optional[float] = Field(default=None, description="Timeout in seconds")
    read_mode: ReadMode = "drain"

    @classmethod
    def from_options(
        cls, options: HandlerOptions, script_path: Path, interpreter: str
    ) -> "HandlerConfig":
        timeout = options.timeout / 1000.0 if options.timeout else None
        return cls(
            script_path=script_path,
            interpreter=interpreter,
            cwd=options.cwd,
            overrides=options.env,
            abort=options.abort,
            timeout=timeout,
            read_mode=options.read_mode,
        )


HandlerArg = Union[str, Path, HandlerOptions, Dict[str, Any]]
