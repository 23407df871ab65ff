"""
CGI Handler - Service Layer

Standardizes the flow: RequestView -> environment -> process -> CgiResult.
"""

import logging
import os
from typing import Optional

from cgibridge.gateway.core.body_resolver import resolve_body
from cgibridge.gateway.core.environment import Cgi11EnvironmentBuilder, EnvironmentBuilder
from cgibridge.gateway.core.exceptions import InterpreterFailure
from cgibridge.gateway.core.interpreter import resolve_cwd, resolve_interpreter, resolve_script
from cgibridge.gateway.core.response_parser import parse_process_output
from cgibridge.gateway.models.options import HandlerArg, HandlerConfig, HandlerOptions
from cgibridge.gateway.models.request import RequestView
from cgibridge.gateway.models.result import CgiResult, ProcessOutput
from cgibridge.gateway.services.dispatcher import ResponseSink, dispatch
from cgibridge.gateway.services.runner import SubprocessRunner

logger = logging.getLogger("gateway.handler")


class CgiHandler:
    """
    Executes one configured script for any number of requests.

    Holds only immutable configuration, so a single instance can serve
    concurrent invocations.
    """

    def __init__(
        self,
        config: HandlerConfig,
        environment_builder: Optional[EnvironmentBuilder] = None,
        runner: Optional[SubprocessRunner] = None,
    ):
        self.config = config
        self.environment_builder = environment_builder or Cgi11EnvironmentBuilder()
        self.runner = runner or SubprocessRunner(config)

    async def __call__(
        self, request: RequestView, sink: Optional[ResponseSink] = None
    ) -> CgiResult:
        """
        Execute the script for `request`.

        Raises:
            SpawnError, ExecutionTimeoutError, ExecutionCancelledError,
            InterpreterFailure
        """
        body = resolve_body(request)
        env = self.environment_builder.build(
            request, self.config.overrides, self.config.script_path, body
        )
        self._log_start(request, body.is_stream)

        output = await self.runner.run(env, body)
        return self._finish(request, output, sink)

    def sync(self, request: RequestView, sink: Optional[ResponseSink] = None) -> CgiResult:
        """Blocking variant of `__call__`; the body is read fully before the process starts."""
        body = resolve_body(request)
        env = self.environment_builder.build(
            request, self.config.overrides, self.config.script_path, body
        )
        self._log_start(request, False)

        output = self.runner.run_sync(env, body)
        return self._finish(request, output, sink)

    def _log_start(self, request: RequestView, streaming: bool) -> None:
        logger.info(
            f"Executing {self.config.script_path.name} ({request.method} {request.path})",
            extra={
                "script": str(self.config.script_path),
                "interpreter": self.config.interpreter,
                "streaming_body": streaming,
            },
        )

    def _finish(
        self, request: RequestView, output: ProcessOutput, sink: Optional[ResponseSink]
    ) -> CgiResult:
        try:
            result = parse_process_output(output)
        except InterpreterFailure as e:
            logger.error(
                f"Interpreter reported failure for {self.config.script_path.name}",
                extra={
                    "method": request.method,
                    "path": request.path,
                    "status_line": e.status_line,
                    "snippet": e.err[:200],
                },
            )
            raise

        if result.has_parse_errors:
            logger.warning(
                "CGI response contained unparsable header lines",
                extra={"snippet": result.raw[:200]},
            )
        return dispatch(result, sink)


def _to_options(arg: HandlerArg) -> HandlerOptions:
    if isinstance(arg, HandlerOptions):
        return arg
    if isinstance(arg, dict):
        return HandlerOptions.model_validate(arg)
    return HandlerOptions(file=os.fspath(arg))


def create_handler(
    arg: HandlerArg, environment_builder: Optional[EnvironmentBuilder] = None
) -> CgiHandler:
    """
    Build a handler for one script.

    Args:
        arg: script path, or HandlerOptions (a plain dict is validated into it)
        environment_builder: custom CGI environment builder

    Raises:
        ConfigurationError: the interpreter, script or cwd cannot be used
    """
    options = _to_options(arg)
    interpreter = resolve_interpreter(options.interpreter)
    script_path = resolve_script(options.file)
    cwd = resolve_cwd(options.cwd)

    config = HandlerConfig.from_options(options, script_path=script_path, interpreter=interpreter)
    if cwd is not None:
        config = config.model_copy(update={"cwd": cwd})

    logger.info(
        f"CGI handler ready for {script_path}",
        extra={
            "interpreter": interpreter,
            "timeout": config.timeout,
            "read_mode": config.read_mode,
        },
    )
    return CgiHandler(config, environment_builder=environment_builder)
