"""
Subprocess Runner Service

Starts one interpreter process per request, feeds it the request body and
collects its output under the handler's timeout and abort signal.
"""

import asyncio
import logging
import subprocess
import time
from typing import Any, Dict, List, Optional, Tuple

from starlette.requests import ClientDisconnect

from cgibridge.gateway.core.body_resolver import ResolvedBody
from cgibridge.gateway.core.exceptions import (
    ExecutionCancelledError,
    ExecutionTimeoutError,
    SpawnError,
)
from cgibridge.gateway.models.options import HandlerConfig
from cgibridge.gateway.models.result import ProcessOutput

logger = logging.getLogger("gateway.runner")

CHUNK_SIZE = 64 * 1024
# How often a blocking run checks the abort signal.
SYNC_POLL_INTERVAL = 0.05
# How long a child that closed its output may take to exit before it is killed.
EXIT_GRACE_PERIOD = 0.5


def _to_bytes(chunk: Any) -> bytes:
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return bytes(chunk)


class SubprocessRunner:
    def __init__(self, config: HandlerConfig, chunk_size: int = CHUNK_SIZE):
        """
        Args:
            config: resolved handler configuration (shared, read-only)
            chunk_size: stdout read size in first_chunk mode and for file-like sources
        """
        self.config = config
        self.chunk_size = chunk_size

    @property
    def cwd(self) -> Optional[str]:
        return str(self.config.cwd) if self.config.cwd else None

    # ===========================================
    # Async execution
    # ===========================================

    async def run(self, env: Dict[str, str], body: ResolvedBody) -> ProcessOutput:
        """
        Run the interpreter for one request.

        Raises:
            SpawnError: the interpreter could not be started
            ExecutionTimeoutError: the timeout elapsed first
            ExecutionCancelledError: the abort signal fired first, or the
                client went away while the body was streamed
        """
        abort = self.config.abort
        if abort is not None and abort.aborted:
            raise ExecutionCancelledError("Execution aborted before start")

        # stderr is never read in first_chunk mode; an unread pipe would block the child.
        first_chunk = self.config.read_mode == "first_chunk"
        try:
            proc = await asyncio.create_subprocess_exec(
                self.config.interpreter,
                cwd=self.cwd,
                env=env,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL if first_chunk else asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(
                f"Failed to spawn interpreter {self.config.interpreter}",
                extra={
                    "interpreter": self.config.interpreter,
                    "cwd": self.cwd,
                    "error_type": type(e).__name__,
                    "error_detail": str(e),
                },
            )
            raise SpawnError(self.config.interpreter, e) from e

        started = time.perf_counter()
        logger.debug("Interpreter started", extra={"pid": proc.pid})

        io_task = asyncio.ensure_future(self._communicate(proc, body))
        abort_task = asyncio.ensure_future(abort.wait()) if abort is not None else None
        tasks = [task for task in (io_task, abort_task) if task is not None]
        completed = False

        try:
            done, _ = await asyncio.wait(
                tasks, timeout=self.config.timeout, return_when=asyncio.FIRST_COMPLETED
            )
            if io_task in done:
                stdout, stderr = io_task.result()
                completed = True
            elif abort_task is not None and abort_task in done:
                logger.warning("Interpreter aborted by signal", extra={"pid": proc.pid})
                raise ExecutionCancelledError()
            else:
                logger.warning(
                    "Interpreter timed out",
                    extra={"pid": proc.pid, "timeout": self.config.timeout},
                )
                raise ExecutionTimeoutError(self.config.timeout)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            # Readers must be gone before the pipes are drained in _terminate.
            await asyncio.gather(*tasks, return_exceptions=True)
            drained = completed and not first_chunk
            await self._terminate(proc, grace=EXIT_GRACE_PERIOD if drained else 0.0)

        output = ProcessOutput(stdout=stdout, stderr=stderr, returncode=proc.returncode)
        logger.debug(
            "Interpreter output collected",
            extra={
                "pid": proc.pid,
                "returncode": output.returncode,
                "stdout_bytes": len(output.stdout),
                "stderr_bytes": len(output.stderr),
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return output

    async def _communicate(
        self, proc: asyncio.subprocess.Process, body: ResolvedBody
    ) -> Tuple[bytes, bytes]:
        feeder = asyncio.ensure_future(self._feed_stdin(proc.stdin, body))
        readers: List[asyncio.Future] = []
        try:
            if self.config.read_mode == "first_chunk":
                # The first chunk is taken as the complete response.
                stdout = await proc.stdout.read(self.chunk_size)
                stderr = b""
            else:
                readers = [
                    asyncio.ensure_future(proc.stdout.read()),
                    asyncio.ensure_future(proc.stderr.read()),
                ]
                stdout, stderr, _ = await asyncio.gather(*readers, feeder)
        finally:
            pending = [task for task in (feeder, *readers) if not task.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(feeder, *readers, return_exceptions=True)

        return stdout, stderr

    async def _feed_stdin(self, stdin: asyncio.StreamWriter, body: ResolvedBody) -> None:
        try:
            if body.is_stream:
                await self._pipe_stream(stdin, body.stream)
            elif body.data:
                stdin.write(body.data)
                await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("Interpreter closed stdin before the request body was written")
        except ClientDisconnect as e:
            logger.info("Client disconnected while the request body was streamed")
            raise ExecutionCancelledError("Client disconnected during request body") from e
        finally:
            if not stdin.is_closing():
                stdin.close()

    async def _pipe_stream(self, stdin: asyncio.StreamWriter, source: Any) -> None:
        if hasattr(source, "__aiter__"):
            async for chunk in source:
                if chunk:
                    stdin.write(_to_bytes(chunk))
                    await stdin.drain()
        elif hasattr(source, "read"):
            loop = asyncio.get_running_loop()
            while True:
                chunk = await loop.run_in_executor(None, source.read, self.chunk_size)
                if not chunk:
                    break
                stdin.write(_to_bytes(chunk))
                await stdin.drain()
        else:
            for chunk in source:
                if chunk:
                    stdin.write(_to_bytes(chunk))
                    await stdin.drain()

    @staticmethod
    async def _terminate(proc: asyncio.subprocess.Process, grace: float = 0.0) -> None:
        if proc.returncode is None and grace:
            try:
                await asyncio.wait_for(proc.wait(), grace)
            except asyncio.TimeoutError:
                pass
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        # wait() only returns once every pipe is closed; unread output keeps them open.
        streams = [stream for stream in (proc.stdout, proc.stderr) if stream is not None]
        await asyncio.gather(*(stream.read() for stream in streams), return_exceptions=True)
        await proc.wait()

    # ===========================================
    # Blocking execution
    # ===========================================

    def run_sync(self, env: Dict[str, str], body: ResolvedBody) -> ProcessOutput:
        """
        Blocking counterpart of `run`. Input must be available up front and
        output is always read to the end.
        """
        abort = self.config.abort
        if abort is not None and abort.aborted:
            raise ExecutionCancelledError("Execution aborted before start")

        input_data = self._read_sync_stream(body.stream) if body.is_stream else body.data

        try:
            proc = subprocess.Popen(
                [self.config.interpreter],
                cwd=self.cwd,
                env=env,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            logger.error(
                f"Failed to spawn interpreter {self.config.interpreter}",
                extra={
                    "interpreter": self.config.interpreter,
                    "cwd": self.cwd,
                    "error_type": type(e).__name__,
                    "error_detail": str(e),
                },
            )
            raise SpawnError(self.config.interpreter, e) from e

        timeout = self.config.timeout
        deadline = time.monotonic() + timeout if timeout else None
        pending_input = input_data or None

        try:
            while True:
                wait = SYNC_POLL_INTERVAL if abort is not None else None
                if deadline is not None:
                    remaining = max(deadline - time.monotonic(), 0.0)
                    wait = remaining if wait is None else min(wait, remaining)
                try:
                    stdout, stderr = proc.communicate(pending_input, timeout=wait)
                    break
                except subprocess.TimeoutExpired:
                    # Input is remembered by Popen after the first call.
                    pending_input = None
                    if abort is not None and abort.aborted:
                        logger.warning("Interpreter aborted by signal", extra={"pid": proc.pid})
                        raise ExecutionCancelledError()
                    if deadline is not None and time.monotonic() >= deadline:
                        logger.warning(
                            "Interpreter timed out",
                            extra={"pid": proc.pid, "timeout": timeout},
                        )
                        raise ExecutionTimeoutError(timeout)
        finally:
            if proc.returncode is None:
                proc.kill()
                proc.communicate()

        return ProcessOutput(stdout=stdout, stderr=stderr, returncode=proc.returncode)

    def _read_sync_stream(self, source: Any) -> bytes:
        if hasattr(source, "__aiter__"):
            raise TypeError("Async body streams require the async handler")
        if hasattr(source, "read"):
            return _to_bytes(source.read())
        return b"".join(_to_bytes(chunk) for chunk in source)
