"""
Interpreter and script path resolution.

Runs once per handler so that a misconfigured handler fails before it
serves any request.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError

logger = logging.getLogger("gateway.interpreter")


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def resolve_interpreter(interpreter: str) -> str:
    """
    Resolve the interpreter to an absolute executable path.

    Absolute paths are used as given, bare names are looked up on PATH and
    relative paths containing a separator are resolved against the current
    directory.

    Raises:
        ConfigurationError: the interpreter does not exist or is not executable
    """
    if not interpreter:
        raise ConfigurationError("interpreter", "interpreter path is empty")

    candidate = Path(interpreter)
    if candidate.is_absolute():
        if _is_executable(candidate):
            return str(candidate)
        raise ConfigurationError("interpreter", f"not an executable file: {interpreter}")

    resolved = shutil.which(interpreter)
    if resolved is not None:
        logger.debug("Resolved interpreter %s on PATH: %s", interpreter, resolved)
        return os.path.abspath(resolved)

    if os.sep in interpreter or (os.altsep and os.altsep in interpreter):
        candidate = Path(os.path.abspath(candidate))
        if _is_executable(candidate):
            return str(candidate)

    raise ConfigurationError("interpreter", f"command not found: {interpreter}")


def resolve_script(file: Optional[os.PathLike]) -> Path:
    """
    Raises:
        ConfigurationError: no script given or the path does not exist
    """
    if file is None or str(file) == "":
        raise ConfigurationError("file", "script path is required")
    path = Path(file)
    if not path.exists():
        raise ConfigurationError("file", f"script not found: {file}")
    return Path(os.path.abspath(path))


def resolve_cwd(cwd: Optional[os.PathLike]) -> Optional[Path]:
    if cwd is None:
        return None
    path = Path(cwd)
    if not path.is_dir():
        raise ConfigurationError("cwd", f"not a directory: {cwd}")
    return Path(os.path.abspath(path))
