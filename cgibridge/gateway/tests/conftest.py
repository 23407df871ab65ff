import os
import stat
import sys
import tempfile
import textwrap
from pathlib import Path

import pytest

# Config is initialised on import, so the environment is set at the top level.
# The fake interpreter behaves like php-cgi: it runs the file named by SCRIPT_FILENAME.
_FIXTURE_DIR = Path(tempfile.mkdtemp(prefix="cgibridge-tests-"))

INTERPRETER_SOURCE = f"""#!{sys.executable}
import os
import runpy

runpy.run_path(os.environ["SCRIPT_FILENAME"], run_name="__main__")
"""

ECHO_SCRIPT_SOURCE = textwrap.dedent(
    """
    import json
    import os
    import sys

    data = sys.stdin.buffer.read().decode("utf-8")
    sys.stdout.write("Content-type: application/json\\r\\n")
    sys.stdout.write("X-Script: echo\\r\\n\\r\\n")
    sys.stdout.write(json.dumps({"env": dict(os.environ), "stdin": data}))
    """
)


def write_interpreter(directory: Path) -> Path:
    path = directory / "fake-cgi"
    path.write_text(INTERPRETER_SOURCE, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


FAKE_INTERPRETER = write_interpreter(_FIXTURE_DIR)
ECHO_SCRIPT = _FIXTURE_DIR / "echo.py"
ECHO_SCRIPT.write_text(ECHO_SCRIPT_SOURCE, encoding="utf-8")

os.environ["CGI_SCRIPT_PATH"] = str(ECHO_SCRIPT)
os.environ["CGI_INTERPRETER"] = str(FAKE_INTERPRETER)
os.environ.setdefault("LOG_CONFIG_PATH", str(_FIXTURE_DIR / "missing-log-config.yaml"))


@pytest.fixture
def fake_interpreter() -> Path:
    return FAKE_INTERPRETER


@pytest.fixture
def echo_script() -> Path:
    return ECHO_SCRIPT


@pytest.fixture
def make_script(tmp_path):
    """Write a CGI script into the test's temp directory and return its path."""

    def _make(source: str, name: str = "script.py") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return path

    return _make


@pytest.fixture
def main_app():
    from cgibridge.gateway.main import app

    yield app
    app.dependency_overrides = {}
