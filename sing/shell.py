"""Running external commands with a small fluent interface."""

import os
import shutil
import subprocess
import sys
from typing import Any, Iterable, Optional


class ShellError(Exception):
    """A command failed to start or exited with a non-zero status."""

    def __init__(self, message: str, returncode: Optional[int] = None, output: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class Shell:
    """A command to run, configured by chained calls."""

    def __init__(self, name: str, *args: str) -> None:
        self.path = shutil.which(name) or name
        self.args = [name, *args]
        self.dir: Optional[str] = None
        self.env: dict[str, str] = dict(os.environ)
        self._stdin: Any = subprocess.DEVNULL
        self._stdout: Any = subprocess.DEVNULL
        self._stderr: Any = subprocess.DEVNULL
        self._process: Optional[subprocess.Popen] = None

    def set_dir(self, path: str) -> "Shell":
        """Run the command in ``path``."""
        self.dir = path
        return self

    def attach(self) -> "Shell":
        """Connect stdin to ours and both output streams to our stderr."""
        self._stdin = sys.stdin
        self._stdout = sys.stderr
        self._stderr = sys.stderr
        return self

    def set_env(self, env: Iterable[str]) -> "Shell":
        """Use the current environment extended by ``KEY=VALUE`` entries."""
        merged = dict(os.environ)
        for entry in env:
            key, _, value = entry.partition("=")
            merged[key] = value
        self.env = merged
        return self

    def _command(self) -> list[str]:
        return [self.path, *self.args[1:]]

    def _error(self, cause: Any, returncode: Optional[int] = None, output: str = "") -> ShellError:
        message = f"execute ({self.path}) {' '.join(self.args)}: {cause}"
        return ShellError(message, returncode, output)

    def start(self) -> "Shell":
        """Start the command without waiting for it."""
        try:
            self._process = subprocess.Popen(
                self._command(),
                cwd=self.dir,
                env=self.env,
                stdin=self._stdin,
                stdout=self._stdout,
                stderr=self._stderr,
            )
        except OSError as err:
            raise self._error(err) from err
        return self

    def wait(self) -> None:
        """Wait for a started command; raise ``ShellError`` on failure."""
        if self._process is None:
            raise self._error("not started")
        returncode = self._process.wait()
        if returncode != 0:
            raise self._error(f"exit status {returncode}", returncode)

    def run(self) -> None:
        """Start the command and wait for it to finish."""
        self.start()
        self.wait()

    def _capture(self, stderr: Any) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                self._command(),
                cwd=self.dir,
                env=self.env,
                stdin=self._stdin,
                stdout=subprocess.PIPE,
                stderr=stderr,
            )
        except OSError as err:
            raise self._error(err) from err

    def read(self) -> str:
        """Run the command and return its combined stdout and stderr."""
        completed = self._capture(subprocess.STDOUT)
        output = completed.stdout.decode(errors="replace")
        if completed.returncode != 0:
            raise self._error(f"exit status {completed.returncode}", completed.returncode, output)
        return output

    def read_output(self) -> str:
        """Run the command and return its stdout with surrounding whitespace removed."""
        completed = self._capture(subprocess.PIPE)
        output = completed.stdout.decode(errors="replace").strip()
        if completed.returncode != 0:
            raise self._error(f"exit status {completed.returncode}", completed.returncode, output)
        return output


def exec_command(name: str, *args: str) -> Shell:
    """Prepare ``name`` with ``args`` to run in the current environment."""
    return Shell(name, *args)