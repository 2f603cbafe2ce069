"""Executor protocol and implementations (local, dry-run)."""
from __future__ import annotations

import logging
import shlex
import subprocess
from typing import Protocol, runtime_checkable

log = logging.getLogger(__name__)


class ExecutorError(Exception):
    """Raised when a query exits with a non-zero status."""
    def __init__(self, cmd: list[str], returncode: int, stderr: str):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"Command {shlex.join(cmd)!r} exited {returncode}: {stderr.strip()}"
        )


@runtime_checkable
class Executor(Protocol):
    @property
    def label(self) -> str:
        """Short label for display (e.g. 'local', 'dry-run')."""
        raise NotImplementedError

    def run(self, cmd: list[str]) -> str:
        """Run a read-only query, return stdout. Raise ExecutorError on failure."""
        raise NotImplementedError

    def execute(self, cmd: list[str]) -> tuple[bool, str]:
        """Run a state-changing command. Return (success, output)."""
        raise NotImplementedError


class LocalExecutor:
    """Run commands on the local machine."""

    @property
    def label(self) -> str:
        return "local"

    def _invoke(self, cmd: list[str]) -> subprocess.CompletedProcess:
        log.debug("run: %s", shlex.join(cmd))
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise ExecutorError(cmd, 127, str(e)) from e

    def run(self, cmd: list[str]) -> str:
        result = self._invoke(cmd)
        if result.returncode != 0:
            raise ExecutorError(cmd, result.returncode, result.stderr)
        return result.stdout

    def execute(self, cmd: list[str]) -> tuple[bool, str]:
        try:
            result = self._invoke(cmd)
        except ExecutorError as e:
            return False, e.stderr
        if result.returncode != 0:
            log.debug("%s exited %d", cmd[0], result.returncode)
            return False, result.stderr.strip() or result.stdout.strip()
        return True, result.stdout


class DryRunExecutor:
    """
    Describe state-changing commands instead of running them.

    Queries still go to the wrapped executor so the plan reflects the real
    fleet; anything passed to execute() is printed and recorded.
    """

    def __init__(self, inner: Executor):
        self.inner = inner
        self.planned: list[list[str]] = []

    @property
    def label(self) -> str:
        return "dry-run"

    def run(self, cmd: list[str]) -> str:
        return self.inner.run(cmd)

    def execute(self, cmd: list[str]) -> tuple[bool, str]:
        self.planned.append(cmd)
        print(f"[dry-run] {shlex.join(cmd)}")
        return True, ""
