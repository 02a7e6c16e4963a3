"""Invocation of the external git executable.

Every call receives its working directory explicitly and hands it to the
child process; the interpreter's own current directory is never changed, so
any number of worker threads can run git against different repositories at
the same time.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

LOGGER = logging.getLogger(__name__)

_CREATE_NO_WINDOW = getattr(subprocess, "CREATE_NO_WINDOW", 0x08000000)


class GitCommandError(RuntimeError):
    """git could not be run, timed out, or failed in checked mode."""

    def __init__(
        self,
        message: str,
        *,
        args: Sequence[str] = (),
        cwd: Path | str | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = list(args)
        self.cwd = cwd
        self.returncode = returncode
        self.stderr = stderr


@dataclass(slots=True)
class GitResult:
    returncode: int
    stdout: str
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def lines(self) -> List[str]:
        return [line for line in self.stdout.splitlines() if line.strip()]


class GitRunner:
    """Runs git with captured UTF-8 output and no shell."""

    def __init__(self, executable: str = "git", *, timeout: float | None = 120.0) -> None:
        self.executable = executable
        self.timeout = timeout

    def _popen_kwargs(self) -> dict:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        kwargs: dict = {"env": env, "stdin": subprocess.DEVNULL}
        if sys.platform == "win32":
            kwargs["creationflags"] = _CREATE_NO_WINDOW
        return kwargs

    def run(self, args: Sequence[str], cwd: Path | str | None = None) -> GitResult:
        """Run ``git <args>`` inside ``cwd``.

        A non-zero exit is returned, not raised. Raises ``GitCommandError``
        when the process cannot be started or exceeds the timeout.
        """
        command = [self.executable, *args]
        LOGGER.debug("Running %s in %s", " ".join(command), cwd)
        try:
            completed = subprocess.run(
                command,
                cwd=os.fspath(cwd) if cwd is not None else None,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                check=False,
                **self._popen_kwargs(),
            )
        except subprocess.TimeoutExpired as exc:
            raise GitCommandError(
                f"git {' '.join(args)} timed out after {self.timeout}s",
                args=args,
                cwd=cwd,
            ) from exc
        except OSError as exc:
            raise GitCommandError(
                f"Unable to run {self.executable}: {exc}", args=args, cwd=cwd
            ) from exc

        return GitResult(
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    def run_lines(self, args: Sequence[str], cwd: Path | str | None = None) -> List[str]:
        """Checked variant of :meth:`run` returning non-blank output lines."""
        result = self.run(args, cwd)
        if not result.ok:
            raise GitCommandError(
                f"git {' '.join(args)} exited with {result.returncode}: {result.stderr.strip()}",
                args=args,
                cwd=cwd,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result.lines

    def first_line(self, args: Sequence[str], cwd: Path | str | None = None) -> Optional[str]:
        lines = self.run_lines(args, cwd)
        return lines[0] if lines else None

    def is_available(self) -> bool:
        try:
            return self.run(["--version"]).ok
        except GitCommandError:
            return False
