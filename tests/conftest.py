"""Shared fixtures: a scripted stand-in for the git executable."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import pytest

from gitcommits.git.runner import GitCommandError, GitResult, GitRunner
from gitcommits.models import canonical_key


def log_line(commit_id: str, author: str, date: str, message: str) -> str:
    return f"{commit_id}|{author}|{date}|{message}"


class FakeGitRunner(GitRunner):
    """Answers git commands from canned per-repository histories."""

    def __init__(
        self,
        histories: Optional[Dict[Path, List[str]]] = None,
        *,
        failing: Iterable[Path] = (),
    ) -> None:
        super().__init__("git")
        self.histories = {canonical_key(p): lines for p, lines in (histories or {}).items()}
        self.failing = {canonical_key(p) for p in failing}
        self.calls: List[tuple] = []
        self.before_log: Optional[Callable[[str], None]] = None
        self._lock = threading.Lock()

    def log_calls(self) -> List[tuple]:
        return [call for call in self.calls if call[0][:1] == ["log"]]

    def run(self, args, cwd=None) -> GitResult:
        args = list(args)
        key = canonical_key(cwd) if cwd is not None else None
        with self._lock:
            self.calls.append((args, key))

        if args == ["--version"]:
            return GitResult(0, "git version 2.45.0\n")
        if key in self.failing:
            raise GitCommandError("simulated failure", args=args, cwd=cwd)

        lines = self.histories.get(key)
        if lines is None:
            return GitResult(128, "", "fatal: not a git repository")

        if args[:2] == ["rev-parse", "--is-inside-work-tree"]:
            return GitResult(0, "true\n")

        if args[0] == "log":
            if self.before_log is not None:
                self.before_log(key)
            if "--format=%an" in args:
                return GitResult(0, "\n".join(line.split("|")[1] for line in lines))
            if "--reverse" in args:
                dates = [line.split("|")[2] for line in reversed(lines)]
                return GitResult(0, "\n".join(dates))
            if "--format=%H" in args:
                return GitResult(0, lines[0].split("|")[0] if lines else "")
            return GitResult(0, "\n".join(lines))

        return GitResult(1, "", f"unsupported: {args}")


@pytest.fixture
def make_repo(tmp_path: Path) -> Callable[[str], Path]:
    """Create a directory containing a ``.git`` folder."""

    def _make(relative: str) -> Path:
        repo = tmp_path / relative
        (repo / ".git").mkdir(parents=True)
        return repo

    return _make
