"""Repository detection."""

from __future__ import annotations

import logging
from pathlib import Path

from gitcommits.git.runner import GitCommandError, GitRunner

LOGGER = logging.getLogger(__name__)

METADATA_DIR = ".git"


def has_git_metadata(path: Path | str) -> bool:
    """Return True when ``path`` holds a ``.git`` directory or file.

    A ``.git`` file marks worktrees and submodule checkouts. Any I/O error
    counts as "not a repository".
    """
    try:
        candidate = Path(path)
        if not candidate.is_dir():
            return False
        marker = candidate / METADATA_DIR
        return marker.is_dir() or marker.is_file()
    except (OSError, ValueError):
        return False


def is_inside_work_tree(runner: GitRunner, path: Path | str) -> bool:
    """Ask git whether ``path`` lies inside a working tree."""
    try:
        if not Path(path).is_dir():
            return False
        result = runner.run(["rev-parse", "--is-inside-work-tree"], cwd=path)
    except (GitCommandError, OSError) as exc:
        LOGGER.debug("rev-parse failed in %s: %s", path, exc)
        return False
    return result.ok and result.stdout.strip().lower() == "true"


class RepositoryDetector:
    """Decides whether a directory is a repository.

    The metadata check is enough for traversal; the command check spawns a
    process and is only used when explicitly allowed.
    """

    def __init__(self, runner: GitRunner | None = None) -> None:
        self.runner = runner

    def is_repository(self, path: Path | str, *, allow_command: bool = False) -> bool:
        if has_git_metadata(path):
            return True
        if allow_command and self.runner is not None:
            return is_inside_work_tree(self.runner, path)
        return False
