"""Application configuration defaults."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass

from gitcommits.utils.pool import default_worker_count

DEFAULT_MAX_COUNT = 1000


def _get_default_git_executable() -> str:
    """Resolve the git binary from the environment, then PATH."""
    override = os.environ.get("GITCOMMITS_GIT")
    if override:
        return override

    found = shutil.which("git")
    if found:
        return found

    # Left to PATH resolution at launch time
    return "git"


@dataclass(slots=True)
class AppConfig:
    git_executable: str | None = None
    workers: int | None = None
    max_count: int = DEFAULT_MAX_COUNT
    timeout: float = 120.0
    prefilter: bool = True
    verify_paths: bool = False
    track_first_commit: bool = False

    def __post_init__(self) -> None:
        if self.git_executable is None:
            self.git_executable = _get_default_git_executable()
        if self.workers is None:
            self.workers = default_worker_count()
        self.workers = max(1, int(self.workers))
        self.max_count = max(1, int(self.max_count))
