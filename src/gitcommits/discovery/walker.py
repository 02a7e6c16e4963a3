"""Parallel repository discovery."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from gitcommits.git.detector import RepositoryDetector
from gitcommits.models import RepositoryHandle, canonical_key
from gitcommits.utils.pool import default_worker_count, fan_out

LOGGER = logging.getLogger(__name__)


def list_subdirectories(path: Path) -> List[Path]:
    """Immediate subdirectories of ``path``, not following symlinks."""
    children: List[Path] = []
    with os.scandir(path) as entries:
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    children.append(Path(entry.path))
            except OSError:
                continue
    return children


def dedupe_repositories(handles: Iterable[RepositoryHandle]) -> List[RepositoryHandle]:
    """Keep one handle per canonical path, ordered by path."""
    groups: dict[str, RepositoryHandle] = {}
    for handle in handles:
        groups.setdefault(handle.key, handle)
    return sorted(groups.values(), key=lambda h: str(h.path))


class RepositoryWalker:
    """Finds repositories beneath root directories.

    A repository's working tree is never descended into, so nested
    repositories (vendored checkouts, submodules) are not reported.
    """

    def __init__(
        self,
        detector: RepositoryDetector | None = None,
        *,
        workers: int | None = None,
        is_running: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.detector = detector or RepositoryDetector()
        self.workers = max(1, workers or default_worker_count())
        self.is_running = is_running

    def _visit(self, path: Path) -> Tuple[Optional[RepositoryHandle], Sequence[Path]]:
        if self.detector.is_repository(path):
            return RepositoryHandle.from_path(path), ()
        try:
            return None, list_subdirectories(path)
        except OSError as exc:
            LOGGER.debug("Skipping unreadable directory %s: %s", path, exc)
            return None, ()

    def _roots(self, roots: Iterable[Path | str]) -> List[Path]:
        valid: List[Path] = []
        for root in roots:
            path = Path(os.path.abspath(os.path.expanduser(os.fspath(root))))
            try:
                exists = path.is_dir()
            except OSError:
                exists = False
            if not exists:
                LOGGER.warning("Path does not exist: %s", path)
                continue
            valid.append(path)
        return valid

    def find_all(self, roots: Iterable[Path | str]) -> Set[RepositoryHandle]:
        """Walk every root under one shared worker budget and union the results."""
        found: dict[str, RepositoryHandle] = {}
        for _path, handle in fan_out(
            self._roots(roots),
            self._visit,
            workers=self.workers,
            is_running=self.is_running,
        ):
            if handle is not None:
                found.setdefault(canonical_key(handle.path), handle)
        LOGGER.info("Found %d repositories", len(found))
        return set(found.values())

    def find_repositories(self, root: Path | str) -> Set[RepositoryHandle]:
        return self.find_all([root])
