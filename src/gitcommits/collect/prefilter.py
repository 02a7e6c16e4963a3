"""Cheap existence check used to skip repositories with nothing to report."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from gitcommits.git.runner import GitRunner
from gitcommits.models import RepositoryHandle, ScanFilter
from gitcommits.utils.pool import fan_out

LOGGER = logging.getLogger(__name__)


def build_existence_args(scan_filter: ScanFilter) -> List[str]:
    args = ["log"]
    if scan_filter.since:
        args.append(f"--since={scan_filter.since}")
    if scan_filter.until:
        args.append(f"--until={scan_filter.until}")
    if scan_filter.author:
        args.append(f"--author={scan_filter.author}")
    args.extend(["--all", "-n1", "--format=%H"])
    return args


class PreFilter:
    """Drops repositories that certainly have no commit in range.

    Errors count as a possible match: skipping a repository wrongly would
    lose results, while scanning it needlessly only costs time.
    """

    def __init__(self, runner: GitRunner) -> None:
        self.runner = runner

    def likely_has_matching_commit(self, repo: RepositoryHandle, scan_filter: ScanFilter) -> bool:
        try:
            result = self.runner.run(build_existence_args(scan_filter), cwd=repo.path)
        except Exception as exc:
            LOGGER.debug("Pre-filter failed for %s, keeping it: %s", repo.path, exc)
            return True
        if not result.ok:
            return True
        return bool(result.lines)

    def select(
        self,
        repos: Sequence[RepositoryHandle],
        scan_filter: ScanFilter,
        *,
        workers: int,
        is_running: Optional[Callable[[], bool]] = None,
    ) -> List[RepositoryHandle]:
        """Subset of ``repos`` that may contain matching commits, in input order."""
        keep: set[RepositoryHandle] = set()
        for repo, likely in fan_out(
            repos,
            lambda r: (self.likely_has_matching_commit(r, scan_filter), ()),
            workers=workers,
            is_running=is_running,
        ):
            if likely:
                keep.add(repo)
        selected = [repo for repo in repos if repo in keep]
        LOGGER.info("Pre-filter kept %d of %d repositories", len(selected), len(repos))
        return selected
