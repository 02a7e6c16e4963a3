"""Scan orchestration: discover, pre-filter, collect, merge, sort."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import os
import threading
import time
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from gitcommits.collect.collector import CollectOutcome, CommitCollector
from gitcommits.collect.prefilter import PreFilter
from gitcommits.config import AppConfig
from gitcommits.discovery.walker import RepositoryWalker, dedupe_repositories
from gitcommits.git.detector import RepositoryDetector
from gitcommits.git.runner import GitRunner
from gitcommits.models import (
    CommitRecord,
    RepositoryHandle,
    ScanFilter,
    ScanState,
    ScanSummary,
)
from gitcommits.scan.progress import AuthorSink, NullProgress, ProgressReporter
from gitcommits.utils.dates import sort_commits, within_range
from gitcommits.utils.pool import fan_out

LOGGER = logging.getLogger(__name__)


class InvalidScanError(ValueError):
    """The scan input is unusable; raised before any work starts."""


def clean_roots(root_paths: Iterable[Path | str] | None) -> List[str]:
    """Strip, drop blanks and drop duplicate paths, keeping order.

    Paths compare after normalization; case is folded only where the host
    filesystem ignores it.
    """
    roots: List[str] = []
    seen: set[str] = set()
    for raw in root_paths or ():
        text = str(raw).strip()
        if not text:
            continue
        key = os.path.normcase(os.path.abspath(os.path.expanduser(text)))
        if key in seen:
            continue
        seen.add(key)
        roots.append(text)
    return roots


class ScanCoordinator:
    """Runs scans and tracks their state.

    ``stop()`` clears a shared running flag that every worker polls before
    each repository and each output line; a stopped scan returns what the
    fully processed repositories produced and ends as ``CANCELLED``.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        runner: GitRunner | None = None,
        progress: ProgressReporter | None = None,
        author_sink: AuthorSink | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.runner = runner or GitRunner(self.config.git_executable, timeout=self.config.timeout)
        self.progress = progress or NullProgress()
        self.author_sink = author_sink
        self.summary = ScanSummary()
        self._state = ScanState.IDLE
        self._running = threading.Event()
        self._lock = threading.Lock()

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def running(self) -> bool:
        return self._running.is_set()

    def stop(self) -> None:
        """Ask the current scan to stop dispatching work."""
        if self._running.is_set():
            LOGGER.info("Stop requested")
        self._running.clear()

    def reset(self) -> None:
        """Return a finished coordinator to ``IDLE``."""
        with self._lock:
            if self._state is ScanState.RUNNING:
                raise RuntimeError("Cannot reset while a scan is running")
            self._state = ScanState.IDLE

    def _report(self, percent: float, label: str) -> None:
        try:
            self.progress.report(int(percent), label)
        except Exception as exc:  # pragma: no cover
            LOGGER.debug("Progress sink failed: %s", exc)

    def _log(self, message: str) -> None:
        LOGGER.info(message)
        try:
            self.progress.log(message)
        except Exception as exc:  # pragma: no cover
            LOGGER.debug("Log sink failed: %s", exc)

    def _report_end(self) -> None:
        self._report(100, "Done" if self.running else "Stopped")

    def _begin(self, roots: List[str]) -> None:
        with self._lock:
            if self._state is ScanState.RUNNING:
                raise RuntimeError("A scan is already running")
            self._state = ScanState.RUNNING
            self.summary = ScanSummary(state=ScanState.RUNNING, roots=list(roots))
            self._running.set()

    def _finish(self, state: ScanState, started: float, error: str | None = None) -> None:
        self._running.clear()
        self.summary.state = state
        self.summary.elapsed = time.monotonic() - started
        self.summary.error = error
        self._state = state

    def _discover(self, roots: Sequence[str]) -> List[RepositoryHandle]:
        self._report(20, "Searching for repositories")
        if self.config.verify_paths:
            detector = RepositoryDetector(self.runner)
            handles: List[RepositoryHandle] = []
            for root in roots:
                if not self.running:
                    break
                if detector.is_repository(root, allow_command=True):
                    handles.append(RepositoryHandle.from_path(root))
                else:
                    self._log(f"Warning: not a git repository: {root}")
        else:
            walker = RepositoryWalker(
                RepositoryDetector(),
                workers=self.config.workers,
                is_running=lambda: self.running,
            )
            handles = list(walker.find_all(roots))

        repos = dedupe_repositories(handles)
        self._report(40, f"Found {len(repos)} repositories")
        self._log(f"Found {len(repos)} git repositories")
        return repos

    def _collect(
        self, repos: Sequence[RepositoryHandle], scan_filter: ScanFilter
    ) -> List[CommitRecord]:
        collector = CommitCollector(
            self.runner,
            max_count=self.config.max_count,
            is_running=lambda: self.running,
        )
        track_first = self.config.track_first_commit

        def work(repo: RepositoryHandle):
            outcome = collector.collect(repo, scan_filter)
            first: Optional[dt.datetime] = None
            if track_first and outcome.complete and self.running:
                first = collector.first_commit_date(repo)
            return (outcome, first), ()

        bag: List[CommitRecord] = []
        total = len(repos)
        done = 0
        for repo, (outcome, first) in fan_out(
            repos, work, workers=self.config.workers, is_running=lambda: self.running
        ):
            done += 1
            self._report(50 + 45 * done / total, str(repo.path))
            self._merge(outcome, first, bag)
        return bag

    def _merge(
        self, outcome: CollectOutcome, first: Optional[dt.datetime], bag: List[CommitRecord]
    ) -> None:
        summary = self.summary
        if outcome.error is not None:
            summary.failed_repositories += 1
            self._log(f"Warning: failed to read {outcome.repo.path}: {outcome.error}")
        if not outcome.complete:
            return
        summary.scanned_repositories += 1
        bag.extend(outcome.commits)
        if outcome.truncated:
            summary.truncated_repositories.append(str(outcome.repo.path))
        if first is not None and (summary.earliest_commit is None or first < summary.earliest_commit):
            summary.earliest_commit = first

    def _run(self, roots: List[str], requested: ScanFilter) -> List[CommitRecord]:
        self._report(5, "Initializing scan")
        scan_filter = requested.normalized()
        if requested.author_filter and not scan_filter.author_terms:
            self._log("Author filter has no usable terms, ignoring it")
            scan_filter.author_filter = None
        self._log(f"Time range: {scan_filter.since or 'beginning'} to {scan_filter.until}")
        self._log(f"Author: {scan_filter.author or 'all authors'}")
        if scan_filter.author_filter:
            self._log(f"Author filter: {scan_filter.author_filter}")
        self._report(15, f"Time range: {scan_filter.since or 'all'} to {scan_filter.until}")

        repos = self._discover(roots)
        self.summary.repository_count = len(repos)
        if not self.running:
            self._report_end()
            return []
        if not repos:
            self._log("No git repositories found")
            self._report_end()
            return []

        if self.config.prefilter and requested.is_active:
            self._report(45, "Pre-filtering repositories")
            repos = PreFilter(self.runner).select(
                repos,
                scan_filter,
                workers=self.config.workers,
                is_running=lambda: self.running,
            )
        self._report(50, f"Scanning {len(repos)} repositories")

        bag = self._collect(repos, scan_filter) if repos else []

        if scan_filter.author and self.author_sink is not None:
            try:
                self.author_sink.add_recent_author(scan_filter.author)
            except Exception as exc:  # pragma: no cover
                LOGGER.debug("Author sink failed: %s", exc)

        in_range = [c for c in bag if within_range(c, scan_filter.since, scan_filter.until)]
        commits = sort_commits(in_range)
        self.summary.commit_count = len(commits)

        for path in self.summary.truncated_repositories:
            self._log(f"Warning: {path} has more than {self.config.max_count} matching commits")
        self._log(f"Found {len(commits)} commits")
        self._report_end()
        return commits

    def execute_scan(
        self,
        root_paths: Iterable[Path | str],
        scan_filter: ScanFilter | None = None,
    ) -> List[CommitRecord]:
        """Run one scan and return its commits, newest first.

        Raises ``InvalidScanError`` when no usable root path is given.
        Nothing else escapes: failures are logged and yield an empty list.
        """
        roots = clean_roots(root_paths)
        started = time.monotonic()
        self._begin(roots)

        if not roots:
            message = "No root paths to scan"
            self._log(message)
            self._finish(ScanState.FAILED, started, error=message)
            raise InvalidScanError(message)

        try:
            commits = self._run(roots, scan_filter or ScanFilter())
        except Exception as exc:
            LOGGER.exception("Scan failed: %s", exc)
            self._finish(ScanState.FAILED, started, error=str(exc))
            return []

        cancelled = not self.running
        if cancelled:
            self._log("Scan stopped")
        self._finish(ScanState.CANCELLED if cancelled else ScanState.COMPLETED, started)
        return commits

    async def execute_scan_async(
        self,
        root_paths: Iterable[Path | str],
        scan_filter: ScanFilter | None = None,
    ) -> List[CommitRecord]:
        return await asyncio.to_thread(self.execute_scan, list(root_paths), scan_filter)

    def collect_authors(self, root_paths: Iterable[Path | str]) -> List[str]:
        """Distinct author names across every repository under ``root_paths``."""
        roots = clean_roots(root_paths)
        started = time.monotonic()
        self._begin(roots)
        if not roots:
            message = "No root paths to scan"
            self._finish(ScanState.FAILED, started, error=message)
            raise InvalidScanError(message)

        try:
            repos = self._discover(roots)
            self.summary.repository_count = len(repos)
            collector = CommitCollector(self.runner, is_running=lambda: self.running)
            authors: set[str] = set()
            done = 0
            for repo, names in fan_out(
                repos,
                lambda r: (collector.list_authors(r), ()),
                workers=self.config.workers,
                is_running=lambda: self.running,
            ):
                done += 1
                authors.update(names)
                self.summary.scanned_repositories += 1
                self._report(40 + 60 * done / max(1, len(repos)), str(repo.path))
        except Exception as exc:
            LOGGER.exception("Author scan failed: %s", exc)
            self._finish(ScanState.FAILED, started, error=str(exc))
            return []

        result = sorted(authors)
        if self.author_sink is not None:
            self.author_sink.add_scanned_authors(result)
        self._log(f"Found {len(result)} distinct authors")
        self._finish(ScanState.COMPLETED if self.running else ScanState.CANCELLED, started)
        return result
