"""Commit history collection for a single repository."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from gitcommits.config import DEFAULT_MAX_COUNT
from gitcommits.git.runner import GitCommandError, GitRunner
from gitcommits.models import CommitRecord, RepositoryHandle, ScanFilter
from gitcommits.utils.dates import GIT_DATE_FORMAT, parse_date

LOGGER = logging.getLogger(__name__)

FIELD_SEPARATOR = "|"
LOG_FORMAT = FIELD_SEPARATOR.join(["%H", "%an", "%ad", "%s"])
LOG_FIELD_COUNT = 4


def build_log_args(scan_filter: ScanFilter, max_count: int = DEFAULT_MAX_COUNT) -> List[str]:
    """Arguments for the history query of one repository."""
    args = ["log"]
    if scan_filter.since:
        args.append(f"--since={scan_filter.since}")
    if scan_filter.until:
        args.append(f"--until={scan_filter.until}")
    args.append(f"--pretty=format:{LOG_FORMAT}")
    args.append(f"--date={GIT_DATE_FORMAT}")
    if scan_filter.author:
        args.append(f"--author={scan_filter.author}")
    args.append("--all")
    args.append(f"-n{max_count}")
    return args


def parse_log_line(line: str, repo: RepositoryHandle) -> Optional[CommitRecord]:
    """Turn one ``%H|%an|%ad|%s`` line into a record, or ``None`` if malformed.

    Only the first three separators split, so a ``|`` in the subject stays
    part of the message.
    """
    parts = line.rstrip("\r\n").split(FIELD_SEPARATOR, LOG_FIELD_COUNT - 1)
    if len(parts) < LOG_FIELD_COUNT:
        return None
    commit_id, author, date, message = parts
    return CommitRecord(
        repository=repo.name,
        repo_path=str(repo.path),
        repo_folder=repo.path.name,
        commit_id=commit_id.strip(),
        author=author,
        date=date.strip(),
        message=message,
    )


def matches_author(author: str, terms: Sequence[str]) -> bool:
    """Case-insensitive substring match of ``author`` against any term."""
    if not terms:
        return True
    lowered = author.lower()
    return any(term.lower() in lowered for term in terms)


@dataclass(slots=True)
class CollectOutcome:
    repo: RepositoryHandle
    commits: List[CommitRecord] = field(default_factory=list)
    complete: bool = True
    truncated: bool = False
    error: Optional[str] = None


def _always_running() -> bool:
    return True


class CommitCollector:
    """Queries and parses the commit history of repositories."""

    def __init__(
        self,
        runner: GitRunner,
        *,
        max_count: int = DEFAULT_MAX_COUNT,
        is_running: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.runner = runner
        self.max_count = max_count
        self.is_running = is_running or _always_running

    def collect(self, repo: RepositoryHandle, scan_filter: ScanFilter) -> CollectOutcome:
        """Collect the matching commits of ``repo``.

        Never raises: a failing repository yields an empty outcome carrying
        the error message. An outcome interrupted by cancellation is marked
        incomplete.
        """
        outcome = CollectOutcome(repo=repo)
        if not self.is_running():
            outcome.complete = False
            return outcome

        try:
            result = self.runner.run(build_log_args(scan_filter, self.max_count), cwd=repo.path)
            if not result.ok:
                raise GitCommandError(
                    f"git log exited with {result.returncode}: {result.stderr.strip()}",
                    cwd=repo.path,
                    returncode=result.returncode,
                    stderr=result.stderr,
                )

            lines = result.lines
            outcome.truncated = len(lines) >= self.max_count
            terms = scan_filter.author_terms
            seen: set[str] = set()

            for line in lines:
                if not self.is_running():
                    outcome.complete = False
                    break
                record = parse_log_line(line, repo)
                if record is None:
                    LOGGER.debug("Discarding malformed line in %s: %r", repo.path, line)
                    continue
                if record.commit_id in seen:
                    continue
                seen.add(record.commit_id)
                if matches_author(record.author, terms):
                    outcome.commits.append(record)
        except Exception as exc:
            LOGGER.warning("Failed to collect commits from %s: %s", repo.path, exc)
            outcome.commits = []
            outcome.error = str(exc)

        return outcome

    def first_commit_date(self, repo: RepositoryHandle) -> Optional[dt.datetime]:
        """Date of the oldest commit reachable from HEAD, or ``None``."""
        args = ["log", "--reverse", "--format=%ad", f"--date={GIT_DATE_FORMAT}"]
        try:
            line = self.runner.first_line(args, cwd=repo.path)
        except GitCommandError as exc:
            LOGGER.debug("No first commit for %s: %s", repo.path, exc)
            return None
        return parse_date(line)

    def list_authors(self, repo: RepositoryHandle) -> List[str]:
        try:
            lines = self.runner.run_lines(["log", "--format=%an", "--all"], cwd=repo.path)
        except GitCommandError as exc:
            LOGGER.warning("Failed to read authors from %s: %s", repo.path, exc)
            return []
        return [line.strip() for line in lines if line.strip()]
