"""Core gitcommits data models."""

from __future__ import annotations

import datetime as dt
import enum
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple

DAY_FORMAT = "%Y-%m-%d"


def default_until(today: dt.date | None = None) -> str:
    """The day after ``today``, as git's exclusive upper bound."""
    today = today or dt.date.today()
    return (today + dt.timedelta(days=1)).strftime(DAY_FORMAT)


def canonical_key(path: Path | str) -> str:
    """Return the path used for repository equality.

    Symlinks and relative segments are resolved; case is folded on hosts
    whose filesystem is case-insensitive.
    """
    return os.path.normcase(os.path.realpath(os.fspath(path)))


@dataclass(frozen=True, slots=True)
class RepositoryHandle:
    """A discovered repository."""

    path: Path
    name: str

    @classmethod
    def from_path(cls, path: Path | str) -> "RepositoryHandle":
        absolute = Path(os.path.abspath(os.fspath(path)))
        return cls(path=absolute, name=absolute.name or str(absolute))

    @property
    def key(self) -> str:
        return canonical_key(self.path)


@dataclass(frozen=True, slots=True)
class CommitRecord:
    """One commit observed in one repository."""

    repository: str = ""
    repo_path: str = ""
    repo_folder: str = ""
    commit_id: str = ""
    author: str = ""
    date: str = ""
    message: str = ""

    @property
    def key(self) -> Tuple[str, str]:
        return (self.repo_path, self.commit_id)

    def as_dict(self) -> Dict[str, str]:
        return {
            "Repository": self.repository,
            "RepoPath": self.repo_path,
            "RepoFolder": self.repo_folder,
            "CommitId": self.commit_id,
            "Author": self.author,
            "Date": self.date,
            "Message": self.message,
        }


FIELD_NAMES: Tuple[str, ...] = (
    "Repository",
    "RepoPath",
    "RepoFolder",
    "CommitId",
    "Author",
    "Date",
    "Message",
)


@dataclass(slots=True)
class ScanFilter:
    """Parameters of one scan.

    ``since`` is inclusive and ``until`` exclusive; both are handed to git
    verbatim. ``author`` goes to ``git log --author`` while ``author_filter``
    is a comma-separated list of case-insensitive substrings applied after
    parsing.
    """

    since: Optional[str] = None
    until: Optional[str] = None
    author: Optional[str] = None
    author_filter: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return bool(self.since or self.until or self.author)

    @property
    def author_terms(self) -> List[str]:
        if not self.author_filter:
            return []
        return [term.strip() for term in self.author_filter.split(",") if term.strip()]

    def normalized(self, today: dt.date | None = None) -> "ScanFilter":
        """Return a copy with blanks cleared and ``until`` defaulted to tomorrow."""
        until = (self.until or "").strip() or default_until(today)
        return replace(
            self,
            since=(self.since or "").strip() or None,
            until=until,
            author=(self.author or "").strip() or None,
            author_filter=(self.author_filter or "").strip() or None,
        )


class ScanState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(slots=True)
class ScanSummary:
    """What happened during the last scan, beyond the commit list itself."""

    state: ScanState = ScanState.IDLE
    roots: List[str] = field(default_factory=list)
    repository_count: int = 0
    scanned_repositories: int = 0
    failed_repositories: int = 0
    commit_count: int = 0
    truncated_repositories: List[str] = field(default_factory=list)
    earliest_commit: Optional[dt.datetime] = None
    elapsed: float = 0.0
    error: Optional[str] = None
