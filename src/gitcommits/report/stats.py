"""Commit statistics by author, repository and day."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

from gitcommits.models import DAY_FORMAT, CommitRecord
from gitcommits.utils.dates import parse_date

UNKNOWN_AUTHOR = "unknown author"
UNKNOWN_DATE = "unknown date"

Counts = List[Tuple[str, int]]


def _by_count(counter: Counter) -> Counts:
    return sorted(counter.items(), key=lambda item: (-item[1], item[0]))


def count_by_author(commits: Iterable[CommitRecord]) -> Counts:
    return _by_count(Counter(c.author or UNKNOWN_AUTHOR for c in commits))


def count_by_repository(commits: Iterable[CommitRecord]) -> Counts:
    return _by_count(Counter(c.repo_folder or c.repository for c in commits))


def day_of(commit: CommitRecord) -> str:
    parsed = parse_date(commit.date)
    return parsed.strftime(DAY_FORMAT) if parsed else UNKNOWN_DATE


def count_by_date(commits: Iterable[CommitRecord]) -> Counts:
    """Commits per day, newest day first; unparsable dates are grouped last."""
    counter = Counter(day_of(c) for c in commits)
    known = sorted(
        ((day, n) for day, n in counter.items() if day != UNKNOWN_DATE), reverse=True
    )
    if UNKNOWN_DATE in counter:
        known.append((UNKNOWN_DATE, counter[UNKNOWN_DATE]))
    return known


@dataclass(slots=True)
class CommitStatistics:
    total: int = 0
    by_author: Counts = field(default_factory=list)
    by_repository: Counts = field(default_factory=list)
    by_date: Counts = field(default_factory=list)

    @classmethod
    def from_commits(cls, commits: Sequence[CommitRecord]) -> "CommitStatistics":
        return cls(
            total=len(commits),
            by_author=count_by_author(commits),
            by_repository=count_by_repository(commits),
            by_date=count_by_date(commits),
        )
