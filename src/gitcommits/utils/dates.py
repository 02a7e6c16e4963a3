"""Date parsing, ordering and time-range helpers."""

from __future__ import annotations

import datetime as dt
import enum
from typing import Iterable, List, Optional, Tuple

from gitcommits.models import DAY_FORMAT, CommitRecord

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
# Local time, the clock git applies to --since/--until
GIT_DATE_FORMAT = "format-local:%Y-%m-%d %H:%M:%S"


def parse_date(text: str | None) -> Optional[dt.datetime]:
    """Parse a commit or filter date, returning ``None`` when unparsable."""
    if not text:
        return None
    value = text.strip()
    try:
        return dt.datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        pass
    try:
        parsed = dt.datetime.fromisoformat(value)
    except ValueError:
        return None
    # Filters and commit dates are compared as local wall-clock times.
    return parsed.replace(tzinfo=None)


def parse_commit_date(text: str | None) -> dt.datetime:
    """Parse a commit date; unparsable values sort as the oldest possible date."""
    return parse_date(text) or dt.datetime.min


def within_range(record: CommitRecord, since: str | None, until: str | None) -> bool:
    """Check ``since <= date < until``; records with unparsable dates are kept."""
    commit_date = parse_date(record.date)
    if commit_date is None:
        return True
    since_date = parse_date(since)
    if since_date is not None and commit_date < since_date:
        return False
    until_date = parse_date(until)
    if until_date is not None and commit_date >= until_date:
        return False
    return True


def sort_commits(commits: Iterable[CommitRecord]) -> List[CommitRecord]:
    """Order commits newest first.

    Ties are broken on repository path and commit id so the order does not
    depend on the order workers finished in.
    """
    return sorted(
        commits,
        key=lambda c: (parse_commit_date(c.date), c.repo_path, c.commit_id),
        reverse=True,
    )


class TimeRange(str, enum.Enum):
    ALL = "all"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    CUSTOM = "custom"


def _start_of(day: dt.date) -> str:
    return f"{day.strftime(DAY_FORMAT)} 00:00:00"


def time_range_args(
    time_range: TimeRange | str,
    start: dt.date | None = None,
    end: dt.date | None = None,
    today: dt.date | None = None,
) -> Tuple[Optional[str], Optional[str]]:
    """Translate a named range into git ``--since``/``--until`` values.

    ``until`` is the midnight after the last included day, since git treats
    it as exclusive.
    """
    time_range = TimeRange(time_range)
    today = today or dt.date.today()
    one_day = dt.timedelta(days=1)

    if time_range is TimeRange.DAY:
        day = start or today
        return _start_of(day), _start_of(day + one_day)

    if time_range in (TimeRange.WEEK, TimeRange.MONTH) and start and end:
        return _start_of(start), _start_of(end + one_day)

    if time_range is TimeRange.WEEK:
        monday = today - dt.timedelta(days=today.weekday())
        return _start_of(monday), _start_of(monday + dt.timedelta(days=7))

    if time_range is TimeRange.MONTH:
        first = today.replace(day=1)
        next_first = (first + dt.timedelta(days=32)).replace(day=1)
        return _start_of(first), _start_of(next_first)

    if time_range is TimeRange.YEAR:
        if start is None:
            try:
                start = today.replace(year=today.year - 1)
            except ValueError:  # 29 February
                start = today.replace(year=today.year - 1, day=28)
        return _start_of(start), _start_of((end or today) + one_day)

    if time_range is TimeRange.CUSTOM:
        since = _start_of(start) if start else None
        until = _start_of(end + one_day) if end else None
        return since, until

    return None, None
