"""Tests for commit collection."""

from __future__ import annotations

import datetime as dt
import threading
from pathlib import Path

from conftest import FakeGitRunner, log_line

from gitcommits.collect.collector import (
    CommitCollector,
    build_log_args,
    matches_author,
    parse_log_line,
)
from gitcommits.models import RepositoryHandle, ScanFilter


class TestBuildLogArgs:
    """Test the git log argument list."""

    def test_full_filter(self) -> None:
        """Every filter part becomes a git log option."""
        args = build_log_args(
            ScanFilter(since="2024-01-01", until="2024-02-01", author="alice"), max_count=50
        )
        assert args == [
            "log",
            "--since=2024-01-01",
            "--until=2024-02-01",
            "--pretty=format:%H|%an|%ad|%s",
            "--date=format-local:%Y-%m-%d %H:%M:%S",
            "--author=alice",
            "--all",
            "-n50",
        ]

    def test_empty_filter(self) -> None:
        """No filter leaves only the fixed options."""
        args = build_log_args(ScanFilter())
        assert args[0] == "log"
        assert not any(a.startswith(("--since", "--until", "--author")) for a in args)
        assert args[-2:] == ["--all", "-n1000"]


class TestParseLogLine:
    """Test log line parsing."""

    repo = RepositoryHandle.from_path("/work/proj")

    def test_well_formed(self) -> None:
        """A four-field line becomes a commit record."""
        record = parse_log_line("abc|Alice|2024-01-01 10:00:00|Fix bug", self.repo)
        assert record is not None
        assert record.commit_id == "abc"
        assert record.author == "Alice"
        assert record.date == "2024-01-01 10:00:00"
        assert record.message == "Fix bug"
        assert record.repository == "proj"
        assert record.repo_folder == "proj"
        assert record.repo_path == str(Path("/work/proj"))

    def test_pipe_in_message_kept(self) -> None:
        """Separators inside the subject stay in the message."""
        record = parse_log_line("abc|Alice|2024-01-01 10:00:00|a | b | c", self.repo)
        assert record.message == "a | b | c"

    def test_empty_message(self) -> None:
        """An empty subject is allowed."""
        record = parse_log_line("abc|Alice|2024-01-01 10:00:00|", self.repo)
        assert record is not None
        assert record.message == ""

    def test_too_few_fields(self) -> None:
        """Short or empty lines are rejected."""
        assert parse_log_line("abc|Alice|2024-01-01", self.repo) is None
        assert parse_log_line("", self.repo) is None


class TestMatchesAuthor:
    """Test the author substring filter."""

    def test_no_terms_matches_all(self) -> None:
        """No terms match every author."""
        assert matches_author("Anyone", [])

    def test_case_insensitive_any(self) -> None:
        """Any term matching, in any case, is enough."""
        assert matches_author("Alice Smith", ["bob", "SMITH"])
        assert not matches_author("Alice Smith", ["bob", "carol"])


class TestCommitCollector:
    """Test CommitCollector against a scripted git."""

    def _repo(self, make_repo, name: str = "repo") -> RepositoryHandle:
        return RepositoryHandle.from_path(make_repo(name))

    def test_collects_commits(self, make_repo) -> None:
        """Commits are read from git log in one call."""
        repo = self._repo(make_repo)
        runner = FakeGitRunner(
            {
                repo.path: [
                    log_line("c2", "Bob", "2024-01-02 00:00:00", "second"),
                    log_line("c1", "Alice", "2024-01-01 00:00:00", "first"),
                ]
            }
        )

        outcome = CommitCollector(runner).collect(repo, ScanFilter())

        assert outcome.complete
        assert outcome.error is None
        assert [c.commit_id for c in outcome.commits] == ["c2", "c1"]
        (args, key), = runner.log_calls()
        assert key == repo.key
        assert "--all" in args

    def test_duplicate_ids_and_malformed_lines(self, make_repo) -> None:
        """Repeated ids and garbage lines are dropped."""
        repo = self._repo(make_repo)
        runner = FakeGitRunner(
            {
                repo.path: [
                    log_line("c1", "Alice", "2024-01-01 00:00:00", "first"),
                    "garbage without separators",
                    log_line("c1", "Alice", "2024-01-01 00:00:00", "first"),
                ]
            }
        )
        outcome = CommitCollector(runner).collect(repo, ScanFilter())
        assert [c.commit_id for c in outcome.commits] == ["c1"]

    def test_author_filter_applied(self, make_repo) -> None:
        """Only authors matching a term are kept."""
        repo = self._repo(make_repo)
        runner = FakeGitRunner(
            {
                repo.path: [
                    log_line("c1", "Alice Smith", "2024-01-01 00:00:00", "a"),
                    log_line("c2", "Bob Jones", "2024-01-01 00:00:00", "b"),
                    log_line("c3", "Carol", "2024-01-01 00:00:00", "c"),
                ]
            }
        )
        outcome = CommitCollector(runner).collect(
            repo, ScanFilter(author_filter="smith, CAROL")
        )
        assert [c.commit_id for c in outcome.commits] == ["c1", "c3"]

    def test_failure_recorded_not_raised(self, make_repo) -> None:
        """A runner error is recorded on the outcome."""
        repo = self._repo(make_repo)
        runner = FakeGitRunner({repo.path: []}, failing=[repo.path])
        outcome = CommitCollector(runner).collect(repo, ScanFilter())
        assert outcome.commits == []
        assert outcome.error
        assert outcome.complete

    def test_nonzero_exit_is_failure(self, make_repo) -> None:
        """A nonzero exit is reported with its code."""
        repo = self._repo(make_repo)
        outcome = CommitCollector(FakeGitRunner({})).collect(repo, ScanFilter())
        assert outcome.commits == []
        assert "128" in outcome.error

    def test_not_started_when_stopped(self, make_repo) -> None:
        """No git call is made once stopped."""
        repo = self._repo(make_repo)
        runner = FakeGitRunner({repo.path: [log_line("c1", "A", "2024-01-01 00:00:00", "m")]})
        outcome = CommitCollector(runner, is_running=lambda: False).collect(repo, ScanFilter())
        assert not outcome.complete
        assert runner.log_calls() == []

    def test_interrupted_mid_output(self, make_repo) -> None:
        """Stopping while reading marks the outcome incomplete."""
        repo = self._repo(make_repo)
        runner = FakeGitRunner(
            {repo.path: [log_line(f"c{i}", "A", "2024-01-01 00:00:00", "m") for i in range(5)]}
        )
        running = threading.Event()
        running.set()
        runner.before_log = lambda key: running.clear()

        outcome = CommitCollector(runner, is_running=running.is_set).collect(repo, ScanFilter())

        assert not outcome.complete

    def test_truncation_flagged(self, make_repo) -> None:
        """Reaching max_count flags the outcome as truncated."""
        repo = self._repo(make_repo)
        runner = FakeGitRunner(
            {repo.path: [log_line(f"c{i}", "A", "2024-01-01 00:00:00", "m") for i in range(3)]}
        )
        assert CommitCollector(runner, max_count=3).collect(repo, ScanFilter()).truncated
        assert not CommitCollector(runner, max_count=4).collect(repo, ScanFilter()).truncated

    def test_first_commit_date(self, make_repo) -> None:
        """The oldest commit date is read in local time."""
        repo = self._repo(make_repo)
        runner = FakeGitRunner(
            {
                repo.path: [
                    log_line("c2", "A", "2024-01-02 00:00:00", "m"),
                    log_line("c1", "A", "2020-06-01 08:00:00", "m"),
                ]
            }
        )
        assert CommitCollector(runner).first_commit_date(repo) == dt.datetime(2020, 6, 1, 8)
        (args, _), = runner.log_calls()
        assert "--date=format-local:%Y-%m-%d %H:%M:%S" in args

    def test_first_commit_date_unavailable(self, make_repo) -> None:
        """No history gives no first commit date."""
        repo = self._repo(make_repo)
        assert CommitCollector(FakeGitRunner({})).first_commit_date(repo) is None

    def test_list_authors(self, make_repo) -> None:
        """Author names come back in log order."""
        repo = self._repo(make_repo)
        runner = FakeGitRunner(
            {
                repo.path: [
                    log_line("c2", "Bob", "2024-01-02 00:00:00", "m"),
                    log_line("c1", "Alice", "2024-01-01 00:00:00", "m"),
                ]
            }
        )
        assert CommitCollector(runner).list_authors(repo) == ["Bob", "Alice"]

    def test_list_authors_failure(self, make_repo) -> None:
        """A runner error gives no authors."""
        repo = self._repo(make_repo)
        runner = FakeGitRunner({repo.path: []}, failing=[repo.path])
        assert CommitCollector(runner).list_authors(repo) == []
