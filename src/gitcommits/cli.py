"""Command line interface for gitcommits."""

from __future__ import annotations

import datetime as dt
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TypeVar

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from gitcommits.config import DEFAULT_MAX_COUNT, AppConfig
from gitcommits.git.runner import GitRunner
from gitcommits.models import FIELD_NAMES, CommitRecord, ScanFilter, ScanSummary
from gitcommits.report.formatting import format_commits, search_commits, select_fields
from gitcommits.report.stats import CommitStatistics, Counts
from gitcommits.scan.coordinator import InvalidScanError, ScanCoordinator
from gitcommits.utils.dates import TimeRange, time_range_args

T = TypeVar("T")

console = Console()
app = typer.Typer(help="gitcommits - collect commit history across many git repositories")

DEFAULT_FIELDS = ("Date", "Repository", "Author", "CommitId", "Message")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


class RichProgress:
    """Feeds coordinator progress into a rich progress bar."""

    def __init__(self, progress: Progress) -> None:
        self.progress = progress
        self.task_id = progress.add_task("Scanning", total=100)

    def report(self, percent: int, label: str) -> None:
        self.progress.update(self.task_id, completed=percent, description=escape(label[-60:]))

    def log(self, message: str) -> None:
        self.progress.console.log(message, markup=False)


def _parse_day(value: Optional[str], option: str) -> Optional[dt.date]:
    if not value:
        return None
    try:
        return dt.date.fromisoformat(value.strip()[:10])
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid date for {option}: {value}") from exc


def _build_filter(
    since: Optional[str],
    until: Optional[str],
    time_range: Optional[TimeRange],
    author: Optional[str],
    author_filter: Optional[str],
) -> ScanFilter:
    if time_range is TimeRange.CUSTOM:
        since, until = time_range_args(
            time_range, _parse_day(since, "--since"), _parse_day(until, "--until")
        )
    elif time_range is not None:
        since, until = time_range_args(time_range)
    return ScanFilter(since=since, until=until, author=author, author_filter=author_filter)


def _parse_fields(fields: Optional[str]) -> List[str]:
    if not fields:
        return list(DEFAULT_FIELDS)
    names = [name.strip() for name in fields.split(",") if name.strip()]
    unknown = [name for name in names if name not in FIELD_NAMES]
    if unknown:
        raise typer.BadParameter(
            f"Unknown field(s): {', '.join(unknown)}. Choose from {', '.join(FIELD_NAMES)}"
        )
    return names


def _run_cancellable(coordinator: ScanCoordinator, func: Callable[..., T], *args) -> T:
    """Run ``func`` off the main thread so Ctrl+C can stop the scan cleanly."""
    with ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(func, *args)
        try:
            return future.result()
        except KeyboardInterrupt:
            coordinator.stop()
            console.print("[yellow]Stopping, waiting for running git commands...[/yellow]")
            return future.result()


def _counts_table(title: str, label: str, counts: Counts) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column(label)
    table.add_column("Commits", justify="right")
    for key, count in counts:
        table.add_row(escape(key), str(count))
    return table


def _print_commits(commits: Sequence[CommitRecord], fields: Sequence[str]) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    for name in fields:
        table.add_column(name, overflow="fold")
    for commit in commits:
        values = select_fields(commit, fields)
        table.add_row(*(escape(values[name]) for name in fields))
    console.print(table)


def _print_summary(summary: ScanSummary, shown: int) -> None:
    console.print(
        f"Found {summary.commit_count} commits ({shown} shown) in "
        f"{summary.scanned_repositories} of {summary.repository_count} repositories, "
        f"{summary.elapsed:.1f}s ({summary.state.value})"
    )
    if summary.earliest_commit is not None:
        console.print(f"Earliest first commit: {summary.earliest_commit:%Y-%m-%d %H:%M:%S}")
    if summary.failed_repositories:
        console.print(f"[yellow]{summary.failed_repositories} repositories could not be read.[/yellow]")
    for path in summary.truncated_repositories:
        console.print(f"[yellow]Result limit reached for {path}; older commits are missing.[/yellow]")


@app.command()
def scan(
    roots: List[Path] = typer.Argument(
        ..., help="Directories to search for git repositories.", resolve_path=True
    ),
    since: Optional[str] = typer.Option(None, help="Earliest commit date (inclusive)"),
    until: Optional[str] = typer.Option(
        None, help="Latest commit date (exclusive, defaults to tomorrow)"
    ),
    time_range: Optional[TimeRange] = typer.Option(
        None, "--range", help="Named time range; 'custom' reads --since/--until as whole days"
    ),
    author: Optional[str] = typer.Option(None, help="Author pattern passed to git log"),
    author_filter: Optional[str] = typer.Option(
        None, "--author-filter", help="Comma-separated author substrings (any may match)"
    ),
    search: Optional[str] = typer.Option(None, help="Only show commits containing this text"),
    template: Optional[str] = typer.Option(
        None, "--format", help="Line template, e.g. '{Repository}: {Message}'"
    ),
    repeat_repo: bool = typer.Option(
        True, "--repeat-repo/--no-repeat-repo", help="Repeat repository names in --format output"
    ),
    fields: Optional[str] = typer.Option(None, help="Comma-separated table columns"),
    stats: bool = typer.Option(False, "--stats", help="Show commit statistics"),
    workers: Optional[int] = typer.Option(None, min=1, help="Parallel workers"),
    max_count: int = typer.Option(DEFAULT_MAX_COUNT, min=1, help="Commit limit per repository"),
    prefilter: bool = typer.Option(
        True, "--prefilter/--no-prefilter", help="Skip repositories without matching commits early"
    ),
    verify_paths: bool = typer.Option(
        False, "--verify-paths", help="Treat each root as a repository instead of searching it"
    ),
    first_commit: bool = typer.Option(
        False, "--first-commit", help="Report the earliest first-commit date"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Collect commits from every repository found under ROOTS."""
    _setup_logging(verbose)
    columns = _parse_fields(fields)
    scan_filter = _build_filter(since, until, time_range, author, author_filter)
    config = AppConfig(
        workers=workers,
        max_count=max_count,
        prefilter=prefilter,
        verify_paths=verify_paths,
        track_first_commit=first_commit,
    )

    with Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
        transient=True,
    ) as progress:
        coordinator = ScanCoordinator(config, progress=RichProgress(progress))
        try:
            commits = _run_cancellable(
                coordinator, coordinator.execute_scan, [str(root) for root in roots], scan_filter
            )
        except InvalidScanError as exc:
            raise typer.BadParameter(str(exc)) from exc

    shown = search_commits(commits, search)
    if not shown:
        console.print("[yellow]No commits found.[/yellow]")
    elif template:
        console.print(
            format_commits(shown, template, show_repeated_repo_names=repeat_repo),
            markup=False,
            highlight=False,
            end="",
        )
    else:
        _print_commits(shown, columns)

    if stats and shown:
        statistics = CommitStatistics.from_commits(shown)
        console.print(_counts_table("Commits by author", "Author", statistics.by_author))
        console.print(_counts_table("Commits by repository", "Repository", statistics.by_repository))
        console.print(_counts_table("Commits by date", "Date", statistics.by_date))

    _print_summary(coordinator.summary, len(shown))


@app.command()
def authors(
    roots: List[Path] = typer.Argument(
        ..., help="Directories to search for git repositories.", resolve_path=True
    ),
    workers: Optional[int] = typer.Option(None, min=1, help="Parallel workers"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """List the distinct commit authors of every repository under ROOTS."""
    _setup_logging(verbose)
    coordinator = ScanCoordinator(AppConfig(workers=workers))
    try:
        names = _run_cancellable(
            coordinator, coordinator.collect_authors, [str(root) for root in roots]
        )
    except InvalidScanError as exc:
        raise typer.BadParameter(str(exc)) from exc

    if not names:
        console.print("[yellow]No authors found.[/yellow]")
        return
    for name in names:
        console.print(name, markup=False, highlight=False)
    console.print(
        f"{len(names)} authors in {coordinator.summary.scanned_repositories} repositories"
    )


@app.command()
def check() -> None:
    """Check that the git executable can be run."""
    config = AppConfig()
    runner = GitRunner(config.git_executable, timeout=config.timeout)
    if runner.is_available():
        console.print(f"git found: [bold]{config.git_executable}[/bold]")
        return
    console.print(f"[red]git not available: {config.git_executable}[/red]")
    raise typer.Exit(code=1)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn

        from gitcommits.web.app import app as web_app
    except ImportError as exc:  # pragma: no cover - depends on extras
        raise typer.BadParameter(
            "The web extras are not installed. Install them with \"python -m pip install '.[web]'\""
        ) from exc

    console.print(f"Starting API on http://{host}:{port}")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
