"""FastAPI application exposing scans over HTTP."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Any, List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from gitcommits.config import DEFAULT_MAX_COUNT, AppConfig
from gitcommits.git.runner import GitRunner
from gitcommits.models import FIELD_NAMES, ScanFilter
from gitcommits.report.formatting import search_commits, select_fields
from gitcommits.report.stats import CommitStatistics
from gitcommits.scan.coordinator import InvalidScanError, ScanCoordinator
from gitcommits.utils.dates import TimeRange, time_range_args
from gitcommits.utils.pool import default_worker_count

LOGGER = logging.getLogger(__name__)

MAX_COUNT_LIMIT = 10_000

app = FastAPI(title="gitcommits", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class ScanPayload(BaseModel):
    paths: List[str]
    since: str | None = None
    until: str | None = None
    time_range: TimeRange | None = None
    author: str | None = None
    author_filter: str | None = None
    search: str | None = None
    fields: List[str] | None = None
    stats: bool = False
    workers: int | None = None
    max_count: int = DEFAULT_MAX_COUNT
    prefilter: bool = True
    verify_paths: bool = False


class AuthorsPayload(BaseModel):
    paths: List[str]
    workers: int | None = None


def _sanitize_paths(paths: List[str]) -> List[str]:
    cleaned = []
    for raw in paths:
        path = raw.strip().replace("\r", "").replace("\n", "")
        if "\0" in path:
            raise HTTPException(status_code=400, detail="Invalid path: contains null byte")
        if path:
            cleaned.append(path)
    return cleaned


def _clamp_workers(requested: int | None) -> int:
    limit = default_worker_count()
    return max(1, min(requested or limit, limit))


def _scan_filter(payload: ScanPayload) -> ScanFilter:
    since, until = payload.since, payload.until
    if payload.time_range is TimeRange.CUSTOM:
        try:
            start = dt.date.fromisoformat(since[:10]) if since else None
            end = dt.date.fromisoformat(until[:10]) if until else None
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid date: {exc}") from exc
        since, until = time_range_args(TimeRange.CUSTOM, start, end)
    elif payload.time_range is not None:
        since, until = time_range_args(payload.time_range)
    return ScanFilter(
        since=since,
        until=until,
        author=payload.author,
        author_filter=payload.author_filter,
    )


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.get("/health")
async def health() -> dict[str, Any]:
    config = AppConfig()
    runner = GitRunner(config.git_executable, timeout=config.timeout)
    return {"status": "ok", "git": config.git_executable, "git_available": runner.is_available()}


@app.post("/scan")
async def scan(payload: ScanPayload) -> dict[str, Any]:
    paths = _sanitize_paths(payload.paths)
    if not paths:
        raise HTTPException(status_code=400, detail="No path provided")

    unknown = [name for name in payload.fields or [] if name not in FIELD_NAMES]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown fields: {', '.join(unknown)}")

    config = AppConfig(
        workers=_clamp_workers(payload.workers),
        max_count=max(1, min(payload.max_count, MAX_COUNT_LIMIT)),
        prefilter=payload.prefilter,
        verify_paths=payload.verify_paths,
    )
    coordinator = ScanCoordinator(config)
    try:
        commits = await coordinator.execute_scan_async(paths, _scan_filter(payload))
    except InvalidScanError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    shown = search_commits(commits, payload.search)
    summary = coordinator.summary
    response: dict[str, Any] = {
        "state": summary.state.value,
        "repositories": summary.repository_count,
        "scanned_repositories": summary.scanned_repositories,
        "failed_repositories": summary.failed_repositories,
        "truncated_repositories": summary.truncated_repositories,
        "count": len(shown),
        "commits": [select_fields(commit, payload.fields) for commit in shown],
    }
    if payload.stats:
        statistics = CommitStatistics.from_commits(shown)
        response["stats"] = {
            "total": statistics.total,
            "by_author": statistics.by_author,
            "by_repository": statistics.by_repository,
            "by_date": statistics.by_date,
        }
    return response


@app.post("/authors")
async def authors(payload: AuthorsPayload) -> dict[str, Any]:
    paths = _sanitize_paths(payload.paths)
    if not paths:
        raise HTTPException(status_code=400, detail="No path provided")

    coordinator = ScanCoordinator(AppConfig(workers=_clamp_workers(payload.workers)))
    names = await asyncio.to_thread(coordinator.collect_authors, paths)
    return {"authors": names, "repositories": coordinator.summary.repository_count}
