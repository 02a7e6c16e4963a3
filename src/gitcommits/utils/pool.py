"""Bounded fan-out/fan-in over an explicit work frontier."""

from __future__ import annotations

import logging
import os
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, Iterable, Iterator, Optional, Tuple, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

WorkFn = Callable[[T], Tuple[R, Iterable[T]]]


def default_worker_count() -> int:
    """Number of processing units minus one, never below one."""
    return max(1, (os.cpu_count() or 1) - 1)


def _always_running() -> bool:
    return True


def fan_out(
    seeds: Iterable[T],
    work: WorkFn,
    *,
    workers: int,
    is_running: Optional[Callable[[], bool]] = None,
) -> Iterator[Tuple[T, R]]:
    """Run ``work`` over a frontier seeded with ``seeds``.

    ``work(item)`` returns ``(result, children)``; children are appended to
    the frontier, so recursive traversals never spawn tasks of their own.
    At most ``workers`` items are in flight. Results are yielded as they
    complete, in no particular order. Once ``is_running()`` is false no new
    item is dispatched; in-flight items are still drained and yielded.
    """
    workers = max(1, workers)
    is_running = is_running or _always_running
    frontier = deque(seeds)
    pending: Dict[Future, T] = {}

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="gitcommits") as executor:
        while frontier or pending:
            while frontier and len(pending) < workers and is_running():
                item = frontier.popleft()
                pending[executor.submit(work, item)] = item

            if not pending:
                break

            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                item = pending.pop(future)
                try:
                    result, children = future.result()
                except Exception as exc:
                    LOGGER.warning("Work item %s failed: %s", item, exc)
                    continue
                if is_running():
                    frontier.extend(children)
                yield item, result
