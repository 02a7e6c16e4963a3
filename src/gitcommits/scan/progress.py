"""Progress and author-history sinks consumed by the scan coordinator."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, Protocol

LOGGER = logging.getLogger(__name__)


def clamp_percent(percent: float) -> int:
    return int(max(0, min(100, percent)))


class ProgressReporter(Protocol):
    def report(self, percent: int, label: str) -> None: ...

    def log(self, message: str) -> None: ...


class AuthorSink(Protocol):
    def add_recent_author(self, name: str) -> None: ...

    def add_scanned_authors(self, names: Iterable[str]) -> None: ...


class NullProgress:
    """Discards everything."""

    def report(self, percent: int, label: str) -> None:
        pass

    def log(self, message: str) -> None:
        pass


class LoggingProgress:
    """Sends status lines to the module logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or LOGGER

    def report(self, percent: int, label: str) -> None:
        self.logger.debug("[%3d%%] %s", clamp_percent(percent), label)

    def log(self, message: str) -> None:
        self.logger.info(message)


class LoopProgress:
    """Posts progress to an event loop without waiting for it to run.

    Worker threads call ``report``/``log``; the callbacks execute later on
    the loop's thread.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        on_report: Callable[[int, str], None],
        on_log: Callable[[str], None] | None = None,
    ) -> None:
        self.loop = loop
        self.on_report = on_report
        self.on_log = on_log

    def _post(self, callback: Callable, *args) -> None:
        if self.loop.is_closed():
            return
        try:
            self.loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # Loop shut down between the check and the call
            pass

    def report(self, percent: int, label: str) -> None:
        self._post(self.on_report, clamp_percent(percent), label)

    def log(self, message: str) -> None:
        if self.on_log is not None:
            self._post(self.on_log, message)
