"""Tests for the bounded fan-out helper."""

from __future__ import annotations

import threading
import time
from unittest.mock import patch

from gitcommits.utils.pool import default_worker_count, fan_out


class TestDefaultWorkerCount:
    """Test worker budget computation."""

    def test_processors_minus_one(self) -> None:
        """One worker is left for the rest of the machine."""
        with patch("gitcommits.utils.pool.os.cpu_count", return_value=8):
            assert default_worker_count() == 7

    def test_minimum_one(self) -> None:
        """There is always at least one worker."""
        with patch("gitcommits.utils.pool.os.cpu_count", return_value=1):
            assert default_worker_count() == 1
        with patch("gitcommits.utils.pool.os.cpu_count", return_value=None):
            assert default_worker_count() == 1


class TestFanOut:
    """Test fan_out scheduling."""

    def test_yields_every_item(self) -> None:
        """Every seed is processed exactly once."""
        results = dict(fan_out(range(10), lambda n: (n * n, ()), workers=3))
        assert results == {n: n * n for n in range(10)}

    def test_children_join_frontier(self) -> None:
        """Children returned by work are processed too."""

        def work(n: int):
            return n, [n * 2, n * 2 + 1] if n < 4 else []

        seen = sorted(item for item, _ in fan_out([1], work, workers=2))
        assert seen == [1, 2, 3, 4, 5, 6, 7]

    def test_bounded_concurrency(self) -> None:
        """No more than ``workers`` items run at once."""
        lock = threading.Lock()
        active = 0
        peak = 0

        def work(n: int):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with lock:
                active -= 1
            return n, ()

        list(fan_out(range(20), work, workers=3))
        assert peak <= 3

    def test_stops_dispatching_when_not_running(self) -> None:
        """Once the flag clears, pending items are not started."""
        running = threading.Event()
        running.set()
        started = []

        def work(n: int):
            started.append(n)
            running.clear()
            return n, ()

        list(fan_out(range(50), work, workers=1, is_running=running.is_set))
        assert started == [0]

    def test_failing_item_is_skipped(self) -> None:
        """An exception in one item does not stop the others."""

        def work(n: int):
            if n == 2:
                raise RuntimeError("boom")
            return n, ()

        results = sorted(item for item, _ in fan_out(range(5), work, workers=2))
        assert results == [0, 1, 3, 4]

    def test_empty_seeds(self) -> None:
        """No seeds produce nothing."""
        assert list(fan_out([], lambda n: (n, ()), workers=4)) == []
