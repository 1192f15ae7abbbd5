"""Unit tests for the polling watch loop."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from typing import Any

import pytest

from rolloutctl.config import WatchOptions
from rolloutctl.errors import (
    ClusterUnavailableError,
    RolloutDegradedError,
    RolloutNotFoundError,
    WatchCancelledError,
    WatchTimeoutError,
)
from rolloutctl.watch import FETCH_ERROR_PREFIX, watch_status


class FakeClock:
    """Monotonic clock advanced only by wait()."""

    def __init__(self) -> None:
        self.now = 0.0
        self.waits: list[float] = []

    def __call__(self) -> float:
        return self.now

    def wait(self, seconds: float) -> None:
        self.waits.append(seconds)
        self.now += seconds


def _fetcher(responses: Iterable[Any]) -> Callable[[], dict[str, Any]]:
    """Return successive responses; the last one repeats, exceptions are raised."""
    queue = list(responses)

    def fetch() -> dict[str, Any]:
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    return fetch


def _rollout(phase: str, message: str = "") -> dict[str, Any]:
    status: dict[str, Any] = {"phase": phase}
    if message:
        status["message"] = message
    return {
        "metadata": {"name": "checkout", "namespace": "shop", "annotations": {"rollout.argoproj.io/revision": "3"}},
        "status": status,
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestWatchStatus:
    """Tests for watch_status."""

    def test_no_watch_returns_after_one_cycle(self, clock: FakeClock) -> None:
        """Test a single fetch without watching, even when Degraded."""
        lines: list[str] = []

        record = watch_status(
            _fetcher([_rollout("Degraded", "boom")]),
            WatchOptions(watch=False),
            lines.append,
            clock=clock,
            wait=clock.wait,
        )

        assert record.status == "Degraded"
        assert lines == ["Degraded - boom (revision:3)"]
        assert clock.waits == []

    def test_healthy_immediately(self, clock: FakeClock) -> None:
        """Test a Healthy rollout returns without waiting."""
        lines: list[str] = []

        record = watch_status(
            _fetcher([_rollout("Healthy")]), WatchOptions(), lines.append, clock=clock, wait=clock.wait
        )

        assert record.status == "Healthy"
        assert lines == ["Healthy (revision:3)"]
        assert clock.waits == []

    def test_degraded_raises(self, clock: FakeClock) -> None:
        """Test a Degraded rollout raises with its message."""
        with pytest.raises(RolloutDegradedError, match="degraded state with message: analysis failed") as exc_info:
            watch_status(
                _fetcher([_rollout("Progressing"), _rollout("Degraded", "analysis failed")]),
                WatchOptions(),
                lambda _line: None,
                rollout="checkout",
                clock=clock,
                wait=clock.wait,
            )

        assert exc_info.value.rollout == "checkout"
        assert exc_info.value.exit_code == 10

    def test_unchanged_lines_are_not_repeated(self, clock: FakeClock) -> None:
        """Test only changed status lines are emitted."""
        lines: list[str] = []
        fetch = _fetcher(
            [
                _rollout("Progressing", "waiting"),
                _rollout("Progressing", "waiting"),
                _rollout("Progressing", "waiting"),
                _rollout("Paused"),
                _rollout("Healthy"),
            ]
        )

        record = watch_status(fetch, WatchOptions(interval=2), lines.append, clock=clock, wait=clock.wait)

        assert record.status == "Healthy"
        assert lines == [
            "Progressing - waiting (revision:3)",
            "Paused (revision:3)",
            "Healthy (revision:3)",
        ]
        assert clock.waits == [2, 2, 2, 2]

    def test_tick_errors_are_reported_and_skipped(self, clock: FakeClock) -> None:
        """Test a failed fetch emits an error line and the watch continues."""
        lines: list[str] = []
        fetch = _fetcher(
            [
                _rollout("Progressing"),
                ClusterUnavailableError(reason="connection reset"),
                _rollout("Healthy"),
            ]
        )

        record = watch_status(fetch, WatchOptions(), lines.append, clock=clock, wait=clock.wait)

        assert record.status == "Healthy"
        assert lines[1].startswith(f"{FETCH_ERROR_PREFIX}: Kubernetes API server unavailable")
        assert lines[2] == "Healthy (revision:3)"

    def test_first_fetch_error_propagates(self, clock: FakeClock) -> None:
        """Test the initial fetch is not retried."""
        with pytest.raises(RolloutNotFoundError):
            watch_status(
                _fetcher([RolloutNotFoundError("checkout", namespace="shop")]),
                WatchOptions(),
                lambda _line: None,
                clock=clock,
                wait=clock.wait,
            )

    def test_timeout(self, clock: FakeClock) -> None:
        """Test the watch gives up at its deadline and never overshoots it."""
        with pytest.raises(WatchTimeoutError) as exc_info:
            watch_status(
                _fetcher([_rollout("Progressing")]),
                WatchOptions(timeout=5, interval=2),
                lambda _line: None,
                rollout="checkout",
                clock=clock,
                wait=clock.wait,
            )

        assert clock.waits == [2, 2, 1]
        assert sum(clock.waits) <= 5
        assert exc_info.value.last_status == "Progressing (revision:3)"
        assert isinstance(exc_info.value, TimeoutError)

    def test_zero_timeout_waits_forever(self, clock: FakeClock) -> None:
        """Test timeout 0 means no deadline."""
        fetch = _fetcher([_rollout("Progressing")] * 50 + [_rollout("Healthy")])

        record = watch_status(fetch, WatchOptions(timeout=0, interval=10), lambda _line: None, clock=clock, wait=clock.wait)

        assert record.status == "Healthy"
        assert clock.now == 500

    def test_cancel(self, clock: FakeClock) -> None:
        """Test setting the cancel event stops the watch."""
        cancel = threading.Event()

        def wait(seconds: float) -> None:
            clock.wait(seconds)
            if len(clock.waits) == 2:
                cancel.set()

        with pytest.raises(WatchCancelledError):
            watch_status(
                _fetcher([_rollout("Progressing")]),
                WatchOptions(),
                lambda _line: None,
                rollout="checkout",
                cancel=cancel,
                clock=clock,
                wait=wait,
            )

        assert len(clock.waits) == 2

    def test_cancel_before_first_wait(self, clock: FakeClock) -> None:
        """Test an already-set event cancels after the first emit."""
        cancel = threading.Event()
        cancel.set()
        lines: list[str] = []

        with pytest.raises(WatchCancelledError):
            watch_status(
                _fetcher([_rollout("Progressing")]),
                WatchOptions(),
                lines.append,
                cancel=cancel,
                clock=clock,
                wait=clock.wait,
            )

        assert lines == ["Progressing (revision:3)"]
        assert clock.waits == []
