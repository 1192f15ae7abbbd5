"""Polling watch of a rollout's status.

The rollout is re-fetched on a fixed interval rather than through a
streaming watch, so every tick issues its own request and a dropped
connection only costs one tick.

Example:
    >>> from rolloutctl.config import WatchOptions
    >>> from rolloutctl.watch import watch_status
    >>> record = watch_status(
    ...     lambda: accessor.get(ResourceKind.ROLLOUT, "shop", "checkout"),
    ...     WatchOptions(timeout=300),
    ...     emit=print,
    ...     rollout="checkout",
    ... )
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import structlog

from rolloutctl.config import WatchOptions
from rolloutctl.errors import (
    RolloutDegradedError,
    RolloutsError,
    WatchCancelledError,
    WatchTimeoutError,
)
from rolloutctl.status import PHASE_DEGRADED, format_status_line, is_terminal, project_status

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable, Mapping

    from rolloutctl.models import StatusRecord

logger = structlog.get_logger(__name__)

FETCH_ERROR_PREFIX = "Error fetching rollout"


def _finish(rollout: str, record: StatusRecord) -> StatusRecord:
    if record.status == PHASE_DEGRADED:
        raise RolloutDegradedError(rollout or record.name, record.message)
    return record


def watch_status(
    fetch: Callable[[], Mapping[str, Any]],
    options: WatchOptions | None = None,
    emit: Callable[[str], None] = print,
    *,
    rollout: str = "",
    cancel: threading.Event | None = None,
    clock: Callable[[], float] = time.monotonic,
    wait: Callable[[float], Any] | None = None,
) -> StatusRecord:
    """Print a rollout's status line until it reaches a terminal phase.

    The line is emitted once immediately, then again on each tick only if
    it changed. Without ``options.watch`` exactly one fetch-project-emit
    cycle runs and the record is returned whatever its phase.

    Args:
        fetch: Returns the current rollout document.
        options: Watch parameters (defaults to WatchOptions()).
        emit: Receives each status line and tick error message.
        rollout: Rollout name used in errors.
        cancel: Event that aborts the watch when set.
        clock: Monotonic clock in seconds.
        wait: Sleeps for the given seconds. Defaults to ``cancel.wait`` when
            a cancel event is given, else ``time.sleep``.

    Returns:
        The last StatusRecord (phase Healthy when watching).

    Raises:
        RolloutsError: If the first fetch fails.
        RolloutDegradedError: If the rollout ends Degraded.
        WatchTimeoutError: If the deadline passes first.
        WatchCancelledError: If ``cancel`` is set first.
    """
    opts = options or WatchOptions()
    if wait is None:
        wait = cancel.wait if cancel is not None else time.sleep

    record = project_status(fetch())
    last_line = format_status_line(record)
    emit(last_line)

    if not opts.watch:
        return record
    if is_terminal(record.status):
        return _finish(rollout, record)

    timeout = opts.timeout or 0.0
    deadline = clock() + timeout if opts.has_deadline else None

    while True:
        if cancel is not None and cancel.is_set():
            raise WatchCancelledError(rollout or record.name)
        if deadline is not None and clock() >= deadline:
            raise WatchTimeoutError(rollout or record.name, timeout, last_line)

        pause = opts.interval
        if deadline is not None:
            pause = min(pause, max(deadline - clock(), 0.0))
        wait(pause)

        if cancel is not None and cancel.is_set():
            raise WatchCancelledError(rollout or record.name)
        if deadline is not None and clock() >= deadline:
            raise WatchTimeoutError(rollout or record.name, timeout, last_line)

        try:
            obj = fetch()
        except RolloutsError as e:
            logger.warning("watch_fetch_failed", rollout=rollout, error=str(e))
            emit(f"{FETCH_ERROR_PREFIX}: {e}")
            continue

        record = project_status(obj)
        line = format_status_line(record)
        if line != last_line:
            emit(line)
            last_line = line

        if is_terminal(record.status):
            return _finish(rollout, record)


__all__ = ["FETCH_ERROR_PREFIX", "watch_status"]
