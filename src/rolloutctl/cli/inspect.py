"""Read-only rollout commands: status, list, get and history.

Example:
    $ rolloutctl status -r checkout --timeout 5m
    $ rolloutctl status --all --no-watch
    $ rolloutctl list --all
    $ rolloutctl get -r checkout
    $ rolloutctl history -r checkout --revision 3
"""

from __future__ import annotations

import re
import signal
import threading
from typing import TYPE_CHECKING, Any

import click
import structlog

from rolloutctl.cli.output import echo_result, format_table
from rolloutctl.cli.utils import (
    get_namespace,
    get_output_format,
    get_service,
    handle_errors,
    info,
    success,
)
from rolloutctl.config import DEFAULT_WATCH_INTERVAL, OutputFormat, WatchOptions
from rolloutctl.status import project_status

if TYPE_CHECKING:
    from rolloutctl.models import (
        RevisionInfo,
        RolloutDetail,
        RolloutListItem,
        StatusRecord,
    )

logger = structlog.get_logger(__name__)

_PLAIN_SECONDS = re.compile(r"\d+(?:\.\d+)?")
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


class Duration(click.ParamType):
    """Duration such as ``90``, ``30s``, ``2m`` or ``1h30m``, converted to seconds."""

    name = "duration"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> float:
        if isinstance(value, (int, float)):
            return float(value)
        text = str(value).strip()
        if _PLAIN_SECONDS.fullmatch(text):
            return float(text)
        pos = 0
        total = 0.0
        for match in _DURATION_PART.finditer(text):
            if match.start() != pos:
                break
            total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()
        if pos == 0 or pos != len(text):
            self.fail(f"{value!r} is not a valid duration (e.g. 30s, 2m, 1h)", param, ctx)
        return total


DURATION = Duration()


def _status_table(records: list[StatusRecord]) -> str:
    headers = [
        "NAME",
        "NAMESPACE",
        "STATUS",
        "REPLICAS",
        "UPDATED",
        "READY",
        "AVAILABLE",
        "STRATEGY",
        "STEP",
        "REVISION",
        "ANALYSIS",
        "MESSAGE",
    ]
    rows = [
        [
            r.name,
            r.namespace,
            r.status,
            r.replicas,
            r.updated,
            r.ready,
            r.available,
            r.strategy.value,
            r.current_step,
            r.revision,
            r.analysis,
            r.message,
        ]
        for r in records
    ]
    return format_table(headers, rows)


def _list_table(items: list[RolloutListItem], show_namespace: bool) -> str:
    if show_namespace:
        headers = ["NAME", "NAMESPACE", "STATUS", "REPLICAS", "AGE", "STRATEGY"]
        rows = [
            [i.name, i.namespace, i.status, i.replicas, i.age, i.strategy.value] for i in items
        ]
    else:
        headers = ["NAME", "STATUS", "REPLICAS", "AGE", "STRATEGY"]
        rows = [[i.name, i.status, i.replicas, i.age, i.strategy.value] for i in items]
    return format_table(headers, rows)


def _detail_text(detail: RolloutDetail, record: StatusRecord) -> str:
    lines = [
        f"Name:        {detail.name}",
        f"Namespace:   {detail.namespace}",
        f"Status:      {record.status}",
        f"Message:     {record.message}",
        f"Replicas:    {record.replicas} (updated {record.updated}, ready {record.ready}, "
        f"available {record.available})",
        f"Step:        {record.current_step}",
        f"Strategy:    {', '.join(detail.strategy) or 'none'}",
        f"Revision:    {', '.join(detail.revision) or 'none'}",
        f"Conditions:  {', '.join(detail.conditions) or 'none'}",
    ]
    if record.images:
        lines.append("Images:")
        lines.extend(f"  {name}: {image}" for name, image in sorted(record.images.items()))
    lines.append("")
    if detail.analysis_runs:
        lines.append("Analysis Runs:")
        lines.append(
            format_table(
                ["NAME", "PHASE", "REVISION", "POD-HASH", "AGE"],
                [
                    [run.name, run.phase, run.revision_tag.value, run.pod_hash, run.age]
                    for run in detail.analysis_runs
                ],
            )
        )
    else:
        lines.append("No analysis runs found for this rollout")
    return "\n".join(lines)


def _history_table(name: str, history: list[RevisionInfo]) -> str:
    lines = [f"Rollout History: {name}", "---"]
    if not history:
        lines.append("No revision history found")
        return "\n".join(lines)
    rows = [
        [
            f"{rev.revision}{' *' if rev.is_current else ''}",
            rev.started_at,
            rev.phase,
            rev.pod_hash,
            rev.duration,
        ]
        for rev in history
    ]
    lines.append(format_table(["REVISION", "STARTED", "STATUS", "POD-HASH", "AGE"], rows))
    return "\n".join(lines)


def _revision_text(revision: RevisionInfo) -> str:
    return "\n".join(
        [
            f"Revision: {revision.revision}",
            f"Started At: {revision.started_at}",
            f"Finished At: {revision.finished_at}",
            f"Duration: {revision.duration}",
            f"Phase: {revision.phase}",
            f"Pod Hash: {revision.pod_hash}",
            f"Current: {'yes' if revision.is_current else 'no'}",
        ]
    )


@click.command(
    name="status",
    help="Show the status of one rollout (watching by default) or all rollouts.",
    epilog="""
Examples:
    $ rolloutctl status -r checkout
    $ rolloutctl status -r checkout --timeout 10m --interval 5s
    $ rolloutctl status --all --no-watch

Exit Codes:
    0  - Rollout Healthy (or status printed without watching)
    3  - Rollout not found
    9  - Watch timed out
    10 - Rollout Degraded
""",
)
@click.option("--rollout", "-r", "rollout", default=None, help="Rollout name.", metavar="NAME")
@click.option(
    "--all",
    "all_namespaces",
    is_flag=True,
    default=False,
    help="Show rollouts from all namespaces (when no rollout is named).",
)
@click.option(
    "--watch/--no-watch",
    default=True,
    show_default=True,
    help="Watch the rollout until it is Healthy or Degraded.",
)
@click.option(
    "--timeout",
    "-t",
    type=DURATION,
    default=0.0,
    help="How long to watch before giving up (e.g. 30s, 5m). 0 waits forever.",
)
@click.option(
    "--interval",
    type=DURATION,
    default=DEFAULT_WATCH_INTERVAL,
    show_default=True,
    help="Polling interval while watching.",
)
@click.pass_context
@handle_errors
def status_command(
    ctx: click.Context,
    rollout: str | None,
    all_namespaces: bool,
    watch: bool,
    timeout: float,
    interval: float,
) -> None:
    """Show or watch rollout status."""
    service = get_service(ctx)
    namespace = get_namespace(ctx)
    output_format = get_output_format(ctx)

    if not rollout:
        records = service.get_status(namespace, all_namespaces=all_namespaces)
        if not records and output_format is OutputFormat.TABLE:
            info("No rollouts found")
            return
        echo_result(records, output_format, table=_status_table(records))
        return

    options = WatchOptions(watch=watch, timeout=timeout or None, interval=interval)
    emit = success if output_format is OutputFormat.TABLE else info

    cancel = threading.Event()
    previous = None
    if watch and threading.current_thread() is threading.main_thread():
        previous = signal.signal(signal.SIGINT, lambda _signum, _frame: cancel.set())
    try:
        record = service.watch_status(namespace, rollout, options, emit, cancel=cancel)
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)

    if output_format is not OutputFormat.TABLE:
        echo_result(record, output_format)


@click.command(
    name="list",
    help="List rollouts.",
    epilog="""
Examples:
    $ rolloutctl list
    $ rolloutctl list --all -o json
""",
)
@click.option(
    "--all",
    "all_namespaces",
    is_flag=True,
    default=False,
    help="List rollouts from all namespaces.",
)
@click.pass_context
@handle_errors
def list_command(ctx: click.Context, all_namespaces: bool) -> None:
    """List rollouts sorted by namespace and name."""
    service = get_service(ctx)
    items = service.list_rollouts(get_namespace(ctx), all_namespaces=all_namespaces)
    output_format = get_output_format(ctx)
    if not items and output_format is OutputFormat.TABLE:
        info("No rollouts found")
        return
    echo_result(items, output_format, table=_list_table(items, all_namespaces))


@click.command(
    name="get",
    help="Show detailed information about a rollout.",
    epilog="""
Examples:
    $ rolloutctl get -r checkout
    $ rolloutctl get -r checkout -o yaml
""",
)
@click.option("--rollout", "-r", "rollout", required=True, help="Rollout name.", metavar="NAME")
@click.pass_context
@handle_errors
def get_command(ctx: click.Context, rollout: str) -> None:
    """Show the rollout detail view, or the raw resource for JSON/YAML."""
    service = get_service(ctx)
    namespace = get_namespace(ctx)
    output_format = get_output_format(ctx)
    if output_format is not OutputFormat.TABLE:
        echo_result(service.get_rollout(namespace, rollout), output_format)
        return

    detail = service.describe_rollout(namespace, rollout)
    record = project_status(service.get_rollout(namespace, rollout))
    click.echo(_detail_text(detail, record))


@click.command(
    name="history",
    help="Show the revision history of a rollout.",
    epilog="""
Examples:
    $ rolloutctl history -r checkout
    $ rolloutctl history -r checkout --revision 3
""",
)
@click.option("--rollout", "-r", "rollout", required=True, help="Rollout name.", metavar="NAME")
@click.option(
    "--revision",
    type=click.IntRange(min=1),
    default=None,
    help="Show details for one revision.",
    metavar="N",
)
@click.pass_context
@handle_errors
def history_command(ctx: click.Context, rollout: str, revision: int | None) -> None:
    """Show revision history, newest first."""
    service = get_service(ctx)
    namespace = get_namespace(ctx)
    output_format = get_output_format(ctx)

    if revision is None:
        history = service.get_history(namespace, rollout)
        echo_result(history, output_format, table=_history_table(rollout, history))
        return

    entry = service.get_history(namespace, rollout, revision)
    if entry is None:
        logger.info("revision_not_found", rollout=rollout, revision=revision)
        click.echo(f"Revision {revision} not found")
        return
    echo_result(entry, output_format, table=_revision_text(entry))


__all__ = [
    "DURATION",
    "Duration",
    "get_command",
    "history_command",
    "list_command",
    "status_command",
]
