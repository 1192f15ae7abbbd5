"""Rollout mutation commands.

Each command targets one rollout (``-r/--rollout``) in the resolved
namespace and prints the outcome. Informational no-ops (pausing an already
paused rollout, promoting a fully promoted one) exit 0.

Example:
    $ rolloutctl promote -r checkout
    $ rolloutctl promote -r checkout --full
    $ rolloutctl abort -r checkout
    $ rolloutctl undo -r checkout --to-revision 3
    $ rolloutctl set-image -r checkout web=registry.example.com/web:1.4.2
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from rolloutctl.cli.output import echo_result
from rolloutctl.cli.utils import (
    get_namespace,
    get_output_format,
    get_service,
    handle_errors,
    info,
    success,
    warn,
)
from rolloutctl.config import OutputFormat
from rolloutctl.service import parse_image_argument

if TYPE_CHECKING:
    from rolloutctl.models import OperationResult

_ROLLOUT_OPTION = click.option(
    "--rollout",
    "-r",
    "rollout",
    required=True,
    help="Rollout name.",
    metavar="NAME",
)


def _report(ctx: click.Context, result: OperationResult) -> None:
    """Print an operation outcome; context lines go to stderr in table mode."""
    output_format = get_output_format(ctx)
    if output_format is not OutputFormat.TABLE:
        echo_result(result, output_format)
        return
    for line in result.context:
        if line.startswith("Warning: "):
            warn(line.removeprefix("Warning: "))
        else:
            info(line)
    success(result.message)


@click.command(name="promote", help="Promote a rollout to the next step or to full deployment.")
@_ROLLOUT_OPTION
@click.option(
    "--full",
    is_flag=True,
    default=False,
    help="Promote to full deployment, skipping all remaining steps.",
)
@click.pass_context
@handle_errors
def promote_command(ctx: click.Context, rollout: str, full: bool) -> None:
    """Promote a rollout."""
    _report(ctx, get_service(ctx).promote(get_namespace(ctx), rollout, full=full))


@click.command(name="pause", help="Pause a rollout.")
@_ROLLOUT_OPTION
@click.pass_context
@handle_errors
def pause_command(ctx: click.Context, rollout: str) -> None:
    """Pause a rollout."""
    _report(ctx, get_service(ctx).pause(get_namespace(ctx), rollout))


@click.command(name="resume", help="Resume a paused rollout.")
@_ROLLOUT_OPTION
@click.pass_context
@handle_errors
def resume_command(ctx: click.Context, rollout: str) -> None:
    """Resume a rollout."""
    _report(ctx, get_service(ctx).resume(get_namespace(ctx), rollout))


@click.command(name="abort", help="Abort a rollout and roll back to the stable version.")
@_ROLLOUT_OPTION
@click.pass_context
@handle_errors
def abort_command(ctx: click.Context, rollout: str) -> None:
    """Abort a rollout."""
    _report(ctx, get_service(ctx).abort(get_namespace(ctx), rollout))


@click.command(name="retry", help="Retry an aborted rollout.")
@_ROLLOUT_OPTION
@click.pass_context
@handle_errors
def retry_command(ctx: click.Context, rollout: str) -> None:
    """Retry a rollout."""
    _report(ctx, get_service(ctx).retry(get_namespace(ctx), rollout))


@click.command(name="restart", help="Restart the pods of a rollout.")
@_ROLLOUT_OPTION
@click.pass_context
@handle_errors
def restart_command(ctx: click.Context, rollout: str) -> None:
    """Restart a rollout."""
    _report(ctx, get_service(ctx).restart(get_namespace(ctx), rollout))


@click.command(
    name="undo",
    help="Roll back a rollout to the previous revision, or to a given one.",
    epilog="""
Examples:
    $ rolloutctl undo -r checkout
    $ rolloutctl undo -r checkout --to-revision 3

Exit Codes:
    0  - Rollback requested
    3  - Rollout or revision not found
    5  - Rollout has no selector, or the revision has no pod template
""",
)
@_ROLLOUT_OPTION
@click.option(
    "--to-revision",
    "to_revision",
    type=click.IntRange(min=1),
    default=None,
    help="Revision to roll back to.",
    metavar="N",
)
@click.pass_context
@handle_errors
def undo_command(ctx: click.Context, rollout: str, to_revision: int | None) -> None:
    """Roll back a rollout."""
    _report(ctx, get_service(ctx).undo(get_namespace(ctx), rollout, to_revision))


@click.command(
    name="set-image",
    help="Update the image of a rollout container.",
    epilog="""
Examples:
    $ rolloutctl set-image -r checkout --image web:1.4.2
    $ rolloutctl set-image -r checkout --image web:1.4.2 --container web
    $ rolloutctl set-image -r checkout web=web:1.4.2
""",
)
@_ROLLOUT_OPTION
@click.argument("assignment", required=False, default=None, metavar="[NAME=IMAGE]")
@click.option("--image", default=None, help="New image.", metavar="IMAGE")
@click.option(
    "--container",
    "-c",
    default=None,
    help="Container name (defaults to the first container).",
    metavar="NAME",
)
@click.pass_context
@handle_errors
def set_image_command(
    ctx: click.Context,
    rollout: str,
    assignment: str | None,
    image: str | None,
    container: str | None,
) -> None:
    """Update a container image."""
    if assignment:
        if image:
            raise click.UsageError("Pass either NAME=IMAGE or --image, not both")
        parsed_container, image = parse_image_argument(assignment)
        container = container or parsed_container
    if not image:
        raise click.UsageError("An image is required (--image IMAGE or NAME=IMAGE)")
    _report(ctx, get_service(ctx).set_image(get_namespace(ctx), rollout, image, container))


__all__ = [
    "abort_command",
    "pause_command",
    "promote_command",
    "restart_command",
    "resume_command",
    "retry_command",
    "set_image_command",
    "undo_command",
]
