"""Main entry point for the rolloutctl CLI.

This module provides the Click-based CLI with global connection options and
the rollout command set.

Commands:
    rolloutctl status: Show or watch rollout status
    rolloutctl list: List rollouts
    rolloutctl get: Show rollout details
    rolloutctl history: Show revision history
    rolloutctl promote|pause|resume|abort|retry|restart: Control a rollout
    rolloutctl undo: Roll back a rollout
    rolloutctl set-image: Update a container image
    rolloutctl analysis: Inspect analysis templates and runs

Example:
    $ rolloutctl --help
    $ rolloutctl -n shop status -r checkout
    $ rolloutctl -n shop -o json list
"""

from __future__ import annotations

import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

import click
from pydantic import ValidationError

from rolloutctl.cli.actions import (
    abort_command,
    pause_command,
    promote_command,
    restart_command,
    resume_command,
    retry_command,
    set_image_command,
    undo_command,
)
from rolloutctl.cli.analysis import analysis
from rolloutctl.cli.inspect import (
    get_command,
    history_command,
    list_command,
    status_command,
)
from rolloutctl.cli.utils import ExitCode, error
from rolloutctl.config import OutputFormat, RolloutsConfig
from rolloutctl.errors import RolloutsError
from rolloutctl.logging import configure_logging

_VERBOSITY_LEVELS = ("WARNING", "INFO", "DEBUG")


def _get_version() -> str:
    """Get the rolloutctl package version.

    Returns:
        Version string from package metadata, or 'unknown' if not installed.
    """
    try:
        return get_version("rolloutctl")
    except PackageNotFoundError:
        return "unknown"


@click.group(
    name="rolloutctl",
    help="rolloutctl - Inspect and control progressive-delivery rollouts.",
    epilog="Use 'rolloutctl <command> --help' for command-specific help.",
    context_settings={
        "help_option_names": ["-h", "--help"],
    },
)
@click.version_option(
    version=_get_version(),
    prog_name="rolloutctl",
    message="%(prog)s %(version)s",
)
@click.option(
    "--namespace",
    "-n",
    default=None,
    help="Kubernetes namespace (defaults to the kubeconfig context namespace).",
    metavar="NAMESPACE",
)
@click.option(
    "--kubeconfig",
    "kubeconfig",
    default=None,
    envvar="KUBECONFIG",
    help="Path to the kubeconfig file.",
    metavar="PATH",
)
@click.option("--context", "kube_context", default=None, help="Kubeconfig context to use.")
@click.option(
    "--output",
    "-o",
    "output_format",
    type=click.Choice([f.value for f in OutputFormat], case_sensitive=False),
    default=OutputFormat.TABLE.value,
    show_default=True,
    help="Output format.",
)
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v info, -vv debug).")
@click.option("--log-json", is_flag=True, default=False, help="Emit logs as JSON lines.")
@click.pass_context
def cli(
    ctx: click.Context,
    namespace: str | None,
    kubeconfig: str | None,
    kube_context: str | None,
    output_format: str,
    verbose: int,
    log_json: bool,
) -> None:
    """Root command group for the rolloutctl CLI."""
    obj = ctx.ensure_object(dict)
    configure_logging(
        _VERBOSITY_LEVELS[min(verbose, len(_VERBOSITY_LEVELS) - 1)],
        json_output=log_json,
    )
    try:
        obj["config"] = RolloutsConfig(
            namespace=namespace,
            kubeconfig_path=kubeconfig,
            context=kube_context,
            output=OutputFormat(output_format.lower()),
        )
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise click.BadParameter(first["msg"], param_hint=f"'{field}'") from e


# Register commands
cli.add_command(status_command)
cli.add_command(list_command)
cli.add_command(get_command)
cli.add_command(history_command)
cli.add_command(promote_command)
cli.add_command(pause_command)
cli.add_command(resume_command)
cli.add_command(abort_command)
cli.add_command(retry_command)
cli.add_command(restart_command)
cli.add_command(undo_command)
cli.add_command(set_image_command)
cli.add_command(analysis)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the rolloutctl CLI.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(ExitCode.GENERAL_ERROR)
    except RolloutsError as e:
        error(str(e))
        sys.exit(e.exit_code)


if __name__ == "__main__":
    main()
