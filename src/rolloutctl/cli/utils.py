"""CLI utility functions and error handling.

This module provides shared utilities for the rolloutctl CLI, including:
- Exit code constants
- Error and message helpers (errors to stderr, data to stdout)
- Access to the per-invocation config and RolloutsService

Example:
    from rolloutctl.cli.utils import error

    error("Rollout not found", namespace="shop")
"""

from __future__ import annotations

import functools
import json
import sys
from enum import IntEnum
from typing import TYPE_CHECKING, Any, TypeVar

import click
import structlog

from rolloutctl.config import OutputFormat, RolloutsConfig
from rolloutctl.errors import RolloutsError

if TYPE_CHECKING:
    from collections.abc import Callable

    from rolloutctl.service import RolloutsService

logger = structlog.get_logger(__name__)

F = TypeVar("F", bound="Callable[..., Any]")


class ExitCode(IntEnum):
    """Standard exit codes for CLI commands.

    Values match the ``exit_code`` attribute of the rolloutctl exceptions.
    """

    SUCCESS = 0
    """Command completed successfully."""

    GENERAL_ERROR = 1
    """General error (catch-all for failures)."""

    USAGE_ERROR = 2
    """Invalid usage (bad arguments, missing required options)."""

    NOT_FOUND = 3
    """Rollout or related resource not found."""

    INVALID_STATE = 5
    """Rollout cannot support the requested operation."""

    CLUSTER_UNAVAILABLE = 8
    """Kubernetes API server unreachable."""

    WATCH_TIMEOUT = 9
    """Status watch exceeded its timeout."""

    DEGRADED = 10
    """Rollout ended in the Degraded phase."""


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Args:
        message: Error message to display.
        **context: Optional context key-value pairs to include.

    Example:
        error("Rollout not found", namespace="shop")
        # Output: Error: Rollout not found (namespace=shop)
    """
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
        full_message = f"Error: {message} ({context_str})"
    else:
        full_message = f"Error: {message}"

    click.echo(full_message, err=True)


def warn(message: str) -> None:
    """Print a warning message to stderr."""
    click.echo(f"Warning: {message}", err=True)


def success(message: str) -> None:
    """Print a success message to stdout."""
    click.echo(message)


def info(message: str) -> None:
    """Print an informational message to stderr.

    Used for progress updates that should not be captured by stdout
    redirection of JSON/YAML output.
    """
    click.echo(message, err=True)


def get_config(ctx: click.Context) -> RolloutsConfig:
    """Return the RolloutsConfig built by the root command."""
    obj = ctx.ensure_object(dict)
    config = obj.get("config")
    if config is None:
        config = RolloutsConfig()
        obj["config"] = config
    return config


def get_output_format(ctx: click.Context) -> OutputFormat:
    return get_config(ctx).output


def get_namespace(ctx: click.Context) -> str:
    """Resolve the effective namespace once per invocation."""
    from rolloutctl.accessor import current_namespace

    obj = ctx.ensure_object(dict)
    namespace = obj.get("namespace")
    if not namespace:
        namespace = current_namespace(get_config(ctx))
        obj["namespace"] = namespace
    return namespace


def get_service(ctx: click.Context) -> RolloutsService:
    """Return the RolloutsService for this invocation, connecting on first use.

    A service placed in ``ctx.obj["service"]`` beforehand is used as is.
    """
    obj = ctx.ensure_object(dict)
    service = obj.get("service")
    if service is None:
        from rolloutctl.accessor import KubernetesResourceAccessor
        from rolloutctl.service import RolloutsService

        accessor = KubernetesResourceAccessor.from_config(get_config(ctx))
        service = RolloutsService(accessor)
        obj["service"] = service
    return service


def report_error(exc: RolloutsError, output_format: OutputFormat) -> None:
    """Report a rollout error in the requested output format.

    JSON and YAML errors go to stdout so scripted callers can parse them;
    table errors go to stderr.
    """
    payload = {"error": str(exc), "exit_code": exc.exit_code}
    if output_format is OutputFormat.JSON:
        click.echo(json.dumps(payload))
    elif output_format is OutputFormat.YAML:
        import yaml

        click.echo(yaml.safe_dump(payload, default_flow_style=False, sort_keys=False))
    else:
        error(str(exc))


def handle_errors(func: F) -> F:
    """Turn RolloutsError escaping a command into its exit code.

    Expects the wrapped command to be decorated with ``click.pass_context``
    beneath this decorator so the context is the first argument.
    """

    @functools.wraps(func)
    def wrapper(ctx: click.Context, *args: Any, **kwargs: Any) -> Any:
        try:
            return func(ctx, *args, **kwargs)
        except RolloutsError as e:
            logger.debug(
                "command_failed",
                command=ctx.info_name,
                error_type=type(e).__name__,
                exit_code=e.exit_code,
            )
            report_error(e, get_output_format(ctx))
            sys.exit(e.exit_code)
        except ValueError as e:
            error(str(e))
            sys.exit(ExitCode.USAGE_ERROR)

    return wrapper  # type: ignore[return-value]


__all__ = [
    "ExitCode",
    "error",
    "get_config",
    "get_namespace",
    "get_output_format",
    "get_service",
    "handle_errors",
    "info",
    "report_error",
    "success",
    "warn",
]
