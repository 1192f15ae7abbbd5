"""Analysis template and run commands.

Example:
    $ rolloutctl analysis list
    $ rolloutctl analysis list --rollout checkout
    $ rolloutctl analysis get -t error-rate
    $ rolloutctl analysis status -r checkout-5f6d7c-2
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from rolloutctl.cli.output import echo_result, format_table
from rolloutctl.cli.utils import (
    get_namespace,
    get_output_format,
    get_service,
    handle_errors,
)

if TYPE_CHECKING:
    from rolloutctl.models import (
        AnalysisListing,
        AnalysisRunDetail,
        AnalysisTemplateSummary,
    )


def _listing_text(listing: AnalysisListing, templates: bool) -> str:
    lines: list[str] = []
    if templates:
        lines.append("ANALYSIS TEMPLATES:")
        if not listing.templates:
            lines.append("  No analysis templates found")
        for template in listing.templates:
            lines.append(f"  {template.namespace}/{template.name} ({template.metric_count} metrics)")
        lines.append("")
    lines.append("ANALYSIS RUNS:")
    if not listing.runs:
        lines.append("  No analysis runs found")
        return "\n".join(lines)
    table = format_table(
        ["NAME", "NAMESPACE", "PHASE", "REVISION", "AGE"],
        [
            [run.name, run.namespace, run.phase, run.revision_tag.value, run.age]
            for run in listing.runs
        ],
    )
    lines.extend(f"  {line}" for line in table.splitlines())
    return "\n".join(lines)


def _template_text(template: AnalysisTemplateSummary) -> str:
    lines = [f"Analysis Template: {template.namespace}/{template.name}", "---"]
    if not template.metrics:
        lines.append("No metrics defined")
        return "\n".join(lines)
    lines.append("Metrics:")
    for i, metric in enumerate(template.metrics, 1):
        lines.append(f"  {i}. {metric.name}")
        for provider, provider_config in sorted(metric.providers.items()):
            lines.append(f"     Provider: {provider}")
            if provider_config:
                lines.append(f"     Config: {provider_config}")
    return "\n".join(lines)


def _run_text(run: AnalysisRunDetail) -> str:
    lines = [f"Analysis Run: {run.namespace}/{run.name}", f"Phase: {run.phase}"]
    if run.message:
        lines.append(f"Message: {run.message}")
    if run.metric_results:
        lines.append("")
        lines.append("Metric Results:")
        for result in run.metric_results:
            line = f"  {result.name}: {result.phase}"
            if result.value:
                line = f"{line} (value: {result.value})"
            if result.message:
                line = f"{line} - {result.message}"
            lines.append(line)
    return "\n".join(lines)


@click.group(name="analysis", help="Inspect analysis templates and runs.")
def analysis() -> None:
    """Analysis command group."""


@analysis.command(name="list", help="List analysis templates and runs.")
@click.option(
    "--rollout",
    "rollout",
    default=None,
    help="Only list the analysis runs of this rollout.",
    metavar="NAME",
)
@click.option(
    "--all",
    "all_namespaces",
    is_flag=True,
    default=False,
    help="List from all namespaces.",
)
@click.pass_context
@handle_errors
def list_command(ctx: click.Context, rollout: str | None, all_namespaces: bool) -> None:
    """List analysis templates and runs."""
    listing = get_service(ctx).list_analysis(
        get_namespace(ctx), rollout, all_namespaces=all_namespaces
    )
    echo_result(listing, get_output_format(ctx), table=_listing_text(listing, templates=not rollout))


@analysis.command(name="get", help="Show an analysis template or run.")
@click.option("--template", "-t", "template", default=None, help="Analysis template name.")
@click.option("--run", "-r", "run", default=None, help="Analysis run name.")
@click.pass_context
@handle_errors
def get_command(ctx: click.Context, template: str | None, run: str | None) -> None:
    """Show an analysis template or run."""
    service = get_service(ctx)
    namespace = get_namespace(ctx)
    output_format = get_output_format(ctx)
    if template:
        summary = service.get_analysis_template(namespace, template)
        echo_result(summary, output_format, table=_template_text(summary))
    elif run:
        detail = service.get_analysis_run(namespace, run)
        echo_result(detail, output_format, table=_run_text(detail))
    else:
        raise click.UsageError("Either --template or --run must be specified")


@analysis.command(name="status", help="Show the status and metric results of an analysis run.")
@click.option("--run", "-r", "run", required=True, help="Analysis run name.")
@click.pass_context
@handle_errors
def status_command(ctx: click.Context, run: str) -> None:
    """Show analysis run status."""
    detail = get_service(ctx).get_analysis_run(get_namespace(ctx), run)
    echo_result(detail, get_output_format(ctx), table=_run_text(detail))


analysis.add_command(status_command, name="logs")


__all__ = ["analysis"]
