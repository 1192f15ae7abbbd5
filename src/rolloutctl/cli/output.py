"""Rendering of command results as tables, JSON or YAML.

Tables are left-aligned with two spaces between columns, each column padded
to its widest cell. The last column is not padded.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import click
import yaml
from pydantic import BaseModel

from rolloutctl.config import OutputFormat

if TYPE_CHECKING:
    from collections.abc import Sequence


def format_table(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    """Render rows under headers as an aligned plain-text table.

    Example:
        >>> print(format_table(["NAME", "STATUS"], [["checkout", "Healthy"]]))
        NAME      STATUS
        checkout  Healthy
    """
    cells = [[str(value) for value in row] for row in rows]
    widths = [len(header) for header in headers]
    for row in cells:
        for i, value in enumerate(row):
            widths[i] = max(widths[i], len(value))

    def _line(values: Sequence[str]) -> str:
        padded = [value.ljust(widths[i] + 1) for i, value in enumerate(values[:-1])]
        return " ".join([*padded, values[-1]]).rstrip()

    return "\n".join([_line(list(headers)), *(_line(row) for row in cells)])


def to_data(result: Any) -> Any:
    """Convert models (and lists of models) to JSON-compatible data."""
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if isinstance(result, list):
        return [to_data(item) for item in result]
    return result


def format_structured(result: Any, output_format: OutputFormat) -> str:
    """Render a result as JSON or YAML."""
    data = to_data(result)
    if output_format is OutputFormat.YAML:
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip("\n")
    return json.dumps(data, indent=2)


def echo_result(result: Any, output_format: OutputFormat, table: str | None = None) -> None:
    """Echo a result in the requested format.

    Args:
        result: Model, list of models or plain data.
        output_format: Requested output format.
        table: Pre-rendered table output, used for OutputFormat.TABLE.
    """
    if output_format is OutputFormat.TABLE and table is not None:
        click.echo(table)
    else:
        click.echo(format_structured(result, output_format))


__all__ = ["echo_result", "format_structured", "format_table", "to_data"]
