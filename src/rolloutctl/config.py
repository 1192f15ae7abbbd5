"""Configuration models for rolloutctl.

Example:
    >>> from rolloutctl.config import RolloutsConfig, WatchOptions
    >>> config = RolloutsConfig(namespace="shop", context="prod")
    >>> WatchOptions(timeout=300).interval
    2.0
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_NAMESPACE = "default"
DEFAULT_WATCH_INTERVAL = 2.0


class OutputFormat(str, Enum):
    """Rendering format for CLI command output."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


class RolloutsConfig(BaseModel):
    """Connection settings for the rollout client.

    Attributes:
        namespace: Explicit namespace. None defers to the kubeconfig context.
        kubeconfig_path: Path to kubeconfig file. None tries in-cluster config
            and then the default kubeconfig.
        context: Kubeconfig context to use. None uses the current context.
        output: Output format for CLI commands.

    Example:
        >>> config = RolloutsConfig(kubeconfig_path="~/.kube/config")
        >>> config.kubeconfig_path.startswith("~")
        False
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        json_schema_extra={
            "examples": [
                {"namespace": "shop"},
                {
                    "namespace": "production",
                    "kubeconfig_path": "~/.kube/config",
                    "context": "prod-cluster",
                    "output": "json",
                },
            ]
        },
    )

    namespace: str | None = Field(
        default=None,
        min_length=1,
        max_length=63,
        pattern=r"^[a-z0-9][a-z0-9-]*[a-z0-9]$|^[a-z0-9]$",
        description="Kubernetes namespace. None uses the kubeconfig context namespace.",
        examples=["default", "shop"],
    )

    kubeconfig_path: str | None = Field(
        default=None,
        description="Path to kubeconfig file.",
        examples=["~/.kube/config"],
    )

    context: str | None = Field(
        default=None,
        description="Kubeconfig context to use. None uses current context.",
        examples=["kind-dev", "prod-cluster"],
    )

    output: OutputFormat = Field(
        default=OutputFormat.TABLE,
        description="Output format for command results",
    )

    @field_validator("kubeconfig_path")
    @classmethod
    def expand_kubeconfig_path(cls, v: str | None) -> str | None:
        """Expand ~ in kubeconfig path."""
        if v is None:
            return None
        return str(Path(v).expanduser())


class WatchOptions(BaseModel):
    """Parameters of one status watch.

    Attributes:
        watch: Keep polling until a terminal phase. False prints once.
        timeout: Overall deadline in seconds. None or 0 waits forever.
        interval: Seconds between polls.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    watch: bool = Field(default=True, description="Poll until a terminal phase")
    timeout: float | None = Field(
        default=None,
        ge=0,
        description="Deadline in seconds (None or 0 means no deadline)",
    )
    interval: float = Field(
        default=DEFAULT_WATCH_INTERVAL,
        gt=0,
        description="Seconds between polls",
    )

    @property
    def has_deadline(self) -> bool:
        """Return True when a positive timeout is configured."""
        return bool(self.timeout)


__all__ = [
    "DEFAULT_NAMESPACE",
    "DEFAULT_WATCH_INTERVAL",
    "OutputFormat",
    "RolloutsConfig",
    "WatchOptions",
]
