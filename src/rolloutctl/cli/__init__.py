"""Command-line interface for rolloutctl.

Example:
    $ rolloutctl --help
    $ rolloutctl --version
    $ rolloutctl -n shop status -r checkout

Exit Codes:
    0: Success
    1: General error
    2: Usage error (invalid arguments)
    3: Rollout or resource not found
    5: Invalid rollout state
    8: Cluster unavailable
    9: Watch timeout
    10: Rollout degraded
"""

from __future__ import annotations

from rolloutctl.cli.main import cli, main
from rolloutctl.cli.utils import ExitCode, error, success, warn

__all__ = ["ExitCode", "cli", "error", "main", "success", "warn"]
