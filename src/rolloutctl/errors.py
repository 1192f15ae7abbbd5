"""Exception hierarchy for rolloutctl.

All exceptions raised by the rollout layer inherit from RolloutsError, so
callers can catch every rollout-specific failure with a single except clause.
Each class carries the CLI exit code used when it escapes a command.

Exception Hierarchy:
    RolloutsError (base)
    ├── ResourceNotFoundError          # Named resource absent
    │   └── RolloutNotFoundError       # Named rollout absent
    ├── InvalidRolloutStateError       # Rollout cannot support the operation
    │   └── ContainerNotFoundError     # set-image target container absent
    ├── SubresourceUnsupportedError    # Status patch and its fallback both failed
    ├── ClusterApiError                # API server rejected a request
    │   └── ClusterUnavailableError    # API server unreachable (wraps ConnectionError)
    ├── RolloutDegradedError           # Watch ended in Degraded phase
    ├── WatchTimeoutError              # Watch deadline expired (wraps TimeoutError)
    └── WatchCancelledError            # Watch cancelled by the caller

Exit Codes:
    1 - General error (RolloutsError, ClusterApiError, SubresourceUnsupportedError)
    3 - Resource not found
    5 - Invalid rollout state
    8 - Cluster unavailable
    9 - Watch timeout
    10 - Rollout degraded

Example:
    >>> from rolloutctl.errors import RolloutNotFoundError
    >>> raise RolloutNotFoundError("checkout", namespace="shop")
    Traceback (most recent call last):
        ...
    RolloutNotFoundError: Rollout 'checkout' not found in namespace 'shop'
"""

from __future__ import annotations


class RolloutsError(Exception):
    """Base exception for all rollout errors.

    Attributes:
        message: Human-readable error message.
        exit_code: CLI exit code for this error type (default: 1).
    """

    exit_code: int = 1

    def __init__(self, message: str) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message.
        """
        self.message = message
        super().__init__(message)


class ResourceNotFoundError(RolloutsError):
    """Raised when a named cluster resource does not exist.

    Attributes:
        kind: Resource kind (e.g. "AnalysisRun").
        name: Resource name that was not found.
        namespace: Namespace searched.
    """

    exit_code: int = 3

    def __init__(self, kind: str, name: str, *, namespace: str | None = None) -> None:
        """Initialize the exception.

        Args:
            kind: Resource kind.
            name: Resource name that was not found.
            namespace: Namespace searched, if namespaced.
        """
        self.kind = kind
        self.name = name
        self.namespace = namespace
        message = f"{kind} '{name}' not found"
        if namespace:
            message = f"{message} in namespace '{namespace}'"
        super().__init__(message)


class RolloutNotFoundError(ResourceNotFoundError):
    """Raised when the named rollout does not exist.

    Example:
        >>> raise RolloutNotFoundError("checkout", namespace="shop")
        RolloutNotFoundError: Rollout 'checkout' not found in namespace 'shop'
    """

    def __init__(self, name: str, *, namespace: str | None = None) -> None:
        """Initialize the exception.

        Args:
            name: Rollout name.
            namespace: Namespace searched.
        """
        super().__init__("Rollout", name, namespace=namespace)


class InvalidRolloutStateError(RolloutsError):
    """Raised when a rollout's spec cannot support the requested operation.

    Surfaced immediately, never retried.

    Attributes:
        rollout: Rollout name.
        reason: Why the operation is impossible.
    """

    exit_code: int = 5

    def __init__(self, rollout: str, reason: str) -> None:
        """Initialize the exception.

        Args:
            rollout: Rollout name.
            reason: Why the operation is impossible.
        """
        self.rollout = rollout
        self.reason = reason
        super().__init__(f"Rollout '{rollout}': {reason}")


class ContainerNotFoundError(InvalidRolloutStateError):
    """Raised when set-image targets a container the pod template lacks."""

    def __init__(self, rollout: str, container: str) -> None:
        self.container = container
        super().__init__(rollout, f"container '{container}' not found in rollout")


class SubresourceUnsupportedError(RolloutsError):
    """Raised when a status-subresource patch and its main-resource fallback both fail.

    Attributes:
        rollout: Rollout name.
        action: Operation being applied (e.g. "abort").
        reason: Sanitized reason reported by the fallback request.
    """

    def __init__(self, rollout: str, action: str, reason: str) -> None:
        """Initialize the exception.

        Args:
            rollout: Rollout name.
            action: Operation being applied.
            reason: Reason reported by the fallback request.
        """
        self.rollout = rollout
        self.action = action
        self.reason = reason
        super().__init__(f"Failed to {action} rollout '{rollout}': {reason}")


class ClusterApiError(RolloutsError):
    """Raised when the Kubernetes API server rejects a request.

    Attributes:
        status: HTTP status code, if known.
        reason: Short reason phrase.
    """

    def __init__(self, reason: str, *, status: int | None = None) -> None:
        """Initialize the exception.

        Args:
            reason: Short reason phrase.
            status: HTTP status code, if known.
        """
        self.status = status
        self.reason = reason
        message = f"Kubernetes API error: {reason}"
        if status is not None:
            message = f"{message} (HTTP {status})"
        super().__init__(message)


class ClusterUnavailableError(ClusterApiError, ConnectionError):
    """Raised when the Kubernetes API server cannot be reached.

    Inherits from ConnectionError so generic network handlers catch it too.

    Attributes:
        endpoint: The API endpoint that was unreachable.
    """

    exit_code: int = 8

    def __init__(self, *, endpoint: str = "", reason: str = "") -> None:
        """Initialize the exception.

        Args:
            endpoint: The API endpoint that was unreachable.
            reason: Additional context about the connection failure.
        """
        self.endpoint = endpoint
        self.status = None
        self.reason = reason
        message = "Kubernetes API server unavailable"
        if endpoint:
            message = f"{message} at {endpoint}"
        if reason:
            message = f"{message}: {reason}"
        RolloutsError.__init__(self, message)


class RolloutDegradedError(RolloutsError):
    """Raised when a watched rollout terminates in the Degraded phase.

    Attributes:
        rollout: Rollout name.
        status_message: Last controller message observed.
    """

    exit_code: int = 10

    def __init__(self, rollout: str, status_message: str) -> None:
        self.rollout = rollout
        self.status_message = status_message
        super().__init__(
            f"The rollout is in a degraded state with message: {status_message}"
        )


class WatchTimeoutError(RolloutsError, TimeoutError):
    """Raised when a watch exceeds its deadline before a terminal phase.

    Attributes:
        rollout: Rollout name.
        timeout: Configured timeout in seconds.
        last_status: Last formatted status line, if any.
    """

    exit_code: int = 9

    def __init__(self, rollout: str, timeout: float, last_status: str = "") -> None:
        self.rollout = rollout
        self.timeout = timeout
        self.last_status = last_status
        message = f"Rollout status watch exceeded timeout ({timeout:g}s)"
        if last_status:
            message = f"{message}, last status: {last_status}"
        RolloutsError.__init__(self, message)


class WatchCancelledError(RolloutsError):
    """Raised when a watch is cancelled before a terminal phase."""

    def __init__(self, rollout: str) -> None:
        self.rollout = rollout
        super().__init__(f"Watch of rollout '{rollout}' cancelled")


__all__ = [
    "ClusterApiError",
    "ClusterUnavailableError",
    "ContainerNotFoundError",
    "InvalidRolloutStateError",
    "ResourceNotFoundError",
    "RolloutDegradedError",
    "RolloutNotFoundError",
    "RolloutsError",
    "SubresourceUnsupportedError",
    "WatchCancelledError",
    "WatchTimeoutError",
]
