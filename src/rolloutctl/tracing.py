"""OpenTelemetry tracing helpers for rollout operations.

Every RolloutsService operation runs inside a ``rollouts.<operation>`` span
carrying the namespace and rollout name. Tracers are cached per name with
double-checked locking and fall back to a no-op tracer if OpenTelemetry
initialization fails.

Security:
    - Only resource names and namespaces are recorded as span attributes
    - Error messages are sanitized before recording (kubeconfig tokens and
      bearer credentials can appear in client exceptions)

Example:
    >>> from rolloutctl.tracing import get_tracer, rollouts_span
    >>> tracer = get_tracer()
    >>> with rollouts_span(tracer, "promote", namespace="shop", name="checkout"):
    ...     pass
"""

from __future__ import annotations

import re
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from collections.abc import Iterator

    from opentelemetry.trace import Tracer

TRACER_NAME = "rolloutctl"

ATTR_OPERATION = "rollouts.operation"
ATTR_NAMESPACE = "rollouts.namespace"
ATTR_NAME = "rollouts.name"

_SENSITIVE_KEY_PATTERN = re.compile(
    r"(password|token|authorization|client-key-data|client-certificate-data|credential)"
    r"(\s*[=:]\s*)(?:bearer\s+)?\S+",
    re.IGNORECASE,
)
_BEARER_PATTERN = re.compile(r"\bbearer\s+\S+", re.IGNORECASE)
_URL_CREDENTIAL_PATTERN = re.compile(r"://[^@/\s]+:[^@/\s]+@")

_tracers: dict[str, Tracer] = {}
_tracer_init_failed: bool = False
_lock = threading.Lock()


def sanitize_error_message(msg: str, max_length: int = 500) -> str:
    """Redact credentials from an error message and truncate it.

    Args:
        msg: Raw error message.
        max_length: Maximum length of returned message.

    Returns:
        Sanitized and truncated message.

    Example:
        >>> sanitize_error_message("Unauthorized: token=abc123")
        'Unauthorized: token=<REDACTED>'
    """
    sanitized = _URL_CREDENTIAL_PATTERN.sub("://<REDACTED>@", msg)
    sanitized = _SENSITIVE_KEY_PATTERN.sub(r"\1\2<REDACTED>", sanitized)
    sanitized = _BEARER_PATTERN.sub("Bearer <REDACTED>", sanitized)
    return sanitized[:max_length]


def get_tracer(name: str = TRACER_NAME) -> Tracer:
    """Get or create a cached tracer.

    Returns a NoOpTracer if OpenTelemetry initialization fails.

    Args:
        name: Tracer (instrumenting module) name.

    Returns:
        OpenTelemetry Tracer instance.
    """
    global _tracer_init_failed

    if name in _tracers:
        return _tracers[name]
    if _tracer_init_failed:
        return trace.NoOpTracer()

    with _lock:
        if name in _tracers:
            return _tracers[name]
        if _tracer_init_failed:
            return trace.NoOpTracer()
        try:
            tracer = trace.get_tracer(name)
        except Exception:
            _tracer_init_failed = True
            return trace.NoOpTracer()
        _tracers[name] = tracer
        return tracer


def reset_tracer() -> None:
    """Clear cached tracers and the initialization failure flag."""
    global _tracer_init_failed
    with _lock:
        _tracers.clear()
        _tracer_init_failed = False


@contextmanager
def rollouts_span(
    tracer: Tracer,
    operation: str,
    *,
    namespace: str | None = None,
    name: str | None = None,
    extra_attributes: dict[str, Any] | None = None,
) -> Iterator[trace.Span]:
    """Context manager for creating rollout operation spans.

    Args:
        tracer: OpenTelemetry tracer instance.
        operation: Operation name (e.g. "promote", "watch_status").
        namespace: Namespace of the rollout.
        name: Rollout (or AnalysisRun) name.
        extra_attributes: Additional span attributes.

    Yields:
        The active span.
    """
    attributes: dict[str, Any] = {ATTR_OPERATION: operation}
    if namespace is not None:
        attributes[ATTR_NAMESPACE] = namespace
    if name is not None:
        attributes[ATTR_NAME] = name
    if extra_attributes:
        attributes.update(extra_attributes)

    with tracer.start_as_current_span(f"rollouts.{operation}", attributes=attributes) as span:
        try:
            yield span
            span.set_status(Status(StatusCode.OK))
        except Exception as e:
            sanitized = sanitize_error_message(str(e))
            span.set_status(Status(StatusCode.ERROR, type(e).__name__))
            span.set_attribute("exception.type", type(e).__name__)
            span.set_attribute("exception.message", sanitized)
            raise


__all__ = [
    "ATTR_NAME",
    "ATTR_NAMESPACE",
    "ATTR_OPERATION",
    "TRACER_NAME",
    "get_tracer",
    "reset_tracer",
    "rollouts_span",
    "sanitize_error_message",
]
