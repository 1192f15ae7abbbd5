"""Safe accessors over untyped Kubernetes resource documents.

Rollouts, ReplicaSets and AnalysisRuns are handled as plain nested dicts as
returned by the API server. Controllers add and remove status fields freely,
so every read here tolerates absent paths and wrongly typed values: lookups
report whether a value was found, typed readers fall back to a default.

Example:
    >>> doc = Document({"status": {"phase": "Healthy", "replicas": 3}})
    >>> doc.string("status", "phase")
    'Healthy'
    >>> doc.integer("status", "readyReplicas")
    0
    >>> doc.lookup("status", "canary")
    (None, False)
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

_MISSING = object()

REVISION_ANNOTATION = "rollout.argoproj.io/revision"
DEPLOYMENT_REVISION_ANNOTATION = "deployment.kubernetes.io/revision"
UNDO_ANNOTATION = "rollout.argoproj.io/undo"
POD_TEMPLATE_HASH_LABEL = "rollouts-pod-template-hash"


class Document:
    """Read-only view over one resource dict.

    Attributes:
        obj: The underlying resource dict (never copied).
    """

    __slots__ = ("obj",)

    def __init__(self, obj: Mapping[str, Any] | None) -> None:
        self.obj: Mapping[str, Any] = obj if isinstance(obj, Mapping) else {}

    def __repr__(self) -> str:
        return f"Document(kind={self.obj.get('kind')!r}, name={self.name!r})"

    # =========================================================================
    # Nested lookups
    # =========================================================================

    def lookup(self, *path: str) -> tuple[Any, bool]:
        """Return ``(value, found)`` for a nested field path.

        A path is not found when any intermediate value is missing or is not
        a mapping. A present ``null`` value counts as found.

        Args:
            *path: Field names from the document root.

        Returns:
            Tuple of the value (None when absent) and whether it was found.
        """
        current: Any = self.obj
        for key in path:
            if not isinstance(current, Mapping):
                return None, False
            current = current.get(key, _MISSING)
            if current is _MISSING:
                return None, False
        return current, True

    def string(self, *path: str, default: str = "") -> str:
        """Read a string field, returning ``default`` when absent or not a string."""
        value, found = self.lookup(*path)
        if found and isinstance(value, str):
            return value
        return default

    def integer(self, *path: str, default: int = 0) -> int:
        """Read an integer field, returning ``default`` when absent or not an integer.

        Booleans are rejected even though they subclass int.
        """
        value, found = self.lookup(*path)
        if found and isinstance(value, int) and not isinstance(value, bool):
            return value
        return default

    def optional_integer(self, *path: str) -> int | None:
        """Read an integer field, returning None when absent or not an integer."""
        value, found = self.lookup(*path)
        if found and isinstance(value, int) and not isinstance(value, bool):
            return value
        return None

    def boolean(self, *path: str, default: bool = False) -> bool:
        """Read a boolean field, returning ``default`` when absent or not a bool."""
        value, found = self.lookup(*path)
        if found and isinstance(value, bool):
            return value
        return default

    def mapping(self, *path: str) -> dict[str, Any] | None:
        """Read a mapping field, returning None when absent, null or not a mapping."""
        value, found = self.lookup(*path)
        if found and isinstance(value, Mapping):
            return dict(value)
        return None

    def sequence(self, *path: str) -> list[Any]:
        """Read a list field, returning an empty list when absent or not a list."""
        value, found = self.lookup(*path)
        if found and isinstance(value, list):
            return value
        return []

    def string_map(self, *path: str) -> dict[str, str]:
        """Read a string-to-string mapping, dropping non-string entries."""
        value = self.mapping(*path) or {}
        return {k: v for k, v in value.items() if isinstance(k, str) and isinstance(v, str)}

    # =========================================================================
    # Metadata helpers
    # =========================================================================

    @property
    def name(self) -> str:
        return self.string("metadata", "name")

    @property
    def namespace(self) -> str:
        return self.string("metadata", "namespace")

    @property
    def generation(self) -> int:
        return self.integer("metadata", "generation")

    @property
    def labels(self) -> dict[str, str]:
        return self.string_map("metadata", "labels")

    @property
    def annotations(self) -> dict[str, str]:
        return self.string_map("metadata", "annotations")

    @property
    def owner_references(self) -> list[dict[str, Any]]:
        return [ref for ref in self.sequence("metadata", "ownerReferences") if isinstance(ref, Mapping)]

    @property
    def creation_timestamp(self) -> datetime | None:
        """Parse ``metadata.creationTimestamp`` (RFC 3339), or None if absent or invalid."""
        value, found = self.lookup("metadata", "creationTimestamp")
        if not found or value is None:
            return None
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        if not isinstance(value, str) or not value:
            return None
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def set_nested(obj: dict[str, Any], value: Any, *path: str) -> None:
    """Set a nested field, creating (or replacing non-dict) intermediate values.

    Args:
        obj: Resource dict to mutate in place.
        value: Value to store.
        *path: Field names from the document root; must not be empty.

    Raises:
        ValueError: If no path is given.
    """
    if not path:
        msg = "set_nested requires at least one path element"
        raise ValueError(msg)
    current = obj
    for key in path[:-1]:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = child
    current[path[-1]] = value


def format_age(created: datetime | None, now: datetime | None = None) -> str:
    """Render the age of a resource the way kubectl does (``3d``, ``4h``, ``12m``, ``9s``).

    Args:
        created: Creation time, or None when unknown.
        now: Reference time (defaults to the current UTC time).

    Returns:
        Compact age string, or "unknown" when the creation time is missing.
    """
    if created is None:
        return "unknown"
    reference = now or datetime.now(timezone.utc)
    seconds = max(int((reference - created).total_seconds()), 0)
    days, remainder = divmod(seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60
    if days > 0:
        return f"{days}d"
    if hours > 0:
        return f"{hours}h"
    if minutes > 0:
        return f"{minutes}m"
    return f"{seconds}s"


__all__ = [
    "DEPLOYMENT_REVISION_ANNOTATION",
    "POD_TEMPLATE_HASH_LABEL",
    "REVISION_ANNOTATION",
    "UNDO_ANNOTATION",
    "Document",
    "format_age",
    "set_nested",
]
