"""Projection of rollout documents into display-ready status records.

Every function here is pure and total: any dict, including an empty one,
projects without raising. Absent fields take documented defaults (phase
"Unknown", message "<none>", replicas "0/0", revision "generation:<N>").

Example:
    >>> from rolloutctl.status import project_status, format_status_line
    >>> record = project_status({})
    >>> (record.status, record.revision, record.replicas)
    ('Unknown', 'generation:0', '0/0')
    >>> format_status_line(record)
    'Unknown (generation:0)'
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rolloutctl.document import REVISION_ANNOTATION, Document, format_age
from rolloutctl.models import NO_MESSAGE, RolloutListItem, StatusRecord, Strategy

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

PHASE_HEALTHY = "Healthy"
PHASE_DEGRADED = "Degraded"
PHASE_PROGRESSING = "Progressing"
PHASE_UNKNOWN = "Unknown"

TERMINAL_PHASES = frozenset({PHASE_HEALTHY, PHASE_DEGRADED})

MSG_MORE_REPLICAS = "more replicas need to be updated"
MSG_BECOMING_AVAILABLE = "updated replicas are still becoming available"
MSG_PENDING_TERMINATION = "old replicas are pending termination"

IMAGE_PULL_HINT = "Pods not becoming ready (possible ImagePullBackOff)"

# Display order of the detail view; later entries are less important.
_CONDITION_PRIORITY = (
    "Healthy",
    "Completed",
    "Degraded",
    "Paused",
    "Progressing",
    "Available",
    "ReplicaFailure",
)

_ANALYSIS_STATUS_PATHS = (
    ("status", "canary", "currentStepAnalysisRunStatus"),
    ("status", "canary", "currentBackgroundAnalysisRunStatus"),
    ("status", "blueGreen", "postPromotionAnalysisRunStatus"),
)


def detect_strategy(doc: Document) -> Strategy:
    """Return the declared strategy; a non-null canary block wins over blueGreen."""
    if doc.mapping("spec", "strategy", "canary") is not None:
        return Strategy.CANARY
    if doc.mapping("spec", "strategy", "blueGreen") is not None:
        return Strategy.BLUE_GREEN
    return Strategy.UNKNOWN


def revision_label(doc: Document) -> str:
    """Return "revision:<N>" from the revision annotation, else "generation:<N>"."""
    revision = doc.annotations.get(REVISION_ANNOTATION, "")
    if revision:
        return f"revision:{revision}"
    return f"generation:{doc.generation}"


def enhance_message(message: str, *, spec: int, status: int, updated: int, available: int) -> str:
    """Embed live replica deltas into the generic controller messages.

    Unknown messages, and known ones whose delta would be meaningless,
    pass through unchanged.

    Example:
        >>> enhance_message(MSG_MORE_REPLICAS, spec=10, status=10, updated=7, available=7)
        '3 more replicas need to be updated'
    """
    if message == MSG_MORE_REPLICAS and spec > 0:
        return f"{spec - updated} {MSG_MORE_REPLICAS}"
    if message == MSG_BECOMING_AVAILABLE and updated > available:
        return f"{updated - available} {MSG_BECOMING_AVAILABLE}"
    if message == MSG_PENDING_TERMINATION and status > updated:
        return f"{status - updated} {MSG_PENDING_TERMINATION}"
    return message


def _conditions(doc: Document) -> list[Mapping[str, Any]]:
    return [c for c in doc.sequence("status", "conditions") if isinstance(c, dict)]


def _condition_field(condition: Mapping[str, Any], key: str) -> str:
    value = condition.get(key)
    return value if isinstance(value, str) else ""


def detect_pod_issue(doc: Document) -> str:
    """Return at most one pod issue derived from conditions and replica counts.

    Checked in order: a True ReplicaFailure condition, a False Progressing
    condition, then the not-ready heuristic.
    """
    conditions = _conditions(doc)

    for condition in conditions:
        if condition.get("type") == "ReplicaFailure" and condition.get("status") == "True":
            detail = _condition_field(condition, "reason") or _condition_field(condition, "message")
            return f"ReplicaFailure: {detail}" if detail else "ReplicaFailure"

    for condition in conditions:
        if condition.get("type") != "Progressing" or condition.get("status") != "False":
            continue
        reason = _condition_field(condition, "reason")
        if reason == "ProgressDeadlineExceeded":
            return "ProgressDeadlineExceeded"
        detail = reason or _condition_field(condition, "message")
        if detail:
            return f"Progress failed: {detail}"

    phase = doc.string("status", "phase")
    ready = doc.integer("status", "readyReplicas")
    updated = doc.integer("status", "updatedReplicas")
    if phase == PHASE_PROGRESSING and ready == 0 and updated > 0:
        return IMAGE_PULL_HINT
    return ""


def analysis_status(doc: Document) -> str:
    """Summarize the first analysis run status found in the rollout status."""
    for path in _ANALYSIS_STATUS_PATHS:
        run = doc.mapping(*path)
        if run is None:
            continue
        status = run.get("status")
        if not isinstance(status, str) or not status:
            continue
        name = run.get("name")
        if isinstance(name, str):
            return f"Analysis: {name} ({status})"
        return f"Analysis: {status}"
    return ""


def container_images(doc: Document) -> dict[str, str]:
    """Map container names of the pod template to their images."""
    images: dict[str, str] = {}
    for container in doc.sequence("spec", "template", "spec", "containers"):
        if not isinstance(container, dict):
            continue
        name = container.get("name")
        image = container.get("image")
        if isinstance(name, str) and isinstance(image, str):
            images[name] = image
    return images


def project_status(obj: Mapping[str, Any] | Document) -> StatusRecord:
    """Project a rollout document into a StatusRecord.

    Args:
        obj: Rollout resource dict (or Document).

    Returns:
        The flattened status record.
    """
    doc = obj if isinstance(obj, Document) else Document(obj)

    spec_replicas = doc.integer("spec", "replicas")
    status_replicas = doc.integer("status", "replicas")
    updated = doc.integer("status", "updatedReplicas")
    ready = doc.integer("status", "readyReplicas")
    available = doc.integer("status", "availableReplicas")

    step_index = doc.optional_integer("status", "currentStepIndex")
    current_step = str(step_index + 1) if step_index is not None else "N/A"

    message = doc.string("status", "message")
    if message:
        message = enhance_message(
            message,
            spec=spec_replicas,
            status=status_replicas,
            updated=updated,
            available=available,
        )
    else:
        message = NO_MESSAGE

    issue = detect_pod_issue(doc)
    if issue:
        message = issue if message == NO_MESSAGE else f"{message} - {issue}"

    return StatusRecord(
        name=doc.name,
        namespace=doc.namespace,
        status=doc.string("status", "phase") or PHASE_UNKNOWN,
        replicas=f"{status_replicas}/{spec_replicas}",
        updated=updated,
        ready=ready,
        available=available,
        strategy=detect_strategy(doc),
        current_step=current_step,
        revision=revision_label(doc),
        message=message,
        analysis=analysis_status(doc),
        images=container_images(doc),
    )


def project_list_item(obj: Mapping[str, Any], now: datetime | None = None) -> RolloutListItem:
    """Project a rollout document into a list-view row."""
    doc = Document(obj)
    created = doc.creation_timestamp
    return RolloutListItem(
        name=doc.name,
        namespace=doc.namespace,
        status=doc.string("status", "phase") or PHASE_UNKNOWN,
        replicas=f"{doc.integer('status', 'replicas')}/{doc.integer('spec', 'replicas')}",
        age=format_age(created, now) if created else "Unknown",
        strategy=detect_strategy(doc),
        revision=revision_label(doc),
        images=container_images(doc),
    )


def format_status_line(record: StatusRecord) -> str:
    """Render the one-line status used by the watch loop.

    Example:
        >>> format_status_line(StatusRecord(status="Progressing", message="waiting", revision="revision:4"))
        'Progressing - waiting (revision:4)'
    """
    line = record.status
    if record.message and record.message != NO_MESSAGE:
        line = f"{record.status} - {record.message}"
    suffixes = [part for part in (record.revision, record.analysis) if part]
    if suffixes:
        line = f"{line} ({', '.join(suffixes)})"
    return line


def is_terminal(phase: str) -> bool:
    """Return True for phases that end a watch."""
    return phase in TERMINAL_PHASES


def relevant_conditions(obj: Mapping[str, Any]) -> list[str]:
    """Return the conditions worth showing in the detail view, as "Type:Status".

    Redundant or uninformative conditions are hidden: Progressing:True once
    Completed or Healthy is True, Available:True once Healthy is True,
    False Healthy/Available/Completed, and ReplicaFailure unless True.
    """
    by_type: dict[str, str] = {}
    for condition in _conditions(Document(obj)):
        cond_type = _condition_field(condition, "type")
        if cond_type:
            by_type[cond_type] = _condition_field(condition, "status")

    shown: list[str] = []
    for cond_type in _CONDITION_PRIORITY:
        if cond_type not in by_type:
            continue
        status = by_type[cond_type]
        if cond_type == "Progressing" and status == "True" and (
            by_type.get("Completed") == "True" or by_type.get("Healthy") == "True"
        ):
            continue
        if cond_type == "Available" and status == "True" and by_type.get("Healthy") == "True":
            continue
        if status == "False" and cond_type in {"Healthy", "Available", "Completed"}:
            continue
        if cond_type == "ReplicaFailure" and status != "True":
            continue
        shown.append(f"{cond_type}:{status}")
    return shown


def strategy_facts(obj: Mapping[str, Any]) -> list[str]:
    """Return the strategy facts of the detail view (type, surge, steps, services)."""
    doc = Document(obj)
    strategy = detect_strategy(doc)
    facts: list[str] = []
    if strategy is Strategy.CANARY:
        facts.append("type:Canary")
        for key in ("maxSurge", "maxUnavailable"):
            value, found = doc.lookup("spec", "strategy", "canary", key)
            if found and isinstance(value, (str, int)) and not isinstance(value, bool):
                facts.append(f"{key}:{value}")
        steps, found = doc.lookup("spec", "strategy", "canary", "steps")
        if found and isinstance(steps, list):
            facts.append(f"steps:{len(steps)}")
    elif strategy is Strategy.BLUE_GREEN:
        facts.append("type:BlueGreen")
        for key in ("activeService", "previewService"):
            value = doc.string("spec", "strategy", "blueGreen", key)
            if value:
                facts.append(f"{key}:{value}")
    return facts


__all__ = [
    "PHASE_DEGRADED",
    "PHASE_HEALTHY",
    "TERMINAL_PHASES",
    "analysis_status",
    "container_images",
    "detect_pod_issue",
    "detect_strategy",
    "enhance_message",
    "format_status_line",
    "is_terminal",
    "project_list_item",
    "project_status",
    "relevant_conditions",
    "revision_label",
    "strategy_facts",
]
