"""Revision history of a rollout.

History merges two evidence sources that do not reference each other: the
rollout's own revision annotation (one entry, no phase) and the ReplicaSets
matched by the rollout's selector (one entry per parseable revision, phase
derived from replica counts). Entries sharing a revision number are merged,
preferring the more informative one, and the result is ordered newest first.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from rolloutctl.document import (
    DEPLOYMENT_REVISION_ANNOTATION,
    POD_TEMPLATE_HASH_LABEL,
    REVISION_ANNOTATION,
    Document,
    format_age,
)
from rolloutctl.models import RevisionInfo

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime

logger = structlog.get_logger(__name__)

STARTED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"

PHASE_SCALED_DOWN = "Scaled Down"
PHASE_READY = "Ready"
PHASE_PROGRESSING = "Progressing"
PHASE_PENDING = "Pending"


def _parse_revision(value: str | None) -> int:
    if not value:
        return 0
    try:
        return int(value)
    except ValueError:
        return 0


def replica_set_revision(replica_set: Mapping[str, Any]) -> int:
    """Return the revision of a ReplicaSet, 0 when it carries none.

    The rollout revision annotation is preferred; the deployment revision
    annotation is used when the former is absent or unparseable.
    """
    annotations = Document(replica_set).annotations
    revision = _parse_revision(annotations.get(REVISION_ANNOTATION))
    if revision == 0:
        revision = _parse_revision(annotations.get(DEPLOYMENT_REVISION_ANNOTATION))
    return revision


def rollout_revision(rollout: Mapping[str, Any]) -> RevisionInfo:
    """Return the rollout's own history entry (annotation, else generation)."""
    doc = Document(rollout)
    revision = _parse_revision(doc.annotations.get(REVISION_ANNOTATION))
    if revision <= 0:
        revision = max(doc.generation, 0)
    return RevisionInfo(revision=revision, is_current=True)


def replica_set_phase(replica_set: Mapping[str, Any]) -> str:
    """Derive a ReplicaSet phase from its replica counts."""
    doc = Document(replica_set)
    spec_replicas = doc.integer("spec", "replicas")
    if spec_replicas == 0:
        return PHASE_SCALED_DOWN
    if doc.integer("status", "readyReplicas") == spec_replicas:
        return PHASE_READY
    if doc.integer("status", "replicas") > 0:
        return PHASE_PROGRESSING
    return PHASE_PENDING


def replica_set_revision_info(
    replica_set: Mapping[str, Any],
    current_hash: str = "",
    now: datetime | None = None,
) -> RevisionInfo | None:
    """Build the history entry of a ReplicaSet, or None if it has no revision."""
    revision = replica_set_revision(replica_set)
    if revision <= 0:
        return None
    doc = Document(replica_set)
    created = doc.creation_timestamp
    phase = replica_set_phase(replica_set)
    pod_hash = doc.labels.get(POD_TEMPLATE_HASH_LABEL, "")
    return RevisionInfo(
        revision=revision,
        started_at=created.strftime(STARTED_AT_FORMAT) if created else "Unknown",
        finished_at="Completed" if phase == PHASE_SCALED_DOWN else "Active",
        duration=format_age(created, now),
        phase=phase,
        pod_hash=pod_hash,
        is_current=bool(pod_hash) and pod_hash == current_hash,
    )


def _prefer(existing: RevisionInfo, candidate: RevisionInfo) -> RevisionInfo:
    if bool(candidate.phase) != bool(existing.phase):
        return candidate if candidate.phase else existing
    if candidate.phase and candidate.is_current and not existing.is_current:
        return candidate
    return existing


def merge_revisions(entries: Iterable[RevisionInfo]) -> list[RevisionInfo]:
    """Merge entries sharing a revision number and order them newest first.

    For a shared number, an entry with a phase beats one without; among
    entries with a phase, the current one wins; otherwise the first is kept.
    Merging an already merged list returns it unchanged.
    """
    merged: dict[int, RevisionInfo] = {}
    for entry in entries:
        existing = merged.get(entry.revision)
        merged[entry.revision] = entry if existing is None else _prefer(existing, entry)
    return sorted(merged.values(), key=lambda info: info.revision, reverse=True)


def build_history(
    rollout: Mapping[str, Any],
    replica_sets: Iterable[Mapping[str, Any]],
    now: datetime | None = None,
) -> list[RevisionInfo]:
    """Build the revision history of a rollout.

    Args:
        rollout: Rollout resource dict.
        replica_sets: ReplicaSets matched by the rollout's selector.
        now: Reference time for durations.

    Returns:
        One entry per revision number, newest first.
    """
    current_hash = Document(rollout).string("status", "currentPodHash")
    entries = [rollout_revision(rollout)]
    skipped = 0
    for replica_set in replica_sets:
        info = replica_set_revision_info(replica_set, current_hash, now)
        if info is None:
            skipped += 1
            continue
        entries.append(info)
    if skipped:
        logger.debug("replica_sets_without_revision", skipped=skipped)
    return merge_revisions(entries)


def find_revision(history: Iterable[RevisionInfo], revision: int) -> RevisionInfo | None:
    """Return the entry for ``revision``, or None when it is not in the history."""
    return next((info for info in history if info.revision == revision), None)


def find_replica_set(
    replica_sets: Iterable[Mapping[str, Any]],
    revision: int,
) -> Mapping[str, Any] | None:
    """Return the first ReplicaSet carrying ``revision``, or None."""
    return next((rs for rs in replica_sets if replica_set_revision(rs) == revision), None)


__all__ = [
    "build_history",
    "find_replica_set",
    "find_revision",
    "merge_revisions",
    "replica_set_phase",
    "replica_set_revision",
    "replica_set_revision_info",
    "rollout_revision",
]
