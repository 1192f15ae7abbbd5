"""Correlation of AnalysisRuns with the rollout revision they validate.

Runs are found in tiers, the first non-empty tier wins:

1. Embedded references in the rollout status (no cluster query).
2. Label lookup on ``rollouts-pod-template-hash`` for the current pod hash,
   then for the stable hash when it differs.
3. Listing every AnalysisRun in the namespace and keeping those owned by
   the rollout.

Results are deduplicated by name (first occurrence kept) and tagged
current/stable/unknown by comparing their hash label to the rollout's
current and stable hashes. Label and owner queries are best-effort: a
failed query is logged and skipped.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog

from rolloutctl.accessor import ResourceAccessor, ResourceKind
from rolloutctl.document import POD_TEMPLATE_HASH_LABEL, Document, format_age
from rolloutctl.errors import ClusterApiError
from rolloutctl.models import (
    AnalysisMetric,
    AnalysisRunDetail,
    AnalysisRunSummary,
    AnalysisTemplateSummary,
    MetricResult,
    RevisionTag,
    RunSource,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = structlog.get_logger(__name__)

EMBEDDED_RUN_PATHS = (
    ("status", "canary", "currentBackgroundAnalysisRuns"),
    ("status", "canary", "currentStepAnalysisRuns"),
    ("status", "blueGreen", "prePromotionAnalysisRuns"),
    ("status", "blueGreen", "postPromotionAnalysisRuns"),
    ("status", "analysisRuns"),
)


def tag_revision(pod_hash: str, current_hash: str, stable_hash: str) -> RevisionTag:
    """Classify a run's pod-template hash against the rollout's hashes."""
    if pod_hash and pod_hash == current_hash:
        return RevisionTag.CURRENT
    if pod_hash and pod_hash == stable_hash:
        return RevisionTag.STABLE
    return RevisionTag.UNKNOWN


def is_owned_by(run: Mapping[str, Any], rollout_name: str) -> bool:
    """Return True if the run has an owner reference to the named Rollout."""
    return any(
        ref.get("kind") == "Rollout" and ref.get("name") == rollout_name
        for ref in Document(run).owner_references
    )


def embedded_runs(rollout: Mapping[str, Any]) -> list[AnalysisRunSummary]:
    """Summarize AnalysisRun references embedded in the rollout status."""
    doc = Document(rollout)
    runs: list[AnalysisRunSummary] = []
    for path in EMBEDDED_RUN_PATHS:
        for entry in doc.sequence(*path):
            if not isinstance(entry, dict):
                continue
            name = entry.get("name")
            if not isinstance(name, str) or not name:
                continue
            status = entry.get("status") if isinstance(entry.get("status"), str) else ""
            phase = entry.get("phase") if isinstance(entry.get("phase"), str) else ""
            runs.append(
                AnalysisRunSummary(
                    name=name,
                    namespace=doc.namespace,
                    phase=phase or status or "Unknown",
                    status=status,
                    revision_tag=RevisionTag.CURRENT,
                    source=RunSource.EMBEDDED,
                )
            )
    return runs


def summarize_run(
    run: Mapping[str, Any],
    *,
    current_hash: str = "",
    stable_hash: str = "",
    source: RunSource = RunSource.LISTING,
    now: datetime | None = None,
) -> AnalysisRunSummary:
    """Summarize an AnalysisRun resource."""
    doc = Document(run)
    pod_hash = doc.labels.get(POD_TEMPLATE_HASH_LABEL, "")
    return AnalysisRunSummary(
        name=doc.name,
        namespace=doc.namespace,
        phase=doc.string("status", "phase") or "Unknown",
        pod_hash=pod_hash,
        revision_tag=tag_revision(pod_hash, current_hash, stable_hash),
        age=format_age(doc.creation_timestamp, now),
        source=source,
    )


def dedupe_runs(runs: Iterable[AnalysisRunSummary]) -> list[AnalysisRunSummary]:
    """Drop runs whose name was already seen, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[AnalysisRunSummary] = []
    for run in runs:
        if run.name in seen:
            continue
        seen.add(run.name)
        unique.append(run)
    return unique


def _list_best_effort(
    accessor: ResourceAccessor,
    namespace: str,
    label_selector: str | None,
) -> list[dict[str, Any]]:
    try:
        return accessor.list(ResourceKind.ANALYSIS_RUN, namespace, label_selector=label_selector)
    except ClusterApiError as e:
        logger.warning(
            "analysis_run_query_failed",
            namespace=namespace,
            label_selector=label_selector,
            error=str(e),
        )
        return []


def correlate_analysis_runs(
    accessor: ResourceAccessor,
    rollout: Mapping[str, Any],
    now: datetime | None = None,
) -> list[AnalysisRunSummary]:
    """Return the AnalysisRuns associated with a rollout.

    Args:
        accessor: Resource accessor used for tiers 2 and 3.
        rollout: Rollout resource dict.
        now: Reference time for ages (defaults to now).

    Returns:
        Deduplicated, revision-tagged runs; empty when none are found.
    """
    embedded = embedded_runs(rollout)
    if embedded:
        logger.debug("analysis_runs_embedded", count=len(embedded))
        return dedupe_runs(embedded)

    doc = Document(rollout)
    namespace = doc.namespace
    current_hash = doc.string("status", "currentPodHash")
    stable_hash = doc.string("status", "stableRS")
    reference = now or datetime.now(timezone.utc)

    labeled: list[AnalysisRunSummary] = []
    for pod_hash in dict.fromkeys(h for h in (current_hash, stable_hash) if h):
        for run in _list_best_effort(accessor, namespace, f"{POD_TEMPLATE_HASH_LABEL}={pod_hash}"):
            labeled.append(
                summarize_run(
                    run,
                    current_hash=current_hash,
                    stable_hash=stable_hash,
                    source=RunSource.LABEL,
                    now=reference,
                )
            )
    if labeled:
        return dedupe_runs(labeled)

    owned = [
        summarize_run(
            run,
            current_hash=current_hash,
            stable_hash=stable_hash,
            source=RunSource.OWNER,
            now=reference,
        )
        for run in _list_best_effort(accessor, namespace, None)
        if is_owned_by(run, doc.name)
    ]
    logger.debug("analysis_runs_by_owner", rollout=doc.name, count=len(owned))
    return dedupe_runs(owned)


def run_detail(run: Mapping[str, Any], now: datetime | None = None) -> AnalysisRunDetail:
    """Build the detail view of an AnalysisRun, metric results sorted by name."""
    doc = Document(run)
    results: list[MetricResult] = []
    for entry in doc.sequence("status", "metricResults"):
        if not isinstance(entry, dict):
            continue
        entry_doc = Document(entry)
        results.append(
            MetricResult(
                name=entry_doc.string("name"),
                phase=entry_doc.string("phase"),
                value=entry_doc.string("value"),
                message=entry_doc.string("message"),
            )
        )
    results.sort(key=lambda result: result.name)
    return AnalysisRunDetail(
        name=doc.name,
        namespace=doc.namespace,
        phase=doc.string("status", "phase"),
        message=doc.string("status", "message"),
        pod_hash=doc.labels.get(POD_TEMPLATE_HASH_LABEL, ""),
        age=format_age(doc.creation_timestamp, now),
        metric_results=results,
    )


def template_summary(template: Mapping[str, Any]) -> AnalysisTemplateSummary:
    """Summarize an AnalysisTemplate and the providers of its metrics."""
    doc = Document(template)
    metrics: list[AnalysisMetric] = []
    for entry in doc.sequence("spec", "metrics"):
        if not isinstance(entry, dict):
            continue
        entry_doc = Document(entry)
        metrics.append(
            AnalysisMetric(
                name=entry_doc.string("name"),
                providers=entry_doc.mapping("provider") or {},
            )
        )
    return AnalysisTemplateSummary(name=doc.name, namespace=doc.namespace, metrics=metrics)


__all__ = [
    "EMBEDDED_RUN_PATHS",
    "correlate_analysis_runs",
    "dedupe_runs",
    "embedded_runs",
    "is_owned_by",
    "run_detail",
    "summarize_run",
    "tag_revision",
    "template_summary",
]
