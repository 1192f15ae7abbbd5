"""Pydantic records returned by the rollout service.

Every record is frozen: projections are computed once from a resource
document and handed to callers (and output renderers) unchanged.

Example:
    >>> from rolloutctl.models import RevisionInfo
    >>> info = RevisionInfo(revision=3, phase="Ready", pod_hash="5f6d7c", is_current=True)
    >>> info.model_dump()["phase"]
    'Ready'
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

NO_MESSAGE = "<none>"
"""Placeholder shown when the controller reports no status message."""


class Strategy(str, Enum):
    """Deployment strategy declared in ``spec.strategy``."""

    CANARY = "Canary"
    BLUE_GREEN = "BlueGreen"
    UNKNOWN = "Unknown"


class RevisionTag(str, Enum):
    """Which rollout revision an AnalysisRun validates."""

    CURRENT = "current"
    """Run labeled with ``status.currentPodHash`` (or embedded in status)."""

    STABLE = "stable"
    """Run labeled with ``status.stableRS``."""

    UNKNOWN = "unknown"
    """Run labeled with neither hash, or not labeled at all."""


class RunSource(str, Enum):
    """How an AnalysisRun was found."""

    EMBEDDED = "embedded"
    LABEL = "label"
    OWNER = "owner"
    LISTING = "listing"


class StatusRecord(BaseModel):
    """Flattened, display-ready projection of one rollout.

    Attributes:
        name: Rollout name.
        namespace: Rollout namespace.
        status: Phase, "Unknown" when absent.
        replicas: "<status.replicas>/<spec.replicas>".
        updated: Updated replica count.
        ready: Ready replica count.
        available: Available replica count.
        strategy: Canary, BlueGreen or Unknown.
        current_step: One-based current step, or "N/A".
        revision: "revision:<N>" or "generation:<N>".
        message: Enhanced controller message, "<none>" when absent.
        analysis: Current analysis summary, empty when none.
        images: Container name to image of the pod template.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = ""
    namespace: str = ""
    status: str = "Unknown"
    replicas: str = "0/0"
    updated: int = 0
    ready: int = 0
    available: int = 0
    strategy: Strategy = Strategy.UNKNOWN
    current_step: str = "N/A"
    revision: str = "generation:0"
    message: str = NO_MESSAGE
    analysis: str = ""
    images: dict[str, str] = Field(default_factory=dict)


class RolloutListItem(BaseModel):
    """One row of the rollout list view."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    namespace: str
    status: str
    replicas: str
    age: str
    strategy: Strategy
    revision: str
    images: dict[str, str] = Field(default_factory=dict)


class RevisionInfo(BaseModel):
    """One entry of a rollout's revision history.

    Attributes:
        revision: Revision number.
        started_at: Creation time of the backing ReplicaSet, "Unknown" if absent.
        finished_at: "Completed" once scaled down, else "Active".
        duration: Age of the backing ReplicaSet.
        phase: Replica-derived phase; empty for the rollout's own entry.
        pod_hash: Pod-template hash of the backing ReplicaSet.
        is_current: Whether this revision is the one currently rolled out.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    revision: int = Field(..., ge=0)
    started_at: str = ""
    finished_at: str = ""
    duration: str = ""
    phase: str = ""
    pod_hash: str = ""
    is_current: bool = False


class MetricResult(BaseModel):
    """Outcome of one metric inside an AnalysisRun."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    phase: str = ""
    value: str = ""
    message: str = ""


class AnalysisRunSummary(BaseModel):
    """AnalysisRun correlated to a rollout.

    Attributes:
        name: AnalysisRun name.
        namespace: AnalysisRun namespace.
        phase: Run phase, "Unknown" when absent.
        status: Status reported by an embedded reference, if any.
        pod_hash: Value of the ``rollouts-pod-template-hash`` label.
        revision_tag: Which rollout revision the run validates.
        age: Age of the run.
        source: How the run was found.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    namespace: str = ""
    phase: str = "Unknown"
    status: str = ""
    pod_hash: str = ""
    revision_tag: RevisionTag = RevisionTag.UNKNOWN
    age: str = "unknown"
    source: RunSource = RunSource.LABEL


class AnalysisRunDetail(BaseModel):
    """AnalysisRun with its message and metric results sorted by name."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    namespace: str
    phase: str = ""
    message: str = ""
    pod_hash: str = ""
    age: str = "unknown"
    metric_results: list[MetricResult] = Field(default_factory=list)


class AnalysisMetric(BaseModel):
    """Metric declared by an AnalysisTemplate."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    providers: dict[str, Any] = Field(default_factory=dict)


class AnalysisTemplateSummary(BaseModel):
    """AnalysisTemplate with its declared metrics."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    namespace: str
    metrics: list[AnalysisMetric] = Field(default_factory=list)

    @property
    def metric_count(self) -> int:
        return len(self.metrics)


class AnalysisListing(BaseModel):
    """AnalysisTemplates and AnalysisRuns found in a namespace (or cluster)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    templates: list[AnalysisTemplateSummary] = Field(default_factory=list)
    runs: list[AnalysisRunSummary] = Field(default_factory=list)


class RolloutDetail(BaseModel):
    """Detail view of one rollout.

    Attributes:
        name: Rollout name.
        namespace: Rollout namespace.
        strategy: Strategy facts such as "type:Canary" and "steps:4".
        revision: Revision facts such as "current:5" and "stable:4".
        conditions: Relevant conditions as "Type:Status".
        analysis_runs: Correlated analysis runs.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    namespace: str
    strategy: list[str] = Field(default_factory=list)
    revision: list[str] = Field(default_factory=list)
    conditions: list[str] = Field(default_factory=list)
    analysis_runs: list[AnalysisRunSummary] = Field(default_factory=list)


class PromotionPlan(BaseModel):
    """Candidate merge patches for one promote request.

    Attributes:
        status_patch: Patch for the status subresource.
        spec_patch: Patch for the main resource.
        unified_patch: Replacement for spec_patch when the status
            subresource rejects status_patch.
        full: Whether this is a full promotion.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    status_patch: dict[str, Any] | None = None
    spec_patch: dict[str, Any] | None = None
    unified_patch: dict[str, Any] | None = None
    full: bool = False

    @property
    def is_noop(self) -> bool:
        """Return True when there is nothing to apply."""
        return self.status_patch is None and self.spec_patch is None


class OperationResult(BaseModel):
    """Acknowledgement of one mutation.

    Attributes:
        rollout: Rollout name.
        namespace: Rollout namespace.
        action: Operation performed (e.g. "pause").
        changed: False when the operation was an informational no-op.
        message: Human-readable outcome.
        context: Extra lines reported alongside the outcome.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    rollout: str
    namespace: str
    action: str
    changed: bool = True
    message: str
    context: list[str] = Field(default_factory=list)


__all__ = [
    "NO_MESSAGE",
    "AnalysisListing",
    "AnalysisMetric",
    "AnalysisRunDetail",
    "AnalysisRunSummary",
    "AnalysisTemplateSummary",
    "MetricResult",
    "OperationResult",
    "PromotionPlan",
    "RevisionInfo",
    "RevisionTag",
    "RolloutDetail",
    "RolloutListItem",
    "RunSource",
    "StatusRecord",
    "Strategy",
]
