"""Promotion decision engine.

Chooses, from the rollout's current state, which merge patches a promote
request should issue. The decision is pure; applying the plan (status
subresource first, then the main resource) is done by RolloutsService.

Normal promotion, first matching branch wins:
    1. ``spec.paused`` is true: only clear it.
    2. Inconclusive (phase Degraded), pause conditions present, controller
       pause set, canary with a step to advance: clear pause conditions and
       controller pause, advance one step.
    3. Pause conditions present: clear them without advancing.
    4. Canary with a step to advance: advance one step.

Full promotion sets ``status.promoteFull`` unless the current pod hash is
already the stable one, in which case there is nothing to do.

Example:
    >>> plan = plan_promotion({
    ...     "spec": {"strategy": {"canary": {"steps": [{}, {}, {}, {}]}}},
    ...     "status": {"currentStepIndex": 1},
    ... })
    >>> plan.status_patch
    {'status': {'pauseConditions': None, 'currentStepIndex': 2}}
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rolloutctl.document import Document
from rolloutctl.errors import InvalidRolloutStateError
from rolloutctl.models import PromotionPlan
from rolloutctl.status import PHASE_DEGRADED

if TYPE_CHECKING:
    from collections.abc import Mapping

STRATEGY_REQUIRED = "rollout does not have a canary or blue-green strategy"


def base_unified_patch() -> dict[str, Any]:
    """Return the lowest-priority fallback patch: unpause and clear pause conditions."""
    return {"spec": {"paused": False}, "status": {"pauseConditions": None}}


def is_inconclusive(obj: Mapping[str, Any] | Document) -> bool:
    """Approximate an inconclusive analysis verdict.

    Only ``status.phase == "Degraded"`` is checked. Degraded has other
    causes, so this over-reports; AnalysisRun phases are not consulted.
    """
    doc = obj if isinstance(obj, Document) else Document(obj)
    return doc.string("status", "phase") == PHASE_DEGRADED


def _next_step(doc: Document) -> int | None:
    """Return the next step index for a canary rollout, or None if it cannot advance."""
    canary = doc.mapping("spec", "strategy", "canary")
    if canary is None:
        return None
    current = doc.optional_integer("status", "currentStepIndex")
    if current is None:
        return None
    steps = canary.get("steps")
    total = len(steps) if isinstance(steps, list) else 0
    if current < total:
        return current + 1
    return None


def plan_promotion(obj: Mapping[str, Any] | Document, full: bool = False) -> PromotionPlan:
    """Decide the patches for promoting a rollout.

    Args:
        obj: Rollout resource dict (or Document).
        full: Promote straight to the final state, skipping remaining steps.

    Returns:
        The promotion plan. A plan with neither status nor spec patch is a no-op.

    Raises:
        InvalidRolloutStateError: If the rollout has neither a canary nor a
            blueGreen strategy.
    """
    doc = obj if isinstance(obj, Document) else Document(obj)

    has_canary = doc.mapping("spec", "strategy", "canary") is not None
    has_blue_green = doc.mapping("spec", "strategy", "blueGreen") is not None
    if not has_canary and not has_blue_green:
        raise InvalidRolloutStateError(doc.name, STRATEGY_REQUIRED)

    if full:
        current_hash = doc.string("status", "currentPodHash")
        stable_hash = doc.string("status", "stableRS")
        if current_hash != stable_hash:
            return PromotionPlan(status_patch={"status": {"promoteFull": True}}, full=True)
        return PromotionPlan(full=True)

    unified = base_unified_patch()

    if doc.boolean("spec", "paused"):
        return PromotionPlan(spec_patch={"spec": {"paused": False}}, unified_patch=unified)

    has_pause_conditions = bool(doc.sequence("status", "pauseConditions"))
    next_step = _next_step(doc)

    if (
        is_inconclusive(doc)
        and has_pause_conditions
        and doc.boolean("status", "controllerPause")
        and next_step is not None
    ):
        status_patch = {
            "status": {
                "pauseConditions": None,
                "controllerPause": False,
                "currentStepIndex": next_step,
            }
        }
        return PromotionPlan(status_patch=status_patch, unified_patch=unified)

    if has_pause_conditions:
        return PromotionPlan(status_patch={"status": {"pauseConditions": None}}, unified_patch=unified)

    if next_step is not None:
        status_patch = {"status": {"pauseConditions": None, "currentStepIndex": next_step}}
        unified = {
            "spec": {"paused": False},
            "status": {"pauseConditions": None, "currentStepIndex": next_step},
        }
        return PromotionPlan(status_patch=status_patch, unified_patch=unified)

    return PromotionPlan(unified_patch=unified)


__all__ = ["base_unified_patch", "is_inconclusive", "plan_promotion"]
