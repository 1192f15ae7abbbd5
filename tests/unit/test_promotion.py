"""Unit tests for the promotion decision engine."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from rolloutctl.errors import InvalidRolloutStateError
from rolloutctl.promotion import base_unified_patch, is_inconclusive, plan_promotion

RolloutFactory = Callable[..., dict[str, Any]]


class TestNormalPromotion:
    """Branch selection for a normal promote."""

    def test_paused_only_unpauses(self, make_rollout: RolloutFactory) -> None:
        """Test a paused rollout only has spec.paused cleared."""
        rollout = make_rollout(
            paused=True,
            step_index=1,
            status={"pauseConditions": [{"reason": "CanaryPauseStep"}]},
        )

        plan = plan_promotion(rollout)

        assert plan.spec_patch == {"spec": {"paused": False}}
        assert plan.status_patch is None
        assert plan.unified_patch == base_unified_patch()

    def test_inconclusive_clears_pause_and_advances(self, make_rollout: RolloutFactory) -> None:
        """Test a Degraded rollout with controller pause advances one step."""
        rollout = make_rollout(
            phase="Degraded",
            step_index=1,
            status={"pauseConditions": [{"reason": "InconclusiveAnalysis"}], "controllerPause": True},
        )

        plan = plan_promotion(rollout)

        assert plan.status_patch == {
            "status": {"pauseConditions": None, "controllerPause": False, "currentStepIndex": 2}
        }
        assert plan.spec_patch is None

    def test_inconclusive_without_step_only_clears_pause(self, make_rollout: RolloutFactory) -> None:
        """Test the inconclusive branch needs a step to advance to."""
        rollout = make_rollout(
            phase="Degraded",
            step_index=4,
            status={"pauseConditions": [{"reason": "InconclusiveAnalysis"}], "controllerPause": True},
        )

        plan = plan_promotion(rollout)

        assert plan.status_patch == {"status": {"pauseConditions": None}}

    def test_pause_conditions_cleared_without_advancing(self, make_rollout: RolloutFactory) -> None:
        """Test a controller pause outside Degraded only clears pause conditions."""
        rollout = make_rollout(
            phase="Progressing",
            step_index=1,
            status={"pauseConditions": [{"reason": "StepPause"}], "controllerPause": True},
        )

        plan = plan_promotion(rollout)

        assert plan.status_patch == {"status": {"pauseConditions": None}}
        assert "currentStepIndex" not in plan.status_patch["status"]
        assert plan.spec_patch is None
        assert plan.unified_patch == base_unified_patch()

    def test_canary_advances_one_step(self, make_rollout: RolloutFactory) -> None:
        """Test a canary mid-way advances to the next step."""
        plan = plan_promotion(make_rollout(step_index=1))

        assert plan.status_patch == {"status": {"pauseConditions": None, "currentStepIndex": 2}}
        assert plan.unified_patch == {
            "spec": {"paused": False},
            "status": {"pauseConditions": None, "currentStepIndex": 2},
        }

    @pytest.mark.parametrize("step_index", [4, None])
    def test_nothing_to_promote(self, make_rollout: RolloutFactory, step_index: int | None) -> None:
        """Test a canary at its last step, or without a step index, is a no-op."""
        plan = plan_promotion(make_rollout(step_index=step_index))

        assert plan.is_noop

    def test_advance_never_exceeds_step_count(self, make_rollout: RolloutFactory) -> None:
        """Test the next index is at most the number of steps."""
        for index in range(5):
            plan = plan_promotion(make_rollout(steps=4, step_index=index))
            if plan.status_patch is not None:
                assert plan.status_patch["status"]["currentStepIndex"] <= 4

    def test_blue_green_without_pause_is_noop(self, make_rollout: RolloutFactory) -> None:
        """Test a blue-green rollout has no steps to advance."""
        assert plan_promotion(make_rollout(strategy="blueGreen")).is_noop

    def test_requires_strategy(self, make_rollout: RolloutFactory) -> None:
        """Test a rollout without canary or blueGreen cannot be promoted."""
        with pytest.raises(InvalidRolloutStateError, match="canary or blue-green"):
            plan_promotion(make_rollout(strategy="none"))

    def test_plan_does_not_mutate_input(self, make_rollout: RolloutFactory) -> None:
        """Test planning leaves the rollout document untouched."""
        rollout = make_rollout(step_index=1, status={"pauseConditions": [{"reason": "x"}]})
        snapshot = repr(rollout)

        plan_promotion(rollout)

        assert repr(rollout) == snapshot


class TestFullPromotion:
    """Full promotion."""

    def test_sets_promote_full(self, make_rollout: RolloutFactory) -> None:
        """Test differing hashes request promoteFull."""
        plan = plan_promotion(make_rollout(current_hash="abc", stable_hash="def"), full=True)

        assert plan.full
        assert plan.status_patch == {"status": {"promoteFull": True}}
        assert plan.spec_patch is None

    def test_already_promoted(self, make_rollout: RolloutFactory) -> None:
        """Test matching hashes make full promotion a no-op."""
        plan = plan_promotion(make_rollout(current_hash="abc", stable_hash="abc"), full=True)

        assert plan.is_noop

    def test_requires_strategy(self, make_rollout: RolloutFactory) -> None:
        """Test full promotion also requires a strategy."""
        with pytest.raises(InvalidRolloutStateError):
            plan_promotion(make_rollout(strategy="none", current_hash="a"), full=True)


class TestIsInconclusive:
    """Tests for the inconclusive approximation."""

    @pytest.mark.parametrize(("phase", "expected"), [("Degraded", True), ("Paused", False), ("", False)])
    def test_degraded_phase(self, phase: str, expected: bool) -> None:
        """Test only the Degraded phase counts as inconclusive."""
        assert is_inconclusive({"status": {"phase": phase}}) is expected
