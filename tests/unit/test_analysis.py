"""Unit tests for AnalysisRun correlation."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from rolloutctl.accessor import ResourceKind
from rolloutctl.analysis import (
    correlate_analysis_runs,
    dedupe_runs,
    is_owned_by,
    run_detail,
    tag_revision,
    template_summary,
)
from rolloutctl.errors import ClusterApiError
from rolloutctl.models import AnalysisRunSummary, RevisionTag, RunSource

Factory = Callable[..., dict[str, Any]]


def _list_selectors(accessor: Any) -> list[str | None]:
    return [
        call[4]
        for call in accessor.calls
        if call[0] == "list" and call[1] is ResourceKind.ANALYSIS_RUN
    ]


class TestTagRevision:
    """Tests for tag_revision."""

    def test_current_and_stable(self) -> None:
        """Test hashes are matched against current first."""
        assert tag_revision("abc", "abc", "abc") is RevisionTag.CURRENT
        assert tag_revision("def", "abc", "def") is RevisionTag.STABLE
        assert tag_revision("xyz", "abc", "def") is RevisionTag.UNKNOWN

    def test_empty_hash_is_unknown(self) -> None:
        """Test an unlabeled run never matches an empty rollout hash."""
        assert tag_revision("", "", "") is RevisionTag.UNKNOWN


class TestCorrelateAnalysisRuns:
    """Tier selection in correlate_analysis_runs."""

    def test_embedded_runs_skip_queries(
        self, fake_accessor: Any, make_rollout: Factory, now: Any
    ) -> None:
        """Test runs embedded in status are used without listing."""
        rollout = make_rollout(
            current_hash="abc",
            status={"canary": {"currentStepAnalysisRuns": [{"name": "r1", "status": "Running"}, "bad"]}},
        )

        runs = correlate_analysis_runs(fake_accessor, rollout, now)

        assert [(r.name, r.phase, r.revision_tag, r.source) for r in runs] == [
            ("r1", "Running", RevisionTag.CURRENT, RunSource.EMBEDDED)
        ]
        assert fake_accessor.calls == []

    def test_label_tier(
        self, fake_accessor: Any, make_rollout: Factory, make_analysis_run: Factory, now: Any
    ) -> None:
        """Test runs are found by pod-hash label and tagged by revision."""
        fake_accessor.add(ResourceKind.ANALYSIS_RUN, make_analysis_run("run-current", pod_hash="abc"))
        fake_accessor.add(
            ResourceKind.ANALYSIS_RUN, make_analysis_run("run-stable", pod_hash="def", phase="Failed")
        )
        fake_accessor.add(ResourceKind.ANALYSIS_RUN, make_analysis_run("run-other", pod_hash="zzz"))
        rollout = make_rollout(current_hash="abc", stable_hash="def")

        runs = correlate_analysis_runs(fake_accessor, rollout, now)

        assert [(r.name, r.phase, r.revision_tag, r.source) for r in runs] == [
            ("run-current", "Successful", RevisionTag.CURRENT, RunSource.LABEL),
            ("run-stable", "Failed", RevisionTag.STABLE, RunSource.LABEL),
        ]
        assert runs[0].age == "1h"
        assert _list_selectors(fake_accessor) == [
            "rollouts-pod-template-hash=abc",
            "rollouts-pod-template-hash=def",
        ]

    def test_identical_hashes_queried_once(
        self, fake_accessor: Any, make_rollout: Factory, make_analysis_run: Factory
    ) -> None:
        """Test a shared current/stable hash is queried once."""
        fake_accessor.add(ResourceKind.ANALYSIS_RUN, make_analysis_run("run-1", pod_hash="abc"))

        runs = correlate_analysis_runs(
            fake_accessor, make_rollout(current_hash="abc", stable_hash="abc")
        )

        assert [r.name for r in runs] == ["run-1"]
        assert _list_selectors(fake_accessor) == ["rollouts-pod-template-hash=abc"]

    def test_owner_tier(
        self, fake_accessor: Any, make_rollout: Factory, make_analysis_run: Factory
    ) -> None:
        """Test owner references are used when no label matches."""
        fake_accessor.add(ResourceKind.ANALYSIS_RUN, make_analysis_run("owned", owner="checkout"))
        fake_accessor.add(ResourceKind.ANALYSIS_RUN, make_analysis_run("foreign", owner="payments"))
        fake_accessor.add(
            ResourceKind.ANALYSIS_RUN,
            make_analysis_run("other-namespace", namespace="ops", owner="checkout"),
        )

        runs = correlate_analysis_runs(fake_accessor, make_rollout(current_hash="abc"))

        assert [(r.name, r.source) for r in runs] == [("owned", RunSource.OWNER)]
        assert _list_selectors(fake_accessor) == ["rollouts-pod-template-hash=abc", None]

    def test_query_failures_are_skipped(
        self, fake_accessor: Any, make_rollout: Factory
    ) -> None:
        """Test failed label and owner queries yield an empty result."""
        fake_accessor.failures[("list", ResourceKind.ANALYSIS_RUN)] = ClusterApiError("Forbidden", status=403)

        runs = correlate_analysis_runs(fake_accessor, make_rollout(current_hash="abc", stable_hash="def"))

        assert runs == []
        assert len(_list_selectors(fake_accessor)) == 3

    def test_no_hashes_goes_to_owner_tier(
        self, fake_accessor: Any, make_rollout: Factory
    ) -> None:
        """Test a rollout without hashes skips the label tier."""
        assert correlate_analysis_runs(fake_accessor, make_rollout()) == []
        assert _list_selectors(fake_accessor) == [None]


class TestHelpers:
    """Tests for dedupe_runs, is_owned_by, run_detail and template_summary."""

    def test_dedupe_keeps_first(self) -> None:
        """Test duplicates by name keep the first occurrence."""
        runs = [
            AnalysisRunSummary(name="a", phase="Running"),
            AnalysisRunSummary(name="b"),
            AnalysisRunSummary(name="a", phase="Failed"),
        ]

        result = dedupe_runs(runs)

        assert [(r.name, r.phase) for r in result] == [("a", "Running"), ("b", "Unknown")]

    def test_is_owned_by_requires_rollout_kind(self) -> None:
        """Test only Rollout owner references count."""
        run = {"metadata": {"ownerReferences": [{"kind": "ReplicaSet", "name": "checkout"}]}}

        assert not is_owned_by(run, "checkout")

    def test_run_detail_sorts_metrics(self, make_analysis_run: Factory, now: Any) -> None:
        """Test metric results are sorted by name."""
        run = make_analysis_run(
            "run-1",
            pod_hash="abc",
            phase="Failed",
            message="metric error-rate assessed Failed",
            metric_results=[
                {"name": "latency", "phase": "Successful", "value": "[0.2]"},
                {"name": "error-rate", "phase": "Failed", "message": "too many errors"},
            ],
        )

        detail = run_detail(run, now)

        assert [m.name for m in detail.metric_results] == ["error-rate", "latency"]
        assert detail.metric_results[1].value == "[0.2]"
        assert detail.pod_hash == "abc"
        assert detail.message == "metric error-rate assessed Failed"

    def test_template_summary(self) -> None:
        """Test template metrics and providers are summarized."""
        template = {
            "metadata": {"name": "error-rate", "namespace": "shop"},
            "spec": {
                "metrics": [
                    {"name": "errors", "provider": {"prometheus": {"query": "sum(rate(x[5m]))"}}},
                    {"name": "manual"},
                ]
            },
        }

        summary = template_summary(template)

        assert summary.metric_count == 2
        assert summary.metrics[0].providers == {"prometheus": {"query": "sum(rate(x[5m]))"}}
        assert summary.metrics[1].providers == {}
