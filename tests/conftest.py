"""Shared test fixtures for rolloutctl.

Unit tests run without a cluster: the service is exercised against
FakeResourceAccessor, an in-memory ResourceAccessor that applies merge
patches, evaluates equality label selectors and records every call.
Failures can be injected per operation to exercise fallback paths.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterator
from datetime import datetime, timezone
from typing import Any

import pytest
import structlog
from click.testing import CliRunner

from rolloutctl.accessor import ResourceAccessor, ResourceKind, not_found_error
from rolloutctl.document import (
    POD_TEMPLATE_HASH_LABEL,
    REVISION_ANNOTATION,
)
from rolloutctl.service import RolloutsService
from rolloutctl.tracing import reset_tracer

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
"""Fixed reference time used for ages and restartAt values."""


def merge_patch(target: Any, patch: Any) -> Any:
    """Apply a JSON merge patch (None deletes a key)."""
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)
    result = dict(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = merge_patch(result.get(key), value)
    return result


def _matches(labels: dict[str, str], selector: str | None) -> bool:
    if not selector:
        return True
    for term in selector.split(","):
        key, _, value = term.partition("=")
        if labels.get(key) != value:
            return False
    return True


class FakeResourceAccessor(ResourceAccessor):
    """In-memory ResourceAccessor.

    Attributes:
        objects: Stored documents keyed by (kind, namespace, name).
        calls: Every call as (method, kind, namespace, name, extra).
        failures: Exceptions to raise, keyed by (method, kind) or
            (method, kind, subresource) for patches.
        scripted_gets: Queued responses for successive gets of one
            rollout; the last one repeats.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[ResourceKind, str, str], dict[str, Any]] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[tuple[Any, ...], Exception] = {}
        self.scripted_gets: dict[tuple[ResourceKind, str, str], list[Any]] = {}

    def add(self, kind: ResourceKind, obj: dict[str, Any]) -> dict[str, Any]:
        metadata = obj.get("metadata", {})
        self.objects[(kind, metadata.get("namespace", ""), metadata["name"])] = copy.deepcopy(obj)
        return obj

    def stored(self, kind: ResourceKind, namespace: str, name: str) -> dict[str, Any]:
        return self.objects[(kind, namespace, name)]

    def mutations(self) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] in ("patch", "update")]

    def _maybe_fail(self, *key: Any) -> None:
        failure = self.failures.get(key)
        if failure is not None:
            raise failure

    def get(self, kind: ResourceKind, namespace: str, name: str) -> dict[str, Any]:
        self.calls.append(("get", kind, namespace, name, None))
        self._maybe_fail("get", kind)
        script = self.scripted_gets.get((kind, namespace, name))
        if script:
            response = script.pop(0) if len(script) > 1 else script[0]
            if isinstance(response, Exception):
                raise response
            return copy.deepcopy(response)
        try:
            return copy.deepcopy(self.objects[(kind, namespace, name)])
        except KeyError:
            raise not_found_error(kind, name, namespace) from None

    def list(
        self,
        kind: ResourceKind,
        namespace: str | None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        self.calls.append(("list", kind, namespace, None, label_selector))
        self._maybe_fail("list", kind)
        return [
            copy.deepcopy(obj)
            for (obj_kind, obj_ns, _), obj in sorted(self.objects.items(), key=lambda item: item[0][1:])
            if obj_kind is kind
            and (not namespace or obj_ns == namespace)
            and _matches(obj.get("metadata", {}).get("labels") or {}, label_selector)
        ]

    def patch(
        self,
        kind: ResourceKind,
        namespace: str,
        name: str,
        body: dict[str, Any],
        subresource: str | None = None,
    ) -> dict[str, Any]:
        self.calls.append(("patch", kind, namespace, name, copy.deepcopy(body), subresource))
        self._maybe_fail("patch", kind, subresource)
        key = (kind, namespace, name)
        if key not in self.objects:
            raise not_found_error(kind, name, namespace)
        self.objects[key] = merge_patch(self.objects[key], body)
        return copy.deepcopy(self.objects[key])

    def update(
        self,
        kind: ResourceKind,
        namespace: str,
        name: str,
        body: dict[str, Any],
    ) -> dict[str, Any]:
        self.calls.append(("update", kind, namespace, name, copy.deepcopy(body)))
        self._maybe_fail("update", kind)
        key = (kind, namespace, name)
        if key not in self.objects:
            raise not_found_error(kind, name, namespace)
        self.objects[key] = copy.deepcopy(body)
        return copy.deepcopy(body)


def build_rollout(
    name: str = "checkout",
    namespace: str = "shop",
    *,
    strategy: str = "canary",
    steps: int = 4,
    phase: str | None = "Progressing",
    step_index: int | None = None,
    paused: bool = False,
    revision: str | None = "3",
    generation: int = 7,
    current_hash: str = "",
    stable_hash: str = "",
    containers: list[dict[str, Any]] | None = None,
    status: dict[str, Any] | None = None,
    spec: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a Rollout document; ``status`` and ``spec`` are merged last."""
    if strategy == "canary":
        strategy_block: dict[str, Any] = {"canary": {"steps": [{"setWeight": 25}] * steps}}
    elif strategy == "blueGreen":
        strategy_block = {"blueGreen": {"activeService": f"{name}-active"}}
    else:
        strategy_block = {}

    annotations = {REVISION_ANNOTATION: revision} if revision else {}
    obj: dict[str, Any] = {
        "apiVersion": "argoproj.io/v1alpha1",
        "kind": "Rollout",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "generation": generation,
            "annotations": annotations,
            "creationTimestamp": "2026-02-27T12:00:00Z",
        },
        "spec": {
            "replicas": 4,
            "paused": paused,
            "selector": {"matchLabels": {"app": name}},
            "strategy": strategy_block,
            "template": {
                "metadata": {"labels": {"app": name}},
                "spec": {
                    "containers": containers
                    if containers is not None
                    else [{"name": "web", "image": f"registry.example.com/{name}:1.0"}]
                },
            },
        },
        "status": {"replicas": 4, "updatedReplicas": 4, "readyReplicas": 4, "availableReplicas": 4},
    }
    if phase is not None:
        obj["status"]["phase"] = phase
    if step_index is not None:
        obj["status"]["currentStepIndex"] = step_index
    if current_hash:
        obj["status"]["currentPodHash"] = current_hash
    if stable_hash:
        obj["status"]["stableRS"] = stable_hash
    if spec:
        obj["spec"] = merge_patch(obj["spec"], spec)
    if status:
        obj["status"] = merge_patch(obj["status"], status)
    return obj


def build_replica_set(
    revision: int | None,
    *,
    app: str = "checkout",
    namespace: str = "shop",
    pod_hash: str = "",
    replicas: int = 0,
    ready: int = 0,
    created: str = "2026-03-01T10:00:00Z",
    image: str = "registry.example.com/checkout:1.0",
    annotation: str = REVISION_ANNOTATION,
) -> dict[str, Any]:
    """Build a ReplicaSet document labeled for ``app``."""
    pod_hash = pod_hash or f"hash{revision}"
    labels = {"app": app, POD_TEMPLATE_HASH_LABEL: pod_hash}
    return {
        "apiVersion": "apps/v1",
        "kind": "ReplicaSet",
        "metadata": {
            "name": f"{app}-{pod_hash}",
            "namespace": namespace,
            "labels": labels,
            "annotations": {annotation: str(revision)} if revision is not None else {},
            "creationTimestamp": created,
        },
        "spec": {
            "replicas": replicas,
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {"containers": [{"name": "web", "image": image}]},
            },
        },
        "status": {"replicas": replicas, "readyReplicas": ready},
    }


def build_analysis_run(
    name: str,
    *,
    namespace: str = "shop",
    pod_hash: str = "",
    phase: str = "Successful",
    owner: str | None = None,
    created: str = "2026-03-01T11:00:00Z",
    metric_results: list[dict[str, Any]] | None = None,
    message: str = "",
) -> dict[str, Any]:
    """Build an AnalysisRun document."""
    metadata: dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "labels": {POD_TEMPLATE_HASH_LABEL: pod_hash} if pod_hash else {},
        "creationTimestamp": created,
    }
    if owner:
        metadata["ownerReferences"] = [{"kind": "Rollout", "name": owner}]
    status: dict[str, Any] = {"phase": phase}
    if message:
        status["message"] = message
    if metric_results is not None:
        status["metricResults"] = metric_results
    return {
        "apiVersion": "argoproj.io/v1alpha1",
        "kind": "AnalysisRun",
        "metadata": metadata,
        "status": status,
    }


@pytest.fixture(autouse=True)
def _reset_tracer() -> None:
    """Clear the cached tracers between tests."""
    reset_tracer()


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Undo logging configuration done by CLI invocations."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def fake_accessor() -> FakeResourceAccessor:
    """Provide an empty in-memory accessor."""
    return FakeResourceAccessor()


@pytest.fixture
def service(fake_accessor: FakeResourceAccessor) -> RolloutsService:
    """Provide a RolloutsService over the in-memory accessor with a fixed clock."""
    return RolloutsService(fake_accessor, now=lambda: NOW)


@pytest.fixture
def make_rollout() -> Callable[..., dict[str, Any]]:
    """Provide the Rollout document builder."""
    return build_rollout


@pytest.fixture
def make_replica_set() -> Callable[..., dict[str, Any]]:
    """Provide the ReplicaSet document builder."""
    return build_replica_set


@pytest.fixture
def make_analysis_run() -> Callable[..., dict[str, Any]]:
    """Provide the AnalysisRun document builder."""
    return build_analysis_run


@pytest.fixture
def now() -> datetime:
    """Fixed reference time."""
    return NOW


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()
