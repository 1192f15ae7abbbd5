"""RolloutsService: the operations exposed to callers.

Each method targets one namespace (and usually one named rollout): it
fetches through the ResourceAccessor, runs the relevant pure component
(status projection, promotion planning, analysis correlation, history
merging) and issues mutations through the accessor. Every method runs in a
``rollouts.<operation>`` span.

Mutations only write the triggering fields a human operator would write:
``spec.paused``, ``spec.restartAt``, ``spec.template``, the undo annotation
and ``status.abort``/``promoteFull``/``pauseConditions``/``currentStepIndex``.

Example:
    >>> from rolloutctl.accessor import KubernetesResourceAccessor
    >>> from rolloutctl.config import RolloutsConfig
    >>> from rolloutctl.service import RolloutsService
    >>> service = RolloutsService(KubernetesResourceAccessor.from_config(RolloutsConfig()))
    >>> service.promote("shop", "checkout").message
    'Rollout checkout promoted to next step'
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog

from rolloutctl.accessor import (
    STATUS_SUBRESOURCE,
    ResourceAccessor,
    ResourceKind,
    format_label_selector,
)
from rolloutctl.analysis import (
    correlate_analysis_runs,
    run_detail,
    summarize_run,
    template_summary,
)
from rolloutctl.document import (
    POD_TEMPLATE_HASH_LABEL,
    REVISION_ANNOTATION,
    UNDO_ANNOTATION,
    Document,
    set_nested,
)
from rolloutctl.errors import (
    ClusterApiError,
    ClusterUnavailableError,
    ContainerNotFoundError,
    InvalidRolloutStateError,
    ResourceNotFoundError,
    SubresourceUnsupportedError,
)
from rolloutctl.history import (
    build_history,
    find_replica_set,
    find_revision,
    replica_set_revision,
)
from rolloutctl.models import (
    AnalysisListing,
    AnalysisRunDetail,
    AnalysisTemplateSummary,
    OperationResult,
    RevisionInfo,
    RolloutDetail,
    RolloutListItem,
    StatusRecord,
)
from rolloutctl.promotion import plan_promotion
from rolloutctl.status import (
    project_list_item,
    project_status,
    relevant_conditions,
    strategy_facts,
)
from rolloutctl.tracing import get_tracer, rollouts_span
from rolloutctl.watch import watch_status

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable, Mapping

    from opentelemetry.trace import Tracer

    from rolloutctl.config import WatchOptions

logger = structlog.get_logger(__name__)

RESTART_AT_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
SELECTOR_REQUIRED = "unable to get selector from rollout"


def parse_image_argument(value: str) -> tuple[str | None, str]:
    """Split a ``NAME=IMAGE`` argument into (container, image).

    Example:
        >>> parse_image_argument("web=nginx:1.25")
        ('web', 'nginx:1.25')
        >>> parse_image_argument("nginx:1.25")
        (None, 'nginx:1.25')
    """
    container, sep, image = value.partition("=")
    if sep:
        return container or None, image
    return None, value


class RolloutsService:
    """Client-side control and observability operations for rollouts.

    Attributes:
        accessor: Resource accessor used for every cluster call.
    """

    def __init__(
        self,
        accessor: ResourceAccessor,
        *,
        tracer: Tracer | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            accessor: Resource accessor used for every cluster call.
            tracer: Tracer for operation spans (defaults to the rolloutctl tracer).
            now: Returns the current UTC time (injectable for tests).
        """
        self.accessor = accessor
        self._tracer = tracer or get_tracer()
        self._now = now or (lambda: datetime.now(timezone.utc))

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get_status(
        self,
        namespace: str,
        name: str = "",
        *,
        all_namespaces: bool = False,
    ) -> StatusRecord | list[StatusRecord]:
        """Project one rollout, or every rollout of the namespace sorted by name.

        Raises:
            RolloutNotFoundError: If a named rollout does not exist.
        """
        with rollouts_span(self._tracer, "get_status", namespace=namespace, name=name or None):
            if name:
                return project_status(self._get_rollout(namespace, name))
            scope = None if all_namespaces else namespace
            records = [project_status(obj) for obj in self.accessor.list(ResourceKind.ROLLOUT, scope)]
            return sorted(records, key=lambda record: (record.name, record.namespace))

    def watch_status(
        self,
        namespace: str,
        name: str,
        options: WatchOptions | None = None,
        emit: Callable[[str], None] = print,
        *,
        cancel: threading.Event | None = None,
        **watch_kwargs: Any,
    ) -> StatusRecord:
        """Watch a rollout until it is Healthy, Degraded, timed out or cancelled.

        See rolloutctl.watch.watch_status for the loop semantics; extra keyword
        arguments (``clock``, ``wait``) are passed through.
        """
        with rollouts_span(self._tracer, "watch_status", namespace=namespace, name=name):
            return watch_status(
                lambda: self._get_rollout(namespace, name),
                options,
                emit,
                rollout=name,
                cancel=cancel,
                **watch_kwargs,
            )

    def list_rollouts(self, namespace: str, *, all_namespaces: bool = False) -> list[RolloutListItem]:
        """List rollouts sorted by namespace, then name."""
        with rollouts_span(self._tracer, "list_rollouts", namespace=namespace):
            scope = None if all_namespaces else namespace
            now = self._now()
            items = [project_list_item(obj, now) for obj in self.accessor.list(ResourceKind.ROLLOUT, scope)]
            return sorted(items, key=lambda item: (item.namespace, item.name))

    def get_rollout(self, namespace: str, name: str) -> dict[str, Any]:
        """Return the raw rollout document."""
        with rollouts_span(self._tracer, "get_rollout", namespace=namespace, name=name):
            return self._get_rollout(namespace, name)

    def describe_rollout(self, namespace: str, name: str) -> RolloutDetail:
        """Build the detail view: strategy, revisions, conditions and analysis runs."""
        with rollouts_span(self._tracer, "describe_rollout", namespace=namespace, name=name):
            obj = self._get_rollout(namespace, name)
            doc = Document(obj)

            revision: list[str] = []
            current = doc.annotations.get(REVISION_ANNOTATION, "")
            if current:
                revision.append(f"current:{current}")
            stable = self._stable_revision(namespace, doc.string("status", "stableRS"))
            if stable:
                revision.append(f"stable:{stable}")
            if not revision:
                generation = doc.optional_integer("metadata", "generation")
                if generation is not None:
                    revision.append(f"generation:{generation}")

            return RolloutDetail(
                name=doc.name or name,
                namespace=doc.namespace or namespace,
                strategy=strategy_facts(obj),
                revision=revision,
                conditions=relevant_conditions(obj),
                analysis_runs=correlate_analysis_runs(self.accessor, obj, self._now()),
            )

    def get_history(
        self,
        namespace: str,
        name: str,
        revision: int | None = None,
    ) -> list[RevisionInfo] | RevisionInfo | None:
        """Return the revision history, or one revision (None when absent).

        Raises:
            RolloutNotFoundError: If the rollout does not exist.
        """
        with rollouts_span(self._tracer, "get_history", namespace=namespace, name=name):
            obj = self._get_rollout(namespace, name)
            replica_sets: list[dict[str, Any]] = []
            selector = Document(obj).string_map("spec", "selector", "matchLabels")
            if not selector:
                logger.warning("rollout_selector_missing", rollout=name, namespace=namespace)
            else:
                try:
                    replica_sets = self.accessor.list(
                        ResourceKind.REPLICA_SET,
                        namespace,
                        label_selector=format_label_selector(selector),
                    )
                except ClusterApiError as e:
                    logger.warning(
                        "replica_set_query_failed",
                        rollout=name,
                        namespace=namespace,
                        error=str(e),
                    )
            history = build_history(obj, replica_sets, self._now())
            if revision is not None:
                return find_revision(history, revision)
            return history

    def list_analysis(
        self,
        namespace: str,
        rollout: str | None = None,
        *,
        all_namespaces: bool = False,
    ) -> AnalysisListing:
        """List AnalysisRuns for a rollout, or all templates and runs in scope."""
        with rollouts_span(self._tracer, "list_analysis", namespace=namespace, name=rollout):
            now = self._now()
            if rollout:
                obj = self._get_rollout(namespace, rollout)
                return AnalysisListing(runs=correlate_analysis_runs(self.accessor, obj, now))
            scope = None if all_namespaces else namespace
            templates = self.accessor.list(ResourceKind.ANALYSIS_TEMPLATE, scope)
            runs = self.accessor.list(ResourceKind.ANALYSIS_RUN, scope)
            return AnalysisListing(
                templates=[template_summary(t) for t in templates],
                runs=[summarize_run(r, now=now) for r in runs],
            )

    def get_analysis_run(self, namespace: str, name: str) -> AnalysisRunDetail:
        """Return an AnalysisRun with its metric results.

        Raises:
            ResourceNotFoundError: If the run does not exist.
        """
        with rollouts_span(self._tracer, "get_analysis_run", namespace=namespace, name=name):
            run = self.accessor.get(ResourceKind.ANALYSIS_RUN, namespace, name)
            return run_detail(run, self._now())

    def get_analysis_template(self, namespace: str, name: str) -> AnalysisTemplateSummary:
        """Return an AnalysisTemplate with its metrics.

        Raises:
            ResourceNotFoundError: If the template does not exist.
        """
        with rollouts_span(self._tracer, "get_analysis_template", namespace=namespace, name=name):
            return template_summary(self.accessor.get(ResourceKind.ANALYSIS_TEMPLATE, namespace, name))

    # =========================================================================
    # Mutations
    # =========================================================================

    def promote(self, namespace: str, name: str, full: bool = False) -> OperationResult:
        """Promote a rollout to its next step, or fully.

        The status patch goes to the status subresource first. If that is
        rejected, the unified patch takes the place of the spec patch (for a
        full promotion the status patch itself is retried on the main
        resource). Any remaining spec patch is then applied.

        Raises:
            RolloutNotFoundError: If the rollout does not exist.
            InvalidRolloutStateError: If it has no canary or blueGreen strategy.
            SubresourceUnsupportedError: If the fallback patch also fails.
        """
        action = "promote"
        with rollouts_span(
            self._tracer, action, namespace=namespace, name=name, extra_attributes={"rollouts.full": full}
        ):
            plan = plan_promotion(self._get_rollout(namespace, name), full)
            if plan.is_noop:
                message = (
                    f"Rollout {name} is already fully promoted"
                    if full
                    else f"Rollout {name} has no pending step to promote"
                )
                logger.info("promote_noop", rollout=name, namespace=namespace, full=full)
                return OperationResult(
                    rollout=name, namespace=namespace, action=action, changed=False, message=message
                )

            spec_patch = plan.spec_patch
            status_rejected = False
            if plan.status_patch is not None:
                try:
                    self.accessor.patch(
                        ResourceKind.ROLLOUT,
                        namespace,
                        name,
                        plan.status_patch,
                        subresource=STATUS_SUBRESOURCE,
                    )
                except (ClusterApiError, ResourceNotFoundError) as e:
                    if isinstance(e, ClusterUnavailableError):
                        raise
                    logger.info("status_subresource_rejected", rollout=name, action=action, error=str(e))
                    status_rejected = True
                    spec_patch = plan.status_patch if full else (plan.unified_patch or spec_patch)

            if spec_patch is not None:
                if status_rejected:
                    self._patch_main_or_fail(namespace, name, spec_patch, action)
                else:
                    self.accessor.patch(ResourceKind.ROLLOUT, namespace, name, spec_patch)

            message = (
                f"Rollout {name} promoted to full deployment"
                if full
                else f"Rollout {name} promoted to next step"
            )
            logger.info("rollout_promoted", rollout=name, namespace=namespace, full=full)
            return OperationResult(rollout=name, namespace=namespace, action=action, message=message)

    def pause(self, namespace: str, name: str) -> OperationResult:
        """Set ``spec.paused``; a no-op when already paused."""
        return self._set_paused(namespace, name, paused=True)

    def resume(self, namespace: str, name: str) -> OperationResult:
        """Clear ``spec.paused``; a no-op when not paused."""
        return self._set_paused(namespace, name, paused=False)

    def abort(self, namespace: str, name: str) -> OperationResult:
        """Request an abort by setting ``status.abort``.

        The controller then scales the new revision down and the stable
        revision back up.
        """
        action = "abort"
        with rollouts_span(self._tracer, action, namespace=namespace, name=name):
            doc = Document(self._get_rollout(namespace, name))
            context = [f"Current rollout phase: {doc.string('status', 'phase')}"]
            if doc.boolean("status", "abort"):
                context.append("Abort already set in status: true")

            self._patch_status_with_fallback(namespace, name, {"status": {"abort": True}}, action)
            logger.info("rollout_aborted", rollout=name, namespace=namespace)
            return OperationResult(
                rollout=name,
                namespace=namespace,
                action=action,
                message=(
                    f"Rollout {name} abort initiated. "
                    "The controller will now rollback to the stable version."
                ),
                context=context,
            )

    def retry(self, namespace: str, name: str) -> OperationResult:
        """Clear ``status.abort`` so an aborted rollout continues."""
        action = "retry"
        with rollouts_span(self._tracer, action, namespace=namespace, name=name):
            doc = Document(self._get_rollout(namespace, name))
            aborted = doc.boolean("status", "abort")
            context = [
                f"Current rollout phase: {doc.string('status', 'phase')}",
                f"Current abort status: {str(aborted).lower()}",
            ]
            if not aborted:
                logger.warning("retry_not_aborted", rollout=name, namespace=namespace)
                context.append(
                    f"Warning: Rollout {name} is not aborted (abort=false), "
                    "retry may not be necessary"
                )

            self._patch_status_with_fallback(namespace, name, {"status": {"abort": False}}, action)
            logger.info("rollout_retried", rollout=name, namespace=namespace)
            return OperationResult(
                rollout=name,
                namespace=namespace,
                action=action,
                message=f"Rollout {name} retry initiated successfully.",
                context=context,
            )

    def restart(self, namespace: str, name: str) -> OperationResult:
        """Set ``spec.restartAt`` to now so the controller restarts the pods."""
        action = "restart"
        with rollouts_span(self._tracer, action, namespace=namespace, name=name):
            self._get_rollout(namespace, name)
            restart_at = self._now().astimezone(timezone.utc).strftime(RESTART_AT_FORMAT)
            self.accessor.patch(
                ResourceKind.ROLLOUT,
                namespace,
                name,
                {"spec": {"restartAt": restart_at}},
            )
            logger.info("rollout_restarted", rollout=name, namespace=namespace, restart_at=restart_at)
            return OperationResult(
                rollout=name,
                namespace=namespace,
                action=action,
                message=f"Rollout {name} restarted successfully",
                context=[f"restartAt: {restart_at}"],
            )

    def undo(self, namespace: str, name: str, to_revision: int | None = None) -> OperationResult:
        """Roll back to a revision, or ask the controller to roll back one revision.

        With ``to_revision`` the pod template of the ReplicaSet carrying that
        revision is copied into ``spec.template``. Without it the undo
        annotation is set and the controller performs the rollback.

        Raises:
            RolloutNotFoundError: If the rollout does not exist.
            ResourceNotFoundError: If no ReplicaSet carries ``to_revision``.
            InvalidRolloutStateError: If the rollout has no selector or the
                ReplicaSet has no pod template.
        """
        action = "undo"
        with rollouts_span(
            self._tracer,
            action,
            namespace=namespace,
            name=name,
            extra_attributes={"rollouts.to_revision": to_revision or 0},
        ):
            obj = self._get_rollout(namespace, name)
            if to_revision:
                template = self._revision_template(namespace, name, obj, to_revision)
                set_nested(obj, template, "spec", "template")
                self.accessor.update(ResourceKind.ROLLOUT, namespace, name, obj)
                logger.info("rollout_rolled_back", rollout=name, namespace=namespace, revision=to_revision)
                message = f"Rollout {name} rolled back to revision {to_revision} successfully"
            else:
                set_nested(obj, "true", "metadata", "annotations", UNDO_ANNOTATION)
                self.accessor.update(ResourceKind.ROLLOUT, namespace, name, obj)
                logger.info("rollout_undo_requested", rollout=name, namespace=namespace)
                message = f"Rollout {name} rolled back to previous revision successfully"
            return OperationResult(rollout=name, namespace=namespace, action=action, message=message)

    def set_image(
        self,
        namespace: str,
        name: str,
        image: str,
        container: str | None = None,
    ) -> OperationResult:
        """Set the image of one container of the pod template.

        Args:
            namespace: Rollout namespace.
            name: Rollout name.
            image: New image reference.
            container: Container name; the first container when None.

        Raises:
            ValueError: If ``image`` is empty.
            ContainerNotFoundError: If the named container does not exist.
            InvalidRolloutStateError: If the pod template has no containers.
        """
        if not image:
            msg = "image is required"
            raise ValueError(msg)
        action = "set-image"
        with rollouts_span(self._tracer, "set_image", namespace=namespace, name=name):
            obj = self._get_rollout(namespace, name)
            containers = [
                c for c in Document(obj).sequence("spec", "template", "spec", "containers")
                if isinstance(c, dict)
            ]
            if container:
                target = next((c for c in containers if c.get("name") == container), None)
                if target is None:
                    raise ContainerNotFoundError(name, container)
            elif containers:
                target = containers[0]
            else:
                raise InvalidRolloutStateError(name, "no containers found in rollout")

            target["image"] = image
            self.accessor.update(ResourceKind.ROLLOUT, namespace, name, obj)
            container_name = target.get("name", "")
            logger.info(
                "rollout_image_updated",
                rollout=name,
                namespace=namespace,
                container=container_name,
                image=image,
            )
            return OperationResult(
                rollout=name,
                namespace=namespace,
                action=action,
                message=f"Rollout {name} image updated successfully",
                context=[f"Updated container {container_name} image to {image}"],
            )

    # =========================================================================
    # Private Helpers
    # =========================================================================

    def _get_rollout(self, namespace: str, name: str) -> dict[str, Any]:
        return self.accessor.get(ResourceKind.ROLLOUT, namespace, name)

    def _set_paused(self, namespace: str, name: str, *, paused: bool) -> OperationResult:
        action = "pause" if paused else "resume"
        with rollouts_span(self._tracer, action, namespace=namespace, name=name):
            obj = self._get_rollout(namespace, name)
            if Document(obj).boolean("spec", "paused") == paused:
                message = f"Rollout {name} is already paused" if paused else f"Rollout {name} is not paused"
                logger.info("pause_state_unchanged", rollout=name, namespace=namespace, paused=paused)
                return OperationResult(
                    rollout=name, namespace=namespace, action=action, changed=False, message=message
                )

            set_nested(obj, paused, "spec", "paused")
            self.accessor.update(ResourceKind.ROLLOUT, namespace, name, obj)
            logger.info("rollout_pause_state_changed", rollout=name, namespace=namespace, paused=paused)
            verb = "paused" if paused else "resumed"
            return OperationResult(
                rollout=name,
                namespace=namespace,
                action=action,
                message=f"Rollout {name} {verb} successfully",
            )

    def _patch_status_with_fallback(
        self,
        namespace: str,
        name: str,
        body: dict[str, Any],
        action: str,
    ) -> None:
        """Patch via the status subresource, retrying once on the main resource."""
        try:
            self.accessor.patch(
                ResourceKind.ROLLOUT, namespace, name, body, subresource=STATUS_SUBRESOURCE
            )
        except ClusterUnavailableError:
            raise
        except (ClusterApiError, ResourceNotFoundError) as e:
            logger.info("status_subresource_rejected", rollout=name, action=action, error=str(e))
            self._patch_main_or_fail(namespace, name, body, action)

    def _patch_main_or_fail(
        self,
        namespace: str,
        name: str,
        body: dict[str, Any],
        action: str,
    ) -> None:
        """Apply the fallback patch to the main resource."""
        try:
            self.accessor.patch(ResourceKind.ROLLOUT, namespace, name, body)
        except ClusterUnavailableError:
            raise
        except ClusterApiError as e:
            raise SubresourceUnsupportedError(name, action, e.reason) from e

    def _revision_template(
        self,
        namespace: str,
        name: str,
        obj: Mapping[str, Any],
        revision: int,
    ) -> dict[str, Any]:
        selector = Document(obj).string_map("spec", "selector", "matchLabels")
        if not selector:
            raise InvalidRolloutStateError(name, SELECTOR_REQUIRED)
        replica_sets = self.accessor.list(
            ResourceKind.REPLICA_SET,
            namespace,
            label_selector=format_label_selector(selector),
        )
        replica_set = find_replica_set(replica_sets, revision)
        if replica_set is None:
            raise ResourceNotFoundError("Revision", str(revision), namespace=namespace)
        template = Document(replica_set).mapping("spec", "template")
        if template is None:
            raise InvalidRolloutStateError(
                name, f"ReplicaSet for revision {revision} has no pod template"
            )
        return copy.deepcopy(template)

    def _stable_revision(self, namespace: str, stable_hash: str) -> str:
        """Return the revision of the stable ReplicaSet, empty when unknown."""
        if not stable_hash:
            return ""
        try:
            replica_sets = self.accessor.list(
                ResourceKind.REPLICA_SET,
                namespace,
                label_selector=f"{POD_TEMPLATE_HASH_LABEL}={stable_hash}",
            )
        except ClusterApiError as e:
            logger.warning("stable_revision_lookup_failed", namespace=namespace, error=str(e))
            return ""
        for replica_set in replica_sets:
            revision = replica_set_revision(replica_set)
            if revision > 0:
                return str(revision)
        return ""


__all__ = ["RolloutsService", "parse_image_argument"]
