"""Resource access for rollouts, ReplicaSets and analysis resources.

ResourceAccessor is the narrow interface the rollout service depends on:
get, list, merge-patch and update of named, namespaced resources, exchanged
as plain dicts. KubernetesResourceAccessor implements it over the
``kubernetes`` dynamic client, which handles custom resources such as
Rollout without generated models.

Kubeconfig loading order:
    1. Explicit kubeconfig path (with optional context)
    2. In-cluster configuration
    3. Default kubeconfig (~/.kube/config, with optional context)

Example:
    >>> from rolloutctl.accessor import KubernetesResourceAccessor, ResourceKind
    >>> from rolloutctl.config import RolloutsConfig
    >>> accessor = KubernetesResourceAccessor.from_config(RolloutsConfig())
    >>> rollout = accessor.get(ResourceKind.ROLLOUT, "shop", "checkout")
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog
import urllib3
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import ResourceNotFoundError as DiscoveryNotFoundError

from rolloutctl.config import DEFAULT_NAMESPACE
from rolloutctl.errors import (
    ClusterApiError,
    ClusterUnavailableError,
    ResourceNotFoundError,
    RolloutNotFoundError,
)
from rolloutctl.tracing import sanitize_error_message

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from rolloutctl.config import RolloutsConfig

logger = structlog.get_logger(__name__)

MERGE_PATCH = "application/merge-patch+json"
STATUS_SUBRESOURCE = "status"


class ResourceKind(Enum):
    """Resource kinds handled by the accessor, as (apiVersion, kind)."""

    ROLLOUT = ("argoproj.io/v1alpha1", "Rollout")
    ANALYSIS_RUN = ("argoproj.io/v1alpha1", "AnalysisRun")
    ANALYSIS_TEMPLATE = ("argoproj.io/v1alpha1", "AnalysisTemplate")
    REPLICA_SET = ("apps/v1", "ReplicaSet")

    @property
    def api_version(self) -> str:
        return self.value[0]

    @property
    def kind(self) -> str:
        return self.value[1]


def format_label_selector(labels: Mapping[str, str]) -> str:
    """Render a label mapping as a ``key=value,...`` selector, sorted by key.

    Example:
        >>> format_label_selector({"app": "checkout", "tier": "web"})
        'app=checkout,tier=web'
    """
    return ",".join(f"{key}={labels[key]}" for key in sorted(labels))


class ResourceAccessor(ABC):
    """Generic access to named, typed, namespaced cluster resources.

    All documents are plain dicts. Implementations raise
    ResourceNotFoundError (RolloutNotFoundError for rollouts) for absent
    resources and ClusterApiError/ClusterUnavailableError for transport
    failures.
    """

    @abstractmethod
    def get(self, kind: ResourceKind, namespace: str, name: str) -> dict[str, Any]:
        """Fetch one resource."""

    @abstractmethod
    def list(
        self,
        kind: ResourceKind,
        namespace: str | None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        """List resources in a namespace, or cluster-wide when namespace is None."""

    @abstractmethod
    def patch(
        self,
        kind: ResourceKind,
        namespace: str,
        name: str,
        body: dict[str, Any],
        subresource: str | None = None,
    ) -> dict[str, Any]:
        """Apply a JSON merge patch, optionally to a subresource."""

    @abstractmethod
    def update(
        self,
        kind: ResourceKind,
        namespace: str,
        name: str,
        body: dict[str, Any],
    ) -> dict[str, Any]:
        """Replace a resource with ``body``."""


def not_found_error(kind: ResourceKind, name: str, namespace: str) -> ResourceNotFoundError:
    """Build the NotFound exception for ``kind``."""
    if kind is ResourceKind.ROLLOUT:
        return RolloutNotFoundError(name, namespace=namespace)
    return ResourceNotFoundError(kind.kind, name, namespace=namespace)


class KubernetesResourceAccessor(ResourceAccessor):
    """ResourceAccessor backed by the Kubernetes dynamic client.

    Resource discovery results are cached per kind for the lifetime of the
    accessor.

    Attributes:
        dynamic_client: The underlying DynamicClient.
    """

    def __init__(self, dynamic_client: Any) -> None:
        """Initialize the accessor.

        Args:
            dynamic_client: A ``kubernetes.dynamic.DynamicClient`` (or a
                compatible test double).
        """
        self.dynamic_client = dynamic_client
        self._resources: dict[ResourceKind, Any] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: RolloutsConfig) -> KubernetesResourceAccessor:
        """Load cluster credentials and build an accessor.

        Args:
            config: Connection settings.

        Returns:
            A connected accessor.

        Raises:
            ClusterUnavailableError: If no usable cluster configuration exists.
        """
        try:
            if config.kubeconfig_path:
                k8s_config.load_kube_config(
                    config_file=config.kubeconfig_path,
                    context=config.context,
                )
                logger.debug(
                    "loaded_kubeconfig",
                    kubeconfig_path=config.kubeconfig_path,
                    context=config.context,
                )
            else:
                try:
                    k8s_config.load_incluster_config()
                    logger.debug("loaded_incluster_config")
                except k8s_config.ConfigException:
                    k8s_config.load_kube_config(context=config.context)
                    logger.debug("loaded_default_kubeconfig", context=config.context)
            dynamic_client = DynamicClient(k8s_client.ApiClient())
        except (k8s_config.ConfigException, OSError, urllib3.exceptions.HTTPError) as e:
            reason = sanitize_error_message(str(e))
            logger.error("kubernetes_client_init_failed", reason=reason)
            raise ClusterUnavailableError(reason=reason) from e
        except ApiException as e:
            raise ClusterUnavailableError(reason=f"{e.status} {e.reason}") from e
        return cls(dynamic_client)

    # =========================================================================
    # ResourceAccessor Methods
    # =========================================================================

    def get(self, kind: ResourceKind, namespace: str, name: str) -> dict[str, Any]:
        with self._translate_errors(kind, namespace, name):
            result = self._resource(kind).get(name=name, namespace=namespace)
        return _to_dict(result)

    def list(
        self,
        kind: ResourceKind,
        namespace: str | None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        kwargs: dict[str, Any] = {}
        if namespace:
            kwargs["namespace"] = namespace
        if label_selector:
            kwargs["label_selector"] = label_selector
        with self._translate_errors(kind, namespace or "", None):
            result = self._resource(kind).get(**kwargs)
        items = _to_dict(result).get("items") or []
        logger.debug(
            "listed_resources",
            kind=kind.kind,
            namespace=namespace,
            label_selector=label_selector,
            count=len(items),
        )
        return [item for item in items if isinstance(item, dict)]

    def patch(
        self,
        kind: ResourceKind,
        namespace: str,
        name: str,
        body: dict[str, Any],
        subresource: str | None = None,
    ) -> dict[str, Any]:
        with self._translate_errors(kind, namespace, name):
            resource = self._resource(kind)
            if subresource:
                resource = self._subresource(kind, resource, subresource)
            result = resource.patch(
                body=body,
                name=name,
                namespace=namespace,
                content_type=MERGE_PATCH,
            )
        return _to_dict(result)

    def update(
        self,
        kind: ResourceKind,
        namespace: str,
        name: str,
        body: dict[str, Any],
    ) -> dict[str, Any]:
        with self._translate_errors(kind, namespace, name):
            result = self._resource(kind).replace(body=body, name=name, namespace=namespace)
        return _to_dict(result)

    # =========================================================================
    # Private Helpers
    # =========================================================================

    def _resource(self, kind: ResourceKind) -> Any:
        """Return the discovered API resource for ``kind``, cached."""
        if kind in self._resources:
            return self._resources[kind]
        with self._lock:
            if kind not in self._resources:
                self._resources[kind] = self.dynamic_client.resources.get(
                    api_version=kind.api_version,
                    kind=kind.kind,
                )
            return self._resources[kind]

    @staticmethod
    def _subresource(kind: ResourceKind, resource: Any, subresource: str) -> Any:
        """Return a served subresource of ``resource``.

        Raises:
            ClusterApiError: If the cluster does not serve the subresource.
        """
        served = getattr(resource, "subresources", None) or {}
        found = served.get(subresource)
        if found is None:
            msg = f"{kind.kind} does not serve the {subresource} subresource"
            raise ClusterApiError(msg, status=404)
        return found

    @contextmanager
    def _translate_errors(
        self, kind: ResourceKind, namespace: str, name: str | None
    ) -> Iterator[None]:
        """Map client exceptions onto the rollouts exception taxonomy."""
        try:
            yield
        except ApiException as e:
            if e.status == 404 and name is not None:
                raise not_found_error(kind, name, namespace) from e
            reason = sanitize_error_message(str(e.reason or "request failed"))
            raise ClusterApiError(reason, status=e.status) from e
        except DiscoveryNotFoundError as e:
            msg = f"{kind.kind} ({kind.api_version}) is not served by the cluster"
            raise ClusterApiError(msg) from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            pool = getattr(e, "pool", None)
            endpoint = f"{pool.scheme}://{pool.host}:{pool.port}" if pool is not None else ""
            raise ClusterUnavailableError(
                endpoint=endpoint,
                reason=sanitize_error_message(str(e)),
            ) from e


def _to_dict(result: Any) -> dict[str, Any]:
    """Convert a dynamic-client ResourceInstance (or plain dict) to a dict."""
    if isinstance(result, dict):
        return result
    to_dict = getattr(result, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    msg = f"Unexpected resource payload type: {type(result).__name__}"
    raise TypeError(msg)


def current_namespace(config: RolloutsConfig) -> str:
    """Resolve the effective namespace.

    Resolution order: explicit ``config.namespace``, then the namespace of
    the selected (or current) kubeconfig context, then "default".

    Args:
        config: Connection settings.

    Returns:
        Namespace name.
    """
    if config.namespace:
        return config.namespace
    try:
        contexts, active = k8s_config.list_kube_config_contexts(
            config_file=config.kubeconfig_path,
        )
    except (k8s_config.ConfigException, OSError) as e:
        logger.debug("kubeconfig_namespace_unavailable", reason=sanitize_error_message(str(e)))
        return DEFAULT_NAMESPACE

    selected = active
    if config.context:
        selected = next((c for c in contexts or [] if c.get("name") == config.context), None)
    context = (selected or {}).get("context") or {}
    return context.get("namespace") or DEFAULT_NAMESPACE


__all__ = [
    "MERGE_PATCH",
    "STATUS_SUBRESOURCE",
    "KubernetesResourceAccessor",
    "ResourceAccessor",
    "ResourceKind",
    "current_namespace",
    "format_label_selector",
    "not_found_error",
]
