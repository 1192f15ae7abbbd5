"""rolloutctl: client-side control and observability for progressive-delivery rollouts.

This package provides:
- RolloutsService: status, watch, promote, pause/resume, abort/retry,
  restart, undo, set-image, history and analysis operations
- ResourceAccessor: the cluster access interface, with a Kubernetes
  dynamic-client implementation
- Pydantic records (StatusRecord, RevisionInfo, ...) and configuration
  models (RolloutsConfig, WatchOptions)
- The RolloutsError exception hierarchy

Example:
    >>> from rolloutctl import KubernetesResourceAccessor, RolloutsConfig, RolloutsService
    >>> config = RolloutsConfig(namespace="shop")
    >>> service = RolloutsService(KubernetesResourceAccessor.from_config(config))
    >>> service.get_status("shop", "checkout").status
    'Healthy'
"""

from __future__ import annotations

__version__ = "0.1.0"

from rolloutctl.accessor import (
    KubernetesResourceAccessor,
    ResourceAccessor,
    ResourceKind,
)
from rolloutctl.config import OutputFormat, RolloutsConfig, WatchOptions
from rolloutctl.errors import (
    ClusterApiError,
    ClusterUnavailableError,
    ContainerNotFoundError,
    InvalidRolloutStateError,
    ResourceNotFoundError,
    RolloutDegradedError,
    RolloutNotFoundError,
    RolloutsError,
    SubresourceUnsupportedError,
    WatchCancelledError,
    WatchTimeoutError,
)
from rolloutctl.models import (
    AnalysisListing,
    AnalysisRunDetail,
    AnalysisRunSummary,
    AnalysisTemplateSummary,
    OperationResult,
    PromotionPlan,
    RevisionInfo,
    RolloutDetail,
    RolloutListItem,
    StatusRecord,
)
from rolloutctl.service import RolloutsService

__all__ = [
    "__version__",
    # Service
    "RolloutsService",
    # Access
    "KubernetesResourceAccessor",
    "ResourceAccessor",
    "ResourceKind",
    # Config
    "OutputFormat",
    "RolloutsConfig",
    "WatchOptions",
    # Models
    "AnalysisListing",
    "AnalysisRunDetail",
    "AnalysisRunSummary",
    "AnalysisTemplateSummary",
    "OperationResult",
    "PromotionPlan",
    "RevisionInfo",
    "RolloutDetail",
    "RolloutListItem",
    "StatusRecord",
    # Errors
    "ClusterApiError",
    "ClusterUnavailableError",
    "ContainerNotFoundError",
    "InvalidRolloutStateError",
    "ResourceNotFoundError",
    "RolloutDegradedError",
    "RolloutNotFoundError",
    "RolloutsError",
    "SubresourceUnsupportedError",
    "WatchCancelledError",
    "WatchTimeoutError",
]
