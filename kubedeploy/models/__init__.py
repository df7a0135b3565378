"""Core data structures for kubedeploy."""

from kubedeploy.models.config import KubeDeployConfig
from kubedeploy.models.documents import (
    API_VERSIONS,
    WORKLOAD_KINDS,
    ResourceDocument,
    document_id,
)
from kubedeploy.models.results import (
    ApplyOutcome,
    ApplyResult,
    ApplyStatus,
    DeploymentReport,
    ErrorKind,
    RunStatus,
)

__all__ = [
    "API_VERSIONS",
    "ApplyOutcome",
    "ApplyResult",
    "ApplyStatus",
    "DeploymentReport",
    "ErrorKind",
    "KubeDeployConfig",
    "ResourceDocument",
    "RunStatus",
    "WORKLOAD_KINDS",
    "document_id",
]
