"""Exception hierarchy for kubedeploy.

Graph errors are fatal and raised before any apply happens. Cluster API
errors are local to a single node; the engine converts them into an
``ErrorKind`` on that node's ApplyResult instead of propagating them.
"""

from __future__ import annotations


class KubeDeployError(Exception):
    """Base class for all kubedeploy errors."""


class ConfigError(KubeDeployError):
    """Raised when KUBEDEPLOY_* configuration is invalid."""


class DocumentError(KubeDeployError):
    """Raised when a resource document fails validation."""


class InvalidTransitionError(KubeDeployError):
    """Raised on an illegal ApplyResult status transition."""

    def __init__(self, node_id: str, current: str, target: str) -> None:
        super().__init__(f"Illegal transition for {node_id}: {current} -> {target}")
        self.node_id = node_id
        self.current = current
        self.target = target


# ---------------------------------------------------------------------------
# Graph build errors
# ---------------------------------------------------------------------------


class GraphError(KubeDeployError):
    """Base class for errors raised while building the dependency graph."""


class CycleError(GraphError):
    """The submitted documents contain a dependency cycle.

    ``cycle`` is the ordered list of ids forming the shortest cycle found;
    each id depends on the next, and the last depends on the first.
    """

    def __init__(self, cycle: list[str]) -> None:
        path = " -> ".join([*cycle, cycle[0]]) if cycle else ""
        super().__init__(f"Dependency cycle detected: {path}")
        self.cycle = cycle


class UnresolvedDependencyError(GraphError):
    """One or more ``depends_on`` references do not resolve."""

    def __init__(self, missing: dict[str, list[str]]) -> None:
        parts = [f"{node} -> {', '.join(deps)}" for node, deps in sorted(missing.items())]
        super().__init__(f"Unresolved dependencies: {'; '.join(parts)}")
        self.missing = missing


class DuplicateDocumentError(GraphError):
    """Two documents in one batch share the same (kind, namespace, name)."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"Duplicate document in batch: {node_id}")
        self.node_id = node_id


# ---------------------------------------------------------------------------
# Cluster API errors
# ---------------------------------------------------------------------------


class ClusterAPIError(KubeDeployError):
    """Base class for errors reported by a ClusterAPI implementation."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientError(ClusterAPIError):
    """Network, timeout or throttling error. Safe to retry."""


class RejectedError(ClusterAPIError):
    """The cluster rejected the request (schema, admission, permission)."""


class NotFoundError(ClusterAPIError):
    """The requested object does not exist."""
