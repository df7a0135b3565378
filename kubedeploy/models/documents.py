"""Immutable resource documents submitted to the orchestrator."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

# Workload kinds whose readiness depends on observed vs desired replica counts.
WORKLOAD_KINDS: frozenset[str] = frozenset({"Deployment", "DaemonSet", "StatefulSet", "ReplicaSet"})

# apiVersion used when a document body does not carry one.
API_VERSIONS: dict[str, str] = {
    "Namespace": "v1",
    "ServiceAccount": "v1",
    "ConfigMap": "v1",
    "Secret": "v1",
    "Service": "v1",
    "PersistentVolumeClaim": "v1",
    "ResourceQuota": "v1",
    "Role": "rbac.authorization.k8s.io/v1",
    "RoleBinding": "rbac.authorization.k8s.io/v1",
    "ClusterRole": "rbac.authorization.k8s.io/v1",
    "ClusterRoleBinding": "rbac.authorization.k8s.io/v1",
    "Deployment": "apps/v1",
    "DaemonSet": "apps/v1",
    "StatefulSet": "apps/v1",
    "ReplicaSet": "apps/v1",
    "Job": "batch/v1",
    "CronJob": "batch/v1",
}


def document_id(kind: str, namespace: str, name: str) -> str:
    """Return the stable id for a (kind, namespace, name) identity.

    Cluster-scoped objects (empty namespace) use ``Kind/name``; namespaced
    objects use ``Kind/namespace/name``.
    """
    if namespace:
        return f"{kind}/{namespace}/{name}"
    return f"{kind}/{name}"


def freeze(value: Any) -> Any:
    """Return a read-only deep copy of a JSON-like value."""
    if isinstance(value, Mapping):
        return MappingProxyType({str(k): freeze(v) for k, v in value.items()})
    if isinstance(value, list | tuple):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of :func:`freeze`: return plain, mutable dicts and lists."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple | list):
        return [thaw(v) for v in value]
    return value


def _content_hash(body: Mapping[str, Any]) -> str:
    canonical = json.dumps(thaw(body), sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


@dataclass(frozen=True)
class ResourceDocument:
    """One declarative description of a cluster-managed object.

    Identity is ``(kind, namespace, name)``. ``body`` is frozen on creation
    and only thawed by :meth:`to_manifest` when handed to a cluster client.
    Equality covers the identity, the content hash and the dependency set.
    """

    kind: str
    name: str
    namespace: str = ""
    body: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)
    depends_on: frozenset[str] = frozenset()
    content_hash: str = field(init=False, default="")

    def __post_init__(self) -> None:
        object.__setattr__(self, "body", freeze(self.body))
        object.__setattr__(self, "depends_on", frozenset(self.depends_on))
        object.__setattr__(self, "content_hash", _content_hash(self.body))

    @property
    def id(self) -> str:
        return document_id(self.kind, self.namespace, self.name)

    @property
    def key(self) -> tuple[str, str, str]:
        """Return the unique key for this document."""
        return (self.kind, self.namespace, self.name)

    @property
    def api_version(self) -> str:
        return str(self.body.get("apiVersion") or API_VERSIONS.get(self.kind, "v1"))

    @property
    def is_workload(self) -> bool:
        return self.kind in WORKLOAD_KINDS

    def to_manifest(self) -> dict[str, Any]:
        """Return a mutable manifest with apiVersion, kind and metadata filled in."""
        manifest: dict[str, Any] = thaw(self.body)
        manifest["apiVersion"] = self.api_version
        manifest["kind"] = self.kind
        metadata = manifest.setdefault("metadata", {})
        metadata["name"] = self.name
        if self.namespace:
            metadata["namespace"] = self.namespace
        return manifest
