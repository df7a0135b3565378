"""Builder producing validated ResourceDocument values.

Document bodies are assembled here, checked, and frozen before they ever
reach the orchestrator::

    ns = DocumentBuilder("Namespace", "monitoring").build()
    sa = (
        DocumentBuilder("ServiceAccount", "agent")
        .namespace("monitoring")
        .depends_on(ns)
        .build()
    )
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping
from typing import Any

from kubedeploy.errors import DocumentError
from kubedeploy.models.documents import API_VERSIONS, ResourceDocument

_RE_KIND = re.compile(r"^[A-Z][A-Za-z0-9]*$")
_RE_NAME = re.compile(r"^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$")
_RE_NAMESPACE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")

CLUSTER_SCOPED_KINDS: frozenset[str] = frozenset(
    {
        "Namespace",
        "ClusterRole",
        "ClusterRoleBinding",
        "PersistentVolume",
        "StorageClass",
        "CustomResourceDefinition",
        "PriorityClass",
    }
)

# Top-level keys owned by the builder itself.
_RESERVED_FIELDS = frozenset({"apiVersion", "kind", "metadata"})


class DocumentBuilder:
    """Fluent builder for a single :class:`ResourceDocument`."""

    def __init__(self, kind: str, name: str) -> None:
        self._kind = kind
        self._name = name
        self._namespace = ""
        self._api_version = API_VERSIONS.get(kind, "")
        self._labels: dict[str, str] = {}
        self._annotations: dict[str, str] = {}
        self._fields: dict[str, Any] = {}
        self._depends_on: set[str] = set()

    @classmethod
    def from_manifest(cls, manifest: Mapping[str, Any]) -> DocumentBuilder:
        """Start a builder from an existing manifest dict.

        Raises:
            DocumentError: if kind or metadata.name are missing.
        """
        kind = manifest.get("kind")
        metadata = manifest.get("metadata") or {}
        name = metadata.get("name")
        if not kind or not name:
            raise DocumentError("Manifest must define kind and metadata.name")
        builder = cls(str(kind), str(name))
        if manifest.get("apiVersion"):
            builder.api_version(str(manifest["apiVersion"]))
        if metadata.get("namespace"):
            builder.namespace(str(metadata["namespace"]))
        builder.labels(**metadata.get("labels", {}))
        builder.annotations(**metadata.get("annotations", {}))
        for key, value in manifest.items():
            if key not in _RESERVED_FIELDS:
                builder.field(key, value)
        return builder

    def namespace(self, namespace: str) -> DocumentBuilder:
        self._namespace = namespace
        return self

    def api_version(self, api_version: str) -> DocumentBuilder:
        self._api_version = api_version
        return self

    def labels(self, **labels: str) -> DocumentBuilder:
        self._labels.update(labels)
        return self

    def annotations(self, **annotations: str) -> DocumentBuilder:
        self._annotations.update(annotations)
        return self

    def field(self, key: str, value: Any) -> DocumentBuilder:
        """Set a top-level body field such as ``spec``, ``data`` or ``rules``."""
        if key in _RESERVED_FIELDS:
            raise DocumentError(f"Field {key!r} is managed by the builder")
        self._fields[key] = copy.deepcopy(value)
        return self

    def spec(self, spec: Mapping[str, Any]) -> DocumentBuilder:
        return self.field("spec", dict(spec))

    def data(self, data: Mapping[str, str]) -> DocumentBuilder:
        return self.field("data", dict(data))

    def depends_on(self, *deps: ResourceDocument | str) -> DocumentBuilder:
        """Declare dependencies by document or by id."""
        for dep in deps:
            self._depends_on.add(dep.id if isinstance(dep, ResourceDocument) else dep)
        return self

    def _validate(self) -> None:
        if not _RE_KIND.match(self._kind):
            raise DocumentError(f"Invalid kind: {self._kind!r}")
        if not self._name or len(self._name) > 253 or not _RE_NAME.match(self._name):
            raise DocumentError(f"Invalid name for {self._kind}: {self._name!r}")
        if self._kind in CLUSTER_SCOPED_KINDS:
            if self._namespace:
                raise DocumentError(f"{self._kind} is cluster-scoped and cannot set a namespace")
        elif self._kind in API_VERSIONS and not self._namespace:
            raise DocumentError(f"{self._kind}/{self._name} requires a namespace")
        if self._namespace and (len(self._namespace) > 63 or not _RE_NAMESPACE.match(self._namespace)):
            raise DocumentError(f"Invalid namespace: {self._namespace!r}")
        if not self._api_version:
            raise DocumentError(f"No apiVersion known for kind {self._kind!r}; set one explicitly")

    def build(self) -> ResourceDocument:
        """Validate and return an immutable document.

        Raises:
            DocumentError: on an invalid kind, name, namespace or apiVersion.
        """
        self._validate()
        metadata: dict[str, Any] = {"name": self._name}
        if self._namespace:
            metadata["namespace"] = self._namespace
        if self._labels:
            metadata["labels"] = dict(self._labels)
        if self._annotations:
            metadata["annotations"] = dict(self._annotations)
        body = {
            "apiVersion": self._api_version,
            "kind": self._kind,
            "metadata": metadata,
            **self._fields,
        }
        return ResourceDocument(
            kind=self._kind,
            name=self._name,
            namespace=self._namespace,
            body=body,
            depends_on=frozenset(self._depends_on),
        )
