"""In-memory ClusterAPI with declarative apply semantics.

Backs dry runs and tests. Apply merges the submitted body into the stored
object: nested maps are merged key by key, lists and scalars are replaced,
and fields absent from the body are kept. Re-applying identical content is
reported as ``unchanged``.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from kubedeploy.cluster.base import ClusterAPI, ResourceStatus
from kubedeploy.errors import NotFoundError
from kubedeploy.models.documents import WORKLOAD_KINDS, thaw
from kubedeploy.models.results import ApplyOutcome

_Key = tuple[str, str, str]


def merge(live: Mapping[str, Any], applied: Mapping[str, Any]) -> dict[str, Any]:
    """Return *live* with *applied* merged on top, without mutating either."""
    merged: dict[str, Any] = copy.deepcopy(dict(live))
    for key, value in applied.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge(current, value)
        else:
            merged[key] = copy.deepcopy(thaw(value))
    return merged


def _desired_count(kind: str, obj: Mapping[str, Any]) -> int:
    if kind == "DaemonSet":
        return 1
    spec = obj.get("spec") or {}
    return int(spec.get("replicas", 1))


class InMemoryClusterAPI(ClusterAPI):
    """Dict-backed cluster keyed by (kind, namespace, name).

    Workloads converge immediately unless :meth:`set_status` overrides
    their counts.
    """

    def __init__(self) -> None:
        self._objects: dict[_Key, dict[str, Any]] = {}
        self._status_overrides: dict[_Key, ResourceStatus] = {}
        self.generations: dict[_Key, int] = {}

    @property
    def objects(self) -> dict[_Key, dict[str, Any]]:
        return {key: copy.deepcopy(obj) for key, obj in self._objects.items()}

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        obj = self._objects.get((kind, namespace, name))
        return copy.deepcopy(obj) if obj is not None else None

    def put(self, kind: str, namespace: str, name: str, obj: Mapping[str, Any]) -> None:
        """Seed a live object as if another actor had created it."""
        key = (kind, namespace, name)
        self._objects[key] = copy.deepcopy(thaw(obj))
        self.generations[key] = self.generations.get(key, 0) + 1

    def set_status(self, kind: str, namespace: str, name: str, desired: int, observed: int) -> None:
        self._status_overrides[(kind, namespace, name)] = ResourceStatus(desired=desired, observed=observed)

    async def apply_resource(
        self,
        kind: str,
        namespace: str,
        name: str,
        body: Mapping[str, Any],
    ) -> ApplyOutcome:
        key = (kind, namespace, name)
        live = self._objects.get(key)
        if live is None:
            self.put(kind, namespace, name, body)
            return ApplyOutcome.CREATED
        merged = merge(live, body)
        if merged == live:
            return ApplyOutcome.UNCHANGED
        self._objects[key] = merged
        self.generations[key] += 1
        return ApplyOutcome.CONFIGURED

    async def get_resource_status(self, kind: str, namespace: str, name: str) -> ResourceStatus:
        key = (kind, namespace, name)
        obj = self._objects.get(key)
        if obj is None:
            raise NotFoundError(f"{kind} {namespace}/{name} not found", status_code=404)
        if key in self._status_overrides:
            return self._status_overrides[key]
        if kind not in WORKLOAD_KINDS:
            return ResourceStatus(desired=1, observed=1)
        desired = _desired_count(kind, obj)
        return ResourceStatus(desired=desired, observed=desired)
