"""Test doubles and sample documents shared by the unit and integration suites.

``ScriptedCluster`` is an in-memory cluster that records every call and can
replay scripted failures and delays; ``make_scenario_documents`` builds the
four-document namespace scenario used throughout.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

from kubedeploy.builder import DocumentBuilder
from kubedeploy.cluster.memory import InMemoryClusterAPI
from kubedeploy.models.documents import ResourceDocument, document_id
from kubedeploy.models.results import ApplyOutcome

NS1 = "Namespace/ns1"
SA1 = "ServiceAccount/ns1/sa1"
R1 = "Role/ns1/r1"
B1 = "RoleBinding/ns1/b1"


class ScriptedCluster(InMemoryClusterAPI):
    """InMemoryClusterAPI that records calls and replays scripted failures."""

    def __init__(self) -> None:
        super().__init__()
        self.apply_calls: list[str] = []
        self.status_calls: list[str] = []
        self.existing_at_apply: dict[str, set[str]] = {}
        self._apply_errors: dict[str, list[Exception]] = {}
        self._apply_delays: dict[str, float] = {}
        self.in_flight = 0
        self.max_in_flight = 0

    def fail_apply(self, node_id: str, error: Exception, times: int = 1) -> None:
        """Raise *error* on the next *times* apply calls for *node_id*."""
        self._apply_errors.setdefault(node_id, []).extend([error] * times)

    def delay_apply(self, node_id: str, seconds: float) -> None:
        self._apply_delays[node_id] = seconds

    def calls_for(self, node_id: str) -> int:
        return self.apply_calls.count(node_id)

    async def apply_resource(
        self,
        kind: str,
        namespace: str,
        name: str,
        body: Mapping[str, Any],
    ) -> ApplyOutcome:
        node_id = document_id(kind, namespace, name)
        self.apply_calls.append(node_id)
        self.existing_at_apply[node_id] = {document_id(*key) for key in self.objects}
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self._apply_delays.get(node_id, 0))
            errors = self._apply_errors.get(node_id)
            if errors:
                raise errors.pop(0)
            return await super().apply_resource(kind, namespace, name, body)
        finally:
            self.in_flight -= 1

    async def get_resource_status(self, kind: str, namespace: str, name: str):  # type: ignore[no-untyped-def]
        self.status_calls.append(document_id(kind, namespace, name))
        return await super().get_resource_status(kind, namespace, name)


def make_scenario_documents() -> list[ResourceDocument]:
    """Namespace ns1, ServiceAccount sa1 and Role r1 in it, RoleBinding b1 on both."""
    ns1 = DocumentBuilder("Namespace", "ns1").build()
    sa1 = DocumentBuilder("ServiceAccount", "sa1").namespace("ns1").depends_on(ns1).build()
    r1 = (
        DocumentBuilder("Role", "r1")
        .namespace("ns1")
        .field("rules", [{"apiGroups": [""], "resources": ["pods"], "verbs": ["get", "list"]}])
        .depends_on(ns1)
        .build()
    )
    b1 = (
        DocumentBuilder("RoleBinding", "b1")
        .namespace("ns1")
        .field("subjects", [{"kind": "ServiceAccount", "name": "sa1", "namespace": "ns1"}])
        .field("roleRef", {"kind": "Role", "name": "r1", "apiGroup": "rbac.authorization.k8s.io"})
        .depends_on(sa1, r1)
        .build()
    )
    return [ns1, sa1, r1, b1]
