"""ClusterAPI adapter backed by kubernetes-asyncio.

Applies objects with server-side apply under a dedicated field manager so
that fields owned by other managers are never removed. Failures are mapped
onto the kubedeploy error hierarchy:

    408, 429, 5xx, connection errors, timeouts  -> TransientError
    404                                         -> NotFoundError
    any other 4xx, unknown kinds                -> RejectedError
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import aiohttp
from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]
from kubernetes_asyncio.dynamic import DynamicClient  # type: ignore[import-untyped]
from kubernetes_asyncio.dynamic.exceptions import ResourceNotFoundError  # type: ignore[import-untyped]

from kubedeploy.cluster.base import ClusterAPI, ResourceStatus
from kubedeploy.errors import ClusterAPIError, NotFoundError, RejectedError, TransientError
from kubedeploy.models.documents import API_VERSIONS
from kubedeploy.models.results import ApplyOutcome
from kubedeploy.observability.logging import get_logger

if TYPE_CHECKING:
    from kubedeploy.models.config import ClusterConfig

_logger = get_logger("cluster.kubernetes")

_TRANSIENT_STATUS = frozenset({408, 429, 500, 502, 503, 504})


def classify_api_exception(exc: ApiException) -> ClusterAPIError:
    """Map an API server error response onto a ClusterAPIError."""
    status = int(exc.status or 0)
    message = f"{status} {exc.reason}: {str(exc.body or '')[:300]}"
    if status == 404:
        return NotFoundError(message, status_code=status)
    if status in _TRANSIENT_STATUS or status == 0:
        return TransientError(message, status_code=status)
    return RejectedError(message, status_code=status)


def _as_dict(obj: Any) -> dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, Mapping):
        return dict(obj)
    to_dict = getattr(obj, "to_dict", None)
    return to_dict() if to_dict is not None else {}


def replica_status(kind: str, obj: Mapping[str, Any]) -> ResourceStatus:
    """Derive desired and observed counts from a live object.

    A workload whose controller has not yet observed the latest generation
    is reported as not converged.
    """
    metadata = obj.get("metadata") or {}
    spec = obj.get("spec") or {}
    status = obj.get("status") or {}
    if kind == "DaemonSet":
        desired = int(status.get("desiredNumberScheduled", 0))
        observed = int(status.get("numberReady", 0))
    elif kind in ("Deployment", "StatefulSet", "ReplicaSet"):
        desired = int(spec.get("replicas", 1))
        observed = int(status.get("readyReplicas", 0))
    else:
        return ResourceStatus(desired=1, observed=1)
    if int(status.get("observedGeneration", 0)) < int(metadata.get("generation", 0)):
        return ResourceStatus(desired=max(desired, 1), observed=0)
    return ResourceStatus(desired=desired, observed=observed)


class KubernetesClusterAPI(ClusterAPI):
    """Server-side apply against a live Kubernetes API server."""

    def __init__(
        self,
        api_client: Any,
        field_manager: str = "kubedeploy",
        force_conflicts: bool = False,
    ) -> None:
        self._api_client = api_client
        self._field_manager = field_manager
        self._force_conflicts = force_conflicts
        self._dynamic: Any = None
        self._dynamic_lock = asyncio.Lock()
        self._api_versions: dict[str, str] = dict(API_VERSIONS)

    @classmethod
    async def connect(cls, config: ClusterConfig) -> KubernetesClusterAPI:
        """Build a client from in-cluster config, falling back to kubeconfig."""
        import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]

        try:
            k8s_config.load_incluster_config()
            _logger.info("k8s_client_configured", source="in-cluster")
        except k8s_config.ConfigException:
            await k8s_config.load_kube_config(context=config.kube_context or None)
            _logger.info("k8s_client_configured", source="kubeconfig", context=config.kube_context or None)
        return cls(
            k8s_client.ApiClient(),
            field_manager=config.field_manager,
            force_conflicts=config.force_conflicts,
        )

    async def _client(self) -> Any:
        async with self._dynamic_lock:
            if self._dynamic is None:
                self._dynamic = await DynamicClient(self._api_client)
            return self._dynamic

    async def _resource(self, kind: str) -> Any:
        dynamic = await self._client()
        try:
            return await dynamic.resources.get(api_version=self._api_versions.get(kind, "v1"), kind=kind)
        except ResourceNotFoundError as exc:
            raise RejectedError(f"Kind {kind} is not served by the cluster: {exc}") from exc

    async def _read(self, kind: str, namespace: str, name: str) -> dict[str, Any]:
        dynamic = await self._client()
        resource = await self._resource(kind)
        obj = await dynamic.get(resource, name=name, namespace=namespace or None)
        return _as_dict(obj)

    async def apply_resource(
        self,
        kind: str,
        namespace: str,
        name: str,
        body: Mapping[str, Any],
    ) -> ApplyOutcome:
        if body.get("apiVersion"):
            self._api_versions[kind] = str(body["apiVersion"])
        try:
            try:
                live = await self._read(kind, namespace, name)
                previous_version = (live.get("metadata") or {}).get("resourceVersion")
            except ApiException as exc:
                if exc.status != 404:
                    raise
                previous_version = None

            dynamic = await self._client()
            resource = await self._resource(kind)
            applied = await dynamic.server_side_apply(
                resource,
                body=dict(body),
                name=name,
                namespace=namespace or None,
                field_manager=self._field_manager,
                force_conflicts=self._force_conflicts,
            )
        except ApiException as exc:
            raise classify_api_exception(exc) from exc
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise TransientError(f"{type(exc).__name__}: {exc}") from exc

        if previous_version is None:
            return ApplyOutcome.CREATED
        new_version = (_as_dict(applied).get("metadata") or {}).get("resourceVersion")
        if new_version == previous_version:
            return ApplyOutcome.UNCHANGED
        return ApplyOutcome.CONFIGURED

    async def get_resource_status(self, kind: str, namespace: str, name: str) -> ResourceStatus:
        try:
            obj = await self._read(kind, namespace, name)
        except ApiException as exc:
            raise classify_api_exception(exc) from exc
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise TransientError(f"{type(exc).__name__}: {exc}") from exc
        return replica_status(kind, obj)

    async def close(self) -> None:
        await self._api_client.close()
