"""Cluster API clients.

Submodules:
    base        -- ClusterAPI contract and ResourceStatus.
    memory      -- In-memory cluster with declarative apply semantics.
    kubernetes  -- kubernetes-asyncio server-side apply adapter (imported lazily).
"""

from kubedeploy.cluster.base import ClusterAPI, ResourceStatus
from kubedeploy.cluster.memory import InMemoryClusterAPI

__all__ = ["ClusterAPI", "InMemoryClusterAPI", "ResourceStatus"]
