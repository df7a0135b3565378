"""Dependency graph over resource documents.

Builds a validated, deterministically ordered DAG from the ``depends_on``
edges declared on each ResourceDocument.
"""

from kubedeploy.graph.builder import build_graph
from kubedeploy.graph.dependency_graph import DependencyGraph

__all__ = ["DependencyGraph", "build_graph"]
