"""Validated dependency graph over resource documents."""

from __future__ import annotations

from collections.abc import Iterator

from kubedeploy.models.documents import ResourceDocument


class DependencyGraph:
    """Directed acyclic graph over document ids.

    Built only by :func:`kubedeploy.graph.build_graph`, which guarantees the
    graph is acyclic and every in-batch edge resolves. Edges point from a
    document to the documents it depends on. Ids in ``external`` were
    declared pre-existing by the caller and are not nodes of the graph.
    """

    def __init__(
        self,
        documents: dict[str, ResourceDocument],
        waves: list[list[str]],
        external: frozenset[str],
    ) -> None:
        self._documents = documents
        self._waves = waves
        self.external = external
        self._dependencies: dict[str, frozenset[str]] = {
            node_id: frozenset(d for d in doc.depends_on if d in documents)
            for node_id, doc in documents.items()
        }
        dependents: dict[str, set[str]] = {node_id: set() for node_id in documents}
        for node_id, deps in self._dependencies.items():
            for dep in deps:
                dependents[dep].add(node_id)
        self._dependents = {k: frozenset(v) for k, v in dependents.items()}
        self._order = [node_id for wave in waves for node_id in wave]

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._documents

    def __iter__(self) -> Iterator[ResourceDocument]:
        return (self._documents[node_id] for node_id in self._order)

    def __len__(self) -> int:
        return len(self._documents)

    @property
    def node_count(self) -> int:
        return len(self._documents)

    @property
    def edge_count(self) -> int:
        return sum(len(deps) for deps in self._dependencies.values())

    @property
    def order(self) -> list[str]:
        """Deterministic topological order: wave by wave, ties by (kind, namespace, name)."""
        return list(self._order)

    def waves(self) -> list[list[str]]:
        """Return groups of ids that become eligible together."""
        return [list(wave) for wave in self._waves]

    def document(self, node_id: str) -> ResourceDocument:
        return self._documents[node_id]

    def dependencies(self, node_id: str) -> frozenset[str]:
        """In-batch dependencies of *node_id* (external ids excluded)."""
        return self._dependencies[node_id]

    def external_dependencies(self, node_id: str) -> frozenset[str]:
        return self._documents[node_id].depends_on - self._dependencies[node_id]

    def dependents(self, node_id: str) -> frozenset[str]:
        """Documents that depend directly on *node_id*."""
        return self._dependents[node_id]

    def transitive_dependents(self, node_id: str) -> set[str]:
        """Every document that depends on *node_id*, directly or not."""
        seen: set[str] = set()
        stack = list(self._dependents[node_id])
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._dependents[current])
        return seen
