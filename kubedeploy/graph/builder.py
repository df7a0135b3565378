"""Dependency graph construction and validation.

Checks run in this order, each one fatal:

1. duplicate identities within the batch
2. ``depends_on`` references that are neither in the batch nor external
3. dependency cycles (the shortest cycle is reported)
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable

from kubedeploy.errors import CycleError, DuplicateDocumentError, UnresolvedDependencyError
from kubedeploy.graph.dependency_graph import DependencyGraph
from kubedeploy.models.documents import ResourceDocument
from kubedeploy.observability.logging import get_logger

_logger = get_logger("graph.builder")


def build_graph(
    documents: Iterable[ResourceDocument],
    external: Iterable[str] = (),
) -> DependencyGraph:
    """Validate *documents* and return a topologically ordered graph.

    Args:
        documents: The submission batch.
        external:  Ids of objects known to exist outside this batch. A
                   dependency on one of them is accepted without further
                   validation.

    Raises:
        DuplicateDocumentError: two documents share (kind, namespace, name).
        UnresolvedDependencyError: a dependency is neither in the batch nor external.
        CycleError: the dependencies form a cycle.
    """
    by_id: dict[str, ResourceDocument] = {}
    for doc in documents:
        if doc.id in by_id:
            raise DuplicateDocumentError(doc.id)
        by_id[doc.id] = doc
    external_ids = frozenset(external) - by_id.keys()

    missing: dict[str, list[str]] = {}
    for node_id, doc in by_id.items():
        unresolved = sorted(d for d in doc.depends_on if d not in by_id and d not in external_ids)
        if unresolved:
            missing[node_id] = unresolved
    if missing:
        raise UnresolvedDependencyError(missing)

    edges = {
        node_id: sorted((d for d in doc.depends_on if d in by_id), key=lambda d: by_id[d].key)
        for node_id, doc in by_id.items()
    }

    if _has_cycle(by_id, edges):
        cycle = _shortest_cycle(by_id, edges)
        _logger.warning("dependency_cycle_detected", cycle=cycle)
        raise CycleError(cycle)

    waves = _compute_waves(by_id, edges)
    used_external = sorted({d for doc in by_id.values() for d in doc.depends_on if d in external_ids})
    if used_external:
        _logger.info("external_dependencies_flagged", external=used_external)
    _logger.debug("graph_built", nodes=len(by_id), waves=len(waves))
    return DependencyGraph(by_id, waves, frozenset(used_external))


def _sorted_ids(by_id: dict[str, ResourceDocument]) -> list[str]:
    return sorted(by_id, key=lambda node_id: by_id[node_id].key)


def _has_cycle(by_id: dict[str, ResourceDocument], edges: dict[str, list[str]]) -> bool:
    """Iterative depth-first search with white/grey/black colouring."""
    white, grey, black = 0, 1, 2
    colour = dict.fromkeys(by_id, white)
    for root in _sorted_ids(by_id):
        if colour[root] != white:
            continue
        colour[root] = grey
        stack: list[tuple[str, int]] = [(root, 0)]
        while stack:
            node_id, index = stack[-1]
            deps = edges[node_id]
            if index == len(deps):
                colour[node_id] = black
                stack.pop()
                continue
            stack[-1] = (node_id, index + 1)
            dep = deps[index]
            if colour[dep] == grey:
                return True
            if colour[dep] == white:
                colour[dep] = grey
                stack.append((dep, 0))
    return False


def _shortest_cycle(by_id: dict[str, ResourceDocument], edges: dict[str, list[str]]) -> list[str]:
    """Return the shortest cycle, ties broken by the sort key of its start node."""
    best: list[str] = []
    for start in _sorted_ids(by_id):
        parent: dict[str, str] = {}
        queue: deque[str] = deque([start])
        found = False
        while queue and not found:
            current = queue.popleft()
            for dep in edges[current]:
                if dep == start:
                    path = [current]
                    while path[-1] != start:
                        path.append(parent[path[-1]])
                    cycle = list(reversed(path))
                    if not best or len(cycle) < len(best):
                        best = cycle
                    found = True
                    break
                if dep not in parent:
                    parent[dep] = current
                    queue.append(dep)
    return best


def _compute_waves(by_id: dict[str, ResourceDocument], edges: dict[str, list[str]]) -> list[list[str]]:
    """Assign each node to wave 1 + max(wave of dependencies)."""
    level: dict[str, int] = {}

    def _level(node_id: str) -> int:
        # Acyclic is already guaranteed; iterate to avoid deep recursion.
        stack = [node_id]
        while stack:
            current = stack[-1]
            pending = [d for d in edges[current] if d not in level]
            if pending:
                stack.extend(pending)
                continue
            stack.pop()
            level[current] = 1 + max((level[d] for d in edges[current]), default=-1)
        return level[node_id]

    for node_id in _sorted_ids(by_id):
        _level(node_id)

    waves: list[list[str]] = [[] for _ in range(max(level.values(), default=-1) + 1)]
    for node_id in _sorted_ids(by_id):
        waves[level[node_id]].append(node_id)
    return waves
