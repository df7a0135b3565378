"""Tests for dependency graph building: validation, cycles and ordering."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from kubedeploy.errors import CycleError, DuplicateDocumentError, UnresolvedDependencyError
from kubedeploy.graph import build_graph
from kubedeploy.models.documents import ResourceDocument

from ..fakes import B1, NS1, R1, SA1, make_scenario_documents


def _cm(name: str, *deps: str) -> ResourceDocument:
    return ResourceDocument(kind="ConfigMap", name=name, namespace="ns", depends_on=frozenset(deps))


def _cm_id(name: str) -> str:
    return f"ConfigMap/ns/{name}"


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


class TestOrdering:
    def test_scenario_waves(self) -> None:
        graph = build_graph(make_scenario_documents())
        assert graph.waves() == [[NS1], [R1, SA1], [B1]]
        assert graph.order == [NS1, R1, SA1, B1]

    def test_order_is_independent_of_submission_order(self) -> None:
        docs = make_scenario_documents()
        assert build_graph(reversed(docs)).order == build_graph(docs).order

    def test_ties_break_by_kind_namespace_name(self) -> None:
        docs = [
            ResourceDocument(kind="Secret", name="a", namespace="ns"),
            ResourceDocument(kind="ConfigMap", name="b", namespace="zz"),
            ResourceDocument(kind="ConfigMap", name="c", namespace="aa"),
            ResourceDocument(kind="ConfigMap", name="a", namespace="aa"),
        ]
        graph = build_graph(docs)
        assert graph.order == [
            "ConfigMap/aa/a",
            "ConfigMap/aa/c",
            "ConfigMap/zz/b",
            "Secret/ns/a",
        ]

    def test_wave_is_longest_dependency_path(self) -> None:
        docs = [_cm("a"), _cm("b", _cm_id("a")), _cm("c", _cm_id("a"), _cm_id("b"))]
        assert build_graph(docs).waves() == [[_cm_id("a")], [_cm_id("b")], [_cm_id("c")]]

    def test_dependents_and_transitive_dependents(self) -> None:
        graph = build_graph(make_scenario_documents())
        assert graph.dependents(NS1) == frozenset({SA1, R1})
        assert graph.transitive_dependents(NS1) == {SA1, R1, B1}
        assert graph.transitive_dependents(B1) == set()
        assert graph.dependencies(B1) == frozenset({SA1, R1})

    def test_counts(self) -> None:
        graph = build_graph(make_scenario_documents())
        assert graph.node_count == 4
        assert graph.edge_count == 4
        assert len(graph) == 4
        assert [doc.id for doc in graph] == graph.order

    def test_empty_batch(self) -> None:
        graph = build_graph([])
        assert graph.order == []
        assert graph.waves() == []


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_unresolved_dependency(self) -> None:
        with pytest.raises(UnresolvedDependencyError) as exc_info:
            build_graph([_cm("a", "Namespace/missing"), _cm("b", "Secret/ns/gone", "Namespace/missing")])
        assert exc_info.value.missing == {
            _cm_id("a"): ["Namespace/missing"],
            _cm_id("b"): ["Namespace/missing", "Secret/ns/gone"],
        }

    def test_external_dependency_is_flagged(self) -> None:
        graph = build_graph([_cm("a", "Namespace/ns")], external=["Namespace/ns", "Namespace/unused"])
        assert graph.external == frozenset({"Namespace/ns"})
        assert graph.dependencies(_cm_id("a")) == frozenset()
        assert graph.external_dependencies(_cm_id("a")) == frozenset({"Namespace/ns"})
        assert graph.waves() == [[_cm_id("a")]]

    def test_duplicate_identity(self) -> None:
        with pytest.raises(DuplicateDocumentError):
            build_graph([_cm("a"), ResourceDocument(kind="ConfigMap", name="a", namespace="ns", body={"data": {}})])

    def test_self_dependency_is_a_cycle(self) -> None:
        with pytest.raises(CycleError) as exc_info:
            build_graph([_cm("a", _cm_id("a"))])
        assert exc_info.value.cycle == [_cm_id("a")]

    def test_reports_shortest_cycle(self) -> None:
        # Long cycle a -> b -> c -> d -> a plus a short one b -> c -> b.
        docs = [
            _cm("a", _cm_id("b")),
            _cm("b", _cm_id("c")),
            _cm("c", _cm_id("d"), _cm_id("b")),
            _cm("d", _cm_id("a")),
        ]
        with pytest.raises(CycleError) as exc_info:
            build_graph(docs)
        assert exc_info.value.cycle == [_cm_id("b"), _cm_id("c")]
        assert "ConfigMap/ns/b -> ConfigMap/ns/c -> ConfigMap/ns/b" in str(exc_info.value)

    def test_cycle_report_is_deterministic(self) -> None:
        docs = [_cm("x", _cm_id("y")), _cm("y", _cm_id("z")), _cm("z", _cm_id("x"))]
        first = pytest.raises(CycleError, build_graph, docs).value.cycle
        second = pytest.raises(CycleError, build_graph, list(reversed(docs))).value.cycle
        assert first == second == [_cm_id("x"), _cm_id("y"), _cm_id("z")]


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@st.composite
def acyclic_batches(draw: st.DrawFn) -> list[ResourceDocument]:
    """Random DAGs: node i may only depend on nodes with a smaller index."""
    size = draw(st.integers(min_value=1, max_value=12))
    docs = []
    for i in range(size):
        deps = draw(st.sets(st.integers(min_value=0, max_value=i - 1), max_size=i)) if i else set()
        docs.append(_cm(f"n{i}", *(_cm_id(f"n{d}") for d in deps)))
    return draw(st.permutations(docs))


@st.composite
def cyclic_batches(draw: st.DrawFn) -> list[ResourceDocument]:
    """A ring of 1-6 nodes plus random extra edges."""
    ring = draw(st.integers(min_value=1, max_value=6))
    docs = []
    for i in range(ring):
        extra = draw(st.sets(st.integers(min_value=0, max_value=ring - 1), max_size=2))
        deps = {(i + 1) % ring, *extra}
        docs.append(_cm(f"r{i}", *(_cm_id(f"r{d}") for d in deps)))
    return draw(st.permutations(docs))


class TestProperties:
    @given(acyclic_batches())
    @settings(max_examples=100, deadline=None)
    def test_order_respects_every_edge(self, docs: list[ResourceDocument]) -> None:
        graph = build_graph(docs)
        position = {node_id: i for i, node_id in enumerate(graph.order)}
        assert sorted(position) == sorted(doc.id for doc in docs)
        for doc in docs:
            for dep in doc.depends_on:
                assert position[dep] < position[doc.id]

    @given(acyclic_batches())
    @settings(max_examples=50, deadline=None)
    def test_order_is_deterministic(self, docs: list[ResourceDocument]) -> None:
        assert build_graph(docs).order == build_graph(sorted(docs, key=lambda d: d.name)).order

    @given(cyclic_batches())
    @settings(max_examples=100, deadline=None)
    def test_cycle_error_names_a_real_cycle(self, docs: list[ResourceDocument]) -> None:
        by_id = {doc.id: doc for doc in docs}
        with pytest.raises(CycleError) as exc_info:
            build_graph(docs)
        cycle = exc_info.value.cycle
        assert cycle
        assert len(set(cycle)) == len(cycle)
        for i, node_id in enumerate(cycle):
            assert cycle[(i + 1) % len(cycle)] in by_id[node_id].depends_on
