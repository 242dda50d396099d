"""Tests for layout.layering and layout.dummies: layers, constraints, long-edge dummies."""

from __future__ import annotations

from collections import Counter

import pytest

from rankgraph.config import LayoutOptions
from rankgraph.ir.graph import Graph
from rankgraph.layout.builder import build_unit_graph, orient_ports
from rankgraph.layout.context import LayoutContext
from rankgraph.layout.cycles import remove_cycles
from rankgraph.layout.dummies import insert_dummy_nodes
from rankgraph.layout.layering import assign_layers, longest_path_layers, normalize_layers
from rankgraph.layout.types import DUMMY_PREFIX

# ─── Helpers ──────────────────────────────────────────────────────────────────


def make_graph(*edges: tuple[str, str], nodes: tuple[str, ...] = (), options: dict | None = None) -> Graph:
    g = Graph()
    seen: list[str] = list(nodes)
    for src, tgt in edges:
        for n in (src, tgt):
            if n not in seen:
                seen.append(n)
    for n in seen:
        g.add_node(n, 40, 20, options=dict((options or {}).get(n, {})))
    for src, tgt in edges:
        g.add_edge(src, tgt)
    return g


def layered(graph: Graph, **raw):
    """Run cycle breaking and layering on the root unit; returns (dag, layers, options)."""
    options = LayoutOptions.from_mapping(raw)
    context = LayoutContext(graph, options)
    built = build_unit_graph(context, context.root_unit)
    dag, _ = remove_cycles(built.graph)
    orient_ports(dag)
    return dag, assign_layers(dag, options), options


# ─── Layer assignment ─────────────────────────────────────────────────────────


class TestLongestPath:
    def test_chain(self):
        _, layers, _ = layered(make_graph(("a", "b"), ("b", "c")))
        assert layers == {"a": 0, "b": 1, "c": 2}

    def test_diamond(self):
        _, layers, _ = layered(make_graph(("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")))
        assert layers == {"a": 0, "b": 1, "c": 1, "d": 2}

    def test_two_cycle(self):
        _, layers, _ = layered(make_graph(("a", "b"), ("b", "a")))
        assert layers == {"a": 0, "b": 1}

    def test_edges_point_downward(self):
        edges = [("a", "b"), ("b", "c"), ("c", "a"), ("a", "d"), ("d", "c"), ("c", "e")]
        dag, layers, _ = layered(make_graph(*edges))
        for src, tgt in dag.edges():
            assert layers[src] < layers[tgt]

    def test_isolated_node(self):
        _, layers, _ = layered(make_graph(("a", "b"), nodes=("z",)))
        assert layers["z"] == 0

    def test_layer_written_to_working_nodes(self):
        dag, layers, _ = layered(make_graph(("a", "b")))
        assert dag.nodes["b"]["data"].layer == 1

    def test_longest_path_direct(self):
        dag, _, _ = layered(make_graph(("a", "b"), ("a", "c"), ("c", "b")))
        assert longest_path_layers(dag) == {"a": 0, "c": 1, "b": 2}


class TestLayerConstraints:
    def test_first_goes_to_top(self):
        g = make_graph(("a", "b"), nodes=("f",), options={"f": {"layerConstraint": "FIRST"}})
        _, layers, _ = layered(g)
        assert layers == {"f": 0, "a": 1, "b": 2}

    def test_last_goes_below_everything(self):
        g = make_graph(("a", "b"), nodes=("z",), options={"z": {"layerConstraint": "LAST"}})
        _, layers, _ = layered(g)
        assert layers["z"] == 2

    def test_normalize_closes_gaps(self):
        assert normalize_layers({"a": 0, "b": 3, "c": 5}) == {"a": 0, "b": 1, "c": 2}


class TestCoffmanGraham:
    def test_layer_width_is_bounded(self):
        g = make_graph(nodes=("a", "b", "c", "d", "e"))
        _, layers, _ = layered(
            g,
            **{
                "layering.strategy": "COFFMAN_GRAHAM",
                "layering.coffmanGraham.layerBound": 2,
                "separateConnectedComponents": False,
            },
        )
        widths = Counter(layers.values())
        assert max(widths.values()) <= 2
        assert sorted(widths) == [0, 1, 2]

    def test_respects_edges(self):
        edges = [("a", "b"), ("a", "c"), ("a", "d"), ("b", "e"), ("c", "e"), ("d", "e")]
        dag, layers, _ = layered(
            make_graph(*edges), **{"layering.strategy": "COFFMAN_GRAHAM", "layering.coffmanGraham.layerBound": 2}
        )
        for src, tgt in dag.edges():
            assert layers[src] < layers[tgt]
        assert max(Counter(layers.values()).values()) <= 2


# ─── Dummy nodes ──────────────────────────────────────────────────────────────


class TestDummyNodes:
    def test_long_edge_split(self):
        dag, layers, _ = layered(make_graph(("a", "b"), ("b", "c"), ("a", "c")))
        aug = insert_dummy_nodes(dag, layers)
        dummies = [n for n in aug.graph.nodes if n.startswith(DUMMY_PREFIX)]
        assert dummies == [f"{DUMMY_PREFIX}2_0"]
        assert aug.layers[dummies[0]] == 1
        assert aug.long_edges["e2"].dummy_ids == dummies
        for src, tgt in aug.graph.edges():
            assert aug.layers[tgt] - aug.layers[src] == 1

    def test_dummies_sort_after_real_nodes(self):
        dag, layers, _ = layered(make_graph(("a", "b"), ("b", "c"), ("a", "c")))
        aug = insert_dummy_nodes(dag, layers)
        dummy = aug.node(f"{DUMMY_PREFIX}2_0")
        assert dummy.is_dummy
        assert dummy.index > max(aug.node(n).index for n in ("a", "b", "c"))

    def test_short_edges_untouched(self):
        dag, layers, _ = layered(make_graph(("a", "b")))
        aug = insert_dummy_nodes(dag, layers)
        assert list(aug.graph.nodes) == ["a", "b"]
        assert aug.layer_count == 2

    @pytest.mark.parametrize("concentrate,expected", [(False, 3), (True, 1)])
    def test_parallel_edges_bundle(self, concentrate, expected):
        g = make_graph(("a", "b"), ("a", "b"), ("a", "b"))
        dag, layers, _ = layered(g)
        aug = insert_dummy_nodes(dag, layers, concentrate)
        assert aug.graph.number_of_edges() == expected
        if concentrate:
            assert [e.id for e in aug.bundles["e0"]] == ["e1", "e2"]
            assert len(aug.node("a").ports) == 1
