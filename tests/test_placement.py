"""Tests for layout.placement and layout.overlap: coordinates and overlap removal."""

from __future__ import annotations

import pytest

from rankgraph import Graph, layout
from rankgraph.config import LayoutOptions
from rankgraph.layout.builder import build_unit_graph, orient_ports
from rankgraph.layout.context import LayoutContext
from rankgraph.layout.crossings import initial_ordering
from rankgraph.layout.cycles import remove_cycles
from rankgraph.layout.dummies import insert_dummy_nodes
from rankgraph.layout.layering import assign_layers
from rankgraph.layout.overlap import Box, has_overlaps, remove_overlaps
from rankgraph.layout.placement import assign_x, assign_y, isotonic_regression, node_gap, solve_layer
from rankgraph.layout.types import LNode, NodeKind
from rankgraph.types import OverlapMode

# ─── Helpers ──────────────────────────────────────────────────────────────────


def augment(graph: Graph, **raw):
    options = LayoutOptions.from_mapping(raw)
    context = LayoutContext(graph, options)
    built = build_unit_graph(context, context.root_unit)
    dag, _ = remove_cycles(built.graph)
    orient_ports(dag)
    return insert_dummy_nodes(dag, assign_layers(dag, options)), options


def lnode(node_id: str, index: int, width: float = 40, dummy: bool = False) -> LNode:
    kind = NodeKind.LONG_EDGE if dummy else NodeKind.NORMAL
    return LNode(id=node_id, index=index, width=width, height=20, kind=kind)


# ─── Isotonic regression ──────────────────────────────────────────────────────


class TestIsotonicRegression:
    def test_pools_violators(self):
        assert isotonic_regression([3, 1, 2], [1, 1, 1]) == [2, 2, 2]

    def test_weighted_mean(self):
        assert isotonic_regression([4, 0], [3, 1]) == [3, 3]

    def test_sorted_input_unchanged(self):
        assert isotonic_regression([1, 2, 5], [1, 1, 1]) == [1, 2, 5]

    def test_empty(self):
        assert isotonic_regression([], []) == []


class TestSolveLayer:
    def test_gap_respected(self):
        a, b = lnode("a", 0), lnode("b", 1)
        solve_layer([a, b], [0.0, 0.0], [1.0, 1.0], LayoutOptions())
        assert a.x == pytest.approx(-30.0)
        assert b.x - (a.x + a.width) == pytest.approx(20.0)

    def test_free_targets_are_met(self):
        a, b = lnode("a", 0), lnode("b", 1)
        solve_layer([a, b], [0.0, 200.0], [1.0, 1.0], LayoutOptions())
        assert (a.x, b.x) == (0.0, 200.0)

    def test_node_gap_kinds(self):
        options = LayoutOptions()
        real, dummy = lnode("r", 0), lnode("d", 1, width=0, dummy=True)
        assert node_gap(real, real, options) == options.spacing_node_node
        assert node_gap(dummy, dummy, options) == options.spacing_edge_edge
        assert node_gap(real, dummy, options) == max(options.spacing_edge_node, options.spacing_node_node / 2)


# ─── Coordinates ──────────────────────────────────────────────────────────────


class TestAssignCoordinates:
    def _graph(self, heights: dict[str, float] | None = None) -> Graph:
        g = Graph()
        for n in ("a", "b", "c"):
            g.add_node(n, 40, (heights or {}).get(n, 20))
        g.add_edge("a", "c")
        g.add_edge("b", "c")
        return g

    def test_child_centered_under_parents(self):
        aug, options = augment(self._graph())
        assign_x(aug, initial_ordering(aug), options)
        a, b, c = (aug.node(n) for n in ("a", "b", "c"))
        assert a.x == 0.0
        assert b.x == 60.0
        assert c.x == pytest.approx(30.0)

    def test_layers_stack_with_gap(self):
        aug, options = augment(self._graph({"c": 40}))
        ordering = initial_ordering(aug)
        geometry = assign_y(aug, ordering, options, tracks=[0], label_space=[0.0])
        assert geometry.tops == [0.0, 40.0]
        assert geometry.heights == [20.0, 40.0]
        assert aug.node("c").y == 40.0

    def test_smaller_node_centered_in_layer(self):
        g = self._graph({"b": 10})
        aug, options = augment(g)
        assign_y(aug, initial_ordering(aug), options, tracks=[0], label_space=[0.0])
        assert aug.node("b").y == 5.0

    def test_tracks_widen_the_channel(self):
        aug, options = augment(self._graph())
        geometry = assign_y(aug, initial_ordering(aug), options, tracks=[4], label_space=[3.0])
        assert geometry.gap(0) == (20.0, 20.0 + 5 * options.spacing_edge_edge + 3.0)

    def test_same_layer_nodes_keep_spacing(self):
        g = Graph()
        for n in ("a", "b", "c", "d"):
            g.add_node(n, 40, 20)
        for src, tgt in (("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")):
            g.add_edge(src, tgt)
        layout(g)
        b, c = g.node("b"), g.node("c")
        left, right = sorted((b, c), key=lambda n: n.x)
        assert right.x - (left.x + left.width) >= 20.0 - 1e-6


# ─── Overlap removal ──────────────────────────────────────────────────────────


class TestOverlapRemoval:
    def test_coincident_boxes_pushed_apart(self):
        a = Box("a", 0, 0, 10, 10, index=0)
        b = Box("b", 0, 0, 10, 10, index=1)
        assert remove_overlaps([a, b], OverlapMode.SCANLINE, 5, 5, 10)
        assert (a.x, a.y) == (0, 0)
        assert (b.x, b.y) == (15, 0)

    def test_smaller_move_wins(self):
        a = Box("a", 0, 0, 10, 10)
        b = Box("b", 2, 8, 10, 10, index=1)
        remove_overlaps([a, b], OverlapMode.SCANLINE, 0, 0, 10)
        assert (b.x, b.y) == (2, 10)

    def test_none_mode_leaves_boxes(self):
        a = Box("a", 0, 0, 10, 10)
        b = Box("b", 0, 0, 10, 10, index=1)
        assert remove_overlaps([a, b], OverlapMode.NONE, 5, 5, 10)
        assert b.x == 0

    def test_row_is_spread_out(self):
        boxes = [Box(f"n{i}", i * 4.0, 0, 10, 10, index=i) for i in range(3)]
        assert remove_overlaps(boxes, OverlapMode.SCANLINE, 2, 2, 10)
        assert [b.x for b in boxes] == [0.0, 12.0, 24.0]
        assert not has_overlaps(boxes, 2, 2)

    def test_has_overlaps(self):
        a = Box("a", 0, 0, 10, 10)
        assert has_overlaps([a, Box("b", 5, 5, 10, 10)], 0, 0)
        assert not has_overlaps([a, Box("b", 10, 0, 10, 10)], 0, 0)
