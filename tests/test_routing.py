"""Tests for layout.routing and layout.labels."""

from __future__ import annotations

import math

import pytest

from rankgraph import Graph, Label, Point, Port, PortSide, layout
from rankgraph.config import LayoutOptions
from rankgraph.ir.graph import Edge
from rankgraph.layout.labels import place_edge_label, place_node_label
from rankgraph.layout.routing import clip_to_box, self_loop_route, simplify_path, straight_route, to_splines
from rankgraph.types import LabelPlacement


def approx_point(p: Point) -> tuple:
    return (pytest.approx(p.x), pytest.approx(p.y))


def fan_graph() -> Graph:
    """a feeds c and d, b feeds c; forces jogs between the two layers."""
    g = Graph()
    for n in ("a", "b", "c", "d"):
        g.add_node(n, 40, 20)
    g.add_edge("a", "c")
    g.add_edge("b", "c")
    g.add_edge("a", "d")
    return g


# ─── Geometry helpers ─────────────────────────────────────────────────────────


class TestGeometry:
    def test_simplify_drops_collinear(self):
        path = [Point(0, 0), Point(0, 5), Point(0, 10), Point(10, 10)]
        assert simplify_path(path) == [Point(0, 0), Point(0, 10), Point(10, 10)]

    def test_simplify_drops_repeats(self):
        assert simplify_path([Point(1, 1), Point(1, 1), Point(4, 1)]) == [Point(1, 1), Point(4, 1)]

    def test_simplify_keeps_turnaround(self):
        path = [Point(0, 0), Point(0, 10), Point(0, 5)]
        assert simplify_path(path) == path

    def test_clip_to_box(self):
        assert approx_point(clip_to_box((0, 0, 10, 10), Point(20, 5))) == approx_point(Point(10, 5))
        assert approx_point(clip_to_box((0, 0, 10, 10), Point(5, -30))) == approx_point(Point(5, 0))

    def test_clip_at_center(self):
        assert clip_to_box((0, 0, 10, 10), Point(5, 5)) == Point(5, 5)

    def test_straight_route_side_by_side(self):
        route = straight_route((0, 0, 10, 10), (30, 0, 10, 10))
        assert [approx_point(p) for p in route] == [approx_point(Point(10, 5)), approx_point(Point(30, 5))]

    def test_straight_route_into_descendant(self):
        route = straight_route((0, 0, 100, 100), (10, 60, 20, 20))
        assert route[0] == Point(20, 0)
        assert approx_point(route[1]) == approx_point(Point(20, 60))

    def test_splines_control_points(self):
        skeleton = [Point(0, 0), Point(10, 10), Point(20, 0)]
        curve = to_splines(skeleton)
        assert len(curve) == 7
        assert curve[0] == skeleton[0]
        assert curve[3] == skeleton[1]
        assert curve[-1] == skeleton[-1]

    def test_splines_keep_straight_lines(self):
        assert to_splines([Point(0, 0), Point(5, 5)]) == [Point(0, 0), Point(5, 5)]

    @pytest.mark.parametrize("count", [1, 2, 3])
    def test_self_loops_stay_in_node_band(self, count):
        options = LayoutOptions()
        box = (0.0, 0.0, 40.0, 20.0)
        for i in range(count):
            points = self_loop_route(box, i, count, options)
            assert points[0].x == 40.0
            assert points[-1].x == 40.0
            assert all(0.0 < p.y < 20.0 for p in points)
            assert points[1].x == 40.0 + options.spacing_edge_node + i * options.spacing_edge_edge


# ─── Routes from a full layout ────────────────────────────────────────────────


class TestRoutes:
    def test_orthogonal_segments_are_axis_parallel(self):
        g = fan_graph()
        layout(g)
        for edge in g.edges:
            route = edge.route()
            assert len(route) >= 2
            for p, q in zip(route, route[1:]):
                assert p.x == pytest.approx(q.x) or p.y == pytest.approx(q.y)

    def test_routes_start_and_end_on_borders(self):
        g = fan_graph()
        layout(g)
        for edge in g.edges:
            src, tgt = g.node(edge.source), g.node(edge.target)
            assert edge.source_point.y == pytest.approx(src.y + src.height)
            assert edge.target_point.y == pytest.approx(tgt.y)
            assert src.x - 1e-6 <= edge.source_point.x <= src.x + src.width + 1e-6
            assert tgt.x - 1e-6 <= edge.target_point.x <= tgt.x + tgt.width + 1e-6

    def test_long_edge_passes_between_layers(self):
        g = Graph()
        for n in ("a", "b", "c"):
            g.add_node(n, 40, 20)
        g.add_edge("a", "b")
        g.add_edge("b", "c")
        long_edge = g.add_edge("a", "c")
        layout(g)
        b = g.node("b")
        for p, q in zip(long_edge.route(), long_edge.route()[1:]):
            if p.y <= b.y + b.height / 2.0 <= q.y:
                # the segment through b's layer must not cut through b
                assert not (b.x < p.x < b.x + b.width and p.x == pytest.approx(q.x))

    @pytest.mark.parametrize("routing", ["POLYLINE", "SPLINES"])
    def test_other_routings_touch_their_nodes(self, routing):
        g = fan_graph()
        layout(g, edgeRouting=routing)
        for edge in g.edges:
            src, tgt = g.node(edge.source), g.node(edge.target)
            start, end = edge.source_point, edge.target_point
            assert src.x - 1e-6 <= start.x <= src.x + src.width + 1e-6
            assert src.y - 1e-6 <= start.y <= src.y + src.height + 1e-6
            assert tgt.x - 1e-6 <= end.x <= tgt.x + tgt.width + 1e-6
            assert tgt.y - 1e-6 <= end.y <= tgt.y + tgt.height + 1e-6

    def test_splines_have_cubic_segments(self):
        g = Graph()
        for n in ("a", "b", "c"):
            g.add_node(n, 40, 20)
        g.add_edge("a", "b")
        g.add_edge("b", "c")
        g.add_edge("a", "c")
        layout(g, edgeRouting="SPLINES")
        for edge in g.edges:
            assert len(edge.bend_points) % 3 in (0, 2)


def shared_port_graph() -> Graph:
    """a feeds b and c through its single SOUTH port p."""
    g = Graph()
    a = g.add_node("a", 40, 20)
    a.ports.append(Port("p", PortSide.SOUTH))
    g.add_node("b", 40, 20)
    g.add_node("c", 40, 20)
    g.add_edge("a", "b", source_port="p")
    g.add_edge("a", "c", source_port="p")
    return g


class TestPortAdaptation:
    @pytest.mark.parametrize("adapt", [True, False])
    def test_edges_on_one_port_share_its_position(self, adapt):
        g = shared_port_graph()
        layout(g, edgeRouting="POLYLINE", adaptPortPositions=adapt)
        a = g.node("a")
        port = a.port("p")
        at = (pytest.approx(a.x + port.x), pytest.approx(a.y + port.y))
        for edge in g.edges:
            assert (edge.source_point.x, edge.source_point.y) == at

    def test_adapted_port_stays_on_border(self):
        g = shared_port_graph()
        layout(g, edgeRouting="POLYLINE")
        a = g.node("a")
        port = a.port("p")
        assert 0.0 - 1e-6 <= port.x <= a.width + 1e-6
        assert 0.0 - 1e-6 <= port.y <= a.height + 1e-6
        on_vertical_side = abs(port.x) < 1e-6 or abs(port.x - a.width) < 1e-6
        on_horizontal_side = abs(port.y) < 1e-6 or abs(port.y - a.height) < 1e-6
        assert on_vertical_side or on_horizontal_side

    def test_implicit_ends_are_adapted_per_edge(self):
        g = fan_graph()
        layout(g, edgeRouting="POLYLINE")
        a = g.node("a")
        starts = [e.source_point for e in g.edges if e.source == "a"]
        assert len(starts) == 2
        assert starts[0] != starts[1]
        for p in starts:
            assert a.x - 1e-6 <= p.x <= a.x + a.width + 1e-6
            assert a.y - 1e-6 <= p.y <= a.y + a.height + 1e-6


class TestBundles:
    def test_bundled_edges_run_side_by_side(self):
        g = Graph()
        a = g.add_node("a", 40, 20)
        b = g.add_node("b", 40, 20)
        for _ in range(3):
            g.add_edge("a", "b")
        layout(g, concentrate=True)
        routes = [edge.route() for edge in g.edges]
        xs = sorted(route[0].x for route in routes)
        assert xs[1] - xs[0] == pytest.approx(5.0)
        assert xs[2] - xs[1] == pytest.approx(5.0)
        for route in routes:
            assert route[0].y == pytest.approx(a.y + a.height)
            assert route[-1].y == pytest.approx(b.y)
            assert all(p.x == pytest.approx(route[0].x) for p in route)
            assert a.x <= route[0].x <= a.x + a.width


# ─── Labels ───────────────────────────────────────────────────────────────────


def vertical_edge(placement: LabelPlacement) -> Edge:
    edge = Edge(id="e", source="a", target="b", label=Label("x", 10, 6, placement=placement))
    edge.source_point = Point(0, 0)
    edge.target_point = Point(0, 100)
    return edge


class TestLabels:
    def test_center_label_beside_vertical_run(self):
        edge = vertical_edge(LabelPlacement.CENTER)
        assert place_edge_label(edge, LayoutOptions()) is None
        assert (edge.label.x, edge.label.y) == (2.0, 47.0)

    def test_head_label_at_distance(self):
        options = LayoutOptions()
        edge = vertical_edge(LabelPlacement.HEAD)
        place_edge_label(edge, options)
        cx = edge.label.x + edge.label.width / 2
        cy = edge.label.y + edge.label.height / 2
        assert math.hypot(cx - 0, cy - 100) == pytest.approx(options.label_distance)
        assert cy < 100

    def test_tail_label_near_source(self):
        edge = vertical_edge(LabelPlacement.TAIL)
        place_edge_label(edge, LayoutOptions())
        assert edge.label.y + edge.label.height / 2 > 0
        assert edge.label.y < 20

    def test_unrouted_edge_is_skipped(self):
        edge = Edge(id="e", source="a", target="b", label=Label("x", 10, 6))
        assert place_edge_label(edge, LayoutOptions()) is None
        assert edge.label.x is None

    def test_node_labels(self):
        g = Graph()
        leaf = g.add_node("leaf", 40, 20, label=Label("leaf", 20, 10))
        leaf.x, leaf.y = 0.0, 0.0
        place_node_label(leaf, LayoutOptions())
        assert (leaf.label.x, leaf.label.y) == (10.0, 5.0)

        group = g.add_node("group", 100, 80, label=Label("group", 30, 10))
        group.ensure_children().add_node("inner", 10, 10)
        group.x, group.y = 0.0, 0.0
        place_node_label(group, LayoutOptions())
        assert (group.label.x, group.label.y) == (35.0, 12.0)

    def test_labels_placed_by_layout(self):
        g = Graph()
        g.add_node("a", 40, 20)
        g.add_node("b", 40, 20)
        edge = g.add_edge("a", "b", label=Label("go", 16, 8))
        layout(g)
        assert edge.label.x is not None
        assert edge.label.y is not None

    def test_label_pushed_off_bend_points(self):
        edge = Edge(id="e", source="a", target="b", label=Label("x", 10, 30))
        edge.source_point = Point(0, 0)
        edge.bend_points = [Point(0, 60), Point(5, 60)]
        edge.target_point = Point(5, 100)
        assert place_edge_label(edge, LayoutOptions()) is None
        # the first spot beside the vertical run would cover (5, 60)
        assert (edge.label.x, edge.label.y) == (19.0, 37.5)

    def test_labels_never_cover_their_bends(self):
        g = fan_graph()
        for edge in g.edges:
            edge.label = Label(edge.id, 24, 10)
        report = layout(g)
        assert report.warnings == []
        for edge in g.edges:
            label = edge.label
            for p in edge.bend_points:
                assert not (label.x <= p.x <= label.x + label.width and label.y <= p.y <= label.y + label.height)
