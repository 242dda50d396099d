"""Tests for rankgraph.ir: graph model, stable index and JSON round trip."""

from __future__ import annotations

import pytest

from rankgraph.errors import InvalidGraphError
from rankgraph.ir.graph import Graph, GraphIndex, Point, Port
from rankgraph.ir.serialize import graph_from_dict, graph_to_dict
from rankgraph.types import LabelPlacement, PortSide


def _nested() -> Graph:
    """a, p{x -> y}, b with a -> x and p -> b."""
    g = Graph()
    g.add_node("a", 30, 20)
    p = g.add_node("p")
    inner = p.ensure_children()
    inner.add_node("x", 30, 20)
    inner.add_node("y", 30, 20)
    inner.add_edge("x", "y")
    g.add_node("b", 30, 20)
    g.add_edge("a", "x")
    g.add_edge("p", "b")
    return g


class TestModel:
    def test_compound_needs_children(self):
        g = Graph()
        n = g.add_node("n")
        assert not n.is_compound
        n.ensure_children()
        assert not n.is_compound
        n.children.add_node("c")
        assert n.is_compound

    def test_walk_is_preorder(self):
        g = _nested()
        assert [n.id for n in g.walk()] == ["a", "p", "x", "y", "b"]

    def test_edge_ids_are_generated(self):
        g = _nested()
        assert [e.id for e in g.edges] == ["e0", "e1"]
        assert [e.id for e in g.node("p").children.edges] == ["p.e0"]

    def test_walk_edges(self):
        assert [e.id for e in _nested().walk_edges()] == ["e0", "e1", "p.e0"]

    def test_lookup(self):
        g = _nested()
        assert g.node("y").id == "y"
        assert g.edge("p.e0").target == "y"
        with pytest.raises(KeyError):
            g.node("missing")

    def test_unknown_port(self):
        g = Graph()
        n = g.add_node("n", ports=[Port("p1")])
        assert n.port("p1").side is PortSide.UNDEFINED
        with pytest.raises(InvalidGraphError):
            n.port("p2")

    def test_route_and_bounding_box(self):
        g = Graph()
        a = g.add_node("a", 10, 10)
        a.x, a.y = 5.0, 5.0
        e = g.add_edge("a", "a")
        e.source_point = Point(15, 8)
        e.bend_points = [Point(30, 8), Point(30, 12)]
        e.target_point = Point(15, 12)
        assert e.is_self_loop
        assert len(e.route()) == 4
        assert g.bounding_box() == (5.0, 5.0, 30.0, 15.0)

    def test_bounding_box_empty(self):
        assert Graph().bounding_box() is None


class TestGraphIndex:
    def test_ids_are_stable(self):
        first = GraphIndex(_nested())
        second = GraphIndex(_nested())
        assert first.node_ids == second.node_ids
        assert first.edge_ids == second.edge_ids
        assert sorted(first.node_ids.values()) == list(range(5))

    def test_parents(self):
        index = GraphIndex(_nested())
        assert index.parent_of["a"] is None
        assert index.parent_of["x"].id == "p"
        assert [n.id for n in index.ancestors("y")] == ["p"]
        assert index.depth("y") == 1

    def test_common_owner(self):
        index = GraphIndex(_nested())
        assert index.common_owner("x", "y").id == "p"
        assert index.common_owner("a", "x") is None

    def test_projection(self):
        index = GraphIndex(_nested())
        assert index.projection("x", None).id == "p"
        assert index.projection("x", index.nodes["p"]).id == "x"

    def test_duplicate_node_id(self):
        g = Graph()
        g.add_node("a")
        g.add_node("a")
        with pytest.raises(InvalidGraphError, match="duplicate node"):
            GraphIndex(g)

    def test_duplicate_edge_id(self):
        g = Graph()
        g.add_node("a")
        g.add_edge("a", "a", edge_id="e")
        g.add_edge("a", "a", edge_id="e")
        with pytest.raises(InvalidGraphError, match="duplicate edge"):
            GraphIndex(g)

    def test_dangling_endpoint(self):
        g = Graph()
        g.add_node("a")
        g.add_edge("a", "ghost")
        with pytest.raises(InvalidGraphError, match="unknown node"):
            GraphIndex(g)

    def test_dangling_port(self):
        g = Graph()
        g.add_node("a")
        g.add_node("b")
        g.add_edge("a", "b", source_port="nope")
        with pytest.raises(InvalidGraphError):
            GraphIndex(g)


class TestSerialize:
    DOC = {
        "id": "root",
        "layoutOptions": {"elk.direction": "RIGHT"},
        "children": [
            {"id": "n1", "width": 40, "height": 20, "ports": [{"id": "n1_out", "side": "EAST", "index": 0}]},
            {
                "id": "n2",
                "width": 40,
                "height": 20,
                "labels": [{"text": "two", "width": 18, "height": 8}],
                "layoutOptions": {"portConstraints": "FIXED_ORDER"},
            },
            {
                "id": "group",
                "children": [{"id": "inner", "width": 10, "height": 10}],
                "edges": [{"id": "g1", "source": "inner", "target": "inner"}],
            },
        ],
        "edges": [
            {
                "id": "e1",
                "sources": ["n1_out"],
                "targets": ["n2"],
                "labels": [{"text": "x", "width": 6, "height": 6, "placement": "head"}],
            }
        ],
    }

    def test_read(self):
        graph, options = graph_from_dict(self.DOC)
        assert options == {"elk.direction": "RIGHT"}
        assert [n.id for n in graph.nodes] == ["n1", "n2", "group"]
        n1 = graph.node("n1")
        assert n1.width == 40.0
        assert n1.ports[0].side is PortSide.EAST
        assert n1.ports[0].index == 0
        assert graph.node("n2").label.text == "two"
        assert graph.node("n2").options == {"portConstraints": "FIXED_ORDER"}
        assert graph.node("group").is_compound

    def test_port_endpoint_resolves_to_owner(self):
        graph, _ = graph_from_dict(self.DOC)
        edge = graph.edge("e1")
        assert edge.source == "n1"
        assert edge.source_port == "n1_out"
        assert edge.label.placement is LabelPlacement.HEAD

    def test_nested_edges_stay_nested(self):
        graph, _ = graph_from_dict(self.DOC)
        assert [e.id for e in graph.node("group").children.edges] == ["g1"]

    def test_edge_needs_single_endpoints(self):
        doc = {"children": [{"id": "a"}, {"id": "b"}], "edges": [{"id": "e", "sources": ["a", "b"], "targets": ["b"]}]}
        with pytest.raises(InvalidGraphError, match="exactly one"):
            graph_from_dict(doc)

    def test_node_needs_id(self):
        with pytest.raises(InvalidGraphError):
            graph_from_dict({"children": [{"width": 3}]})

    def test_document_must_be_object(self):
        with pytest.raises(InvalidGraphError):
            graph_from_dict([1, 2])

    def test_unknown_port_side(self):
        with pytest.raises(InvalidGraphError, match="unknown side"):
            graph_from_dict({"children": [{"id": "a", "ports": [{"id": "p", "side": "UP"}]}]})

    def test_non_numeric_size_rejected(self):
        with pytest.raises(InvalidGraphError, match="children.0.width"):
            graph_from_dict({"children": [{"id": "a", "width": "wide", "height": 20}]})

    def test_negative_size_rejected(self):
        with pytest.raises(InvalidGraphError):
            graph_from_dict({"children": [{"id": "a", "width": -4, "height": 20}]})

    def test_bad_port_index_rejected(self):
        with pytest.raises(InvalidGraphError, match="index"):
            graph_from_dict({"children": [{"id": "a", "ports": [{"id": "p", "index": "first"}]}]})

    def test_numeric_ids_and_null_fields(self):
        doc = {
            "children": [{"id": 1, "width": None, "labels": None}, {"id": 2, "ports": [{"id": 7}]}],
            "edges": [{"sources": [1], "targets": [7]}],
        }
        graph, options = graph_from_dict(doc)
        assert options == {}
        assert [n.id for n in graph.nodes] == ["1", "2"]
        assert graph.node("1").width == 0.0
        edge = graph.edges[0]
        assert (edge.id, edge.source, edge.target, edge.target_port) == ("e0", "1", "2", "7")

    def test_port_fields_from_layout_options(self):
        port = {"id": "p", "layoutOptions": {"port.side": "west", "port.index": "2"}}
        doc = {"children": [{"id": "a", "ports": [port]}]}
        graph, _ = graph_from_dict(doc)
        port = graph.node("a").ports[0]
        assert port.side is PortSide.WEST
        assert port.index == 2

    def test_write_positions_and_sections(self):
        graph, options = graph_from_dict(self.DOC)
        n1 = graph.node("n1")
        n1.x, n1.y = 12.0, 12.0
        n1.layer, n1.order = 0, 0
        edge = graph.edge("e1")
        edge.source_point = Point(52, 22)
        edge.target_point = Point(80, 22)
        out = graph_to_dict(graph, layout_options=options)
        assert out["layoutOptions"] == {"elk.direction": "RIGHT"}
        written = out["children"][0]
        assert (written["x"], written["y"], written["layer"], written["order"]) == (12.0, 12.0, 0, 0)
        section = out["edges"][0]["sections"][0]
        assert section["startPoint"] == {"x": 52, "y": 22}
        assert section["endPoint"] == {"x": 80, "y": 22}
        assert section["bendPoints"] == []
        assert out["edges"][0]["sourcePort"] == "n1_out"

    def test_unplaced_output_has_no_coordinates(self):
        graph, _ = graph_from_dict(self.DOC)
        out = graph_to_dict(graph)
        assert "x" not in out["children"][0]
        assert "sections" not in out["edges"][0]
        assert out["children"][2]["edges"][0]["id"] == "g1"
