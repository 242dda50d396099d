"""Graph model: the caller-owned graph that a layout call annotates.

A ``Graph`` holds ordered nodes and edges and an optional parent ``Node``
(for compound nesting). Nodes and edges carry their inputs (sizes, ports,
labels, per-node option overrides) and receive their outputs (position,
layer/order, bend points, label placement) in place.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from rankgraph.errors import InvalidGraphError
from rankgraph.types import LabelPlacement, PortSide


@dataclass
class Point:
    """A 2D point in drawing coordinates."""

    x: float
    y: float

    def translated(self, dx: float, dy: float) -> Point:
        return Point(self.x + dx, self.y + dy)


@dataclass
class Label:
    """Text extent attached to a node or edge, plus its computed placement."""

    text: str = ""
    width: float = 0.0
    height: float = 0.0
    placement: LabelPlacement = LabelPlacement.CENTER
    x: float | None = None
    y: float | None = None


@dataclass(eq=False)
class Port:
    """Attachment point on a node border.

    ``index`` is the fixed order on its side when port order is constrained;
    ``offset`` is the position along the side when positions are fixed.
    ``x``/``y`` are relative to the owning node's top-left corner.
    """

    id: str
    side: PortSide = PortSide.UNDEFINED
    index: int | None = None
    offset: float | None = None
    width: float = 0.0
    height: float = 0.0
    x: float | None = None
    y: float | None = None


@dataclass(eq=False)
class Node:
    id: str
    width: float = 0.0
    height: float = 0.0
    x: float | None = None
    y: float | None = None
    ports: list[Port] = field(default_factory=list)
    label: Label | None = None
    children: Graph | None = None
    options: dict[str, Any] = field(default_factory=dict)
    layer: int | None = None
    order: int | None = None

    @property
    def is_compound(self) -> bool:
        return self.children is not None and bool(self.children.nodes)

    def port(self, port_id: str) -> Port:
        for port in self.ports:
            if port.id == port_id:
                return port
        raise InvalidGraphError(f"node '{self.id}' has no port '{port_id}'")

    def ensure_children(self) -> Graph:
        if self.children is None:
            self.children = Graph(parent=self)
        return self.children


@dataclass(eq=False)
class Edge:
    id: str
    source: str
    target: str
    source_port: str | None = None
    target_port: str | None = None
    label: Label | None = None
    reversed: bool = False
    source_point: Point | None = None
    target_point: Point | None = None
    bend_points: list[Point] = field(default_factory=list)

    @property
    def is_self_loop(self) -> bool:
        return self.source == self.target

    def route(self) -> list[Point]:
        """Full polyline: start point, bend points, end point."""
        points: list[Point] = []
        if self.source_point is not None:
            points.append(self.source_point)
        points.extend(self.bend_points)
        if self.target_point is not None:
            points.append(self.target_point)
        return points


@dataclass(eq=False)
class Graph:
    """Ordered nodes and edges, optionally nested under a compound node."""

    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    parent: Node | None = None

    def add_node(self, node_id: str, width: float = 0.0, height: float = 0.0, **kwargs: Any) -> Node:
        node = Node(id=node_id, width=width, height=height, **kwargs)
        if node.children is not None:
            node.children.parent = node
        self.nodes.append(node)
        return node

    def add_edge(self, source: str, target: str, edge_id: str | None = None, **kwargs: Any) -> Edge:
        if edge_id is None:
            edge_id = f"e{len(self.edges)}"
            if self.parent is not None:
                edge_id = f"{self.parent.id}.{edge_id}"
        edge = Edge(id=edge_id, source=source, target=target, **kwargs)
        self.edges.append(edge)
        return edge

    def node(self, node_id: str) -> Node:
        for node in self.walk():
            if node.id == node_id:
                return node
        raise KeyError(node_id)

    def edge(self, edge_id: str) -> Edge:
        for edge in self.walk_edges():
            if edge.id == edge_id:
                return edge
        raise KeyError(edge_id)

    def walk(self) -> Iterator[Node]:
        """All nodes of this graph and its descendants, preorder."""
        stack: list[Node] = list(reversed(self.nodes))
        while stack:
            node = stack.pop()
            yield node
            if node.children is not None:
                stack.extend(reversed(node.children.nodes))

    def walk_edges(self) -> Iterator[Edge]:
        """All edges declared in this graph and its descendants, preorder."""
        yield from self.edges
        for node in self.walk():
            if node.children is not None:
                yield from node.children.edges

    def node_count(self) -> int:
        return len(self.nodes)

    def edge_count(self) -> int:
        return len(self.edges)

    def bounding_box(self) -> tuple[float, float, float, float] | None:
        """(min_x, min_y, max_x, max_y) over direct children and their edges."""
        xs: list[float] = []
        ys: list[float] = []
        for node in self.nodes:
            if node.x is None or node.y is None:
                continue
            xs.extend((node.x, node.x + node.width))
            ys.extend((node.y, node.y + node.height))
        for edge in self.edges:
            for p in edge.route():
                xs.append(p.x)
                ys.append(p.y)
        if not xs:
            return None
        return (min(xs), min(ys), max(xs), max(ys))


# ─── Graph index ─────────────────────────────────────────────────────────────


class GraphIndex:
    """Stable integer ids and hierarchy lookups for one layout invocation.

    Nodes are numbered in preorder, edges in declaration order (walking the
    hierarchy the same way), so every deterministic tie-break in the
    pipeline can compare plain integers.
    """

    def __init__(self, root: Graph) -> None:
        self.root = root
        self.nodes: dict[str, Node] = {}
        self.node_ids: dict[str, int] = {}
        self.parent_of: dict[str, Node | None] = {}
        self.graph_of: dict[str, Graph] = {}
        self.edges: dict[str, Edge] = {}
        self.edge_ids: dict[str, int] = {}
        self.edge_graph: dict[str, Graph] = {}

        stack: list[tuple[Graph, Node | None]] = [(root, None)]
        graphs: list[Graph] = []
        while stack:
            graph, owner = stack.pop()
            graphs.append(graph)
            graph.parent = owner
            for node in graph.nodes:
                if node.id in self.nodes:
                    raise InvalidGraphError(f"duplicate node id '{node.id}'")
                self.node_ids[node.id] = len(self.nodes)
                self.nodes[node.id] = node
                self.parent_of[node.id] = owner
                self.graph_of[node.id] = graph
            for node in reversed(graph.nodes):
                if node.children is not None:
                    stack.append((node.children, node))
        for graph in graphs:
            for edge in graph.edges:
                if edge.id in self.edges:
                    raise InvalidGraphError(f"duplicate edge id '{edge.id}'")
                for end, port_id in ((edge.source, edge.source_port), (edge.target, edge.target_port)):
                    if end not in self.nodes:
                        raise InvalidGraphError(f"edge '{edge.id}' references unknown node '{end}'")
                    if port_id is not None:
                        self.nodes[end].port(port_id)
                self.edge_ids[edge.id] = len(self.edges)
                self.edges[edge.id] = edge
                self.edge_graph[edge.id] = graph

    def ancestors(self, node_id: str) -> list[Node]:
        """Compound ancestors of a node, nearest first."""
        chain: list[Node] = []
        parent = self.parent_of[node_id]
        while parent is not None:
            chain.append(parent)
            parent = self.parent_of[parent.id]
        return chain

    def depth(self, node_id: str) -> int:
        return len(self.ancestors(node_id))

    def is_descendant(self, node_id: str, ancestor: Node | None) -> bool:
        if ancestor is None:
            return True
        return any(a is ancestor for a in self.ancestors(node_id))

    def common_owner(self, a: str, b: str) -> Node | None:
        """Lowest compound containing both nodes (None for the root graph)."""
        chain_a = self.ancestors(a)
        ids_b = {id(n) for n in self.ancestors(b)}
        for node in chain_a:
            if id(node) in ids_b:
                return node
        return None

    def projection(self, node_id: str, owner: Node | None) -> Node:
        """Ancestor-or-self of ``node_id`` that is a direct child of ``owner``."""
        node = self.nodes[node_id]
        while self.parent_of[node.id] is not owner:
            parent = self.parent_of[node.id]
            if parent is None:
                raise InvalidGraphError(f"node '{node_id}' is not inside '{owner.id if owner else '<root>'}'")
            node = parent
        return node
