"""Connected components: split a unit's working graph, pack the results side by side."""

from __future__ import annotations

from dataclasses import dataclass, field

import networkx as nx

from rankgraph.layout.builder import UnitGraph
from rankgraph.layout.types import AugmentedGraph, LNode, RoutedEdge


def split_components(built: UnitGraph, flatten: bool) -> list[nx.MultiDiGraph]:
    """Weakly connected components, ordered by their lowest node index.

    In a flattened unit, members of one top-level cluster always share a
    component so the cluster box stays in one piece.
    """
    graph = built.graph
    components = nx.utils.UnionFind(graph.nodes)
    for src, tgt in graph.edges():
        components.union(src, tgt)
    if flatten:
        anchors: dict[str, str] = {}
        for node_id in graph.nodes:
            top = graph.nodes[node_id]["data"].cluster[:1]
            if top:
                components.union(anchors.setdefault(top[0], node_id), node_id)
    groups = [set(group) for group in components.to_sets()]

    def lowest(group: set[str]) -> int:
        return min(graph.nodes[n]["data"].index for n in group)

    return [graph.subgraph(group).copy() for group in sorted(groups, key=lowest)]


@dataclass
class ComponentLayout:
    """One laid-out component in the internal frame."""

    aug: AugmentedGraph
    routes: list[RoutedEdge] = field(default_factory=list)

    def nodes(self) -> list[LNode]:
        return [self.aug.node(n) for n in self.aug.graph.nodes]

    def bounds(self) -> tuple[float, float, float, float]:
        xs: list[float] = []
        ys: list[float] = []
        for lnode in self.nodes():
            xs.extend((lnode.x, lnode.x + lnode.extent))
            ys.extend((lnode.y, lnode.y + lnode.height))
        for routed in self.routes:
            xs.extend(p.x for p in routed.points)
            ys.extend(p.y for p in routed.points)
        if not xs:
            return (0.0, 0.0, 0.0, 0.0)
        return (min(xs), min(ys), max(xs), max(ys))

    def translate(self, dx: float, dy: float) -> None:
        for lnode in self.nodes():
            lnode.x += dx
            lnode.y += dy
        for routed in self.routes:
            routed.points = [p.translated(dx, dy) for p in routed.points]


def pack_components(components: list[ComponentLayout], spacing: float) -> None:
    """Line components up along the in-layer axis, ``spacing`` apart, in the given order."""
    cursor = 0.0
    for component in components:
        min_x, _, max_x, _ = component.bounds()
        dx = cursor - min_x
        component.translate(dx, 0.0)
        cursor = max_x + dx + spacing
