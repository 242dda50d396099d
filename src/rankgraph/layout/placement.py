"""Coordinate assignment in the internal frame.

In-layer positions (x) start from a left-packed placement and are then
straightened: alternating down/up sweeps pull every node toward the median
of its neighbors' port positions, and each layer is solved as a weighted
isotonic regression (pool adjacent violators) under the separation
constraints, so spacing is never violated. Long-edge dummies weigh more
than real nodes, which keeps long edges straight.

Layer positions (y) stack the layers as bands; the gap between two bands
grows with the number of orthogonal tracks routed through it, with
reserved center-label space and, in flattened hierarchies, with the
paddings of the clusters that must fit in between.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rankgraph.config import LayoutOptions
from rankgraph.layout.types import AugmentedGraph, LEdge, LNode

logger = logging.getLogger(__name__)

# Weight of a node without neighbors in the fixed layer: it stays put
# unless pushed by its neighbors in the same layer.
_ANCHOR_WEIGHT: float = 0.001


def node_gap(a: LNode, b: LNode, options: LayoutOptions) -> float:
    """Minimum distance between the borders of two nodes sharing a layer."""
    if a.is_dummy and b.is_dummy:
        return options.spacing_edge_edge
    if a.is_dummy or b.is_dummy:
        return max(options.spacing_edge_node, options.spacing_node_node / 2.0)
    return options.spacing_node_node


# ─── Isotonic regression ─────────────────────────────────────────────────────


def isotonic_regression(targets: list[float], weights: list[float]) -> list[float]:
    """Weighted least-squares fit of a non-decreasing sequence (pool adjacent violators)."""
    blocks: list[tuple[float, float, int]] = []
    for target, weight in zip(targets, weights):
        value, total, count = target, weight, 1
        while blocks and blocks[-1][0] > value:
            prev_value, prev_total, prev_count = blocks.pop()
            merged = prev_total + total
            value = (prev_value * prev_total + value * total) / merged
            total = merged
            count += prev_count
        blocks.append((value, total, count))
    result: list[float] = []
    for value, _, count in blocks:
        result.extend([value] * count)
    return result


def solve_layer(nodes: list[LNode], targets: list[float], weights: list[float], options: LayoutOptions) -> None:
    """Place ``nodes`` as close to ``targets`` as the separation constraints allow."""
    offsets = [0.0]
    for a, b in zip(nodes, nodes[1:]):
        offsets.append(offsets[-1] + a.extent + node_gap(a, b, options))
    fitted = isotonic_regression([t - c for t, c in zip(targets, offsets)], weights)
    for lnode, value, offset in zip(nodes, fitted, offsets):
        lnode.x = value + offset


# ─── In-layer coordinates ────────────────────────────────────────────────────


def _target(aug: AugmentedGraph, lnode: LNode, downward: bool) -> tuple[float, float]:
    graph = aug.graph
    values: list[float] = []
    neighbors: list[LNode] = []
    if downward:
        for src, _, attrs in graph.in_edges(lnode.id, data=True):
            edge: LEdge = attrs["data"]
            other = aug.node(src)
            values.append(other.x + edge.source_port.x - edge.target_port.x)
            neighbors.append(other)
    else:
        for _, tgt, attrs in graph.out_edges(lnode.id, data=True):
            edge = attrs["data"]
            other = aug.node(tgt)
            values.append(other.x + edge.target_port.x - edge.source_port.x)
            neighbors.append(other)
    if not values:
        return lnode.x, _ANCHOR_WEIGHT

    values.sort()
    mid = len(values) // 2
    median = values[mid] if len(values) % 2 else (values[mid - 1] + values[mid]) / 2.0
    if not lnode.is_dummy:
        weight = 1.0
    elif all(n.is_dummy for n in neighbors):
        weight = 4.0
    else:
        weight = 2.0
    return median, weight


def assign_x(aug: AugmentedGraph, ordering: list[list[str]], options: LayoutOptions) -> int:
    """Assign in-layer coordinates. Returns the number of sweep pairs run."""
    layers = [[aug.node(n) for n in layer] for layer in ordering]
    for layer in layers:
        x = 0.0
        for i, lnode in enumerate(layer):
            if i:
                x += node_gap(layer[i - 1], lnode, options)
            lnode.x = x
            x += lnode.extent

    iterations = 0
    for iterations in range(1, options.maxiter + 1):
        before = {lnode.id: lnode.x for layer in layers for lnode in layer}
        for downward, indices in ((True, range(1, len(layers))), (False, range(len(layers) - 2, -1, -1))):
            for l_idx in indices:
                layer = layers[l_idx]
                if not layer:
                    continue
                targets, weights = zip(*(_target(aug, lnode, downward) for lnode in layer))
                solve_layer(layer, list(targets), list(weights), options)
        movement = max((abs(lnode.x - before[lnode.id]) for layer in layers for lnode in layer), default=0.0)
        if movement < options.epsilon:
            break
    else:
        logger.debug("placement stopped after %d sweeps without settling", options.maxiter)

    lowest = min((lnode.x for layer in layers for lnode in layer), default=0.0)
    for layer in layers:
        for lnode in layer:
            lnode.x -= lowest
    return iterations


# ─── Cluster separation (flattened hierarchies) ─────────────────────────────


@dataclass
class _Band:
    members: list[LNode]
    inset: float
    single: LNode | None = None

    @property
    def left(self) -> float:
        return min(n.x for n in self.members) - self.inset

    @property
    def right(self) -> float:
        return max(n.x + n.extent for n in self.members) + self.inset

    @property
    def layers(self) -> tuple[int, int]:
        return min(n.layer for n in self.members), max(n.layer for n in self.members)

    def shift(self, dx: float) -> None:
        for lnode in self.members:
            lnode.x += dx


def _separate(nodes: list[LNode], depth: int, insets: dict[str, float], options: LayoutOptions) -> None:
    bands: list[_Band] = []
    buckets: dict[str, list[LNode]] = {}
    for lnode in nodes:
        if len(lnode.cluster) > depth:
            buckets.setdefault(lnode.cluster[depth], []).append(lnode)
        else:
            bands.append(_Band([lnode], 0.0, single=lnode))
    for cluster, members in buckets.items():
        _separate(members, depth + 1, insets, options)
        bands.append(_Band(members, insets.get(cluster, 0.0)))

    bands.sort(key=lambda b: (b.left, min(n.index for n in b.members)))
    placed: list[_Band] = []
    for band in bands:
        lo, hi = band.layers
        shift = 0.0
        for other in placed:
            other_lo, other_hi = other.layers
            if other_hi < lo or hi < other_lo:
                continue
            if band.single is not None and other.single is not None:
                gap = node_gap(other.single, band.single, options)
            else:
                gap = options.spacing_node_node
            shift = max(shift, other.right + gap - band.left)
        if shift > 0.0:
            band.shift(shift)
        placed.append(band)


def separate_clusters(aug: AugmentedGraph, insets: dict[str, float], options: LayoutOptions) -> None:
    """Shift cluster bands apart so no cluster box overlaps a node or box it does not contain.

    ``insets`` gives the space each cluster needs between its members and
    its border.
    """
    nodes = [aug.node(n) for n in aug.graph.nodes]
    if any(lnode.cluster for lnode in nodes):
        _separate(nodes, 0, insets, options)


def cluster_reserve(aug: AugmentedGraph, insets: dict[str, float]) -> float:
    """Extra layer gap so nested cluster borders fit between two layers."""
    deepest = max(
        (sum(insets.get(c, 0.0) for c in aug.node(n).cluster) for n in aug.graph.nodes),
        default=0.0,
    )
    return 2.0 * deepest


# ─── Layer coordinates ───────────────────────────────────────────────────────


@dataclass
class LayerGeometry:
    tops: list[float] = field(default_factory=list)
    heights: list[float] = field(default_factory=list)

    def bottom(self, layer: int) -> float:
        return self.tops[layer] + self.heights[layer]

    def gap(self, layer: int) -> tuple[float, float]:
        """(start, end) of the channel between ``layer`` and ``layer + 1``."""
        return self.bottom(layer), self.tops[layer + 1]


def assign_y(
    aug: AugmentedGraph,
    ordering: list[list[str]],
    options: LayoutOptions,
    tracks: list[int],
    label_space: list[float],
    reserve: float = 0.0,
) -> LayerGeometry:
    """Stack layers top-down and center every node in its layer band."""
    geometry = LayerGeometry()
    y = 0.0
    for l_idx, layer in enumerate(ordering):
        height = max((aug.node(n).height for n in layer), default=0.0)
        geometry.tops.append(y)
        geometry.heights.append(height)
        for node_id in layer:
            lnode = aug.node(node_id)
            lnode.y = y + (height - lnode.height) / 2.0
        if l_idx < len(ordering) - 1:
            channel = max(options.layer_gap, (tracks[l_idx] + 1) * options.spacing_edge_edge)
            y += height + channel + label_space[l_idx] + reserve
    return geometry
