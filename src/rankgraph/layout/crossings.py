"""Crossing minimization by alternating layer sweeps.

Each sweep fixes one layer and re-sorts the next by a per-node key built
from the positions of its neighbors' ports in the fixed layer:

* MEDIAN (default): (median, barycenter, seeded random key, current index)
* BARYCENTER:       (barycenter, median, seeded random key, current index)

A port's position is its node's slot plus its fraction along the node
side, so edges into different ports of one node are told apart. Members
of one cluster stay contiguous, ``fixed_order`` nodes keep their slot and
ports with a fixed order are never moved. The best ordering seen is kept.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Iterable
from dataclasses import dataclass

import networkx as nx

from rankgraph.config import LayoutOptions
from rankgraph.errors import ConvergenceWarning
from rankgraph.layout.sizing import port_fraction
from rankgraph.layout.types import AugmentedGraph, LEdge, LNode, LPort
from rankgraph.types import CrossingStrategy, PortSide

logger = logging.getLogger(__name__)

# Sweeps per unit of iterationsFactor.
BASE_SWEEPS: int = 12

# Consecutive sweeps without improvement before the search stops.
_PATIENCE: int = 2

NodeKey = tuple[float, float, float, float]


@dataclass
class CrossingResult:
    layers: list[list[str]]
    crossings: int
    initial_crossings: int
    sweeps: int
    warning: ConvergenceWarning | None = None


# ─── Positions and counting ──────────────────────────────────────────────────


def _lnode(graph: nx.MultiDiGraph, node_id: str) -> LNode:
    return graph.nodes[node_id]["data"]


def _slots(ordering: list[list[str]]) -> dict[str, int]:
    return {node_id: i for layer in ordering for i, node_id in enumerate(layer)}


def port_position(graph: nx.MultiDiGraph, slots: dict[str, int], port: LPort) -> float:
    owner = _lnode(graph, port.owner)
    return slots[port.owner] + port_fraction(owner, port.rank, port.side, port.offset)


def count_crossings(ordering: list[list[str]], graph: nx.MultiDiGraph) -> int:
    """Number of pairwise segment crossings between adjacent layers."""
    slots = _slots(ordering)
    total = 0
    for l_idx in range(len(ordering) - 1):
        next_layer = set(ordering[l_idx + 1])
        edges: list[tuple[float, float]] = []
        for src_id in ordering[l_idx]:
            for _, tgt_id, attrs in graph.out_edges(src_id, data=True):
                if tgt_id not in next_layer:
                    continue
                edge: LEdge = attrs["data"]
                edges.append(
                    (port_position(graph, slots, edge.source_port), port_position(graph, slots, edge.target_port))
                )
        for i in range(len(edges)):
            for j in range(i + 1, len(edges)):
                ei, ej = edges[i], edges[j]
                if (ei[0] < ej[0] and ei[1] > ej[1]) or (ei[0] > ej[0] and ei[1] < ej[1]):
                    total += 1
    return total


# ─── Ordering ────────────────────────────────────────────────────────────────


def initial_ordering(aug: AugmentedGraph) -> list[list[str]]:
    """Layers in (cluster path, stable index) order."""
    ordering: list[list[str]] = [[] for _ in range(aug.layer_count)]
    for node_id in aug.graph.nodes:
        ordering[aug.layers[node_id]].append(node_id)
    for layer in ordering:
        layer.sort(key=lambda n: (aug.node(n).cluster, aug.node(n).index))
    return ordering


def _median(values: list[float]) -> float:
    mid = len(values) // 2
    if len(values) % 2:
        return values[mid]
    return (values[mid - 1] + values[mid]) / 2.0


def _neighbor_edges(graph: nx.MultiDiGraph, node_id: str, downward: bool) -> Iterable[LEdge]:
    if downward:
        return (attrs["data"] for _, _, attrs in graph.in_edges(node_id, data=True))
    return (attrs["data"] for _, _, attrs in graph.out_edges(node_id, data=True))


def _node_keys(
    graph: nx.MultiDiGraph,
    free: list[str],
    fixed: list[str],
    slots: dict[str, int],
    downward: bool,
    strategy: CrossingStrategy,
    rng_keys: dict[str, float],
) -> dict[str, NodeKey]:
    keys: dict[str, NodeKey] = {}
    scale = len(fixed) / len(free) if free else 1.0
    for i, node_id in enumerate(free):
        values = sorted(
            port_position(graph, slots, e.source_port if downward else e.target_port)
            for e in _neighbor_edges(graph, node_id, downward)
        )
        if values:
            median = _median(values)
            barycenter = sum(values) / len(values)
        else:
            median = barycenter = i * scale
        if strategy is CrossingStrategy.BARYCENTER:
            keys[node_id] = (barycenter, median, rng_keys[node_id], float(i))
        else:
            keys[node_id] = (median, barycenter, rng_keys[node_id], float(i))
    return keys


def _cluster_sort(nodes: list[LNode], keys: dict[str, NodeKey], depth: int = 0) -> tuple[NodeKey, list[LNode]]:
    """Sort ``nodes`` by key while keeping each cluster contiguous.

    A cluster ranks by the mean of its members' keys.
    """
    buckets: dict[str, list[LNode]] = {}
    items: list[str | LNode] = []
    for lnode in nodes:
        if len(lnode.cluster) > depth:
            cluster = lnode.cluster[depth]
            if cluster not in buckets:
                buckets[cluster] = []
                items.append(cluster)
            buckets[cluster].append(lnode)
        else:
            items.append(lnode)

    ranked: list[tuple[NodeKey, list[LNode]]] = []
    for item in items:
        if isinstance(item, LNode):
            ranked.append((keys[item.id], [item]))
        else:
            ranked.append(_cluster_sort(buckets[item], keys, depth + 1))
    ranked.sort(key=lambda entry: entry[0])

    ordered = [lnode for _, members in ranked for lnode in members]
    member_keys = [keys[lnode.id] for lnode in ordered]
    count = len(member_keys)
    group_key = (
        sum(k[0] for k in member_keys) / count,
        sum(k[1] for k in member_keys) / count,
        min(k[2] for k in member_keys),
        min(k[3] for k in member_keys),
    )
    return group_key, ordered


def _keep_fixed_slots(current: list[str], proposed: list[str], fixed: set[str]) -> list[str]:
    if not fixed:
        return proposed
    movable = iter([n for n in proposed if n not in fixed])
    return [n if n in fixed else next(movable) for n in current]


def _sort_ports(
    graph: nx.MultiDiGraph,
    node_id: str,
    side: PortSide,
    slots: dict[str, int],
) -> None:
    """Re-sort the free ports on ``side`` by the position of what they connect to."""
    lnode = _lnode(graph, node_id)
    ports = lnode.ports_on(side)
    if len(ports) < 2 or all(p.fixed for p in ports):
        return

    targets: dict[str, list[float]] = {p.id: [] for p in ports}
    for _, _, attrs in graph.in_edges(node_id, data=True):
        edge: LEdge = attrs["data"]
        if edge.target_port.id in targets:
            targets[edge.target_port.id].append(port_position(graph, slots, edge.source_port))
    for _, _, attrs in graph.out_edges(node_id, data=True):
        edge = attrs["data"]
        if edge.source_port.id in targets:
            targets[edge.source_port.id].append(port_position(graph, slots, edge.target_port))

    def key(port: LPort) -> tuple[float, int]:
        values = targets[port.id]
        return (sum(values) / len(values) if values else float(port.rank), port.rank)

    free_sorted = iter(sorted((p for p in ports if not p.fixed), key=key))
    reordered = [p if p.fixed else next(free_sorted) for p in ports]
    for rank, port in enumerate(reordered):
        port.rank = rank


def _sweep(
    graph: nx.MultiDiGraph,
    ordering: list[list[str]],
    downward: bool,
    strategy: CrossingStrategy,
    rng_keys: dict[str, float],
) -> None:
    indices = range(1, len(ordering)) if downward else range(len(ordering) - 2, -1, -1)
    for l_idx in indices:
        fixed_idx = l_idx - 1 if downward else l_idx + 1
        slots = _slots(ordering)
        free = ordering[l_idx]
        keys = _node_keys(graph, free, ordering[fixed_idx], slots, downward, strategy, rng_keys)
        _, proposed = _cluster_sort([_lnode(graph, n) for n in free], keys)
        pinned = {n for n in free if _lnode(graph, n).fixed_order}
        ordering[l_idx] = _keep_fixed_slots(free, [n.id for n in proposed], pinned)

        slots = _slots(ordering)
        facing = PortSide.NORTH if downward else PortSide.SOUTH
        for node_id in ordering[l_idx]:
            _sort_ports(graph, node_id, facing, slots)
        for node_id in ordering[fixed_idx]:
            _sort_ports(graph, node_id, facing.opposite, slots)


# ─── Driver ──────────────────────────────────────────────────────────────────


def minimise_crossings(aug: AugmentedGraph, options: LayoutOptions, unit: str | None = None) -> CrossingResult:
    """Reorder every layer of ``aug`` to reduce crossings; sets ``LNode.order``."""
    graph = aug.graph
    ordering = initial_ordering(aug)
    all_ports = [p for n in graph.nodes for p in _lnode(graph, n).ports]

    rng = random.Random(options.random_seed)
    rng_keys = {n: rng.random() for n in sorted(graph.nodes, key=lambda n: _lnode(graph, n).index)}

    def snapshot() -> tuple[list[list[str]], list[int]]:
        return [list(layer) for layer in ordering], [p.rank for p in all_ports]

    initial = count_crossings(ordering, graph)
    best = initial
    best_state = snapshot()
    max_sweeps = max(1, math.ceil(options.iterations_factor * BASE_SWEEPS))
    converged = best == 0
    sweeps = 0
    stale = 0

    while not converged and sweeps < max_sweeps:
        _sweep(graph, ordering, sweeps % 2 == 0, options.crossing_strategy, rng_keys)
        sweeps += 1
        current = count_crossings(ordering, graph)
        if current < best:
            best, best_state, stale = current, snapshot(), 0
        else:
            stale += 1
            if current > best:
                layers, ranks = best_state
                ordering[:] = [list(layer) for layer in layers]
                for port, rank in zip(all_ports, ranks):
                    port.rank = rank
        converged = best == 0 or stale >= _PATIENCE

    layers, ranks = best_state
    for port, rank in zip(all_ports, ranks):
        port.rank = rank
    for l_idx, layer in enumerate(layers):
        for order, node_id in enumerate(layer):
            lnode = _lnode(graph, node_id)
            lnode.layer = l_idx
            lnode.order = order

    warning = None
    if not converged:
        warning = ConvergenceWarning(
            "crossing minimization",
            f"still improving after {sweeps} sweeps ({best} crossings left)",
            unit,
        )
        logger.warning("%s", warning)
    logger.debug("crossings: %d -> %d in %d sweeps", initial, best, sweeps)
    return CrossingResult(layers=layers, crossings=best, initial_crossings=initial, sweeps=sweeps, warning=warning)
