"""Layer assignment.

Two strategies, both deterministic:

``LONGEST_PATH`` (default)
    layer(n) = 1 + max layer of its effective predecessors, 0 for sources.
    Minimizes the number of layers.

``COFFMAN_GRAHAM``
    Width-bounded layering: at most ``layer_bound`` nodes per layer
    (transitive edges ignored). Trades height for width.

Layer constraints are applied afterwards: FIRST nodes take layer 0 on
their own, LAST nodes a final layer on their own. The result is compacted
so no layer is empty and then checked: every edge must strictly increase
the layer.
"""

from __future__ import annotations

import logging

import networkx as nx

from rankgraph.config import LayoutOptions
from rankgraph.errors import InvalidGraphError
from rankgraph.layout.types import LEdge, LNode
from rankgraph.types import LayerConstraint, LayeringStrategy

logger = logging.getLogger(__name__)


def _index(dag: nx.MultiDiGraph, node_id: str) -> int:
    lnode: LNode = dag.nodes[node_id]["data"]
    return lnode.index


def _topological_order(dag: nx.MultiDiGraph) -> list[str]:
    try:
        return list(nx.lexicographical_topological_sort(dag, key=lambda n: _index(dag, n)))
    except nx.NetworkXUnfeasible:
        raise InvalidGraphError("working graph still has a cycle after cycle breaking") from None


def longest_path_layers(dag: nx.MultiDiGraph) -> dict[str, int]:
    layers: dict[str, int] = {}
    for node_id in _topological_order(dag):
        layers[node_id] = 1 + max((layers[p] for p in dag.predecessors(node_id)), default=-1)
    return layers


def coffman_graham_layers(dag: nx.MultiDiGraph, bound: int) -> dict[str, int]:
    """Coffman-Graham layering with at most ``bound`` nodes per layer."""
    _topological_order(dag)
    simple: nx.DiGraph = nx.DiGraph()
    simple.add_nodes_from(dag.nodes)
    simple.add_edges_from((u, v) for u, v in dag.edges() if u != v)
    reduced = nx.transitive_reduction(simple)

    # Lexicographic labelling: smallest sorted-descending predecessor labels first.
    labels: dict[str, int] = {}
    for step in range(reduced.number_of_nodes()):
        ready = [n for n in reduced.nodes if n not in labels and all(p in labels for p in reduced.predecessors(n))]
        chosen = min(
            ready,
            key=lambda n: (sorted((labels[p] for p in reduced.predecessors(n)), reverse=True), _index(dag, n)),
        )
        labels[chosen] = step

    # Fill levels from the sinks upwards, highest label first.
    levels: dict[str, int] = {}
    current, filled = 0, 0
    remaining = set(reduced.nodes)
    while remaining:
        ready = [n for n in remaining if all(s in levels for s in reduced.successors(n))]
        chosen = max(ready, key=lambda n: labels[n])
        below = max((levels[s] for s in reduced.successors(chosen)), default=-1)
        if filled >= bound or below >= current:
            current += 1
            filled = 0
        levels[chosen] = current
        filled += 1
        remaining.remove(chosen)

    top = max(levels.values(), default=0)
    return {n: top - level for n, level in levels.items()}


def apply_layer_constraints(dag: nx.MultiDiGraph, layers: dict[str, int]) -> dict[str, int]:
    """Move FIRST nodes to a leading layer and LAST nodes to a trailing one."""
    constraint = {n: dag.nodes[n]["data"].layer_constraint for n in dag.nodes}
    first = [n for n, c in constraint.items() if c is LayerConstraint.FIRST]
    last = [n for n, c in constraint.items() if c is LayerConstraint.LAST]
    if not first and not last:
        return layers

    result = dict(layers)
    if first:
        for node_id, c in constraint.items():
            result[node_id] = 0 if c is LayerConstraint.FIRST else result[node_id] + 1
    if last:
        bottom = max((result[n] for n, c in constraint.items() if c is not LayerConstraint.LAST), default=-1)
        for node_id in last:
            result[node_id] = bottom + 1
    return result


def normalize_layers(layers: dict[str, int]) -> dict[str, int]:
    """Renumber layers 0..k-1 without gaps, preserving their order."""
    used = sorted(set(layers.values()))
    remap = {layer: i for i, layer in enumerate(used)}
    return {n: remap[layer] for n, layer in layers.items()}


def check_layering(dag: nx.MultiDiGraph, layers: dict[str, int]) -> None:
    for src, tgt, attrs in dag.edges(data=True):
        if src == tgt:
            continue
        if layers[src] >= layers[tgt]:
            edge: LEdge = attrs["data"]
            raise InvalidGraphError(
                f"edge '{edge.id}' runs from layer {layers[src]} to layer {layers[tgt]}; "
                "layer constraints conflict with its direction"
            )


def assign_layers(dag: nx.MultiDiGraph, options: LayoutOptions) -> dict[str, int]:
    """Assign every node of ``dag`` a layer >= 0."""
    if dag.number_of_nodes() == 0:
        return {}
    if options.layering_strategy is LayeringStrategy.COFFMAN_GRAHAM:
        layers = coffman_graham_layers(dag, options.layer_bound)
    else:
        layers = longest_path_layers(dag)
    layers = normalize_layers(apply_layer_constraints(dag, layers))
    check_layering(dag, layers)

    for node_id, layer in layers.items():
        dag.nodes[node_id]["data"].layer = layer
    logger.debug(
        "%s layering: %d nodes in %d layers",
        options.layering_strategy.name,
        len(layers),
        max(layers.values()) + 1,
    )
    return layers
