"""Cycle breaking for the layered pipeline.

Back edges of a deterministic depth-first search are reversed: roots are
visited sources-first in ascending stable index, successors in ascending
edge index. Self-loops never enter the working graph, so they are never
candidates. Parallel edges are judged one by one.
"""

from __future__ import annotations

import logging

import networkx as nx

from rankgraph.errors import InvalidGraphError
from rankgraph.layout.types import LEdge, LNode
from rankgraph.types import LayerConstraint

logger = logging.getLogger(__name__)

_WHITE, _GRAY, _BLACK = 0, 1, 2


def _lnode(graph: nx.MultiDiGraph, node_id: str) -> LNode:
    return graph.nodes[node_id]["data"]


def _constraint_reversals(graph: nx.MultiDiGraph) -> set[str]:
    """Edges that must point away from FIRST nodes and into LAST nodes."""
    reversed_keys: set[str] = set()
    for src, tgt, key, attrs in graph.edges(keys=True, data=True):
        if src == tgt:
            continue
        src_c = _lnode(graph, src).layer_constraint
        tgt_c = _lnode(graph, tgt).layer_constraint
        if src_c is tgt_c and src_c is not LayerConstraint.NONE:
            edge: LEdge = attrs["data"]
            raise InvalidGraphError(
                f"edge '{edge.id}' connects two {src_c.name} nodes ('{src}', '{tgt}'); "
                "no layering can honor both constraints"
            )
        if tgt_c is LayerConstraint.FIRST or src_c is LayerConstraint.LAST:
            reversed_keys.add(key)
    return reversed_keys


def break_cycles(graph: nx.MultiDiGraph) -> set[str]:
    """Return the keys of the edges that must be reversed to make ``graph`` acyclic."""
    reversed_keys = _constraint_reversals(graph)

    index = {n: _lnode(graph, n).index for n in graph.nodes}
    successors: dict[str, list[tuple[int, str, str]]] = {n: [] for n in graph.nodes}
    in_degree: dict[str, int] = {n: 0 for n in graph.nodes}
    for src, tgt, key, attrs in graph.edges(keys=True, data=True):
        if src == tgt:
            continue
        if key in reversed_keys:
            src, tgt = tgt, src
        successors[src].append((attrs["data"].index, key, tgt))
        in_degree[tgt] += 1
    for adjacent in successors.values():
        adjacent.sort()

    by_index = sorted(graph.nodes, key=index.__getitem__)
    roots = [n for n in by_index if in_degree[n] == 0] + [n for n in by_index if in_degree[n] > 0]

    state: dict[str, int] = {n: _WHITE for n in graph.nodes}
    for root in roots:
        if state[root] != _WHITE:
            continue
        state[root] = _GRAY
        stack: list[tuple[str, int]] = [(root, 0)]
        while stack:
            node, pos = stack[-1]
            adjacent = successors[node]
            if pos == len(adjacent):
                state[node] = _BLACK
                stack.pop()
                continue
            stack[-1] = (node, pos + 1)
            _, key, succ = adjacent[pos]
            if state[succ] == _GRAY:
                reversed_keys.add(key)
            elif state[succ] == _WHITE:
                state[succ] = _GRAY
                stack.append((succ, 0))

    return reversed_keys


def remove_cycles(graph: nx.MultiDiGraph) -> tuple[nx.MultiDiGraph, set[str]]:
    """Break cycles. Returns (dag, reversed_edge_keys).

    Reversed working edges are flipped in the returned graph and the
    caller's ``Edge.reversed`` flag is set; the original graph is untouched.
    """
    reversed_keys = break_cycles(graph)

    dag: nx.MultiDiGraph = nx.MultiDiGraph()
    for node_id, attrs in graph.nodes(data=True):
        dag.add_node(node_id, **attrs)
    for src, tgt, key, attrs in graph.edges(keys=True, data=True):
        edge: LEdge = attrs["data"]
        if key in reversed_keys:
            edge = edge.flipped()
            if edge.origin is not None:
                edge.origin.reversed = True
            dag.add_edge(tgt, src, key=key, data=edge)
        else:
            dag.add_edge(src, tgt, key=key, data=edge)

    if reversed_keys:
        logger.debug("reversed %d of %d edges", len(reversed_keys), graph.number_of_edges())
    return dag, reversed_keys
