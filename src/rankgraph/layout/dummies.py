"""Long-edge dummy insertion and parallel-edge bundling."""

from __future__ import annotations

import networkx as nx

from rankgraph.layout.types import (
    DUMMY_PREFIX,
    AugmentedGraph,
    LEdge,
    LNode,
    LongEdge,
    LPort,
    NodeKind,
)
from rankgraph.types import PortSide


def _common_cluster(a: tuple[str, ...], b: tuple[str, ...]) -> tuple[str, ...]:
    common: list[str] = []
    for x, y in zip(a, b):
        if x != y:
            break
        common.append(x)
    return tuple(common)


def _bundle_key(edge: LEdge) -> tuple[str, str, str | None, str | None]:
    source_port = edge.source_port.origin.id if edge.source_port.origin is not None else None
    target_port = edge.target_port.origin.id if edge.target_port.origin is not None else None
    return (edge.source, edge.target, source_port, target_port)


def bundle_parallel_edges(dag: nx.MultiDiGraph) -> dict[str, list[LEdge]]:
    """Merge parallel edges (same endpoints and ports) into their lowest-index member.

    The other members are removed from ``dag`` together with their implicit
    ports. Returns representative id -> removed members.
    """
    groups: dict[tuple[str, str, str | None, str | None], list[tuple[LEdge, str]]] = {}
    for src, tgt, key, attrs in dag.edges(keys=True, data=True):
        edge: LEdge = attrs["data"]
        groups.setdefault(_bundle_key(edge), []).append((edge, key))

    bundles: dict[str, list[LEdge]] = {}
    for members in groups.values():
        if len(members) < 2:
            continue
        members.sort(key=lambda m: m[0].index)
        representative = members[0][0]
        bundles[representative.id] = []
        for edge, key in members[1:]:
            dag.remove_edge(edge.source, edge.target, key=key)
            for port in (edge.source_port, edge.target_port):
                if port.origin is None:
                    owner: LNode = dag.nodes[port.owner]["data"]
                    owner.ports = [p for p in owner.ports if p is not port]
            bundles[representative.id].append(edge)
    return bundles


def insert_dummy_nodes(dag: nx.MultiDiGraph, layers: dict[str, int], concentrate: bool = False) -> AugmentedGraph:
    """Split every edge spanning more than one layer into a chain of dummies."""
    bundles = bundle_parallel_edges(dag) if concentrate else {}

    g: nx.MultiDiGraph = nx.MultiDiGraph()
    for node_id in dag.nodes:
        g.add_node(node_id, **dag.nodes[node_id])

    # dummies sort after every real node with the same edge order
    index_base = 1 + max((dag.nodes[n]["data"].index for n in dag.nodes), default=-1)
    layers = dict(layers)
    long_edges: dict[str, LongEdge] = {}

    all_edges = sorted(
        ((key, attrs["data"]) for _, _, key, attrs in dag.edges(keys=True, data=True)),
        key=lambda item: item[1].index,
    )
    for key, edge in all_edges:
        src_layer = layers[edge.source]
        tgt_layer = layers[edge.target]
        if tgt_layer - src_layer <= 1:
            g.add_edge(edge.source, edge.target, key=key, data=edge)
            continue

        src_node: LNode = dag.nodes[edge.source]["data"]
        tgt_node: LNode = dag.nodes[edge.target]["data"]
        cluster = _common_cluster(src_node.cluster, tgt_node.cluster)

        dummy_ids: list[str] = []
        prev_id, prev_port = edge.source, edge.source_port
        for i in range(tgt_layer - src_layer - 1):
            dummy_id = f"{DUMMY_PREFIX}{edge.index}_{i}"
            in_port = LPort(id=f"{dummy_id}:in", owner=dummy_id, side=PortSide.NORTH)
            out_port = LPort(id=f"{dummy_id}:out", owner=dummy_id, side=PortSide.SOUTH)
            dummy = LNode(
                id=dummy_id,
                index=index_base + edge.index,
                width=0.0,
                height=0.0,
                kind=NodeKind.LONG_EDGE,
                ports=[in_port, out_port],
                cluster=cluster,
                layer=src_layer + i + 1,
            )
            g.add_node(dummy_id, data=dummy)
            layers[dummy_id] = dummy.layer
            dummy_ids.append(dummy_id)

            segment = LEdge(
                id=f"{edge.id}#{i}",
                index=edge.index,
                source=prev_id,
                target=dummy_id,
                source_port=prev_port,
                target_port=in_port,
                origin=edge.origin,
                reversed=edge.reversed,
            )
            g.add_edge(prev_id, dummy_id, key=segment.id, data=segment)
            prev_id, prev_port = dummy_id, out_port

        last = LEdge(
            id=f"{edge.id}#{len(dummy_ids)}",
            index=edge.index,
            source=prev_id,
            target=edge.target,
            source_port=prev_port,
            target_port=edge.target_port,
            origin=edge.origin,
            reversed=edge.reversed,
        )
        g.add_edge(prev_id, edge.target, key=last.id, data=last)
        long_edges[edge.id] = LongEdge(edge=edge, dummy_ids=dummy_ids)

    layer_count = (max(layers.values()) + 1) if layers else 0
    return AugmentedGraph(graph=g, layers=layers, layer_count=layer_count, long_edges=long_edges, bundles=bundles)
