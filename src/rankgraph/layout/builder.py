"""Build the working graph of one layout unit.

Members of the unit become ``LNode``s sized in the internal frame, ports
become ``LPort``s, and every edge the unit lays out becomes an ``LEdge``
keyed by its id in a networkx ``MultiDiGraph``. Self-loops are kept aside
and routed around their node.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import networkx as nx

from rankgraph.ir.graph import Edge, Node, Port
from rankgraph.layout.context import EdgeRole, LayoutContext, LayoutUnit
from rankgraph.layout.frame import Frame
from rankgraph.layout.sizing import apply_size_constraints
from rankgraph.layout.types import IMPLICIT_PORT_PREFIX, LEdge, LNode, LPort
from rankgraph.types import PortConstraints, PortSide

logger = logging.getLogger(__name__)

# Implicit ports rank after every explicit port on the same side.
_IMPLICIT_RANK_BASE = 1 << 20


@dataclass
class UnitGraph:
    graph: nx.MultiDiGraph
    frame: Frame
    members: dict[str, Node] = field(default_factory=dict)
    self_loops: dict[str, list[LEdge]] = field(default_factory=dict)

    def lnode(self, node_id: str) -> LNode:
        return self.graph.nodes[node_id]["data"]


def port_key(node_id: str, port_id: str) -> str:
    return f"{node_id}:{port_id}"


def _port_usage(context: LayoutContext) -> dict[str, tuple[bool, bool]]:
    """Explicit port key -> (used as a source, used as a target)."""
    usage: dict[str, tuple[bool, bool]] = {}
    for edge in context.index.edges.values():
        if edge.source_port is not None:
            key = port_key(edge.source, edge.source_port)
            out_, in_ = usage.get(key, (False, False))
            usage[key] = (True, in_)
        if edge.target_port is not None:
            key = port_key(edge.target, edge.target_port)
            out_, in_ = usage.get(key, (False, False))
            usage[key] = (out_, True)
    return usage


def _internal_side(frame: Frame, node: Node, port: Port, usage: dict[str, tuple[bool, bool]]) -> PortSide:
    if port.side is not PortSide.UNDEFINED:
        return frame.side_in(port.side)
    out_, in_ = usage.get(port_key(node.id, port.id), (False, False))
    if in_ and not out_:
        return PortSide.NORTH
    return PortSide.SOUTH


def _internal_offset(frame: Frame, node: Node, port: Port, internal: PortSide) -> float:
    """Position along the internal side for a port with a fixed border offset."""
    assert port.offset is not None
    if port.side is PortSide.NORTH:
        px, py = port.offset, 0.0
    elif port.side is PortSide.SOUTH:
        px, py = port.offset, node.height
    elif port.side is PortSide.WEST:
        px, py = 0.0, port.offset
    else:
        px, py = node.width, port.offset
    ix, iy = frame.point_in(px, py, node.width, node.height)
    return ix if internal.is_vertical else iy


def _make_lnode(
    context: LayoutContext,
    unit: LayoutUnit,
    node: Node,
    frame: Frame,
    usage: dict[str, tuple[bool, bool]],
) -> LNode:
    options = context.options_for(node)
    constraints = options.port_constraints
    if constraints is PortConstraints.UNDEFINED:
        constraints = PortConstraints.FREE

    sides: list[PortSide] = []
    for port in node.ports:
        internal = _internal_side(frame, node, port, usage)
        port.side = frame.side_out(internal)
        sides.append(internal)

    if not node.is_compound:
        apply_size_constraints(node, options)

    width, height = frame.size_in(node.width, node.height)
    lnode = LNode(
        id=node.id,
        index=context.index.node_ids[node.id],
        width=width,
        height=height,
        origin=node,
        cluster=context.cluster_path(unit, node) if unit.flatten else (),
        layer_constraint=options.layer_constraint,
        fixed_order=options.fixed_order,
        port_constraints=constraints,
    )
    for i, (port, internal) in enumerate(zip(node.ports, sides)):
        offset = None
        if constraints is PortConstraints.FIXED_POS and port.offset is not None:
            offset = _internal_offset(frame, node, port, internal)
        lnode.ports.append(
            LPort(
                id=port_key(node.id, port.id),
                owner=node.id,
                side=internal,
                origin=port,
                rank=port.index if port.index is not None else i,
                fixed=constraints.is_order_fixed,
                offset=offset,
            )
        )
    return lnode


def _endpoint_port(lnode: LNode, node_id: str, edge: Edge, is_source: bool, index: int) -> LPort:
    port_id = edge.source_port if is_source else edge.target_port
    real = edge.source if is_source else edge.target
    if port_id is not None and real == node_id:
        key = port_key(node_id, port_id)
        for port in lnode.ports:
            if port.id == key:
                return port
    implicit = LPort(
        id=f"{IMPLICIT_PORT_PREFIX}{edge.id}:{'s' if is_source else 't'}",
        owner=node_id,
        side=PortSide.UNDEFINED,
        rank=_IMPLICIT_RANK_BASE + index,
    )
    lnode.ports.append(implicit)
    return implicit


def build_unit_graph(context: LayoutContext, unit: LayoutUnit) -> UnitGraph:
    """Working graph for ``unit`` in the internal frame of its direction."""
    frame = Frame(unit.options.direction)
    usage = _port_usage(context)
    built = UnitGraph(graph=nx.MultiDiGraph(), frame=frame)

    for node in context.members(unit):
        lnode = _make_lnode(context, unit, node, frame, usage)
        built.graph.add_node(node.id, data=lnode)
        built.members[node.id] = node

    for plan in context.plans(unit):
        edge = plan.edge
        index = context.index.edge_ids[edge.id]
        if plan.role is EdgeRole.DEFERRED:
            continue
        if plan.role is EdgeRole.SELF_LOOP:
            if edge.source_port is not None or edge.target_port is not None:
                logger.debug("self-loop %s: ports ignored, the loop leaves the trailing side of %s", edge.id, plan.source)
            port = LPort(id=f"{IMPLICIT_PORT_PREFIX}{edge.id}:loop", owner=plan.source, side=PortSide.EAST)
            loop = LEdge(edge.id, index, plan.source, plan.source, port, port, origin=edge)
            built.self_loops.setdefault(plan.source, []).append(loop)
            continue
        source = built.lnode(plan.source)
        target = built.lnode(plan.target)
        ledge = LEdge(
            id=edge.id,
            index=index,
            source=plan.source,
            target=plan.target,
            source_port=_endpoint_port(source, plan.source, edge, True, index),
            target_port=_endpoint_port(target, plan.target, edge, False, index),
            origin=edge,
        )
        built.graph.add_edge(plan.source, plan.target, key=edge.id, data=ledge)

    options = unit.options
    for node_id, loops in built.self_loops.items():
        built.lnode(node_id).loop_extent = options.spacing_edge_node + (len(loops) - 1) * options.spacing_edge_edge
    return built


def orient_ports(dag: nx.MultiDiGraph) -> None:
    """Give implicit ports their side after cycle breaking and number ranks per side.

    Effective sources leave through SOUTH, effective targets enter
    through NORTH (internal frame).
    """
    for _, _, attrs in dag.edges(data=True):
        edge: LEdge = attrs["data"]
        if edge.source_port.side is PortSide.UNDEFINED:
            edge.source_port.side = PortSide.SOUTH
        if edge.target_port.side is PortSide.UNDEFINED:
            edge.target_port.side = PortSide.NORTH
    for node_id in dag.nodes:
        lnode: LNode = dag.nodes[node_id]["data"]
        by_side: dict[PortSide, list[LPort]] = {}
        for port in lnode.ports:
            by_side.setdefault(port.side, []).append(port)
        for ports in by_side.values():
            ports.sort(key=lambda p: (p.rank, p.id))
            for rank, port in enumerate(ports):
                port.rank = rank
