"""Non-layered strategies: GridLayout (also the fallback) and FixedLayout.

Both work directly in the final frame and share the conventions of the
layered strategy: node positions are relative to their parent's content
origin, edge points relative to the unit's content origin.
"""

from __future__ import annotations

import logging
import math

from rankgraph.config import LayoutOptions
from rankgraph.errors import ConvergenceWarning
from rankgraph.ir.graph import Graph, Node, Point
from rankgraph.layout.context import EdgeRole, LayoutContext, LayoutUnit
from rankgraph.layout.overlap import Box, remove_overlaps
from rankgraph.layout.routing import self_loop_route, straight_route
from rankgraph.layout.sizing import compound_insets, fit_compound
from rankgraph.layout.types import UnitReport
from rankgraph.types import PortSide

logger = logging.getLogger(__name__)


def place_ports(node: Node) -> None:
    """Spread a node's ports evenly along their (final) sides; UNDEFINED counts as SOUTH."""
    by_side: dict[PortSide, list] = {}
    for port in node.ports:
        side = PortSide.SOUTH if port.side is PortSide.UNDEFINED else port.side
        port.side = side
        by_side.setdefault(side, []).append(port)
    for side, ports in by_side.items():
        ports.sort(key=lambda p: (p.index if p.index is not None else len(ports), node.ports.index(p)))
        length = node.width if side.is_vertical else node.height
        for i, port in enumerate(ports):
            along = port.offset if port.offset is not None else (i + 1) * length / (len(ports) + 1)
            if side is PortSide.NORTH:
                port.x, port.y = along, 0.0
            elif side is PortSide.SOUTH:
                port.x, port.y = along, node.height
            elif side is PortSide.WEST:
                port.x, port.y = 0.0, along
            else:
                port.x, port.y = node.width, along


class _PlainLayout:
    """Shared edge handling of the non-layered strategies."""

    keeps_positions = False

    def __init__(self, context: LayoutContext) -> None:
        self.context = context

    def _place(self, unit: LayoutUnit, options: LayoutOptions, report: UnitReport) -> None:
        raise NotImplementedError

    def layout(self, graph: Graph, options: LayoutOptions) -> UnitReport:
        unit = self.context.unit_for(graph)
        report = UnitReport(graph=graph)
        self._place(unit, options, report)
        nodes = graph.walk() if unit.flatten else iter(graph.nodes)
        for node in nodes:
            node.layer = node.order = None
            place_ports(node)
        self._route(unit, options)
        logger.debug("unit %s placed by %s", unit.name, type(self).__name__)
        return report

    def _origin(self, unit: LayoutUnit, node: Node) -> tuple[float, float]:
        """Position of ``node`` relative to the unit's content origin."""
        x = y = 0.0
        current: Node | None = node
        while current is not None and current is not unit.owner:
            x += current.x or 0.0
            y += current.y or 0.0
            current = self.context.index.parent_of[current.id]
        return x, y

    def _box(self, unit: LayoutUnit, node_id: str) -> tuple[float, float, float, float]:
        node = self.context.index.nodes[node_id]
        x, y = self._origin(unit, node)
        return (x, y, node.width, node.height)

    def _route(self, unit: LayoutUnit, options: LayoutOptions) -> None:
        loops: dict[str, int] = {}
        for plan in self.context.plans(unit):
            if plan.role is EdgeRole.SELF_LOOP:
                loops[plan.source] = loops.get(plan.source, 0) + 1
        seen: dict[str, int] = {}

        for plan in self.context.plans(unit):
            edge = plan.edge
            edge.reversed = False
            if plan.role is EdgeRole.DEFERRED:
                continue
            if plan.role is EdgeRole.SELF_LOOP:
                i = seen.get(plan.source, 0)
                seen[plan.source] = i + 1
                points = self_loop_route(self._box(unit, plan.source), i, loops[plan.source], options)
            else:
                points = straight_route(self._box(unit, plan.source), self._box(unit, plan.target))
                if plan.source == edge.source:
                    points = self._port_end(unit, plan.source, edge.source_port, points, 0)
                if plan.target == edge.target:
                    points = self._port_end(unit, plan.target, edge.target_port, points, -1)
            edge.source_point = points[0]
            edge.target_point = points[-1]
            edge.bend_points = points[1:-1]

    def _port_end(self, unit: LayoutUnit, node_id: str, port_id: str | None, points: list[Point], at: int) -> list[Point]:
        if port_id is None:
            return points
        node = self.context.index.nodes[node_id]
        port = node.port(port_id)
        if port.x is None or port.y is None:
            return points
        ox, oy = self._origin(unit, node)
        points = list(points)
        points[at] = Point(ox + port.x, oy + port.y)
        return points


class GridLayout(_PlainLayout):
    """Nodes on a square-ish grid in declaration order, straight edges.

    Deterministic and constraint-free, which is why the orchestrator falls
    back to it when a unit's layered pipeline fails. Flattened clusters are
    gridded bottom-up and then placed as single cells.
    """

    def _place(self, unit: LayoutUnit, options: LayoutOptions, report: UnitReport) -> None:
        for cluster in reversed(self.context.clusters(unit)):
            assert cluster.children is not None
            cluster_options = self.context.options_for(cluster)
            side, top = compound_insets(cluster, cluster_options)
            width, height = self._grid(cluster.children.nodes, cluster_options, side, top)
            fit_compound(cluster, width, height, cluster_options)
        self._grid(unit.graph.nodes, options, 0.0, 0.0)

    def _grid(self, nodes: list[Node], options: LayoutOptions, left: float, top: float) -> tuple[float, float]:
        """Place ``nodes`` in rows; returns the grid's (width, height)."""
        if not nodes:
            return 0.0, 0.0
        cols = math.ceil(math.sqrt(len(nodes)))
        gap = options.spacing_node_node
        cell_w = max(n.width for n in nodes)
        rows = [nodes[i : i + cols] for i in range(0, len(nodes), cols)]
        y = top
        for row in rows:
            for c, node in enumerate(row):
                node.x = left + c * (cell_w + gap)
                node.y = y
            y += max(n.height for n in row) + gap
        width = min(cols, len(nodes)) * (cell_w + gap) - gap
        return width, y - gap - top


class FixedLayout(_PlainLayout):
    """Keeps the caller's positions (missing ones are 0) and only removes overlaps."""

    keeps_positions = True

    def _place(self, unit: LayoutUnit, options: LayoutOptions, report: UnitReport) -> None:
        for cluster in reversed(self.context.clusters(unit)):
            assert cluster.children is not None
            cluster_options = self.context.options_for(cluster)
            self._settle(cluster.children.nodes, cluster_options, unit, report)
            side, top = compound_insets(cluster, cluster_options)
            right = max(n.x + n.width for n in cluster.children.nodes)
            bottom = max(n.y + n.height for n in cluster.children.nodes)
            fit_compound(cluster, max(right - side, 0.0), max(bottom - top, 0.0), cluster_options)
        self._settle(unit.graph.nodes, options, unit, report)

    def _settle(self, nodes: list[Node], options: LayoutOptions, unit: LayoutUnit, report: UnitReport) -> None:
        for node in nodes:
            node.x = node.x or 0.0
            node.y = node.y or 0.0
        boxes = [Box(n.id, n.x, n.y, n.width, n.height, i) for i, n in enumerate(nodes)]
        gap = options.spacing_node_node
        converged = remove_overlaps(boxes, options.overlap_mode, gap, gap, options.maxiter)
        for node, box in zip(nodes, boxes):
            node.x, node.y = box.x, box.y
        if not converged:
            warning = ConvergenceWarning("overlap removal", f"overlaps remain after {options.maxiter} passes", unit.name)
            logger.warning("%s", warning)
            report.warnings.append(warning)
