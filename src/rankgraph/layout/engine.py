"""Layout orchestrator.

A call runs through these states:

  validate options -> plan units -> run units (children first) -> merge -> done

Units are run in waves: every unit of a wave only waits for units of
earlier waves, so a wave may run on a thread pool (``workers``). A unit
whose pipeline raises a ``LayoutError`` is laid out again by the grid
strategy and recorded as a failure. Merge turns the unit-relative output
into absolute coordinates, extends cross-hierarchy edges to their real
endpoints, routes the edges no unit could route, and places labels.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Protocol

from rankgraph.config import LayoutOptions
from rankgraph.errors import LayoutError
from rankgraph.ir.graph import Edge, Graph, Point
from rankgraph.layout.context import EdgePlan, EdgeRole, LayoutContext, LayoutUnit
from rankgraph.layout.grid import FixedLayout, GridLayout
from rankgraph.layout.labels import place_edge_label, place_node_label
from rankgraph.layout.routing import clip_to_box, simplify_path, straight_route
from rankgraph.layout.sizing import compound_insets, fit_compound
from rankgraph.layout.sugiyama import SugiyamaLayout
from rankgraph.layout.types import LayoutReport, UnitFailure, UnitReport
from rankgraph.types import EdgeRouting

logger = logging.getLogger(__name__)


class LayoutStrategy(Protocol):
    keeps_positions: bool

    def layout(self, graph: Graph, options: LayoutOptions) -> UnitReport: ...


STRATEGIES: dict[str, type] = {
    "layered": SugiyamaLayout,
    "grid": GridLayout,
    "fixed": FixedLayout,
}


class LayoutEngine:
    """Runs one strategy over every layout unit of a graph."""

    def __init__(self, options: LayoutOptions | None = None) -> None:
        self.options = options or LayoutOptions()
        self.strategy = STRATEGIES[self.options.algorithm]

    def run(self, graph: Graph) -> LayoutReport:
        context = LayoutContext(graph, self.options)
        logger.debug(
            "layout: %d nodes, %d edges, %d units, algorithm %s",
            len(context.index.nodes),
            len(context.index.edges),
            len(context.units),
            self.options.algorithm,
        )
        self._reset(context)

        report = LayoutReport(graph=graph)
        for wave in context.waves():
            for unit, unit_report, failure in self._run_wave(context, wave):
                report.warnings.extend(unit_report.warnings)
                report.snapshots.extend(unit_report.snapshots)
                if failure is not None:
                    report.failures.append(failure)
                self._fit(context, unit, report)

        self._merge(context)
        for plan in context.edge_plans.values():
            if plan.role is EdgeRole.CROSS:
                self._attach_cross(context, plan)
            elif plan.role is EdgeRole.DEFERRED:
                self._route_deferred(context, plan)
        self._place_labels(context, report)
        return report

    # ─── Units ───────────────────────────────────────────────────────────────

    def _reset(self, context: LayoutContext) -> None:
        keep = self.strategy.keeps_positions
        for node in context.index.nodes.values():
            node.layer = node.order = None
            if not keep:
                node.x = node.y = None
            for port in node.ports:
                port.x = port.y = None
            if node.label is not None:
                node.label.x = node.label.y = None
        for edge in context.index.edges.values():
            edge.reversed = False
            edge.source_point = edge.target_point = None
            edge.bend_points = []
            if edge.label is not None:
                edge.label.x = edge.label.y = None

    def _run_wave(
        self, context: LayoutContext, wave: list[LayoutUnit]
    ) -> list[tuple[LayoutUnit, UnitReport, UnitFailure | None]]:
        if self.options.workers > 1 and len(wave) > 1:
            with ThreadPoolExecutor(max_workers=self.options.workers) as pool:
                results = list(pool.map(lambda unit: self._run_unit(context, unit), wave))
        else:
            results = [self._run_unit(context, unit) for unit in wave]
        return [(unit, unit_report, failure) for unit, (unit_report, failure) in zip(wave, results)]

    def _run_unit(self, context: LayoutContext, unit: LayoutUnit) -> tuple[UnitReport, UnitFailure | None]:
        strategy: LayoutStrategy = self.strategy(context)
        try:
            return strategy.layout(unit.graph, unit.options), None
        except LayoutError as e:
            logger.warning("unit %s: %s; falling back to grid placement", unit.name, e)
            fallback = GridLayout(context).layout(unit.graph, unit.options)
            return fallback, UnitFailure(unit=unit.name, error=e)

    def _fit(self, context: LayoutContext, unit: LayoutUnit, report: LayoutReport) -> None:
        """Move a unit's content inside its owner's insets and size the owner around it."""
        options = unit.options
        if unit.owner is None:
            left = top = options.padding
            side = options.padding
        else:
            side, top = compound_insets(unit.owner, options)
            left = side

        plans = [p for p in context.plans(unit) if p.role is not EdgeRole.DEFERRED]
        box = _content_box(unit, plans)
        if box is None:
            box = (left, top, left, top) if self.strategy.keeps_positions else (0.0, 0.0, 0.0, 0.0)

        if self.strategy.keeps_positions:
            min_x, min_y = left, top
        else:
            min_x, min_y = box[0], box[1]
            dx, dy = left - min_x, top - min_y
            for node in unit.graph.nodes:
                node.x += dx
                node.y += dy
            for plan in plans:
                _translate_edge(plan.edge, dx, dy)
            min_x, min_y = left, top
            box = (left, top, box[2] + dx, box[3] + dy)

        content_w = max(box[2] - min_x, 0.0)
        content_h = max(box[3] - min_y, 0.0)
        if unit.owner is not None:
            fit_compound(unit.owner, content_w, content_h, options)
        else:
            report.width = left + content_w + side
            report.height = top + content_h + side

    # ─── Merge ───────────────────────────────────────────────────────────────

    def _merge(self, context: LayoutContext) -> None:
        """Unit-relative coordinates -> absolute ones, parents first."""
        for node in context.root.walk():
            parent = context.index.parent_of[node.id]
            px, py = (parent.x, parent.y) if parent is not None else (0.0, 0.0)
            node.x = (node.x or 0.0) + px
            node.y = (node.y or 0.0) + py
        for plan in context.edge_plans.values():
            owner = plan.unit.owner
            if plan.role is EdgeRole.DEFERRED or owner is None:
                continue
            _translate_edge(plan.edge, owner.x, owner.y)

    def _endpoint(self, context: LayoutContext, node_id: str, port_id: str | None, toward: Point) -> Point:
        node = context.index.nodes[node_id]
        if port_id is not None:
            port = node.port(port_id)
            if port.x is not None and port.y is not None:
                return Point(node.x + port.x, node.y + port.y)
        return clip_to_box((node.x, node.y, node.width, node.height), toward)

    def _attach_cross(self, context: LayoutContext, plan: EdgePlan) -> None:
        edge = plan.edge
        if edge.source_point is None or edge.target_point is None:
            return
        orthogonal = self.options.edge_routing is EdgeRouting.ORTHOGONAL
        route = edge.route()
        if plan.source != edge.source:
            route = self._extend(context, edge.source, edge.source_port, route[0], orthogonal)[::-1] + route[1:]
        if plan.target != edge.target:
            route = route[:-1] + self._extend(context, edge.target, edge.target_port, route[-1], orthogonal)
        if orthogonal:
            route = simplify_path(route)
        edge.source_point, edge.target_point = route[0], route[-1]
        edge.bend_points = route[1:-1]

    def _extend(
        self, context: LayoutContext, node_id: str, port_id: str | None, border: Point, orthogonal: bool
    ) -> list[Point]:
        """Points from a projection border point to the real endpoint inside it."""
        node = context.index.nodes[node_id]
        center = Point(node.x + node.width / 2.0, node.y + node.height / 2.0)
        if not orthogonal:
            return [border, self._endpoint(context, node_id, port_id, border)]
        real = self._endpoint(context, node_id, port_id, center)
        if self.options.direction.is_horizontal:
            elbow = Point(border.x, real.y)
        else:
            elbow = Point(real.x, border.y)
        real = self._endpoint(context, node_id, port_id, elbow)
        return [border, elbow, real]

    def _route_deferred(self, context: LayoutContext, plan: EdgePlan) -> None:
        edge = plan.edge
        source = context.index.nodes[edge.source]
        target = context.index.nodes[edge.target]
        route = straight_route(
            (source.x, source.y, source.width, source.height),
            (target.x, target.y, target.width, target.height),
        )
        if edge.source_port is not None:
            route[0] = self._endpoint(context, edge.source, edge.source_port, route[-1])
        if edge.target_port is not None:
            route[-1] = self._endpoint(context, edge.target, edge.target_port, route[0])
        edge.source_point, edge.target_point = route[0], route[-1]
        edge.bend_points = []
        logger.debug("edge %s routed straight after merge", edge.id)

    def _place_labels(self, context: LayoutContext, report: LayoutReport) -> None:
        for plan in context.edge_plans.values():
            warning = place_edge_label(plan.edge, plan.unit.options)
            if warning is not None:
                report.warnings.append(warning)
        for node in context.index.nodes.values():
            place_node_label(node, context.options_for(node))


def _content_box(unit: LayoutUnit, plans: list[EdgePlan]) -> tuple[float, float, float, float] | None:
    """Bounding box of a unit's direct children and the routes it owns."""
    xs: list[float] = []
    ys: list[float] = []
    for node in unit.graph.nodes:
        xs.extend((node.x, node.x + node.width))
        ys.extend((node.y, node.y + node.height))
    for plan in plans:
        for p in plan.edge.route():
            xs.append(p.x)
            ys.append(p.y)
    if not xs:
        return None
    return (min(xs), min(ys), max(xs), max(ys))


def _translate_edge(edge: Edge, dx: float, dy: float) -> None:
    if edge.source_point is not None:
        edge.source_point = edge.source_point.translated(dx, dy)
    if edge.target_point is not None:
        edge.target_point = edge.target_point.translated(dx, dy)
    edge.bend_points = [p.translated(dx, dy) for p in edge.bend_points]


def layout(graph: Graph, options: LayoutOptions | Mapping[str, Any] | None = None, **overrides: Any) -> LayoutReport:
    """Lay out ``graph`` in place and return the report.

    ``options`` is a ``LayoutOptions`` or an ELK-style mapping; keyword
    overrides use option keys or field names (``edge_routing="POLYLINE"``).
    Raises ``InvalidOptionError`` / ``InvalidGraphError`` for bad input;
    every other problem is reported in the returned ``LayoutReport``.
    """
    if not isinstance(options, LayoutOptions):
        options = LayoutOptions.from_mapping(options)
    options = options.with_overrides(overrides)
    return LayoutEngine(options).run(graph)
