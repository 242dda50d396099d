"""Sugiyama-style layered layout of one layout unit.

Phases, per connected component:
  1. Cycle breaking (depth-first back edges)
  2. Layer assignment (longest path or Coffman-Graham)
  3. Dummy node insertion (and parallel-edge bundling)
  4. Crossing minimization (median / barycenter sweeps)
  5. Coordinate assignment (isotonic straightening, layer bands, overlap removal)
  6. Edge routing (orthogonal / polyline / splines, self-loops)

Components are then packed side by side and mapped from the internal
top-down frame to the requested direction. Positions are written relative
to the unit's content origin; the orchestrator adds paddings and turns them
into absolute coordinates.
"""

from __future__ import annotations

import logging
from typing import Any

import networkx as nx

from rankgraph.config import LayoutOptions
from rankgraph.errors import ConvergenceWarning
from rankgraph.ir.graph import Graph, Node
from rankgraph.layout.builder import UnitGraph, build_unit_graph, orient_ports
from rankgraph.layout.components import ComponentLayout, pack_components, split_components
from rankgraph.layout.context import LayoutContext, LayoutUnit
from rankgraph.layout.crossings import minimise_crossings
from rankgraph.layout.cycles import remove_cycles
from rankgraph.layout.dummies import insert_dummy_nodes
from rankgraph.layout.labels import reserve_label_space
from rankgraph.layout.layering import assign_layers
from rankgraph.layout.overlap import Box, remove_overlaps
from rankgraph.layout.placement import assign_x, assign_y, cluster_reserve, separate_clusters
from rankgraph.layout.routing import plan_channels, route_edges, route_self_loops
from rankgraph.layout.sizing import compound_insets, distribute_ports, fit_compound
from rankgraph.layout.types import AugmentedGraph, LNode, PhaseSnapshot, UnitReport

logger = logging.getLogger(__name__)


class SugiyamaLayout:
    """The ``layered`` strategy."""

    keeps_positions = False

    def __init__(self, context: LayoutContext) -> None:
        self.context = context

    def layout(self, graph: Graph, options: LayoutOptions) -> UnitReport:
        unit = self.context.unit_for(graph)
        report = UnitReport(graph=graph)
        built = build_unit_graph(self.context, unit)
        insets = self._cluster_insets(unit)

        if options.separate_connected_components:
            parts = split_components(built, unit.flatten)
        else:
            parts = [built.graph]
        components = [self._layout_component(part, built, insets, options, unit, report) for part in parts]

        spacing = max(options.spacing_component, options.padding)
        pack_components(components, spacing)
        self._write_back(unit, built, components)

        logger.debug(
            "unit %s: %d nodes, %d components laid out",
            unit.name,
            built.graph.number_of_nodes(),
            len(components),
        )
        return report

    # ─── Pipeline ────────────────────────────────────────────────────────────

    def _layout_component(
        self,
        part,
        built: UnitGraph,
        insets: dict[str, float],
        options: LayoutOptions,
        unit: LayoutUnit,
        report: UnitReport,
    ) -> ComponentLayout:
        dag, reversed_keys = remove_cycles(part)
        orient_ports(dag)
        self._snapshot(report, options, "cycle breaking", unit, dag, reversed=sorted(reversed_keys))

        layers = assign_layers(dag, options)
        aug = insert_dummy_nodes(dag, layers, options.concentrate)
        ordering = [[] for _ in range(aug.layer_count)]
        for node_id in aug.graph.nodes:
            ordering[aug.layers[node_id]].append(node_id)
        self._snapshot(report, options, "layering", unit, aug.graph, ordering)

        crossing = minimise_crossings(aug, options, unit.name)
        if crossing.warning is not None:
            report.warnings.append(crossing.warning)
        self._snapshot(report, options, "crossing minimization", unit, aug.graph, crossing.layers)

        for node_id in aug.graph.nodes:
            distribute_ports(aug.node(node_id))
        assign_x(aug, crossing.layers, options)
        if unit.flatten:
            separate_clusters(aug, insets, options)
        plan = plan_channels(aug, options)
        label_space = reserve_label_space(aug, built.frame, options)
        reserve = cluster_reserve(aug, insets) if unit.flatten else 0.0
        geometry = assign_y(aug, crossing.layers, options, plan.counts, label_space, reserve)
        if self._remove_overlaps(aug, options, unit, report):
            # track positions scale to the gap height
            plan = plan_channels(aug, options)
        self._snapshot(report, options, "placement", unit, aug.graph, crossing.layers)

        routes = route_edges(aug, geometry, plan, options)
        routes.extend(route_self_loops(aug, built.self_loops, options))
        self._snapshot(
            report,
            options,
            "routing",
            unit,
            aug.graph,
            crossing.layers,
            routes={r.edge.id: [(p.x, p.y) for p in r.points] for r in routes},
        )
        return ComponentLayout(aug=aug, routes=routes)

    def _snapshot(
        self,
        report: UnitReport,
        options: LayoutOptions,
        phase: str,
        unit: LayoutUnit,
        graph: nx.MultiDiGraph,
        ordering: list[list[str]] | None = None,
        **details: Any,
    ) -> None:
        if not options.debug_mode:
            return
        positions = {}
        for node_id in graph.nodes:
            lnode: LNode = graph.nodes[node_id]["data"]
            positions[node_id] = (lnode.x, lnode.y)
        layers = [list(layer) for layer in ordering or []]
        report.snapshots.append(PhaseSnapshot(phase=phase, unit=unit.name, layers=layers, positions=positions, **details))

    def _cluster_insets(self, unit: LayoutUnit) -> dict[str, float]:
        insets: dict[str, float] = {}
        for cluster in self.context.clusters(unit):
            side, top = compound_insets(cluster, self.context.options_for(cluster))
            insets[cluster.id] = max(side, top)
        return insets

    def _remove_overlaps(
        self,
        aug: AugmentedGraph,
        options: LayoutOptions,
        unit: LayoutUnit,
        report: UnitReport,
    ) -> bool:
        """Push overlapping real nodes apart before routing. Returns True if any node moved."""
        nodes = [aug.node(n) for n in aug.graph.nodes if not aug.node(n).is_dummy]
        boxes = [Box(n.id, n.x, n.y, n.extent, n.height, n.index) for n in nodes]
        converged = remove_overlaps(
            boxes, options.overlap_mode, options.spacing_node_node, options.layer_gap, options.maxiter
        )
        moved = False
        for lnode, box in zip(nodes, boxes):
            if box.x != lnode.x or box.y != lnode.y:
                logger.debug("overlap removal moved %s by (%g, %g)", lnode.id, box.x - lnode.x, box.y - lnode.y)
                lnode.x, lnode.y = box.x, box.y
                moved = True
        if not converged:
            warning = ConvergenceWarning("overlap removal", f"overlaps remain after {options.maxiter} passes", unit.name)
            logger.warning("%s", warning)
            report.warnings.append(warning)
        return moved

    # ─── Output ──────────────────────────────────────────────────────────────

    def _write_back(
        self,
        unit: LayoutUnit,
        built: UnitGraph,
        components: list[ComponentLayout],
    ) -> None:
        frame = built.frame
        bounds = [c.bounds() for c in components]
        min_x = min((b[0] for b in bounds), default=0.0)
        min_y = min((b[1] for b in bounds), default=0.0)
        for component in components:
            component.translate(-min_x, -min_y)
        internal_h = max((b[3] - min_y for b in bounds), default=0.0)

        content: dict[str, tuple[float, float]] = {}
        for node_id, node in built.members.items():
            lnode = built.lnode(node_id)
            fx, fy, _, _ = frame.rect_out(lnode.x, lnode.y, lnode.width, lnode.height, internal_h)
            content[node_id] = (fx, fy)
            node.layer, node.order = lnode.layer, lnode.order
            for lport in lnode.ports:
                if lport.origin is None:
                    continue
                px, py = frame.point_out(lnode.x + lport.x, lnode.y + lport.y, internal_h)
                lport.origin.x, lport.origin.y = px - fx, py - fy
                lport.origin.side = frame.side_out(lport.side)

        for component in components:
            for routed in component.routes:
                edge = routed.edge.origin
                if edge is None or not routed.points:
                    continue
                points = frame.map_points(routed.points, internal_h)
                edge.source_point = points[0]
                edge.target_point = points[-1]
                edge.bend_points = points[1:-1]

        if unit.flatten:
            self._fit_clusters(unit, content)
        nodes = unit.graph.walk() if unit.flatten else iter(unit.graph.nodes)
        for node in nodes:
            x, y = content[node.id]
            parent = self.context.index.parent_of[node.id]
            if parent is not unit.owner:
                px, py = content[parent.id]
                x, y = x - px, y - py
            node.x, node.y = x, y

    def _fit_clusters(self, unit: LayoutUnit, content: dict[str, tuple[float, float]]) -> None:
        """Size every cluster box around its children, deepest first."""
        for cluster in reversed(self.context.clusters(unit)):
            assert cluster.children is not None
            children: list[Node] = cluster.children.nodes
            left = min(content[c.id][0] for c in children)
            top = min(content[c.id][1] for c in children)
            right = max(content[c.id][0] + c.width for c in children)
            bottom = max(content[c.id][1] + c.height for c in children)
            options = self.context.options_for(cluster)
            side, top_inset = compound_insets(cluster, options)
            fit_compound(cluster, right - left, bottom - top, options)
            content[cluster.id] = (left - side, top - top_inset)
            cluster.layer = cluster.order = None
