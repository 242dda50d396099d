"""Edge and node label placement.

Edge labels are placed on the final, absolute route:

* CENTER labels sit at the arc-length midpoint of the route, beside the
  segment it falls on, ``spacing.edgeLabel`` away from it.
* HEAD / TAIL labels sit ``labelDistance`` away from the target / source
  point, along the last / first segment turned by ``labelAngle`` degrees.

A label that would cover one of its edge's bend points is pushed further
out, at most ``maxiter`` times. Node labels are centered on leaves and
top-centered inside compounds.
"""

from __future__ import annotations

import logging
import math

from rankgraph.config import LayoutOptions
from rankgraph.errors import ConvergenceWarning
from rankgraph.ir.graph import Edge, Label, Node, Point
from rankgraph.layout.frame import Frame
from rankgraph.layout.types import AugmentedGraph, LEdge
from rankgraph.types import LabelPlacement

logger = logging.getLogger(__name__)


def reserve_label_space(aug: AugmentedGraph, frame: Frame, options: LayoutOptions) -> list[float]:
    """Extra channel height per layer gap for CENTER labels (internal frame)."""
    space = [0.0] * max(aug.layer_count - 1, 0)
    edges: list[LEdge] = []
    for src, tgt, attrs in aug.graph.edges(data=True):
        if not aug.node(src).is_dummy and not aug.node(tgt).is_dummy:
            edges.append(attrs["data"])
    edges.extend(long_edge.edge for long_edge in aug.long_edges.values())
    for members in aug.bundles.values():
        edges.extend(members)

    for edge in edges:
        origin = edge.origin
        if origin is None or origin.label is None or origin.label.placement is not LabelPlacement.CENTER:
            continue
        first = aug.layers[edge.source]
        last = aug.layers[edge.target]
        if last <= first:
            continue
        gap = first + (last - first - 1) // 2
        _, height = frame.size_in(origin.label.width, origin.label.height)
        space[gap] = max(space[gap], height + 2.0 * options.spacing_edge_label)
    return space


# ─── Edge labels ─────────────────────────────────────────────────────────────


def _covers(x: float, y: float, label: Label, points: list[Point]) -> bool:
    return any(x <= p.x <= x + label.width and y <= p.y <= y + label.height for p in points)


def _midpoint(route: list[Point]) -> tuple[Point, float, float]:
    """Arc-length midpoint and the unit direction of its segment."""
    lengths = [math.hypot(b.x - a.x, b.y - a.y) for a, b in zip(route, route[1:])]
    half = sum(lengths) / 2.0
    for (a, b), length in zip(zip(route, route[1:]), lengths):
        if length > 0 and half <= length:
            t = half / length
            return Point(a.x + (b.x - a.x) * t, a.y + (b.y - a.y) * t), (b.x - a.x) / length, (b.y - a.y) / length
        half -= length
    return route[0], 1.0, 0.0


def _place_center(edge: Edge, route: list[Point], options: LayoutOptions) -> tuple[float, float, Point]:
    label = edge.label
    assert label is not None
    mid, ux, uy = _midpoint(route)
    gap = options.spacing_edge_label
    if abs(ux) >= abs(uy):
        # along a horizontal run: above it
        return mid.x - label.width / 2.0, mid.y - gap - label.height, Point(0.0, -1.0)
    return mid.x + gap, mid.y - label.height / 2.0, Point(1.0, 0.0)


def _place_end(edge: Edge, route: list[Point], options: LayoutOptions) -> tuple[float, float, Point]:
    label = edge.label
    assert label is not None
    if label.placement is LabelPlacement.HEAD:
        anchor, toward = route[-1], route[-2]
    else:
        anchor, toward = route[0], route[1]
    dx, dy = toward.x - anchor.x, toward.y - anchor.y
    length = math.hypot(dx, dy) or 1.0
    angle = math.radians(options.label_angle)
    ux = (dx * math.cos(angle) - dy * math.sin(angle)) / length
    uy = (dx * math.sin(angle) + dy * math.cos(angle)) / length
    cx = anchor.x + ux * options.label_distance
    cy = anchor.y + uy * options.label_distance
    return cx - label.width / 2.0, cy - label.height / 2.0, Point(ux, uy)


def place_edge_label(edge: Edge, options: LayoutOptions) -> ConvergenceWarning | None:
    """Set ``edge.label`` x/y from the edge's absolute route."""
    label = edge.label
    route = edge.route()
    if label is None or len(route) < 2:
        return None

    if label.placement is LabelPlacement.CENTER:
        x, y, push = _place_center(edge, route, options)
    else:
        x, y, push = _place_end(edge, route, options)

    step = max(label.width, label.height) / 2.0 + options.spacing_edge_label
    bends = edge.bend_points
    for _ in range(options.maxiter):
        if not _covers(x, y, label, bends):
            break
        x += push.x * step
        y += push.y * step
    label.x, label.y = x, y

    if _covers(x, y, label, bends):
        warning = ConvergenceWarning("label placement", f"label of edge '{edge.id}' still covers a bend point")
        logger.warning("%s", warning)
        return warning
    return None


# ─── Node labels ─────────────────────────────────────────────────────────────


def place_node_label(node: Node, options: LayoutOptions) -> None:
    label = node.label
    if label is None or node.x is None or node.y is None:
        return
    label.x = node.x + (node.width - label.width) / 2.0
    if node.is_compound:
        label.y = node.y + options.padding
    else:
        label.y = node.y + (node.height - label.height) / 2.0
