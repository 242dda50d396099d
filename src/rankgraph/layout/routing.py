"""Edge routing in the internal frame.

Every working edge is a chain of hops, one per pair of adjacent layers
(long edges hop through their dummies). Routes are built hop by hop:

* ORTHOGONAL: vertical runs through the layers, horizontal jogs in the
  channel between two layers; jogs that share a channel get distinct
  tracks (greedy interval colouring).
* POLYLINE: straight segments through the dummy positions.
* SPLINES: the polyline skeleton turned into cubic Bezier control points
  (Catmull-Rom), listed as bend points.

Ports on the wrong side of their node get a short detour of
``spacing.edgeNode`` around it. Routes always run from the original source
to the original target, so reversed edges are turned back here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rankgraph.config import LayoutOptions
from rankgraph.ir.graph import Point
from rankgraph.layout.placement import LayerGeometry
from rankgraph.layout.types import AugmentedGraph, LEdge, LNode, LPort, RoutedEdge
from rankgraph.types import EdgeRouting, PortSide

logger = logging.getLogger(__name__)

_EPS: float = 1e-6

Box = tuple[float, float, float, float]


# ─── Geometry helpers ────────────────────────────────────────────────────────


def simplify_path(points: list[Point]) -> list[Point]:
    """Drop repeated points and interior points on a straight line."""
    deduped: list[Point] = []
    for p in points:
        if deduped and abs(deduped[-1].x - p.x) < _EPS and abs(deduped[-1].y - p.y) < _EPS:
            continue
        deduped.append(p)
    if len(deduped) <= 2:
        return deduped

    result: list[Point] = [deduped[0]]
    for i in range(1, len(deduped) - 1):
        prev = result[-1]
        curr = deduped[i]
        nxt = deduped[i + 1]
        cross = (curr.x - prev.x) * (nxt.y - curr.y) - (curr.y - prev.y) * (nxt.x - curr.x)
        if abs(cross) < _EPS:
            # keep the point when the path doubles back on itself
            dot = (curr.x - prev.x) * (nxt.x - curr.x) + (curr.y - prev.y) * (nxt.y - curr.y)
            if dot >= 0:
                continue
        result.append(curr)
    result.append(deduped[-1])
    return result


def clip_to_box(box: Box, toward: Point) -> Point:
    """Point where the ray from the box center toward ``toward`` leaves the box."""
    x, y, w, h = box
    cx, cy = x + w / 2.0, y + h / 2.0
    dx, dy = toward.x - cx, toward.y - cy
    if abs(dx) < _EPS and abs(dy) < _EPS:
        return Point(cx, cy)
    scales = []
    if abs(dx) > _EPS:
        scales.append((w / 2.0) / abs(dx))
    if abs(dy) > _EPS:
        scales.append((h / 2.0) / abs(dy))
    t = min(scales)
    return Point(cx + dx * t, cy + dy * t)


def _contains(box: Box, p: Point) -> bool:
    x, y, w, h = box
    return x - _EPS <= p.x <= x + w + _EPS and y - _EPS <= p.y <= y + h + _EPS


def straight_route(source: Box, target: Box) -> list[Point]:
    """Center-to-center segment clipped to both boxes.

    When one box contains the other's center (an edge to a descendant), the
    container end sits on its own top border above the other end.
    """
    sc = Point(source[0] + source[2] / 2.0, source[1] + source[3] / 2.0)
    tc = Point(target[0] + target[2] / 2.0, target[1] + target[3] / 2.0)
    if _contains(source, tc) and not _contains(target, sc):
        return [Point(tc.x, source[1]), clip_to_box(target, Point(tc.x, source[1]))]
    if _contains(target, sc) and not _contains(source, tc):
        return [clip_to_box(source, Point(sc.x, target[1])), Point(sc.x, target[1])]
    return [clip_to_box(source, tc), clip_to_box(target, sc)]


def to_splines(skeleton: list[Point]) -> list[Point]:
    """Catmull-Rom interpolation of ``skeleton`` as cubic Bezier segments.

    Returns start point, then (c1, c2, end) per segment; a two-point
    skeleton stays a straight line.
    """
    if len(skeleton) <= 2:
        return list(skeleton)
    result: list[Point] = [skeleton[0]]
    last = len(skeleton) - 1
    for i in range(last):
        p0 = skeleton[max(i - 1, 0)]
        p1 = skeleton[i]
        p2 = skeleton[i + 1]
        p3 = skeleton[min(i + 2, last)]
        result.append(Point(p1.x + (p2.x - p0.x) / 6.0, p1.y + (p2.y - p0.y) / 6.0))
        result.append(Point(p2.x - (p3.x - p1.x) / 6.0, p2.y - (p3.y - p1.y) / 6.0))
        result.append(p2)
    return result


def self_loop_route(box: Box, i: int, count: int, options: LayoutOptions) -> list[Point]:
    """Loop ``i`` of ``count`` around the trailing (east) side of ``box``.

    Loops nest outwards and stay within the node's vertical extent.
    """
    x, y, w, h = box
    cy = y + h / 2.0
    offset = (i + 1) * h / (2 * count + 2)
    outer = x + w + options.spacing_edge_node + i * options.spacing_edge_edge
    return [
        Point(x + w, cy - offset),
        Point(outer, cy - offset),
        Point(outer, cy + offset),
        Point(x + w, cy + offset),
    ]


# ─── Hops ────────────────────────────────────────────────────────────────────


def _abs(lnode: LNode, port: LPort) -> Point:
    return Point(lnode.x + port.x, lnode.y + port.y)


def hops(aug: AugmentedGraph) -> list[tuple[LEdge, list[LEdge]]]:
    """Every routed working edge with its per-layer hops, by stable edge index."""
    graph = aug.graph
    result: list[tuple[LEdge, list[LEdge]]] = []
    for src, tgt, attrs in graph.edges(data=True):
        if aug.node(src).is_dummy or aug.node(tgt).is_dummy:
            continue
        edge: LEdge = attrs["data"]
        result.append((edge, [edge]))
    for long_edge in aug.long_edges.values():
        chain = [long_edge.edge.source, *long_edge.dummy_ids, long_edge.edge.target]
        segments = [
            graph.edges[chain[i], chain[i + 1], f"{long_edge.edge.id}#{i}"]["data"] for i in range(len(chain) - 1)
        ]
        result.append((long_edge.edge, segments))
    result.sort(key=lambda item: item[0].index)
    return result


def _leave(lnode: LNode, port: LPort, clearance: float) -> list[Point]:
    """Points from a source port to where the route can head down."""
    p = _abs(lnode, port)
    if lnode.is_dummy or port.side is PortSide.SOUTH:
        return [p]
    if port.side is PortSide.EAST:
        return [p, Point(lnode.x + lnode.extent + clearance, p.y)]
    if port.side is PortSide.WEST:
        return [p, Point(lnode.x - clearance, p.y)]
    up = lnode.y - clearance
    side_x = lnode.x + lnode.extent + clearance if port.x >= lnode.width / 2.0 else lnode.x - clearance
    return [p, Point(p.x, up), Point(side_x, up)]


def _enter(lnode: LNode, port: LPort, clearance: float) -> list[Point]:
    """Points from where the route arrives from above to a target port."""
    p = _abs(lnode, port)
    if lnode.is_dummy or port.side is PortSide.NORTH:
        return [p]
    if port.side is PortSide.EAST:
        return [Point(lnode.x + lnode.extent + clearance, p.y), p]
    if port.side is PortSide.WEST:
        return [Point(lnode.x - clearance, p.y), p]
    down = lnode.y + lnode.height + clearance
    side_x = lnode.x + lnode.extent + clearance if port.x >= lnode.width / 2.0 else lnode.x - clearance
    return [Point(side_x, down), Point(p.x, down), p]


# ─── Channel tracks ──────────────────────────────────────────────────────────


@dataclass
class ChannelPlan:
    """Track of every orthogonal jog, keyed by hop id, and track counts per channel."""

    tracks: dict[str, int] = field(default_factory=dict)
    counts: list[int] = field(default_factory=list)


def plan_channels(aug: AugmentedGraph, options: LayoutOptions) -> ChannelPlan:
    plan = ChannelPlan(counts=[0] * max(aug.layer_count - 1, 0))
    if options.edge_routing is not EdgeRouting.ORTHOGONAL:
        return plan

    clearance = options.spacing_edge_node
    jogs: dict[int, list[tuple[float, float, int, str]]] = {}
    for _, segments in hops(aug):
        for hop in segments:
            src = aug.node(hop.source)
            tgt = aug.node(hop.target)
            x_from = _leave(src, hop.source_port, clearance)[-1].x
            x_to = _enter(tgt, hop.target_port, clearance)[0].x
            if abs(x_from - x_to) < _EPS:
                continue
            jogs.setdefault(src.layer, []).append((min(x_from, x_to), max(x_from, x_to), hop.index, hop.id))

    for gap, intervals in jogs.items():
        intervals.sort()
        ends: list[float] = []
        for lo, hi, _, hop_id in intervals:
            for track, end in enumerate(ends):
                if end < lo - _EPS:
                    ends[track] = hi
                    break
            else:
                track = len(ends)
                ends.append(hi)
            plan.tracks[hop_id] = track
        plan.counts[gap] = len(ends)
    return plan


# ─── Routes ──────────────────────────────────────────────────────────────────


def _orthogonal(
    aug: AugmentedGraph,
    segments: list[LEdge],
    geometry: LayerGeometry,
    plan: ChannelPlan,
    clearance: float,
) -> list[Point]:
    points: list[Point] = []
    for hop in segments:
        src = aug.node(hop.source)
        tgt = aug.node(hop.target)
        leave = _leave(src, hop.source_port, clearance)
        enter = _enter(tgt, hop.target_port, clearance)
        points.extend(leave)
        if hop.id in plan.tracks:
            start, end = geometry.gap(src.layer)
            count = plan.counts[src.layer]
            track_y = start + (plan.tracks[hop.id] + 1) * (end - start) / (count + 1)
            points.append(Point(leave[-1].x, track_y))
            points.append(Point(enter[0].x, track_y))
        points.extend(enter)
    return points


def _polyline(aug: AugmentedGraph, segments: list[LEdge], geometry: LayerGeometry, clearance: float) -> list[Point]:
    first = segments[0]
    points = _leave(aug.node(first.source), first.source_port, clearance)
    for hop in segments[:-1]:
        dummy = aug.node(hop.target)
        points.append(Point(dummy.x, geometry.tops[dummy.layer]))
        points.append(Point(dummy.x, geometry.bottom(dummy.layer)))
    last = segments[-1]
    points.extend(_enter(aug.node(last.target), last.target_port, clearance))
    return points


def _movable(lnode: LNode, port: LPort) -> bool:
    return port.origin is None or not lnode.port_constraints.is_side_fixed


def _adapt_ends(aug: AugmentedGraph, routes: list[tuple[LEdge, list[Point]]]) -> list[list[Point]]:
    """Attach free ends where the first/last segment crosses the node border.

    A port moves once, toward the mean of the points its edges head for;
    every edge on it then starts or ends at that one position.
    """
    pull: dict[int, tuple[LPort, LNode, list[Point]]] = {}
    for edge, points in routes:
        if len(points) < 2:
            continue
        ends = (
            (edge.source_port, aug.node(edge.source), points[1]),
            (edge.target_port, aug.node(edge.target), points[-2]),
        )
        for port, owner, neighbor in ends:
            if _movable(owner, port):
                pull.setdefault(id(port), (port, owner, []))[2].append(neighbor)

    for port, owner, neighbors in pull.values():
        mean = Point(
            sum(p.x for p in neighbors) / len(neighbors),
            sum(p.y for p in neighbors) / len(neighbors),
        )
        at = clip_to_box((owner.x, owner.y, owner.width, owner.height), mean)
        port.x, port.y = at.x - owner.x, at.y - owner.y

    adapted: list[list[Point]] = []
    for edge, points in routes:
        result = list(points)
        if len(result) >= 2:
            if id(edge.source_port) in pull:
                result[0] = _abs(aug.node(edge.source), edge.source_port)
            if id(edge.target_port) in pull:
                result[-1] = _abs(aug.node(edge.target), edge.target_port)
        adapted.append(result)
    return adapted


def _side_shift(port: LPort, d: float) -> tuple[float, float]:
    return (0.0, d) if port.side in (PortSide.EAST, PortSide.WEST) else (d, 0.0)


def _offset_route(points: list[Point], edge: LEdge, d: float, orthogonal: bool) -> list[Point]:
    if len(points) < 2:
        return list(points)
    sx, sy = _side_shift(edge.source_port, d)
    tx, ty = _side_shift(edge.target_port, d)
    inner_dy = d if orthogonal else 0.0
    shifted = [points[0].translated(sx, sy)]
    shifted.extend(p.translated(d, inner_dy) for p in points[1:-1])
    shifted.append(points[-1].translated(tx, ty))
    return shifted


def route_edges(
    aug: AugmentedGraph,
    geometry: LayerGeometry,
    plan: ChannelPlan,
    options: LayoutOptions,
) -> list[RoutedEdge]:
    """Route every working edge (bundle members included), original direction."""
    routing = options.edge_routing
    clearance = options.spacing_edge_node
    skeletons: list[tuple[LEdge, list[Point]]] = []
    for edge, segments in hops(aug):
        if routing is EdgeRouting.ORTHOGONAL:
            points = _orthogonal(aug, segments, geometry, plan, clearance)
        else:
            points = _polyline(aug, segments, geometry, clearance)
        skeletons.append((edge, simplify_path(points)))

    if routing is not EdgeRouting.ORTHOGONAL and options.adapt_port_positions:
        adapted = _adapt_ends(aug, skeletons)
        skeletons = [(edge, simplify_path(points)) for (edge, _), points in zip(skeletons, adapted)]

    routed: list[RoutedEdge] = []
    for edge, points in skeletons:
        if routing is EdgeRouting.SPLINES:
            points = to_splines(points)
        members = [edge, *aug.bundles.get(edge.id, [])]
        count = len(members)
        for i, member in enumerate(members):
            member_points = points
            if count > 1:
                d = (i - (count - 1) / 2.0) * options.spacing_edge_edge / 2.0
                member_points = _offset_route(points, edge, d, routing is EdgeRouting.ORTHOGONAL)
            if member.reversed:
                member_points = list(reversed(member_points))
            routed.append(RoutedEdge(edge=member, points=member_points))
    return routed


def route_self_loops(
    aug: AugmentedGraph,
    self_loops: dict[str, list[LEdge]],
    options: LayoutOptions,
) -> list[RoutedEdge]:
    routed: list[RoutedEdge] = []
    for node_id, loops in self_loops.items():
        if node_id not in aug.graph:
            continue
        lnode = aug.node(node_id)
        box = (lnode.x, lnode.y, lnode.width, lnode.height)
        ordered = sorted(loops, key=lambda e: e.index)
        for i, loop in enumerate(ordered):
            points = self_loop_route(box, i, len(ordered), options)
            if options.edge_routing is EdgeRouting.SPLINES:
                points = to_splines(points)
            routed.append(RoutedEdge(edge=loop, points=points))
    return routed
