"""Node sizing and port placement on node borders.

Leaf nodes are grown to satisfy their ``nodeSize.constraints`` before
layering; compound nodes are sized from their laid-out children by the
orchestrator. Ports are spread along their side once the crossing
minimizer has fixed their order.
"""

from __future__ import annotations

from rankgraph.config import LayoutOptions
from rankgraph.errors import UnsatisfiableConstraintError
from rankgraph.ir.graph import Node
from rankgraph.layout.types import LNode
from rankgraph.types import PortConstraints, PortSide, SizeConstraint

# Inset between a node label and the node border.
NODE_LABEL_PADDING: float = 5.0


def apply_size_constraints(node: Node, options: LayoutOptions) -> None:
    """Grow ``node`` (final frame) to satisfy its size constraints.

    Port sides must already be resolved. Raises
    ``UnsatisfiableConstraintError`` when fixed port order or positions
    cannot fit a node that is not allowed to grow for its ports.
    """
    constraints = options.node_size_constraints
    width, height = node.width, node.height

    if SizeConstraint.MINIMUM_SIZE in constraints:
        min_w, min_h = options.minimum_size()
        width = max(width, min_w)
        height = max(height, min_h)

    if SizeConstraint.NODE_LABELS in constraints and node.label is not None:
        width = max(width, node.label.width + 2 * NODE_LABEL_PADDING)
        height = max(height, node.label.height + 2 * NODE_LABEL_PADDING)

    by_side: dict[PortSide, list[float]] = {}
    for port in node.ports:
        side = port.side
        extent = port.width if side.is_vertical else port.height
        by_side.setdefault(side, []).append(extent)

    if SizeConstraint.PORTS in constraints:
        for side, extents in by_side.items():
            needed = sum(extents) + (len(extents) + 1) * options.spacing_port_port
            if side.is_vertical:
                width = max(width, needed)
            elif side is not PortSide.UNDEFINED:
                height = max(height, needed)

    node.width, node.height = width, height

    if SizeConstraint.PORTS in constraints or not options.port_constraints.is_order_fixed:
        return

    for side, extents in by_side.items():
        if side is PortSide.UNDEFINED or len(extents) < 2:
            continue
        length = width if side.is_vertical else height
        needed = sum(extents) + (len(extents) - 1) * options.spacing_port_port
        if needed > length:
            raise UnsatisfiableConstraintError(
                f"node '{node.id}': {len(extents)} ordered ports on {side.name} need {needed:g}, "
                f"but the side is {length:g} long and may not grow"
            )

    if options.port_constraints is not PortConstraints.FIXED_POS:
        return
    for port in node.ports:
        if port.offset is None:
            continue
        side = port.side
        length = width if side.is_vertical else height
        if not 0.0 <= port.offset <= length:
            raise UnsatisfiableConstraintError(
                f"node '{node.id}': port '{port.id}' offset {port.offset:g} lies outside its {side.name} side"
            )


def distribute_ports(lnode: LNode) -> None:
    """Place every port of ``lnode`` on its side (internal frame)."""
    for side in (PortSide.NORTH, PortSide.EAST, PortSide.SOUTH, PortSide.WEST):
        ports = lnode.ports_on(side)
        count = len(ports)
        for i, port in enumerate(ports):
            length = lnode.width if side.is_vertical else lnode.height
            along = port.offset if port.offset is not None else (i + 1) * length / (count + 1)
            if side is PortSide.NORTH:
                port.x, port.y = along, 0.0
            elif side is PortSide.SOUTH:
                port.x, port.y = along, lnode.height
            elif side is PortSide.WEST:
                port.x, port.y = 0.0, along
            else:
                port.x, port.y = lnode.width, along


def port_fraction(lnode: LNode, rank: int, side: PortSide, offset: float | None = None) -> float:
    """Relative position in [0, 1] of a port along the in-layer axis."""
    if side is PortSide.EAST:
        return 1.0
    if side is PortSide.WEST:
        return 0.0
    if offset is not None and lnode.width > 0:
        return min(1.0, max(0.0, offset / lnode.width))
    count = sum(1 for p in lnode.ports if p.side is side)
    return (rank + 1) / (count + 1)


def compound_insets(node: Node, options: LayoutOptions) -> tuple[float, float]:
    """(left/right/bottom inset, top inset) around a compound's content."""
    top = options.padding
    if node.label is not None and node.label.height > 0:
        top += node.label.height + options.spacing_edge_label
    return options.padding, top


def fit_compound(node: Node, content_w: float, content_h: float, options: LayoutOptions) -> None:
    """Size a compound so it encloses its content plus padding."""
    side, top = compound_insets(node, options)
    width = content_w + 2 * side
    height = content_h + top + side
    if node.label is not None:
        width = max(width, node.label.width + 2 * side)
    if SizeConstraint.MINIMUM_SIZE in options.node_size_constraints:
        min_w, min_h = options.minimum_size()
        width = max(width, min_w)
        height = max(height, min_h)
    node.width = max(node.width, width)
    node.height = max(node.height, height)
