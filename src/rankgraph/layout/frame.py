"""Flow-direction transform.

Every layered phase works in one internal frame: layers stacked top-down
along y, in-layer order left-to-right along x. ``Frame`` maps sizes, port
sides and points between that frame and the requested direction.
"""

from __future__ import annotations

from rankgraph.ir.graph import Point
from rankgraph.types import Direction, PortSide

_TRANSPOSE_SIDE = {
    PortSide.NORTH: PortSide.WEST,
    PortSide.WEST: PortSide.NORTH,
    PortSide.SOUTH: PortSide.EAST,
    PortSide.EAST: PortSide.SOUTH,
    PortSide.UNDEFINED: PortSide.UNDEFINED,
}

_MIRROR_Y_SIDE = {
    PortSide.NORTH: PortSide.SOUTH,
    PortSide.SOUTH: PortSide.NORTH,
    PortSide.EAST: PortSide.EAST,
    PortSide.WEST: PortSide.WEST,
    PortSide.UNDEFINED: PortSide.UNDEFINED,
}


class Frame:
    """Maps internal top-down geometry to ``direction`` and back."""

    def __init__(self, direction: Direction) -> None:
        self.direction = direction
        self.transposed = direction.is_horizontal
        self.mirrored = direction in (Direction.BT, Direction.RL)

    # ─── Sizes and sides ─────────────────────────────────────────────────────

    def size_in(self, width: float, height: float) -> tuple[float, float]:
        """Final (width, height) -> internal (width, height)."""
        return (height, width) if self.transposed else (width, height)

    def size_out(self, width: float, height: float) -> tuple[float, float]:
        return self.size_in(width, height)

    def side_in(self, side: PortSide) -> PortSide:
        """Final port side -> internal port side."""
        if self.transposed:
            # mirror on the final x axis, then transpose
            if self.mirrored:
                side = {PortSide.EAST: PortSide.WEST, PortSide.WEST: PortSide.EAST}.get(side, side)
            return _TRANSPOSE_SIDE[side]
        if self.mirrored:
            return _MIRROR_Y_SIDE[side]
        return side

    def side_out(self, side: PortSide) -> PortSide:
        """Internal port side -> final port side."""
        if self.transposed:
            side = _TRANSPOSE_SIDE[side]
            if self.mirrored:
                side = {PortSide.EAST: PortSide.WEST, PortSide.WEST: PortSide.EAST}.get(side, side)
            return side
        if self.mirrored:
            return _MIRROR_Y_SIDE[side]
        return side

    # ─── Points ──────────────────────────────────────────────────────────────

    def point_in(self, x: float, y: float, final_w: float, final_h: float) -> tuple[float, float]:
        """Final point inside a final-frame box of the given size -> internal point."""
        if self.direction is Direction.TD:
            return (x, y)
        if self.direction is Direction.BT:
            return (x, final_h - y)
        if self.direction is Direction.LR:
            return (y, x)
        return (y, final_w - x)

    def point_out(self, x: float, y: float, internal_h: float) -> tuple[float, float]:
        """Internal point inside content of internal height ``internal_h`` -> final point."""
        if self.direction is Direction.TD:
            return (x, y)
        if self.direction is Direction.BT:
            return (x, internal_h - y)
        if self.direction is Direction.LR:
            return (y, x)
        return (internal_h - y, x)

    def rect_out(self, x: float, y: float, w: float, h: float, internal_h: float) -> tuple[float, float, float, float]:
        """Internal rectangle -> final (x, y, width, height)."""
        if self.direction is Direction.TD:
            return (x, y, w, h)
        if self.direction is Direction.BT:
            return (x, internal_h - y - h, w, h)
        if self.direction is Direction.LR:
            return (y, x, h, w)
        return (internal_h - y - h, x, h, w)

    def map_points(self, points: list[Point], internal_h: float) -> list[Point]:
        return [Point(*self.point_out(p.x, p.y, internal_h)) for p in points]
