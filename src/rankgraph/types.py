"""Shared type definitions for rankgraph.

Enums used across the graph model, options, and layout phases.
"""

from __future__ import annotations

from enum import Enum, auto


class Direction(Enum):
    TD = auto()  # top-down
    BT = auto()  # bottom-up
    LR = auto()  # left-right
    RL = auto()  # right-left

    @classmethod
    def default(cls) -> Direction:
        return cls.TD

    @property
    def is_horizontal(self) -> bool:
        return self in (Direction.LR, Direction.RL)


class EdgeRouting(Enum):
    POLYLINE = auto()
    ORTHOGONAL = auto()
    SPLINES = auto()


class HierarchyHandling(Enum):
    INHERIT = auto()
    INCLUDE_CHILDREN = auto()
    SEPARATE_CHILDREN = auto()


class OverlapMode(Enum):
    NONE = auto()
    SCANLINE = auto()


class PortSide(Enum):
    UNDEFINED = auto()
    NORTH = auto()
    EAST = auto()
    SOUTH = auto()
    WEST = auto()

    @property
    def opposite(self) -> PortSide:
        return _OPPOSITE[self]

    @property
    def is_vertical(self) -> bool:
        """True for sides whose ports run along a horizontal border."""
        return self in (PortSide.NORTH, PortSide.SOUTH)


_OPPOSITE = {
    PortSide.UNDEFINED: PortSide.UNDEFINED,
    PortSide.NORTH: PortSide.SOUTH,
    PortSide.SOUTH: PortSide.NORTH,
    PortSide.EAST: PortSide.WEST,
    PortSide.WEST: PortSide.EAST,
}


class PortConstraints(Enum):
    UNDEFINED = auto()
    FREE = auto()
    FIXED_SIDE = auto()
    FIXED_ORDER = auto()
    FIXED_POS = auto()

    @property
    def is_order_fixed(self) -> bool:
        return self in (PortConstraints.FIXED_ORDER, PortConstraints.FIXED_POS)

    @property
    def is_side_fixed(self) -> bool:
        return self in (PortConstraints.FIXED_SIDE, PortConstraints.FIXED_ORDER, PortConstraints.FIXED_POS)


class SizeConstraint(Enum):
    PORTS = auto()
    NODE_LABELS = auto()
    MINIMUM_SIZE = auto()


class SizeOption(Enum):
    DEFAULT_MINIMUM_SIZE = auto()


class LayeringStrategy(Enum):
    LONGEST_PATH = auto()
    COFFMAN_GRAHAM = auto()


class CrossingStrategy(Enum):
    MEDIAN = auto()
    BARYCENTER = auto()


class LayerConstraint(Enum):
    NONE = auto()
    FIRST = auto()
    LAST = auto()


class LabelPlacement(Enum):
    CENTER = auto()
    HEAD = auto()
    TAIL = auto()
