"""Layout engine registry and public API."""

from __future__ import annotations

from rankgraph.layout.engine import STRATEGIES, LayoutEngine, LayoutStrategy, layout
from rankgraph.layout.grid import FixedLayout, GridLayout
from rankgraph.layout.sugiyama import SugiyamaLayout
from rankgraph.layout.types import LayoutReport, PhaseSnapshot, UnitFailure, UnitReport

__all__ = [
    "STRATEGIES",
    "FixedLayout",
    "GridLayout",
    "LayoutEngine",
    "LayoutReport",
    "LayoutStrategy",
    "PhaseSnapshot",
    "SugiyamaLayout",
    "UnitFailure",
    "UnitReport",
    "layout",
]
