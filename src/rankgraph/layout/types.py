"""Layout types shared across the layered phases, strategies and the orchestrator.

The layered phases run on a networkx ``MultiDiGraph`` whose nodes carry an
``LNode`` under the ``"data"`` attribute and whose edges are keyed by edge
id and carry an ``LEdge``. All geometry in these records lives in the
internal top-down frame; ``frame.py`` maps it to the requested direction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto

import networkx as nx

from rankgraph.errors import ConvergenceWarning
from rankgraph.ir.graph import Edge, Graph, Node, Point, Port
from rankgraph.types import LayerConstraint, PortConstraints, PortSide

# Prefix constants
DUMMY_PREFIX = "__dummy_"
IMPLICIT_PORT_PREFIX = "__port_"


class NodeKind(Enum):
    NORMAL = auto()
    LONG_EDGE = auto()


@dataclass(eq=False)
class LPort:
    """A port on a working node; implicit ports stand in for portless edge ends."""

    id: str
    owner: str
    side: PortSide
    origin: Port | None = None
    rank: int = 0
    fixed: bool = False
    offset: float | None = None
    x: float = 0.0
    y: float = 0.0


@dataclass(eq=False)
class LNode:
    """A node of the working graph: a real node or a long-edge dummy."""

    id: str
    index: int
    width: float
    height: float
    kind: NodeKind = NodeKind.NORMAL
    origin: Node | None = None
    ports: list[LPort] = field(default_factory=list)
    cluster: tuple[str, ...] = ()
    layer_constraint: LayerConstraint = LayerConstraint.NONE
    fixed_order: bool = False
    port_constraints: PortConstraints = PortConstraints.FREE
    layer: int = -1
    order: int = -1
    x: float = 0.0
    y: float = 0.0
    loop_extent: float = 0.0

    @property
    def is_dummy(self) -> bool:
        return self.kind is NodeKind.LONG_EDGE

    @property
    def extent(self) -> float:
        """In-layer width including space reserved for self-loops."""
        return self.width + self.loop_extent

    def ports_on(self, side: PortSide) -> list[LPort]:
        return sorted((p for p in self.ports if p.side is side), key=lambda p: p.rank)


@dataclass(eq=False)
class LEdge:
    """A working edge in effective (layering) direction.

    ``origin`` is the caller's edge; ``reversed`` records that source and
    target were swapped by the cycle breaker.
    """

    id: str
    index: int
    source: str
    target: str
    source_port: LPort
    target_port: LPort
    origin: Edge | None = None
    reversed: bool = False

    def flipped(self) -> LEdge:
        return LEdge(
            id=self.id,
            index=self.index,
            source=self.target,
            target=self.source,
            source_port=self.target_port,
            target_port=self.source_port,
            origin=self.origin,
            reversed=not self.reversed,
        )


@dataclass
class LongEdge:
    """An edge spanning several layers, split into a chain of dummies."""

    edge: LEdge
    dummy_ids: list[str]


@dataclass
class AugmentedGraph:
    """Layered working graph after dummy insertion."""

    graph: nx.MultiDiGraph
    layers: dict[str, int]
    layer_count: int
    long_edges: dict[str, LongEdge] = field(default_factory=dict)
    bundles: dict[str, list[LEdge]] = field(default_factory=dict)

    def node(self, node_id: str) -> LNode:
        return self.graph.nodes[node_id]["data"]


@dataclass
class RoutedEdge:
    """A routed edge in the internal frame, from original source to original target."""

    edge: LEdge
    points: list[Point]


@dataclass
class PhaseSnapshot:
    """Intermediate state kept in debug mode."""

    phase: str
    unit: str
    layers: list[list[str]] = field(default_factory=list)
    positions: dict[str, tuple[float, float]] = field(default_factory=dict)
    reversed: list[str] = field(default_factory=list)
    routes: dict[str, list[tuple[float, float]]] = field(default_factory=dict)


@dataclass
class UnitFailure:
    """A unit whose pipeline failed and was replaced by the fallback layout."""

    unit: str
    error: Exception


@dataclass
class UnitReport:
    """What one strategy run on one graph produced besides the annotated graph."""

    graph: Graph
    warnings: list[ConvergenceWarning] = field(default_factory=list)
    snapshots: list[PhaseSnapshot] = field(default_factory=list)


@dataclass
class LayoutReport:
    """Result of a layout call: the annotated graph plus diagnostics."""

    graph: Graph
    warnings: list[ConvergenceWarning] = field(default_factory=list)
    snapshots: list[PhaseSnapshot] = field(default_factory=list)
    failures: list[UnitFailure] = field(default_factory=list)
    width: float = 0.0
    height: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failures
