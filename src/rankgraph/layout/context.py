"""Per-invocation layout context.

Resolves effective options for every node, decides how the hierarchy is
split into layout units, and homes every edge at the unit that must lay it
out. Built once, before any phase runs, and read-only afterwards so worker
threads may share it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto

from rankgraph.config import LayoutOptions
from rankgraph.ir.graph import Edge, Graph, GraphIndex, Node
from rankgraph.types import HierarchyHandling

ROOT_UNIT = "<root>"


class EdgeRole(Enum):
    """How the unit that homes an edge treats it."""

    NORMAL = auto()
    SELF_LOOP = auto()
    # endpoint nested below the unit: laid out between projections, extended at merge
    CROSS = auto()
    # no layered route possible in its unit: routed straight after merge
    DEFERRED = auto()


@dataclass(frozen=True)
class EdgePlan:
    edge: Edge
    unit: LayoutUnit
    role: EdgeRole
    source: str
    target: str


@dataclass(eq=False)
class LayoutUnit:
    """One graph laid out in one strategy run.

    ``flatten`` units own their whole subtree (INCLUDE_CHILDREN); other
    units own only their direct children and wait for their child units.
    """

    owner: Node | None
    graph: Graph
    options: LayoutOptions
    flatten: bool
    edges: list[Edge] = field(default_factory=list)
    children: list[LayoutUnit] = field(default_factory=list)
    order: int = 0
    height: int = 0

    @property
    def name(self) -> str:
        return self.owner.id if self.owner is not None else ROOT_UNIT


class LayoutContext:
    def __init__(self, root: Graph, options: LayoutOptions) -> None:
        self.root = root
        self.root_options = options
        self.index = GraphIndex(root)
        self._options: dict[str, LayoutOptions] = {}
        self._hierarchy: dict[str, HierarchyHandling] = {}

        root_hierarchy = options.hierarchy_handling
        if root_hierarchy is HierarchyHandling.INHERIT:
            root_hierarchy = HierarchyHandling.SEPARATE_CHILDREN

        for node in root.walk():
            parent = self.index.parent_of[node.id]
            if parent is None:
                inherited = options.for_children()
                parent_hierarchy = root_hierarchy
            else:
                inherited = self._options[parent.id].for_children()
                parent_hierarchy = self._hierarchy[parent.id]
            resolved = inherited.with_overrides(node.options)
            self._options[node.id] = resolved
            hierarchy = resolved.hierarchy_handling
            if hierarchy is HierarchyHandling.INHERIT:
                hierarchy = parent_hierarchy
            self._hierarchy[node.id] = hierarchy

        self.root_unit = self._plan_units(root_hierarchy)
        self._home_edges()

    # ─── Options ─────────────────────────────────────────────────────────────

    def options_for(self, node: Node | None) -> LayoutOptions:
        if node is None:
            return self.root_options
        return self._options[node.id]

    def hierarchy_for(self, node: Node | None) -> HierarchyHandling:
        if node is None:
            handling = self.root_options.hierarchy_handling
            if handling is HierarchyHandling.INHERIT:
                return HierarchyHandling.SEPARATE_CHILDREN
            return handling
        return self._hierarchy[node.id]

    # ─── Units ───────────────────────────────────────────────────────────────

    def _plan_units(self, root_hierarchy: HierarchyHandling) -> LayoutUnit:
        root_unit = LayoutUnit(
            owner=None,
            graph=self.root,
            options=self.root_options,
            flatten=root_hierarchy is HierarchyHandling.INCLUDE_CHILDREN,
        )
        self.units: list[LayoutUnit] = [root_unit]
        self.unit_of_owner: dict[str | None, LayoutUnit] = {None: root_unit}

        stack: list[LayoutUnit] = [root_unit]
        while stack:
            unit = stack.pop()
            if unit.flatten:
                for node in unit.graph.walk():
                    if node.is_compound:
                        self.unit_of_owner[node.id] = unit
                continue
            for node in unit.graph.nodes:
                if not node.is_compound:
                    continue
                assert node.children is not None
                child = LayoutUnit(
                    owner=node,
                    graph=node.children,
                    options=self._options[node.id],
                    flatten=self._hierarchy[node.id] is HierarchyHandling.INCLUDE_CHILDREN,
                )
                unit.children.append(child)
                self.units.append(child)
                self.unit_of_owner[node.id] = child
                stack.append(child)

        for unit in self.units:
            unit.order = -1 if unit.owner is None else self.index.node_ids[unit.owner.id]
        # children always come after their parent in self.units
        for unit in reversed(self.units):
            unit.height = 1 + max((c.height for c in unit.children), default=-1)
        return root_unit

    def _home_edges(self) -> None:
        self.edge_plans: dict[str, EdgePlan] = {}
        for edge_id, edge in self.index.edges.items():
            owner = self.index.common_owner(edge.source, edge.target)
            unit = self.unit_of_owner[owner.id if owner is not None else None]
            unit.edges.append(edge)
            self.edge_plans[edge_id] = self._plan_edge(edge, unit)

    def _plan_edge(self, edge: Edge, unit: LayoutUnit) -> EdgePlan:
        nodes = self.index.nodes
        if unit.flatten:
            source, target = edge.source, edge.target
            if nodes[source].is_compound or nodes[target].is_compound:
                role = EdgeRole.DEFERRED
            elif source == target:
                role = EdgeRole.SELF_LOOP
            else:
                role = EdgeRole.NORMAL
            return EdgePlan(edge, unit, role, source, target)

        source = self.index.projection(edge.source, unit.owner).id
        target = self.index.projection(edge.target, unit.owner).id
        if edge.is_self_loop:
            role = EdgeRole.SELF_LOOP
        elif source == target:
            role = EdgeRole.DEFERRED
        elif source != edge.source or target != edge.target:
            role = EdgeRole.CROSS
        else:
            role = EdgeRole.NORMAL
        return EdgePlan(edge, unit, role, source, target)

    def unit_for(self, graph: Graph) -> LayoutUnit:
        for unit in self.units:
            if unit.graph is graph:
                return unit
        raise KeyError("graph is not a layout unit of this invocation")

    def plans(self, unit: LayoutUnit) -> list[EdgePlan]:
        """Plans of the edges homed at ``unit``, in stable edge order."""
        return [self.edge_plans[edge.id] for edge in unit.edges]

    def waves(self) -> list[list[LayoutUnit]]:
        """Units grouped so every unit comes after all of its child units."""
        by_height: dict[int, list[LayoutUnit]] = {}
        for unit in self.units:
            by_height.setdefault(unit.height, []).append(unit)
        return [sorted(by_height[h], key=lambda u: u.order) for h in sorted(by_height)]

    def members(self, unit: LayoutUnit) -> list[Node]:
        """Nodes the unit places: direct children, or every leaf when flattened."""
        if not unit.flatten:
            return list(unit.graph.nodes)
        return [node for node in unit.graph.walk() if not node.is_compound]

    def clusters(self, unit: LayoutUnit) -> list[Node]:
        """Compound descendants of a flattened unit, preorder."""
        if not unit.flatten:
            return []
        return [node for node in unit.graph.walk() if node.is_compound]

    def cluster_path(self, unit: LayoutUnit, node: Node) -> tuple[str, ...]:
        """Compound ancestors of ``node`` inside ``unit``, outermost first."""
        path: list[str] = []
        for ancestor in self.index.ancestors(node.id):
            if ancestor is unit.owner:
                break
            path.append(ancestor.id)
        return tuple(reversed(path))
