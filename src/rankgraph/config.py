"""Centralized layout configuration for rankgraph.

``LayoutOptions`` is the single immutable, validated options value read at
the start of a layout call. Keys follow the ELK naming (``spacing.nodeNode``,
``edgeRouting``, ...) and may carry an ``elk.`` / ``org.eclipse.elk.`` /
``layered.`` prefix. Values may be given as native Python values or as
strings, as they appear in JSON ``layoutOptions`` blocks.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, ValidationError, ValidationInfo, field_validator

from rankgraph.errors import InvalidOptionError
from rankgraph.types import (
    CrossingStrategy,
    Direction,
    EdgeRouting,
    HierarchyHandling,
    LayerConstraint,
    LayeringStrategy,
    OverlapMode,
    PortConstraints,
    SizeConstraint,
    SizeOption,
)

ALGORITHMS: tuple[str, ...] = ("layered", "grid", "fixed")

# Size used for nodes without a minimum when DEFAULT_MINIMUM_SIZE is set.
DEFAULT_MINIMUM_SIZE: tuple[float, float] = (20.0, 20.0)

_DIRECTION_ALIASES: dict[str, Direction] = {
    "TD": Direction.TD,
    "TB": Direction.TD,
    "DOWN": Direction.TD,
    "BT": Direction.BT,
    "UP": Direction.BT,
    "LR": Direction.LR,
    "RIGHT": Direction.LR,
    "RL": Direction.RL,
    "LEFT": Direction.RL,
}

_ENUMS: dict[str, type[Enum]] = {
    "direction": Direction,
    "edge_routing": EdgeRouting,
    "hierarchy_handling": HierarchyHandling,
    "overlap_mode": OverlapMode,
    "port_constraints": PortConstraints,
    "layering_strategy": LayeringStrategy,
    "crossing_strategy": CrossingStrategy,
    "layer_constraint": LayerConstraint,
}

_ENUM_SETS: dict[str, type[Enum]] = {
    "node_size_constraints": SizeConstraint,
    "node_size_options": SizeOption,
}

_NUMBERS: tuple[str, ...] = (
    "padding",
    "spacing_node_node",
    "spacing_layer",
    "spacing_edge_node",
    "spacing_edge_edge",
    "spacing_edge_label",
    "spacing_port_port",
    "spacing_component",
    "maxiter",
    "epsilon",
    "iterations_factor",
    "label_distance",
    "label_angle",
    "layer_spacing_factor",
    "random_seed",
    "layer_bound",
    "workers",
)


def _spacing(default: float) -> Any:
    return Field(default, ge=0.0, allow_inf_nan=False)


class LayoutOptions(BaseModel):
    """Validated layout parameters for one invocation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    algorithm: str = "layered"
    padding: float = _spacing(12.0)
    direction: Direction = Direction.TD

    spacing_node_node: float = _spacing(20.0)
    spacing_layer: float = _spacing(20.0)
    spacing_edge_node: float = _spacing(10.0)
    spacing_edge_edge: float = _spacing(10.0)
    spacing_edge_label: float = _spacing(2.0)
    spacing_port_port: float = _spacing(10.0)
    spacing_component: float = _spacing(20.0)

    node_size_constraints: frozenset[SizeConstraint] = frozenset()
    node_size_options: frozenset[SizeOption] = frozenset()
    node_size_minimum: tuple[NonNegativeFloat, NonNegativeFloat] = (0.0, 0.0)

    edge_routing: EdgeRouting = EdgeRouting.ORTHOGONAL
    hierarchy_handling: HierarchyHandling = HierarchyHandling.INHERIT
    debug_mode: bool = False
    separate_connected_components: bool = True
    concentrate: bool = False
    overlap_mode: OverlapMode = OverlapMode.SCANLINE

    maxiter: int = Field(50, ge=1)
    epsilon: float = _spacing(0.1)
    iterations_factor: float = _spacing(1.0)

    label_distance: float = _spacing(8.0)
    label_angle: float = Field(-25.0, allow_inf_nan=False)
    layer_spacing_factor: float = _spacing(1.0)
    random_seed: int = 1
    adapt_port_positions: bool = True
    port_constraints: PortConstraints = PortConstraints.UNDEFINED

    layering_strategy: LayeringStrategy = LayeringStrategy.LONGEST_PATH
    layer_bound: int = Field(4, ge=1)
    crossing_strategy: CrossingStrategy = CrossingStrategy.MEDIAN

    # Node-level only.
    layer_constraint: LayerConstraint = LayerConstraint.NONE
    fixed_order: bool = False

    workers: int = Field(1, ge=1)

    # ─── Value coercion ──────────────────────────────────────────────────────

    @field_validator("algorithm", mode="before")
    @classmethod
    def validate_algorithm(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("expected an algorithm name")
        name = value.strip().lower()
        for prefix in ("org.eclipse.elk.", "elk."):
            if name.startswith(prefix):
                name = name[len(prefix) :]
        if name not in ALGORITHMS:
            raise ValueError(f"expected one of {list(ALGORITHMS)}")
        return name

    @field_validator(*_NUMBERS, mode="before")
    @classmethod
    def validate_number(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("expected a number")
        return value

    @field_validator(*_ENUMS, mode="before")
    @classmethod
    def validate_enum(cls, value: Any, info: ValidationInfo) -> Enum:
        aliases = _DIRECTION_ALIASES if info.field_name == "direction" else None
        return _member(_ENUMS[info.field_name], value, aliases)

    @field_validator(*_ENUM_SETS, mode="before")
    @classmethod
    def validate_enum_set(cls, value: Any, info: ValidationInfo) -> frozenset:
        enum_cls = _ENUM_SETS[info.field_name]
        if isinstance(value, str):
            items: Any = value.replace("[", " ").replace("]", " ").replace(",", " ").split()
        elif isinstance(value, enum_cls):
            items = [value]
        else:
            items = value
        return frozenset(_member(enum_cls, v) for v in items)

    @field_validator("node_size_minimum", mode="before")
    @classmethod
    def validate_size(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.replace("(", " ").replace(")", " ").replace(",", " ").split()
        if isinstance(value, Mapping):
            return [value.get("width", 0), value.get("height", 0)]
        return value

    # ─── Construction ────────────────────────────────────────────────────────

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None = None) -> LayoutOptions:
        """Build options from an ELK-style key/value mapping."""
        return cls().with_overrides(mapping)

    def with_overrides(self, mapping: Mapping[str, Any] | None) -> LayoutOptions:
        """Return a copy with the given keys replaced; every value is validated."""
        if not mapping:
            return self
        changes: dict[str, Any] = {}
        raw_keys: dict[str, str] = {}
        for raw_key, raw_value in mapping.items():
            name = _lookup(raw_key)
            changes[name] = raw_value
            raw_keys[name] = str(raw_key)
        current = {name: getattr(self, name) for name in type(self).model_fields}
        try:
            return type(self).model_validate({**current, **changes})
        except ValidationError as e:
            error = e.errors()[0]
            name = str(error["loc"][0]) if error["loc"] else ""
            raw_key = raw_keys.get(name, name)
            raise InvalidOptionError(
                f"invalid value for '{raw_key}': {error.get('input')!r} ({error['msg']})"
            ) from None

    def for_children(self) -> LayoutOptions:
        """Options inherited by a child graph: node-only settings are reset."""
        return self.model_copy(update={"layer_constraint": LayerConstraint.NONE, "fixed_order": False})

    @property
    def layer_gap(self) -> float:
        return self.spacing_layer * self.layer_spacing_factor

    @property
    def ports_fixed_order(self) -> bool:
        return self.port_constraints.is_order_fixed

    def minimum_size(self) -> tuple[float, float]:
        w, h = self.node_size_minimum
        if SizeOption.DEFAULT_MINIMUM_SIZE in self.node_size_options:
            if w <= 0:
                w = DEFAULT_MINIMUM_SIZE[0]
            if h <= 0:
                h = DEFAULT_MINIMUM_SIZE[1]
        return (w, h)


def _member(enum_cls: type[Enum], value: Any, aliases: Mapping[str, Enum] | None = None) -> Enum:
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise ValueError(f"expected one of {[m.name for m in enum_cls]}")
    key = value.strip().upper()
    if aliases and key in aliases:
        return aliases[key]
    try:
        return enum_cls[key]
    except KeyError:
        raise ValueError(f"expected one of {[m.name for m in enum_cls]}") from None


# ─── Option keys ─────────────────────────────────────────────────────────────

# ELK spellings per field; the first one is canonical.
_ALIASES: dict[str, tuple[str, ...]] = {
    "spacing_node_node": ("spacing.nodeNode",),
    "spacing_layer": ("spacing.nodeNodeBetweenLayers", "spacing.layer"),
    "spacing_edge_node": ("spacing.edgeNode",),
    "spacing_edge_edge": ("spacing.edgeEdge",),
    "spacing_edge_label": ("spacing.edgeLabel",),
    "spacing_port_port": ("spacing.portPort",),
    "spacing_component": ("spacing.componentComponent",),
    "node_size_constraints": ("nodeSize.constraints",),
    "node_size_options": ("nodeSize.options",),
    "node_size_minimum": ("nodeSize.minimum",),
    "edge_routing": ("edgeRouting",),
    "hierarchy_handling": ("hierarchyHandling",),
    "debug_mode": ("debugMode",),
    "separate_connected_components": ("separateConnectedComponents",),
    "overlap_mode": ("overlapMode",),
    "iterations_factor": ("iterationsFactor",),
    "label_distance": ("labelDistance",),
    "label_angle": ("labelAngle",),
    "layer_spacing_factor": ("layerSpacingFactor",),
    "random_seed": ("randomSeed",),
    "adapt_port_positions": ("adaptPortPositions",),
    "port_constraints": ("portConstraints",),
    "layering_strategy": ("layering.strategy",),
    "layer_bound": ("layering.coffmanGraham.layerBound",),
    "crossing_strategy": ("crossingMinimization.strategy",),
    "layer_constraint": ("layerConstraint", "layering.layerConstraint"),
    "fixed_order": ("fixedOrder",),
}

_BY_KEY: dict[str, str] = {}
for _name in LayoutOptions.model_fields:
    _BY_KEY[_name.lower()] = _name
    for _alias in _ALIASES.get(_name, ()):
        _BY_KEY[_alias.lower()] = _name

_PREFIXES = ("org.eclipse.elk.", "elk.", "layered.")


def _lookup(raw_key: str) -> str:
    """Field name for an option key."""
    lowered = str(raw_key).strip().lower()
    stripped = True
    while stripped:
        stripped = False
        for prefix in _PREFIXES:
            if lowered.startswith(prefix):
                lowered = lowered[len(prefix) :]
                stripped = True
    name = _BY_KEY.get(lowered)
    if name is None:
        raise InvalidOptionError(f"unknown layout option '{raw_key}'")
    return name


def option_keys() -> list[str]:
    """All recognized option keys in their canonical ELK spelling."""
    return [_ALIASES.get(name, (name,))[0] for name in LayoutOptions.model_fields]
