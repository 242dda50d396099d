"""rankgraph: layered (Sugiyama) graph layout for nested graphs with ports and labels."""

from rankgraph.config import LayoutOptions, option_keys
from rankgraph.errors import (
    ConvergenceWarning,
    InvalidGraphError,
    InvalidOptionError,
    LayoutError,
    UnsatisfiableConstraintError,
)
from rankgraph.ir.graph import Edge, Graph, Label, Node, Point, Port
from rankgraph.ir.serialize import graph_from_dict, graph_to_dict
from rankgraph.layout import LayoutReport, layout
from rankgraph.types import Direction, EdgeRouting, HierarchyHandling, LabelPlacement, PortConstraints, PortSide


def layout_dict(data: dict, **overrides) -> tuple[dict, LayoutReport]:
    """Lay out an ELK-style JSON mapping and return the laid-out mapping.

    Args:
        data: Root graph mapping (``id``, ``layoutOptions``, ``children``, ``edges``).
        **overrides: Option overrides applied on top of the root ``layoutOptions``.

    Returns:
        The serialized, laid-out graph and the layout report.

    Raises:
        InvalidOptionError: If an option key or value is invalid.
        InvalidGraphError: If the graph is structurally broken.
    """
    graph, raw_options = graph_from_dict(data)
    options = LayoutOptions.from_mapping(raw_options).with_overrides(overrides)
    report = layout(graph, options)
    result = graph_to_dict(graph, root_id=str(data.get("id", "root")), layout_options=raw_options)
    result["width"] = report.width
    result["height"] = report.height
    return result, report


__all__ = [
    "ConvergenceWarning",
    "Direction",
    "Edge",
    "EdgeRouting",
    "Graph",
    "HierarchyHandling",
    "InvalidGraphError",
    "InvalidOptionError",
    "Label",
    "LabelPlacement",
    "LayoutError",
    "LayoutOptions",
    "LayoutReport",
    "Node",
    "Point",
    "Port",
    "PortConstraints",
    "PortSide",
    "UnsatisfiableConstraintError",
    "graph_from_dict",
    "graph_to_dict",
    "layout",
    "layout_dict",
    "option_keys",
]
