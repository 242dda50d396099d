"""Graph model and its JSON form."""

from rankgraph.ir.graph import Edge, Graph, GraphIndex, Label, Node, Point, Port
from rankgraph.ir.serialize import graph_from_dict, graph_to_dict

__all__ = [
    "Edge",
    "Graph",
    "GraphIndex",
    "Label",
    "Node",
    "Point",
    "Port",
    "graph_from_dict",
    "graph_to_dict",
]
