"""ELK-style JSON <-> Graph model.

Input shape::

    {"id": "root", "layoutOptions": {...},
     "children": [{"id": "n1", "width": 40, "height": 20,
                   "ports": [{"id": "p1", "side": "SOUTH", "index": 0}],
                   "labels": [{"text": "A", "width": 10, "height": 8}],
                   "children": [...], "edges": [...], "layoutOptions": {...}}],
     "edges": [{"id": "e1", "sources": ["n1"], "targets": ["n2"],
                "sourcePort": "p1", "labels": [...]}]}

As in ELK JSON, a ``sources``/``targets`` entry may name a port id instead
of a node id; it resolves to the port's owner node.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from rankgraph.errors import InvalidGraphError
from rankgraph.ir.graph import Edge, Graph, Label, Node, Point, Port
from rankgraph.ir.schema import EdgeDocument, GraphDocument, LabelDocument, NodeDocument, PortDocument
from rankgraph.types import LabelPlacement


def graph_from_dict(data: Mapping[str, Any]) -> tuple[Graph, dict[str, Any]]:
    """Build a Graph from an ELK-style mapping.

    Returns the graph and the root ``layoutOptions`` mapping.

    Raises:
        InvalidGraphError: If the document does not have the ELK JSON shape.
    """
    try:
        document = GraphDocument.model_validate(data)
    except ValidationError as e:
        raise InvalidGraphError(_describe(e)) from None
    graph = Graph()
    port_owner: dict[str, str] = {}
    pending_edges: list[tuple[Graph, EdgeDocument]] = []
    _read_graph(document, graph, port_owner, pending_edges)
    for owner_graph, edge_document in pending_edges:
        owner_graph.edges.append(_read_edge(edge_document, port_owner, len(owner_graph.edges)))
    return graph, dict(document.layout_options)


def _describe(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        where = ".".join(str(part) for part in item["loc"]) or "graph"
        problems.append(f"{where}: {item['msg']}")
    return "invalid graph document: " + "; ".join(problems)


def _read_graph(
    document: NodeDocument,
    graph: Graph,
    port_owner: dict[str, str],
    pending_edges: list[tuple[Graph, EdgeDocument]],
) -> None:
    for child in document.children:
        node = _read_node(child, port_owner)
        graph.nodes.append(node)
        if child.children or child.edges:
            _read_graph(child, node.ensure_children(), port_owner, pending_edges)
    for edge_document in document.edges:
        pending_edges.append((graph, edge_document))


def _read_node(document: NodeDocument, port_owner: dict[str, str]) -> Node:
    node = Node(
        id=document.id,
        width=document.width,
        height=document.height,
        options=dict(document.layout_options),
    )
    if document.x is not None and document.y is not None:
        node.x, node.y = document.x, document.y
    if document.labels:
        node.label = _read_label(document.labels[0])
    for port_document in document.ports:
        port = _read_port(port_document)
        port_owner[port.id] = node.id
        node.ports.append(port)
    return node


def _read_port(document: PortDocument) -> Port:
    return Port(
        id=document.id,
        side=document.side,
        index=document.index,
        offset=document.offset,
        width=document.width,
        height=document.height,
    )


def _read_label(document: LabelDocument) -> Label:
    return Label(
        text=document.text,
        width=document.width,
        height=document.height,
        placement=document.placement,
    )


def _read_edge(document: EdgeDocument, port_owner: dict[str, str], position: int) -> Edge:
    source = document.endpoint("source")
    target = document.endpoint("target")
    source_port, target_port = document.source_port, document.target_port
    if source_port is None and source in port_owner:
        source_port, source = source, port_owner[source]
    if target_port is None and target in port_owner:
        target_port, target = target, port_owner[target]
    return Edge(
        id=document.id if document.id is not None else f"e{position}",
        source=source,
        target=target,
        source_port=source_port,
        target_port=target_port,
        label=_read_label(document.labels[0]) if document.labels else None,
    )


# ─── Output ──────────────────────────────────────────────────────────────────


def graph_to_dict(graph: Graph, root_id: str = "root", layout_options: Mapping[str, Any] | None = None) -> dict:
    """Serialize a (laid out) graph back to an ELK-style mapping."""
    result: dict[str, Any] = {"id": root_id}
    if layout_options:
        result["layoutOptions"] = dict(layout_options)
    box = graph.bounding_box()
    if box is not None:
        result["width"] = box[2]
        result["height"] = box[3]
    _write_graph(graph, result)
    return result


def _write_graph(graph: Graph, out: dict[str, Any]) -> None:
    out["children"] = [_write_node(n) for n in graph.nodes]
    out["edges"] = [_write_edge(e) for e in graph.edges]


def _write_node(node: Node) -> dict[str, Any]:
    out: dict[str, Any] = {"id": node.id, "width": node.width, "height": node.height}
    if node.x is not None and node.y is not None:
        out["x"] = node.x
        out["y"] = node.y
    if node.layer is not None:
        out["layer"] = node.layer
        out["order"] = node.order
    if node.options:
        out["layoutOptions"] = dict(node.options)
    if node.label is not None:
        out["labels"] = [_write_label(node.label)]
    if node.ports:
        out["ports"] = [_write_port(p) for p in node.ports]
    if node.children is not None and (node.children.nodes or node.children.edges):
        _write_graph(node.children, out)
    return out


def _write_port(port: Port) -> dict[str, Any]:
    out: dict[str, Any] = {"id": port.id, "side": port.side.name}
    if port.index is not None:
        out["index"] = port.index
    if port.x is not None and port.y is not None:
        out["x"] = port.x
        out["y"] = port.y
    return out


def _write_label(label: Label) -> dict[str, Any]:
    out: dict[str, Any] = {"text": label.text, "width": label.width, "height": label.height}
    if label.placement is not LabelPlacement.CENTER:
        out["placement"] = label.placement.name
    if label.x is not None and label.y is not None:
        out["x"] = label.x
        out["y"] = label.y
    return out


def _point(p: Point) -> dict[str, float]:
    return {"x": p.x, "y": p.y}


def _write_edge(edge: Edge) -> dict[str, Any]:
    out: dict[str, Any] = {"id": edge.id, "sources": [edge.source], "targets": [edge.target]}
    if edge.source_port is not None:
        out["sourcePort"] = edge.source_port
    if edge.target_port is not None:
        out["targetPort"] = edge.target_port
    if edge.label is not None:
        out["labels"] = [_write_label(edge.label)]
    if edge.source_point is not None and edge.target_point is not None:
        out["sections"] = [
            {
                "id": f"{edge.id}_s0",
                "startPoint": _point(edge.source_point),
                "endPoint": _point(edge.target_point),
                "bendPoints": [_point(p) for p in edge.bend_points],
            }
        ]
    return out
