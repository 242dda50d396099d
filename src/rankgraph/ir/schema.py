"""Pydantic models of the ELK-style JSON input.

These only check shapes and scalar types. Structural rules (unique ids,
known endpoints) are checked later by ``GraphIndex``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from rankgraph.types import LabelPlacement, PortSide


def _as_id(value: Any) -> Any:
    # ELK ids may be numbers.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class ElementDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    width: float = Field(0.0, ge=0.0, allow_inf_nan=False)
    height: float = Field(0.0, ge=0.0, allow_inf_nan=False)
    layout_options: dict[str, Any] = Field(default_factory=dict, alias="layoutOptions")

    @field_validator("width", "height", mode="before")
    @classmethod
    def validate_size(cls, value: Any) -> Any:
        if value is None:
            return 0.0
        if isinstance(value, bool):
            raise ValueError("expected a number")
        return value

    @field_validator("layout_options", mode="before")
    @classmethod
    def validate_options(cls, value: Any) -> Any:
        return {} if value is None else value


class LabelDocument(ElementDocument):
    text: str = ""
    placement: LabelPlacement = LabelPlacement.CENTER

    @model_validator(mode="before")
    @classmethod
    def placement_from_options(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("placement") is None:
            options = data.get("layoutOptions") or {}
            data = {**data, "placement": options.get("edgeLabels.placement", "CENTER")}
        return data

    @field_validator("text", mode="before")
    @classmethod
    def validate_text(cls, value: Any) -> Any:
        return "" if value is None else str(value)

    @field_validator("placement", mode="before")
    @classmethod
    def validate_placement(cls, value: Any) -> LabelPlacement:
        if isinstance(value, LabelPlacement):
            return value
        try:
            return LabelPlacement[str(value).upper()]
        except KeyError:
            raise ValueError(f"unknown label placement '{value}'") from None


class PortDocument(ElementDocument):
    id: str
    side: PortSide = PortSide.UNDEFINED
    index: int | None = None
    offset: float | None = Field(None, allow_inf_nan=False)

    @model_validator(mode="before")
    @classmethod
    def fields_from_options(cls, data: Any) -> Any:
        """ELK also accepts side, index and offset as port layout options."""
        if not isinstance(data, dict):
            return data
        options = data.get("layoutOptions") or {}
        data = dict(data)
        if data.get("side") is None:
            data["side"] = options.get("port.side") or options.get("elk.port.side") or "UNDEFINED"
        if data.get("index") is None:
            data["index"] = options.get("port.index")
        if data.get("offset") is None:
            data["offset"] = options.get("port.borderOffset")
        return data

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, value: Any) -> Any:
        return _as_id(value)

    @field_validator("side", mode="before")
    @classmethod
    def validate_side(cls, value: Any) -> PortSide:
        if isinstance(value, PortSide):
            return value
        try:
            return PortSide[str(value).upper()]
        except KeyError:
            raise ValueError(f"unknown side '{value}'") from None


class EdgeDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    sources: list[str] | None = None
    targets: list[str] | None = None
    source: str | None = None
    target: str | None = None
    source_port: str | None = Field(None, alias="sourcePort")
    target_port: str | None = Field(None, alias="targetPort")
    labels: list[LabelDocument] = Field(default_factory=list)

    @field_validator("id", "source", "target", "source_port", "target_port", mode="before")
    @classmethod
    def validate_id(cls, value: Any) -> Any:
        return _as_id(value)

    @field_validator("sources", "targets", mode="before")
    @classmethod
    def validate_ids(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_as_id(v) for v in value]
        return value

    @field_validator("labels", mode="before")
    @classmethod
    def validate_labels(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def check_endpoints(self) -> EdgeDocument:
        self.endpoint("source")
        self.endpoint("target")
        return self

    def endpoint(self, end: str) -> str:
        """The single source or target id, whichever spelling the edge used."""
        values = getattr(self, f"{end}s")
        if values is None:
            value = getattr(self, end)
            values = [value] if value is not None else []
        if len(values) != 1:
            raise ValueError(f"edge '{self.id}' must have exactly one {end}")
        return values[0]


class NodeDocument(ElementDocument):
    id: str
    x: float | None = Field(None, allow_inf_nan=False)
    y: float | None = Field(None, allow_inf_nan=False)
    ports: list[PortDocument] = Field(default_factory=list)
    labels: list[LabelDocument] = Field(default_factory=list)
    children: list[NodeDocument] = Field(default_factory=list)
    edges: list[EdgeDocument] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, value: Any) -> Any:
        return _as_id(value)

    @field_validator("ports", "labels", "children", "edges", mode="before")
    @classmethod
    def validate_lists(cls, value: Any) -> Any:
        return [] if value is None else value


class GraphDocument(NodeDocument):
    """The root mapping: a node whose id is optional."""

    id: str = "root"
