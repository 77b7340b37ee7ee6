# app/api/v1/schemas/graph_schemas.py
#
# Imports
from typing import Optional
# 3rd-party Libraries
from pydantic import BaseModel, ConfigDict, Field
#
#######################################################################################################################
#
# Schemas:

# --- Graph Schemas ---
class GraphCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255, description="Title of the graph canvas")


class GraphUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)


class GraphResponse(BaseModel):
    id: int
    user_id: int
    title: str
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None


# --- Node Schemas ---
class NodePosition(BaseModel):
    x: float
    y: float


class NodeData(BaseModel):
    label: Optional[str] = None
    content: Optional[str] = None


class NodeStyle(BaseModel):
    width: Optional[float] = None
    height: Optional[float] = None


class NodeCreate(BaseModel):
    id: str = Field(..., min_length=1, description="Client-assigned node id")
    type: Optional[str] = Field(None, description="Node type, defaults to 'bubble'")
    position: NodePosition
    data: NodeData = Field(default_factory=NodeData)
    style: Optional[NodeStyle] = None


class NodeUpdate(BaseModel):
    type: Optional[str] = None
    position: Optional[NodePosition] = None
    data: Optional[NodeData] = None
    style: Optional[NodeStyle] = None
    image_url: Optional[str] = None

    def to_columns(self) -> dict:
        """Flattens the nested request shape into node columns, keeping only what the client sent."""
        sent = self.model_dump(exclude_unset=True)
        columns = {}
        if "type" in sent:
            columns["type"] = sent["type"]
        if sent.get("position") is not None:
            columns["position_x"] = sent["position"]["x"]
            columns["position_y"] = sent["position"]["y"]
        for key, column in (("label", "data_label"), ("content", "data_content")):
            if key in (sent.get("data") or {}):
                columns[column] = sent["data"][key]
        for key, column in (("width", "style_width"), ("height", "style_height")):
            if key in (sent.get("style") or {}):
                columns[column] = sent["style"][key]
        if "image_url" in sent:
            columns["image_url"] = sent["image_url"]
        return columns


class NodeResponse(BaseModel):
    id: str
    graph_id: int
    type: str
    position_x: float
    position_y: float
    data_label: Optional[str] = None
    data_content: Optional[str] = None
    image_url: Optional[str] = None
    style_width: Optional[float] = None
    style_height: Optional[float] = None
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None


# --- Edge Schemas ---
class EdgeCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="Client-assigned edge id")
    source: str = Field(..., min_length=1, description="Source node id")
    target: str = Field(..., min_length=1, description="Target node id")
    source_handle: Optional[str] = Field(None, alias="sourceHandle")
    target_handle: Optional[str] = Field(None, alias="targetHandle")
    marker_start: Optional[str] = Field(None, alias="markerStart")
    marker_end: Optional[str] = Field(None, alias="markerEnd")


class EdgeUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_handle: Optional[str] = Field(None, alias="sourceHandle")
    target_handle: Optional[str] = Field(None, alias="targetHandle")
    marker_start: Optional[str] = Field(None, alias="markerStart")
    marker_end: Optional[str] = Field(None, alias="markerEnd")


class EdgeResponse(BaseModel):
    id: str
    graph_id: int
    source_node_id: str
    target_node_id: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    marker_start: Optional[str] = None
    marker_end: Optional[str] = None
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None
