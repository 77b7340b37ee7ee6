# sync_schemas.py
# Description: Response models for the incremental sync endpoint.
#
# Imports
from typing import Any, Dict, List, Union
#
# 3rd-party Libraries
from pydantic import BaseModel, ConfigDict, Field
#
#######################################################################################################################
#
# Schemas:

Row = Dict[str, Any]


class SyncUpdates(BaseModel):
    """Live rows changed since the cutoff, exactly as stored, keyed by entity collection."""
    graphs: List[Row] = Field(default_factory=list)
    nodes: List[Row] = Field(default_factory=list)
    edges: List[Row] = Field(default_factory=list)
    notes: List[Row] = Field(default_factory=list)
    checklists: List[Row] = Field(default_factory=list)
    checklistItems: List[Row] = Field(default_factory=list)
    images: List[Row] = Field(default_factory=list)


class SyncDeletion(BaseModel):
    id: Union[int, str]
    type: str = Field(..., description="Table name of the deleted row, e.g. 'checklist_items'")


class SyncResponse(BaseModel):
    updates: SyncUpdates
    deletions: List[SyncDeletion]
    serverTimestamp: int = Field(..., description="Send this back as `since` on the next sync")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "updates": {
                "graphs": [], "nodes": [], "edges": [],
                "notes": [{"id": 1, "user_id": 1, "title": None, "content": "A", "tags": None, "image_url": None,
                           "created_at": "2024-04-05T19:34:38.101Z", "updated_at": "2024-04-05T19:34:38.101Z",
                           "deleted_at": None}],
                "checklists": [], "checklistItems": [], "images": [],
            },
            "deletions": [{"id": "n-42", "type": "nodes"}],
            "serverTimestamp": 1712345678901,
        }
    })
