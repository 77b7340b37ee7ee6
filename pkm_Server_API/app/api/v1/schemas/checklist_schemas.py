# app/api/v1/schemas/checklist_schemas.py
#
# Imports
from typing import Optional
# 3rd-party Libraries
from pydantic import BaseModel, Field
#
#######################################################################################################################
#
# Schemas:

# --- Checklist Schemas ---
class ChecklistCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)


class ChecklistUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)


class ChecklistResponse(BaseModel):
    id: int
    user_id: int
    title: str
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None


# --- Item Schemas ---
class ChecklistItemCreate(BaseModel):
    content: str = Field(..., min_length=1)
    parent_item_id: Optional[int] = Field(None, description="Nest the new item under this item")


class ChecklistItemUpdate(BaseModel):
    content: Optional[str] = Field(None, min_length=1)
    is_completed: Optional[bool] = None
    parent_item_id: Optional[int] = None
    image_url: Optional[str] = None


class ChecklistItemReorder(BaseModel):
    position: int = Field(..., ge=0, description="0-based position among the item's siblings")


class ChecklistItemResponse(BaseModel):
    id: int
    checklist_id: int
    parent_item_id: Optional[int] = None
    content: str
    is_completed: bool
    order: int
    image_url: Optional[str] = None
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None
