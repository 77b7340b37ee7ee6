# app/api/v1/schemas/notes_schemas.py
#
# Imports
from typing import Optional
# 3rd-party Libraries
from pydantic import BaseModel, Field
#
#######################################################################################################################
#
# Schemas:

# --- Note Schemas ---
class NoteCreate(BaseModel):
    title: Optional[str] = Field(None, max_length=255, description="Optional title of the note")
    content: str = Field(..., description="Rich text content, stored as-is")
    tags: Optional[str] = Field(None, description="Free-form tag string")
    image_url: Optional[str] = Field(None, description="Url of an uploaded image, e.g. /uploads/<file>")


class NoteUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None
    tags: Optional[str] = None
    image_url: Optional[str] = None


class NoteResponse(BaseModel):
    id: int
    user_id: int
    title: Optional[str] = None
    content: str
    tags: Optional[str] = None
    image_url: Optional[str] = None
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None


class DetailResponse(BaseModel):
    detail: str
