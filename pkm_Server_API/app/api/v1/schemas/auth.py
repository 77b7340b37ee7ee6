# /pkm_Server_API/app/api/v1/schemas/auth.py
#
# Imports
from typing import Optional
#
# 3rd-party Libraries
from pydantic import BaseModel, ConfigDict, Field
#
#######################################################################################################################
#
# Schemas:

class UserCreate(BaseModel):
    """What the client sends to register a new user."""
    username: Optional[str] = Field(None, max_length=150)
    password: Optional[str] = Field(None, description="At least 3 characters")
    email: Optional[str] = None


class UserRead(BaseModel):
    id: int
    username: str
    email: Optional[str] = None
    is_active: bool
    created_at: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
