# app/api/v1/schemas/image_schemas.py
#
# Imports
# 3rd-party Libraries
from pydantic import BaseModel, ConfigDict
#
#######################################################################################################################
#
# Schemas:

class ImageUploadResponse(BaseModel):
    id: int
    filename: str
    mimetype: str
    size: int
    url: str
    created_at: str

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": 7,
            "filename": "diagram.png",
            "mimetype": "image/png",
            "size": 48213,
            "url": "/uploads/1712345678901-482913-diagram.png",
            "created_at": "2024-04-05T19:34:38.901Z",
        }
    })
