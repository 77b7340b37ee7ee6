# pkm_Server_API/app/api/v1/endpoints/images.py
# Description: Image upload and deletion. Stored files are served under /uploads by main.py.
#
# Imports
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, File, UploadFile, status
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.api.v1.API_Deps.PKM_DB_Deps import get_pkm_db
from pkm_Server_API.app.api.v1.API_Deps.db_error_handling import handle_db_errors
from pkm_Server_API.app.api.v1.schemas.image_schemas import ImageUploadResponse
from pkm_Server_API.app.api.v1.schemas.notes_schemas import DetailResponse
from pkm_Server_API.app.core.AuthNZ.User_DB_Handling import get_request_user, User
from pkm_Server_API.app.core.config import settings
from pkm_Server_API.app.core.DB_Management.PKM_DB import PKMDatabase
from pkm_Server_API.app.core.Images import Images_Library
#
#######################################################################################################################
#
# Functions:
router = APIRouter()


@router.post("/", response_model=ImageUploadResponse, status_code=status.HTTP_201_CREATED,
             summary="Upload an image",
             responses={status.HTTP_400_BAD_REQUEST: {"model": DetailResponse}})
async def upload_image(
        file: UploadFile = File(..., description="JPEG, PNG, GIF or WEBP image"),
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    max_size = settings["MAX_UPLOAD_SIZE_BYTES"]
    try:
        # One byte past the limit is enough to reject the upload without buffering all of it
        data = await file.read(max_size + 1)
    finally:
        await file.close()

    try:
        return Images_Library.save_image(
            db, current_user.id,
            upload_dir=settings["UPLOAD_DIR"],
            original_filename=file.filename,
            content_type=file.content_type,
            data=data,
            allowed_mimetypes=settings["ALLOWED_IMAGE_MIMETYPES"],
            max_size=max_size,
        )
    except Exception as e:
        logger.info(f"Image upload by user {current_user.id} rejected or failed: {e}")
        handle_db_errors(e, "image")


@router.delete("/{image_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Soft-delete an image",
               responses={status.HTTP_404_NOT_FOUND: {"model": DetailResponse}})
async def delete_image(
        image_id: int,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        Images_Library.delete_image(db, current_user.id, image_id)
    except Exception as e:
        handle_db_errors(e, "image")

#
# End of images.py
#######################################################################################################################
