# app/api/v1/endpoints/checklists.py
# Description: Checklists and their nested, ordered items.
#
# Imports
from typing import List
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, status
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.api.v1.API_Deps.PKM_DB_Deps import get_pkm_db
from pkm_Server_API.app.api.v1.API_Deps.db_error_handling import handle_db_errors
from pkm_Server_API.app.api.v1.schemas.checklist_schemas import (
    ChecklistCreate, ChecklistUpdate, ChecklistResponse,
    ChecklistItemCreate, ChecklistItemUpdate, ChecklistItemReorder, ChecklistItemResponse,
)
from pkm_Server_API.app.api.v1.schemas.notes_schemas import DetailResponse
from pkm_Server_API.app.core.AuthNZ.User_DB_Handling import get_request_user, User
from pkm_Server_API.app.core.Checklists import Checklists_Library
from pkm_Server_API.app.core.DB_Management.PKM_DB import PKMDatabase
#
#######################################################################################################################
#
# Functions:

router = APIRouter()

_NOT_FOUND = {status.HTTP_404_NOT_FOUND: {"model": DetailResponse}}


# --- Checklists ---
@router.post("/", response_model=ChecklistResponse, status_code=status.HTTP_201_CREATED,
             summary="Create a checklist")
async def create_checklist(
        checklist_in: ChecklistCreate,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Checklists_Library.create_checklist(db, current_user.id, checklist_in.title)
    except Exception as e:
        handle_db_errors(e, "checklist")


@router.get("/", response_model=List[ChecklistResponse], summary="List the current user's checklists")
async def list_checklists(
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Checklists_Library.list_checklists(db, current_user.id)
    except Exception as e:
        handle_db_errors(e, "checklists list")


@router.get("/{checklist_id}", response_model=ChecklistResponse, summary="Get a checklist", responses=_NOT_FOUND)
async def get_checklist(
        checklist_id: int,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Checklists_Library.get_checklist(db, current_user.id, checklist_id)
    except Exception as e:
        handle_db_errors(e, "checklist")


@router.put("/{checklist_id}", response_model=ChecklistResponse, summary="Rename a checklist",
            responses=_NOT_FOUND)
async def update_checklist(
        checklist_id: int,
        checklist_in: ChecklistUpdate,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Checklists_Library.update_checklist(db, current_user.id, checklist_id, title=checklist_in.title)
    except Exception as e:
        handle_db_errors(e, "checklist")


@router.delete("/{checklist_id}", status_code=status.HTTP_204_NO_CONTENT,
               summary="Soft-delete a checklist and its items", responses=_NOT_FOUND)
async def delete_checklist(
        checklist_id: int,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        Checklists_Library.delete_checklist(db, current_user.id, checklist_id)
    except Exception as e:
        handle_db_errors(e, "checklist")


# --- Items ---
@router.post("/{checklist_id}/items", response_model=ChecklistItemResponse, status_code=status.HTTP_201_CREATED,
             summary="Add an item, appended after its siblings", responses=_NOT_FOUND)
async def create_item(
        checklist_id: int,
        item_in: ChecklistItemCreate,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Checklists_Library.create_item(db, current_user.id, checklist_id, item_in.content,
                                              parent_item_id=item_in.parent_item_id)
    except Exception as e:
        handle_db_errors(e, "checklist item")


@router.get("/{checklist_id}/items", response_model=List[ChecklistItemResponse],
            summary="List a checklist's items in order", responses=_NOT_FOUND)
async def list_items(
        checklist_id: int,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Checklists_Library.list_items(db, current_user.id, checklist_id)
    except Exception as e:
        handle_db_errors(e, "checklist")


@router.put("/{checklist_id}/items/{item_id}", response_model=ChecklistItemResponse,
            summary="Update an item", responses=_NOT_FOUND)
async def update_item(
        checklist_id: int,
        item_id: int,
        item_in: ChecklistItemUpdate,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Checklists_Library.update_item(db, current_user.id, checklist_id, item_id,
                                              item_in.model_dump(exclude_unset=True))
    except Exception as e:
        handle_db_errors(e, "checklist item")


@router.patch("/{checklist_id}/items/{item_id}/order", response_model=List[ChecklistItemResponse],
              summary="Move an item among its siblings", responses=_NOT_FOUND)
async def reorder_item(
        checklist_id: int,
        item_id: int,
        reorder_in: ChecklistItemReorder,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        logger.debug(f"User {current_user.id} moving item {item_id} to position {reorder_in.position}")
        return Checklists_Library.reorder_item(db, current_user.id, checklist_id, item_id, reorder_in.position)
    except Exception as e:
        handle_db_errors(e, "checklist item")


@router.delete("/{checklist_id}/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT,
               summary="Soft-delete an item and its sub-items", responses=_NOT_FOUND)
async def delete_item(
        checklist_id: int,
        item_id: int,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        Checklists_Library.delete_item(db, current_user.id, checklist_id, item_id)
    except Exception as e:
        handle_db_errors(e, "checklist item")

#
# End of checklists.py
#######################################################################################################################
