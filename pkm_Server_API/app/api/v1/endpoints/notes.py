# app/api/v1/endpoints/notes.py
from typing import List

from fastapi import (
    APIRouter,
    Depends,
    Query,
    status,
)
from loguru import logger

# Local Imports
from pkm_Server_API.app.api.v1.API_Deps.PKM_DB_Deps import get_pkm_db
from pkm_Server_API.app.api.v1.API_Deps.db_error_handling import handle_db_errors
from pkm_Server_API.app.api.v1.schemas.notes_schemas import NoteCreate, NoteUpdate, NoteResponse, DetailResponse
from pkm_Server_API.app.core.AuthNZ.User_DB_Handling import get_request_user, User
from pkm_Server_API.app.core.DB_Management.PKM_DB import PKMDatabase
from pkm_Server_API.app.core.Notes import Notes_Library

router = APIRouter()


# --- Notes Endpoints ---
@router.post(
    "/",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new note",
)
async def create_note(
        note_in: NoteCreate,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        logger.info(f"User {current_user.id} creating note: Title='{(note_in.title or '')[:30]}'")
        return Notes_Library.create_note(db, current_user.id, content=note_in.content,
                                         title=note_in.title, tags=note_in.tags, image_url=note_in.image_url)
    except Exception as e:
        handle_db_errors(e, "note")


@router.get(
    "/",
    response_model=List[NoteResponse],
    summary="List the current user's notes, most recently updated first",
)
async def list_notes(
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
        limit: int = Query(100, ge=1, le=1000, description="Number of notes to return"),
        offset: int = Query(0, ge=0, description="Offset for pagination"),
):
    try:
        return Notes_Library.list_notes(db, current_user.id, limit=limit, offset=offset)
    except Exception as e:
        handle_db_errors(e, "notes list")


@router.get(
    "/{note_id}",
    response_model=NoteResponse,
    summary="Get a specific note by ID",
    responses={status.HTTP_404_NOT_FOUND: {"model": DetailResponse}},
)
async def get_note(
        note_id: int,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Notes_Library.get_note(db, current_user.id, note_id)
    except Exception as e:
        handle_db_errors(e, "note")


@router.put(
    "/{note_id}",
    response_model=NoteResponse,
    summary="Update an existing note",
    responses={status.HTTP_404_NOT_FOUND: {"model": DetailResponse}},
)
async def update_note(
        note_id: int,
        note_in: NoteUpdate,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    update_data = note_in.model_dump(exclude_unset=True)
    try:
        logger.info(f"User {current_user.id} updating note {note_id}: DataKeys={list(update_data.keys())}")
        return Notes_Library.update_note(db, current_user.id, note_id, update_data)
    except Exception as e:
        handle_db_errors(e, "note")


@router.delete(
    "/{note_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Soft-delete a note",
    responses={status.HTTP_404_NOT_FOUND: {"model": DetailResponse}},
)
async def delete_note(
        note_id: int,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        Notes_Library.delete_note(db, current_user.id, note_id)
    except Exception as e:
        handle_db_errors(e, "note")
