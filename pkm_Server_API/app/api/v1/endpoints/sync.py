# pkm_Server_API/app/api/v1/endpoints/sync.py
# Description: Incremental sync endpoint. Clients pull every change since their last serverTimestamp.
#
# Imports
import asyncio
from typing import Optional
#
# 3rd-party imports
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.api.v1.API_Deps.PKM_DB_Deps import get_pkm_db
from pkm_Server_API.app.api.v1.API_Deps.v1_endpoint_deps import limiter
from pkm_Server_API.app.api.v1.schemas.notes_schemas import DetailResponse
from pkm_Server_API.app.api.v1.schemas.sync_schemas import SyncResponse
from pkm_Server_API.app.core.AuthNZ.User_DB_Handling import get_request_user, User
from pkm_Server_API.app.core.config import settings
from pkm_Server_API.app.core.DB_Management.PKM_DB import PKMDatabase
from pkm_Server_API.app.core.Sync.exceptions import InvalidCutoffError, SyncStorageError
from pkm_Server_API.app.core.Sync.sync_service import get_changes_since, parse_since
#
#######################################################################################################################
#
# Functions:

router = APIRouter()


@router.get("",
            response_model=SyncResponse,
            summary="Fetch changes since a timestamp",
            responses={
                status.HTTP_400_BAD_REQUEST: {"model": DetailResponse},
                status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": DetailResponse},
            })
@limiter.limit(settings["SYNC_RATE_LIMIT"])
async def get_changes(
    request: Request,  # required by the limiter
    since: Optional[str] = Query(None, description="Milliseconds since the Unix epoch. Omit for a full sync."),
    current_user: User = Depends(get_request_user),
    db: PKMDatabase = Depends(get_pkm_db),
):
    """
    Returns live rows updated after `since` and ids of rows deleted after it,
    limited to what the user owns. Send `serverTimestamp` back as `since` next time.
    """
    try:
        since_ms = parse_since(since)
    except InvalidCutoffError as e:
        logger.info(f"User {current_user.id} sent invalid sync cutoff {since!r}.")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        # The collection is synchronous sqlite work; keep it off the event loop
        payload = await asyncio.to_thread(
            get_changes_since, db, current_user.id, since_ms, settings["SYNC_IMAGE_SCOPE"]
        )
    except SyncStorageError as e:
        logger.error(f"Sync failed for user {current_user.id}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch changes.")
    except Exception as e:
        logger.opt(exception=e).error(f"Unexpected error during sync for user {current_user.id}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch changes.")

    return SyncResponse(**payload.to_dict())

#
# End of sync.py
#######################################################################################################################
