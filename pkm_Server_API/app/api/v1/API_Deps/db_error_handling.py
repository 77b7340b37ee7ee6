# db_error_handling.py
# Description: Maps storage-layer exceptions to HTTP errors for the v1 endpoints.
#
# Imports
from typing import NoReturn
#
# 3rd-party Libraries
from fastapi import HTTPException, status
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.core.DB_Management.PKM_DB import (
    PKMDatabaseError, InputError, ConflictError, NotFoundError
)
#
#######################################################################################################################
#
# Functions:

def handle_db_errors(e: Exception, entity_type: str = "resource") -> NoReturn:
    """
    Re-raises `e` as an HTTPException. Ownership failures surface as 404, never 403.
    """
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, NotFoundError):
        logger.info(f"{entity_type} not found (ID: {e.entity_id}): {e}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity_type.capitalize()} not found")
    if isinstance(e, InputError):
        logger.warning(f"Input error for {entity_type}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, ConflictError):
        logger.warning(f"Conflict error for {entity_type} (ID: {e.entity_id}): {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                            detail=f"A {entity_type} with the provided identifier already exists.")
    if isinstance(e, PKMDatabaseError):
        logger.opt(exception=e).error(f"Database error for {entity_type}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail=f"A database error occurred while processing your request for {entity_type}.")
    if isinstance(e, ValueError):
        logger.warning(f"Value error for {entity_type}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.opt(exception=e).error(f"Unexpected error for {entity_type}: {e}")
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                        detail=f"An unexpected error occurred while processing your request for {entity_type}.")

#
# End of db_error_handling.py
#######################################################################################################################
