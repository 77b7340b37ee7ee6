# User_DB_Handling.py
# Description: Handles user authentication and identification based on application mode.
#
# Imports
from typing import Optional
#
# 3rd-Party Libraries
from fastapi import Depends, HTTPException, status, Header
from loguru import logger
from pydantic import BaseModel, ValidationError
#
# Local Imports
from pkm_Server_API.app.api.v1.API_Deps.PKM_DB_Deps import get_pkm_db
from pkm_Server_API.app.api.v1.API_Deps.v1_endpoint_deps import oauth2_scheme
from pkm_Server_API.app.core.config import settings
from pkm_Server_API.app.core.DB_Management.PKM_DB import PKMDatabase, PKMDatabaseError
from pkm_Server_API.app.core.DB_Management.Users_DB import get_user_by_id
from pkm_Server_API.app.core.Security.Security import decode_access_token, TokenData

#######################################################################################################################

# --- User Model ---
# Standardized User object, used for both modes.
class User(BaseModel):
    id: int
    username: str
    email: Optional[str] = None
    is_active: bool = True


#######################################################################################################################

# --- Mode-Specific Verification Dependencies ---

async def verify_jwt_and_fetch_user(token: str, db: PKMDatabase) -> User:
    """Verifies the bearer token and loads the active user it names."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token_data: Optional[TokenData] = decode_access_token(token)
    if token_data is None or token_data.user_id is None:
        logger.warning("Token decoding failed or user_id missing in token payload.")
        raise credentials_exception

    user_id = token_data.user_id
    try:
        user_data = get_user_by_id(db, user_id)
    except PKMDatabaseError as e:
        logger.opt(exception=e).error(f"Error fetching user {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error retrieving user information."
        )
    if user_data is None:
        logger.warning(f"User with ID {user_id} from token not found.")
        raise credentials_exception

    try:
        user = User(**user_data)
    except ValidationError as e:
        logger.opt(exception=e).error(f"Failed to validate user data for user {user_id} into User model: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error processing user data."
        )

    if not user.is_active:
        logger.warning(f"Authentication attempt by inactive user: {user.username} (ID: {user.id})")
        raise credentials_exception

    logger.debug(f"Authenticated active user: {user.username} (ID: {user.id})")
    return user


# --- Combined Primary Authentication Dependency ---

async def get_request_user(
    api_key: Optional[str] = Header(None, alias="X-API-KEY"),
    token: Optional[str] = Depends(oauth2_scheme),
    db: PKMDatabase = Depends(get_pkm_db),
) -> User:
    """
    Determines the current user based on the application mode (single/multi).

    - In Single-User Mode: Verifies X-API-KEY against settings["SINGLE_USER_API_KEY"]
      and returns the fixed single user.
    - In Multi-User Mode: Verifies the Bearer token and returns the user it names.
    """
    if settings["SINGLE_USER_MODE"]:
        if api_key is None:
            logger.warning("Single-User Mode: X-API-KEY header is missing.")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="X-API-KEY header required for single-user mode"
            )
        if api_key != settings["SINGLE_USER_API_KEY"]:
            logger.warning(f"Single-User Mode: Invalid X-API-KEY received: '{api_key[:5]}...'")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid X-API-KEY"
            )
        user_data = get_user_by_id(db, settings["SINGLE_USER_FIXED_ID"])
        if user_data is None:
            logger.error("Single-User Mode: fixed user account is missing from the database.")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Configuration error")
        return User(**user_data)

    if token is None:
        logger.warning("Multi-User Mode: Authorization Bearer token is missing.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated (Bearer token required for multi-user mode)",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await verify_jwt_and_fetch_user(token, db)

#
# End of User_DB_Handling.py
#######################################################################################################################
