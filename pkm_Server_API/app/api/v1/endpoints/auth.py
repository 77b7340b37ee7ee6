# pkm_Server_API/app/api/v1/endpoints/auth.py
# Description: Registration and OAuth2 password-flow login for multi-user mode.
#
# Imports
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.api.v1.API_Deps.PKM_DB_Deps import get_pkm_db
from pkm_Server_API.app.api.v1.API_Deps.db_error_handling import handle_db_errors
from pkm_Server_API.app.api.v1.API_Deps.v1_endpoint_deps import limiter
from pkm_Server_API.app.api.v1.schemas.auth import Token, UserCreate, UserRead
from pkm_Server_API.app.core.AuthNZ.User_DB_Handling import get_request_user, User
from pkm_Server_API.app.core.config import settings
from pkm_Server_API.app.core.DB_Management.PKM_DB import PKMDatabase
from pkm_Server_API.app.core.DB_Management.Users_DB import (
    MIN_PASSWORD_LENGTH,
    UNUSABLE_PASSWORD_HASH,
    create_user,
    get_user_by_id,
    get_user_by_username,
)
from pkm_Server_API.app.core.Security.Security import create_access_token, hash_password, verify_password
#
#######################################################################################################################
#
# Functions:
router = APIRouter()


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED,
             summary="Create a user account")
@limiter.limit(settings["AUTH_RATE_LIMIT"])
async def register_user(
        request: Request,  # required by the limiter
        user_in: UserCreate,
        db: PKMDatabase = Depends(get_pkm_db),
):
    if not user_in.username or not user_in.username.strip() or not user_in.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Username and password are required.")
    if len(user_in.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    try:
        user = create_user(db, user_in.username, hash_password(user_in.password), email=user_in.email)
    except Exception as e:
        handle_db_errors(e, "user")
    logger.info(f"Registered user '{user['username']}' (ID {user['id']}).")
    return user


@router.post("/login", response_model=Token, summary="Exchange username and password for a bearer token")
@limiter.limit(settings["AUTH_RATE_LIMIT"])
async def login_for_access_token(
        request: Request,  # required by the limiter
        form_data: OAuth2PasswordRequestForm = Depends(),
        db: PKMDatabase = Depends(get_pkm_db),
):
    """
    OAuth2 compatible token login. The form carries `username` and `password`
    as application/x-www-form-urlencoded fields.
    """
    invalid_credentials = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        user = get_user_by_username(db, form_data.username)
    except Exception as e:
        handle_db_errors(e, "user")

    if not user or user.get("password_hash") in (None, "", UNUSABLE_PASSWORD_HASH):
        logger.info(f"Login failed for unknown or password-less user '{form_data.username}'.")
        raise invalid_credentials
    if not verify_password(form_data.password, user["password_hash"]):
        logger.info(f"Login failed for user '{form_data.username}': wrong password.")
        raise invalid_credentials
    if not user["is_active"]:
        logger.warning(f"Login attempt by inactive user '{form_data.username}'.")
        raise invalid_credentials

    return Token(access_token=create_access_token(data={"user_id": user["id"]}))


@router.get("/me", response_model=UserRead, summary="The authenticated user")
async def read_current_user(
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        user = get_user_by_id(db, current_user.id)
    except Exception as e:
        handle_db_errors(e, "user")
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user

#
# End of auth.py
#######################################################################################################################
