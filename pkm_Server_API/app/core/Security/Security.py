# Security.py
#
# Description: This file contains functions for hashing passwords and creating/validating JWT tokens.
#
# Imports
from datetime import datetime, timedelta, timezone
from typing import Optional

# 3rd-Party Libraries
from passlib.context import CryptContext
import jwt
from loguru import logger
from pydantic import BaseModel

# Local Imports
from pkm_Server_API.app.core.config import settings

#######################################################################################################################

# --- Configuration ---
SECRET_KEY = settings["JWT_SECRET_KEY"]
ALGORITHM = settings["JWT_ALGORITHM"]
ACCESS_TOKEN_EXPIRE_MINUTES = settings["ACCESS_TOKEN_EXPIRE_MINUTES"]

# --- Password Hashing ---
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """Hashes a plain text password using bcrypt."""
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifies a plain text password against a stored hash. Unrecognised hashes never verify."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        logger.warning("Password verification attempted against an unusable hash.")
        return False


# --- JWT Handling ---

class TokenData(BaseModel):
    user_id: Optional[int] = None


def create_access_token(data: dict, expires_delta_minutes: Optional[int] = None) -> str:
    """
    Creates a JWT access token.

    Args:
        data (dict): Data to encode in the token. MUST contain 'user_id'.
        expires_delta_minutes (Optional[int]): Custom expiration time in minutes.
                                                 Defaults to ACCESS_TOKEN_EXPIRE_MINUTES.

    Returns:
        str: The encoded JWT access token.

    Raises:
        ValueError: If 'user_id' is missing in the input data.
    """
    if "user_id" not in data:
        logger.error("Attempted to create token without 'user_id' in data.")
        raise ValueError("Input data for token creation must contain 'user_id'.")

    minutes = expires_delta_minutes if expires_delta_minutes is not None else ACCESS_TOKEN_EXPIRE_MINUTES
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": str(data["user_id"]),  # 'sub' must be a string
        "exp": issued_at + timedelta(minutes=minutes),
        "iat": issued_at,
    }
    logger.debug(f"Creating token for user_id: {data['user_id']} expiring in {minutes} minutes")
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[TokenData]:
    """
    Decodes and validates a JWT access token.

    Returns:
        Optional[TokenData]: The extracted user_id if the token is valid and
                             carries a numeric 'sub' claim, otherwise None.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.warning("Token validation failed: Signature has expired.")
        return None
    except jwt.InvalidSignatureError:
        logger.error("Token validation failed: Invalid signature.")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Token validation failed: Invalid token - {e}")
        return None

    user_id_str = payload.get("sub")
    if user_id_str is None:
        logger.warning("Token decoded successfully, but 'sub' (user_id) claim is missing.")
        return None
    try:
        return TokenData(user_id=int(user_id_str))
    except (ValueError, TypeError):
        logger.warning(f"Token 'sub' claim '{user_id_str}' could not be converted to integer.")
        return None

#
# End of Security.py
# #####################################################################################################################
