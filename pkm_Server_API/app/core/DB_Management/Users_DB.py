# Users_DB.py
# Description: User account storage on top of PKMDatabase.
#
# Imports
from typing import Any, Dict, Optional
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.core.DB_Management.PKM_DB import PKMDatabase, ConflictError, InputError
#
#######################################################################################################################
#
# Functions:

# Marker stored for accounts that cannot log in with a password (e.g. the single-user account)
UNUSABLE_PASSWORD_HASH = "!"
MIN_PASSWORD_LENGTH = 3


class UserNotFoundError(Exception):
    pass


def _public(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    user = dict(row)
    user["is_active"] = bool(user.get("is_active", 1))
    return user


def create_user(db: PKMDatabase, username: str, password_hash: str, email: Optional[str] = None) -> Dict[str, Any]:
    if not username or not username.strip():
        raise InputError("Username is required.")
    if not password_hash:
        raise InputError("Password is required.")
    now = db.now_iso()
    with db.transaction() as conn:
        try:
            user_id = db.insert_record(conn, "users", {
                "username": username.strip(),
                "email": email,
                "password_hash": password_hash,
                "is_active": 1,
                "created_at": now,
                "updated_at": now,
            })
        except ConflictError as e:
            raise ConflictError("Username already exists.", entity="users", entity_id=username) from e
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    logger.info(f"Created user '{username}' with ID {user_id}.")
    return _public(dict(row))


def get_user_by_id(db: PKMDatabase, user_id: int) -> Optional[Dict[str, Any]]:
    row = db.execute_query("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    return _public(dict(row)) if row else None


def get_user_by_username(db: PKMDatabase, username: str) -> Optional[Dict[str, Any]]:
    row = db.execute_query("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
    return _public(dict(row)) if row else None


def ensure_user_exists(db: PKMDatabase, user_id: int, username: str) -> Dict[str, Any]:
    """Creates a password-less account with a fixed id if it is missing. Used in single-user mode."""
    existing = get_user_by_id(db, user_id)
    if existing:
        return existing
    now = db.now_iso()
    with db.transaction() as conn:
        conn.execute(
            "INSERT OR IGNORE INTO users (id, username, email, password_hash, is_active, created_at, updated_at) "
            "VALUES (?, ?, NULL, ?, 1, ?, ?)",
            (user_id, username, UNUSABLE_PASSWORD_HASH, now, now),
        )
    logger.info(f"Ensured user '{username}' (ID {user_id}) exists.")
    user = get_user_by_id(db, user_id)
    if user is None:
        raise UserNotFoundError(f"User {user_id} could not be created; username '{username}' may be taken.")
    return user

#
# End of Users_DB.py
#######################################################################################################################
