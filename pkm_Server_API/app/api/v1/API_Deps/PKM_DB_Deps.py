# pkm_Server_API/app/api/v1/API_Deps/PKM_DB_Deps.py
import threading
from pathlib import Path
from typing import Optional

from fastapi import HTTPException, status
from cachetools import LRUCache
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.core.config import settings
from pkm_Server_API.app.core.DB_Management.PKM_DB import PKMDatabase, PKMDatabaseError
from pkm_Server_API.app.core.DB_Management.Users_DB import ensure_user_exists, UserNotFoundError
#
#######################################################################################################################

# --- Global Cache for PKM DB Instances (keyed by resolved database path) ---
MAX_CACHED_DB_INSTANCES = settings.get("MAX_CACHED_DB_INSTANCES", 4)
_pkm_db_instances: LRUCache = LRUCache(maxsize=MAX_CACHED_DB_INSTANCES)
_pkm_db_lock = threading.Lock()

SINGLE_USER_USERNAME = "single_user"


def _ensure_single_user(db_instance: PKMDatabase) -> None:
    """In single-user mode the fixed account must exist before anything references it."""
    if not settings["SINGLE_USER_MODE"]:
        return
    try:
        ensure_user_exists(db_instance, settings["SINGLE_USER_FIXED_ID"], SINGLE_USER_USERNAME)
    except (PKMDatabaseError, UserNotFoundError) as e:
        logger.opt(exception=e).error(f"Failed to ensure the single-user account exists: {e}")
        raise


def get_pkm_db_for_path(db_path: Path) -> PKMDatabase:
    """Returns a cached, live PKMDatabase for `db_path`, creating it on first use."""
    cache_key = str(Path(db_path).resolve())

    with _pkm_db_lock:
        db_instance: Optional[PKMDatabase] = _pkm_db_instances.get(cache_key)

    if db_instance:
        try:
            db_instance.get_connection().execute("SELECT 1")
            return db_instance
        except Exception as e:
            logger.warning(f"Cached PKMDatabase for {cache_key} seems inactive ({e}). Re-initializing.")
            with _pkm_db_lock:
                if _pkm_db_instances.get(cache_key) is db_instance:
                    _pkm_db_instances.pop(cache_key, None)

    with _pkm_db_lock:
        db_instance = _pkm_db_instances.get(cache_key)
        if db_instance:  # pragma: no cover
            return db_instance
        logger.info(f"Initializing PKMDatabase at path: {cache_key}")
        db_instance = PKMDatabase(db_path)
        _ensure_single_user(db_instance)
        _pkm_db_instances[cache_key] = db_instance
        return db_instance


# --- Main Dependency Function ---

async def get_pkm_db() -> PKMDatabase:
    """FastAPI dependency returning the shared PKMDatabase configured by DATABASE_PATH."""
    try:
        return get_pkm_db_for_path(settings["DATABASE_PATH"])
    except (PKMDatabaseError, UserNotFoundError) as e:
        logger.opt(exception=e).error(f"Failed to initialize PKMDatabase at {settings['DATABASE_PATH']}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not initialize the database."
        ) from e


def close_all_pkm_db_instances():
    """Closes every connection of every cached PKMDatabase, whichever thread opened it. Used at shutdown."""
    with _pkm_db_lock:
        logger.info(f"Closing all cached PKMDatabase instances ({len(_pkm_db_instances)})...")
        for cache_key, db_instance in list(_pkm_db_instances.items()):
            try:
                closed = db_instance.close_all_connections()
                logger.info(f"Closed PKMDatabase instance for {cache_key} ({closed} connections).")
            except Exception as e:
                logger.opt(exception=e).error(f"Error closing PKMDatabase instance for {cache_key}: {e}")
        _pkm_db_instances.clear()

#
# End of PKM_DB_Deps.py
#######################################################################################################################
