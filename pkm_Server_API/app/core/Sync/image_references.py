# image_references.py
# Description: Records when a user's note, node or checklist item stops pointing at an uploaded image.
#
# Imports
import sqlite3
from typing import Optional
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.core.Sync.entity_kinds import UPLOAD_URL_PREFIX
#
########################################################################################################################
#
# Functions:

def release_image_reference(conn: sqlite3.Connection, user_id: int, previous_url: Optional[str],
                            new_url: Optional[str], released_at: str) -> bool:
    """
    Stores a release row when a referencing row moves away from `previous_url`.

    The collector reads these to send an image tombstone once the image has
    left the user's scope. Must run in the transaction that changes the
    reference, stamped with that row's new updated_at.
    Returns True when a release was recorded.
    """
    if not previous_url or previous_url == new_url or not previous_url.startswith(UPLOAD_URL_PREFIX):
        return False
    conn.execute(
        "INSERT INTO image_scope_releases (user_id, image_url, released_at) VALUES (?, ?, ?)",
        (user_id, previous_url, released_at),
    )
    logger.debug(f"User {user_id} released image reference {previous_url} at {released_at}.")
    return True

#
# End of image_references.py
########################################################################################################################
