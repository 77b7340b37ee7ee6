# Notes_Library.py
# Description: Notes owned directly by a user.
#
# Imports
from typing import Any, Dict, List, Optional
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.core.DB_Management.PKM_DB import PKMDatabase, InputError, NotFoundError
from pkm_Server_API.app.core.Sync.entity_kinds import SyncKind
from pkm_Server_API.app.core.Sync.image_references import release_image_reference
from pkm_Server_API.app.core.Sync.ownership import ensure_owned
from pkm_Server_API.app.core.Sync.soft_delete import live_only, soft_delete
#
#######################################################################################################################
#
# Functions:

NOTE_UPDATABLE_FIELDS = ("title", "content", "tags", "image_url")


def create_note(db: PKMDatabase, user_id: int, content: str, title: Optional[str] = None,
                tags: Optional[str] = None, image_url: Optional[str] = None) -> Dict[str, Any]:
    if content is None:  # Empty string is allowed
        raise InputError("Note content cannot be None.")
    with db.transaction() as conn:
        now = db.now_iso()
        note_id = db.insert_record(conn, "notes", {
            "user_id": user_id,
            "title": title.strip() if isinstance(title, str) else title,
            "content": content,
            "tags": tags,
            "image_url": image_url,
            "created_at": now,
            "updated_at": now,
        })
        note = db.fetch_record(conn, "notes", note_id)
    logger.info(f"User {user_id} created note {note_id}.")
    return note


def list_notes(db: PKMDatabase, user_id: int, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
    cursor = db.execute_query(
        f"SELECT * FROM notes WHERE user_id = ? AND {live_only()} ORDER BY updated_at DESC, id DESC LIMIT ? OFFSET ?",
        (user_id, limit, offset))
    return db.rows_to_dicts(cursor.fetchall())


def get_note(db: PKMDatabase, user_id: int, note_id: int) -> Dict[str, Any]:
    row = db.execute_query(
        f"SELECT * FROM notes WHERE id = ? AND user_id = ? AND {live_only()}", (note_id, user_id)).fetchone()
    if row is None:
        raise NotFoundError("Note not found.", entity="notes", entity_id=note_id)
    return dict(row)


def update_note(db: PKMDatabase, user_id: int, note_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Applies `changes` to the note. An empty change set is still an update:
    updated_at advances so the note is re-delivered on the next sync.
    """
    values = {key: value for key, value in changes.items() if key in NOTE_UPDATABLE_FIELDS}
    if "content" in values and values["content"] is None:
        raise InputError("Note content cannot be None.")
    if isinstance(values.get("title"), str):
        values["title"] = values["title"].strip()
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.NOTES, note_id, user_id)
        previous = db.fetch_record(conn, "notes", note_id)
        values["updated_at"] = db.now_iso()
        if "image_url" in values:
            release_image_reference(conn, user_id, previous["image_url"], values["image_url"], values["updated_at"])
        db.update_record(conn, "notes", note_id, values)
        note = db.fetch_record(conn, "notes", note_id)
    logger.info(f"User {user_id} updated note {note_id}: {sorted(values)}")
    return note


def delete_note(db: PKMDatabase, user_id: int, note_id: int) -> None:
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.NOTES, note_id, user_id)
        soft_delete(conn, SyncKind.NOTES, note_id, db.now_iso())
    logger.info(f"User {user_id} deleted note {note_id}.")

#
# End of Notes_Library.py
#######################################################################################################################
