# Checklists_Library.py
# Description: Checklists and their nested items. Items are owned through their checklist.
#
# Imports
import sqlite3
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
from pkm_Server_API.app.core.Sync.soft_delete import live_only, soft_delete, soft_delete_where
#
#######################################################################################################################
#
# Functions:

ITEM_UPDATABLE_FIELDS = ("content", "is_completed", "parent_item_id", "image_url")

# Live descendants of an item, the item itself included
_SUBTREE_CTE = f"""
WITH RECURSIVE subtree(id) AS (
    SELECT id FROM checklist_items WHERE id = ?
    UNION
    SELECT ci.id FROM checklist_items ci JOIN subtree s ON ci.parent_item_id = s.id
    WHERE {live_only('ci')}
)
SELECT id FROM subtree
"""


# --- Checklists ---

def create_checklist(db: PKMDatabase, user_id: int, title: str) -> Dict[str, Any]:
    if not title or not title.strip():
        raise InputError("Checklist title cannot be empty.")
    with db.transaction() as conn:
        now = db.now_iso()
        checklist_id = db.insert_record(conn, "checklists", {
            "user_id": user_id,
            "title": title.strip(),
            "created_at": now,
            "updated_at": now,
        })
        checklist = db.fetch_record(conn, "checklists", checklist_id)
    logger.info(f"User {user_id} created checklist {checklist_id}.")
    return checklist


def list_checklists(db: PKMDatabase, user_id: int) -> List[Dict[str, Any]]:
    cursor = db.execute_query(
        f"SELECT * FROM checklists WHERE user_id = ? AND {live_only()} ORDER BY created_at ASC, id ASC", (user_id,))
    return db.rows_to_dicts(cursor.fetchall())


def get_checklist(db: PKMDatabase, user_id: int, checklist_id: int) -> Dict[str, Any]:
    row = db.execute_query(
        f"SELECT * FROM checklists WHERE id = ? AND user_id = ? AND {live_only()}",
        (checklist_id, user_id)).fetchone()
    if row is None:
        raise NotFoundError("Checklist not found.", entity="checklists", entity_id=checklist_id)
    return dict(row)


def update_checklist(db: PKMDatabase, user_id: int, checklist_id: int,
                     title: Optional[str] = None) -> Dict[str, Any]:
    changes: Dict[str, Any] = {}
    if title is not None:
        if not title.strip():
            raise InputError("Checklist title cannot be empty.")
        changes["title"] = title.strip()
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.CHECKLISTS, checklist_id, user_id)
        changes["updated_at"] = db.now_iso()
        db.update_record(conn, "checklists", checklist_id, changes)
        checklist = db.fetch_record(conn, "checklists", checklist_id)
    logger.info(f"User {user_id} updated checklist {checklist_id}.")
    return checklist


def delete_checklist(db: PKMDatabase, user_id: int, checklist_id: int) -> None:
    """Tombstones the checklist and all of its live items."""
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.CHECKLISTS, checklist_id, user_id)
        now = db.now_iso()
        items = soft_delete_where(conn, SyncKind.CHECKLIST_ITEMS, "checklist_id = ?", (checklist_id,), now)
        soft_delete(conn, SyncKind.CHECKLISTS, checklist_id, now)
    logger.info(f"User {user_id} deleted checklist {checklist_id} ({items} items).")


# --- Items ---

def _get_live_item(conn: sqlite3.Connection, checklist_id: int, item_id: int) -> Dict[str, Any]:
    row = conn.execute(
        f"SELECT * FROM checklist_items WHERE id = ? AND checklist_id = ? AND {live_only()}",
        (item_id, checklist_id)).fetchone()
    if row is None:
        raise NotFoundError("Checklist item not found.", entity="checklist_items", entity_id=item_id)
    return dict(row)


def _validate_parent(conn: sqlite3.Connection, checklist_id: int, parent_item_id: Optional[int],
                     item_id: Optional[int] = None) -> None:
    if parent_item_id is None:
        return
    parent = conn.execute(
        f"SELECT id FROM checklist_items WHERE id = ? AND checklist_id = ? AND {live_only()}",
        (parent_item_id, checklist_id)).fetchone()
    if parent is None:
        raise InputError("Parent item not found in this checklist.")
    if item_id is not None:
        subtree = {row[0] for row in conn.execute(_SUBTREE_CTE, (item_id,)).fetchall()}
        if parent_item_id in subtree:
            raise InputError("An item cannot be nested under itself or one of its descendants.")


def _sibling_clause(parent_item_id: Optional[int]):
    if parent_item_id is None:
        return "parent_item_id IS NULL", ()
    return "parent_item_id = ?", (parent_item_id,)


def _next_order(conn: sqlite3.Connection, checklist_id: int, parent_item_id: Optional[int]) -> int:
    sibling_sql, sibling_params = _sibling_clause(parent_item_id)
    row = conn.execute(
        f'SELECT MAX("order") FROM checklist_items WHERE checklist_id = ? AND {sibling_sql} AND {live_only()}',
        (checklist_id, *sibling_params)).fetchone()
    return (row[0] or 0) + 1


def create_item(db: PKMDatabase, user_id: int, checklist_id: int, content: str,
                parent_item_id: Optional[int] = None, image_url: Optional[str] = None) -> Dict[str, Any]:
    if content is None or not str(content).strip():
        raise InputError("Item content cannot be empty.")
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.CHECKLISTS, checklist_id, user_id)
        _validate_parent(conn, checklist_id, parent_item_id)
        now = db.now_iso()
        item_id = db.insert_record(conn, "checklist_items", {
            "checklist_id": checklist_id,
            "parent_item_id": parent_item_id,
            "content": content,
            "is_completed": 0,
            "order": _next_order(conn, checklist_id, parent_item_id),
            "image_url": image_url,
            "created_at": now,
            "updated_at": now,
        })
        item = db.fetch_record(conn, "checklist_items", item_id)
    logger.info(f"User {user_id} created item {item_id} in checklist {checklist_id}.")
    return item


def list_items(db: PKMDatabase, user_id: int, checklist_id: int) -> List[Dict[str, Any]]:
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.CHECKLISTS, checklist_id, user_id)
        rows = conn.execute(
            f'SELECT * FROM checklist_items WHERE checklist_id = ? AND {live_only()} ORDER BY "order" ASC, id ASC',
            (checklist_id,)).fetchall()
    return db.rows_to_dicts(rows)


def update_item(db: PKMDatabase, user_id: int, checklist_id: int, item_id: int,
                changes: Dict[str, Any]) -> Dict[str, Any]:
    values = {key: value for key, value in changes.items() if key in ITEM_UPDATABLE_FIELDS}
    if "content" in values and (values["content"] is None or not str(values["content"]).strip()):
        raise InputError("Item content cannot be empty.")
    if "is_completed" in values:
        values["is_completed"] = 1 if values["is_completed"] else 0
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.CHECKLISTS, checklist_id, user_id)
        current = _get_live_item(conn, checklist_id, item_id)
        if "parent_item_id" in values and values["parent_item_id"] != current["parent_item_id"]:
            _validate_parent(conn, checklist_id, values["parent_item_id"], item_id)
            # Moving under a new parent appends the item to its new siblings
            values["order"] = _next_order(conn, checklist_id, values["parent_item_id"])
        values["updated_at"] = db.now_iso()
        if "image_url" in values:
            release_image_reference(conn, user_id, current["image_url"], values["image_url"], values["updated_at"])
        db.update_record(conn, "checklist_items", item_id, values)
        item = db.fetch_record(conn, "checklist_items", item_id)
    logger.debug(f"User {user_id} updated item {item_id} in checklist {checklist_id}.")
    return item


def reorder_item(db: PKMDatabase, user_id: int, checklist_id: int, item_id: int, position: int) -> List[Dict[str, Any]]:
    """
    Moves the item to the 0-based `position` among its live siblings and
    renumbers the siblings 1..n. Positions past the end append. Every row whose
    order changes, and the moved item itself, gets a new updated_at.
    Returns the siblings in their new order.
    """
    if position < 0:
        raise InputError("Position must be zero or greater.")
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.CHECKLISTS, checklist_id, user_id)
        item = _get_live_item(conn, checklist_id, item_id)
        sibling_sql, sibling_params = _sibling_clause(item["parent_item_id"])
        siblings = [dict(row) for row in conn.execute(
            f'SELECT id, "order" FROM checklist_items WHERE checklist_id = ? AND {sibling_sql} AND {live_only()} '
            f'ORDER BY "order" ASC, id ASC',
            (checklist_id, *sibling_params)).fetchall()]

        ordered_ids = [sibling["id"] for sibling in siblings if sibling["id"] != item_id]
        ordered_ids.insert(min(position, len(ordered_ids)), item_id)
        previous_order = {sibling["id"]: sibling["order"] for sibling in siblings}

        now = db.now_iso()
        for new_order, sibling_id in enumerate(ordered_ids, start=1):
            if previous_order[sibling_id] != new_order or sibling_id == item_id:
                db.update_record(conn, "checklist_items", sibling_id, {"order": new_order, "updated_at": now})

        rows = conn.execute(
            f'SELECT * FROM checklist_items WHERE checklist_id = ? AND {sibling_sql} AND {live_only()} '
            f'ORDER BY "order" ASC, id ASC',
            (checklist_id, *sibling_params)).fetchall()
    logger.info(f"User {user_id} moved item {item_id} to position {position} in checklist {checklist_id}.")
    return db.rows_to_dicts(rows)


def delete_item(db: PKMDatabase, user_id: int, checklist_id: int, item_id: int) -> None:
    """Tombstones the item and all of its live descendants."""
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.CHECKLISTS, checklist_id, user_id)
        _get_live_item(conn, checklist_id, item_id)
        count = soft_delete_where(conn, SyncKind.CHECKLIST_ITEMS, f"id IN ({_SUBTREE_CTE})", (item_id,),
                                  db.now_iso())
    logger.info(f"User {user_id} deleted item {item_id} from checklist {checklist_id} ({count} rows).")

#
# End of Checklists_Library.py
#######################################################################################################################
