# ownership.py
# Description: Resolves which user owns a row, following parent links where the row has no owner column.
#
# Imports
import sqlite3
from typing import Any, Optional
#
# Local Imports
from pkm_Server_API.app.core.DB_Management.PKM_DB import NotFoundError
from pkm_Server_API.app.core.Sync.entity_kinds import (
    SyncKind, DirectOwner, ParentOwner, ImageOwner, describe
)
from pkm_Server_API.app.core.Sync.soft_delete import live_only
#
########################################################################################################################
#
# Functions:


def resolve_owner_user_id(conn: sqlite3.Connection, kind: SyncKind, entity_id: Any) -> Optional[int]:
    """
    Returns the id of the user owning the live row `entity_id` of `kind`.

    None is returned when the row does not exist, is tombstoned, or hangs off
    a parent that is missing or tombstoned. Images resolve to their uploader.
    """
    descriptor = describe(kind)
    row = conn.execute(
        f"SELECT * FROM {descriptor.table} WHERE {descriptor.pk_column} = ? AND {live_only()}",
        (entity_id,),
    ).fetchone()
    if row is None:
        return None

    owner = descriptor.owner
    if isinstance(owner, DirectOwner):
        return row[owner.column]
    if isinstance(owner, ParentOwner):
        parent_id = row[owner.fk_column]
        if parent_id is None:
            return None
        return resolve_owner_user_id(conn, owner.parent, parent_id)
    if isinstance(owner, ImageOwner):
        return row[owner.uploader_column]
    raise TypeError(f"Unsupported ownership strategy for {kind}: {owner!r}")


def ensure_owned(conn: sqlite3.Connection, kind: SyncKind, entity_id: Any, user_id: int) -> None:
    """Raises NotFoundError unless `user_id` owns the live row. A foreign row looks exactly like a missing one."""
    if resolve_owner_user_id(conn, kind, entity_id) != user_id:
        raise NotFoundError(f"{describe(kind).table} record not found.", entity=describe(kind).table,
                            entity_id=entity_id)

#
# End of ownership.py
########################################################################################################################
