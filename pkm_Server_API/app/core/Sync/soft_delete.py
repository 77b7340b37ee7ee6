# soft_delete.py
# Description: The only way rows leave the live set. Rows are tombstoned, never removed.
#
# Imports
import sqlite3
from typing import Any, Optional, Sequence
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.core.Sync.entity_kinds import SyncKind, describe
#
########################################################################################################################
#
# Functions:


def live_only(alias: Optional[str] = None) -> str:
    """SQL predicate selecting rows that have not been soft-deleted."""
    return f"{alias}.deleted_at IS NULL" if alias else "deleted_at IS NULL"


def soft_delete(conn: sqlite3.Connection, kind: SyncKind, entity_id: Any, timestamp: str) -> int:
    """
    Tombstones one row: ``deleted_at`` and ``updated_at`` are both set to
    `timestamp`. Returns 1 when a live row was tombstoned and 0 when the row is
    missing or already deleted, so repeating a delete is harmless.

    Ownership must already have been checked by the caller.
    """
    descriptor = describe(kind)
    cursor = conn.execute(
        f"UPDATE {descriptor.table} SET deleted_at = ?, updated_at = ? "
        f"WHERE {descriptor.pk_column} = ? AND {live_only()}",
        (timestamp, timestamp, entity_id),
    )
    if cursor.rowcount:
        logger.debug(f"Soft-deleted {descriptor.table} id={entity_id} at {timestamp}.")
    return cursor.rowcount


def soft_delete_where(conn: sqlite3.Connection, kind: SyncKind, where_sql: str, params: Sequence[Any],
                      timestamp: str) -> int:
    """Tombstones every live row of `kind` matching `where_sql`. Used for cascades."""
    descriptor = describe(kind)
    cursor = conn.execute(
        f"UPDATE {descriptor.table} SET deleted_at = ?, updated_at = ? "
        f"WHERE ({where_sql}) AND {live_only()}",
        (timestamp, timestamp, *params),
    )
    if cursor.rowcount:
        logger.debug(f"Cascade soft-deleted {cursor.rowcount} row(s) of {descriptor.table} at {timestamp}.")
    return cursor.rowcount

#
# End of soft_delete.py
########################################################################################################################
