# change_collector.py
# Description: Gathers, per entity kind, the rows a user's client has not yet seen.
#
# Imports
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.core.Sync.entity_kinds import (
    SyncKind, DirectOwner, ParentOwner, ImageOwner, describe
)
from pkm_Server_API.app.core.Sync.soft_delete import live_only
#
########################################################################################################################
#
# Types:


@dataclass(frozen=True)
class Tombstone:
    id: Any
    type: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type}


@dataclass
class ChangeSet:
    updated_by_kind: Dict[SyncKind, List[Dict[str, Any]]] = field(default_factory=dict)
    deleted_by_kind: Dict[SyncKind, List[Tombstone]] = field(default_factory=dict)


#
# Functions:

def _image_url_sql(owner: ImageOwner) -> str:
    return f"('{owner.url_prefix}' || {owner.path_column})"


def _reference_query(owner: ImageOwner, user_id: int, image_scope: str, row_filter: str,
                     filter_params: List[Any]) -> Tuple[str, List[Any]]:
    """UNION of the image urls held by the user's referencing rows that pass `row_filter`."""
    queries = []
    params: List[Any] = []
    for ref_kind in owner.referenced_by:
        ref = describe(ref_kind)
        ref_sql, ref_params = scope_clause(ref_kind, user_id, image_scope)
        queries.append(f"SELECT image_url FROM {ref.table} WHERE image_url IS NOT NULL AND {ref_sql} "
                       f"AND {row_filter}")
        params.extend(ref_params)
        params.extend(filter_params)
    return " UNION ".join(queries), params


def scope_clause(kind: SyncKind, user_id: int, image_scope: str = "owned") -> Tuple[str, List[Any]]:
    """
    Builds the WHERE fragment restricting `kind` to rows owned by `user_id`.

    Parent-owned kinds scope through their parent table without a liveness
    filter, so tombstones under a deleted parent are still delivered.
    Images are in scope through their uploader or a live referencing row.
    """
    descriptor = describe(kind)
    owner = descriptor.owner

    if isinstance(owner, DirectOwner):
        return f"{owner.column} = ?", [user_id]

    if isinstance(owner, ParentOwner):
        parent = describe(owner.parent)
        parent_sql, parent_params = scope_clause(owner.parent, user_id, image_scope)
        return (f"{owner.fk_column} IN (SELECT {parent.pk_column} FROM {parent.table} WHERE {parent_sql})",
                parent_params)

    if isinstance(owner, ImageOwner):
        if image_scope == "global":
            return "1 = 1", []
        references_sql, references_params = _reference_query(owner, user_id, image_scope, live_only(), [])
        # IS keeps the clause false, not NULL, for images whose uploader is gone
        return (f"({owner.uploader_column} IS ? OR {_image_url_sql(owner)} IN ({references_sql}))",
                [user_id, *references_params])

    raise TypeError(f"Unsupported ownership strategy for {kind}: {owner!r}")


def _updated_clause(kind: SyncKind, user_id: int, cutoff_iso: str, image_scope: str) -> Tuple[str, List[Any]]:
    scope_sql, scope_params = scope_clause(kind, user_id, image_scope)
    owner = describe(kind).owner
    if isinstance(owner, ImageOwner) and image_scope != "global":
        # An image also counts as changed when a referencing row brought it into scope after the cutoff
        entered_sql, entered_params = _reference_query(
            owner, user_id, image_scope, f"{live_only()} AND updated_at > ?", [cutoff_iso])
        return (f"{scope_sql} AND {live_only()} AND (updated_at > ? OR {_image_url_sql(owner)} IN ({entered_sql}))",
                [*scope_params, cutoff_iso, *entered_params])
    return f"{scope_sql} AND updated_at > ? AND {live_only()}", [*scope_params, cutoff_iso]


def _deleted_clause(kind: SyncKind, user_id: int, cutoff_iso: str, image_scope: str) -> Tuple[str, List[Any]]:
    scope_sql, scope_params = scope_clause(kind, user_id, image_scope)
    owner = describe(kind).owner
    if isinstance(owner, ImageOwner) and image_scope != "global":
        # Images that left scope after the cutoff: the referencing row was tombstoned or pointed elsewhere
        left_sql, left_params = _reference_query(owner, user_id, image_scope, "deleted_at > ?", [cutoff_iso])
        left_sql += " UNION SELECT image_url FROM image_scope_releases WHERE user_id = ? AND released_at > ?"
        left_params.extend([user_id, cutoff_iso])
        return (f"(({scope_sql} AND deleted_at > ?) OR "
                f"(NOT {scope_sql} AND {_image_url_sql(owner)} IN ({left_sql})))",
                [*scope_params, cutoff_iso, *scope_params, *left_params])
    return f"{scope_sql} AND deleted_at > ?", [*scope_params, cutoff_iso]


def collect_changes(conn: sqlite3.Connection, user_id: int, cutoff_iso: str,
                    image_scope: str = "owned") -> ChangeSet:
    """
    Reads every kind, in declaration order, through `conn`.

    Updated set: live rows in scope with ``updated_at > cutoff``, all columns.
    Deleted set: rows in scope with ``deleted_at > cutoff``, id only.
    A row deleted after the cutoff is therefore only ever reported as deleted.

    With owned image scope an image is also reported as updated when it entered
    the user's scope after the cutoff, and as deleted when it left it.

    Storage errors propagate unchanged; callers abort the whole sync on them.
    """
    change_set = ChangeSet()
    for kind in SyncKind:
        descriptor = describe(kind)
        updated_sql, updated_params = _updated_clause(kind, user_id, cutoff_iso, image_scope)
        deleted_sql, deleted_params = _deleted_clause(kind, user_id, cutoff_iso, image_scope)

        updated_rows = conn.execute(
            f"SELECT * FROM {descriptor.table} WHERE {updated_sql} ORDER BY {descriptor.pk_column}",
            updated_params,
        ).fetchall()
        deleted_rows = conn.execute(
            f"SELECT {descriptor.pk_column} FROM {descriptor.table} WHERE {deleted_sql} "
            f"ORDER BY {descriptor.pk_column}",
            deleted_params,
        ).fetchall()

        change_set.updated_by_kind[kind] = [dict(row) for row in updated_rows]
        change_set.deleted_by_kind[kind] = [Tombstone(id=row[0], type=descriptor.table) for row in deleted_rows]
        logger.debug(f"Sync scan {descriptor.table}: {len(updated_rows)} updated, {len(deleted_rows)} deleted "
                     f"since {cutoff_iso} for user {user_id}.")
    return change_set

#
# End of change_collector.py
########################################################################################################################
