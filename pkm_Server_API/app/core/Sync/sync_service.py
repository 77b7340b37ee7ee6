# sync_service.py
# Description: Entry point of the incremental sync protocol: validate the cutoff, snapshot, collect, assemble.
#
# Imports
import re
import sqlite3
from typing import Optional
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.core.DB_Management.PKM_DB import PKMDatabase, PKMDatabaseError
from pkm_Server_API.app.core.Sync.assembler import SyncPayload, assemble
from pkm_Server_API.app.core.Sync.change_collector import collect_changes
from pkm_Server_API.app.core.Sync.clock import EPOCH_ISO, MAX_TIMESTAMP_MS, ms_to_iso
from pkm_Server_API.app.core.Sync.exceptions import InvalidCutoffError, SyncStorageError
#
########################################################################################################################
#
# Functions:

_DIGITS_ONLY = re.compile(r"[0-9]+")


def parse_since(raw: Optional[str]) -> Optional[int]:
    """
    Parses the `since` query value. Absent or empty means initial sync (None).
    Anything other than a plain base-10 non-negative integer is rejected.
    """
    if raw is None:
        return None
    value = raw.strip()
    if value == "":
        return None
    if not _DIGITS_ONLY.fullmatch(value):
        raise InvalidCutoffError(raw)
    since_ms = int(value)
    if since_ms > MAX_TIMESTAMP_MS:
        raise InvalidCutoffError(raw)
    return since_ms


def cutoff_to_iso(since_ms: Optional[int]) -> str:
    if since_ms is None:
        return EPOCH_ISO
    if isinstance(since_ms, bool) or not isinstance(since_ms, int) or since_ms < 0 or since_ms > MAX_TIMESTAMP_MS:
        raise InvalidCutoffError(since_ms)
    return ms_to_iso(since_ms)


def get_changes_since(db: PKMDatabase, user_id: int, since_ms: Optional[int],
                      image_scope: str = "owned") -> SyncPayload:
    """
    Returns every change visible to `user_id` after `since_ms`.

    The response timestamp is issued by the sync clock inside the same
    transaction that reads the tables. The transaction holds the write lock,
    so every mutation stamped earlier is already committed and visible, and
    every later mutation, from this process or another one sharing the file,
    is stamped after it. A client that sends the returned ``serverTimestamp``
    as its next cutoff misses nothing.
    """
    cutoff_iso = cutoff_to_iso(since_ms)
    try:
        with db.transaction() as conn:
            collection_start_ms = db.now_ms()
            change_set = collect_changes(conn, user_id, cutoff_iso, image_scope)
    except (PKMDatabaseError, sqlite3.Error) as e:
        logger.opt(exception=e).error(f"Sync collection failed for user {user_id} (since={since_ms}): {e}")
        raise SyncStorageError(f"Failed to read changes: {e}") from e

    payload = assemble(change_set, collection_start_ms)
    logger.info(f"Sync for user {user_id} since {since_ms}: "
                f"{sum(len(rows) for rows in payload.updates.values())} updates, "
                f"{len(payload.deletions)} deletions, serverTimestamp={payload.server_timestamp}.")
    return payload

#
# End of sync_service.py
########################################################################################################################
