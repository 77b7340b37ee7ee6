# assembler.py
# Description: Shapes a ChangeSet into the sync response payload.
#
# Imports
from dataclasses import dataclass
from typing import Any, Dict, List
#
# Local Imports
from pkm_Server_API.app.core.Sync.change_collector import ChangeSet, Tombstone
from pkm_Server_API.app.core.Sync.entity_kinds import SyncKind, describe
#
########################################################################################################################
#
# Types:


@dataclass
class SyncPayload:
    updates: Dict[str, List[Dict[str, Any]]]
    deletions: List[Tombstone]
    server_timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "updates": self.updates,
            "deletions": [tombstone.to_dict() for tombstone in self.deletions],
            "serverTimestamp": self.server_timestamp,
        }


#
# Functions:

def assemble(change_set: ChangeSet, collection_start_ms: int) -> SyncPayload:
    """
    Pure. Every payload key is present even when empty; deletions are
    flattened in kind order, then id order within a kind.
    """
    updates: Dict[str, List[Dict[str, Any]]] = {}
    deletions: List[Tombstone] = []
    for kind in SyncKind:
        updates[describe(kind).payload_key] = list(change_set.updated_by_kind.get(kind, []))
        deletions.extend(change_set.deleted_by_kind.get(kind, []))
    return SyncPayload(updates=updates, deletions=deletions, server_timestamp=collection_start_ms)

#
# End of assembler.py
########################################################################################################################
