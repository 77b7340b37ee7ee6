# Sync/__init__.py
# PKM_DB imports .clock through this package, so nothing importing PKM_DB may be re-exported here.
from .clock import SyncClock, default_clock, ms_to_iso, iso_to_ms, EPOCH_ISO
from .entity_kinds import SyncKind, EntityDescriptor, describe
from .exceptions import SyncError, InvalidCutoffError, SyncStorageError
from .soft_delete import live_only, soft_delete, soft_delete_where

__all__ = [
    "SyncClock",
    "default_clock",
    "ms_to_iso",
    "iso_to_ms",
    "EPOCH_ISO",
    "SyncKind",
    "EntityDescriptor",
    "describe",
    "SyncError",
    "InvalidCutoffError",
    "SyncStorageError",
    "live_only",
    "soft_delete",
    "soft_delete_where",
]
