# entity_kinds.py
# Description: The closed set of syncable entity kinds and how each one is owned.
#
# Imports
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple, Union
#
########################################################################################################################
#
# Types:


class SyncKind(str, Enum):
    """
    Syncable entity kinds. Declaration order is the order in which the sync
    engine scans tables and lists deletions.
    """
    GRAPHS = "graphs"
    NODES = "nodes"
    EDGES = "edges"
    NOTES = "notes"
    CHECKLISTS = "checklists"
    CHECKLIST_ITEMS = "checklist_items"
    IMAGES = "images"


@dataclass(frozen=True)
class DirectOwner:
    """The row carries the owning user's id in `column`."""
    column: str = "user_id"


@dataclass(frozen=True)
class ParentOwner:
    """The row belongs to whoever owns the `parent` row named by `fk_column`."""
    fk_column: str
    parent: SyncKind


@dataclass(frozen=True)
class ImageOwner:
    """
    Images have no owner column. They belong to the uploader and to any user
    whose rows reference the image url (`url_prefix` + filepath).
    """
    uploader_column: str = "uploaded_by"
    path_column: str = "filepath"
    url_prefix: str = "/uploads/"
    referenced_by: Tuple[SyncKind, ...] = (SyncKind.NOTES, SyncKind.NODES, SyncKind.CHECKLIST_ITEMS)


OwnerStrategy = Union[DirectOwner, ParentOwner, ImageOwner]


@dataclass(frozen=True)
class EntityDescriptor:
    kind: SyncKind
    table: str
    payload_key: str
    owner: OwnerStrategy
    pk_column: str = "id"
    pk_type: type = int


UPLOAD_URL_PREFIX = ImageOwner.url_prefix

_DESCRIPTORS: Dict[SyncKind, EntityDescriptor] = {
    SyncKind.GRAPHS: EntityDescriptor(SyncKind.GRAPHS, "graphs", "graphs", DirectOwner()),
    SyncKind.NODES: EntityDescriptor(SyncKind.NODES, "nodes", "nodes",
                                     ParentOwner("graph_id", SyncKind.GRAPHS), pk_type=str),
    SyncKind.EDGES: EntityDescriptor(SyncKind.EDGES, "edges", "edges",
                                     ParentOwner("graph_id", SyncKind.GRAPHS), pk_type=str),
    SyncKind.NOTES: EntityDescriptor(SyncKind.NOTES, "notes", "notes", DirectOwner()),
    SyncKind.CHECKLISTS: EntityDescriptor(SyncKind.CHECKLISTS, "checklists", "checklists", DirectOwner()),
    SyncKind.CHECKLIST_ITEMS: EntityDescriptor(SyncKind.CHECKLIST_ITEMS, "checklist_items", "checklistItems",
                                               ParentOwner("checklist_id", SyncKind.CHECKLISTS)),
    SyncKind.IMAGES: EntityDescriptor(SyncKind.IMAGES, "images", "images", ImageOwner()),
}


def describe(kind: SyncKind) -> EntityDescriptor:
    try:
        return _DESCRIPTORS[SyncKind(kind)]
    except (KeyError, ValueError) as e:
        raise ValueError(f"Unknown entity kind: {kind!r}") from e


def payload_keys():
    """Response keys in declaration order."""
    return [describe(kind).payload_key for kind in SyncKind]

#
# End of entity_kinds.py
########################################################################################################################
