# Graphs_Library.py
# Description: Graph canvases and their nodes and edges. Nodes and edges are owned through their graph.
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
from pkm_Server_API.app.core.Sync.soft_delete import live_only, soft_delete, soft_delete_where
#
#######################################################################################################################
#
# Functions:

NODE_UPDATABLE_FIELDS = ("type", "position_x", "position_y", "data_label", "data_content",
                         "image_url", "style_width", "style_height")
EDGE_UPDATABLE_FIELDS = ("source_handle", "target_handle", "marker_start", "marker_end")


# --- Graphs ---

def create_graph(db: PKMDatabase, user_id: int, title: str) -> Dict[str, Any]:
    if not title or not title.strip():
        raise InputError("Graph title cannot be empty.")
    with db.transaction() as conn:
        now = db.now_iso()
        graph_id = db.insert_record(conn, "graphs", {
            "user_id": user_id,
            "title": title.strip(),
            "created_at": now,
            "updated_at": now,
        })
        graph = db.fetch_record(conn, "graphs", graph_id)
    logger.info(f"User {user_id} created graph {graph_id}.")
    return graph


def list_graphs(db: PKMDatabase, user_id: int) -> List[Dict[str, Any]]:
    cursor = db.execute_query(
        f"SELECT * FROM graphs WHERE user_id = ? AND {live_only()} ORDER BY created_at ASC, id ASC", (user_id,))
    return db.rows_to_dicts(cursor.fetchall())


def get_graph(db: PKMDatabase, user_id: int, graph_id: int) -> Dict[str, Any]:
    row = db.execute_query(
        f"SELECT * FROM graphs WHERE id = ? AND user_id = ? AND {live_only()}", (graph_id, user_id)).fetchone()
    if row is None:
        raise NotFoundError("Graph not found.", entity="graphs", entity_id=graph_id)
    return dict(row)


def update_graph(db: PKMDatabase, user_id: int, graph_id: int, title: Optional[str] = None) -> Dict[str, Any]:
    changes: Dict[str, Any] = {}
    if title is not None:
        if not title.strip():
            raise InputError("Graph title cannot be empty.")
        changes["title"] = title.strip()
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.GRAPHS, graph_id, user_id)
        changes["updated_at"] = db.now_iso()
        db.update_record(conn, "graphs", graph_id, changes)
        graph = db.fetch_record(conn, "graphs", graph_id)
    logger.info(f"User {user_id} updated graph {graph_id}: {sorted(changes)}")
    return graph


def delete_graph(db: PKMDatabase, user_id: int, graph_id: int) -> None:
    """Tombstones the graph and every live node and edge in it."""
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.GRAPHS, graph_id, user_id)
        now = db.now_iso()
        edges = soft_delete_where(conn, SyncKind.EDGES, "graph_id = ?", (graph_id,), now)
        nodes = soft_delete_where(conn, SyncKind.NODES, "graph_id = ?", (graph_id,), now)
        soft_delete(conn, SyncKind.GRAPHS, graph_id, now)
    logger.info(f"User {user_id} deleted graph {graph_id} ({nodes} nodes, {edges} edges).")


# --- Nodes ---

def _get_live_node(conn, graph_id: int, node_id: str) -> Dict[str, Any]:
    row = conn.execute(
        f"SELECT * FROM nodes WHERE id = ? AND graph_id = ? AND {live_only()}", (node_id, graph_id)).fetchone()
    if row is None:
        raise NotFoundError("Node not found.", entity="nodes", entity_id=node_id)
    return dict(row)


def create_node(db: PKMDatabase, user_id: int, graph_id: int, node_id: str, position_x: float, position_y: float,
                node_type: Optional[str] = None, data_label: Optional[str] = None,
                data_content: Optional[str] = None, style_width: Optional[float] = None,
                style_height: Optional[float] = None, image_url: Optional[str] = None) -> Dict[str, Any]:
    if not node_id or not str(node_id).strip():
        raise InputError("Node id is required.")
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.GRAPHS, graph_id, user_id)
        now = db.now_iso()
        db.insert_record(conn, "nodes", {
            "id": node_id,
            "graph_id": graph_id,
            "type": node_type or "bubble",
            "position_x": position_x,
            "position_y": position_y,
            "data_label": data_label,
            "data_content": data_content,
            "image_url": image_url,
            "style_width": style_width,
            "style_height": style_height,
            "created_at": now,
            "updated_at": now,
        })
        node = db.fetch_record(conn, "nodes", node_id)
    logger.info(f"User {user_id} created node '{node_id}' in graph {graph_id}.")
    return node


def list_nodes(db: PKMDatabase, user_id: int, graph_id: int) -> List[Dict[str, Any]]:
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.GRAPHS, graph_id, user_id)
        rows = conn.execute(
            f"SELECT * FROM nodes WHERE graph_id = ? AND {live_only()} ORDER BY created_at ASC, id ASC",
            (graph_id,)).fetchall()
    return db.rows_to_dicts(rows)


def update_node(db: PKMDatabase, user_id: int, graph_id: int, node_id: str,
                changes: Dict[str, Any]) -> Dict[str, Any]:
    """Applies the given column changes. Unknown keys are ignored; updated_at always advances."""
    values = {key: value for key, value in changes.items() if key in NODE_UPDATABLE_FIELDS}
    ignored = set(changes) - set(values)
    if ignored:
        logger.warning(f"Ignoring non-updatable node fields {sorted(ignored)} for node '{node_id}'.")
    if "type" in values and not values["type"]:
        raise InputError("Node type cannot be empty.")
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.GRAPHS, graph_id, user_id)
        current = _get_live_node(conn, graph_id, node_id)
        values["updated_at"] = db.now_iso()
        if "image_url" in values:
            release_image_reference(conn, user_id, current["image_url"], values["image_url"], values["updated_at"])
        db.update_record(conn, "nodes", node_id, values)
        node = db.fetch_record(conn, "nodes", node_id)
    logger.debug(f"User {user_id} updated node '{node_id}' in graph {graph_id}.")
    return node


def delete_node(db: PKMDatabase, user_id: int, graph_id: int, node_id: str) -> None:
    """Tombstones the node and any live edge attached to it."""
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.GRAPHS, graph_id, user_id)
        _get_live_node(conn, graph_id, node_id)
        now = db.now_iso()
        edges = soft_delete_where(conn, SyncKind.EDGES, "source_node_id = ? OR target_node_id = ?",
                                  (node_id, node_id), now)
        soft_delete(conn, SyncKind.NODES, node_id, now)
    logger.info(f"User {user_id} deleted node '{node_id}' from graph {graph_id} ({edges} attached edges).")


# --- Edges ---

def _get_live_edge(conn, graph_id: int, edge_id: str) -> Dict[str, Any]:
    row = conn.execute(
        f"SELECT * FROM edges WHERE id = ? AND graph_id = ? AND {live_only()}", (edge_id, graph_id)).fetchone()
    if row is None:
        raise NotFoundError("Edge not found.", entity="edges", entity_id=edge_id)
    return dict(row)


def create_edge(db: PKMDatabase, user_id: int, graph_id: int, edge_id: str, source_node_id: str,
                target_node_id: str, source_handle: Optional[str] = None, target_handle: Optional[str] = None,
                marker_start: Optional[str] = None, marker_end: Optional[str] = None) -> Dict[str, Any]:
    if not edge_id or not str(edge_id).strip():
        raise InputError("Edge id is required.")
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.GRAPHS, graph_id, user_id)
        endpoints = conn.execute(
            f"SELECT COUNT(DISTINCT id) FROM nodes WHERE graph_id = ? AND id IN (?, ?) AND {live_only()}",
            (graph_id, source_node_id, target_node_id)).fetchone()[0]
        expected = 1 if source_node_id == target_node_id else 2
        if endpoints != expected:
            raise InputError("Source or target node not found in this graph.")
        now = db.now_iso()
        db.insert_record(conn, "edges", {
            "id": edge_id,
            "graph_id": graph_id,
            "source_node_id": source_node_id,
            "target_node_id": target_node_id,
            "source_handle": source_handle,
            "target_handle": target_handle,
            "marker_start": marker_start,
            "marker_end": marker_end,
            "created_at": now,
            "updated_at": now,
        })
        edge = db.fetch_record(conn, "edges", edge_id)
    logger.info(f"User {user_id} created edge '{edge_id}' ({source_node_id} -> {target_node_id}) in graph {graph_id}.")
    return edge


def list_edges(db: PKMDatabase, user_id: int, graph_id: int) -> List[Dict[str, Any]]:
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.GRAPHS, graph_id, user_id)
        rows = conn.execute(
            f"SELECT * FROM edges WHERE graph_id = ? AND {live_only()} ORDER BY created_at ASC, id ASC",
            (graph_id,)).fetchall()
    return db.rows_to_dicts(rows)


def update_edge(db: PKMDatabase, user_id: int, graph_id: int, edge_id: str,
                changes: Dict[str, Any]) -> Dict[str, Any]:
    values = {key: value for key, value in changes.items() if key in EDGE_UPDATABLE_FIELDS}
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.GRAPHS, graph_id, user_id)
        _get_live_edge(conn, graph_id, edge_id)
        values["updated_at"] = db.now_iso()
        db.update_record(conn, "edges", edge_id, values)
        edge = db.fetch_record(conn, "edges", edge_id)
    logger.debug(f"User {user_id} updated edge '{edge_id}' in graph {graph_id}.")
    return edge


def delete_edge(db: PKMDatabase, user_id: int, graph_id: int, edge_id: str) -> None:
    with db.transaction() as conn:
        ensure_owned(conn, SyncKind.GRAPHS, graph_id, user_id)
        _get_live_edge(conn, graph_id, edge_id)
        soft_delete(conn, SyncKind.EDGES, edge_id, db.now_iso())
    logger.info(f"User {user_id} deleted edge '{edge_id}' from graph {graph_id}.")

#
# End of Graphs_Library.py
#######################################################################################################################
