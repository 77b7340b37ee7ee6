# app/api/v1/endpoints/graphs.py
# Description: Graph canvases plus their nodes and edges.
#
# Imports
from typing import List
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, status
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.api.v1.API_Deps.PKM_DB_Deps import get_pkm_db
from pkm_Server_API.app.api.v1.API_Deps.db_error_handling import handle_db_errors
from pkm_Server_API.app.api.v1.schemas.graph_schemas import (
    GraphCreate, GraphUpdate, GraphResponse,
    NodeCreate, NodeUpdate, NodeResponse,
    EdgeCreate, EdgeUpdate, EdgeResponse,
)
from pkm_Server_API.app.api.v1.schemas.notes_schemas import DetailResponse
from pkm_Server_API.app.core.AuthNZ.User_DB_Handling import get_request_user, User
from pkm_Server_API.app.core.DB_Management.PKM_DB import PKMDatabase
from pkm_Server_API.app.core.Graphs import Graphs_Library
#
#######################################################################################################################
#
# Functions:

router = APIRouter()

_NOT_FOUND = {status.HTTP_404_NOT_FOUND: {"model": DetailResponse}}


# --- Graphs ---
@router.post("/", response_model=GraphResponse, status_code=status.HTTP_201_CREATED, summary="Create a graph")
async def create_graph(
        graph_in: GraphCreate,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Graphs_Library.create_graph(db, current_user.id, graph_in.title)
    except Exception as e:
        handle_db_errors(e, "graph")


@router.get("/", response_model=List[GraphResponse], summary="List the current user's graphs")
async def list_graphs(
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Graphs_Library.list_graphs(db, current_user.id)
    except Exception as e:
        handle_db_errors(e, "graphs list")


@router.get("/{graph_id}", response_model=GraphResponse, summary="Get a graph", responses=_NOT_FOUND)
async def get_graph(
        graph_id: int,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Graphs_Library.get_graph(db, current_user.id, graph_id)
    except Exception as e:
        handle_db_errors(e, "graph")


@router.put("/{graph_id}", response_model=GraphResponse, summary="Rename a graph", responses=_NOT_FOUND)
async def update_graph(
        graph_id: int,
        graph_in: GraphUpdate,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Graphs_Library.update_graph(db, current_user.id, graph_id, title=graph_in.title)
    except Exception as e:
        handle_db_errors(e, "graph")


@router.delete("/{graph_id}", status_code=status.HTTP_204_NO_CONTENT,
               summary="Soft-delete a graph with its nodes and edges", responses=_NOT_FOUND)
async def delete_graph(
        graph_id: int,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        Graphs_Library.delete_graph(db, current_user.id, graph_id)
    except Exception as e:
        handle_db_errors(e, "graph")


# --- Nodes ---
@router.post("/{graph_id}/nodes", response_model=NodeResponse, status_code=status.HTTP_201_CREATED,
             summary="Add a node to a graph", responses=_NOT_FOUND)
async def create_node(
        graph_id: int,
        node_in: NodeCreate,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    style = node_in.style
    try:
        logger.debug(f"User {current_user.id} creating node '{node_in.id}' in graph {graph_id}")
        return Graphs_Library.create_node(
            db, current_user.id, graph_id, node_in.id,
            position_x=node_in.position.x,
            position_y=node_in.position.y,
            node_type=node_in.type,
            data_label=node_in.data.label,
            data_content=node_in.data.content,
            style_width=style.width if style else None,
            style_height=style.height if style else None,
        )
    except Exception as e:
        handle_db_errors(e, "node")


@router.get("/{graph_id}/nodes", response_model=List[NodeResponse], summary="List a graph's nodes",
            responses=_NOT_FOUND)
async def list_nodes(
        graph_id: int,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Graphs_Library.list_nodes(db, current_user.id, graph_id)
    except Exception as e:
        handle_db_errors(e, "graph")


@router.put("/{graph_id}/nodes/{node_id}", response_model=NodeResponse, summary="Update a node",
            responses=_NOT_FOUND)
async def update_node(
        graph_id: int,
        node_id: str,
        node_in: NodeUpdate,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Graphs_Library.update_node(db, current_user.id, graph_id, node_id, node_in.to_columns())
    except Exception as e:
        handle_db_errors(e, "node")


@router.delete("/{graph_id}/nodes/{node_id}", status_code=status.HTTP_204_NO_CONTENT,
               summary="Soft-delete a node and its attached edges", responses=_NOT_FOUND)
async def delete_node(
        graph_id: int,
        node_id: str,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        Graphs_Library.delete_node(db, current_user.id, graph_id, node_id)
    except Exception as e:
        handle_db_errors(e, "node")


# --- Edges ---
@router.post("/{graph_id}/edges", response_model=EdgeResponse, status_code=status.HTTP_201_CREATED,
             summary="Connect two nodes of a graph", responses=_NOT_FOUND)
async def create_edge(
        graph_id: int,
        edge_in: EdgeCreate,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Graphs_Library.create_edge(
            db, current_user.id, graph_id, edge_in.id,
            source_node_id=edge_in.source,
            target_node_id=edge_in.target,
            source_handle=edge_in.source_handle,
            target_handle=edge_in.target_handle,
            marker_start=edge_in.marker_start,
            marker_end=edge_in.marker_end,
        )
    except Exception as e:
        handle_db_errors(e, "edge")


@router.get("/{graph_id}/edges", response_model=List[EdgeResponse], summary="List a graph's edges",
            responses=_NOT_FOUND)
async def list_edges(
        graph_id: int,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Graphs_Library.list_edges(db, current_user.id, graph_id)
    except Exception as e:
        handle_db_errors(e, "graph")


@router.put("/{graph_id}/edges/{edge_id}", response_model=EdgeResponse, summary="Update an edge's handles or markers",
            responses=_NOT_FOUND)
async def update_edge(
        graph_id: int,
        edge_id: str,
        edge_in: EdgeUpdate,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        return Graphs_Library.update_edge(db, current_user.id, graph_id, edge_id,
                                          edge_in.model_dump(exclude_unset=True))
    except Exception as e:
        handle_db_errors(e, "edge")


@router.delete("/{graph_id}/edges/{edge_id}", status_code=status.HTTP_204_NO_CONTENT,
               summary="Soft-delete an edge", responses=_NOT_FOUND)
async def delete_edge(
        graph_id: int,
        edge_id: str,
        current_user: User = Depends(get_request_user),
        db: PKMDatabase = Depends(get_pkm_db),
):
    try:
        Graphs_Library.delete_edge(db, current_user.id, graph_id, edge_id)
    except Exception as e:
        handle_db_errors(e, "edge")

#
# End of graphs.py
#######################################################################################################################
