"""
Graph REST routes.

All routes are mounted under /api by main.py.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, Response
from pydantic import BaseModel, Field

from ...core.Errors import (
    ConnectionRejected,
    InputPinOccupied,
    NodeNotFound,
    ProjectFormatError,
)
from ...core.Executor import EXECUTION_ORDERS
from ...core.Node import Node
from ..state import graph_state

router = APIRouter()


def _node_summary(node: Node) -> Dict[str, Any]:
    return {"id": node.id, "type": node.type.value, "config": dict(node.config)}


# ── GET /graph ────────────────────────────────────────────────────────────────

@router.get("/graph")
async def get_graph() -> Dict[str, Any]:
    return graph_state.view()


# ── GET /node-types ───────────────────────────────────────────────────────────

@router.get("/node-types")
async def list_node_types() -> List[Dict[str, Any]]:
    return [Node.node_class(t).describe() for t in Node.registered_types()]


# ── POST /nodes ───────────────────────────────────────────────────────────────

class CreateNodeBody(BaseModel):
    type: str
    config: Optional[Dict[str, Any]] = None
    position: Optional[Dict[str, float]] = None


@router.post("/nodes", status_code=201)
async def create_node(body: CreateNodeBody) -> Dict[str, Any]:
    node = graph_state.add_node(body.type, body.config, body.position)
    return _node_summary(node)


# ── DELETE /nodes/:id ─────────────────────────────────────────────────────────

@router.delete("/nodes/{node_id}", status_code=204)
async def delete_node(node_id: int) -> Response:
    graph_state.delete_node(node_id)
    return Response(status_code=204)


# ── PUT /nodes/:id/config ─────────────────────────────────────────────────────

@router.put("/nodes/{node_id}/config")
async def update_node_config(node_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
    try:
        node = graph_state.update_config(node_id, changes)
    except NodeNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return _node_summary(node)


# ── PUT /nodes/:id/position ───────────────────────────────────────────────────

class PositionBody(BaseModel):
    x: float
    y: float


@router.put("/nodes/{node_id}/position", status_code=204)
async def set_position(node_id: int, body: PositionBody) -> Response:
    try:
        graph_state.set_position(node_id, body.x, body.y)
    except NodeNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return Response(status_code=204)


# ── POST /connections ─────────────────────────────────────────────────────────

class ConnectionBody(BaseModel):
    fromNode: int
    fromPin: int = Field(ge=0)
    toNode: int
    toPin: int = Field(ge=0)


@router.post("/connections", status_code=201)
async def create_connection(body: ConnectionBody) -> Dict[str, Any]:
    try:
        connection = graph_state.connect(body.fromNode, body.fromPin, body.toNode, body.toPin)
    except InputPinOccupied as exc:
        raise HTTPException(status_code=409, detail={"reason": exc.reason, "message": str(exc)})
    except ConnectionRejected as exc:
        raise HTTPException(status_code=400, detail={"reason": exc.reason, "message": str(exc)})
    except NodeNotFound as exc:
        raise HTTPException(status_code=400, detail={"reason": "node-not-found", "message": str(exc)})
    return {
        "id": connection.id,
        "fromNode": connection.from_node_id,
        "fromPin": connection.from_pin,
        "toNode": connection.to_node_id,
        "toPin": connection.to_pin,
        "curve": graph_state.connection_curve(connection).to_dict(),
    }


# ── DELETE /connections/:id ───────────────────────────────────────────────────

@router.delete("/connections/{connection_id}", status_code=204)
async def delete_connection(connection_id: int) -> Response:
    graph_state.disconnect(connection_id)
    return Response(status_code=204)


# ── POST /execute ─────────────────────────────────────────────────────────────

@router.post("/execute")
async def execute_graph(order: Optional[str] = Query(default=None)) -> Dict[str, Any]:
    if order is not None and order not in EXECUTION_ORDERS:
        raise HTTPException(status_code=400, detail=f"order must be one of {list(EXECUTION_ORDERS)}")
    report = graph_state.execute(order)
    result = report.to_dict()
    result["log"] = graph_state.log.lines
    return result


# ── POST /clear ───────────────────────────────────────────────────────────────

@router.post("/clear", status_code=204)
async def clear_graph() -> Response:
    graph_state.clear()
    return Response(status_code=204)


# ── GET /log ──────────────────────────────────────────────────────────────────

@router.get("/log")
async def get_log() -> List[Dict[str, str]]:
    return list(graph_state.log.entries)


# ── POST /nodes/:id/generate ──────────────────────────────────────────────────

class GenerateBody(BaseModel):
    prompt: Optional[str] = None


def _generation_or_404(exc: Exception) -> HTTPException:
    if isinstance(exc, NodeNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@router.post("/nodes/{node_id}/generate")
async def generate_image(node_id: int, body: GenerateBody) -> Dict[str, Any]:
    try:
        state = await graph_state.generate(node_id, body.prompt)
    except (NodeNotFound, ValueError) as exc:
        raise _generation_or_404(exc)
    return state.to_dict(node_id)


# ── GET /nodes/:id/generation ─────────────────────────────────────────────────

@router.get("/nodes/{node_id}/generation")
async def get_generation(node_id: int) -> Dict[str, Any]:
    try:
        state = graph_state.generation.state(node_id)
    except (NodeNotFound, ValueError) as exc:
        raise _generation_or_404(exc)
    return state.to_dict(node_id)


# ── GET/PUT /project ──────────────────────────────────────────────────────────

@router.get("/project")
async def save_project() -> Dict[str, Any]:
    return graph_state.save_project()


@router.put("/project")
async def load_project(document: Dict[str, Any]) -> Dict[str, Any]:
    try:
        graph_state.load_project(document)
    except ProjectFormatError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return graph_state.view()
