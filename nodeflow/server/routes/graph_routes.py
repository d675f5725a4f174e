"""
Graph REST routes.

All routes are mounted under /api by main.py and operate on the
EditorSession stored on ``app.state.session``.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from nodeflow.core.Actions import (
    AddConnection,
    AddNode,
    DestroyTransput,
    RemoveConnection,
    RemoveNode,
    SetNodeCoordinates,
    SetPortData,
)
from nodeflow.core.Errors import ConfigurationError
from nodeflow.core.GraphReducer import ReduceResult
from nodeflow.core.PositionCache import Rect
from nodeflow.core.Types import PortDirection
from nodeflow.serializers.graph_serializer import serialize_node
from nodeflow.server.state import EditorSession

router = APIRouter()


def get_session(request: Request) -> EditorSession:
    return request.app.state.session


def _result(session: EditorSession, result: ReduceResult) -> Dict[str, Any]:
    return {
        "nodes": session.snapshot(),
        "created": list(result.created),
        "diagnostics": [d.to_dict() for d in result.diagnostics],
    }


def _dispatch(session: EditorSession, action) -> Dict[str, Any]:
    try:
        result = session.dispatch(action)
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _result(session, result)


def _require_node(session: EditorSession, node_id: str) -> None:
    if node_id not in session.nodes:
        raise HTTPException(status_code=404, detail="Node not found")


# ── Catalogs ──────────────────────────────────────────────────────────────────

@router.get("/node-types")
async def list_node_types(session: EditorSession = Depends(get_session)) -> List[Dict[str, Any]]:
    result = []
    for node_type in session.config.node_types:
        result.append(
            {
                "type": node_type.type,
                "label": node_type.label,
                "description": node_type.description,
                "inputs": [{"name": p.name, "type": p.type, "label": p.label or p.name, "multi": p.multi,
                            "dynamic": p.is_dynamic, "hidden": p.hidden, "noControls": p.no_controls}
                           for p in node_type.inputs],
                "outputs": [{"name": p.name, "type": p.type, "label": p.label or p.name,
                             "dynamic": p.is_dynamic, "hidden": p.hidden}
                            for p in node_type.outputs],
                "initialWidth": node_type.initial_width,
                "addable": node_type.addable,
                "deletable": node_type.deletable,
                "root": node_type.root,
            }
        )
    return result


@router.get("/port-types")
async def list_port_types(session: EditorSession = Depends(get_session)) -> List[Dict[str, Any]]:
    return [
        {
            "type": p.type,
            "name": p.name,
            "label": p.label,
            "color": p.color,
            "acceptTypes": sorted(p.accept_types),
            "defaultValue": p.default_value,
            "controls": p.controls,
        }
        for p in session.config.port_types
    ]


# ── GET / PUT /graph ──────────────────────────────────────────────────────────

@router.get("/graph")
async def get_graph(session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    return session.snapshot()


@router.put("/graph")
async def put_graph(body: Dict[str, Any], session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    try:
        diagnostics = session.load(body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"nodes": session.snapshot(), "created": [], "diagnostics": [d.to_dict() for d in diagnostics]}


# ── POST /nodes ───────────────────────────────────────────────────────────────

class CreateNodeBody(BaseModel):
    type: str
    x: float = 0
    y: float = 0
    data: Optional[Dict[str, Any]] = None


@router.post("/nodes", status_code=201)
async def create_node(body: CreateNodeBody, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    return _dispatch(session, AddNode(body.type, body.x, body.y, body.data))


@router.get("/nodes/{node_id}")
async def get_node(node_id: str, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    _require_node(session, node_id)
    return serialize_node(session.nodes[node_id])


# ── DELETE /nodes/:nodeId ─────────────────────────────────────────────────────

@router.delete("/nodes/{node_id}")
async def delete_node(node_id: str, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    node = session.nodes.get(node_id)
    if node is not None and not session.config.node_types[node.type].deletable:
        raise HTTPException(status_code=409, detail=f"Nodes of type '{node.type}' cannot be deleted")
    return _dispatch(session, RemoveNode(node_id))


# ── PUT /nodes/:nodeId/position ───────────────────────────────────────────────

class PositionBody(BaseModel):
    x: float
    y: float


@router.put("/nodes/{node_id}/position")
async def set_node_position(node_id: str, body: PositionBody,
                            session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    return _dispatch(session, SetNodeCoordinates(node_id, body.x, body.y))


# ── PUT /nodes/:nodeId/ports/:portName ────────────────────────────────────────

class SetPortValueBody(BaseModel):
    value: Any = None


@router.put("/nodes/{node_id}/ports/{port_name}")
async def set_port_value(node_id: str, port_name: str, body: SetPortValueBody,
                         session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    return _dispatch(session, SetPortData(node_id, port_name, body.value))


# ── DELETE /nodes/:nodeId/ports/:portName/connections ─────────────────────────

@router.delete("/nodes/{node_id}/ports/{port_name}/connections")
async def disconnect_port(node_id: str, port_name: str, direction: str = "inputs",
                          session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    try:
        port_direction = PortDirection(direction)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"direction must be 'inputs' or 'outputs', not '{direction}'")
    return _dispatch(session, DestroyTransput(node_id, port_name, port_direction))


# ── POST / DELETE /connections ────────────────────────────────────────────────

class ConnectionBody(BaseModel):
    sourceNodeId: str
    sourcePort: str
    targetNodeId: str
    targetPort: str


@router.post("/connections")
async def add_connection(body: ConnectionBody, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    return _dispatch(session, AddConnection(body.sourceNodeId, body.sourcePort, body.targetNodeId, body.targetPort))


# DELETE with a JSON body is unusual but matches how the editor describes the pair.
@router.delete("/connections")
async def remove_connection(body: ConnectionBody, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    return _dispatch(session,
                     RemoveConnection(body.sourceNodeId, body.sourcePort, body.targetNodeId, body.targetPort))


@router.get("/connections")
async def get_connections(session: EditorSession = Depends(get_session)) -> List[Dict[str, Any]]:
    return [c.to_dict() for c in session.connections()]


# ── Stage & position feedback ─────────────────────────────────────────────────

class RectBody(BaseModel):
    x: float
    y: float
    width: float = 0
    height: float = 0


class StageBody(BaseModel):
    scale: Optional[float] = None
    translateX: Optional[float] = None
    translateY: Optional[float] = None
    origin: Optional[RectBody] = None


@router.get("/stage")
async def get_stage(session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    return _stage_dict(session)


@router.put("/stage")
async def set_stage(body: StageBody, session: EditorSession = Depends(get_session)) -> Dict[str, Any]:
    translate = None
    if body.translateX is not None or body.translateY is not None:
        current_x, current_y = session.stage.translate
        translate = (body.translateX if body.translateX is not None else current_x,
                     body.translateY if body.translateY is not None else current_y)
    origin = Rect(body.origin.x, body.origin.y, body.origin.width, body.origin.height) if body.origin else None
    session.set_stage(scale=body.scale, translate=translate, origin=origin)
    return _stage_dict(session)


def _stage_dict(session: EditorSession) -> Dict[str, Any]:
    return {"scale": session.stage.scale,
            "translate": {"x": session.stage.translate[0], "y": session.stage.translate[1]}}


class PortPositionBody(RectBody):
    nodeId: str
    portName: Optional[str] = None


@router.post("/positions", status_code=204)
async def report_positions(body: List[PortPositionBody], session: EditorSession = Depends(get_session)) -> None:
    for item in body:
        session.report_position(item.nodeId, item.portName, Rect(item.x, item.y, item.width, item.height))


@router.post("/nodes/{node_id}/reposition", status_code=204)
async def reposition_node(node_id: str, session: EditorSession = Depends(get_session)) -> None:
    _require_node(session, node_id)
    session.reposition(node_id)


# ── Notifications ─────────────────────────────────────────────────────────────

@router.get("/notifications")
async def get_notifications(session: EditorSession = Depends(get_session)) -> List[Dict[str, Any]]:
    return session.feed.recent()


@router.delete("/notifications", status_code=204)
async def clear_notifications(session: EditorSession = Depends(get_session)) -> None:
    session.feed.clear()
