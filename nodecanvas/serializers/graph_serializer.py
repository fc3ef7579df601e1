"""
Graph serializer.

Two shapes live here:

* the project document, the saved file format::

    {version, savedAt, nodes: [{id, type, config}],
     connections: [{id, fromNode, fromPin, toNode, toPin}],
     positions: {nodeId: {x, y}}}

  validated with pydantic on load;

* the graph view, the JSON-safe dict the browser UI renders from (pin tables,
  connected flags, current outputs and positions). It is never read back.
"""
from __future__ import annotations

import datetime
import json
from logging import getLogger
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..core.Errors import ConnectionRejected, NodeNotFound, ProjectFormatError
from ..core.Node import Node
from ..core.NodeGraph import NodeGraph
from ..noderegistry.ImageNodes import ImageData

logger = getLogger(__name__)

PROJECT_VERSION = 1

Positions = Dict[int, Dict[str, float]]


# ── Document schema ───────────────────────────────────────────────────────────

class ProjectNode(BaseModel):
    id: int
    type: str
    config: Dict[str, Any] = Field(default_factory=dict)


class ProjectConnection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = None
    from_node: int = Field(alias="fromNode")
    from_pin: int = Field(alias="fromPin")
    to_node: int = Field(alias="toNode")
    to_pin: int = Field(alias="toPin")


class Position(BaseModel):
    x: float = 0
    y: float = 0


class ProjectDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: int
    saved_at: Optional[str] = Field(default=None, alias="savedAt")
    nodes: List[ProjectNode] = Field(default_factory=list)
    connections: List[ProjectConnection] = Field(default_factory=list)
    positions: Dict[str, Position] = Field(default_factory=dict)


# ── Project document ──────────────────────────────────────────────────────────

def serialize_graph(graph: NodeGraph, positions: Optional[Positions] = None) -> Dict[str, Any]:
    positions = positions or {}
    with graph.lock:
        nodes = graph.nodes()
        connections = graph.connections()

    return {
        "version": PROJECT_VERSION,
        "savedAt": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "nodes": [
            {"id": node.id, "type": node.type.value, "config": dict(node.config)}
            for node in nodes
        ],
        "connections": [
            {
                "id": c.id,
                "fromNode": c.from_node_id,
                "fromPin": c.from_pin,
                "toNode": c.to_node_id,
                "toPin": c.to_pin,
            }
            for c in connections
        ],
        "positions": {
            str(node.id): dict(positions[node.id])
            for node in nodes if node.id in positions
        },
    }


def parse_document(data: Any) -> ProjectDocument:
    if not isinstance(data, dict):
        raise ProjectFormatError("Project file must contain a JSON object")
    if "version" not in data:
        raise ProjectFormatError("Project file has no 'version' field")
    try:
        document = ProjectDocument.model_validate(data)
    except ValidationError as e:
        raise ProjectFormatError(f"Invalid project file: {e.error_count()} error(s)\n{e}") from e
    if document.version > PROJECT_VERSION:
        raise ProjectFormatError(
            f"Project version {document.version} is newer than supported version {PROJECT_VERSION}"
        )
    return document


def load_into(graph: NodeGraph, data: Any) -> Positions:
    """
    Replace the contents of *graph* with the project in *data*.

    The document is validated before the graph is touched. Entries that break
    graph invariants (duplicate ids, dangling or conflicting connections) are
    skipped with a warning rather than failing the whole load.
    """
    document = parse_document(data)

    with graph.lock:
        graph.clear()
        for entry in document.nodes:
            try:
                graph.add_node(entry.type, entry.config, node_id=entry.id)
            except ValueError as e:
                logger.warning("Skipping node %s: %s", entry.id, e)

        for entry in document.connections:
            try:
                graph.create_connection(entry.from_node, entry.from_pin, entry.to_node, entry.to_pin,
                                        connection_id=entry.id)
            except (ConnectionRejected, NodeNotFound, ValueError) as e:
                logger.warning("Skipping connection %s -> %s: %s", entry.from_node, entry.to_node, e)

    positions: Positions = {}
    for key, position in document.positions.items():
        try:
            node_id = int(key)
        except ValueError:
            logger.warning("Ignoring position for non-numeric node id %r", key)
            continue
        if node_id in graph:
            positions[node_id] = {"x": position.x, "y": position.y}

    logger.info("Loaded project: %d node(s), %d connection(s)", len(graph), len(graph.connections()))
    return positions


def deserialize_graph(data: Any, name: str = "graph") -> Tuple[NodeGraph, Positions]:
    graph = NodeGraph(name)
    positions = load_into(graph, data)
    return graph, positions


def dumps(graph: NodeGraph, positions: Optional[Positions] = None, indent: Optional[int] = 2) -> str:
    return json.dumps(serialize_graph(graph, positions), indent=indent)


def loads(text: str, name: str = "graph") -> Tuple[NodeGraph, Positions]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProjectFormatError(f"Project file is not valid JSON: {e}") from e
    return deserialize_graph(data, name)


# ── Graph view (UI wire shape) ────────────────────────────────────────────────

def _value_to_wire(value: Any) -> Any:
    if isinstance(value, ImageData):
        return {"mimeType": value.mime_type, "size": len(value), "dataUrl": value.to_data_url()}
    if value is None or isinstance(value, (int, float, str, bool)):
        return value
    return str(value)


def _serialize_node(node: Node, positions: Positions, connected_inputs: Set[Tuple[int, int]]) -> Dict[str, Any]:
    return {
        "id": node.id,
        "type": node.type.value,
        "title": node.title,
        "config": dict(node.config),
        "inputs": [
            dict(spec.to_dict(), index=i, connected=(node.id, i) in connected_inputs)
            for i, spec in enumerate(node.INPUTS)
        ],
        "outputs": [
            dict(spec.to_dict(), index=i, value=_value_to_wire(node.get_output(i)))
            for i, spec in enumerate(node.OUTPUTS)
        ],
        "position": positions.get(node.id, {"x": 0, "y": 0}),
    }


def serialize_view(graph: NodeGraph, positions: Optional[Positions] = None) -> Dict[str, Any]:
    positions = positions or {}
    with graph.lock:
        nodes = graph.nodes()
        connections = graph.connections()

    connected_inputs = {(c.to_node_id, c.to_pin) for c in connections}
    return {
        "name": graph.name,
        "nodes": [_serialize_node(node, positions, connected_inputs) for node in nodes],
        "connections": [
            {
                "id": c.id,
                "fromNode": c.from_node_id,
                "fromPin": c.from_pin,
                "toNode": c.to_node_id,
                "toPin": c.to_pin,
            }
            for c in connections
        ],
    }
