"""
GraphState: the server's single owner of the live graph.

Holds the NodeGraph, UI layout positions, the user-facing execution log and
the generation service. Every UI-originated mutation goes through here, so
this is where rejected requests are turned into log lines for the user.

Builds a small demo graph on startup so the UI has something to display on
first load.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..config import Settings
from ..core.Errors import ConnectionRejected, DuplicateConnection, InputPinOccupied
from ..core.Executor import ExecutionLog, ExecutionReport
from ..core.GraphPrimitives import Connection
from ..core.Node import Node
from ..core.NodeGraph import NodeGraph
from ..core.Types import MathOperation, NodeType, PinDirection
from ..generation.provider import GeminiImageProvider, ImageProvider, UnconfiguredProvider
from ..generation.service import GenerationService, GenerationState
from ..serializers.graph_serializer import load_into, serialize_graph, serialize_view
from .events.event_emitter import EventEmitter, global_emitter
from .events.event_types import GraphEvent
from .layout import ConnectionCurve, connection_curve, pin_position

logger = logging.getLogger(__name__)


def build_provider(settings: Settings) -> ImageProvider:
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set, image generation is disabled")
        return UnconfiguredProvider()
    return GeminiImageProvider(api_key=settings.gemini_api_key, model=settings.gemini_model)


class GraphState:
    def __init__(self, settings: Optional[Settings] = None, provider: Optional[ImageProvider] = None,
                 emitter: Optional[EventEmitter] = None, seed_demo: bool = True) -> None:
        self.emitter = emitter or global_emitter
        self.generation: Optional[GenerationService] = None
        self.reset(settings, provider, seed_demo)

    def reset(self, settings: Optional[Settings] = None, provider: Optional[ImageProvider] = None,
              seed_demo: bool = True) -> None:
        """Start over with an empty (or demo) graph. Used on startup and by tests."""
        if self.generation is not None:
            self.generation.close()

        self.settings = settings or Settings.from_env()
        self.graph = NodeGraph("root")
        # UI layout positions: node_id -> {x, y}
        self.positions: Dict[int, Dict[str, float]] = {}
        self.log = ExecutionLog()

        self.graph.subscribe(self._forward)
        self.generation = GenerationService(
            self.graph, provider or build_provider(self.settings), self.settings.generation_timeout
        )
        self.generation.subscribe(self._forward)

        if seed_demo:
            self._seed_demo()

    def _forward(self, event: GraphEvent) -> None:
        self.emitter.fire(event)
        if event.get("type") == "GENERATION_FAILED":
            self.write_log(f"Image generation failed: {event['state']['error']}", "error")

    def write_log(self, message: str, level: str = "info") -> str:
        line = self.log.write(message, level)
        self.emitter.fire({"type": "LOG", "level": level, "message": message, "line": line})
        return line

    # ── Demo graph ──────────────────────────────────────────────────────────

    def _seed_demo(self) -> None:
        a = self.add_node(NodeType.NUMBER, {"value": 10}, {"x": 80, "y": 100})
        b = self.add_node(NodeType.NUMBER, {"value": 5}, {"x": 80, "y": 260})
        mul = self.add_node(NodeType.MATH, {"operation": MathOperation.MULTIPLY.value}, {"x": 340, "y": 180})
        out = self.add_node(NodeType.PRINT, None, {"x": 600, "y": 180})

        self.graph.create_connection(a.id, 0, mul.id, 0)
        self.graph.create_connection(b.id, 0, mul.id, 1)
        self.graph.create_connection(mul.id, 0, out.id, 0)

    # ── Node helpers ─────────────────────────────────────────────────────────

    def add_node(self, node_type: Any, config: Optional[Dict[str, Any]] = None,
                 position: Optional[Dict[str, float]] = None) -> Node:
        node = self.graph.add_node(node_type, config)
        self.positions[node.id] = dict(position) if position else {"x": 0.0, "y": 0.0}
        return node

    def delete_node(self, node_id: int) -> bool:
        self.positions.pop(node_id, None)
        return self.graph.delete_node(node_id)

    def update_config(self, node_id: int, changes: Dict[str, Any]) -> Node:
        return self.graph.update_config(node_id, changes)

    def set_position(self, node_id: int, x: float, y: float) -> None:
        self.graph.require_node(node_id)
        self.positions[node_id] = {"x": x, "y": y}

    # ── Connection helpers ───────────────────────────────────────────────────

    def connect(self, from_node: int, from_pin: int, to_node: int, to_pin: int) -> Connection:
        """
        Create a connection on behalf of the UI.

        Re-dropping an existing connection is a no-op that returns it. Every
        other rejection is written to the user log and re-raised.
        """
        try:
            return self.graph.create_connection(from_node, from_pin, to_node, to_pin)
        except DuplicateConnection:
            existing = self.graph.find_connection(from_node, from_pin, to_node, to_pin)
            logger.debug("Ignoring duplicate connection request, returning %r", existing)
            return existing
        except InputPinOccupied:
            self.write_log("This input pin is already connected.", "error")
            raise
        except ConnectionRejected as e:
            self.write_log(str(e), "error")
            raise

    def disconnect(self, connection_id: int) -> bool:
        return self.graph.delete_connection(connection_id)

    def connection_curve(self, connection: Connection) -> ConnectionCurve:
        start = pin_position(self.positions.get(connection.from_node_id), PinDirection.OUTPUT, connection.from_pin)
        end = pin_position(self.positions.get(connection.to_node_id), PinDirection.INPUT, connection.to_pin)
        return connection_curve(start, end)

    # ── Execution ────────────────────────────────────────────────────────────

    def execute(self, order: Optional[str] = None) -> ExecutionReport:
        self.write_log("=== Graph execution started ===")
        report = self.graph.execute(self.write_log, order or self.settings.execution_order)
        self.write_log("=== Graph execution finished ===")
        return report

    def clear(self) -> None:
        self.graph.clear()
        self.positions.clear()
        self.write_log("All nodes were deleted.")

    # ── Generation ───────────────────────────────────────────────────────────

    async def generate(self, node_id: int, prompt: Optional[str] = None) -> GenerationState:
        return await self.generation.generate(node_id, prompt)

    # ── Views and persistence ────────────────────────────────────────────────

    def view(self) -> Dict[str, Any]:
        data = serialize_view(self.graph, self.positions)
        curves = {c.id: self.connection_curve(c).to_dict() for c in self.graph.connections()}
        for entry in data["connections"]:
            entry["curve"] = curves.get(entry["id"])
        return data

    def save_project(self) -> Dict[str, Any]:
        return serialize_graph(self.graph, self.positions)

    def load_project(self, data: Any) -> None:
        self.positions = load_into(self.graph, data)
        for node in self.graph.nodes():
            self.positions.setdefault(node.id, {"x": 0.0, "y": 0.0})
        self.write_log(f"Loaded project with {len(self.graph)} node(s).")


# ---------------------------------------------------------------------------
# Module-level singleton, created once when this module is first imported.
# ---------------------------------------------------------------------------

graph_state = GraphState()
