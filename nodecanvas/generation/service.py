import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..core.Errors import GenerationError, ProviderUnavailable
from ..core.Node import ExecutionContext
from ..core.NodeGraph import NodeGraph
from ..core.Types import NodeType
from ..noderegistry.ImageNodes import GeneratorNode, ImageData
from .provider import ImageProvider

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0

GenerationListener = Callable[[Dict[str, Any]], None]


@dataclass
class GenerationState:
    prompt: str = ""
    output_image: Optional[ImageData] = None
    is_loading: bool = False
    error: Optional[str] = None
    request_seq: int = 0

    def to_dict(self, node_id: Optional[int] = None) -> Dict[str, Any]:
        data = {
            "prompt": self.prompt,
            "isLoading": self.is_loading,
            "error": self.error,
            "requestSeq": self.request_seq,
            "image": self.output_image.to_data_url() if self.output_image else None,
        }
        if node_id is not None:
            data["nodeId"] = node_id
        return data


class GenerationService:
    """
    Per-node image generation, outside of bulk execution.

    Requests for the same node are numbered. Only the most recent request may
    settle the node's state: an older call that finishes late is dropped, so a
    slow first answer never overwrites a faster second one.
    """

    def __init__(self, graph: NodeGraph, provider: ImageProvider, timeout: float = DEFAULT_TIMEOUT):
        self.graph = graph
        self.provider = provider
        self.timeout = timeout
        self._states: Dict[int, GenerationState] = {}
        self._listeners: List[GenerationListener] = []
        self._unsubscribe = graph.subscribe(self._on_graph_event)

    def subscribe(self, callback: GenerationListener):
        self._listeners.append(callback)

    def _publish(self, event_type: str, node_id: int, state: GenerationState):
        event = {"type": event_type, "nodeId": node_id, "state": state.to_dict()}
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception:
                logger.exception("Generation listener failed on %s", event_type)

    def _on_graph_event(self, event: Dict[str, Any]):
        if event.get("type") == "NODE_DELETED":
            self._states.pop(event.get("nodeId"), None)
        elif event.get("type") == "GRAPH_CLEARED":
            self._states.clear()

    def state(self, node_id: int) -> GenerationState:
        node = self._generator(node_id)
        state = self._states.get(node_id)
        if state is None:
            state = GenerationState(prompt=node.config.get("prompt") or "",
                                    output_image=node.generated_image)
            self._states[node_id] = state
        return state

    def _generator(self, node_id: int) -> GeneratorNode:
        node = self.graph.require_node(node_id)
        if node.type != NodeType.GENERATOR:
            raise ValueError(f"Node {node_id} is a '{node.type.value}' node, not a generator")
        return node

    def resolve_reference(self, node: GeneratorNode) -> Optional[ImageData]:
        """The image on the node's reference input, if one is connected."""
        with self.graph.lock:
            connection = self.graph.incoming_to_pin(node.id, 0)
            if connection is None:
                return None
            source = self.graph.get_node(connection.from_node_id)
            if source is None:
                return None

            value = source.get_output(connection.from_pin)
            if value is None and source.isSource():
                # nothing executed yet; a source needs no inputs to refresh
                source.reset()
                source.compute([], ExecutionContext(source))
                value = source.get_output(connection.from_pin)

        return value if isinstance(value, ImageData) else None

    async def generate(self, node_id: int, prompt: Optional[str] = None) -> GenerationState:
        node = self._generator(node_id)
        if prompt is not None:
            self.graph.update_config(node_id, {"prompt": prompt})
        prompt = node.config.get("prompt") or ""
        reference = self.resolve_reference(node)

        state = self.state(node_id)
        state.request_seq += 1
        seq = state.request_seq
        state.prompt = prompt
        state.is_loading = True
        state.error = None
        self._publish("GENERATION_STARTED", node_id, state)

        image: Optional[ImageData] = None
        error: Optional[str] = None
        try:
            image = await asyncio.wait_for(self.provider.generate(prompt, reference), self.timeout)
        except asyncio.CancelledError:
            if self._is_latest(node_id, state, seq):
                state.is_loading = False
                state.error = "Generation cancelled"
                logger.info("Generation cancelled for node %s", node_id)
                self._publish("GENERATION_FAILED", node_id, state)
            raise
        except asyncio.TimeoutError:
            error = str(ProviderUnavailable(f"No response within {self.timeout:g} seconds"))
        except GenerationError as e:
            error = str(e)
        except Exception:
            logger.exception("Image provider raised an unexpected error for node %s", node_id)
            error = "Image generation failed"

        if not self._is_latest(node_id, state, seq):
            logger.debug("Discarding stale generation result for node %s (request %s)", node_id, seq)
            return state

        state.is_loading = False
        if image is not None:
            with self.graph.lock:
                node.accept_image(image)
            state.output_image = image
            logger.info("Node %s generated %s", node_id, image)
            self._publish("GENERATION_SUCCEEDED", node_id, state)
        else:
            state.error = error
            logger.warning("Generation failed for node %s: %s", node_id, error)
            self._publish("GENERATION_FAILED", node_id, state)
        return state

    def _is_latest(self, node_id: int, state: GenerationState, seq: int) -> bool:
        return self._states.get(node_id) is state and seq == state.request_seq

    def close(self):
        self._unsubscribe()
