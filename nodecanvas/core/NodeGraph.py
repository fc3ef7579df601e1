import threading
from logging import getLogger
from typing import Optional, List, Dict, Any, Callable

from .Errors import (
    DuplicateConnection,
    InputPinOccupied,
    InvalidPin,
    NodeNotFound,
    PinTypeMismatch,
    SelfConnection,
)
from .Executor import Executor, ExecutionReport
from .GraphPrimitives import Connection, IdAllocator
from .Node import Node, LogSink
from .Types import ValueType

# Side-effect: registers every node type in Node._node_registry
from ..noderegistry import NodeRegistry, ImageNodes  # noqa: F401

logger = getLogger(__name__)

GraphListener = Callable[[Dict[str, Any]], None]


class NodeGraph:
    """
    Owns the node and connection collections.

    Both are insertion-ordered dicts keyed by id. They are only changed through
    the validated operations below; readers get list snapshots or immutable
    Connection records, never the dicts themselves.

    Invariant: every connection's endpoints are present in the node collection.
    delete_node removes the touching connections before the node itself.
    """

    def __init__(self, name: str = "graph"):
        self.name = name
        self._nodes: Dict[int, Node] = {}
        self._connections: Dict[int, Connection] = {}

        # ids are per-graph, two graphs never share a counter
        self._node_ids = IdAllocator()
        self._connection_ids = IdAllocator()

        # held during every mutation and for the whole of an execution pass
        self._lock = threading.RLock()
        self._listeners: List[GraphListener] = []

    # =========================================================================
    # Change notifications
    # =========================================================================

    def subscribe(self, callback: GraphListener) -> Callable[[], None]:
        """Register *callback* for change events; returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    def notify(self, event: Dict[str, Any]):
        event.setdefault("graph", self.name)
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception:
                logger.exception("Graph listener failed on %s", event.get("type"))

    # =========================================================================
    # Node Management
    # =========================================================================

    def add_node(self, type_name, config: Optional[Dict[str, Any]] = None,
                 node_id: Optional[int] = None) -> Node:
        """Create a node of *type_name* and append it to the collection.

        *node_id* is only passed when restoring a saved graph.
        """
        with self._lock:
            if node_id is None:
                node_id = self._node_ids.allocate()
            else:
                if node_id in self._nodes:
                    raise ValueError(f"Node with id '{node_id}' already exists in the graph")
                self._node_ids.reserve(node_id)

            node = Node.create_node(node_id, type_name, config)
            self._nodes[node.id] = node

        logger.debug("Added node %s", node)
        self.notify({"type": "NODE_ADDED", "nodeId": node.id, "nodeType": node.type.value})
        return node

    def delete_node(self, node_id: int) -> bool:
        """Remove a node and every connection touching it. Returns False if it was already gone."""
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                return False

            removed = [c.id for c in self._connections.values() if c.touches(node_id)]
            for connection_id in removed:
                del self._connections[connection_id]
            del self._nodes[node_id]

        logger.debug("Removed node %s and %d connection(s)", node, len(removed))
        for connection_id in removed:
            self.notify({"type": "CONNECTION_DELETED", "connectionId": connection_id})
        self.notify({"type": "NODE_DELETED", "nodeId": node_id})
        return True

    def update_config(self, node_id: int, changes: Dict[str, Any]) -> Node:
        with self._lock:
            node = self.require_node(node_id)
            node.update_config(changes)
        self.notify({"type": "NODE_UPDATED", "nodeId": node_id, "changes": sorted(changes)})
        return node

    def get_node(self, node_id: int) -> Optional[Node]:
        return self._nodes.get(node_id)

    def require_node(self, node_id: int) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFound(node_id)
        return node

    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    def __contains__(self, node_id) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def clear(self):
        """Remove all nodes and connections. Id counters keep counting."""
        with self._lock:
            self._connections.clear()
            self._nodes.clear()
        self.notify({"type": "GRAPH_CLEARED"})

    # =========================================================================
    # Connection Management
    # =========================================================================

    def create_connection(self, from_node_id: int, from_pin: int, to_node_id: int, to_pin: int,
                          connection_id: Optional[int] = None) -> Connection:
        """
        Connect output pin *from_pin* of one node to input pin *to_pin* of another.

        Raises:
            NodeNotFound: either endpoint is missing
            SelfConnection: both endpoints are the same node
            InvalidPin: a pin index is outside the node's pin table
            DuplicateConnection: the identical connection already exists
            InputPinOccupied: the input pin already has an incoming connection
            PinTypeMismatch: the declared pin types are incompatible

        A rejected request leaves the graph unchanged.
        """
        with self._lock:
            source = self.require_node(from_node_id)
            target = self.require_node(to_node_id)

            if source.id == target.id:
                raise SelfConnection(f"Cannot connect node {source.id} to itself")

            if not 0 <= from_pin < source.output_count():
                raise InvalidPin(f"Node {source.id} ({source.type.value}) has no output pin {from_pin}")
            if not 0 <= to_pin < target.input_count():
                raise InvalidPin(f"Node {target.id} ({target.type.value}) has no input pin {to_pin}")

            key = (from_node_id, from_pin, to_node_id, to_pin)
            for existing in self._connections.values():
                if existing.key == key:
                    raise DuplicateConnection(f"{existing!r} already exists")

            occupied = self.incoming_to_pin(to_node_id, to_pin)
            if occupied is not None:
                raise InputPinOccupied(f"Input pin {to_pin} on node {to_node_id} is already connected")

            out_type = source.output_spec(from_pin).value_type
            in_type = target.input_spec(to_pin).value_type
            if not ValueType.compatible(out_type, in_type):
                raise PinTypeMismatch(
                    f"Type Mismatch: cannot connect {out_type.value} output to {in_type.value} input"
                )

            if connection_id is None:
                connection_id = self._connection_ids.allocate()
            else:
                if connection_id in self._connections:
                    raise ValueError(f"Connection with id '{connection_id}' already exists in the graph")
                self._connection_ids.reserve(connection_id)

            connection = Connection(connection_id, from_node_id, from_pin, to_node_id, to_pin)
            self._connections[connection.id] = connection

        logger.debug("Connected %r", connection)
        self.notify({"type": "CONNECTION_ADDED", "connectionId": connection.id})
        return connection

    def delete_connection(self, connection_id: int) -> bool:
        with self._lock:
            connection = self._connections.pop(connection_id, None)
        if connection is None:
            return False
        self.notify({"type": "CONNECTION_DELETED", "connectionId": connection_id})
        return True

    def get_connection(self, connection_id: int) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def connections(self) -> List[Connection]:
        return list(self._connections.values())

    def find_connection(self, from_node_id: int, from_pin: int, to_node_id: int, to_pin: int) -> Optional[Connection]:
        key = (from_node_id, from_pin, to_node_id, to_pin)
        for connection in self._connections.values():
            if connection.key == key:
                return connection
        return None

    def incoming(self, node_id: int) -> List[Connection]:
        return [c for c in self._connections.values() if c.to_node_id == node_id]

    def outgoing(self, node_id: int) -> List[Connection]:
        return [c for c in self._connections.values() if c.from_node_id == node_id]

    def incoming_to_pin(self, node_id: int, pin: int) -> Optional[Connection]:
        for connection in self._connections.values():
            if connection.to_node_id == node_id and connection.to_pin == pin:
                return connection
        return None

    def resolve_inputs(self, node: Node) -> List[Any]:
        """Current upstream output for each input pin of *node*, None where nothing is available."""
        inputs: List[Any] = [None] * node.input_count()
        for connection in self.incoming(node.id):
            source = self._nodes.get(connection.from_node_id)
            if source is None or connection.to_pin >= len(inputs):
                continue
            inputs[connection.to_pin] = source.get_output(connection.from_pin)
        return inputs

    # =========================================================================
    # Execution
    # =========================================================================

    def execute(self, log: Optional[LogSink] = None, order: str = "insertion") -> ExecutionReport:
        with self._lock:
            report = Executor(self, log).run(order=order)
        self.notify({"type": "GRAPH_EXECUTED", "visited": list(report.order)})
        return report

    @property
    def lock(self) -> threading.RLock:
        return self._lock
