import datetime
from logging import getLogger
from typing import Optional, List, Dict, Any, Iterator, TYPE_CHECKING

from .Node import Node, ExecutionContext, LogSink

if TYPE_CHECKING:
    from .NodeGraph import NodeGraph

logger = getLogger(__name__)

EXECUTION_ORDERS = ("insertion", "topological")


class ExecutionLog:
    """
    Collects user-facing log lines as ``[HH:MM:SS] message``.
    Instances are callable, so one can be passed anywhere a LogSink is expected.
    """

    def __init__(self, clock=None):
        self._clock = clock or datetime.datetime.now
        self.entries: List[Dict[str, str]] = []

    def __call__(self, message: str, level: str = "info"):
        self.write(message, level)

    def write(self, message: str, level: str = "info") -> str:
        stamp = self._clock().strftime("%H:%M:%S")
        line = f"[{stamp}] {message}"
        self.entries.append({"time": stamp, "level": level, "message": message, "line": line})
        if level == "error":
            logger.error(message)
        elif level == "warning":
            logger.warning(message)
        else:
            logger.info(message)
        return line

    @property
    def lines(self) -> List[str]:
        return [entry["line"] for entry in self.entries]

    def messages(self) -> List[str]:
        return [entry["message"] for entry in self.entries]

    def clear(self):
        self.entries.clear()

    def __len__(self):
        return len(self.entries)


class ExecutionReport:
    def __init__(self, order: List[int], outputs: Dict[int, List[Any]], failed: List[int],
                 lines: List[str]):
        self.order = order
        self.outputs = outputs
        self.failed = failed
        self.lines = lines

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": list(self.order),
            "outputs": {str(node_id): [_jsonable(v) for v in values] for node_id, values in self.outputs.items()},
            "failed": list(self.failed),
            "log": list(self.lines),
        }


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (int, float, str, bool)):
        return value
    return str(value)


class _LineRecorder:
    # forwards to the caller's sink and remembers what this run wrote
    def __init__(self, sink: Optional[LogSink]):
        self._sink = sink
        self.lines: List[str] = []

    def __call__(self, message: str, level: str = "info"):
        self.lines.append(message)
        if self._sink is None:
            logger.info(message)
        else:
            self._sink(message, level)


class Executor:
    """
    Runs a whole graph: reset every node, then propagate values downstream.

    The default order seeds a depth-first traversal with every node in insertion
    order. A node reads its upstream outputs as they stand when it is visited,
    so a consumer inserted before its producer, and reached first, sees None.
    order="topological" computes every producer before its consumers instead.

    Each node is computed at most once per run, so cycles terminate.
    """

    def __init__(self, graph: 'NodeGraph', log: Optional[LogSink] = None):
        self.graph = graph
        self._log = _LineRecorder(log)
        self._visited: Dict[int, bool] = {}
        self._order: List[int] = []
        self._failed: List[int] = []

    def run(self, order: str = "insertion") -> ExecutionReport:
        if order not in EXECUTION_ORDERS:
            raise ValueError(f"Unknown execution order '{order}', expected one of {EXECUTION_ORDERS}")

        nodes = self.graph.nodes()
        for node in nodes:
            node.reset()

        if order == "topological":
            for node in self._topological_order(nodes):
                self._compute(node)
        else:
            for node in nodes:
                self._visit(node.id)

        logger.debug("Executed %d node(s) in %s order", len(self._order), order)
        outputs = {node.id: list(node.output_values) for node in nodes}
        return ExecutionReport(self._order, outputs, self._failed, self._log.lines)

    def _visit(self, root_id: int):
        """Depth-first from *root_id*, one iterator of outgoing connections per open node."""
        root = self.graph.get_node(root_id)
        if root is None or root_id in self._visited:
            return
        self._compute(root)

        stack: List[Iterator] = [iter(self.graph.outgoing(root_id))]
        while stack:
            connection = next(stack[-1], None)
            if connection is None:
                stack.pop()
                continue
            target = self.graph.get_node(connection.to_node_id)
            if target is None or target.id in self._visited:
                continue
            self._compute(target)
            stack.append(iter(self.graph.outgoing(target.id)))

    def _compute(self, node: Node):
        self._visited[node.id] = True
        self._order.append(node.id)

        inputs = self.graph.resolve_inputs(node)
        try:
            node.compute(inputs, ExecutionContext(node, self._log))
        except Exception:
            logger.exception("Node %s (%s) failed to compute", node.id, node.type.value)
            node.reset()
            self._failed.append(node.id)
            self._log(f"Node {node.id} ({node.type.value}) failed", "error")

    def _topological_order(self, nodes: List[Node]) -> List[Node]:
        # Kahn's algorithm; ties keep insertion order
        position = {node.id: i for i, node in enumerate(nodes)}
        indegree = {node.id: 0 for node in nodes}
        for connection in self.graph.connections():
            if connection.to_node_id in indegree and connection.from_node_id in indegree:
                indegree[connection.to_node_id] += 1

        ready = [node.id for node in nodes if indegree[node.id] == 0]
        ordered: List[int] = []
        placed = set()
        while len(ordered) < len(nodes):
            ready = [node_id for node_id in ready if node_id not in placed]
            if not ready:
                # stuck on a cycle: its unresolved inputs read as None
                ready = [self._cycle_entry(nodes, placed)]
            ready.sort(key=position.__getitem__)
            node_id = ready.pop(0)
            ordered.append(node_id)
            placed.add(node_id)
            for connection in self.graph.outgoing(node_id):
                if connection.to_node_id not in indegree:
                    continue
                indegree[connection.to_node_id] -= 1
                if indegree[connection.to_node_id] == 0:
                    ready.append(connection.to_node_id)

        return [nodes[position[node_id]] for node_id in ordered]

    def _cycle_entry(self, nodes: List[Node], placed) -> int:
        """
        Earliest unplaced node whose cycle is fed by no other unplaced node.

        Such a node reaches back to every unplaced node that reaches it, so
        releasing it never runs a consumer that sits downstream of a cycle
        before the cycle itself.
        """
        remaining = [node.id for node in nodes if node.id not in placed]
        for node_id in remaining:
            downstream = self._reachable(node_id, placed, forward=True)
            upstream = self._reachable(node_id, placed, forward=False)
            if upstream <= downstream:
                return node_id
        return remaining[0]

    def _reachable(self, start: int, placed, forward: bool) -> set:
        seen = set()
        pending = [start]
        while pending:
            node_id = pending.pop()
            edges = self.graph.outgoing(node_id) if forward else self.graph.incoming(node_id)
            for connection in edges:
                other = connection.to_node_id if forward else connection.from_node_id
                if other in placed or other in seen or self.graph.get_node(other) is None:
                    continue
                seen.add(other)
                pending.append(other)
        return seen
