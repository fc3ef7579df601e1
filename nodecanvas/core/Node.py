from typing import Optional, List, Dict, Any, Type, Callable, Tuple
import copy
import logging

from abc import ABC, abstractmethod

from .Errors import UnknownNodeType
from .Pin import Pin, PinSpec
from .Types import DEFAULT_NODE_TYPE, NodeType, PinDirection


# Get a logger for this module
logger = logging.getLogger(__name__)

# (message, level) -> None. Sink nodes write here; the graph never reads it back.
LogSink = Callable[[str, str], None]


class ExecutionContext:
    """
    Context object passed to nodes during compute.
    Carries the log collaborator only: a node has no handle on the graph or on
    any other node.
    """
    def __init__(self, node: 'Node', log: Optional[LogSink] = None):
        self.node_id = node.id
        self.node_type = node.type
        self._log = log

    def log(self, message: str, level: str = "info"):
        if self._log is None:
            logger.info("[node %s] %s", self.node_id, message)
            return
        self._log(message, level)


class Node(ABC):
    _node_registry: Dict[NodeType, Type['Node']] = {}

    NODE_TYPE: NodeType

    # Fixed pin tables, declared per subclass
    INPUTS: Tuple[PinSpec, ...] = ()
    OUTPUTS: Tuple[PinSpec, ...] = ()
    DEFAULT_CONFIG: Dict[str, Any] = {}
    TITLE: str = ""

    @classmethod
    def register(cls, type_name) -> Callable[[Type['Node']], Type['Node']]:
        """Decorator to register a node class with a specific type name."""
        node_type = NodeType.parse(type_name)

        def decorator(subclass: Type['Node']) -> Type['Node']:
            if cls._node_registry.get(node_type):
                raise ValueError(f"Node type '{node_type.value}' is already registered.")
            subclass.NODE_TYPE = node_type
            cls._node_registry[node_type] = subclass
            return subclass
        return decorator

    @classmethod
    def registered_types(cls) -> List[NodeType]:
        return list(cls._node_registry.keys())

    @classmethod
    def node_class(cls, type_name) -> Type['Node']:
        try:
            node_type = NodeType.parse(type_name)
        except ValueError:
            raise UnknownNodeType(type_name) from None
        node_class = cls._node_registry.get(node_type)
        if node_class is None:
            raise UnknownNodeType(type_name)
        return node_class

    @classmethod
    def create_node(cls, node_id: int, type_name, config: Optional[Dict[str, Any]] = None,
                    strict: bool = False) -> 'Node':
        """Factory method to create a node instance by type name.

        Unknown names fall back to the default type unless *strict* is set, so
        a stale UI or an old project file still yields a usable node.
        """
        try:
            node_class = cls.node_class(type_name)
        except UnknownNodeType:
            if strict:
                raise
            logger.warning("Unknown node type '%s', falling back to '%s'", type_name, DEFAULT_NODE_TYPE.value)
            node_class = cls.node_class(DEFAULT_NODE_TYPE)
        return node_class(node_id, config)

    def __init__(self, node_id: int, config: Optional[Dict[str, Any]] = None):
        self.id = node_id
        self.type: NodeType = self.NODE_TYPE

        # caller config is merged over a private copy of the type defaults
        self.config: Dict[str, Any] = copy.deepcopy(self.DEFAULT_CONFIG)
        if config:
            self.config.update(config)

        self.output_values: List[Any] = []

    def __repr__(self):
        return f"{type(self).__name__}({self.id})"

    @property
    def title(self) -> str:
        return self.TITLE or self.type.value

    # --- pin shape ---

    def input_count(self) -> int:
        return len(self.INPUTS)

    def output_count(self) -> int:
        return len(self.OUTPUTS)

    def input_pin(self, index: int) -> Pin:
        if not 0 <= index < len(self.INPUTS):
            raise IndexError(f"Input pin {index} not found on node {self.id}")
        return Pin(self.id, PinDirection.INPUT, index)

    def output_pin(self, index: int) -> Pin:
        if not 0 <= index < len(self.OUTPUTS):
            raise IndexError(f"Output pin {index} not found on node {self.id}")
        return Pin(self.id, PinDirection.OUTPUT, index)

    def input_spec(self, index: int) -> PinSpec:
        return self.INPUTS[self.input_pin(index).index]

    def output_spec(self, index: int) -> PinSpec:
        return self.OUTPUTS[self.output_pin(index).index]

    def isSink(self) -> bool:
        return not self.OUTPUTS

    def isSource(self) -> bool:
        return not self.INPUTS

    # --- runtime state ---

    def reset(self):
        self.output_values = []

    def get_output(self, index: int) -> Any:
        if 0 <= index < len(self.output_values):
            return self.output_values[index]
        return None

    def set_output(self, index: int, value: Any):
        while len(self.output_values) <= index:
            self.output_values.append(None)
        self.output_values[index] = value

    def update_config(self, changes: Dict[str, Any]):
        self.config.update(changes)

    @abstractmethod
    def compute(self, inputs: List[Any], executionContext: ExecutionContext) -> None:
        """Populate output_values from *inputs* (one slot per input pin, None when unresolved)."""
        pass

    @classmethod
    def describe(cls) -> Dict[str, Any]:
        return {
            "type": cls.NODE_TYPE.value,
            "title": cls.TITLE or cls.NODE_TYPE.value,
            "inputs": [spec.to_dict() for spec in cls.INPUTS],
            "outputs": [spec.to_dict() for spec in cls.OUTPUTS],
            "defaults": copy.deepcopy(cls.DEFAULT_CONFIG),
        }
