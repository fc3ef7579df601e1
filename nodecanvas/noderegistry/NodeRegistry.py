import math
import re
from typing import Any, List

from ..core.Node import Node, ExecutionContext
from ..core.Pin import PinSpec
from ..core.Types import MathOperation, NodeType, ValueType

# =========================================================================================
# BASIC NODE TYPES
#
# number / string are sources, math is a transform with inline fallbacks for its
# operands, print is the sink that writes to the log collaborator.
#
# Every compute here is total: bad config or missing inputs resolve to policy
# defaults (0, "Hello", "none") so a half-built graph still runs to completion.
# =========================================================================================

# Leading numeric prefix, the part of a string parseFloat would accept
_NUMBER_PREFIX = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")

NONE_SENTINEL = "none"
DEFAULT_STRING = "Hello"


def to_number(value: Any, default: float = 0) -> float:
    """Coerce *value* the way an editable number field does: parse a numeric
    prefix, otherwise fall back to *default*."""
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, (int, float)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return default
        return value
    if isinstance(value, str):
        match = _NUMBER_PREFIX.match(value)
        if not match:
            return default
        parsed = float(match.group(1))
        if math.isinf(parsed):
            return default
        return parsed
    return default


def format_value(value: Any) -> str:
    # 50.0 prints as 50, like the browser editor this backs
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@Node.register(NodeType.NUMBER)
class NumberNode(Node):
    TITLE = "Number"
    OUTPUTS = (PinSpec("value", ValueType.NUMBER),)
    DEFAULT_CONFIG = {"value": 0}

    def compute(self, inputs: List[Any], executionContext: ExecutionContext) -> None:
        self.set_output(0, to_number(self.config.get("value")))


@Node.register(NodeType.STRING)
class StringNode(Node):
    TITLE = "String"
    OUTPUTS = (PinSpec("value", ValueType.STRING),)
    DEFAULT_CONFIG = {"value": DEFAULT_STRING}

    def compute(self, inputs: List[Any], executionContext: ExecutionContext) -> None:
        value = self.config.get("value")
        self.set_output(0, value if value else DEFAULT_STRING)


@Node.register(NodeType.MATH)
class MathNode(Node):
    TITLE = "Math"
    INPUTS = (PinSpec("A", ValueType.NUMBER), PinSpec("B", ValueType.NUMBER))
    OUTPUTS = (PinSpec("result", ValueType.NUMBER),)
    DEFAULT_CONFIG = {"operation": MathOperation.ADD.value, "valueA": 0, "valueB": 0}

    def operation(self) -> MathOperation:
        try:
            return MathOperation(self.config.get("operation") or MathOperation.ADD.value)
        except ValueError:
            return MathOperation.ADD

    def compute(self, inputs: List[Any], executionContext: ExecutionContext) -> None:
        # an unconnected operand reads the inline field instead
        a = inputs[0] if len(inputs) > 0 and inputs[0] is not None else self.config.get("valueA")
        b = inputs[1] if len(inputs) > 1 and inputs[1] is not None else self.config.get("valueB")
        a = to_number(a)
        b = to_number(b)

        op = self.operation()
        if op == MathOperation.ADD:
            result = a + b
        elif op == MathOperation.SUBTRACT:
            result = a - b
        elif op == MathOperation.MULTIPLY:
            result = a * b
        else:
            # division by zero is 0, never an error or a non-finite value
            result = a / b if b != 0 else 0

        self.set_output(0, result)


@Node.register(NodeType.PRINT)
class PrintNode(Node):
    TITLE = "Print"
    INPUTS = (PinSpec("input", ValueType.ANY),)

    def compute(self, inputs: List[Any], executionContext: ExecutionContext) -> None:
        value = inputs[0] if inputs and inputs[0] is not None else NONE_SENTINEL
        executionContext.log(f"Output: {format_value(value)}", "info")
