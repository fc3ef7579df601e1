from typing import NamedTuple

from .Types import PinDirection, ValueType


class PinSpec(NamedTuple):
    """One entry in a node type's fixed pin table."""
    name: str
    value_type: ValueType = ValueType.ANY

    def to_dict(self):
        return {"name": self.name, "valueType": self.value_type.value}


class Pin(NamedTuple):
    # A pin is never stored: it is a coordinate derived from a node and the
    # positional index into that node's pin table for one direction.
    node_id: int
    direction: PinDirection
    index: int

    def isInput(self) -> bool:
        return self.direction == PinDirection.INPUT

    def isOutput(self) -> bool:
        return self.direction == PinDirection.OUTPUT

    def __repr__(self):
        side = "in" if self.isInput() else "out"
        return f"Pin({self.node_id}.{side}{self.index})"
