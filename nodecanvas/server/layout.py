"""
Geometry the UI needs to draw connections: where a pin sits, and the cubic
curve between two pins. Pure data, nothing here draws.
"""
from typing import Dict, NamedTuple, Optional

from ..core.Types import PinDirection

NODE_WIDTH = 180.0
HEADER_HEIGHT = 32.0
PIN_SPACING = 24.0


class Point(NamedTuple):
    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


class ConnectionCurve(NamedTuple):
    start: Point
    control1: Point
    control2: Point
    end: Point

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {name: getattr(self, name).to_dict() for name in self._fields}


def pin_position(node_position: Optional[Dict[str, float]], direction: PinDirection, index: int,
                 node_width: float = NODE_WIDTH) -> Point:
    """Inputs sit on the node's left edge, outputs on its right, one row per pin."""
    position = node_position or {}
    x = float(position.get("x", 0))
    y = float(position.get("y", 0))
    if direction == PinDirection.OUTPUT:
        x += node_width
    return Point(x, y + HEADER_HEIGHT + PIN_SPACING * (index + 0.5))


def connection_curve(start: Point, end: Point) -> ConnectionCurve:
    # horizontal tangents, pulled out by half the horizontal distance
    pull = abs(end.x - start.x) * 0.5
    return ConnectionCurve(
        start,
        Point(start.x + pull, start.y),
        Point(end.x - pull, end.y),
        end,
    )
