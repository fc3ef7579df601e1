from nodecanvas.core.Types import PinDirection
from nodecanvas.server.layout import (
    HEADER_HEIGHT,
    NODE_WIDTH,
    PIN_SPACING,
    Point,
    connection_curve,
    pin_position,
)


class TestPinPosition:

    def test_inputs_on_left_edge(self):
        point = pin_position({"x": 100, "y": 50}, PinDirection.INPUT, 0)
        assert point == Point(100, 50 + HEADER_HEIGHT + PIN_SPACING * 0.5)

    def test_outputs_on_right_edge(self):
        point = pin_position({"x": 100, "y": 50}, PinDirection.OUTPUT, 0)
        assert point.x == 100 + NODE_WIDTH

    def test_rows_follow_pin_index(self):
        first = pin_position({"x": 0, "y": 0}, PinDirection.INPUT, 0)
        second = pin_position({"x": 0, "y": 0}, PinDirection.INPUT, 1)
        assert second.y - first.y == PIN_SPACING

    def test_missing_position_defaults_to_origin(self):
        assert pin_position(None, PinDirection.INPUT, 0).x == 0


class TestConnectionCurve:

    def test_control_points_pull_horizontally(self):
        curve = connection_curve(Point(0, 0), Point(200, 100))
        assert curve.control1 == Point(100, 0)
        assert curve.control2 == Point(100, 100)

    def test_backwards_connection_uses_absolute_distance(self):
        curve = connection_curve(Point(300, 10), Point(100, 60))
        assert curve.control1 == Point(400, 10)
        assert curve.control2 == Point(0, 60)

    def test_to_dict(self):
        data = connection_curve(Point(0, 0), Point(10, 0)).to_dict()
        assert data["start"] == {"x": 0, "y": 0}
        assert data["end"] == {"x": 10, "y": 0}
        assert set(data) == {"start", "control1", "control2", "end"}
