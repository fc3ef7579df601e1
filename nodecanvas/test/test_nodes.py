import base64

import pytest

from nodecanvas.core.Errors import UnknownNodeType
from nodecanvas.core.Node import Node, ExecutionContext
from nodecanvas.core.Pin import Pin
from nodecanvas.core.Types import NodeType, PinDirection, ValueType
from nodecanvas.noderegistry.NodeRegistry import (
    MathNode,
    NumberNode,
    PrintNode,
    StringNode,
    format_value,
    to_number,
)
from nodecanvas.noderegistry.ImageNodes import GeneratorNode, ImageData, ImageSourceNode

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


class RecordingSink:
    def __init__(self):
        self.messages = []

    def __call__(self, message, level="info"):
        self.messages.append((message, level))


def run(node, inputs=None, sink=None):
    node.reset()
    node.compute(inputs if inputs is not None else [None] * node.input_count(), ExecutionContext(node, sink))
    return node.output_values


class TestNumberCoercion:

    def test_plain_numbers_pass_through(self):
        assert to_number(42) == 42
        assert to_number(-1.5) == -1.5

    def test_numeric_prefix_of_string(self):
        assert to_number("3.5abc") == 3.5
        assert to_number("  42") == 42.0
        assert to_number("1e3") == 1000.0
        assert to_number(".5") == 0.5

    def test_non_numeric_falls_back_to_zero(self):
        assert to_number("abc") == 0
        assert to_number("") == 0
        assert to_number(None) == 0
        assert to_number(True) == 0
        assert to_number(float("nan")) == 0
        assert to_number([1, 2]) == 0

    def test_custom_default(self):
        assert to_number("x", default=7) == 7

    def test_format_value_drops_integral_fraction(self):
        assert format_value(50.0) == "50"
        assert format_value(2.5) == "2.5"
        assert format_value("none") == "none"


class TestRegistry:

    def test_all_types_registered(self):
        registered = set(Node.registered_types())
        assert registered == set(NodeType)

    def test_create_node_by_name(self):
        node = Node.create_node(3, "math")
        assert isinstance(node, MathNode)
        assert node.id == 3
        assert node.type == NodeType.MATH

    def test_unknown_type_falls_back_to_number(self):
        node = Node.create_node(1, "teleporter")
        assert isinstance(node, NumberNode)

    def test_unknown_type_strict(self):
        with pytest.raises(UnknownNodeType):
            Node.create_node(1, "teleporter", strict=True)

    def test_duplicate_registration_rejected(self):
        with pytest.raises(ValueError):
            @Node.register(NodeType.NUMBER)
            class Another(NumberNode):
                pass

    def test_describe(self):
        info = MathNode.describe()
        assert info["type"] == "math"
        assert [p["name"] for p in info["inputs"]] == ["A", "B"]
        assert info["outputs"] == [{"name": "result", "valueType": "number"}]
        assert info["defaults"]["operation"] == "add"


class TestNodeBase:

    def test_config_merged_over_private_defaults(self):
        a = MathNode(0, {"operation": "divide"})
        b = MathNode(1)
        a.config["valueA"] = 9
        assert a.config["operation"] == "divide"
        assert b.config == {"operation": "add", "valueA": 0, "valueB": 0}
        assert MathNode.DEFAULT_CONFIG["valueA"] == 0

    def test_pins_are_derived(self):
        node = MathNode(4)
        assert node.input_pin(1) == Pin(4, PinDirection.INPUT, 1)
        assert node.output_pin(0).isOutput()
        with pytest.raises(IndexError):
            node.output_pin(1)
        assert node.input_spec(0).value_type == ValueType.NUMBER

    def test_source_and_sink(self):
        assert NumberNode(0).isSource()
        assert PrintNode(1).isSink()
        assert not MathNode(2).isSink()

    def test_reset_is_idempotent(self):
        node = NumberNode(0, {"value": 5})
        run(node)
        node.reset()
        node.reset()
        assert node.output_values == []
        assert node.get_output(0) is None

    def test_get_output_out_of_range(self):
        node = NumberNode(0)
        assert node.get_output(5) is None
        assert node.get_output(-1) is None


class TestBasicNodes:

    def test_number(self):
        assert run(NumberNode(0, {"value": "12.5"})) == [12.5]
        assert run(NumberNode(0, {"value": "oops"})) == [0]

    def test_string_default(self):
        assert run(StringNode(0)) == ["Hello"]
        assert run(StringNode(0, {"value": ""})) == ["Hello"]
        assert run(StringNode(0, {"value": "hi"})) == ["hi"]

    @pytest.mark.parametrize("operation, expected", [
        ("add", 13),
        ("subtract", 7),
        ("multiply", 30),
        ("divide", 10 / 3),
        ("modulo", 13),
    ])
    def test_math_operations(self, operation, expected):
        node = MathNode(0, {"operation": operation})
        assert run(node, [10, 3]) == [pytest.approx(expected)]

    def test_divide_by_zero_is_zero(self):
        node = MathNode(0, {"operation": "divide"})
        assert run(node, [8, 0]) == [0]
        assert run(node, [0, 0]) == [0]

    def test_math_falls_back_to_inline_values(self):
        node = MathNode(0, {"operation": "subtract", "valueA": "7", "valueB": 3})
        assert run(node, [None, None]) == [4]
        assert run(node, [10, None]) == [7]

    def test_math_coerces_connected_strings(self):
        node = MathNode(0, {"operation": "add"})
        assert run(node, ["2px", "x"]) == [2]

    def test_print_writes_log_line(self):
        sink = RecordingSink()
        node = PrintNode(0)
        assert run(node, [50.0], sink) == []
        assert sink.messages == [("Output: 50", "info")]

    def test_print_none_sentinel(self):
        sink = RecordingSink()
        run(PrintNode(0), [None], sink)
        assert sink.messages == [("Output: none", "info")]


class TestImageNodes:

    def test_image_data_base64(self):
        image = ImageData(PNG_BYTES, "image/png")
        assert ImageData.from_base64(image.to_base64()) == image
        assert image.to_data_url().startswith("data:image/png;base64,")
        assert len(image) == len(PNG_BYTES)

    def test_image_data_accepts_data_url(self):
        payload = "data:image/jpeg;base64," + base64.b64encode(b"jpeg").decode()
        image = ImageData.from_base64(payload)
        assert image.mime_type == "image/jpeg"
        assert image.data == b"jpeg"

    def test_image_source_outputs_decoded_image(self):
        node = ImageSourceNode(0)
        node.set_image(ImageData(PNG_BYTES), name="cat.png")
        (image,) = run(node)
        assert image.data == PNG_BYTES
        assert node.config["name"] == "cat.png"

    def test_image_source_empty_or_invalid(self):
        assert run(ImageSourceNode(0)) == [None]
        assert run(ImageSourceNode(0, {"data": "!!not base64!!"})) == [None]

    def test_generator_reemits_generated_image(self):
        node = GeneratorNode(0, {"prompt": "a cat"})
        assert run(node, [None]) == [None]

        image = ImageData(PNG_BYTES)
        node.accept_image(image)
        assert run(node, [None]) == [image]
