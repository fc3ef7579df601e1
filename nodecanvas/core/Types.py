from enum import Enum, auto


class PinDirection(Enum):
    INPUT = auto()
    OUTPUT = auto()


class ValueType(Enum):
    ANY = "any"
    NUMBER = "number"
    STRING = "string"
    IMAGE = "image"

    @staticmethod
    def compatible(source: 'ValueType', target: 'ValueType') -> bool:
        # ANY on either end accepts everything, otherwise the declared types must match
        if source == ValueType.ANY or target == ValueType.ANY:
            return True
        return source == target


class NodeType(str, Enum):
    NUMBER = "number"
    MATH = "math"
    STRING = "string"
    PRINT = "print"
    IMAGE_SOURCE = "image-source"
    GENERATOR = "generator"

    @classmethod
    def parse(cls, value) -> 'NodeType':
        """Return the NodeType for *value*; raises ValueError for names outside the set."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


# Type used when a lookup names something outside the closed set
DEFAULT_NODE_TYPE = NodeType.NUMBER


class MathOperation(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"
