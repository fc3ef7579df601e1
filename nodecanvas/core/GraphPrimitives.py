from typing import NamedTuple, Tuple


# Connection as a simple data structure.
# NamedTuple keeps it immutable, so the graph can hand connections out
# without exposing anything a caller could edit in place.
class Connection(NamedTuple):
    id: int
    from_node_id: int
    from_pin: int
    to_node_id: int
    to_pin: int

    @property
    def key(self) -> Tuple[int, int, int, int]:
        # identity used for duplicate detection; the id is not part of it
        return (self.from_node_id, self.from_pin, self.to_node_id, self.to_pin)

    def touches(self, node_id: int) -> bool:
        return self.from_node_id == node_id or self.to_node_id == node_id

    def __repr__(self):
        return f"Connection#{self.id}({self.from_node_id}.out{self.from_pin} -> {self.to_node_id}.in{self.to_pin})"


class IdAllocator:
    """Monotonic integer ids owned by a single graph instance."""

    def __init__(self, start: int = 0):
        self._next = start

    def allocate(self) -> int:
        value = self._next
        self._next += 1
        return value

    def reserve(self, value: int) -> int:
        # restored ids must never be handed out again
        if value >= self._next:
            self._next = value + 1
        return value

    def peek(self) -> int:
        return self._next
