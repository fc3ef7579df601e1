"""
Exception taxonomy for the graph model, the generation workflow and project
files.

Structural graph errors derive from ValueError so callers that only care about
"the request was invalid" can catch that alone.
"""
from typing import Optional


class NodeCanvasError(Exception):
    pass


class UnknownNodeType(NodeCanvasError, ValueError):
    def __init__(self, type_name):
        super().__init__(f"Unknown node type '{type_name}'")
        self.type_name = type_name


class NodeNotFound(NodeCanvasError, KeyError):
    def __init__(self, node_id):
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Node '{self.node_id}' not found"


# --- Connection rejections -------------------------------------------------

class ConnectionRejected(NodeCanvasError, ValueError):
    """Base for every reason create_connection refuses a request."""
    reason = "rejected"


class DuplicateConnection(ConnectionRejected):
    reason = "duplicate"


class InputPinOccupied(ConnectionRejected):
    reason = "input-occupied"


class SelfConnection(ConnectionRejected):
    reason = "self-connection"


class InvalidPin(ConnectionRejected):
    reason = "invalid-pin"


class PinTypeMismatch(ConnectionRejected):
    reason = "type-mismatch"


# --- Image generation ------------------------------------------------------

class GenerationError(NodeCanvasError):
    """A generation request settled without an image."""


class ProviderRejected(GenerationError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ProviderUnavailable(GenerationError):
    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or "Image provider is unavailable")
        self.detail = detail


class NoImageInResponse(GenerationError):
    def __init__(self, text: Optional[str] = None):
        message = "The provider response did not contain an image"
        if text:
            message += f": {text[:200]}"
        super().__init__(message)
        self.text = text


# --- Persistence -----------------------------------------------------------

class ProjectFormatError(NodeCanvasError, ValueError):
    pass
