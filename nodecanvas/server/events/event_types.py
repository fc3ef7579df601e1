"""
Event shapes pushed to the UI as ``graph_event``.
All events are plain dicts so they can be emitted over Socket.IO as-is.
"""
from typing import Any, Dict, List, Literal, Optional, TypedDict, Union


class NodeAddedEvent(TypedDict):
    type: Literal["NODE_ADDED"]
    graph: str
    nodeId: int
    nodeType: str
    ts: int


class NodeDeletedEvent(TypedDict):
    type: Literal["NODE_DELETED"]
    graph: str
    nodeId: int
    ts: int


class NodeUpdatedEvent(TypedDict):
    type: Literal["NODE_UPDATED"]
    graph: str
    nodeId: int
    changes: List[str]
    ts: int


class ConnectionAddedEvent(TypedDict):
    type: Literal["CONNECTION_ADDED"]
    graph: str
    connectionId: int
    ts: int


class ConnectionDeletedEvent(TypedDict):
    type: Literal["CONNECTION_DELETED"]
    graph: str
    connectionId: int
    ts: int


class GraphClearedEvent(TypedDict):
    type: Literal["GRAPH_CLEARED"]
    graph: str
    ts: int


class GraphExecutedEvent(TypedDict):
    type: Literal["GRAPH_EXECUTED"]
    graph: str
    visited: List[int]
    ts: int


class GenerationEvent(TypedDict):
    type: Literal["GENERATION_STARTED", "GENERATION_SUCCEEDED", "GENERATION_FAILED"]
    nodeId: int
    state: Dict[str, Any]
    ts: int


class LogEvent(TypedDict):
    type: Literal["LOG"]
    level: str
    message: str
    line: Optional[str]
    ts: int


GraphEvent = Union[
    NodeAddedEvent,
    NodeDeletedEvent,
    NodeUpdatedEvent,
    ConnectionAddedEvent,
    ConnectionDeletedEvent,
    GraphClearedEvent,
    GraphExecutedEvent,
    GenerationEvent,
    LogEvent,
]
