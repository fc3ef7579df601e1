"""
Socket.IO bridge: every event fired on the global emitter is pushed to the
connected editors as a ``graph_event`` message.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Set

import socketio

from .event_emitter import global_emitter

logger = logging.getLogger(__name__)

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*",
    logger=False,
    engineio_logger=False,
)

# in-flight emits; the loop only keeps weak references to its tasks
_pending: Set["asyncio.Task[None]"] = set()


def _emit_done(task: "asyncio.Task[None]") -> None:
    _pending.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.warning("Failed to push graph event: %s", task.exception())


def _on_event(event: Dict[str, Any]) -> None:
    # events fired outside a running loop (CLI, plain unit tests) have no clients
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return
    task = loop.create_task(sio.emit("graph_event", event))
    _pending.add(task)
    task.add_done_callback(_emit_done)


global_emitter.on_event(_on_event)


@sio.event
async def connect(sid: str, environ: dict) -> None:
    logger.debug("Editor %s connected", sid)


@sio.event
async def disconnect(sid: str) -> None:
    logger.debug("Editor %s disconnected", sid)


def create_socket_app(fastapi_app: Any) -> socketio.ASGIApp:
    """Serve Socket.IO alongside *fastapi_app*; non-socket requests fall through to it."""
    return socketio.ASGIApp(sio, other_asgi_app=fastapi_app)
