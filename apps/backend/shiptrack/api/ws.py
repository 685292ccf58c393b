"""WebSocket transport for the realtime gateway.

Client frames are JSON objects with an `action`:

- `{"action": "join", "topic": "<room>"}`  -> `{"event": "joined", "data": {"topic": ...}}`
- `{"action": "leave", "topic": "<room>"}` -> `{"event": "left", "data": {"topic": ...}}`
- `{"action": "ping"}`                     -> `{"event": "pong", "data": {}}`

Server pushes are `{"event": <name>, "data": <payload>}`. Replies go through the
same outbound queue as pushes, so an event published after a join is always
seen after its `joined` reply.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import anyio
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from shiptrack.errors import InvalidTopic
from shiptrack.logging_utils import CONN_ID_CTX
from shiptrack.realtime.gateway import Connection, ConnectionGateway
from shiptrack.runtime import Runtime, get_runtime


logger = logging.getLogger(__name__)


router = APIRouter(tags=["realtime"])


def _reply(conn: Connection, event: str, data: dict[str, Any]) -> None:
    try:
        conn.queue.put_nowait({"event": event, "data": data})
    except asyncio.QueueFull:
        logger.warning("ws reply dropped (queue full) conn=%s event=%s", conn.id, event)


def _handle_frame(gateway: ConnectionGateway, conn: Connection, frame: Any) -> None:
    if not isinstance(frame, dict):
        _reply(conn, "error", {"msg": "frame must be a JSON object"})
        return
    action = frame.get("action")
    if action == "ping":
        _reply(conn, "pong", {})
        return
    if action not in ("join", "leave"):
        _reply(conn, "error", {"msg": f"unknown action: {action!r}"})
        return
    topic = frame.get("topic")
    try:
        if action == "join":
            gateway.join(conn.id, topic)
            _reply(conn, "joined", {"topic": topic})
        else:
            if isinstance(topic, str):
                gateway.leave(conn.id, topic)
            _reply(conn, "left", {"topic": topic})
    except InvalidTopic as e:
        _reply(conn, "error", {"msg": e.message, "topic": topic if isinstance(topic, str) else None})


async def _reader(websocket: WebSocket, gateway: ConnectionGateway, conn: Connection) -> None:
    while True:
        try:
            frame = await websocket.receive_json()
        except WebSocketDisconnect:
            return
        except (ValueError, KeyError):
            _reply(conn, "error", {"msg": "frame must be JSON text"})
            continue
        _handle_frame(gateway, conn, frame)


async def _writer(websocket: WebSocket, conn: Connection, scope: anyio.CancelScope) -> None:
    try:
        async for msg in conn.events():
            await websocket.send_json(msg)
    except Exception as e:
        # Transport gone mid-send; whatever is still queued is lost.
        logger.debug("ws send failed conn=%s error=%s", conn.id, e)
    finally:
        scope.cancel()


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, runtime: Runtime = Depends(get_runtime)) -> None:
    await websocket.accept()
    gateway = runtime.gateway
    conn = gateway.connect()
    ctx_token = CONN_ID_CTX.set(conn.id)
    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(_writer, websocket, conn, tg.cancel_scope)
            await _reader(websocket, gateway, conn)
            tg.cancel_scope.cancel()
    finally:
        gateway.disconnect(conn.id)
        CONN_ID_CTX.reset(ctx_token)
