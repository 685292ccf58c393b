"""Connection gateway: transport-agnostic connections on top of the topic registry.

A transport (WebSocket, SSE) calls `connect()` when a client shows up, `join()`
for each requested room and `disconnect()` when the channel goes away. Anything
published in between lands on the connection's outbound queue, which the
transport drains in its own writer loop.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

from shiptrack.realtime.registry import TopicRegistry
from shiptrack.realtime.topics import validate_topic


logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 200


class ConnectionState(str, enum.Enum):
    CONNECTED = "connected"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    id: str
    queue: "asyncio.Queue[dict[str, Any]]"
    state: ConnectionState = ConnectionState.CONNECTED
    dropped: int = field(default=0)

    @property
    def closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    async def events(self) -> AsyncIterator[dict[str, Any]]:
        while not self.closed:
            msg = await self.queue.get()
            yield msg


class ConnectionGateway:
    def __init__(self, registry: TopicRegistry, *, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._registry = registry
        self._queue_size = queue_size
        self._connections: Dict[str, Connection] = {}

    @property
    def registry(self) -> TopicRegistry:
        return self._registry

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def connect(self) -> Connection:
        conn = Connection(id=uuid.uuid4().hex, queue=asyncio.Queue(maxsize=self._queue_size))
        self._connections[conn.id] = conn
        self._registry.register(conn.id)
        logger.info("realtime connect conn=%s open=%d", conn.id, len(self._connections))
        return conn

    def join(self, connection_id: str, topic: object) -> bool:
        """Subscribe a live connection to `topic`.

        Raises InvalidTopic for a malformed id. Returns False (and does nothing)
        when the connection is unknown or already closed.
        """
        topic = validate_topic(topic)
        conn = self._connections.get(connection_id)
        if conn is None or conn.closed:
            logger.debug("join on stale connection conn=%s topic=%s", connection_id, topic)
            return False
        self._registry.subscribe(connection_id, topic)
        return True

    def leave(self, connection_id: str, topic: str) -> None:
        self._registry.unsubscribe(connection_id, topic)

    def disconnect(self, connection_id: str) -> None:
        conn = self._connections.pop(connection_id, None)
        self._registry.drop_connection(connection_id)
        if conn is None:
            return
        conn.state = ConnectionState.CLOSED
        logger.info(
            "realtime disconnect conn=%s dropped=%d open=%d", connection_id, conn.dropped, len(self._connections)
        )

    def publish(self, topic: str, event: str, payload: Optional[dict[str, Any]] = None) -> int:
        """Hand `event` to every current subscriber of `topic`; return how many got it.

        Best-effort: no subscribers is a no-op, a full outbound queue drops that one
        delivery. Never raises.
        """
        subs = self._registry.subscribers_of(topic)
        if not subs:
            logger.debug("publish no subscribers topic=%s event=%s", topic, event)
            return 0
        message = {"event": event, "data": payload if payload is not None else {}}
        delivered = 0
        for connection_id in subs:
            conn = self._connections.get(connection_id)
            if conn is None or conn.closed:
                continue
            try:
                conn.queue.put_nowait(message)
            except asyncio.QueueFull:
                # Slow consumer; drop rather than block the publisher.
                conn.dropped += 1
                logger.warning("publish drop (queue full) conn=%s topic=%s event=%s", connection_id, topic, event)
                continue
            delivered += 1
        logger.debug("publish topic=%s event=%s fanout=%d delivered=%d", topic, event, len(subs), delivered)
        return delivered
