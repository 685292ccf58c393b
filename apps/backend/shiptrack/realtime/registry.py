"""In-memory topic registry (single-process).

All operations are synchronous and never await, so on the event loop each one
runs to completion before anything else touches the maps.
"""

from __future__ import annotations

import logging
from typing import Dict


logger = logging.getLogger(__name__)


class TopicRegistry:
    def __init__(self) -> None:
        self._subs: Dict[str, set[str]] = {}
        self._topics_by_conn: Dict[str, set[str]] = {}

    def register(self, connection_id: str) -> None:
        self._topics_by_conn.setdefault(connection_id, set())

    def subscribe(self, connection_id: str, topic: str) -> None:
        self._subs.setdefault(topic, set()).add(connection_id)
        self._topics_by_conn.setdefault(connection_id, set()).add(topic)
        logger.debug("registry subscribe conn=%s topic=%s subs=%d", connection_id, topic, len(self._subs[topic]))

    def unsubscribe(self, connection_id: str, topic: str) -> None:
        subs = self._subs.get(topic)
        if subs is not None:
            subs.discard(connection_id)
            if not subs:
                self._subs.pop(topic, None)
        topics = self._topics_by_conn.get(connection_id)
        if topics is not None:
            topics.discard(topic)
        logger.debug("registry unsubscribe conn=%s topic=%s remaining=%d", connection_id, topic, len(self._subs.get(topic, ())))

    def drop_connection(self, connection_id: str) -> None:
        topics = self._topics_by_conn.pop(connection_id, set())
        for topic in topics:
            subs = self._subs.get(topic)
            if subs is None:
                continue
            subs.discard(connection_id)
            if not subs:
                self._subs.pop(topic, None)
        logger.debug("registry drop conn=%s topics=%d", connection_id, len(topics))

    def subscribers_of(self, topic: str) -> frozenset[str]:
        return frozenset(self._subs.get(topic, ()))

    def topics_of(self, connection_id: str) -> frozenset[str]:
        return frozenset(self._topics_by_conn.get(connection_id, ()))

    @property
    def topic_count(self) -> int:
        return len(self._subs)

    @property
    def connection_count(self) -> int:
        return len(self._topics_by_conn)
