"""Publish helpers for route handlers.

Handlers announce "this changed" here; they never see the registry or the
gateway. Events about one shipment carry the full payload, events on list
rooms carry none and receivers re-fetch.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from shiptrack.errors import SESSION_TERMINATED_MSG
from shiptrack.realtime.gateway import ConnectionGateway
from shiptrack.realtime.topics import Entity, client_topic, list_event, list_topic, session_topic, tracking_topic


logger = logging.getLogger(__name__)

SHIPMENT_UPDATED = "shipmentUpdated"
CLIENT_SHIPMENTS_UPDATED = "client_shipments_updated"
FORCE_LOGOUT = "force_logout"


class EventPublisher:
    def __init__(self, gateway: ConnectionGateway) -> None:
        self._gateway = gateway

    def notify(self, topic: str, event: str, payload: Optional[dict[str, Any]] = None) -> int:
        return self._gateway.publish(topic, event, payload)

    def list_changed(self, entity: Entity) -> int:
        return self.notify(list_topic(entity), list_event(entity))

    def client_shipments_changed(self, client_id: Optional[int]) -> int:
        if client_id is None:
            return 0
        return self.notify(client_topic(client_id), CLIENT_SHIPMENTS_UPDATED)

    def shipment_changed(self, shipment: dict[str, Any], history: list[dict[str, Any]]) -> None:
        payload = {"shipment": shipment, "history": history}
        self.notify(tracking_topic(shipment["tracking_number"]), SHIPMENT_UPDATED, payload)
        client_id = shipment.get("client_id")
        if client_id is not None:
            self.notify(client_topic(client_id), SHIPMENT_UPDATED, payload)
        self.list_changed("shipments")
        self.client_shipments_changed(client_id)

    def shipments_list_changed(self, client_id: Optional[int]) -> None:
        """A shipment was added or removed: invalidate the staff list and the owner's list."""
        self.list_changed("shipments")
        self.client_shipments_changed(client_id)

    def force_logout(self, session_id: str, msg: str = SESSION_TERMINATED_MSG) -> int:
        delivered = self.notify(session_topic(session_id), FORCE_LOGOUT, {"msg": msg})
        logger.info("force_logout pushed session_id=%s delivered=%d", session_id, delivered)
        return delivered
