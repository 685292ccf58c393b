from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from shiptrack.api.deps import require_roles
from shiptrack.api.shipments import announce_shipment
from shiptrack.errors import NotFound
from shiptrack.models import Account, ShipmentUpdate, UpdateCreate
from shiptrack.runtime import Runtime, get_runtime


logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/updates", tags=["updates"])


@router.post("", response_model=ShipmentUpdate, status_code=201)
async def add_update(
    req: UpdateCreate,
    account: Account = Depends(require_roles("admin", "staff")),
    runtime: Runtime = Depends(get_runtime),
) -> ShipmentUpdate:
    """Append a status update; it becomes the shipment's current status."""
    store = runtime.store
    try:
        update = store.add_update(req.shipment_id, location=req.location, status_update=req.status_update)
        shipment = store.get_shipment(req.shipment_id)
    except KeyError as e:
        raise NotFound("Shipment not found") from e
    logger.info(
        "status update shipment_id=%s tracking_number=%s status=%s by=%s",
        shipment.id,
        shipment.tracking_number,
        update.status_update,
        account.id,
    )
    announce_shipment(runtime, shipment)
    return update


@router.get("/{tracking_number}", response_model=list[ShipmentUpdate])
def history(tracking_number: str, runtime: Runtime = Depends(get_runtime)) -> list[ShipmentUpdate]:
    try:
        shipment = runtime.store.get_shipment_by_tracking(tracking_number)
    except KeyError as e:
        raise NotFound("Shipment not found") from e
    return runtime.store.list_updates(shipment.id, newest_first=False)
