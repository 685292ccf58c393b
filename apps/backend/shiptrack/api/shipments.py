from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from shiptrack.api.deps import current_account, require_roles
from shiptrack.errors import InvalidRequest, NotFound, PermissionDenied
from shiptrack.models import Account, MessageResponse, Shipment, ShipmentCreate, ShipmentPatch, TrackingResponse
from shiptrack.runtime import Runtime, get_runtime


logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/shipments", tags=["shipments"])


def announce_shipment(runtime: Runtime, shipment: Shipment) -> None:
    """Push the shipment and its history (newest first) to everyone following it."""
    history = runtime.store.list_updates(shipment.id, newest_first=True)
    runtime.publisher.shipment_changed(
        shipment.model_dump(mode="json"),
        [u.model_dump(mode="json") for u in history],
    )


@router.get("", response_model=list[Shipment])
def list_shipments(
    _: Account = Depends(require_roles("admin", "staff")),
    runtime: Runtime = Depends(get_runtime),
) -> list[Shipment]:
    return runtime.store.list_shipments()


@router.get("/my-shipments", response_model=list[Shipment])
def my_shipments(
    account: Account = Depends(current_account),
    runtime: Runtime = Depends(get_runtime),
) -> list[Shipment]:
    return runtime.store.list_shipments(client_id=account.id)


@router.get("/track/{tracking_number}", response_model=TrackingResponse)
def track(tracking_number: str, runtime: Runtime = Depends(get_runtime)) -> TrackingResponse:
    """Public tracking lookup; the page then joins the tracking-number room for live updates."""
    try:
        shipment = runtime.store.get_shipment_by_tracking(tracking_number)
    except KeyError as e:
        raise NotFound("Shipment not found") from e
    return TrackingResponse(shipment=shipment, history=runtime.store.list_updates(shipment.id))


@router.get("/{shipment_id}", response_model=Shipment)
def get_shipment(
    shipment_id: int,
    account: Account = Depends(current_account),
    runtime: Runtime = Depends(get_runtime),
) -> Shipment:
    try:
        shipment = runtime.store.get_shipment(shipment_id)
    except KeyError as e:
        raise NotFound("Shipment not found") from e
    if account.role not in ("admin", "staff") and shipment.client_id != account.id:
        raise PermissionDenied("User not authorized to view this shipment")
    return shipment


@router.post("", response_model=Shipment, status_code=201)
async def create_shipment(
    req: ShipmentCreate,
    _: Account = Depends(require_roles("admin", "staff")),
    runtime: Runtime = Depends(get_runtime),
) -> Shipment:
    store = runtime.store
    try:
        origin = store.get_branch(req.origin_branch_id)
        store.get_branch(req.destination_branch_id)
    except KeyError as e:
        raise NotFound("Origin or destination branch not found") from e
    try:
        shipment = store.create_shipment(req.model_dump(), initial_location=origin.branch_address)
    except KeyError as e:
        raise NotFound("Client not found") from e
    logger.info("shipment created id=%s tracking_number=%s", shipment.id, shipment.tracking_number)
    runtime.publisher.shipments_list_changed(shipment.client_id)
    return shipment


@router.put("/{shipment_id}", response_model=Shipment)
async def update_shipment(
    shipment_id: int,
    req: ShipmentPatch,
    _: Account = Depends(require_roles("admin", "staff")),
    runtime: Runtime = Depends(get_runtime),
) -> Shipment:
    fields = req.model_dump(exclude_unset=True, exclude={"location", "status_update_message"})
    try:
        runtime.store.get_shipment(shipment_id)
    except KeyError as e:
        raise NotFound("Shipment not found") from e
    try:
        shipment = runtime.store.update_shipment(
            shipment_id,
            fields,
            location=req.location,
            status_update=req.status_update_message,
        )
    except KeyError as e:
        raise NotFound("Client or branch not found") from e
    except ValueError as e:
        raise InvalidRequest("Required shipment fields cannot be cleared") from e
    announce_shipment(runtime, shipment)
    return shipment


@router.delete("/{shipment_id}", response_model=MessageResponse)
async def delete_shipment(
    shipment_id: int,
    _: Account = Depends(require_roles("admin")),
    runtime: Runtime = Depends(get_runtime),
) -> MessageResponse:
    try:
        shipment = runtime.store.delete_shipment(shipment_id)
    except KeyError as e:
        raise NotFound("Shipment not found") from e
    runtime.publisher.shipments_list_changed(shipment.client_id)
    return MessageResponse(msg="Shipment removed")
