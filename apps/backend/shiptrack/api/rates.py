from __future__ import annotations

from fastapi import APIRouter, Depends

from shiptrack.api.deps import current_account, require_roles
from shiptrack.models import Account, Rate, RateIn, ServiceType
from shiptrack.runtime import Runtime, get_runtime


router = APIRouter(prefix="/api/rates", tags=["rates"])


@router.get("", response_model=list[Rate])
def list_rates(
    _: Account = Depends(current_account),
    runtime: Runtime = Depends(get_runtime),
) -> list[Rate]:
    return runtime.store.list_rates()


@router.put("/{service_type}", response_model=Rate)
async def put_rate(
    service_type: ServiceType,
    req: RateIn,
    _: Account = Depends(require_roles("admin")),
    runtime: Runtime = Depends(get_runtime),
) -> Rate:
    rate = runtime.store.upsert_rate(service_type, req.price_per_kg)
    runtime.publisher.list_changed("rates")
    return rate
