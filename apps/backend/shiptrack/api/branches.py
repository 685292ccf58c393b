from __future__ import annotations

from fastapi import APIRouter, Depends

from shiptrack.api.deps import require_roles
from shiptrack.errors import NotFound
from shiptrack.models import Account, Branch, BranchIn, MessageResponse
from shiptrack.runtime import Runtime, get_runtime


router = APIRouter(prefix="/api/branches", tags=["branches"])


@router.get("", response_model=list[Branch])
def list_branches(
    _: Account = Depends(require_roles("admin", "staff")),
    runtime: Runtime = Depends(get_runtime),
) -> list[Branch]:
    return runtime.store.list_branches()


@router.post("", response_model=Branch, status_code=201)
async def create_branch(
    req: BranchIn,
    _: Account = Depends(require_roles("admin")),
    runtime: Runtime = Depends(get_runtime),
) -> Branch:
    branch = runtime.store.create_branch(req.branch_name, req.branch_address)
    runtime.publisher.list_changed("branches")
    return branch


@router.put("/{branch_id}", response_model=Branch)
async def update_branch(
    branch_id: int,
    req: BranchIn,
    _: Account = Depends(require_roles("admin")),
    runtime: Runtime = Depends(get_runtime),
) -> Branch:
    try:
        branch = runtime.store.update_branch(branch_id, req.branch_name, req.branch_address)
    except KeyError as e:
        raise NotFound("Branch not found") from e
    runtime.publisher.list_changed("branches")
    return branch


@router.delete("/{branch_id}", response_model=MessageResponse)
async def delete_branch(
    branch_id: int,
    _: Account = Depends(require_roles("admin")),
    runtime: Runtime = Depends(get_runtime),
) -> MessageResponse:
    try:
        runtime.store.delete_branch(branch_id)
    except KeyError as e:
        raise NotFound("Branch not found") from e
    runtime.publisher.list_changed("branches")
    return MessageResponse(msg="Branch deleted")
