from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from shiptrack.api.deps import require_roles
from shiptrack.errors import NotFound, PermissionDenied
from shiptrack.models import Account, MessageResponse, RoleUpdateRequest, UserOut
from shiptrack.runtime import Runtime, get_runtime


logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=list[UserOut])
def list_users(
    _: Account = Depends(require_roles("admin")),
    runtime: Runtime = Depends(get_runtime),
) -> list[UserOut]:
    return [UserOut.from_account(a) for a in runtime.store.list_accounts()]


@router.get("/clients", response_model=list[UserOut])
def list_clients(
    _: Account = Depends(require_roles("admin", "staff")),
    runtime: Runtime = Depends(get_runtime),
) -> list[UserOut]:
    return [UserOut.from_account(a) for a in runtime.store.list_accounts(role="client")]


@router.put("/{user_id}/role", response_model=UserOut)
async def update_role(
    user_id: int,
    req: RoleUpdateRequest,
    admin: Account = Depends(require_roles("admin")),
    runtime: Runtime = Depends(get_runtime),
) -> UserOut:
    if user_id == admin.id:
        raise PermissionDenied("Admins cannot change their own role")
    branch_id = req.branch_id if req.role in ("staff", "admin") else None
    try:
        before = runtime.store.get_account(user_id)
    except KeyError as e:
        raise NotFound("User not found") from e
    try:
        account = runtime.store.update_role(user_id, req.role, branch_id)
    except KeyError as e:
        raise NotFound("Branch not found") from e
    if before.role != account.role:
        # Credentials carry the role; make the user sign in again to pick it up.
        runtime.sessions.revoke(user_id, "Your role has changed. Please sign in again.")
    logger.info("role updated account_id=%s role=%s by=%s", user_id, account.role, admin.id)
    runtime.publisher.list_changed("users")
    return UserOut.from_account(account)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    admin: Account = Depends(require_roles("admin")),
    runtime: Runtime = Depends(get_runtime),
) -> MessageResponse:
    if user_id == admin.id:
        raise PermissionDenied("Admins cannot delete their own account")
    try:
        runtime.sessions.revoke(user_id, "This account has been removed.")
        runtime.store.delete_account(user_id)
    except KeyError as e:
        raise NotFound("User not found") from e
    logger.info("user deleted account_id=%s by=%s", user_id, admin.id)
    runtime.publisher.list_changed("users")
    return MessageResponse(msg="User removed")
