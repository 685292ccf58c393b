from __future__ import annotations

import logging
from functools import partial
from typing import Optional

import anyio
from fastapi import APIRouter, Depends, status

from shiptrack.api.deps import current_account, optional_account
from shiptrack.auth.passwords import hash_password
from shiptrack.errors import Conflict, NotFound, PermissionDenied
from shiptrack.models import Account, LoginRequest, LoginResponse, MessageResponse, RegisterRequest, UserOut
from shiptrack.runtime import Runtime, get_runtime


logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register(
    req: RegisterRequest,
    caller: Optional[Account] = Depends(optional_account),
    runtime: Runtime = Depends(get_runtime),
) -> UserOut:
    if req.role != "client" and (caller is None or caller.role != "admin"):
        raise PermissionDenied("Only an admin can create staff, driver or admin accounts")
    store = runtime.store
    if store.find_account_by_email(req.email) is not None:
        raise Conflict("User with that email already exists")
    branch_id = req.branch_id if req.role in ("staff", "admin") else None
    password_hash = await anyio.to_thread.run_sync(partial(hash_password, req.password, rounds=runtime.bcrypt_rounds))
    try:
        account = store.create_account(
            full_name=req.full_name,
            email=req.email,
            password_hash=password_hash,
            role=req.role,
            branch_id=branch_id,
        )
    except KeyError as e:
        raise NotFound("Branch not found") from e
    except ValueError as e:
        # Lost a race with a concurrent registration of the same email.
        raise Conflict("User with that email already exists") from e
    logger.info("user registered account_id=%s role=%s", account.id, account.role)
    runtime.publisher.list_changed("users")
    return UserOut.from_account(account)


@router.post("/login", response_model=LoginResponse)
async def login(req: LoginRequest, runtime: Runtime = Depends(get_runtime)) -> LoginResponse:
    # bcrypt off the loop; the session swap and eviction push stay on it.
    account = await anyio.to_thread.run_sync(runtime.sessions.authenticate, req.email, req.password)
    result = runtime.sessions.start_session(account)
    return LoginResponse(token=result.token, user=UserOut.from_account(result.account))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    account: Account = Depends(current_account),
    runtime: Runtime = Depends(get_runtime),
) -> MessageResponse:
    runtime.sessions.logout(account.id)
    return MessageResponse(msg="Logged out successfully")


@router.get("/me", response_model=UserOut)
async def me(account: Account = Depends(current_account)) -> UserOut:
    return UserOut.from_account(account)
