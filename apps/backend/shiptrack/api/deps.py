from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends
from fastapi.requests import HTTPConnection
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shiptrack.errors import InvalidCredential, PermissionDenied
from shiptrack.models import Account
from shiptrack.runtime import Runtime, get_runtime


bearer = HTTPBearer(auto_error=False)


def current_account(
    conn: HTTPConnection,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    runtime: Runtime = Depends(get_runtime),
) -> Account:
    """Resolve the bearer token to its account, enforcing the single-session rule."""
    if credentials is None or not credentials.credentials:
        raise InvalidCredential("Not authorized, no token")
    account = runtime.sessions.validate(credentials.credentials)
    conn.state.account_id = account.id
    return account


def require_roles(*roles: str) -> Callable[..., Account]:
    def dependency(account: Account = Depends(current_account)) -> Account:
        if account.role not in roles:
            raise PermissionDenied(f"User role '{account.role}' is not authorized to access this route")
        return account

    return dependency


def optional_account(
    conn: HTTPConnection,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    runtime: Runtime = Depends(get_runtime),
) -> Optional[Account]:
    if credentials is None or not credentials.credentials:
        return None
    return current_account(conn, credentials, runtime)
